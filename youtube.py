"""
YouTube channel videos

Reads the latest uploads of one channel from the YouTube Data API v3:

1. channels.list       -> uploads playlist id
2. playlistItems.list  -> up to 50 videos
3. videos.list         -> view counts and durations, one batched call

Nothing is stored; every call goes to YouTube.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx
from pydantic import BaseModel

import config
from errors import ConfigurationError, NotFoundError, UpstreamError

logger = logging.getLogger(__name__)

API_BASE = "https://www.googleapis.com/youtube/v3"
PAGE_SIZE = 50
REQUEST_TIMEOUT = 10.0

THUMBNAIL_PREFERENCE = ("maxres", "high", "medium")


class YouTubeVideo(BaseModel):
    videoId: str
    title: str
    description: str
    thumbnail: str
    publishedAt: str
    viewCount: Optional[str] = None
    duration: Optional[str] = None


def pick_thumbnail(thumbnails: Optional[Dict[str, Any]]) -> str:
    for size in THUMBNAIL_PREFERENCE:
        url = ((thumbnails or {}).get(size) or {}).get("url")
        if url:
            return url
    return ""


class YouTubeClient:
    def __init__(
        self,
        api_key: Optional[str] = None,
        channel_id: Optional[str] = None,
        http: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key if api_key is not None else config.youtube_api_key()
        self.channel_id = channel_id if channel_id is not None else config.youtube_channel_id()
        self._http = http

    def _check_config(self):
        if not self.api_key:
            raise ConfigurationError(
                "YouTube API key is not configured on the server. Please set YOUTUBE_API_KEY."
            )
        if not self.channel_id:
            raise ConfigurationError(
                "YouTube channel ID is not configured on the server. Please set YOUTUBE_CHANNEL_ID."
            )

    async def _get(self, http: httpx.AsyncClient, endpoint: str, params: Dict[str, str]) -> Dict[str, Any]:
        name = f"{endpoint}.list"
        try:
            response = await http.get(
                f"{API_BASE}/{endpoint}", params={**params, "key": self.api_key}, timeout=REQUEST_TIMEOUT
            )
        except httpx.HTTPError as e:
            logger.error(f"YouTube {name} request failed: {e}")
            raise UpstreamError(f"YouTube {name} request failed: {e}")

        if response.is_error:
            raise UpstreamError(f"YouTube {name} request failed with status {response.status_code}")

        try:
            data = response.json()
        except ValueError:
            raise UpstreamError(f"YouTube {name} returned an invalid response")

        if not isinstance(data, dict):
            raise UpstreamError(f"YouTube {name} returned an invalid response")
        error = data.get("error")
        if error:
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise UpstreamError(message or f"Unknown error from YouTube {name} API.")
        return data

    async def fetch_videos(self) -> List[YouTubeVideo]:
        self._check_config()
        if self._http is not None:
            return await self._fetch(self._http)
        async with httpx.AsyncClient() as http:
            return await self._fetch(http)

    async def _fetch(self, http: httpx.AsyncClient) -> List[YouTubeVideo]:
        channels = await self._get(http, "channels", {"part": "contentDetails", "id": self.channel_id})
        items = channels.get("items") or [{}]
        uploads = (((items[0].get("contentDetails") or {}).get("relatedPlaylists")) or {}).get("uploads")
        if not uploads:
            raise NotFoundError(
                "Channel uploads playlist not found. Please verify the channel ID "
                "and that the channel has uploaded videos."
            )

        playlist = await self._get(
            http,
            "playlistItems",
            {"part": "snippet,contentDetails", "playlistId": uploads, "maxResults": str(PAGE_SIZE)},
        )
        entries = playlist.get("items") or []
        if not entries:
            return []

        video_ids = [
            (entry.get("contentDetails") or {}).get("videoId")
            for entry in entries
            if (entry.get("contentDetails") or {}).get("videoId")
        ]
        stats: Dict[str, Dict[str, Any]] = {}
        if video_ids:
            details = await self._get(
                http, "videos", {"part": "statistics,contentDetails", "id": ",".join(video_ids)}
            )
            for item in details.get("items") or []:
                if item.get("id"):
                    stats[item["id"]] = {
                        "viewCount": (item.get("statistics") or {}).get("viewCount"),
                        "duration": (item.get("contentDetails") or {}).get("duration"),
                    }

        videos = []
        for entry in entries:
            video_id = (entry.get("contentDetails") or {}).get("videoId")
            snippet = entry.get("snippet")
            if not video_id or not snippet:
                continue
            videos.append(YouTubeVideo(
                videoId=video_id,
                title=snippet.get("title") or "Untitled video",
                description=snippet.get("description") or "",
                thumbnail=pick_thumbnail(snippet.get("thumbnails")),
                publishedAt=snippet.get("publishedAt") or datetime.now(timezone.utc).isoformat(),
                **stats.get(video_id, {}),
            ))
        return videos
