"""
Client side of the /mongodb-api protocol

MongoApi wraps each of the six actions and unwraps the response envelope,
turning {"success": false, ...} into an exception. The envelope can travel
over HTTP to a deployed endpoint or be produced in-process by the
dispatcher.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

import httpx

import config
import dispatcher
from database import ConnectionManager
from errors import ClientError, ConfigurationError, UpstreamError

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 15.0


class MongoApi:
    async def _send(self, body: Dict[str, Any]) -> Tuple[int, Dict[str, Any]]:
        raise NotImplementedError

    async def _call(self, body: Dict[str, Any]) -> Any:
        status, envelope = await self._send(body)
        if envelope.get("success"):
            return envelope.get("data")

        message = envelope.get("error") or "Unknown error"
        if 400 <= status < 500:
            raise ClientError(message)
        raise UpstreamError(message)

    async def find(
        self, collection: str, query: Optional[Dict[str, Any]] = None, options: Optional[Dict[str, Any]] = None
    ) -> List[Dict[str, Any]]:
        body = {"action": "find", "collection": collection, "query": query or {}, "options": options or {}}
        return await self._call(body) or []

    async def find_one(self, collection: str, query: Optional[Dict[str, Any]] = None) -> Optional[Dict[str, Any]]:
        return await self._call({"action": "findOne", "collection": collection, "query": query or {}})

    async def insert_one(self, collection: str, document: Dict[str, Any]) -> Dict[str, Any]:
        return await self._call({"action": "insertOne", "collection": collection, "data": document})

    async def update_one(
        self,
        collection: str,
        query: Dict[str, Any],
        update: Dict[str, Any],
        options: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        body = {"action": "updateOne", "collection": collection, "query": query, "data": update}
        if options:
            body["options"] = options
        return await self._call(body)

    async def delete_one(self, collection: str, query: Dict[str, Any]) -> Dict[str, Any]:
        return await self._call({"action": "deleteOne", "collection": collection, "query": query})

    async def count(self, collection: str, query: Optional[Dict[str, Any]] = None) -> int:
        return await self._call({"action": "count", "collection": collection, "query": query or {}}) or 0


class LocalMongoApi(MongoApi):
    """Runs requests through the dispatcher in this process."""

    def __init__(self, manager: ConnectionManager):
        self.manager = manager

    async def _send(self, body):
        self.manager.check_config()
        return await dispatcher.execute(self.manager, body)


class HttpMongoApi(MongoApi):
    """Posts requests to a /mongodb-api endpoint deployed elsewhere."""

    def __init__(self, base_url: Optional[str] = None, http: Optional[httpx.AsyncClient] = None):
        self.base_url = (base_url or config.mongodb_api_url() or "").rstrip("/")
        self._http = http

    async def _send(self, body):
        if not self.base_url:
            raise ConfigurationError("MONGODB_API_URL is not configured")

        url = f"{self.base_url}/mongodb-api"
        try:
            if self._http is not None:
                response = await self._http.post(url, json=body, timeout=REQUEST_TIMEOUT)
            else:
                async with httpx.AsyncClient() as http:
                    response = await http.post(url, json=body, timeout=REQUEST_TIMEOUT)
        except httpx.HTTPError as e:
            logger.error(f"MongoDB API request to {url} failed: {e}")
            raise UpstreamError(f"MongoDB API request failed: {e}")

        try:
            envelope = response.json()
        except ValueError:
            envelope = {
                "success": False,
                "error": response.text or f"MongoDB API request failed with status {response.status_code}",
            }
        if not isinstance(envelope, dict):
            envelope = {"success": False, "error": f"Unexpected MongoDB API response: {envelope!r}"}
        return response.status_code, envelope
