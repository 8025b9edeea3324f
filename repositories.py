"""
Blog and contact repositories

Thin layers over MongoApi that know the collection names, stamp
`createdAt` on insert, keep identifier and timestamp fields out of updates,
and turn "nothing matched" into NotFoundError.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel

import config
from errors import ClientError, NotFoundError, UpstreamError
from mongo_api import MongoApi
from schemas import PROTECTED_FIELDS, Blog, BlogIn, ContactIn, ContactSubmission

logger = logging.getLogger(__name__)

NEWEST_FIRST = {"createdAt": -1}
VISIBLE = {"published": True, "deleted": {"$ne": True}}


def utc_now_iso() -> str:
    """Current time as ISO-8601 with millisecond precision and a Z suffix."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _id_query(doc_id: str) -> Dict[str, Any]:
    return {"_id": {"$oid": doc_id}}


class _Repository:
    collection: str = ""
    label: str = "Document"

    def __init__(self, api: MongoApi):
        self.api = api

    async def _insert(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        doc = {key: value for key, value in fields.items() if key not in PROTECTED_FIELDS}
        doc["createdAt"] = utc_now_iso()
        inserted = await self.api.insert_one(self.collection, doc)
        return {**doc, **(inserted or {})}

    async def update(self, doc_id: str, partial: Union[BaseModel, Dict[str, Any]]) -> None:
        """
        Apply a partial $set to one document.

        Raises NotFoundError when no document has this id. A match that
        changed nothing (same values written again) is still a success.
        """
        if isinstance(partial, BaseModel):
            partial = partial.model_dump(exclude_unset=True)
        data = {key: value for key, value in partial.items() if key not in PROTECTED_FIELDS}
        if not data:
            raise ClientError("No fields to update")

        result = await self.api.update_one(self.collection, _id_query(doc_id), data)
        if result and result.get("acknowledged") is False:
            raise UpstreamError("Update operation was not acknowledged by MongoDB")
        if not result or not result.get("matchedCount"):
            raise NotFoundError(f"{self.label} with id {doc_id} was not found")

    async def hard_delete(self, doc_id: str) -> None:
        result = await self.api.delete_one(self.collection, _id_query(doc_id))
        if result and result.get("acknowledged") is False:
            raise UpstreamError("Delete operation was not acknowledged by MongoDB")
        if not result or not result.get("deletedCount"):
            raise NotFoundError(f"{self.label} with id {doc_id} was not found or already deleted")
        logger.info(f"Deleted {self.collection} document {doc_id}")


class BlogRepository(_Repository):
    collection = config.BLOGS_COLLECTION
    label = "Blog"

    async def list_published(self, limit: Optional[int] = None) -> List[Blog]:
        options: Dict[str, Any] = {"sort": NEWEST_FIRST}
        if limit:
            options["limit"] = limit
        docs = await self.api.find(self.collection, VISIBLE, options)
        return [Blog.from_document(doc) for doc in docs]

    async def list_all(self) -> List[Blog]:
        """Every blog including drafts and soft-deleted ones, for the admin view."""
        docs = await self.api.find(self.collection, {}, {"sort": NEWEST_FIRST})
        return [Blog.from_document(doc) for doc in docs]

    async def get_by_slug(self, slug: str) -> Optional[Blog]:
        doc = await self.api.find_one(self.collection, {"slug": slug, **VISIBLE})
        return Blog.from_document(doc) if doc else None

    async def sitemap_entries(self) -> List[Dict[str, Any]]:
        return await self.api.find(
            self.collection,
            VISIBLE,
            {"sort": NEWEST_FIRST, "projection": {"slug": 1, "createdAt": 1, "created_at": 1}},
        )

    async def create(self, data: Union[BlogIn, Dict[str, Any]]) -> Blog:
        if not isinstance(data, BlogIn):
            data = BlogIn.model_validate(data)
        return Blog.from_document(await self._insert(data.model_dump()))

    async def soft_delete(self, doc_id: str) -> None:
        """Hide a blog from the site; both flags go out in one $set."""
        await self.update(doc_id, {"published": False, "deleted": True})


class ContactRepository(_Repository):
    collection = config.CONTACTS_COLLECTION
    label = "Contact submission"

    async def create(self, data: Union[ContactIn, Dict[str, Any]]) -> ContactSubmission:
        if not isinstance(data, ContactIn):
            data = ContactIn.model_validate(data)
        fields = data.model_dump()
        fields["read"] = False
        return ContactSubmission.from_document(await self._insert(fields))

    async def list_all(self) -> List[ContactSubmission]:
        docs = await self.api.find(self.collection, {}, {"sort": NEWEST_FIRST})
        return [ContactSubmission.from_document(doc) for doc in docs]

    async def unread_count(self) -> int:
        return await self.api.count(self.collection, {"read": {"$ne": True}})

    async def mark_read(self, doc_id: str) -> None:
        await self.update(doc_id, {"read": True})

    async def mark_unread(self, doc_id: str) -> None:
        await self.update(doc_id, {"read": False})
