"""
Document identifiers

Callers send the `_id` of a document either as the bare hex string or in
extended JSON form, {"$oid": "<hex>"}. Queries are rewritten to use a real
ObjectId before they reach the store.
"""

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union

from bson import ObjectId
from bson.errors import InvalidId

from errors import ClientError


@dataclass(frozen=True)
class RawId:
    value: str

    def to_object_id(self) -> ObjectId:
        return _object_id(self.value)


@dataclass(frozen=True)
class ExtendedId:
    value: str

    def to_object_id(self) -> ObjectId:
        return _object_id(self.value)

    def to_json(self) -> dict:
        return {"$oid": self.value}


Identifier = Union[RawId, ExtendedId]


def _object_id(value: str) -> ObjectId:
    try:
        return ObjectId(value)
    except InvalidId:
        raise ClientError(f"Invalid document id: {value!r}")


def parse_identifier(value: Any) -> Optional[Identifier]:
    """Recognise the two serialisable id shapes; anything else gives None."""
    if isinstance(value, str):
        return RawId(value)
    if isinstance(value, Mapping) and isinstance(value.get("$oid"), str):
        return ExtendedId(value["$oid"])
    return None


def normalize_id_in_query(query: Any) -> Any:
    """
    Return a shallow copy of `query` whose top-level `_id` is an ObjectId.

    Only the top-level key is rewritten; ids nested inside operators such as
    $in are left for the caller to convert. Non-mapping queries and `_id`
    values of any other shape are returned untouched.
    """
    if not isinstance(query, Mapping):
        return query

    normalized = dict(query)
    ident = parse_identifier(normalized.get("_id"))
    if ident is not None:
        normalized["_id"] = ident.to_object_id()
    return normalized


def id_to_str(value: Any) -> Optional[str]:
    """Hex string for an `_id` in any of the shapes the store or the wire produce."""
    if value is None:
        return None
    ident = parse_identifier(value)
    if ident is not None:
        return ident.value
    return str(value)
