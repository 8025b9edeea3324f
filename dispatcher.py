"""
Generic MongoDB action endpoint

Remote callers send one JSON body

    {"action": ..., "collection": ..., "query": {...}, "data": {...}, "options": {...}}

and get back {"success": true, "data": ...} or {"success": false, "error": ...}.
The body is decoded into one request model per action before the store is
touched, so a malformed body never costs a connection.
"""

import json
import logging
from typing import Annotated, Any, Dict, Literal, Mapping, Optional, Tuple, Union

from bson import json_util
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

from database import ConnectionManager
from errors import ClientError, ConfigurationError
from identifiers import normalize_id_in_query

logger = logging.getLogger(__name__)

TLS_HINT = (
    "MongoDB SSL/TLS connection error. Please check your MONGODB_URI "
    "connection string includes proper TLS configuration."
)


# -----------------------------
# Options
# -----------------------------

class _Options(BaseModel):
    model_config = ConfigDict(extra="forbid")

    def to_kwargs(self) -> Dict[str, Any]:
        kwargs = self.model_dump(exclude_none=True)
        if "sort" in kwargs:
            kwargs["sort"] = list(kwargs["sort"].items())
        return kwargs


class FindOptions(_Options):
    sort: Optional[Dict[str, int]] = None
    limit: Optional[int] = Field(None, ge=0)
    skip: Optional[int] = Field(None, ge=0)
    projection: Optional[Dict[str, Any]] = None


class FindOneOptions(_Options):
    sort: Optional[Dict[str, int]] = None
    projection: Optional[Dict[str, Any]] = None


class UpdateOptions(_Options):
    upsert: Optional[bool] = None


class DeleteOptions(_Options):
    """deleteOne takes no options; any key is rejected like elsewhere."""


class CountOptions(_Options):
    limit: Optional[int] = Field(None, ge=0)
    skip: Optional[int] = Field(None, ge=0)


# -----------------------------
# Requests
# -----------------------------

class _Request(BaseModel):
    collection: str = Field(..., min_length=1)
    query: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("query", "options", mode="before", check_fields=False)
    @classmethod
    def _null_as_empty(cls, value):
        return {} if value is None else value


class FindRequest(_Request):
    action: Literal["find"]
    options: FindOptions = Field(default_factory=FindOptions)

    async def run(self, collection, query):
        cursor = collection.find(query, **self.options.to_kwargs())
        return await cursor.to_list()


class FindOneRequest(_Request):
    action: Literal["findOne"]
    options: FindOneOptions = Field(default_factory=FindOneOptions)

    async def run(self, collection, query):
        return await collection.find_one(query, **self.options.to_kwargs())


class InsertOneRequest(_Request):
    action: Literal["insertOne"]
    data: Dict[str, Any]

    async def run(self, collection, query):
        result = await collection.insert_one(dict(self.data))
        return {"_id": result.inserted_id, **self.data}


class UpdateOneRequest(_Request):
    action: Literal["updateOne"]
    data: Dict[str, Any]
    options: UpdateOptions = Field(default_factory=UpdateOptions)

    async def run(self, collection, query):
        result = await collection.update_one(query, {"$set": self.data}, **self.options.to_kwargs())
        # counts are only readable on an acknowledged write
        if not result.acknowledged:
            return {"acknowledged": False, "matchedCount": None, "modifiedCount": None, "upsertedId": None}
        return {
            "acknowledged": True,
            "matchedCount": result.matched_count,
            "modifiedCount": result.modified_count,
            "upsertedId": result.upserted_id,
        }


class DeleteOneRequest(_Request):
    action: Literal["deleteOne"]
    options: DeleteOptions = Field(default_factory=DeleteOptions)

    async def run(self, collection, query):
        result = await collection.delete_one(query)
        if not result.acknowledged:
            return {"acknowledged": False, "deletedCount": None}
        return {"acknowledged": True, "deletedCount": result.deleted_count}


class CountRequest(_Request):
    action: Literal["count"]
    options: CountOptions = Field(default_factory=CountOptions)

    async def run(self, collection, query):
        return await collection.count_documents(query, **self.options.to_kwargs())


StoreRequest = Annotated[
    Union[FindRequest, FindOneRequest, InsertOneRequest, UpdateOneRequest, DeleteOneRequest, CountRequest],
    Field(discriminator="action"),
]

_request_adapter = TypeAdapter(StoreRequest)


def decode_request(body: Any) -> StoreRequest:
    """Validate a request body, raising ClientError for anything unusable."""
    if not isinstance(body, Mapping) or not body.get("action") or not body.get("collection"):
        raise ClientError("Missing required fields: action, collection")

    try:
        return _request_adapter.validate_python(body)
    except ValidationError as e:
        raise ClientError(_describe_decode_error(body, e))


def _describe_decode_error(body: Mapping, exc: ValidationError) -> str:
    action = body.get("action")
    err = exc.errors()[0]
    if err["type"] in ("union_tag_invalid", "union_tag_not_found"):
        return f"Unknown action: {action}"
    loc = err["loc"][1:] if len(err["loc"]) > 1 else err["loc"]
    if loc and loc[0] == "data" and body.get("data") is None:
        return f"Missing data for {action}"
    field = ".".join(str(part) for part in loc)
    return f"Invalid {field}: {err['msg']}"


# -----------------------------
# Execution
# -----------------------------

async def run_request(manager: ConnectionManager, request: StoreRequest) -> Any:
    """
    Run a decoded request on the live client.

    A store failure drops the client it happened on, so the next request
    starts from a fresh connection.
    """
    query = normalize_id_in_query(request.query)
    client = await manager.get_client()
    try:
        return await request.run(client[manager.db_name][request.collection], query)
    except Exception:
        await manager.invalidate(client)
        raise


def to_json(data: Any) -> Any:
    """Plain JSON for a store result; ObjectIds become {"$oid": ...}."""
    return json.loads(json_util.dumps(data, json_options=json_util.RELAXED_JSON_OPTIONS))


def describe_store_error(exc: Exception) -> str:
    message = str(exc) or "Internal server error"
    if "SSL" in message or "TLS" in message:
        return TLS_HINT
    return message


async def execute(manager: ConnectionManager, body: Any) -> Tuple[int, Dict[str, Any]]:
    """
    Run one request body and return (status, envelope).

    Decode and client errors keep their own status; anything the store
    raises becomes a 500 with its message.
    """
    try:
        request = decode_request(body)
        result = await run_request(manager, request)
    except ClientError as e:
        return e.status_code, {"success": False, "error": e.message}
    except ConfigurationError as e:
        logger.error(f"MongoDB API misconfigured: {e}")
        return e.status_code, {"success": False, "error": e.message}
    except Exception as e:
        logger.exception("MongoDB API error")
        return 500, {"success": False, "error": describe_store_error(e)}

    return 200, {"success": True, "data": to_json(result)}
