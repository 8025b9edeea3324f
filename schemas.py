"""
Database Schemas

Pydantic models for the documents stored in MongoDB and for the request
bodies that create them.

Collections:
- Blog -> "blogs" collection
- ContactSubmission -> "contact_submissions" collection
"""

import re
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_core import PydanticCustomError

from errors import ContactValidationError
from identifiers import id_to_str

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MOBILE_RE = re.compile(r"^\+?[0-9]{10,15}$")

# Set by the store or the repository, never accepted from callers
PROTECTED_FIELDS = ("_id", "id", "createdAt", "created_at")


def _document_fields(doc: Dict[str, Any]) -> Dict[str, Any]:
    fields = dict(doc)
    fields["id"] = id_to_str(fields.pop("_id", None)) or fields.get("id")
    fields["createdAt"] = fields.get("createdAt") or fields.pop("created_at", None)
    return fields


# -----------------------------
# Blogs
# -----------------------------

class BlogIn(BaseModel):
    """
    Fields an admin may set when writing a blog post.
    Identifier and timestamp keys in the input are ignored.
    """
    title: str = Field(..., min_length=1, description="Post title")
    slug: str = Field(..., min_length=1, description="Public lookup key, /blog/<slug>")
    excerpt: Optional[str] = None
    content: str = Field(..., min_length=1, description="Post body")
    image_url: Optional[str] = None
    image_data: Optional[str] = Field(None, description="Base64 image uploaded inline")
    image_mime: Optional[str] = None
    category: Optional[str] = None
    published: bool = False


class BlogUpdate(BaseModel):
    title: Optional[str] = None
    slug: Optional[str] = None
    excerpt: Optional[str] = None
    content: Optional[str] = None
    image_url: Optional[str] = None
    image_data: Optional[str] = None
    image_mime: Optional[str] = None
    category: Optional[str] = None
    published: Optional[bool] = None


class Blog(BlogIn):
    """
    Blogs collection schema
    Collection name: "blogs"
    """
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    deleted: bool = False
    createdAt: Optional[str] = None

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "Blog":
        fields = _document_fields(doc)
        fields["published"] = bool(fields.get("published"))
        fields["deleted"] = bool(fields.get("deleted"))
        return cls.model_construct(**fields)

    @property
    def visible(self) -> bool:
        return self.published and not self.deleted

    @property
    def image_src(self) -> Optional[str]:
        if self.image_url:
            return self.image_url
        if self.image_data and self.image_mime:
            return f"data:{self.image_mime};base64,{self.image_data}"
        return None


# -----------------------------
# Contact submissions
# -----------------------------

class ContactIn(BaseModel):
    """Body of the public contact form."""
    name: str
    mobile: str
    email: str
    address: Optional[str] = None
    message: str

    @field_validator("name", "mobile", "email", "message")
    @classmethod
    def _required(cls, value: str) -> str:
        if not value.strip():
            raise PydanticCustomError("missing", "Field required")
        return value.strip()

    @field_validator("email")
    @classmethod
    def _email_format(cls, value: str) -> str:
        if not EMAIL_RE.match(value):
            raise PydanticCustomError("invalid_email", "Invalid email address format")
        return value.lower()

    @field_validator("mobile")
    @classmethod
    def _mobile_format(cls, value: str) -> str:
        if not MOBILE_RE.match(re.sub(r"\s", "", value)):
            raise PydanticCustomError("invalid_mobile", "Invalid mobile number format")
        return value

    @field_validator("address")
    @classmethod
    def _blank_address(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return value.strip() or None


class ContactSubmission(ContactIn):
    """
    Contact submissions collection schema
    Collection name: "contact_submissions"
    """
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    read: bool = False
    createdAt: Optional[str] = None

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "ContactSubmission":
        fields = _document_fields(doc)
        fields["read"] = bool(fields.get("read"))
        return cls.model_construct(**fields)


CONTACT_REQUIRED = ("name", "mobile", "email", "message")


def parse_contact(body: Any) -> ContactIn:
    """
    Validate a contact form body.

    Raises ContactValidationError carrying one message per failing field.
    """
    try:
        return ContactIn.model_validate(body)
    except ValidationError as e:
        errors: Dict[str, str] = {}
        for err in e.errors():
            field = str(err["loc"][0]) if err["loc"] else "body"
            if err["type"] == "missing" or (err["type"] == "string_type" and err.get("input") is None):
                errors.setdefault(field, "Field required")
            else:
                errors.setdefault(field, err["msg"])

    if any(errors.get(field) == "Field required" for field in CONTACT_REQUIRED):
        message = "Missing required fields: name, mobile, email, and message are required"
    else:
        message = next(iter(errors.values()))
    raise ContactValidationError(message, errors)
