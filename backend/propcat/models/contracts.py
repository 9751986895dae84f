"""Prop catalog contract models.

Request bodies, response shapes and the furniture payload shared by direct
admin writes and moderated submissions. Payloads are parsed exactly once, at
the boundary; everything downstream works with FurniturePayload.
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import Annotated, Any, Literal
from urllib.parse import urlparse

from pydantic import BaseModel, Field, TypeAdapter, field_validator
from pydantic import ValidationError as PydanticValidationError

from propcat.errors import ValidationError

MAX_FURNITURE_NAME_LENGTH = 255
MAX_IMAGE_URL_LENGTH = 500
HEX_COLOR_PATTERN = r"^#[0-9a-fA-F]{6}$"

# === Identity ===


class Actor(BaseModel):
    """Authenticated caller, passed explicitly into every catalog operation."""

    model_config = {"frozen": True}

    user_id: int = Field(gt=0)
    role: Literal["user", "admin"] = "user"

    @property
    def is_reviewer(self) -> bool:
        return self.role == "admin"


# === Furniture payload ===


def _dedupe_ids(values: list[int], field: str) -> list[int]:
    seen: list[int] = []
    for value in values:
        if value <= 0:
            raise ValueError(f"{field} must be positive integers")
        if value not in seen:
            seen.append(value)
    return seen


class FurniturePayload(BaseModel):
    """Full desired state of one furniture item. category_ids[0] is the primary."""

    model_config = {"str_strip_whitespace": True, "extra": "ignore"}

    name: str = Field(min_length=1, max_length=MAX_FURNITURE_NAME_LENGTH)
    price: int = Field(default=0, ge=0)
    image_url: str | None = Field(default=None, max_length=MAX_IMAGE_URL_LENGTH)
    category_ids: list[int] = Field(min_length=1)
    tag_ids: list[int] = []
    notes: str | None = Field(default=None, max_length=1000)

    @field_validator("name")
    @classmethod
    def _collapse_name_whitespace(cls, value: str) -> str:
        # stored names share the normal form search queries use
        return " ".join(value.split())

    @field_validator("image_url", mode="before")
    @classmethod
    def _blank_image_is_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("image_url")
    @classmethod
    def _check_image_url(cls, value: str | None) -> str | None:
        if value is None:
            return None
        if value.startswith("/"):
            if ".." in value or "\\" in value:
                raise ValueError("directory traversal not allowed in image path")
            if not re.sub(r"/+", "/", value).startswith("/images/"):
                raise ValueError("image path must be in /images/ or an http(s) URL")
            return value
        parsed = urlparse(value)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError("image must be a /images/ path or an http(s) URL")
        return value

    @field_validator("category_ids")
    @classmethod
    def _unique_categories(cls, value: list[int]) -> list[int]:
        return _dedupe_ids(value, "category_ids")

    @field_validator("tag_ids")
    @classmethod
    def _unique_tags(cls, value: list[int]) -> list[int]:
        return _dedupe_ids(value, "tag_ids")

    @property
    def primary_category_id(self) -> int:
        return self.category_ids[0]


def describe_errors(exc: PydanticValidationError) -> str:
    """Flatten pydantic errors into 'field: message; field: message'."""
    messages = []
    for err in exc.errors():
        loc = " → ".join(str(part) for part in err["loc"]) or "payload"
        messages.append(f"{loc}: {err['msg']}")
    return "; ".join(messages)


def parse_payload(data: Any) -> FurniturePayload:
    """Parse a stored or submitted document into a FurniturePayload.

    Raises:
        ValidationError: the document doesn't satisfy the payload rules.
    """
    try:
        return FurniturePayload.model_validate(data)
    except PydanticValidationError as exc:
        raise ValidationError(describe_errors(exc)) from exc


# === Catalog responses ===


class CategoryRef(BaseModel):
    id: int
    name: str
    slug: str
    icon: str
    is_primary: bool = False


class TagOut(BaseModel):
    id: int
    name: str
    slug: str
    color: str
    group_id: int | None = None


class FurnitureOut(BaseModel):
    id: int
    name: str
    price: int
    image_url: str | None = None
    # Primary category, flattened for list views
    category_id: int | None = None
    category_name: str | None = None
    category_slug: str | None = None
    categories: list[CategoryRef] = []
    tags: list[TagOut] = []
    created_at: datetime | None = None
    updated_at: datetime | None = None


class Pagination(BaseModel):
    page: int
    per_page: int
    total: int
    total_pages: int


class FurnitureFilters(BaseModel):
    category: str | None = None
    tags: list[str] = []
    sort: Literal["name", "price", "newest"] = "name"
    order: Literal["asc", "desc"] = "asc"
    favorites_only: bool = False


class FurnitureListResponse(BaseModel):
    items: list[FurnitureOut]
    pagination: Pagination
    degraded: bool = False


class SearchMeta(BaseModel):
    original: str
    synonyms_used: list[str] = []
    total_terms: int = 0
    did_you_mean: str | None = None
    suggested_category: str | None = None


class SearchResponse(FurnitureListResponse):
    search_meta: SearchMeta | None = None


class FurnitureBatchResponse(BaseModel):
    items: list[FurnitureOut]


class DuplicateCandidate(FurnitureOut):
    similarity: float = Field(ge=0, le=100)


class DuplicateCheckResponse(BaseModel):
    candidates: list[DuplicateCandidate] = []


class BatchDeleteRequest(BaseModel):
    ids: list[int] = Field(min_length=1, max_length=100)


class BatchDeleteResponse(BaseModel):
    deleted: int


# === Taxonomy ===


class CategoryOut(BaseModel):
    id: int
    name: str
    slug: str
    icon: str
    sort_order: int
    item_count: int = 0


class CategoryCreateRequest(BaseModel):
    model_config = {"str_strip_whitespace": True}

    name: str = Field(min_length=1, max_length=100)
    slug: str | None = Field(default=None, max_length=100)
    icon: str | None = Field(default=None, max_length=50)
    sort_order: int | None = Field(default=None, ge=0)


class CategoryUpdateRequest(BaseModel):
    model_config = {"str_strip_whitespace": True}

    name: str | None = Field(default=None, min_length=1, max_length=100)
    slug: str | None = Field(default=None, max_length=100)
    icon: str | None = Field(default=None, max_length=50)
    sort_order: int | None = Field(default=None, ge=0)


class ReorderRequest(BaseModel):
    ids: list[int] = Field(min_length=1)


class TagGroupOut(BaseModel):
    id: int
    name: str
    slug: str
    color: str
    sort_order: int
    tags: list[TagOut] = []


class TagListResponse(BaseModel):
    groups: list[TagGroupOut]
    ungrouped: list[TagOut] = []


class TagGroupCreateRequest(BaseModel):
    model_config = {"str_strip_whitespace": True}

    name: str = Field(min_length=1, max_length=50)
    slug: str | None = Field(default=None, max_length=50)
    color: str | None = Field(default=None, pattern=HEX_COLOR_PATTERN)
    sort_order: int | None = Field(default=None, ge=0)


class TagGroupUpdateRequest(BaseModel):
    model_config = {"str_strip_whitespace": True}

    name: str | None = Field(default=None, min_length=1, max_length=50)
    slug: str | None = Field(default=None, max_length=50)
    color: str | None = Field(default=None, pattern=HEX_COLOR_PATTERN)
    sort_order: int | None = Field(default=None, ge=0)


class TagCreateRequest(BaseModel):
    model_config = {"str_strip_whitespace": True}

    name: str = Field(min_length=1, max_length=50)
    slug: str | None = Field(default=None, max_length=50)
    color: str | None = Field(default=None, pattern=HEX_COLOR_PATTERN)
    group_id: int | None = None


class TagUpdateRequest(BaseModel):
    """Partial update. An explicit ``"group_id": null`` ungroups the tag."""

    model_config = {"str_strip_whitespace": True}

    name: str | None = Field(default=None, min_length=1, max_length=50)
    slug: str | None = Field(default=None, max_length=50)
    color: str | None = Field(default=None, pattern=HEX_COLOR_PATTERN)
    group_id: int | None = None


# === Submissions ===


class NewSubmissionRequest(BaseModel):
    type: Literal["new"]
    furniture_id: None = None
    payload: FurniturePayload


class EditSubmissionRequest(BaseModel):
    type: Literal["edit"]
    furniture_id: int = Field(gt=0)
    payload: FurniturePayload


SubmissionRequest = Annotated[
    NewSubmissionRequest | EditSubmissionRequest, Field(discriminator="type")
]

_submission_request_adapter: TypeAdapter[NewSubmissionRequest | EditSubmissionRequest] = TypeAdapter(
    SubmissionRequest
)


def parse_submission_request(data: Any) -> NewSubmissionRequest | EditSubmissionRequest:
    """Parse a submission body; type=new must not name a target, type=edit must."""
    try:
        return _submission_request_adapter.validate_python(data)
    except PydanticValidationError as exc:
        raise ValidationError(describe_errors(exc)) from exc


class SubmissionOut(BaseModel):
    id: int
    user_id: int
    type: Literal["new", "edit"]
    furniture_id: int | None = None
    payload: dict
    status: Literal["pending", "approved", "rejected"]
    admin_notes: str | None = None
    reviewed_by: int | None = None
    reviewed_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class SubmissionCreateResponse(BaseModel):
    submission: SubmissionOut
    duplicates: list[DuplicateCandidate] = []


class SubmissionListResponse(BaseModel):
    items: list[SubmissionOut]
    pagination: Pagination


class ReviewRequest(BaseModel):
    notes: str | None = Field(default=None, max_length=2000)


class ReviewResponse(BaseModel):
    submission: SubmissionOut
    furniture_id: int | None = None


class BulkReviewRequest(BaseModel):
    ids: list[int] = Field(min_length=1)
    action: Literal["approve", "reject"]
    notes: str | None = Field(default=None, max_length=2000)


class BulkFailure(BaseModel):
    id: int
    error: str
    message: str


class BulkReviewResponse(BaseModel):
    processed: list[int] = []
    failed: list[BulkFailure] = []


class PendingCountResponse(BaseModel):
    pending: int


# === Search analytics ===


class SearchTermStat(BaseModel):
    query: str
    searches: int
    avg_results: float


class SearchAnalyticsResponse(BaseModel):
    days: int
    popular: list[SearchTermStat] = []
    zero_results: list[SearchTermStat] = []


# === Errors ===


class ErrorResponse(BaseModel):
    error: str
    message: str
    retryable: bool
    detail: str | None = None
