import math
from typing import Annotated, Any, Optional

from bson import ObjectId
from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, PlainSerializer, WithJsonSchema
from pydantic.alias_generators import to_camel

from product_service.models import Variant


def parse_object_id(value: Any) -> ObjectId:
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    raise ValueError("must be a valid ObjectId")


def to_object_id(value: Any) -> Optional[ObjectId]:
    """Lenient variant used by repositories: returns None instead of raising."""
    try:
        return parse_object_id(value)
    except ValueError:
        return None


PyObjectId = Annotated[
    ObjectId,
    BeforeValidator(parse_object_id),
    PlainSerializer(str, return_type=str, when_used="json"),
    WithJsonSchema({"type": "string", "pattern": "^[0-9a-f]{24}$"}),
]


def _upper(value: Any) -> Any:
    return value.upper() if isinstance(value, str) else value


CurrencyCode = Annotated[str, BeforeValidator(_upper), Field(pattern=r"^[A-Z]{3}$")]


class CamelModel(BaseModel):
    """Base for request bodies: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        arbitrary_types_allowed=True,
    )

    def to_document(self, partial: bool = False, nullable: tuple = ()) -> dict:
        """Dump for storage; ``partial`` keeps only fields the client sent, minus nulls not in ``nullable``."""
        document = self.model_dump(by_alias=True, exclude_unset=partial)
        if partial:
            document = {key: value for key, value in document.items() if value is not None or key in nullable}
        return document


class Image(CamelModel):
    file_id: Optional[str] = None
    url: str = Field(min_length=1)
    alt_text: Optional[str] = Field(default=None, max_length=150)


class Price(CamelModel):
    amount: float = Field(gt=0)
    currency: CurrencyCode = Variant.DEFAULT_CURRENCY


class PageMeta(BaseModel):
    total: int
    page: int
    limit: int
    totalPages: int
    hasNextPage: bool
    hasPrevPage: bool


def build_page_meta(total: int, page: int, limit: int) -> dict:
    total_pages = math.ceil(total / limit) if limit else 0
    return PageMeta(
        total=total,
        page=page,
        limit=limit,
        totalPages=total_pages,
        hasNextPage=page < total_pages,
        hasPrevPage=page > 1,
    ).model_dump()
