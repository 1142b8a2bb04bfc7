from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel
from typing import Any, Dict, List, Literal, Optional
from datetime import datetime


class ApiModel(BaseModel):
    # Wire format is camelCase; Python code uses snake_case
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Product(ApiModel):
    id: str
    external_id: Optional[str] = None
    name: str = "Product"
    brand: str = "Unknown"
    price: float = 0.0
    currency: str = "USD"
    retailer: str = "Unknown"
    category: str = "search"
    subcategory: Optional[str] = None
    image_url: str = ""  # "" means no image could be resolved
    product_url: str = "#"
    description: Optional[str] = None
    available_sizes: Optional[List[str]] = None
    colors: Optional[List[str]] = None
    in_stock: bool = True
    trending: bool = False
    is_new: bool = False
    is_editorial: bool = False
    is_external: bool = False

    @field_validator("image_url", mode="before")
    @classmethod
    def _image_never_null(cls, v):
        return v or ""


class SearchResponse(ApiModel):
    products: List[Product]
    count: int
    source: Literal["serpapi", "internal"]
    fallback: Optional[bool] = None


class FeedResponse(ApiModel):
    products: List[Product]
    count: int
    filter: str


# Swipes
Direction = Literal["left", "right", "up"]


class SwipeRequest(ApiModel):
    product_id: str
    direction: Direction
    session_id: Optional[str] = None
    card_position: int = 0
    product: Optional[Product] = None
    try_on_image_url: Optional[str] = None


class SwipeResponse(ApiModel):
    success: bool
    message: Optional[str] = None


class SwipeRecord(ApiModel):
    id: str
    user_id: str
    product_id: str
    direction: Direction
    session_id: str
    card_position: int
    swiped_at: Optional[datetime] = None
    product: Optional[Product] = None


class SwipesResponse(ApiModel):
    swipes: List[SwipeRecord]
    message: Optional[str] = None


# Profile
class Preferences(ApiModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    sizes: Dict[str, Optional[str]] = Field(default_factory=dict)
    budget_range: Optional[List[float]] = None

    @field_validator("budget_range")
    @classmethod
    def _check_budget(cls, v):
        if v is None:
            return v
        if len(v) != 2:
            raise ValueError("budgetRange must be [min, max]")
        if v[0] > v[1]:
            raise ValueError("budgetRange min must not exceed max")
        return v


class ProfileRequest(ApiModel):
    name: Optional[str] = None
    preferences: Optional[Preferences] = None
    photo_urls: Optional[List[str]] = None
    primary_photo_index: Optional[int] = None


class Photo(ApiModel):
    id: str
    url: str
    is_primary: bool = False
    uploaded_at: Optional[datetime] = None


class Profile(ApiModel):
    id: str
    auth_id: str
    email: str = ""
    name: str = "User"
    preferences: Optional[Preferences] = None
    primary_photo_id: Optional[str] = None
    created_at: Optional[datetime] = None
    photos: List[Photo] = []


class ProfileResponse(ApiModel):
    success: bool = True
    user: Profile
    message: Optional[str] = None


class PhotoUrlsRequest(ApiModel):
    photo_urls: List[str]


class PhotoUpdateRequest(ApiModel):
    url: str


class PhotoResponse(ApiModel):
    success: bool
    photo: Optional[Photo] = None
    message: Optional[str] = None


class PhotosResponse(ApiModel):
    success: bool
    photos: List[Photo]
    accepted: int = 0
    rejected: int = 0


# Collections
class CollectionItem(ApiModel):
    id: str
    collection_id: str
    product_id: str
    try_on_image_url: Optional[str] = None
    added_at: Optional[datetime] = None
    product: Optional[Product] = None


class Collection(ApiModel):
    id: str
    name: str
    is_default: bool = False
    created_at: Optional[datetime] = None
    items: List[CollectionItem] = []


class CollectionsResponse(ApiModel):
    collections: List[Collection]


class CreateCollectionRequest(ApiModel):
    name: str = Field(min_length=1, max_length=100)

    @field_validator("name")
    @classmethod
    def _strip(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name must not be blank")
        return v


# Try-on
class TryOnRequest(ApiModel):
    user_photo_url: str
    product_image_url: str
    product_name: Optional[str] = None
    product_description: Optional[str] = None


class TryOnGenerateRequest(ApiModel):
    product_id: str


class TryOnResponse(ApiModel):
    success: bool
    image_url: Optional[str] = None
    cached: bool = False
    error: Optional[str] = None


# Chat
class ChatRequest(ApiModel):
    message: str

    @field_validator("message")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("message must not be blank")
        return v


class ChatMessage(ApiModel):
    id: str
    role: Literal["user", "assistant"]
    content: str
    timestamp: datetime


# Raw SerpAPI shopping record, validated leniently at the adapter boundary
class ShoppingOffer(BaseModel):
    model_config = ConfigDict(extra="ignore")

    link: Optional[str] = None
    product_link: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _coerce(cls, data: Any):
        return _coerce_scalars(data)


class ShoppingResult(BaseModel):
    model_config = ConfigDict(extra="ignore")

    position: Optional[str] = None
    title: Optional[str] = None
    source: Optional[str] = None
    store: Optional[str] = None
    price: Optional[str] = None
    extracted_price: Optional[float] = None
    thumbnail: Optional[str] = None
    image: Optional[str] = None
    product_id: Optional[str] = None
    link: Optional[str] = None
    product_link: Optional[str] = None
    product_page_url: Optional[str] = None
    offer: Optional[ShoppingOffer] = None

    @model_validator(mode="before")
    @classmethod
    def _coerce(cls, data: Any):
        if not isinstance(data, dict):
            return {}
        data = _coerce_scalars(data)
        if not isinstance(data.get("offer"), dict):
            data["offer"] = None
        try:
            ep = data.get("extracted_price")
            data["extracted_price"] = float(ep) if ep not in (None, "") else None
        except (TypeError, ValueError):
            data["extracted_price"] = None
        return data


_SHOPPING_STR_FIELDS = {
    "position", "title", "source", "store", "price", "thumbnail", "image",
    "product_id", "link", "product_link", "product_page_url",
}


def _coerce_scalars(data: Any) -> Dict[str, Any]:
    if not isinstance(data, dict):
        return {}
    out = dict(data)
    for key in _SHOPPING_STR_FIELDS:
        if key not in out:
            continue
        v = out[key]
        if isinstance(v, bool) or v is None:
            out[key] = None
        elif isinstance(v, (int, float)):
            out[key] = str(v)
        elif isinstance(v, str):
            out[key] = v or None
        else:
            out[key] = None
    return out
