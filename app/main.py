from contextlib import asynccontextmanager, contextmanager
from typing import Any, Dict, Literal, Optional
import logging

from fastapi import Depends, FastAPI, HTTPException, Query, status
from fastapi.responses import JSONResponse

from .auth import AuthUser, require_user
from .settings import get_settings
from .schemas import (
    ChatMessage,
    ChatRequest,
    Collection,
    CollectionsResponse,
    CreateCollectionRequest,
    FeedResponse,
    PhotoResponse,
    PhotosResponse,
    PhotoUpdateRequest,
    PhotoUrlsRequest,
    ProfileRequest,
    ProfileResponse,
    SearchResponse,
    SwipeRequest,
    SwipeResponse,
    SwipesResponse,
    TryOnGenerateRequest,
    TryOnRequest,
    TryOnResponse,
)
from .connectors.postgres import PostgresClient
from .connectors.redis_client import close_redis_client, get_redis_client
from .connectors.tryon_client import TryOnClient, TryOnProviderError
from .services import chat
from .services.collections import CollectionService
from .services.errors import InvalidRequestError, NotFoundError
from .services.profile import ProfileGateway
from .services.swipes import SwipeGateway
from .services.tryon import TryOnService
from .sourcing.catalog_fallback import CatalogFallback
from .sourcing.feed import FeedAggregator
from .sourcing.product_source import ProductSource
from .utils import failure

logger = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    if settings.auto_create_schema:
        try:
            PostgresClient.from_settings(settings).ensure_schema()
        except Exception as e:
            logger.error(f"Failed to ensure database schema: {e}")
    logger.info(f"Starting swipe API (environment={settings.environment})")
    yield
    close_redis_client()


app = FastAPI(title="Vesaki Swipe API", version="0.1.0", lifespan=lifespan)


# Dependencies
def get_store() -> PostgresClient:
    return PostgresClient.from_settings(settings)


def get_product_source(store: PostgresClient = Depends(get_store)) -> ProductSource:
    return ProductSource(CatalogFallback(store), settings)


def get_try_on_service(store: PostgresClient = Depends(get_store)) -> TryOnService:
    return TryOnService(
        store,
        TryOnClient.from_settings(settings),
        redis_client=get_redis_client(settings),
        cache_ttl_seconds=settings.tryon_cache_ttl_seconds,
    )


@contextmanager
def service_errors(action: str):
    """Map service exceptions to HTTP responses."""
    try:
        yield
    except HTTPException:
        raise
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except InvalidRequestError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        logger.error(f"Error trying to {action}: {e}")
        raise failure(f"Failed to {action}", e)


@app.get("/healthz")
def healthz() -> Dict[str, str]:
    return {"status": "ok"}


# Products
@app.get("/api/search/products", response_model=SearchResponse, response_model_exclude_none=True)
async def search_products(
    q: str = Query(""),
    count: Optional[int] = Query(None, ge=1, le=50),
    source: ProductSource = Depends(get_product_source),
) -> SearchResponse:
    count = count or settings.search_default_count
    logger.info(f"Search q={q!r} count={count}")

    with service_errors("fetch products"):
        result = await source.search(q, count)

    return SearchResponse(
        products=result.products,
        count=len(result.products),
        source=result.source,
        fallback=True if result.fallback else None,
    )


@app.get("/api/products", response_model=FeedResponse, response_model_exclude_none=True)
def list_catalog_products(
    filter: Optional[Literal["trending", "new", "editorial", "random"]] = Query(None),
    count: int = Query(15, ge=1, le=50),
    store: PostgresClient = Depends(get_store),
) -> FeedResponse:
    with service_errors("fetch products"):
        products = CatalogFallback(store).browse(filter, count)
    return FeedResponse(products=products, count=len(products), filter=filter or "random")


@app.get("/api/feed", response_model=FeedResponse, response_model_exclude_none=True)
async def get_feed(
    filter: Literal["all", "trending", "new", "editorial"] = Query("all"),
    source: ProductSource = Depends(get_product_source),
) -> FeedResponse:
    with service_errors("load feed"):
        products = await FeedAggregator(source, settings).load(filter)
    return FeedResponse(products=products, count=len(products), filter=filter)


# Swipes
@app.post("/api/swipes", response_model=SwipeResponse)
def record_swipe(
    request: SwipeRequest,
    user: AuthUser = Depends(require_user),
    store: PostgresClient = Depends(get_store),
) -> SwipeResponse:
    with service_errors("record swipe"):
        SwipeGateway(store).record(user.id, request)
    return SwipeResponse(success=True, message="Swipe recorded successfully")


@app.get("/api/swipes", response_model=SwipesResponse)
def get_swipes(
    user: AuthUser = Depends(require_user),
    store: PostgresClient = Depends(get_store),
) -> SwipesResponse:
    with service_errors("fetch swipes"):
        swipes = SwipeGateway(store).history(user.id)
    return SwipesResponse(swipes=swipes, message="Swipe history retrieved")


# Profile and photos
@app.post("/api/user/profile", response_model=ProfileResponse)
def save_profile(
    request: ProfileRequest,
    user: AuthUser = Depends(require_user),
    store: PostgresClient = Depends(get_store),
) -> ProfileResponse:
    with service_errors("save profile"):
        profile = ProfileGateway(store, settings.max_photos).upsert(user, request)
    return ProfileResponse(success=True, user=profile, message="Profile saved successfully")


@app.get("/api/user/profile", response_model=ProfileResponse)
def get_profile(
    user: AuthUser = Depends(require_user),
    store: PostgresClient = Depends(get_store),
) -> ProfileResponse:
    with service_errors("fetch profile"):
        profile = ProfileGateway(store, settings.max_photos).get(user.id)
    return ProfileResponse(user=profile)


@app.get("/api/user/photo/primary", response_model=PhotoResponse)
def get_primary_photo(
    user: AuthUser = Depends(require_user),
    store: PostgresClient = Depends(get_store),
) -> PhotoResponse:
    with service_errors("fetch primary photo"):
        photo = ProfileGateway(store, settings.max_photos).primary_photo(user.id)
    if not photo:
        return PhotoResponse(success=False, message="No primary photo")
    return PhotoResponse(success=True, photo=photo)


@app.post("/api/user/photos", response_model=PhotosResponse)
def add_photos(
    request: PhotoUrlsRequest,
    user: AuthUser = Depends(require_user),
    store: PostgresClient = Depends(get_store),
) -> PhotosResponse:
    with service_errors("add photos"):
        photos, rejected = ProfileGateway(store, settings.max_photos).add_photos(user.id, request.photo_urls)
    return PhotosResponse(success=True, photos=photos, accepted=len(photos), rejected=rejected)


@app.put("/api/user/photos/{photo_id}", response_model=PhotoResponse)
def replace_photo(
    photo_id: str,
    request: PhotoUpdateRequest,
    user: AuthUser = Depends(require_user),
    store: PostgresClient = Depends(get_store),
) -> PhotoResponse:
    with service_errors("replace photo"):
        photo = ProfileGateway(store, settings.max_photos).replace_photo(user.id, photo_id, request.url)
    return PhotoResponse(success=True, photo=photo)


@app.put("/api/user/photos/{photo_id}/primary", response_model=PhotoResponse)
def set_primary_photo(
    photo_id: str,
    user: AuthUser = Depends(require_user),
    store: PostgresClient = Depends(get_store),
) -> PhotoResponse:
    with service_errors("set primary photo"):
        photo = ProfileGateway(store, settings.max_photos).set_primary(user.id, photo_id)
    return PhotoResponse(success=True, photo=photo, message="Primary photo updated")


@app.delete("/api/user/photos/{photo_id}")
def delete_photo(
    photo_id: str,
    user: AuthUser = Depends(require_user),
    store: PostgresClient = Depends(get_store),
) -> Dict[str, Any]:
    with service_errors("remove photo"):
        affected = ProfileGateway(store, settings.max_photos).delete_photo(user.id, photo_id)
    return {"success": True, "rowsAffected": affected}


# Collections
@app.get("/api/collections", response_model=CollectionsResponse)
def get_collections(
    user: AuthUser = Depends(require_user),
    store: PostgresClient = Depends(get_store),
) -> CollectionsResponse:
    with service_errors("fetch collections"):
        collections = CollectionService(store).list_for_user(user.id)
    return CollectionsResponse(collections=collections)


@app.post("/api/collections", response_model=Collection, status_code=status.HTTP_201_CREATED)
def create_collection(
    request: CreateCollectionRequest,
    user: AuthUser = Depends(require_user),
    store: PostgresClient = Depends(get_store),
) -> Collection:
    with service_errors("create collection"):
        return CollectionService(store).create(user.id, request.name)


@app.delete("/api/collections/{collection_id}/items/{item_id}")
def remove_collection_item(
    collection_id: str,
    item_id: str,
    user: AuthUser = Depends(require_user),
    store: PostgresClient = Depends(get_store),
) -> Dict[str, Any]:
    with service_errors("remove item"):
        CollectionService(store).remove_item(user.id, collection_id, item_id)
    return {"success": True}


# Try-on
def _try_on_failed(e: Exception) -> JSONResponse:
    logger.warning(f"Try-on generation failed: {e}")
    body = TryOnResponse(success=False, error=str(e)).model_dump(by_alias=True)
    return JSONResponse(status_code=status.HTTP_502_BAD_GATEWAY, content=body)


@app.post("/api/tryon", response_model=TryOnResponse)
async def try_on_external(
    request: TryOnRequest,
    user: AuthUser = Depends(require_user),
    service: TryOnService = Depends(get_try_on_service),
):
    try:
        image_url = await service.generate_direct(request)
    except TryOnProviderError as e:
        return _try_on_failed(e)
    return TryOnResponse(success=True, image_url=image_url)


@app.post("/api/tryon/generate", response_model=TryOnResponse)
async def try_on_catalog_product(
    request: TryOnGenerateRequest,
    user: AuthUser = Depends(require_user),
    service: TryOnService = Depends(get_try_on_service),
):
    with service_errors("generate try-on"):
        try:
            image_url, cached = await service.generate_for_product(user.id, request.product_id)
        except TryOnProviderError as e:
            return _try_on_failed(e)
    return TryOnResponse(success=True, image_url=image_url, cached=cached)


# Stylist chat
@app.get("/api/chat/greeting", response_model=ChatMessage)
def chat_greeting() -> ChatMessage:
    return chat.greeting()


@app.post("/api/chat", response_model=ChatMessage)
def chat_reply(request: ChatRequest) -> ChatMessage:
    return chat.reply_to(request.message)
