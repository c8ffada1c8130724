"""
Restaurant endpoints.

- GET    /restaurants                      paged list
- GET    /restaurants/search               filtered, sorted, paged search
- GET    /restaurants/owner/{owner_id}     lookup by owner
- GET    /restaurants/{id}                 single restaurant
- POST   /restaurants                      create (one per owner)
- PATCH  /restaurants/{id}                 partial update, owner-checked
- DELETE /restaurants/{id}?ownerId=        delete, owner-checked
- POST   /restaurants/{id}/picture         upload/replace picture
- GET    /restaurants/{id}/picture         stream picture
"""
import logging
from typing import Any, Dict, Optional

from bson import ObjectId
from fastapi import APIRouter, Body, File, Query, UploadFile
from fastapi.responses import StreamingResponse

from restaurant_service import pictures
from restaurant_service.database import Database
from restaurant_service.errors import (
    APIError,
    BadRequestError,
    ForbiddenError,
    NotFoundError,
    ServerError,
)
from restaurant_service.logs import safe_log
from restaurant_service.models import (
    RESTAURANT_PROTECTED_FIELDS,
    new_restaurant_document,
    parse_object_id,
    serialize_document,
)
from restaurant_service.queries import (
    LIST_DEFAULT_LIMIT,
    SearchQueryError,
    build_pagination,
    build_search,
    list_sort,
    normalize_paging,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/restaurants", tags=["restaurants"])


def _require_id(restaurant_id: str) -> ObjectId:
    oid = parse_object_id(restaurant_id)
    if oid is None:
        raise BadRequestError("Invalid restaurant ID format")
    return oid


def _require_owner(owner_id: Any) -> str:
    if not owner_id or not isinstance(owner_id, str):
        raise BadRequestError("ownerId is required")
    return owner_id


async def _load_owned(oid: ObjectId, owner_id: str) -> Dict[str, Any]:
    """Existence is checked before ownership, so a stranger still gets 404 for a missing id."""
    restaurant = await Database.find_restaurant(oid)
    if not restaurant:
        raise NotFoundError("Restaurant not found")
    if restaurant.get("ownerId") != owner_id:
        safe_log("Ownership check failed", level="warning", logger=logger,
                 restaurant_id=oid, owner_id=owner_id)
        raise ForbiddenError("You do not have permission to modify this restaurant")
    return restaurant


def _unexpected(action: str, e: Exception) -> ServerError:
    safe_log(f"Failed to {action}: {e}", level="error", logger=logger)
    return ServerError(f"Failed to {action}", details=str(e))


# =============================================================================
# LIST / SEARCH / LOOKUP
# =============================================================================

@router.get("")
async def list_restaurants(
    page: int = Query(1, description="Page number, starting at 1"),
    limit: int = Query(LIST_DEFAULT_LIMIT, description="Results per page (max 100)"),
) -> dict:
    paging = normalize_paging(page, limit, LIST_DEFAULT_LIMIT)
    try:
        total = await Database.count_restaurants({})
        restaurants = await Database.find_restaurants(
            {}, sort=list_sort(), skip=paging.skip, limit=paging.limit
        )
    except Exception as e:
        raise _unexpected("fetch restaurants", e)

    return {
        "restaurants": serialize_document(restaurants),
        "pagination": build_pagination(paging, total),
    }


@router.get("/search")
async def search_restaurants(
    field: Optional[str] = Query(None, description="One of: name, cuisine, address"),
    query: Optional[str] = Query(None, description="Case-insensitive substring"),
    page: int = Query(1),
    limit: int = Query(10),
    sortBy: str = Query("name"),
    sortOrder: str = Query("asc"),
) -> dict:
    try:
        search = build_search(field, query, page, limit, sortBy, sortOrder)
    except SearchQueryError as e:
        raise BadRequestError(str(e))

    try:
        total = await Database.count_restaurants(search.filter)
        restaurants = await Database.find_restaurants(
            search.filter,
            sort=search.sort,
            skip=search.paging.skip,
            limit=search.paging.limit,
        )
    except Exception as e:
        raise _unexpected("search restaurants", e)

    return {
        "restaurants": serialize_document(restaurants),
        "pagination": build_pagination(search.paging, total),
    }


@router.get("/owner/{owner_id}")
async def get_restaurant_by_owner(owner_id: str) -> dict:
    try:
        restaurant = await Database.find_restaurant_by_owner(owner_id)
    except Exception as e:
        raise _unexpected("fetch restaurant", e)
    if not restaurant:
        raise NotFoundError("No restaurant found for this owner")
    return {"restaurant": serialize_document(restaurant)}


@router.get("/{restaurant_id}")
async def get_restaurant(restaurant_id: str) -> dict:
    oid = _require_id(restaurant_id)
    try:
        restaurant = await Database.find_restaurant(oid)
    except Exception as e:
        raise _unexpected("fetch restaurant", e)
    if not restaurant:
        raise NotFoundError("Restaurant not found")
    return {"restaurant": serialize_document(restaurant)}


# =============================================================================
# CREATE / UPDATE / DELETE
# =============================================================================

@router.post("", status_code=201)
async def create_restaurant(body: Dict[str, Any] = Body(...)) -> dict:
    owner_id = _require_owner(body.get("ownerId"))

    try:
        if await Database.find_restaurant_by_owner(owner_id):
            raise BadRequestError("Owner already has a restaurant",
                                  details="An owner may have at most one restaurant")

        restaurant_id = await Database.insert_restaurant(new_restaurant_document(body, owner_id))
    except APIError:
        raise
    except Exception as e:
        raise _unexpected("create restaurant", e)

    if restaurant_id is None:
        # Lost the race against a concurrent create for the same owner
        raise BadRequestError("Owner already has a restaurant",
                              details="An owner may have at most one restaurant")

    safe_log("Restaurant created", logger=logger, restaurant_id=restaurant_id, owner_id=owner_id)
    return {"message": "Restaurant created successfully", "restaurantId": str(restaurant_id)}


@router.patch("/{restaurant_id}")
async def update_restaurant(restaurant_id: str, body: Dict[str, Any] = Body(...)) -> dict:
    oid = _require_id(restaurant_id)
    owner_id = _require_owner(body.get("ownerId"))

    try:
        await _load_owned(oid, owner_id)
        updates = {k: v for k, v in body.items() if k not in RESTAURANT_PROTECTED_FIELDS}
        if not updates:
            return {"message": "Restaurant updated successfully", "modifiedCount": 0}
        matched, modified = await Database.update_restaurant(oid, updates)
    except APIError:
        raise
    except Exception as e:
        raise _unexpected("update restaurant", e)

    if matched == 0:
        raise NotFoundError("Restaurant not found")
    return {"message": "Restaurant updated successfully", "modifiedCount": modified}


@router.delete("/{restaurant_id}")
async def delete_restaurant(
    restaurant_id: str,
    ownerId: Optional[str] = Query(None, description="Caller's owner identity"),
) -> dict:
    oid = _require_id(restaurant_id)
    owner_id = _require_owner(ownerId)

    try:
        restaurant = await _load_owned(oid, owner_id)
        deleted = await Database.delete_restaurant(oid)
    except APIError:
        raise
    except Exception as e:
        raise _unexpected("delete restaurant", e)

    if deleted == 0:
        raise NotFoundError("Restaurant not found")

    if restaurant.get("pictureId"):
        await pictures.discard_picture(restaurant["pictureId"], reason="restaurant deleted")

    return {"message": "Restaurant deleted successfully", "deletedCount": deleted}


# =============================================================================
# PICTURES
# =============================================================================

@router.post("/{restaurant_id}/picture")
async def upload_picture(
    restaurant_id: str,
    picture: Optional[UploadFile] = File(None),
) -> dict:
    oid = _require_id(restaurant_id)
    upload = await pictures.read_upload(picture)

    try:
        restaurant = await Database.find_restaurant(oid)
    except Exception as e:
        raise _unexpected("upload picture", e)
    if not restaurant:
        raise NotFoundError("Restaurant not found")

    file_id = await pictures.replace_picture(restaurant, upload)
    return {
        "message": "Picture uploaded successfully",
        "fileId": str(file_id),
        "filename": upload.filename,
    }


@router.get("/{restaurant_id}/picture")
async def download_picture(restaurant_id: str):
    oid = _require_id(restaurant_id)

    try:
        restaurant = await Database.find_restaurant(oid)
    except Exception as e:
        raise _unexpected("retrieve picture", e)
    if not restaurant:
        raise NotFoundError("Restaurant not found")

    download = await pictures.open_restaurant_picture(restaurant)
    return StreamingResponse(
        pictures.guarded_chunks(download.chunks, restaurant["pictureId"]),
        media_type=download.content_type,
    )
