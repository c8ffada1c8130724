"""
User endpoints.

- POST   /users                          create (uid unique)
- GET    /users                          list, optionally paged
- GET    /users/uid/{uid}                get one
- PATCH  /users/uid/{uid}                partial update (uid immutable)
- PATCH  /users/uid/{uid}/verify-email   set isEmailVerified
- DELETE /users/uid/{uid}                delete
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Query
from pydantic import ValidationError

from restaurant_service.config import config
from restaurant_service.database import Database
from restaurant_service.errors import (
    APIError,
    BadRequestError,
    ConflictError,
    NotFoundError,
    ServerError,
)
from restaurant_service.logs import safe_log
from restaurant_service.models import (
    USER_PROTECTED_FIELDS,
    EmailVerification,
    UserCreate,
    missing_user_fields,
    serialize_document,
)
from restaurant_service.queries import build_pagination, normalize_paging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"])

USERS_DEFAULT_LIMIT = 100


def _unexpected(action: str, e: Exception) -> ServerError:
    safe_log(f"Failed to {action}: {e}", level="error", logger=logger)
    return ServerError(f"Failed to {action}", details=str(e))


def _invalid_role() -> BadRequestError:
    allowed = " or ".join(f"'{r}'" for r in config.USER_ROLES)
    return BadRequestError("Invalid role", details=f"Role must be either {allowed}")


def _validation_details(e: ValidationError) -> list:
    return [f"{'.'.join(str(loc) for loc in err['loc'])}: {err['msg']}" for err in e.errors()]


@router.post("", status_code=201)
async def create_user(body: Dict[str, Any] = Body(...)) -> dict:
    if missing_user_fields(body):
        raise BadRequestError("Missing required fields",
                              details="uid, email, name, and role are required")
    if body["role"] not in config.USER_ROLES:
        raise _invalid_role()
    try:
        payload = UserCreate(**body)
    except ValidationError as e:
        raise BadRequestError("Invalid user data", details=_validation_details(e))

    try:
        if await Database.find_user(payload.uid):
            raise ConflictError("User already exists",
                                details="A user with this UID already exists")

        now = datetime.now(timezone.utc)
        user = payload.model_dump()
        user["createdAt"] = now
        user["updatedAt"] = now

        user_id = await Database.insert_user(user)
    except APIError:
        raise
    except Exception as e:
        raise _unexpected("create user", e)

    if user_id is None:
        raise ConflictError("User already exists",
                            details="A user with this UID already exists")

    user["_id"] = user_id
    safe_log("User created", logger=logger, uid=payload.uid, role=payload.role)
    return {
        "message": "User created successfully",
        "userId": str(user_id),
        "user": serialize_document(user),
    }


@router.get("/uid/{uid}")
async def get_user(uid: str) -> dict:
    try:
        user = await Database.find_user(uid)
    except Exception as e:
        raise _unexpected("fetch user", e)
    if not user:
        raise NotFoundError("User not found")
    return {"user": serialize_document(user)}


@router.get("")
async def list_users(
    page: Optional[int] = Query(None, description="Page number; enables paging"),
    limit: Optional[int] = Query(None, description="Results per page (max 100); enables paging"),
) -> dict:
    """Whole collection unless page or limit is given."""
    try:
        if page is None and limit is None:
            users = await Database.find_users()
            return {"users": serialize_document(users)}

        paging = normalize_paging(page, limit, USERS_DEFAULT_LIMIT)
        total = await Database.count_users()
        users = await Database.find_users(skip=paging.skip, limit=paging.limit)
    except Exception as e:
        raise _unexpected("fetch users", e)

    return {
        "users": serialize_document(users),
        "pagination": build_pagination(paging, total),
    }


@router.patch("/uid/{uid}")
async def update_user(uid: str, body: Dict[str, Any] = Body(...)) -> dict:
    updates = {k: v for k, v in body.items() if k not in USER_PROTECTED_FIELDS}
    if "role" in updates and updates["role"] not in config.USER_ROLES:
        raise _invalid_role()
    updates["updatedAt"] = datetime.now(timezone.utc)

    try:
        matched, modified = await Database.update_user(uid, updates)
    except Exception as e:
        raise _unexpected("update user", e)

    if matched == 0:
        raise NotFoundError("User not found")
    return {"message": "User updated successfully", "modifiedCount": modified}


@router.patch("/uid/{uid}/verify-email")
async def update_email_verification(uid: str, body: Dict[str, Any] = Body(...)) -> dict:
    try:
        payload = EmailVerification(**body)
    except ValidationError as e:
        raise BadRequestError("isEmailVerified must be a boolean", details=_validation_details(e))

    try:
        matched, _ = await Database.update_user(uid, {
            "isEmailVerified": payload.isEmailVerified,
            "updatedAt": datetime.now(timezone.utc),
        })
    except Exception as e:
        raise _unexpected("update email verification status", e)

    if matched == 0:
        raise NotFoundError("User not found")
    return {
        "message": "Email verification status updated successfully",
        "isEmailVerified": payload.isEmailVerified,
    }


@router.delete("/uid/{uid}")
async def delete_user(uid: str) -> dict:
    try:
        deleted = await Database.delete_user(uid)
    except Exception as e:
        raise _unexpected("delete user", e)

    if deleted == 0:
        raise NotFoundError("User not found")
    return {"message": "User deleted successfully", "deletedCount": deleted}
