"""
Pydantic models for request validation, plus document serialization.

Restaurant bodies are free-form documents; only ownerId is checked.
User bodies are validated strictly on required fields and role.
"""
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field, field_validator

from restaurant_service.config import config


# Required user fields - all must be present and non-empty
USER_REQUIRED_FIELDS = ("uid", "email", "name", "role")

# Fields a client may never set through a restaurant update
RESTAURANT_PROTECTED_FIELDS = frozenset({"_id", "ownerId", "createdAt", "pictureId"})

# Fields a client may never set through a user update
USER_PROTECTED_FIELDS = frozenset({"_id", "uid", "createdAt"})


def validate_role(role: str) -> str:
    if role not in config.USER_ROLES:
        allowed = " or ".join(f"'{r}'" for r in config.USER_ROLES)
        raise ValueError(f"Role must be either {allowed}")
    return role


class UserCreate(BaseModel):
    """
    User creation body.
    Extra fields are ignored, matching what gets stored.
    """
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    uid: str = Field(..., min_length=1, description="Identity provider user ID")
    email: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    role: str = Field(..., description="One of the configured user roles")
    isEmailVerified: bool = False

    @field_validator("role")
    @classmethod
    def check_role(cls, v: str) -> str:
        return validate_role(v)


class EmailVerification(BaseModel):
    """Body of the verify-email endpoint."""
    model_config = ConfigDict(extra="ignore")

    isEmailVerified: bool = Field(..., strict=True)


class SeedRestaurant(BaseModel):
    """Restaurant entry accepted by the seed loader. Extra attributes are kept."""
    model_config = ConfigDict(extra="allow", str_strip_whitespace=True)

    ownerId: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    cuisine: str = Field(..., min_length=1)
    address: str = Field(..., min_length=1)


def missing_user_fields(data: Dict[str, Any]) -> list:
    return [f for f in USER_REQUIRED_FIELDS if not data.get(f)]


def parse_object_id(value: str) -> Optional[ObjectId]:
    """Return an ObjectId for a well-formed id string, else None."""
    if not ObjectId.is_valid(value):
        return None
    return ObjectId(value)


def serialize_document(value: Any) -> Any:
    """Make a Mongo document JSON-safe: ObjectId -> str, datetime -> ISO string."""
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: serialize_document(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [serialize_document(v) for v in value]
    return value


def new_restaurant_document(body: Dict[str, Any], owner_id: str) -> Dict[str, Any]:
    """
    Build the stored form of a new restaurant.
    Server-managed fields in the body are discarded and stamped fresh.
    """
    restaurant = {k: v for k, v in body.items()
                  if k not in ("_id", "pictureId", "searchScore", "createdAt")}
    restaurant["ownerId"] = owner_id
    restaurant["searchScore"] = config.DEFAULT_SEARCH_SCORE
    restaurant["createdAt"] = datetime.now(timezone.utc)
    return restaurant
