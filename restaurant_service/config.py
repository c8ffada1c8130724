"""
Configuration management via environment variables.
Supports MongoDB Atlas (cloud) connection.
"""
import os
from typing import Tuple


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def _env_list(name: str, default: str) -> Tuple[str, ...]:
    raw = os.getenv(name, default)
    return tuple(item.strip() for item in raw.split(",") if item.strip())


class Config:
    """Application configuration from environment variables."""

    # Database - MongoDB Atlas (cloud) connection string
    # Format: mongodb+srv://<user>:<password>@<cluster>.mongodb.net/<db>
    MONGODB_URI: str = os.getenv(
        "MONGODB_URI",
        "mongodb://localhost:27017"  # Fallback for local testing only
    )
    DATABASE_NAME: str = os.getenv("DATABASE_NAME", "data")
    RESTAURANTS_COLLECTION: str = os.getenv("RESTAURANTS_COLLECTION", "restaurants")
    USERS_COLLECTION: str = os.getenv("USERS_COLLECTION", "users")
    PICTURES_BUCKET: str = os.getenv("PICTURES_BUCKET", "pictures")

    # Server
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", "8080"))

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_FORMAT: str = os.getenv("LOG_FORMAT", "json")  # "json" or "text"

    # Pictures
    MAX_PICTURE_BYTES: int = int(os.getenv("MAX_PICTURE_BYTES", str(5 * 1024 * 1024)))
    DEFAULT_PICTURE_TYPE: str = "image/jpeg"

    # Users
    USER_ROLES: Tuple[str, ...] = _env_list("USER_ROLES", "user,restaurantOwner")

    # Ranking
    DEFAULT_SEARCH_SCORE: int = int(os.getenv("DEFAULT_SEARCH_SCORE", "10"))
    LIST_SORT_BY_SCORE: bool = _env_bool("LIST_SORT_BY_SCORE", "true")
    SEARCH_SCORE_PRIMARY: bool = _env_bool("SEARCH_SCORE_PRIMARY", "true")


config = Config()
