#!/usr/bin/env python3
"""
Restaurant Data Loader

Validates restaurants.json and loads it into MongoDB.
- Skips invalid entries (logs errors, continues processing)
- Skips owners that already have a restaurant
- Reports summary at end

Exit codes:
- 0: All valid entries loaded successfully
- 1: Some entries were invalid (but valid ones loaded)
- 2: Fatal error (file not found, DB connection failed)
"""
import asyncio
import json
import logging
import sys
import os
from pathlib import Path
from typing import List, Dict, Any, Tuple

from pydantic import ValidationError

from restaurant_service.database import Database
from restaurant_service.models import SeedRestaurant, new_restaurant_document

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%S",
)
logger = logging.getLogger(__name__)


def validate_restaurant(data: Any, index: int) -> Tuple[bool, SeedRestaurant | None, Dict]:
    """
    Validate a single restaurant entry.
    Returns: (is_valid, SeedRestaurant or None, error_details)
    """
    errors = {
        "index": index,
        "data": data,
        "validation_errors": []
    }

    if not isinstance(data, dict):
        errors["validation_errors"].append(f"Expected object, got {type(data).__name__}")
        return False, None, errors

    try:
        restaurant = SeedRestaurant(**data)
        return True, restaurant, {}
    except ValidationError as e:
        for err in e.errors():
            field = ".".join(str(loc) for loc in err["loc"])
            errors["validation_errors"].append(f"{field}: {err['msg']}")
        return False, None, errors


def load_json_file(filepath: str) -> Tuple[List[Any], str | None]:
    """Load JSON file. Returns (data, error_message)."""
    try:
        with open(filepath, "r", encoding="utf-8") as f:
            data = json.load(f)

        if not isinstance(data, list):
            return [], f"Expected JSON array, got {type(data).__name__}"

        return data, None
    except FileNotFoundError:
        return [], f"File not found: {filepath}"
    except json.JSONDecodeError as e:
        return [], f"Invalid JSON: {e}"


def log_validation_error(errors: Dict) -> None:
    """Log validation error with full details."""
    logger.error("=" * 50)
    logger.error(f"INVALID ENTRY at index {errors['index']}")
    logger.error(f"Data: {json.dumps(errors['data'], indent=2, default=str)}")
    for err in errors["validation_errors"]:
        logger.error(f"Validation: {err}")
    logger.error("=" * 50)


async def load_restaurants(filepath: str) -> Dict[str, int]:
    """Main loader function."""
    stats = {"inserted": 0, "skipped": 0, "invalid": 0, "total": 0}

    logger.info(f"Loading from: {filepath}")
    raw_data, error = load_json_file(filepath)

    if error:
        logger.error(error)
        raise RuntimeError(error)

    stats["total"] = len(raw_data)
    logger.info(f"Found {stats['total']} entries in file")

    logger.info("Connecting to MongoDB...")
    await Database.connect()

    try:
        for index, entry in enumerate(raw_data):
            is_valid, restaurant, errors = validate_restaurant(entry, index)

            if not is_valid:
                stats["invalid"] += 1
                log_validation_error(errors)
                continue

            if await Database.find_restaurant_by_owner(restaurant.ownerId):
                stats["skipped"] += 1
                logger.info(f"→ Skipped (owner has one): {restaurant.name} for {restaurant.ownerId}")
                continue

            document = new_restaurant_document(restaurant.model_dump(), restaurant.ownerId)
            inserted_id = await Database.insert_restaurant(document)

            if inserted_id is not None:
                stats["inserted"] += 1
                logger.info(f"✓ Inserted: {restaurant.name}")
            else:
                stats["skipped"] += 1
                logger.info(f"→ Skipped (owner has one): {restaurant.name} for {restaurant.ownerId}")
    finally:
        await Database.disconnect()

    return stats


def main():
    """Entry point."""
    if "MONGODB_URI" not in os.environ:
        logger.warning("MONGODB_URI not set. Using default (localhost).")
        logger.warning("For production, set MONGODB_URI to your MongoDB Atlas connection string.")

    filepath = os.getenv("RESTAURANTS_FILE")
    if not filepath:
        filepath = Path(__file__).parent.parent / "restaurants" / "restaurants.json"

    try:
        stats = asyncio.run(load_restaurants(str(filepath)))
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        sys.exit(2)

    print("\n" + "=" * 40)
    print("LOAD SUMMARY")
    print("=" * 40)
    print(f"  Total entries:  {stats['total']}")
    print(f"  Inserted:       {stats['inserted']}")
    print(f"  Skipped:        {stats['skipped']} (owner already has a restaurant)")
    print(f"  Invalid:        {stats['invalid']} (validation errors)")
    print("=" * 40)

    if stats["invalid"] > 0:
        print("\n⚠ Some entries were invalid. Check logs above.")
        sys.exit(1)
    else:
        print("\n✓ All entries processed successfully.")
        sys.exit(0)


if __name__ == "__main__":
    main()
