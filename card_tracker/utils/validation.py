"""
Input validation for the card tracker.

Validators normalize good input and raise a ``CardTrackerError`` subclass
with a message a user can act on. Nothing here touches storage, so a failed
validation never leaves partial state behind.
"""

import json
from typing import Any, Dict, List, Optional, Tuple, Union
from pathlib import Path

from ..core.constants import CARD_CONDITIONS, EXPORT_FORMATS, SORT_KEYS
from .error_handler import ImportDataError, InvalidInputError


def validate_file_path(file_path: Union[str, Path], must_exist: bool = False) -> Path:
    """
    Validate and normalize a file path.

    Args:
        file_path: File path to validate
        must_exist: Whether the file must already exist

    Returns:
        Normalized Path object

    Raises:
        InvalidInputError: If the path is empty or missing when required
    """
    if not file_path or not str(file_path).strip():
        raise InvalidInputError("A file path is required", details={"file_path": file_path})

    path = Path(file_path).expanduser()
    if must_exist and not path.is_file():
        raise InvalidInputError(
            f"File does not exist: {path}",
            details={"file_path": str(path), "must_exist": must_exist}
        )
    return path.resolve()


def validate_quantity(value: Any) -> int:
    """
    Validate an owned-card quantity.

    Args:
        value: Integer or numeric string

    Returns:
        The quantity as an int, at least 1

    Raises:
        InvalidInputError: If the value is not a whole number >= 1
    """
    if isinstance(value, bool):
        raise InvalidInputError("Quantity must be a whole number", details={"quantity": value})
    try:
        quantity = int(str(value).strip())
    except (TypeError, ValueError):
        raise InvalidInputError("Quantity must be a whole number", details={"quantity": value})
    if quantity < 1:
        raise InvalidInputError("Quantity must be at least 1", details={"quantity": quantity})
    return quantity


def validate_condition(value: Optional[str]) -> str:
    """Match a condition case-insensitively against the allowed list."""
    if value is None or not str(value).strip():
        raise InvalidInputError("Condition is required", details={"allowed_values": CARD_CONDITIONS})
    wanted = str(value).strip().lower()
    for condition in CARD_CONDITIONS:
        if condition.lower() == wanted:
            return condition
    raise InvalidInputError(
        f"Condition '{value}' is not allowed. Allowed values: {CARD_CONDITIONS}",
        details={"condition": value, "allowed_values": CARD_CONDITIONS}
    )


def validate_search_query(query: Optional[str], min_length: int = 2) -> str:
    """Strip a search query and require ``min_length`` characters."""
    normalized = (query or "").strip()
    if len(normalized) < min_length:
        raise InvalidInputError(
            f"Type at least {min_length} characters to search",
            details={"query": query, "min_length": min_length}
        )
    return normalized


def parse_money(value: Any, field_name: str = "value") -> Optional[float]:
    """Parse an optional non-negative amount; blank means None."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    try:
        amount = float(str(value).strip().lstrip("$"))
    except (TypeError, ValueError):
        raise InvalidInputError(f"{field_name} must be a number", details={field_name: value})
    if amount < 0:
        raise InvalidInputError(f"{field_name} cannot be negative", details={field_name: amount})
    return amount


def validate_value_range(
    min_value: Any = None,
    max_value: Any = None,
) -> Tuple[Optional[float], Optional[float]]:
    """Parse a value filter range, rejecting min > max."""
    low = parse_money(min_value, "min_value")
    high = parse_money(max_value, "max_value")
    if low is not None and high is not None and low > high:
        raise InvalidInputError(
            f"Minimum value {low} is above maximum {high}",
            details={"min_value": low, "max_value": high}
        )
    return low, high


def validate_sort_key(key: str) -> str:
    normalized = (key or "").strip().lower()
    if normalized not in SORT_KEYS:
        raise InvalidInputError(
            f"Cannot sort by '{key}'. Choose one of: {', '.join(SORT_KEYS)}",
            details={"sort_key": key, "allowed_values": list(SORT_KEYS)}
        )
    return normalized


def validate_export_format(fmt: str) -> str:
    normalized = (fmt or "").strip().lower()
    if normalized not in EXPORT_FORMATS:
        raise InvalidInputError(
            f"Unknown export format '{fmt}'. Choose one of: {', '.join(EXPORT_FORMATS)}",
            details={"format": fmt, "allowed_values": list(EXPORT_FORMATS)}
        )
    return normalized


def validate_card_payload(data: Dict[str, Any]) -> Dict[str, Any]:
    """A card must at least have a name; other fields are checked if present."""
    if not isinstance(data, dict):
        raise InvalidInputError("Card data must be an object", details={"type": type(data).__name__})
    if not str(data.get("name") or "").strip():
        raise InvalidInputError("Card name is required", details={"fields": sorted(data)})
    images = data.get("images")
    if images is not None and not isinstance(images, dict):
        raise InvalidInputError("Card images must be an object", details={"images": images})
    types = data.get("types")
    if types is not None and not isinstance(types, (list, str)):
        raise InvalidInputError("Card types must be a list", details={"types": types})
    if "quantity" in data:
        data["quantity"] = validate_quantity(data["quantity"])
    if data.get("condition"):
        data["condition"] = validate_condition(data["condition"])
    return data


def validate_import_bundle(text: Union[str, bytes]) -> Dict[str, Any]:
    """
    Parse and check an exported JSON bundle before anything is written.

    Args:
        text: Raw JSON text of a ``{collection, settings, searchHistory, metadata}`` bundle

    Returns:
        The parsed bundle

    Raises:
        ImportDataError: On invalid JSON or missing ``collection``/``settings``
    """
    try:
        data = json.loads(text)
    except (TypeError, ValueError) as e:
        raise ImportDataError("Import file is not valid JSON", details={"error": str(e)})

    if not isinstance(data, dict):
        raise ImportDataError("Import file must contain a JSON object")

    missing: List[str] = [key for key in ("collection", "settings") if data.get(key) is None]
    if missing:
        raise ImportDataError(
            f"Invalid data format: missing {', '.join(missing)}",
            details={"missing_fields": missing, "available_fields": sorted(data)}
        )

    collection = data["collection"]
    if not isinstance(collection, dict) or not isinstance(collection.get("cards", []), list):
        raise ImportDataError("Invalid data format: collection.cards must be a list")
    if not isinstance(data["settings"], dict):
        raise ImportDataError("Invalid data format: settings must be an object")
    history = data.get("searchHistory")
    if history is not None and not isinstance(history, list):
        raise ImportDataError("Invalid data format: searchHistory must be a list")

    return data
