"""
Parsing and repair of the vision model's free-text answer.

The model is asked for a bare JSON object but frequently wraps it in
prose or markdown fences. The parser pulls out the outermost ``{...}``
span, decodes it, and repairs individual fields so a draft can always be
produced. Every repaired field is reported in ``defaulted_fields`` so a
fallback value is never mistaken for a genuine estimate.
"""

import json
import logging
import math

from app.core.exceptions import UnparseableResponseError
from app.core.models import Condition, InferenceResult, ListingSuggestion

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Unknown Item"
DEFAULT_DESCRIPTION = "Product description not available"
DEFAULT_PRICE = 25.00
DEFAULT_CATEGORY = "Fashion"
DEFAULT_CONDITION = Condition.USED

EMPTY_RESPONSE = "AI did not return valid JSON"
NO_JSON_FOUND = "No JSON found"
INVALID_JSON = "Invalid JSON format"


def extract_json_block(text: str) -> str | None:
    """
    Return the span from the first ``{`` to the last ``}``, stripped.

    Greedy on purpose: nested objects stay intact, and trailing prose
    after the object is dropped.
    """
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end < start:
        return None
    return text[start:end + 1].strip()


def _is_positive_number(value) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    try:
        number = float(value)
    except OverflowError:
        # ints past the float range
        return False
    return math.isfinite(number) and number > 0


def _text_or_none(value) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    if value not in (None, "", False) and not isinstance(value, (dict, list)):
        return str(value)
    return None


def repair_fields(parsed: dict) -> InferenceResult:
    """Fill in defaults for missing or invalid fields of a decoded object."""
    defaulted: list[str] = []

    title = _text_or_none(parsed.get("title"))
    if title is None:
        title = DEFAULT_TITLE
        defaulted.append("title")

    description = _text_or_none(parsed.get("description"))
    if description is None:
        description = DEFAULT_DESCRIPTION
        defaulted.append("description")

    price = parsed.get("price")
    if not _is_positive_number(price):
        price = DEFAULT_PRICE
        defaulted.append("price")

    category = _text_or_none(parsed.get("category"))
    if category is None:
        category = DEFAULT_CATEGORY
        defaulted.append("category")

    condition = parsed.get("condition")
    if condition not in (Condition.NEW.value, Condition.USED.value):
        condition = DEFAULT_CONDITION
        defaulted.append("condition")

    suggestion = ListingSuggestion(
        title=title,
        description=description,
        price=float(price),
        category=category,
        condition=Condition(condition),
    )
    return InferenceResult(suggestion=suggestion, defaulted_fields=defaulted)


def parse_listing_response(text: str | None) -> InferenceResult:
    """
    Turn the model's answer into a listing suggestion.

    Args:
        text: First text part of the model's first candidate.

    Returns:
        The repaired suggestion and the list of defaulted fields.

    Raises:
        UnparseableResponseError: empty text, no ``{...}`` span, or the span
            is not a JSON object. ``raw`` carries what could be recovered.
    """
    if not text:
        raise UnparseableResponseError(EMPTY_RESPONSE, raw=text)

    block = extract_json_block(text)
    if not block:
        logger.error(f"No JSON found in model response: {text[:200]}")
        raise UnparseableResponseError(NO_JSON_FOUND, raw=text)

    try:
        parsed = json.loads(block)
    except json.JSONDecodeError as e:
        logger.error(f"JSON parse error: {e}")
        raise UnparseableResponseError(INVALID_JSON, raw=block) from e

    if not isinstance(parsed, dict):
        raise UnparseableResponseError(INVALID_JSON, raw=block)

    result = repair_fields(parsed)
    if result.defaulted_fields:
        logger.info(f"Model response repaired, defaulted: {result.defaulted_fields}")
    return result
