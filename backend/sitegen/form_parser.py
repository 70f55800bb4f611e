"""
Form data validator: turns a POST /generate body into a BusinessProfile.

The body may arrive as multipart form data, a url-encoded form, or raw JSON.
Nothing here raises past the module boundary; every failure becomes a
FormError with the offending fields listed.
"""

from dataclasses import dataclass, field
import json
import logging
from typing import Any, Mapping
from urllib.parse import parse_qsl

from pydantic import ValidationError
from starlette.requests import Request

from sitegen.models import BusinessProfile


logger = logging.getLogger(__name__)

BOOLEAN_FIELDS = (
    "includeTestimonials",
    "includeFAQ",
    "hasProducts",
    "hasServices",
    "hasPortfolio",
    "needsBookingSystem",
)
LIST_FIELDS = ("formFields", "metaKeywords", "designStyles")

_TRUE_VALUES = {"on", "true", "1", "yes"}
_FALSE_VALUES = {"off", "false", "0", "no", ""}


@dataclass
class FormError:
    error: str
    details: Any = None
    status_code: int = 400

    def to_response(self) -> dict:
        return {"error": self.error, "details": self.details}


@dataclass
class ProfileParseResult:
    profile: BusinessProfile | None = None
    error: FormError | None = None
    raw: dict = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.profile is not None


def _collapse(items) -> dict:
    """Collapse (key, value) pairs into a dict, keeping repeated keys as lists."""
    data: dict = {}
    for key, value in items:
        if key in data:
            existing = data[key]
            data[key] = existing + [value] if isinstance(existing, list) else [existing, value]
        else:
            data[key] = value
    return data


async def read_request_payload(request: Request) -> dict | None:
    """
    Decode the request body into a plain dict.

    Order tried: form parser (multipart / url-encoded), raw url-encoded text,
    raw JSON object. Returns None when none of them produce a mapping.
    """
    content_type = request.headers.get("content-type", "")

    if content_type.startswith(("multipart/form-data", "application/x-www-form-urlencoded")):
        try:
            form = await request.form()
            data = _collapse(
                (key, value) for key, value in form.multi_items() if isinstance(value, str)
            )
            logger.info(f"[form] Parsed form fields: {', '.join(data.keys())}")
            return data
        except Exception as e:
            logger.info(f"[form] Not a readable form body ({e}), trying raw text")

    try:
        raw = (await request.body()).decode("utf-8")
    except Exception as e:
        logger.warning(f"[form] Could not read request body: {e}")
        return None

    stripped = raw.strip()
    if "&" in stripped and "=" in stripped and not stripped.startswith("{"):
        data = _collapse(parse_qsl(stripped, keep_blank_values=True))
        logger.info(f"[form] Parsed url-encoded body: {', '.join(data.keys())}")
        return data

    try:
        data = json.loads(stripped)
    except (json.JSONDecodeError, ValueError):
        logger.warning(f"[form] Body is neither form nor JSON ({len(raw)} bytes)")
        return None

    if not isinstance(data, dict):
        logger.warning("[form] JSON body is not an object")
        return None
    logger.info(f"[form] Parsed JSON body: {', '.join(data.keys())}")
    return data


def _coerce_bool(value: Any) -> Any:
    if isinstance(value, list):
        value = value[-1] if value else None
    if value is None:
        return False
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_VALUES:
            return True
        if lowered in _FALSE_VALUES:
            return False
    return value


def _coerce_list(value: Any) -> Any:
    if value is None:
        return []
    items = value if isinstance(value, list) else [value]
    result = []
    for item in items:
        if isinstance(item, str):
            result.extend(part.strip() for part in item.split(",") if part.strip())
        else:
            result.append(item)
    return result


def _lookup_key(data: Mapping, wire_name: str) -> str:
    """Find the key a field was posted under (camelCase or snake_case)."""
    if wire_name in data:
        return wire_name
    snake = "".join("_" + c.lower() if c.isupper() else c for c in wire_name)
    if snake in data:
        return snake
    # includeFAQ posts as include_faq from snake_case clients
    if snake.replace("f_a_q", "faq") in data:
        return snake.replace("f_a_q", "faq")
    return wire_name


def coerce_form_values(data: Mapping) -> dict:
    """Apply check-box and comma-list coercions; default language to Hebrew."""
    result = dict(data)

    for wire_name in BOOLEAN_FIELDS:
        key = _lookup_key(result, wire_name)
        result[key] = _coerce_bool(result.get(key))

    list_keys = set()
    for wire_name in LIST_FIELDS:
        key = _lookup_key(result, wire_name)
        list_keys.add(key)
        if key in result:
            result[key] = _coerce_list(result[key])

    # Scalars posted twice keep the last value
    for key, value in list(result.items()):
        if isinstance(value, list) and key not in list_keys:
            result[key] = value[-1] if value else ""

    language_key = _lookup_key(result, "language")
    if not result.get(language_key):
        result[language_key] = "he"

    return result


def _format_validation_errors(exc: ValidationError) -> list[dict]:
    details = []
    for err in exc.errors():
        details.append({
            "field": ".".join(str(part) for part in err.get("loc", ())) or "__root__",
            "message": err.get("msg", "Invalid value"),
            "input": err.get("input") if isinstance(err.get("input"), (str, int, float, bool)) else None,
        })
    return details


def validate_profile(data: Mapping) -> ProfileParseResult:
    """Coerce and validate a decoded body. Never raises."""
    try:
        coerced = coerce_form_values(data)
    except Exception as e:
        logger.warning(f"[form] Coercion failed: {e}")
        return ProfileParseResult(error=FormError("Invalid form data structure", str(e)))

    try:
        profile = BusinessProfile.model_validate(coerced)
    except ValidationError as e:
        details = _format_validation_errors(e)
        logger.info(f"[form] Rejected submission with {len(details)} invalid field(s)")
        return ProfileParseResult(
            error=FormError("Invalid form data structure", details),
            raw=coerced,
        )
    return ProfileParseResult(profile=profile, raw=coerced)


async def parse_profile_request(request: Request) -> ProfileParseResult:
    try:
        data = await read_request_payload(request)
    except Exception as e:
        logger.warning(f"[form] Unexpected decode failure: {e}")
        data = None

    if data is None:
        return ProfileParseResult(error=FormError(
            "Failed to parse request body",
            "Expected multipart form data, a url-encoded form, or a JSON object",
        ))
    return validate_profile(data)
