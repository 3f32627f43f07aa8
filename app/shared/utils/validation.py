import html
import json
import re
from typing import Any, Dict, Optional, Type, TypeVar

from fastapi import Request
from pydantic import BaseModel, ValidationError
from starlette.datastructures import UploadFile

from app.core.exceptions import BadRequestError, ValidationFailedError, validation_details
from app.core.security import sanitize_value

ModelT = TypeVar("ModelT", bound=BaseModel)

NAME_RE = re.compile(r"^[a-zA-Z\s]+$")
PHONE_RE = re.compile(r"^\+?[\d\s\-\(\)]+$")


# =============================================================================
# Field normalizers
# =============================================================================


def title_case(value: str) -> str:
    """Collapse whitespace and capitalize each word: "oil  PAINTING" -> "Oil Painting"."""
    words = re.sub(r"\s+", " ", value).strip().split(" ")
    return " ".join(w[:1].upper() + w[1:].lower() for w in words)


def escape_text(value: str) -> str:
    return html.escape(value, quote=True)


def check_length(value: str, min_len: int, max_len: int, message: str) -> str:
    if not min_len <= len(value) <= max_len:
        raise ValueError(message)
    return value


def check_name(value: str, label: str = "Name") -> str:
    value = check_length(
        value.strip(), 2, 50, f"{label} must be between 2 and 50 characters"
    )
    if not NAME_RE.match(value):
        raise ValueError(f"{label} can only contain letters and spaces")
    return value


def check_choice(value: str, choices, label: str) -> str:
    value = title_case(value)
    check_length(value, 1, 100, f"{label} must be between 1 and 100 characters")
    if value not in choices:
        raise ValueError(f"Invalid {label.lower()} selected")
    return value


# =============================================================================
# Payload reading
# =============================================================================


async def read_payload(request: Request) -> Dict[str, Any]:
    """
    Read a JSON or form body into a plain dict.

    File parts and blank form fields are skipped (the upload pipeline handles
    files); form values get the same script-vector stripping the middleware
    applies to JSON bodies.
    """
    content_type = request.headers.get("content-type", "")
    if "application/json" in content_type:
        raw = await request.body()
        if not raw:
            return {}
        try:
            data = json.loads(raw)
        except ValueError:
            raise BadRequestError("Request body is not valid JSON")
        if not isinstance(data, dict):
            raise BadRequestError("Request body must be a JSON object")
        return data

    if content_type.startswith("multipart/form-data") or content_type.startswith(
        "application/x-www-form-urlencoded"
    ):
        form = await request.form()
        return {
            key: sanitize_value(value, key)
            for key, value in form.multi_items()
            if not isinstance(value, UploadFile) and value != ""
        }

    return {}


def validate_payload(
    schema: Type[ModelT], data: Dict[str, Any], exclude: Optional[set] = None
) -> ModelT:
    """Run every field rule and report the first failure per field together."""
    if exclude:
        data = {k: v for k, v in data.items() if k not in exclude}
    try:
        return schema.model_validate(data)
    except ValidationError as e:
        raise ValidationFailedError(validation_details(e.errors()))
