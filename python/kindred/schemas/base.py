"""Shared schema base and constrained field types.

Wire format is camelCase; snake_case field names are accepted on input too.
"""

from typing import Annotated

from pydantic import BaseModel, ConfigDict, HttpUrl, StringConstraints, TypeAdapter
from pydantic.alias_generators import to_camel

_http_url = TypeAdapter(HttpUrl)


class ApiModel(BaseModel):
    """Base for every request and response schema."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        validate_by_name=True,
        validate_by_alias=True,
        serialize_by_alias=True,
        from_attributes=True,
    )


def trimmed(min_length: int | None = None, max_length: int | None = None):
    """String type that strips surrounding whitespace before length checks."""
    return Annotated[
        str,
        StringConstraints(strip_whitespace=True, min_length=min_length, max_length=max_length),
    ]


def validate_http_url(value: str | None) -> str | None:
    """Check an http(s) URL while keeping the caller's exact spelling.

    Empty strings pass through as None so optional URLs can be cleared.
    """
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    _http_url.validate_python(value)
    return value
