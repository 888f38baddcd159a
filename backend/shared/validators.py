"""Validation helpers shared by service settings and request models."""

from __future__ import annotations

import json
import re
from typing import TYPE_CHECKING, Any

from pydantic_settings import EnvSettingsSource

if TYPE_CHECKING:
    from pydantic.fields import FieldInfo

_MARKUP_CHARS = re.compile(r"[<>]")
_MAX_DISPLAY_TEXT_LENGTH = 100
_EMPTY_LIST_MESSAGE = "String list value must not be empty"


def _split_csv(text: str) -> list[str]:
    return [item.strip() for item in text.split(",") if item.strip()]


def _parse_json_list(text: str) -> list[str]:
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON array: {e}") from e
    if not isinstance(parsed, list) or not all(isinstance(item, str) for item in parsed):
        raise ValueError("JSON value must be an array of strings")
    return parsed


def parse_string_list(value: str | list[str], *, allow_empty: bool = False) -> list[str]:
    """Parse a list of strings from a config value.

    Lists pass through. Strings may be a JSON array ('["a","b"]') or
    comma-separated ('a,b'). A blank string is always an error; an empty
    result is one unless allow_empty is set.
    """
    if isinstance(value, list):
        result = value
    else:
        text = value.strip()
        if not text:
            raise ValueError(_EMPTY_LIST_MESSAGE)
        result = _parse_json_list(text) if text.startswith("[") else _split_csv(text)

    if not result and not allow_empty:
        raise ValueError(_EMPTY_LIST_MESSAGE)
    return result


def sanitize_display_text(value: str) -> str:
    """Drop markup characters from player-supplied text, then trim and cap it."""
    return _MARKUP_CHARS.sub("", value).strip()[:_MAX_DISPLAY_TEXT_LENGTH]


class StringListEnvSettingsSource(EnvSettingsSource):
    """Env source that leaves ``list[str]`` fields as raw strings for their validators.

    pydantic-settings would JSON-decode them first and reject the CSV form;
    the field validator calls parse_string_list instead, which takes both.
    """

    def prepare_field_value(
        self,
        field_name: str,
        field: FieldInfo,
        value: Any,  # noqa: ANN401
        value_is_complex: bool,  # noqa: FBT001
    ) -> Any:  # noqa: ANN401
        if isinstance(value, str) and field.annotation == list[str]:
            return value
        return super().prepare_field_value(field_name, field, value, value_is_complex)
