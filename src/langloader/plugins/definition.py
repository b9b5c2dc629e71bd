"""Declarative language plugin definitions."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any

from langloader.errors import DefinitionParseError

# camelCase JSON key -> dataclass field
_FIELD_KEYS = {
    "id": "id",
    "displayName": "display_name",
    "url": "url",
    "module": "module",
    "evaluator": "evaluator",
    "asyncEvaluator": "async_evaluator",
    "codeMirrorMode": "code_mirror_mode",
    "keybinding": "keybinding",
    "pluginType": "plugin_type",
}

_SLUG_RE = re.compile(r"[^a-z0-9]+")


def _slugify(text: str) -> str:
    return _SLUG_RE.sub("-", text.lower()).strip("-")


@dataclass(frozen=True)
class PluginDefinition:
    """Description of a remotely hosted language module."""

    id: str
    display_name: str
    url: str | None = None
    module: str | None = None
    evaluator: str | None = None
    async_evaluator: str | None = None
    code_mirror_mode: str | None = None
    keybinding: str | None = None
    plugin_type: str | None = None
    extra: dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def is_installable(self) -> bool:
        """Check if the definition names a URL to fetch from."""
        return bool(self.url)

    @property
    def is_usable(self) -> bool:
        """Check if the definition declares at least one evaluator."""
        return bool(self.evaluator or self.async_evaluator)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PluginDefinition:
        """Build a definition from its JSON object form.

        The id is taken from ``id``, then ``languageId``, then ``module``,
        then a slug of ``displayName``.

        Raises:
            DefinitionParseError: A known field holds something other than a string.
        """
        values: dict[str, Any] = {}
        extra: dict[str, Any] = {}
        for key, value in data.items():
            if key in _FIELD_KEYS:
                if value is not None and not isinstance(value, str):
                    raise DefinitionParseError(
                        f"field \"{key}\" must be a string, got {type(value).__name__}"
                    )
                values[_FIELD_KEYS[key]] = value
            elif key != "languageId":
                extra[key] = value

        display_name = values.get("display_name") or values.get("module") or ""
        language_id = (
            values.get("id")
            or data.get("languageId")
            or values.get("module")
            or _slugify(display_name)
        )
        values["id"] = str(language_id)
        values["display_name"] = str(display_name)
        return cls(extra=extra, **values)

    def to_dict(self) -> dict[str, Any]:
        """Render the definition back to its camelCase JSON form."""
        data: dict[str, Any] = {}
        for key, attr in _FIELD_KEYS.items():
            value = getattr(self, attr)
            if value is not None:
                data[key] = value
        data.update(self.extra)
        return data


def parse_definition(text: str) -> PluginDefinition:
    """Parse plugin definition text.

    Raises:
        DefinitionParseError: If the text is not a JSON object.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise DefinitionParseError(str(e)) from e

    if not isinstance(data, dict):
        raise DefinitionParseError(
            f"expected a JSON object, got {type(data).__name__}"
        )
    return PluginDefinition.from_dict(data)
