from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..errors import ConfigError

"""Persisted settings store (YAML) with two scopes.

- documents: per-workbook settings, keyed by workbook file name
- legacy:    process-wide fallback for CF_ENDPOINT / COLLECTION only

Values are strings, as they were in the original property stores. The file is
validated against config_schema.json on every load and before every save;
APP_SECRET is not an allowed key anywhere, so a secret can never end up here.
"""

__all__ = [
    "ConfigError",
    "DEFAULT_CONFIG_PATH",
    "SCHEMA_PATH",
    "PropertyStore",
    "document_key",
]

SCHEMA_PATH = Path(__file__).parent / "config_schema.json"
DEFAULT_CONFIG_PATH = Path("config/sheetpush.yml")

DOCUMENT_KEYS = ("CF_ENDPOINT", "COLLECTION", "DOC_ID_FIELD_NAME", "INCLUDE_ID_FIELD_IN_DOC")
LEGACY_KEYS = ("CF_ENDPOINT", "COLLECTION")


def document_key(workbook: Path) -> str:
    """Key under which a workbook's settings are stored."""
    return Path(workbook).name


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate settings data against the bundled JSON schema.

    Raises:
        ConfigError: schema file missing or unreadable, or the data violates it
            (unknown keys such as APP_SECRET, non-string values, ...)
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")
    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


class PropertyStore:
    """String key/value settings backed by a YAML file.

    A missing file reads as empty layers. Reads and writes are not locked:
    concurrent edits race on read/modify/write, which is acceptable for rare,
    human-driven settings changes.
    """

    def __init__(self, path: Path = DEFAULT_CONFIG_PATH) -> None:
        self.path = Path(path)

    def load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = yaml.safe_load(self.path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"invalid yaml: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"config validation failed: top level of {self.path} must be a mapping")
        _validate_config_schema(data)
        return data

    def get_document_properties(self, key: str) -> dict[str, str]:
        documents = self.load().get("documents") or {}
        return dict(documents.get(key) or {})

    def get_legacy_properties(self) -> dict[str, str]:
        return dict(self.load().get("legacy") or {})

    def set_document_properties(self, key: str, updates: dict[str, str]) -> None:
        unknown = set(updates) - set(DOCUMENT_KEYS)
        if unknown:
            raise ConfigError(f"unsupported document properties: {sorted(unknown)}")
        data = self.load()
        documents = data.get("documents") or {}
        current = dict(documents.get(key) or {})
        current.update(updates)
        documents[key] = current
        data["documents"] = documents
        self._write(data)

    def set_legacy_properties(self, updates: dict[str, str]) -> None:
        unknown = set(updates) - set(LEGACY_KEYS)
        if unknown:
            raise ConfigError(f"unsupported legacy properties: {sorted(unknown)}")
        data = self.load()
        legacy = dict(data.get("legacy") or {})
        legacy.update(updates)
        data["legacy"] = legacy
        self._write(data)

    def _write(self, data: dict[str, Any]) -> None:
        _validate_config_schema(data)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(
            yaml.safe_dump(data, allow_unicode=True, sort_keys=True), encoding="utf-8"
        )
