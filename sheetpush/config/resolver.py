from __future__ import annotations

from ..models.config_models import DEFAULTS, ConfigSnapshot, EffectiveConfig
from .loader import PropertyStore

"""Effective configuration: explicit merge over three ordered snapshots.

Precedence, highest first:
    1. document layer (per workbook)
    2. legacy layer (endpoint and collection only)
    3. defaults

The secret is never part of this: callers pass an AppSecret per operation.
"""

__all__ = [
    "resolve_config",
    "snapshot_from_properties",
    "load_effective_config",
    "save_document_config",
    "load_document_config",
]


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _first(*values: str | None) -> str | None:
    for v in values:
        cleaned = _clean(v)
        if cleaned is not None:
            return cleaned
    return None


def resolve_config(
    local: ConfigSnapshot,
    legacy: ConfigSnapshot,
    defaults: ConfigSnapshot = DEFAULTS,
) -> EffectiveConfig:
    """Merge the layers. Blank strings count as unset.

    Identifier field name and inclusion flag skip the legacy layer entirely.
    """
    endpoint = _first(local.endpoint, legacy.endpoint, defaults.endpoint)
    collection = _first(local.collection, legacy.collection, defaults.collection)
    id_field_name = _first(local.id_field_name, defaults.id_field_name)

    if local.include_id_field is not None:
        include_id_field = local.include_id_field
    else:
        include_id_field = bool(defaults.include_id_field)

    return EffectiveConfig(
        endpoint=endpoint or "",
        collection=collection or "",
        id_field_name=id_field_name or "",
        include_id_field=include_id_field,
    )


def snapshot_from_properties(props: dict[str, str], *, legacy: bool = False) -> ConfigSnapshot:
    """Translate stored string properties into a snapshot."""
    if legacy:
        return ConfigSnapshot(
            endpoint=props.get("CF_ENDPOINT"),
            collection=props.get("COLLECTION"),
        )
    include_raw = props.get("INCLUDE_ID_FIELD_IN_DOC")
    return ConfigSnapshot(
        endpoint=props.get("CF_ENDPOINT"),
        collection=props.get("COLLECTION"),
        id_field_name=props.get("DOC_ID_FIELD_NAME"),
        include_id_field=None if include_raw is None else str(include_raw) == "true",
    )


def load_effective_config(store: PropertyStore, key: str) -> EffectiveConfig:
    local = snapshot_from_properties(store.get_document_properties(key))
    legacy = snapshot_from_properties(store.get_legacy_properties(), legacy=True)
    return resolve_config(local, legacy)


def save_document_config(
    store: PropertyStore,
    key: str,
    *,
    endpoint: str | None = None,
    collection: str | None = None,
    id_field_name: str | None = None,
    include_id_field: bool | None = None,
) -> None:
    """Persist the non-secret settings that were given; others stay untouched."""
    updates: dict[str, str] = {}
    if endpoint is not None:
        updates["CF_ENDPOINT"] = str(endpoint).strip()
    if collection is not None:
        updates["COLLECTION"] = str(collection).strip()
    if id_field_name is not None:
        updates["DOC_ID_FIELD_NAME"] = str(id_field_name).strip()
    if include_id_field is not None:
        updates["INCLUDE_ID_FIELD_IN_DOC"] = "true" if include_id_field else "false"
    if updates:
        store.set_document_properties(key, updates)


def load_document_config(store: PropertyStore, key: str) -> dict[str, object]:
    """Effective settings for display (the secret is never included)."""
    cfg = load_effective_config(store, key)
    return {
        "CF_ENDPOINT": cfg.endpoint,
        "COLLECTION": cfg.collection,
        "DOC_ID_FIELD_NAME": cfg.id_field_name,
        "INCLUDE_ID_FIELD_IN_DOC": cfg.include_id_field,
    }
