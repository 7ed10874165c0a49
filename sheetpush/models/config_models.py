from __future__ import annotations

from dataclasses import dataclass

"""Config dataclasses for the sheet -> document store pipeline.

Settings come in three layers (document, legacy, defaults). Each layer is a
ConfigSnapshot where None means "not set in this layer"; the resolver in
sheetpush.config.resolver merges them into one EffectiveConfig.

The shared secret is deliberately absent from every model here. It travels as
an AppSecret (sheetpush.session) passed to the write client per operation.
"""

__all__ = [
    "ConfigSnapshot",
    "EffectiveConfig",
    "DEFAULT_ENDPOINT",
    "DEFAULT_COLLECTION",
    "DEFAULT_ID_FIELD_NAME",
    "DEFAULTS",
]

DEFAULT_ENDPOINT = "https://functionname.a.run.app"
DEFAULT_COLLECTION = "imageDataTest"
DEFAULT_ID_FIELD_NAME = "docId"


@dataclass(frozen=True)
class ConfigSnapshot:
    """One persisted (or hard-coded) settings layer.

    Legacy layers only ever populate endpoint and collection.
    """
    endpoint: str | None = None
    collection: str | None = None
    id_field_name: str | None = None
    include_id_field: bool | None = None


@dataclass(frozen=True)
class EffectiveConfig:
    """Settings actually used by one push operation."""
    endpoint: str
    collection: str
    id_field_name: str = DEFAULT_ID_FIELD_NAME
    include_id_field: bool = False


DEFAULTS = ConfigSnapshot(
    endpoint=DEFAULT_ENDPOINT,
    collection=DEFAULT_COLLECTION,
    id_field_name=DEFAULT_ID_FIELD_NAME,
    include_id_field=False,
)
