from .loader import DEFAULT_CONFIG_PATH, ConfigError, PropertyStore, document_key
from .resolver import load_effective_config, resolve_config, save_document_config

__all__ = [
    "ConfigError",
    "DEFAULT_CONFIG_PATH",
    "PropertyStore",
    "document_key",
    "load_effective_config",
    "resolve_config",
    "save_document_config",
]
