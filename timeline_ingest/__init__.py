from __future__ import annotations

from .config import load_config, resolve_runtime_secrets
from .config_schema import AppConfig
from .dedupe import merge_posts
from .errors import ConfigError, FetchError, StorageError
from .normalize import NormalizeOptions, normalize_item
from .pipeline import run_pipeline
from .post import AuthorInfo, EngagementSnapshot, NormalizedPost

__all__ = [
    "AppConfig",
    "AuthorInfo",
    "ConfigError",
    "EngagementSnapshot",
    "FetchError",
    "NormalizeOptions",
    "NormalizedPost",
    "StorageError",
    "load_config",
    "merge_posts",
    "normalize_item",
    "resolve_runtime_secrets",
    "run_pipeline",
]
