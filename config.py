"""Environment-based settings for the admin API client."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List

import yaml
from dotenv import load_dotenv

load_dotenv()

DEFAULT_API_URL = "http://localhost:5000/api"

# resource -> extra cache-key prefixes to invalidate after a mutation on it
DEFAULT_INVALIDATION_MAP: Dict[str, List[str]] = {
    "articles": ["article", "admin-articles"],
}


def _parse_bool(env_name: str, default: str) -> bool:
    return os.getenv(env_name, default).lower() not in {"0", "false", "no"}


def load_invalidation_map(path: str | None) -> Dict[str, List[str]]:
    """Merge an optional YAML mapping over the built-in invalidation map."""
    merged = {name: list(prefixes) for name, prefixes in DEFAULT_INVALIDATION_MAP.items()}
    if not path:
        return merged
    map_path = Path(path)
    if not map_path.exists():
        return merged
    with map_path.open("r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalidation map in {path} must be a mapping")
    for resource, prefixes in data.items():
        if isinstance(prefixes, str):
            prefixes = [prefixes]
        merged[str(resource)] = [str(p) for p in prefixes or []]
    return merged


@dataclass
class Settings:
    api_url: str = DEFAULT_API_URL
    api_token: str | None = None
    auth_scheme: str = "Bearer"
    request_timeout: float = 30.0
    verify_ssl: bool = True
    proxy: str | None = None
    http_retries: int = 0
    query_stale_time: float = 300.0
    query_cache_time: float = 600.0
    query_retry: int = 1
    query_retry_delay: float = 1.0
    upload_chunk_size: int = 1024 * 1024
    upload_chunk_threshold: int = 10 * 1024 * 1024
    upload_max_concurrent: int = 1
    upload_retry_attempts: int = 1
    upload_retry_delay: float = 1.0
    invalidation_map: Dict[str, List[str]] = field(
        default_factory=lambda: load_invalidation_map(None)
    )

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            api_url=os.getenv("API_URL", DEFAULT_API_URL),
            api_token=os.getenv("API_TOKEN") or None,
            auth_scheme=os.getenv("AUTH_SCHEME", "Bearer").strip() or "Bearer",
            request_timeout=float(os.getenv("REQUEST_TIMEOUT", "30")),
            verify_ssl=_parse_bool("VERIFY_SSL", "true"),
            proxy=os.getenv("HTTP_PROXY") or os.getenv("HTTPS_PROXY") or None,
            http_retries=int(os.getenv("HTTP_RETRIES", "0")),
            query_stale_time=float(os.getenv("QUERY_STALE_TIME", "300")),
            query_cache_time=float(os.getenv("QUERY_CACHE_TIME", "600")),
            query_retry=int(os.getenv("QUERY_RETRY", "1")),
            query_retry_delay=float(os.getenv("QUERY_RETRY_DELAY", "1.0")),
            upload_chunk_size=int(os.getenv("UPLOAD_CHUNK_SIZE", str(1024 * 1024))),
            upload_chunk_threshold=int(os.getenv("UPLOAD_CHUNK_THRESHOLD", str(10 * 1024 * 1024))),
            upload_max_concurrent=int(os.getenv("UPLOAD_MAX_CONCURRENT", "1")),
            upload_retry_attempts=int(os.getenv("UPLOAD_RETRY_ATTEMPTS", "1")),
            upload_retry_delay=float(os.getenv("UPLOAD_RETRY_DELAY", "1.0")),
            invalidation_map=load_invalidation_map(os.getenv("INVALIDATION_MAP_PATH")),
        )
