"""
Configuration management for Mirror Search.
Loads and validates settings from YAML files and environment variables.
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator


class GeneralConfig(BaseModel):
    """General configuration."""

    version: str = "2.1.0"
    log_level: str = "INFO"
    logs_dir: str = "logs"
    log_to_file: bool = False
    json_logs: bool = True


class ServerConfig(BaseModel):
    """HTTP server configuration."""

    host: str = "0.0.0.0"
    port: int = 8000
    max_query_length: int = 500


class AnonymizationConfig(BaseModel):
    """Query anonymization configuration."""

    model_config = ConfigDict(extra="forbid", protected_namespaces=())

    enabled: bool = True
    # Loads the simulated model that backs the advanced strategy
    use_advanced: bool = True
    model_path: str = "Xenova/TinyLlama-1.1B-Chat-v1.0"
    version: str = "2.1.0-rules"
    short_query_length: int = 3
    min_output_length: int = 2


class HtmlSelectorConfig(BaseModel):
    """CSS selectors for HTML-scraped result pages.

    Kept in configuration so markup changes upstream can be fixed without
    code changes.
    """

    results_container: str = "div.result"
    results_container_alt: str = "div.web-result"
    title: str = "a.result__a"
    snippet: str = ".result__snippet"
    sponsored: str = ".result--ad, .badge--ad"


class BackendConfig(BaseModel):
    """Configuration of a single search backend."""

    model_config = ConfigDict(extra="forbid")

    # Adapter type registered in mirror.search.backends
    kind: str
    label: str
    endpoint: str
    timeout_seconds: float = Field(default=10.0, gt=0)
    enabled: bool = True
    # URL template with a "{url}" placeholder, e.g. "https://proxy.local/fetch?url={url}"
    proxy_url: str | None = None
    user_agent: str | None = None
    selectors: HtmlSelectorConfig = Field(default_factory=HtmlSelectorConfig)

    @field_validator("proxy_url")
    @classmethod
    def validate_proxy_url(cls, v: str | None) -> str | None:
        """Ensure proxy templates carry the target placeholder."""
        if v is not None and "{url}" not in v:
            raise ValueError("proxy_url must contain a '{url}' placeholder")
        return v


def _default_backends() -> dict[str, BackendConfig]:
    return {
        "duckduckgo_html": BackendConfig(
            kind="html",
            label="DuckDuckGo",
            endpoint="https://html.duckduckgo.com/html/",
            timeout_seconds=15.0,
        ),
        "duckduckgo_instant": BackendConfig(
            kind="instant_answer",
            label="DuckDuckGo Instant",
            endpoint="https://api.duckduckgo.com/",
            timeout_seconds=10.0,
        ),
        "searxng": BackendConfig(
            kind="searxng",
            label="SearXNG",
            endpoint="http://localhost:8080",
            timeout_seconds=15.0,
            enabled=False,
        ),
    }


class SearchConfig(BaseModel):
    """Search dispatch configuration."""

    backend_order: list[str] = Field(
        default_factory=lambda: ["duckduckgo_html", "duckduckgo_instant"]
    )
    backends: dict[str, BackendConfig] = Field(default_factory=_default_backends)
    max_results: int = Field(default=10, ge=1, le=100)
    user_agent: str = "Mirror Search Bot 2.1 (Privacy-First)"
    fallback_label: str = "Mirror Search (Fallback)"
    fallback_source: str = "Mirror Search"
    title_placeholder: str = "Untitled result"
    snippet_placeholder: str = "No description available."
    fast_threshold_ms: float = 2000.0
    fallback_fast_threshold_ms: float = 1000.0

    @field_validator("backend_order", mode="before")
    @classmethod
    def split_backend_order(cls, v: Any) -> Any:
        """Accept a comma-separated string (environment overrides)."""
        if isinstance(v, str):
            return [part.strip() for part in v.split(",") if part.strip()]
        return v

    @field_validator("backends", mode="before")
    @classmethod
    def merge_default_backends(cls, v: Any) -> Any:
        """Overlay configured backends on the built-in defaults."""
        if not isinstance(v, dict):
            return v
        merged: dict[str, Any] = {
            name: cfg.model_dump() for name, cfg in _default_backends().items()
        }
        for name, cfg in v.items():
            if isinstance(cfg, BackendConfig):
                cfg = cfg.model_dump()
            if name in merged and isinstance(cfg, dict):
                merged[name] = _deep_merge(merged[name], cfg)
            else:
                merged[name] = cfg
        return merged

    def ordered_backends(self) -> list[tuple[str, BackendConfig]]:
        """Enabled backends in priority order.

        Unknown names in ``backend_order`` are skipped.
        """
        ordered = []
        for name in self.backend_order:
            config = self.backends.get(name)
            if config is not None and config.enabled:
                ordered.append((name, config))
        return ordered


class Settings(BaseModel):
    """Main settings container."""

    general: GeneralConfig = Field(default_factory=GeneralConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    anonymization: AnonymizationConfig = Field(default_factory=AnonymizationConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)


def _deep_merge(base: dict, override: dict) -> dict:
    """Deep merge two dictionaries.

    Args:
        base: Base dictionary.
        override: Override dictionary.

    Returns:
        Merged dictionary.
    """
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _load_yaml_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _load_yaml_config(config_dir: Path) -> dict[str, Any]:
    """Load settings.yaml with local.yaml overrides.

    local.yaml mirrors the structure of settings.yaml and wins on conflicts.

    Args:
        config_dir: Configuration directory path.

    Returns:
        Merged configuration dictionary.
    """
    config = _load_yaml_file(config_dir / "settings.yaml")
    local_overrides = _load_yaml_file(config_dir / "local.yaml")
    if local_overrides:
        config = _deep_merge(config, local_overrides)
    return config


def _apply_env_overrides(config: dict[str, Any]) -> dict[str, Any]:
    """Apply environment variable overrides.

    Environment variables should be prefixed with MIRROR_ and use
    double underscores for nested keys.

    Example:
        MIRROR_GENERAL__LOG_LEVEL=DEBUG
        MIRROR_SEARCH__BACKENDS__SEARXNG__ENABLED=true

    Args:
        config: Configuration dictionary.

    Returns:
        Configuration with environment overrides.
    """
    prefix = "MIRROR_"

    for key, value in os.environ.items():
        if not key.startswith(prefix) or key == "MIRROR_CONFIG_DIR":
            continue

        key_path = key[len(prefix) :].lower().split("__")

        current = config
        for part in key_path[:-1]:
            if not isinstance(current.get(part), dict):
                current[part] = {}
            current = current[part]

        final_key = key_path[-1]
        try:
            if value.lower() in ("true", "false"):
                current[final_key] = value.lower() == "true"
            elif "." in value:
                current[final_key] = float(value)
            else:
                current[final_key] = int(value)
        except ValueError:
            current[final_key] = value

    return config


def load_settings(config_dir: str | Path | None = None) -> Settings:
    """Load settings without caching.

    Args:
        config_dir: Directory holding settings.yaml. Defaults to
            MIRROR_CONFIG_DIR or ./config.

    Returns:
        Settings instance.
    """
    if config_dir is None:
        config_dir = os.environ.get("MIRROR_CONFIG_DIR", "config")

    config = _load_yaml_config(Path(config_dir))
    config = _apply_env_overrides(config)
    return Settings(**config)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get application settings.

    Settings are loaded from:
    1. Default values
    2. YAML configuration files
    3. Environment variables (highest priority)

    Returns:
        Settings instance.
    """
    return load_settings()


def get_project_root() -> Path:
    """Get the project root directory."""
    # mirror/utils/config.py
    return Path(__file__).parent.parent.parent
