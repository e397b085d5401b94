"""Configuration loader that keeps all runtime constants centralized."""
from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List
from urllib.parse import quote

try:
    import yaml
except ImportError as exc:  # pragma: no cover - library is optional until runtime
    raise RuntimeError("PyYAML is required to load the application configuration") from exc


CONFIG_PATH = Path(__file__).resolve().parent / "app_config.yaml"
DEFAULT_DB_PATH = Path(__file__).resolve().parent.parent / "offers.db"


@dataclass(frozen=True)
class AppConfig:
    """Strongly-typed wrapper over the raw YAML document."""

    raw: Dict[str, Any]

    @property
    def version(self) -> str:
        return str(self.raw.get("version", "v1"))

    @property
    def database(self) -> Dict[str, Any]:
        return self.raw.get("database") or {}

    @property
    def reporting(self) -> Dict[str, Any]:
        return self.raw.get("reporting") or {}

    @property
    def rates(self) -> Dict[str, Any]:
        return self.raw.get("rates") or {}

    @property
    def server(self) -> Dict[str, Any]:
        return self.raw.get("server") or {}

    @property
    def database_url(self) -> str:
        """Connection string; the environment wins over the YAML file."""
        env_url = os.environ.get("DATABASE_URL")
        if env_url:
            return env_url
        if os.environ.get("DB_HOST"):
            password = quote(os.environ.get("DB_PASSWORD", ""), safe="")
            return (
                f"postgresql+psycopg://{os.environ.get('DB_USER', '')}:{password}"
                f"@{os.environ['DB_HOST']}:{os.environ.get('DB_PORT', '5432')}"
                f"/{os.environ.get('DB_NAME', '')}"
            )
        return str(self.database.get("url") or f"sqlite:///{DEFAULT_DB_PATH}")

    @property
    def database_echo(self) -> bool:
        return bool(self.database.get("echo", False))

    @property
    def max_buckets(self) -> int:
        return int(self.reporting.get("max_buckets", 90))

    @property
    def rate_providers(self) -> List[Dict[str, Any]]:
        return list(self.rates.get("providers") or [])

    @property
    def rate_refresh_seconds(self) -> float:
        return float(self.rates.get("refresh_seconds", 300))

    @property
    def rate_timeout_seconds(self) -> float:
        return float(self.rates.get("timeout_seconds", 10))

    @property
    def rate_currency(self) -> str:
        return str(self.rates.get("currency", "PLN"))

    @property
    def cors_origins(self) -> List[str]:
        return list(self.server.get("cors_origins") or [])

    @property
    def log_level(self) -> str:
        return str((self.raw.get("logging") or {}).get("level", "INFO")).upper()


@lru_cache(maxsize=1)
def get_settings(path: Path | None = None) -> AppConfig:
    """Load configuration once per process."""

    config_path = path or CONFIG_PATH
    data = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):  # pragma: no cover - invalid file guard
        raise ValueError("Configuration file must define a mapping at the top level.")
    return AppConfig(raw=data)
