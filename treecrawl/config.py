"""Typed crawl configuration with JSON/YAML load/save helpers."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Mapping

import yaml  # type: ignore

from .constants import (
    DEFAULT_CHILD_TIMEOUT_SECONDS,
    DEFAULT_CONCURRENT,
    DEFAULT_DETAILED_ERRORS,
    DEFAULT_MAX_WORKERS,
    DEFAULT_REPORT_PATH,
    DEFAULT_REQUEST_TIMEOUT_SECONDS,
    DEFAULT_RESPECT_ROBOTS,
    DEFAULT_RETRIES,
    DEFAULT_RETRY_BACKOFF_SECONDS,
    DEFAULT_USER_AGENT,
    JSON_INDENT,
    SUPPORTED_CONFIG_SUFFIXES,
)
from .types import JSONDict
from .url import is_http_url, normalize_allowed_domains


def _as_float(value: Any, key: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid float for '{key}': {value!r}") from exc


def _as_int(value: Any, key: str) -> int:
    if isinstance(value, bool):
        raise ValueError(f"Invalid int for '{key}': {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid int for '{key}': {value!r}") from exc


def _as_bool(value: Any, key: str) -> bool:
    if isinstance(value, bool):
        return value
    raise ValueError(f"Invalid bool for '{key}': {value!r}")


@dataclass(frozen=True, slots=True)
class CrawlConfig:
    """Immutable configuration for one crawl run."""

    root_url: str
    max_depth: int
    allowed_domains: tuple[str, ...] = ()

    concurrent: bool = DEFAULT_CONCURRENT
    max_workers: int = DEFAULT_MAX_WORKERS
    child_timeout_seconds: float = DEFAULT_CHILD_TIMEOUT_SECONDS

    request_timeout_seconds: float = DEFAULT_REQUEST_TIMEOUT_SECONDS
    retries: int = DEFAULT_RETRIES
    retry_backoff_seconds: float = DEFAULT_RETRY_BACKOFF_SECONDS

    user_agent: str = DEFAULT_USER_AGENT
    respect_robots: bool = DEFAULT_RESPECT_ROBOTS

    detailed_errors: bool = DEFAULT_DETAILED_ERRORS
    report_path: str = DEFAULT_REPORT_PATH

    def __post_init__(self) -> None:
        root_url = (self.root_url or "").strip()
        if not is_http_url(root_url):
            raise ValueError(f"root_url must be an absolute http(s) URL: {self.root_url!r}")
        object.__setattr__(self, "root_url", root_url)
        object.__setattr__(
            self,
            "allowed_domains",
            normalize_allowed_domains(self.allowed_domains),
        )

        if self.max_depth < 0:
            raise ValueError("max_depth must be >= 0")
        if self.max_workers <= 0:
            raise ValueError("max_workers must be > 0")
        if self.child_timeout_seconds <= 0:
            raise ValueError("child_timeout_seconds must be > 0")
        if self.request_timeout_seconds <= 0:
            raise ValueError("request_timeout_seconds must be > 0")
        if self.retries < 0:
            raise ValueError("retries must be >= 0")
        if self.retry_backoff_seconds < 0:
            raise ValueError("retry_backoff_seconds must be >= 0")
        if not self.user_agent or not self.user_agent.strip():
            raise ValueError("user_agent cannot be empty")
        if not self.report_path:
            raise ValueError("report_path cannot be empty")

    def replace(self, **changes: Any) -> "CrawlConfig":
        """Return a copy with selected fields replaced."""

        payload = self.to_dict()
        payload.update(changes)
        return CrawlConfig.from_dict(payload)

    def to_dict(self) -> JSONDict:
        """Serialize config for reports and reproducibility."""

        return {
            "root_url": self.root_url,
            "max_depth": self.max_depth,
            "allowed_domains": list(self.allowed_domains),
            "concurrent": self.concurrent,
            "max_workers": self.max_workers,
            "child_timeout_seconds": self.child_timeout_seconds,
            "request_timeout_seconds": self.request_timeout_seconds,
            "retries": self.retries,
            "retry_backoff_seconds": self.retry_backoff_seconds,
            "user_agent": self.user_agent,
            "respect_robots": self.respect_robots,
            "detailed_errors": self.detailed_errors,
            "report_path": self.report_path,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "CrawlConfig":
        """Build config from a parsed dictionary."""

        for key in ("root_url", "max_depth"):
            if key not in payload:
                raise ValueError(f"Config missing required key: '{key}'")

        raw_domains = payload.get("allowed_domains")
        if raw_domains is None:
            raw_domains = ()
        elif not isinstance(raw_domains, (str, list, tuple)):
            raise ValueError(f"Invalid allowed_domains: {raw_domains!r}")

        return cls(
            root_url=str(payload["root_url"]),
            max_depth=_as_int(payload["max_depth"], "max_depth"),
            allowed_domains=normalize_allowed_domains(raw_domains),
            concurrent=_as_bool(payload.get("concurrent", DEFAULT_CONCURRENT), "concurrent"),
            max_workers=_as_int(payload.get("max_workers", DEFAULT_MAX_WORKERS), "max_workers"),
            child_timeout_seconds=_as_float(
                payload.get("child_timeout_seconds", DEFAULT_CHILD_TIMEOUT_SECONDS),
                "child_timeout_seconds",
            ),
            request_timeout_seconds=_as_float(
                payload.get("request_timeout_seconds", DEFAULT_REQUEST_TIMEOUT_SECONDS),
                "request_timeout_seconds",
            ),
            retries=_as_int(payload.get("retries", DEFAULT_RETRIES), "retries"),
            retry_backoff_seconds=_as_float(
                payload.get("retry_backoff_seconds", DEFAULT_RETRY_BACKOFF_SECONDS),
                "retry_backoff_seconds",
            ),
            user_agent=str(payload.get("user_agent", DEFAULT_USER_AGENT)),
            respect_robots=_as_bool(
                payload.get("respect_robots", DEFAULT_RESPECT_ROBOTS),
                "respect_robots",
            ),
            detailed_errors=_as_bool(
                payload.get("detailed_errors", DEFAULT_DETAILED_ERRORS),
                "detailed_errors",
            ),
            report_path=str(payload.get("report_path", DEFAULT_REPORT_PATH)),
        )

    @classmethod
    def create(
        cls,
        root_url: str,
        max_depth: int,
        allowed_domains: Iterable[str] | str = (),
        **kwargs: Any,
    ) -> "CrawlConfig":
        """Convenience constructor accepting a comma-separated domain string."""

        return cls(
            root_url=root_url,
            max_depth=max_depth,
            allowed_domains=normalize_allowed_domains(allowed_domains),
            **kwargs,
        )


def _load_yaml(path: Path) -> dict[str, Any]:
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"YAML config at {path} must be a mapping at top level")
    return data


def load_config_payload(path: str | Path) -> dict[str, Any]:
    """Read a JSON/YAML config file into a plain mapping without validating it."""

    config_path = Path(path)
    suffix = config_path.suffix.lower()
    if suffix not in SUPPORTED_CONFIG_SUFFIXES:
        raise ValueError(
            f"Unsupported config suffix '{suffix}'. Supported: {SUPPORTED_CONFIG_SUFFIXES}"
        )

    if suffix == ".json":
        payload = json.loads(config_path.read_text(encoding="utf-8"))
    else:
        payload = _load_yaml(config_path)

    if not isinstance(payload, dict):
        raise ValueError(f"Config at {config_path} must be a mapping")
    return payload


def load_config(path: str | Path) -> CrawlConfig:
    """Load CrawlConfig from JSON/YAML path."""

    return CrawlConfig.from_dict(load_config_payload(path))


def save_config(config: CrawlConfig, path: str | Path) -> None:
    """Save CrawlConfig as JSON or YAML based on file extension."""

    out_path = Path(path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    suffix = out_path.suffix.lower()
    payload = config.to_dict()

    if suffix == ".json":
        out_path.write_text(
            json.dumps(payload, indent=JSON_INDENT, sort_keys=True) + "\n",
            encoding="utf-8",
        )
        return

    if suffix in {".yaml", ".yml"}:
        out_path.write_text(yaml.safe_dump(payload, sort_keys=False), encoding="utf-8")
        return

    raise ValueError(
        f"Unsupported config suffix '{suffix}'. Supported: {SUPPORTED_CONFIG_SUFFIXES}"
    )


__all__ = [
    "CrawlConfig",
    "load_config",
    "load_config_payload",
    "save_config",
]
