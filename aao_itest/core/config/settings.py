"""
Harness settings — timeouts, intervals and targets for a run.

Sources, lowest precedence first:
    1. Field defaults
    2. ``itest.yml`` (found by walking up from cwd) or ``--config PATH``
    3. Environment variables (the names the CI jobs already export)

The result is an immutable ``HarnessSettings``. Scenario-specific
values (claim names, expected tags) live in each scenario's own
frozen config model, built from the same environment.
"""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any, ClassVar, TypeVar

import yaml
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

logger = logging.getLogger(__name__)

# Default config filename
SETTINGS_FILE = "itest.yml"

# field name → environment variable
ENV_VARS: dict[str, str] = {
    "ready_timeout": "ACCOUNT_CLAIM_READY_TIMEOUT",
    "delete_timeout": "RESOURCE_DELETE_TIMEOUT",
    "poll_interval": "SLEEP_INTERVAL",
    "skip_preflight": "SKIP_PREFLIGHT_CHECKS",
    "operator_namespace": "NAMESPACE",
    "cli": "AAO_ITEST_CLI",
    "request_timeout": "AAO_ITEST_REQUEST_TIMEOUT",
    "byoc_account_id": "OSD_STAGING_2_AWS_ACCOUNT_ID",
    "aws_profile": "AAO_ITEST_AWS_PROFILE",
    "aws_region": "AWS_REGION",
}

_DURATION_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([smh]?)\s*$", re.IGNORECASE)
_UNIT_SECONDS = {"": 1, "s": 1, "m": 60, "h": 3600}
_TRUE = frozenset({"1", "true", "yes", "on"})
_FALSE = frozenset({"0", "false", "no", "off", ""})


class ConfigError(Exception):
    """Raised when harness configuration is invalid."""


def parse_duration(value: Any) -> float:
    """Seconds from ``300``, ``"300"``, ``"30s"``, ``"5m"`` or ``"1h"``.

    Raises:
        ValueError: For anything else, or a negative value.
    """
    if isinstance(value, bool):
        raise ValueError(f"Not a duration: {value!r}")
    if isinstance(value, (int, float)):
        seconds = float(value)
    else:
        match = _DURATION_RE.match(str(value))
        if not match:
            raise ValueError(f"Not a duration: {value!r}")
        seconds = float(match.group(1)) * _UNIT_SECONDS[match.group(2).lower()]
    if seconds < 0:
        raise ValueError(f"Duration must not be negative: {value!r}")
    return seconds


def parse_flag(value: Any) -> bool:
    """Interpret shell-style booleans (``true``, ``1``, ``yes`` ...)."""
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ValueError(f"Not a boolean: {value!r}")


class HarnessSettings(BaseModel):
    """Run-wide settings shared by every scenario."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    ready_timeout: float = 300.0
    delete_timeout: float = 120.0
    poll_interval: float = 10.0
    request_timeout: float = 30.0
    skip_preflight: bool = False

    operator_namespace: str = "aws-account-operator"
    cli: str = "oc"

    byoc_account_id: str = ""
    aws_profile: str = "osd-staging-2"
    aws_region: str = "us-east-1"

    @field_validator("ready_timeout", "delete_timeout", "poll_interval", "request_timeout", mode="before")
    @classmethod
    def _duration(cls, value: Any) -> float:
        return parse_duration(value)

    @field_validator("skip_preflight", mode="before")
    @classmethod
    def _flag(cls, value: Any) -> bool:
        return parse_flag(value)

    @field_validator("poll_interval")
    @classmethod
    def _positive_interval(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("poll_interval must be greater than zero")
        return value

    @field_validator("cli")
    @classmethod
    def _known_cli(cls, value: str) -> str:
        if value not in ("oc", "kubectl"):
            raise ValueError(f"cli must be 'oc' or 'kubectl', got {value!r}")
        return value

    @field_validator("byoc_account_id", mode="before")
    @classmethod
    def _account_text(cls, value: Any) -> str:
        # YAML reads a bare 12-digit account id as an int
        return "" if value is None else str(value)


def find_settings_file(start_dir: Path | None = None) -> Path | None:
    """Search for itest.yml starting from the given directory, walking up."""
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / SETTINGS_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break  # filesystem root
        current = parent

    return None


def _read_file(path: Path) -> dict[str, Any]:
    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    logger.debug("Loading harness settings from %s", path)
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    # The file may wrap everything under a "settings" key or be flat
    settings = data.get("settings", data)
    if not isinstance(settings, dict):
        raise ConfigError(f"Expected a mapping under 'settings' in {path}, got {type(settings).__name__}")
    return dict(settings)


def env_overrides(environ: Mapping[str, str]) -> dict[str, str]:
    """Pick the harness variables out of an environment mapping."""
    return {
        field_name: environ[var]
        for field_name, var in ENV_VARS.items()
        if var in environ and environ[var] != ""
    }


def load_settings(
    path: Path | None = None,
    environ: Mapping[str, str] | None = None,
    *,
    search: bool = True,
) -> HarnessSettings:
    """Load and validate harness settings.

    Args:
        path: Explicit settings file. If None and ``search`` is set,
            looks for itest.yml upward from cwd.
        environ: Environment mapping (default: ``os.environ``).

    Raises:
        ConfigError: If the file or any value is invalid.
    """
    environ = os.environ if environ is None else environ

    if path is None and search:
        path = find_settings_file()

    data: dict[str, Any] = _read_file(path) if path is not None else {}
    data.update(env_overrides(environ))

    try:
        settings = HarnessSettings.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid harness settings: {e}") from e

    logger.debug(
        "Settings: ready_timeout=%.0fs delete_timeout=%.0fs poll_interval=%.0fs cli=%s",
        settings.ready_timeout,
        settings.delete_timeout,
        settings.poll_interval,
        settings.cli,
    )
    return settings


class ScenarioSettings(BaseModel):
    """Base for per-scenario frozen configuration.

    Subclasses declare their fields plus an ``ENV`` class mapping of
    field name → environment variable.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    ENV: ClassVar[dict[str, str]] = {}

    @classmethod
    def from_env(
        cls: type[_S],
        environ: Mapping[str, str] | None = None,
        defaults: Mapping[str, Any] | None = None,
        **overrides: Any,
    ) -> _S:
        """Build from defaults, then environment variables, then overrides.

        Raises:
            ConfigError: If a value is invalid.
        """
        environ = os.environ if environ is None else environ
        data: dict[str, Any] = {k: v for k, v in (defaults or {}).items() if v not in (None, "")}
        data.update(
            {
                field_name: environ[var]
                for field_name, var in cls.ENV.items()
                if environ.get(var)
            }
        )
        data.update({k: v for k, v in overrides.items() if v is not None})
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigError(f"Invalid {cls.__name__}: {e}") from e


_S = TypeVar("_S", bound=ScenarioSettings)
