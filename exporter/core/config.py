import json
import re
from enum import Enum
from pathlib import Path
from typing import Any, Literal

from pydantic import AliasChoices, Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from core.errors import ConfigurationError

# Keys accepted in a JSON config file that differ from the field names.
_FILE_KEY_ALIASES = {
    "rabbit_pass": "rabbit_password",
    "exlude_metrics": "exclude_metrics",
    "enabled_exporters": "rabbit_exporters",
    "timeout": "rabbit_timeout",
    "insecure_skip_verify": "skip_verify",
}

_URL_PATTERN = re.compile(r"https?://[a-zA-Z.0-9]+")


class Capability(str, Enum):
    """Optional behaviour toggles for the management API client."""

    NO_SORT = "no_sort"  # ask the broker not to sort listings, keep arrival order
    BERT = "bert"  # request application/bert instead of JSON


def _split_csv(value: Any) -> Any:
    """Accept both ``"a,b"`` (env) and ``["a", "b"]`` (config file)."""
    if isinstance(value, (list, tuple)):
        return ",".join(str(item) for item in value)
    return value


class Settings(BaseSettings):
    # Management API
    rabbit_url: str = "http://127.0.0.1:15672"
    rabbit_user: str = "guest"
    rabbit_user_file: str = ""
    rabbit_password: str = "guest"
    rabbit_password_file: str = ""
    rabbit_connection: Literal["direct", "loadbalancer"] = "direct"
    rabbit_capabilities: str = "no_sort,bert"
    rabbit_exporters: str = "exchange,node,overview,queue,cpu"
    rabbit_timeout: int = Field(30, gt=0)
    aliveness_vhost: str = "/"

    # TLS
    ca_file: str = Field("ca.pem", validation_alias=AliasChoices("ca_file", "cafile"))
    cert_file: str = Field(
        "client-cert.pem", validation_alias=AliasChoices("cert_file", "certfile")
    )
    key_file: str = Field(
        "client-key.pem", validation_alias=AliasChoices("key_file", "keyfile")
    )
    skip_verify: bool = Field(
        False, validation_alias=AliasChoices("skip_verify", "skipverify")
    )

    # Listener
    publish_port: int = Field(9419, gt=0, lt=65536)
    publish_addr: str = ""
    output_format: Literal["TTY", "JSON"] = "TTY"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"

    # Entity filters (regular expressions, unanchored)
    include_exchanges: str = ".*"
    skip_exchanges: str = "^$"
    include_queues: str = ".*"
    skip_queues: str = "^$"
    include_vhost: str = ".*"
    skip_vhost: str = "^$"
    max_queues: int = Field(0, ge=0)
    exclude_metrics: str = ""

    # Time-series API used by the cpu exporter
    prometheus_host: str = ""
    prometheus_port: str = ""
    resource_id: str = ""
    service_instance_guid: str = ""
    service_namespace: str = ""

    model_config = SettingsConfigDict(
        env_ignore_empty=True,
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("rabbit_url")
    @classmethod
    def _check_url(cls, value: str) -> str:
        if not _URL_PATTERN.match(value.lower()):
            raise ValueError("rabbit URL must start with http:// or https://")
        return value

    @field_validator("output_format", "log_level", mode="before")
    @classmethod
    def _upper_choice(cls, value: Any) -> Any:
        return value.upper() if isinstance(value, str) else value

    @field_validator("rabbit_capabilities", "rabbit_exporters", "exclude_metrics", mode="before")
    @classmethod
    def _join_lists(cls, value: Any) -> Any:
        return _split_csv(value)

    @field_validator("rabbit_capabilities")
    @classmethod
    def _check_capabilities(cls, value: str) -> str:
        known = {cap.value for cap in Capability}
        unknown = [item for item in _csv(value) if item not in known]
        if unknown:
            raise ValueError(
                f"unknown capabilities {unknown}, expected any of {sorted(known)}"
            )
        return value

    @field_validator(
        "include_exchanges",
        "skip_exchanges",
        "include_queues",
        "skip_queues",
        "include_vhost",
        "skip_vhost",
    )
    @classmethod
    def _check_pattern(cls, value: str) -> str:
        try:
            re.compile(value)
        except re.error as exc:
            raise ValueError(f"invalid regular expression {value!r}: {exc}") from exc
        return value

    @model_validator(mode="after")
    def _read_secret_files(self) -> "Settings":
        """File-backed credentials take precedence over direct values."""
        if self.rabbit_user_file:
            self.rabbit_user = _read_secret(self.rabbit_user_file)
        if self.rabbit_password_file:
            self.rabbit_password = _read_secret(self.rabbit_password_file)
        return self

    @property
    def capabilities(self) -> frozenset[Capability]:
        return frozenset(Capability(item) for item in _csv(self.rabbit_capabilities))

    @property
    def enabled_exporters(self) -> list[str]:
        return _csv(self.rabbit_exporters)

    @property
    def excluded_metrics(self) -> frozenset[str]:
        return frozenset(_csv(self.exclude_metrics))

    @property
    def timeseries_url(self) -> str:
        return f"http://{self.prometheus_host}:{self.prometheus_port}"

    def has_capability(self, capability: Capability) -> bool:
        return capability in self.capabilities

    def self_label(self, is_self: bool) -> str:
        """Value of the ``self`` label for an entity living on a given node."""
        if self.rabbit_connection == "loadbalancer":
            return "lb"
        return "1" if is_self else "0"


def _csv(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def _read_secret(path: str) -> str:
    try:
        return Path(path).read_text().strip()
    except OSError as exc:
        raise ValueError(f"cannot read secret file {path}: {exc}") from exc


def load_settings(config_file: str | None = None, **overrides: Any) -> Settings:
    """Build settings from a JSON config file or the environment.

    Any validation problem is reported as a ``ConfigurationError`` so the
    caller can refuse to start.
    """
    data: dict[str, Any] = {}
    if config_file:
        try:
            raw = json.loads(Path(config_file).read_text())
        except (OSError, json.JSONDecodeError) as exc:
            raise ConfigurationError(f"cannot load config file {config_file}: {exc}") from exc
        if not isinstance(raw, dict):
            raise ConfigurationError(f"config file {config_file} must contain a JSON object")
        data = {_FILE_KEY_ALIASES.get(key, key): value for key, value in raw.items()}
    data.update(overrides)

    try:
        return Settings(**data)
    except ValidationError as exc:
        raise ConfigurationError(str(exc)) from exc
