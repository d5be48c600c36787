"""
Bridge configuration loaded from the environment or the add-on options file.

Uses Pydantic BaseSettings for automatic loading and validation. Values are
read, in priority order, from constructor kwargs, environment variables, a
``.env`` file and finally the Home Assistant add-on ``/data/options.json``
(path overridable with ``SOLARSYNK_OPTIONS_FILE``). Each field accepts both
its snake_case name and the add-on option name (e.g. ``HA_LongLiveToken``).

CHANGELOG:
- 2026-10-19: Verify_HA_SSL option, certificate check off by default
- 2026-10-13: Accept add-on option names via /data/options.json (STORY-108)
- 2026-10-12: Initial creation (STORY-101)

TODO:
- None
"""

from __future__ import annotations

import os

from pydantic import AliasChoices, Field, SecretStr, ValidationError, field_validator
from pydantic_settings import (
    BaseSettings,
    JsonConfigSettingsSource,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from solarsynk.src.errors import ConfigMissing

DEFAULT_OPTIONS_FILE = "/data/options.json"
"""Where the Home Assistant supervisor mounts the add-on options."""

CONFIG_RETRY_S: int = 300
"""Fixed wait before reloading configuration after a failure."""


class BridgeSettings(BaseSettings):
    """Bridge configuration for the Sunsynk-to-Home-Assistant pipeline.

    Attributes:
        sunsynk_user: Sunsynk cloud account username (e-mail).
        sunsynk_pass: Sunsynk cloud account password.
        sunsynk_serial: Inverter serial number to read.
        ha_token: Home Assistant long-lived access token.
        ha_host: Home Assistant IP address / hostname.
        ha_port: Home Assistant HTTP port (default 8123).
        refresh_rate_s: Seconds between cycles. Values below 10 are rejected.
        enable_https: Talk to Home Assistant over HTTPS instead of HTTP.
        ha_verify_ssl: Verify the Home Assistant TLS certificate.
            Off by default, as for a self-signed add-on certificate.
        verbose: Log raw response bodies and extracted values at DEBUG.
        settings_helper_entity: Entity id of the input_text helper used for
            settings pushback.
        api_base_url: Sunsynk cloud API base URL (must be HTTPS).
        request_timeout_s: Per-request timeout in seconds.
        scratch_dir: Directory for the encryptor's ephemeral scratch files.
        health_path: Path of the JSON health file.
    """

    sunsynk_user: str = Field(min_length=1)
    sunsynk_pass: SecretStr
    sunsynk_serial: str = Field(min_length=1)
    ha_token: SecretStr = Field(
        validation_alias=AliasChoices("ha_token", "HA_LongLiveToken"),
    )
    ha_host: str = Field(
        min_length=1,
        validation_alias=AliasChoices("ha_host", "Home_Assistant_IP"),
    )
    ha_port: int = Field(
        default=8123,
        validation_alias=AliasChoices("ha_port", "Home_Assistant_PORT"),
    )
    refresh_rate_s: int = Field(
        default=300,
        validation_alias=AliasChoices("refresh_rate_s", "Refresh_rate"),
    )
    enable_https: bool = Field(
        default=False,
        validation_alias=AliasChoices("enable_https", "Enable_HTTPS"),
    )
    ha_verify_ssl: bool = Field(
        default=False,
        validation_alias=AliasChoices("ha_verify_ssl", "Verify_HA_SSL"),
    )
    verbose: bool = Field(
        default=False,
        validation_alias=AliasChoices("verbose", "Enable_Verbose_Log"),
    )
    settings_helper_entity: str = Field(
        default="input_text.solarsynk_inverter_settings",
        validation_alias=AliasChoices("settings_helper_entity", "Settings_Helper_Entity"),
    )
    api_base_url: str = "https://api.sunsynk.net"
    request_timeout_s: float = 30.0
    scratch_dir: str = "/tmp/solarsynk"
    health_path: str = "/data/health.json"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        populate_by_name=True,
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Append the add-on options file as the lowest-priority source."""
        options_file = os.environ.get("SOLARSYNK_OPTIONS_FILE", DEFAULT_OPTIONS_FILE)
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            JsonConfigSettingsSource(settings_cls, json_file=options_file),
            file_secret_settings,
        )

    @property
    def ha_base_url(self) -> str:
        """Home Assistant base URL built from scheme, host and port."""
        scheme = "https" if self.enable_https else "http"
        return f"{scheme}://{self.ha_host}:{self.ha_port}"

    @field_validator("ha_port")
    @classmethod
    def ha_port_must_be_valid(cls, v: int) -> int:
        """Validate the Home Assistant port is in valid range."""
        if v < 1 or v > 65535:
            raise ValueError("HA_PORT must be between 1 and 65535")
        return v

    @field_validator("refresh_rate_s")
    @classmethod
    def refresh_rate_must_be_reasonable(cls, v: int) -> int:
        """Reject refresh intervals that would hammer the Sunsynk cloud."""
        if v < 10:
            raise ValueError("REFRESH_RATE_S must be >= 10")
        return v

    @field_validator("api_base_url")
    @classmethod
    def api_base_url_must_be_https(cls, v: str) -> str:
        """The cloud API carries credentials, so it must use HTTPS."""
        if not v.lower().startswith("https://"):
            raise ValueError(f"API_BASE_URL must use HTTPS (got: '{v[:20]}...')")
        return v.rstrip("/")

    @field_validator("settings_helper_entity")
    @classmethod
    def helper_must_be_entity_id(cls, v: str) -> str:
        """Validate the helper looks like ``<domain>.<object_id>``."""
        domain, _, object_id = v.partition(".")
        if not domain or not object_id:
            raise ValueError(
                f"SETTINGS_HELPER_ENTITY must be an entity id like "
                f"'input_text.solarsynk_inverter_settings' (got: '{v}')"
            )
        return v


def load_settings() -> BridgeSettings:
    """Load settings, translating validation failures into ConfigMissing.

    Raises:
        ConfigMissing: If a required value is missing or any value is invalid.
    """
    try:
        return BridgeSettings()  # type: ignore[call-arg]
    except ValidationError as exc:
        fields = sorted({".".join(str(p) for p in err["loc"]) for err in exc.errors()})
        raise ConfigMissing(
            f"Invalid or missing configuration: {', '.join(fields)}"
        ) from exc
