"""Application settings loaded from environment variables."""

from __future__ import annotations

from pydantic import Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_FALSE_VALUES = frozenset({"", "0", "false", "no", "off"})

# Environment variable names for fields that may be reported as missing.
_ENV_NAMES = {
    "url": "ERPNEXT_URL",
    "api_key": "ERPNEXT_API_KEY",
    "api_secret": "ERPNEXT_API_SECRET",
}


class ConfigurationError(Exception):
    """Raised when the environment does not describe a usable configuration."""


class Settings(BaseSettings):
    """ERPNext MCP server configuration."""

    model_config = SettingsConfigDict(
        env_prefix="ERPNEXT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
        populate_by_name=True,
    )

    url: str
    """Base URL of the ERPNext site, including the protocol (ERPNEXT_URL)."""

    api_key: str | None = None
    """API key of the ERPNext user the server acts as (ERPNEXT_API_KEY)."""

    api_secret: str | None = None
    """API secret paired with ``api_key`` (ERPNEXT_API_SECRET)."""

    timeout: float = 30.0
    """Timeout in seconds for each request to ERPNext (ERPNEXT_TIMEOUT)."""

    port: int = Field(default=3000, validation_alias="MCP_PORT")
    """Port the HTTP transport listens on."""

    host: str = Field(default="0.0.0.0", validation_alias="MCP_HOST")
    """Interface the HTTP transport binds to."""

    debug: bool = Field(default=False, validation_alias="DEBUG")
    """Enable verbose (DEBUG level) logging."""

    @field_validator("url")
    @classmethod
    def _check_url(cls, v: str) -> str:
        """Require a protocol and drop a trailing slash."""
        v = v.strip()
        if not v:
            raise ValueError("ERPNEXT_URL environment variable is required")
        if not v.startswith("http"):
            raise ValueError("ERPNEXT_URL must include protocol (http:// or https://)")
        return v.removesuffix("/")

    @field_validator("api_key", "api_secret", mode="before")
    @classmethod
    def _blank_to_none(cls, v: object) -> object:
        """Treat an empty environment variable as unset."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("debug", mode="before")
    @classmethod
    def _parse_debug(cls, v: object) -> object:
        """Any non-empty DEBUG value other than an explicit false enables it."""
        if isinstance(v, str):
            return v.strip().lower() not in _FALSE_VALUES
        return v

    @model_validator(mode="after")
    def _check_credentials(self) -> Settings:
        if bool(self.api_key) != bool(self.api_secret):
            raise ValueError(
                "Both ERPNEXT_API_KEY and ERPNEXT_API_SECRET must be provided "
                "if using API key authentication"
            )
        return self

    @property
    def has_api_key_auth(self) -> bool:
        """True when both API key and secret are configured."""
        return bool(self.api_key and self.api_secret)


def describe_validation_error(exc: ValidationError) -> str:
    """Render a pydantic ValidationError as the messages an operator expects."""
    messages: list[str] = []
    for error in exc.errors():
        field = str(error["loc"][0]) if error["loc"] else ""
        if error["type"] == "missing":
            name = _ENV_NAMES.get(field, field.upper())
            messages.append(f"{name} environment variable is required")
        elif "error" in error.get("ctx", {}):
            messages.append(str(error["ctx"]["error"]))
        else:
            messages.append(f"{field}: {error['msg']}" if field else error["msg"])
    return "; ".join(messages)


_settings: Settings | None = None


def get_settings() -> Settings:
    """Return the cached settings instance.

    Raises ConfigurationError when the environment is incomplete or invalid.
    """
    global _settings
    if _settings is None:
        try:
            _settings = Settings()  # type: ignore[call-arg]
        except ValidationError as exc:
            raise ConfigurationError(describe_validation_error(exc)) from exc
    return _settings
