"""Provider configuration loading for the presigner.

Providers come from one of two sources, environment first:
1. Environment variables (CI/CD)
2. A config.json file (local development)

Environment Variable Format:
    PROVIDER_{KEY}=Name|Endpoint|Region|Style
    {KEY}_ACCESS_KEY=xxx
    {KEY}_SECRET_KEY=xxx
    {KEY}_BUCKET=xxx
    {KEY}_PRESIGN_EXPIRES=seconds (optional, default 3600)

Example:
    PROVIDER_B2=Backblaze B2|https://s3.us-west-000.backblazeb2.com|us-west-000|virtual
    B2_ACCESS_KEY=your-access-key
    B2_SECRET_KEY=your-secret-key
    B2_BUCKET=your-bucket-name
    B2_PRESIGN_EXPIRES=900
"""

import json
import os
from pathlib import Path
from typing import Any

from presigner.models import ProviderConfig

ENV_PREFIX = "PROVIDER_"

# Supported S3 addressing styles
ADDRESSING_STYLES = ("path", "virtual")

# Default validity window for presigned URLs, in seconds
DEFAULT_PRESIGN_EXPIRES = 3600

# SigV4 maximum: one week
MAX_PRESIGN_EXPIRES = 7 * 24 * 60 * 60

# Fields every JSON provider entry must carry
REQUIRED_FIELDS = (
    "provider_name",
    "endpoint_url",
    "aws_access_key_id",
    "aws_secret_access_key",
    "region_name",
    "bucket_name",
)

# ProviderConfig field -> suffix of the {KEY}_* variable holding it
ENV_SECRETS = {
    "aws_access_key_id": "ACCESS_KEY",
    "aws_secret_access_key": "SECRET_KEY",
    "bucket_name": "BUCKET",
}


class ConfigError(Exception):
    """Raised when configuration loading fails."""

    pass


def _parse_addressing_style(value: str, source: str) -> str:
    if value not in ADDRESSING_STYLES:
        raise ConfigError(
            f"Invalid addressing style for {source}: {value!r} "
            f"(expected one of: {', '.join(ADDRESSING_STYLES)})"
        )
    return value


def _parse_expires(value: Any, source: str) -> int:
    """Parse a presign expiry in whole seconds.

    Raises:
        ConfigError: If the value is not an integer in 1..MAX_PRESIGN_EXPIRES.
    """
    try:
        seconds = int(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid presign expiry for {source}: {value!r}") from e

    if not 1 <= seconds <= MAX_PRESIGN_EXPIRES:
        raise ConfigError(
            f"Presign expiry for {source} must be between 1 and "
            f"{MAX_PRESIGN_EXPIRES} seconds, got {seconds}"
        )
    return seconds


def _build_provider(
    key: str,
    fields: dict[str, Any],
    style_source: str,
    expires_source: str,
) -> ProviderConfig:
    """Validate raw provider fields and build a ProviderConfig.

    The *_source arguments name where a bad value came from, for error
    messages.
    """
    return ProviderConfig(
        key=key,
        provider_name=fields["provider_name"],
        endpoint_url=fields["endpoint_url"],
        aws_access_key_id=fields["aws_access_key_id"],
        aws_secret_access_key=fields["aws_secret_access_key"],
        region_name=fields["region_name"],
        bucket_name=fields["bucket_name"],
        addressing_style=_parse_addressing_style(
            fields.get("addressing_style", "path"), style_source
        ),
        presign_expires_seconds=_parse_expires(
            fields.get("presign_expires_seconds", DEFAULT_PRESIGN_EXPIRES),
            expires_source,
        ),
        enabled=True,
    )


def load_from_json(config_path: str) -> dict[str, ProviderConfig]:
    """Load enabled providers from a JSON file.

    Raises:
        ConfigError: If the file is missing, is not valid JSON, or an entry
                    lacks a required field or carries an invalid value.
    """
    path = Path(config_path)
    if not path.exists():
        raise ConfigError(f"Config file not found: {config_path}")

    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in config file: {e}") from e

    providers: dict[str, ProviderConfig] = {}
    for key, entry in data.items():
        if not entry.get("enabled", True):
            continue

        missing = [name for name in REQUIRED_FIELDS if name not in entry]
        if missing:
            raise ConfigError(
                f"Missing required field '{missing[0]}' for provider '{key}'"
            )

        source = f"provider '{key}'"
        providers[key] = _build_provider(key, entry, source, source)

    return providers


def _env_provider(env_key: str, env_value: str) -> ProviderConfig:
    # "PROVIDER_B2" -> "B2"
    provider_key = env_key[len(ENV_PREFIX):]

    parts = env_value.split("|")
    if len(parts) != 4:
        raise ConfigError(
            f"Invalid format for {env_key}. Expected: Name|Endpoint|Region|Style"
        )

    fields: dict[str, Any] = dict(
        zip(("provider_name", "endpoint_url", "region_name", "addressing_style"), parts)
    )
    for field_name, suffix in ENV_SECRETS.items():
        var = f"{provider_key}_{suffix}"
        value = os.environ.get(var)
        if not value:
            raise ConfigError(f"Missing environment variable: {var}")
        fields[field_name] = value

    expires_var = f"{provider_key}_PRESIGN_EXPIRES"
    if expires_var in os.environ:
        fields["presign_expires_seconds"] = os.environ[expires_var]

    return _build_provider(provider_key, fields, env_key, expires_var)


def load_from_env() -> dict[str, ProviderConfig]:
    """Load providers declared by PROVIDER_* environment variables.

    Each PROVIDER_{KEY} needs matching {KEY}_ACCESS_KEY, {KEY}_SECRET_KEY
    and {KEY}_BUCKET variables.

    Raises:
        ConfigError: If a variable is malformed or a credential is missing.
    """
    return {
        env_key[len(ENV_PREFIX):]: _env_provider(env_key, env_value)
        for env_key, env_value in os.environ.items()
        if env_key.startswith(ENV_PREFIX)
    }


def has_env_providers() -> bool:
    """Check if any PROVIDER_* environment variables exist."""
    return any(key.startswith(ENV_PREFIX) for key in os.environ)


def load_providers(
    config_path: str = "config.json",
) -> dict[str, ProviderConfig]:
    """Load provider configurations, environment before config file.

    Raises:
        ConfigError: If no providers are configured or all are disabled.
    """
    providers: dict[str, ProviderConfig] = {}

    if has_env_providers():
        providers = load_from_env()
    elif Path(config_path).exists():
        providers = load_from_json(config_path)

    if not providers:
        raise ConfigError(
            "No providers configured. Set PROVIDER_* environment variables "
            "or create a config.json file with at least one enabled provider."
        )

    return providers
