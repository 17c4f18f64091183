"""boto3 session factory and S3 object addressing.

Creates a boto3 Session per provider so credentials resolve the way the
AWS tooling resolves them, and builds object URLs for the provider's
addressing style:

    path:    https://endpoint/bucket/key
    virtual: https://bucket.endpoint/key
"""

from typing import Optional
from urllib.parse import quote, urlsplit, urlunsplit

import boto3
from botocore.credentials import Credentials

from presigner.models import ProviderConfig


def build_session(config: ProviderConfig) -> boto3.Session:
    """Build a boto3 session for the given provider configuration.

    Args:
        config: Provider configuration containing credentials and region.

    Returns:
        A boto3 Session for the provider.
    """
    return boto3.Session(
        aws_access_key_id=config.aws_access_key_id,
        aws_secret_access_key=config.aws_secret_access_key,
        region_name=config.region_name,
    )


def resolve_credentials(config: ProviderConfig) -> Optional[Credentials]:
    """Resolve a frozen set of credentials for the provider.

    Returns:
        Credentials, or None if the session could not find any.
    """
    credentials = build_session(config).get_credentials()
    if credentials is None:
        return None

    frozen = credentials.get_frozen_credentials()
    return Credentials(frozen.access_key, frozen.secret_key, frozen.token)


def object_url(config: ProviderConfig, key: str) -> str:
    """Build the URL of `key` in the provider's bucket.

    Args:
        config: Provider configuration.
        key: Object key. Leading slashes are ignored.

    Returns:
        Absolute object URL, percent-encoded.
    """
    endpoint = urlsplit(config.endpoint_url)
    encoded_key = quote(key.lstrip("/"), safe="/~")

    if config.addressing_style == "virtual":
        netloc = f"{config.bucket_name}.{endpoint.netloc}"
        path = f"/{encoded_key}"
    else:
        netloc = endpoint.netloc
        base = endpoint.path.rstrip("/")
        path = f"{base}/{config.bucket_name}/{encoded_key}"

    return urlunsplit((endpoint.scheme, netloc, path, "", ""))
