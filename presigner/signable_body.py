"""Descriptions of the payload a signature is computed over.

A SignableBody is one of four variants:

- UnsignedPayload: the payload is not covered by the signature
- BytesBody: an in-memory payload, hashed with SHA-256
- StreamingUnsignedPayload: a streaming payload of unknown size
- PrecomputedSha256: a payload hash the caller already computed

All variants are frozen, so copies share the same backing bytes.
"""

import hashlib
import re
from dataclasses import dataclass
from typing import Union

UNSIGNED_PAYLOAD = "UNSIGNED-PAYLOAD"
STREAMING_UNSIGNED_PAYLOAD_TRAILER = "STREAMING-UNSIGNED-PAYLOAD-TRAILER"

_SHA256_HEX = re.compile(r"^[0-9a-f]{64}$")


@dataclass(frozen=True)
class UnsignedPayload:
    """The payload is excluded from the signature."""

    def payload_hash(self) -> str:
        return UNSIGNED_PAYLOAD


@dataclass(frozen=True)
class BytesBody:
    """An in-memory payload."""

    data: bytes = b""

    def payload_hash(self) -> str:
        return hashlib.sha256(self.data).hexdigest()


@dataclass(frozen=True)
class StreamingUnsignedPayload:
    """A streaming payload whose length is not known up front."""

    def payload_hash(self) -> str:
        return STREAMING_UNSIGNED_PAYLOAD_TRAILER


@dataclass(frozen=True)
class PrecomputedSha256:
    """A hex-encoded SHA-256 digest computed by the caller."""

    digest: str

    def __post_init__(self):
        if not _SHA256_HEX.match(self.digest):
            raise ValueError(
                f"Expected a lowercase hex SHA-256 digest, got {self.digest!r}"
            )

    def payload_hash(self) -> str:
        return self.digest


SignableBody = Union[
    UnsignedPayload, BytesBody, StreamingUnsignedPayload, PrecomputedSha256
]
