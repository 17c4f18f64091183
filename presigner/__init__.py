"""S3 Presigner.

Generates presigned, time-limited S3 request URLs for S3-compatible storage
providers, by running requests through a pluggable interceptor pipeline
whose signing stage is switched to query-parameter signing.
"""

__version__ = "1.0.0"

from presigner.models import PresignedRequest, PresigningConfig
from presigner.orchestrator import OperationInput, presign
from presigner.presigning import PresigningInterceptor, PresigningRuntimePlugin

__all__ = [
    "OperationInput",
    "PresignedRequest",
    "PresigningConfig",
    "PresigningInterceptor",
    "PresigningRuntimePlugin",
    "presign",
    "__version__",
]
