"""Base reporter interface."""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from presigner.models import PresignResult


class Reporter(ABC):
    """Abstract base class for presign result reporters."""

    @abstractmethod
    def on_presign_start(self, provider_name: str, object_key: str) -> None:
        """Called before an object is presigned for a provider."""
        pass

    @abstractmethod
    def on_presign_complete(self, result: "PresignResult") -> None:
        """Called when presigning completes for a provider."""
        pass

    @abstractmethod
    def on_run_complete(self, results: dict[str, "PresignResult"]) -> None:
        """Called when all providers are done."""
        pass
