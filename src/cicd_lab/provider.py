"""FlagProvider 抽象基底クラス"""

from __future__ import annotations

from abc import ABC, abstractmethod

from .models import FlagSnapshot


class FlagProvider(ABC):
    """Source of the remote toggle set."""

    @abstractmethod
    async def fetch(self, current: FlagSnapshot | None) -> FlagSnapshot:
        """Fetch the complete toggle set.

        `current` is the last committed snapshot. Returning it unchanged means
        the provider reported no modification. Failures raise FlagClientError.
        """
        ...

    async def close(self) -> None:
        """Release network resources. Default is a no-op."""
        return None
