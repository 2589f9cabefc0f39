"""レスポンスメッセージの組み立て"""

from __future__ import annotations

from dataclasses import dataclass

BASE_MESSAGE = "Welcome to the CI/CD Release Engineering Lab 🚀"
BETA_MESSAGE = "\n🧪 Beta Feature: Releasing smarter, one flag at a time."


@dataclass(frozen=True)
class ResponseMessage:
    """Base text plus a suffix shown only while the beta flag is on."""

    base: str = BASE_MESSAGE
    suffix: str = BETA_MESSAGE

    def render(self, beta_enabled: bool) -> str:
        return self.base + (self.suffix if beta_enabled else "")
