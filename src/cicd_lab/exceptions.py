"""cicd_lab の例外型定義"""

from __future__ import annotations


class FlagClientError(Exception):
    """Feature flag client error."""

    def __init__(
        self,
        code: str,
        message: str,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        return f"{self.code}: {super().__str__()}"


class FlagClientErrorCodes:
    """FlagClientError のエラーコード定数。"""

    CONNECTION_ERROR: str = "CONNECTION_ERROR"
    AUTH_REJECTED: str = "AUTH_REJECTED"
    HTTP_ERROR: str = "HTTP_ERROR"
    INVALID_RESPONSE: str = "INVALID_RESPONSE"
    ALREADY_STARTED: str = "ALREADY_STARTED"
    FETCH_FAILED: str = "FETCH_FAILED"
    CLIENT_CLOSED: str = "CLIENT_CLOSED"


class ConfigError(Exception):
    """Configuration error raised at startup."""

    def __init__(
        self,
        code: str,
        message: str,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        return f"{self.code}: {super().__str__()}"


class ConfigErrorCodes:
    """ConfigError のエラーコード定数。"""

    VALIDATION: str = "VALIDATION_ERROR"
