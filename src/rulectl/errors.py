"""Exceptions raised below the service layer.

Services catch these and turn them into ``ServiceResult`` error codes
(see :mod:`rulectl.services.result`). Nothing above the service layer
should see a raw exception from here.
"""

from __future__ import annotations

from typing import Any


class RulectlError(Exception):
    """Base for all rulectl infrastructure errors."""

    code = "RULECTL_ERROR"

    def __init__(self, message: str, *, detail: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail or {}

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, "detail": self.detail}


class ProviderError(RulectlError):
    """An upstream provider call failed."""

    code = "PROVIDER_ERROR"

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        retry_after: float | None = None,
        detail: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, detail=detail)
        self.status_code = status_code
        self.retry_after = retry_after
        if status_code is not None:
            self.detail["status_code"] = status_code
        if retry_after is not None:
            self.detail["retry_after"] = retry_after


class PersistenceError(RulectlError):
    """A store read or write could not be trusted.

    Fatal for the triggering operation: it must not report success.
    """

    code = "PERSISTENCE_ERROR"


class StoreNameError(RulectlError):
    """A logical store name outside the whitelist was requested."""

    code = "INVALID_STORE_NAME"
