"""ServiceResult and ServiceError — the contract every operation returns.

INVARIANT: service methods never raise for expected failures. The CLI and
any other front end consume this type only.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from rulectl.errors import RulectlError

# Error codes
VALIDATION_FAILED = "VALIDATION_FAILED"
NOT_FOUND = "NOT_FOUND"
PROVIDER_ERROR = "PROVIDER_ERROR"
PERSISTENCE_ERROR = "PERSISTENCE_ERROR"
TEMPLATE_DISABLED = "TEMPLATE_DISABLED"
IN_USE = "IN_USE"


class ServiceError(BaseModel):
    """Structured error payload within a ServiceResult."""

    model_config = {"frozen": True}

    code: str
    message: str
    detail: dict[str, Any] = Field(default_factory=dict)


class ServiceResult(BaseModel):
    """Universal return type for all service operations.

    Attributes:
        ok: Whether the operation succeeded.
        op: Name of the operation (e.g. ``"create_template"``).
        data: Operation-specific payload on success.
        warnings: Non-fatal issues encountered during the operation.
        error: Structured error if ``ok`` is False.
        meta: Optional metadata (timing, telemetry).
    """

    model_config = {"frozen": True}

    ok: bool
    op: str
    data: dict[str, Any] = Field(default_factory=dict)
    warnings: list[str] = Field(default_factory=list)
    error: ServiceError | None = None
    meta: dict[str, Any] | None = None

    @classmethod
    def failure(
        cls,
        op: str,
        code: str,
        message: str,
        *,
        detail: dict[str, Any] | None = None,
        warnings: list[str] | None = None,
    ) -> ServiceResult:
        return cls(
            ok=False,
            op=op,
            error=ServiceError(code=code, message=message, detail=detail or {}),
            warnings=warnings or [],
        )

    @classmethod
    def from_exception(
        cls, op: str, exc: RulectlError, *, warnings: list[str] | None = None
    ) -> ServiceResult:
        """Wrap an infrastructure exception using its own error code."""
        return cls.failure(op, exc.code, exc.message, detail=exc.detail, warnings=warnings)
