"""Domain-level exception primitives with stable machine-readable codes."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(eq=False)
class DomainError(Exception):
    """Use-case level error with stable code and HTTP mapping."""

    # Clients may retry the same request once the cause is resolved.
    retryable = False

    code: str
    http_status: int
    message: str
    details: dict[str, Any] | None = None

    def __str__(self) -> str:
        return self.message


class ValidationError(DomainError):
    """Field-scoped operator input errors; the caller re-prompts."""

    @classmethod
    def from_fields(cls, fields: dict[str, str]) -> "ValidationError":
        return cls(
            code="EXECUTION_VALIDATION_FAILED",
            http_status=422,
            message="Execution input is invalid",
            details={"fields": dict(fields)},
        )

    @property
    def fields(self) -> dict[str, str]:
        return dict((self.details or {}).get("fields") or {})


class ConfigurationError(DomainError):
    """Plan configuration that must block instance generation."""


class ConflictError(DomainError):
    """Concurrent completion of the same instance."""

    retryable = True

    @classmethod
    def already_completed(cls, instance_id: object) -> "ConflictError":
        return cls(
            code="EXECUTION_CONFLICT",
            http_status=409,
            message="Maintenance already completed, refresh and retry",
            details={"instance_id": str(instance_id)},
        )


class UpstreamDataError(DomainError):
    """Reservation/checklist/search collaborator unavailable."""

    retryable = True

    @classmethod
    def unavailable(cls, source: str) -> "UpstreamDataError":
        return cls(
            code="UPSTREAM_UNAVAILABLE",
            http_status=503,
            message=f"{source} is temporarily unavailable, retry later",
            details={"source": source},
        )
