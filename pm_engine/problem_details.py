"""RFC 7807 Problem Details helpers."""
from __future__ import annotations

from http import HTTPStatus

from fastapi.responses import JSONResponse

from .domain_errors import DomainError, ValidationError


def _invalid_params(exc: ValidationError) -> list[dict[str, str]]:
    """Per-field errors in the RFC 7807 `invalid-params` shape, one entry per form field."""
    return [{"name": name, "reason": reason} for name, reason in exc.fields.items()]


def build_problem_details_response(exc: DomainError) -> JSONResponse:
    """Render DomainError as RFC 7807 payload with stable domain code.

    Execution validation failures add `invalid_params` so a form can mark each field;
    conflicts and unavailable collaborators add `retryable: true`.
    """
    try:
        title = HTTPStatus(exc.http_status).phrase
    except ValueError:
        title = "Domain Error"

    payload: dict[str, object] = {
        "type": f"https://api.pm-engine.local/problems/{exc.code.lower()}",
        "title": title,
        "status": exc.http_status,
        "detail": exc.message,
        "code": exc.code,
    }
    if exc.details is not None:
        payload["details"] = exc.details
    if isinstance(exc, ValidationError):
        payload["invalid_params"] = _invalid_params(exc)
    if exc.retryable:
        payload["retryable"] = True

    return JSONResponse(
        status_code=exc.http_status,
        content=payload,
        media_type="application/problem+json",
    )
