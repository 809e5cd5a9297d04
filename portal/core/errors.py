"""
core/errors.py
--------------
Domain error taxonomy.

Services raise these; they never build HTTP responses. Each error carries a
machine-readable ``kind`` so callers can branch without parsing messages:

  not_found        → fix input
  validation       → fix input
  conflict         → terminal, usually means "already done"
  tenant_mismatch  → policy violation
  tenant_inactive  → policy violation
  store_error      → transient, safe to retry

main.py registers a single exception handler that renders any PortalError
as ``{"detail", "error", "retryable"}`` with the status code below.
"""

from typing import Any, Optional

from fastapi import status


class PortalError(Exception):
    kind: str = "error"
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    retryable: bool = False

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict[str, Any]:
        return {"detail": self.message, "error": self.kind, "retryable": self.retryable}


class NotFoundError(PortalError):
    kind = "not_found"
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, entity_kind: str, entity_id: Optional[str] = None) -> None:
        message = (
            f"{entity_kind.capitalize()} '{entity_id}' not found"
            if entity_id is not None
            else f"{entity_kind.capitalize()} not found"
        )
        super().__init__(message, entity_kind=entity_kind, entity_id=entity_id)
        self.entity_kind = entity_kind
        self.entity_id = entity_id


class ConflictError(PortalError):
    kind = "conflict"
    status_code = status.HTTP_409_CONFLICT


class TenantMismatchError(PortalError):
    kind = "tenant_mismatch"
    # Literal: the starlette name for 422 differs between releases.
    status_code = 422


class TenantInactiveError(PortalError):
    kind = "tenant_inactive"
    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, company_id: str) -> None:
        super().__init__(f"Company '{company_id}' is inactive", company_id=company_id)
        self.company_id = company_id


class ValidationError(PortalError):
    kind = "validation"
    status_code = status.HTTP_400_BAD_REQUEST


class StoreError(PortalError):
    kind = "store_error"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    retryable = True


class PowerBIError(PortalError):
    kind = "bi_error"
    status_code = status.HTTP_502_BAD_GATEWAY


class PowerBINotConfiguredError(PowerBIError):
    kind = "bi_not_configured"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class DuplicateGrantError(ConflictError):
    """The (user, dashboard) pair is already granted."""

    def __init__(self, user_id: str, dashboard_id: str) -> None:
        super().__init__(
            f"User '{user_id}' already has access to dashboard '{dashboard_id}'",
            user_id=user_id,
            dashboard_id=dashboard_id,
        )
