"""Typed failures raised by the access-control and approval core.

Every error carries a stable ``code`` so HTTP handlers and other consumers can
tell "level 2 already decided" apart from "not your scope" without parsing
messages.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

__all__ = [
    "AccessControlError",
    "AccessDenied",
    "ApprovalRequestNotFound",
    "ApprovalValidationError",
    "DuplicateDecision",
    "InvalidTransition",
    "NoApproverConfigured",
    "RequestAlreadyTerminal",
    "ScopeResolutionError",
]


class AccessControlError(ValueError):
    """Base class for access-control and workflow failures."""

    code = "access_control_error"

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = {key: value for key, value in context.items() if value is not None}

    def to_detail(self) -> dict[str, Any]:
        detail: dict[str, Any] = {"error": self.code, "message": self.message}
        for key, value in self.context.items():
            detail[key] = str(value) if isinstance(value, UUID) else value
        return detail


class ScopeResolutionError(AccessControlError):
    """A role assignment is missing the pointer its role is authoritative for."""

    code = "scope_resolution_error"

    def __init__(
        self,
        message: str,
        *,
        user_id: UUID | None = None,
        role: str | None = None,
        assignment_id: UUID | None = None,
    ) -> None:
        super().__init__(message, user_id=user_id, role=role, assignment_id=assignment_id)
        self.user_id = user_id
        self.role = role
        self.assignment_id = assignment_id


class AccessDenied(AccessControlError):
    """The actor lacks the capability or scope the action requires."""

    code = "access_denied"

    def __init__(
        self,
        message: str,
        *,
        user_id: UUID | None = None,
        required_role: str | None = None,
        scope_type: str | None = None,
        scope_id: UUID | None = None,
    ) -> None:
        super().__init__(
            message,
            user_id=user_id,
            required_role=required_role,
            scope_type=scope_type,
            scope_id=scope_id,
        )
        self.user_id = user_id
        self.required_role = required_role
        self.scope_type = scope_type
        self.scope_id = scope_id


class InvalidTransition(AccessControlError):
    """The request is not in a state that accepts the attempted transition."""

    code = "invalid_transition"

    def __init__(
        self,
        message: str,
        *,
        request_id: UUID | None = None,
        status: str | None = None,
        level: int | None = None,
    ) -> None:
        super().__init__(message, request_id=request_id, status=status, level=level)
        self.request_id = request_id
        self.status = status
        self.level = level


class RequestAlreadyTerminal(InvalidTransition):
    """The request was rejected, cancelled or fully approved."""

    code = "request_terminal"


class DuplicateDecision(InvalidTransition):
    """The approval level already carries a decision."""

    code = "duplicate_decision"


class NoApproverConfigured(AccessControlError):
    """No role assignment can approve the request at the required level."""

    code = "no_approver_configured"

    def __init__(
        self,
        message: str,
        *,
        request_id: UUID | None = None,
        level: int | None = None,
        approver_role: str | None = None,
    ) -> None:
        super().__init__(message, request_id=request_id, level=level, approver_role=approver_role)
        self.request_id = request_id
        self.level = level
        self.approver_role = approver_role


class ApprovalRequestNotFound(AccessControlError):
    code = "not_found"

    def __init__(self, request_id: UUID) -> None:
        super().__init__(f"Approval request {request_id} not found", request_id=request_id)
        self.request_id = request_id


class ApprovalValidationError(AccessControlError):
    """The request payload is invalid (dates, unknown org unit)."""

    code = "validation_error"
