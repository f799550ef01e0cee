"""RFC 7807 problem details for failed mount outcomes.

Failed outcomes leave the MCP surface as Problem Details objects (RFC 7807),
with the outcome fields attached as extension members.
"""

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field

from ..models.enums import FailureReason, ResolverErrorKind
from ..models.outcome import Failed


class ErrorDetail(BaseModel):
    """RFC 7807 compliant error detail structure.

    Required fields:
    - success: Always False for error responses
    - error: Human-readable error message

    Optional RFC 7807 fields:
    - type: URI reference that identifies the problem type
    - title: Short, human-readable summary of the problem type
    - detail: Human-readable explanation specific to this occurrence
    - instance: URI reference that identifies the specific occurrence
    """

    success: bool = Field(default=False, description="Always False for errors")
    error: str = Field(description="Human-readable error message")
    type: str | None = Field(default=None, description="Problem type URI")
    title: str | None = Field(default=None, description="Problem type summary")
    detail: str | None = Field(default=None, description="Specific problem details")
    instance: str | None = Field(default=None, description="Problem occurrence URI")
    timestamp: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


class MountErrorResponse:
    """Factory for standardized mount error responses."""

    PROBLEM_TYPES: dict[str, dict[str, str]] = {
        "invalid-address": {
            "type": "/problems/invalid-address",
            "title": "Invalid SMB Address",
        },
        "mount-failed": {
            "type": "/problems/mount-failed",
            "title": "Mount Failed",
        },
        "mount-cancelled": {
            "type": "/problems/mount-cancelled",
            "title": "Mount Cancelled",
        },
        "validation-error": {
            "type": "/problems/validation-error",
            "title": "Input Validation Failed",
        },
    }

    REASON_PROBLEMS: dict[FailureReason, str] = {
        FailureReason.INVALID_ADDRESS: "invalid-address",
        FailureReason.MOUNT_FAILED: "mount-failed",
        FailureReason.CANCELLED: "mount-cancelled",
    }

    CAUSE_MESSAGES: dict[ResolverErrorKind, str] = {
        ResolverErrorKind.CONNECTION_FAILED: "could not reach the management endpoint",
        ResolverErrorKind.NOT_FOUND: "no matching virtual disk",
        ResolverErrorKind.QUERY_FAILED: "virtual disk query failed",
        ResolverErrorKind.CANCELLED: "cancelled by caller",
    }

    @classmethod
    def create_error(
        cls,
        error_message: str,
        problem_type: str | None = None,
        detail: str | None = None,
        instance: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Create a standardized error response.

        Args:
            error_message: Primary error message
            problem_type: Standard problem type key or custom type URI
            detail: Additional problem-specific details
            instance: Identifier for this specific occurrence
            context: Extension members (address, cause, ...)

        Returns:
            RFC 7807 compliant error response dictionary
        """
        error_detail = ErrorDetail(error=error_message, detail=detail, instance=instance)

        if problem_type and problem_type in cls.PROBLEM_TYPES:
            problem_info = cls.PROBLEM_TYPES[problem_type]
            error_detail.type = problem_info["type"]
            error_detail.title = problem_info["title"]
        elif problem_type:
            error_detail.type = problem_type

        response = error_detail.model_dump(exclude_none=True)

        if context:
            # Extension members must not overwrite the RFC 7807 members
            reserved_fields = set(ErrorDetail.model_fields)
            response.update({k: v for k, v in context.items() if k not in reserved_fields})

        return response

    @classmethod
    def from_outcome(cls, outcome: Failed) -> dict[str, Any]:
        """Problem details for a Failed mount outcome."""
        problem_type = cls.REASON_PROBLEMS[outcome.reason]
        title = cls.PROBLEM_TYPES[problem_type]["title"]
        address = outcome.address_text

        if outcome.cause is not None and outcome.reason is FailureReason.MOUNT_FAILED:
            error_message = f"{title}: {cls.CAUSE_MESSAGES[outcome.cause]}"
        else:
            error_message = title

        context: dict[str, Any] = {
            "status": outcome.status,
            "address": address,
            "reason": outcome.reason.value,
        }
        if outcome.cause is not None:
            context["cause"] = outcome.cause.value

        return cls.create_error(
            error_message=error_message,
            problem_type=problem_type,
            detail=outcome.detail or None,
            instance=f"/mounts/{address}",
            context=context,
        )

    @classmethod
    def validation_error(cls, field: str, value: Any, reason: str) -> dict[str, Any]:
        """Standard validation error."""
        return cls.create_error(
            error_message=f"Validation failed for '{field}': {reason}",
            problem_type="validation-error",
            detail=f"The value '{value}' for field '{field}' is invalid: {reason}",
            instance=f"/validation/{field}",
            context={"field": field, "value": str(value), "reason": reason},
        )
