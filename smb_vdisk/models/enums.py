"""Enum definitions for the mount pipeline."""

from enum import Enum


class ResolverErrorKind(Enum):
    """Why a remote disk lookup did not produce a record."""

    CONNECTION_FAILED = "connection_failed"
    NOT_FOUND = "not_found"
    QUERY_FAILED = "query_failed"
    CANCELLED = "cancelled"


class FailureReason(Enum):
    """Outward-facing failure reasons carried by a Failed outcome."""

    INVALID_ADDRESS = "invalid_address"
    MOUNT_FAILED = "mount_failed"
    CANCELLED = "cancelled"


class MountState(Enum):
    """Per-invocation states of the mount pipeline."""

    IDLE = "idle"
    VALIDATING = "validating"
    RESOLVING = "resolving"
    MOUNTED = "mounted"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (MountState.MOUNTED, MountState.FAILED)
