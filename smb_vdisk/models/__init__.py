"""Data models for the SMB virtual disk service."""

from .address import Address, InvalidAddress  # noqa: F401
from .disk import DiskQuery, DiskRecord, ResolverError  # noqa: F401
from .enums import FailureReason, MountState, ResolverErrorKind  # noqa: F401
from .outcome import Failed, Mounted, MountOutcome, MountTab  # noqa: F401

__all__ = [
    # Address models
    "Address",
    "InvalidAddress",
    # Remote query models
    "DiskQuery",
    "DiskRecord",
    "ResolverError",
    # Enums
    "FailureReason",
    "MountState",
    "ResolverErrorKind",
    # Outcome models
    "Failed",
    "Mounted",
    "MountOutcome",
    "MountTab",
]
