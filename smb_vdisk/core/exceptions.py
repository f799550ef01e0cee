"""Core exceptions for SMB virtual disk operations."""


class SmbVdiskError(Exception):
    """Base exception for SMB virtual disk operations."""


class SessionOpenError(SmbVdiskError):
    """Management session could not be established."""


class QueryExecutionError(SmbVdiskError):
    """Remote CIM query failed or returned unusable output."""


class OperationCancelled(SmbVdiskError):
    """Operation was abandoned because its cancellation token fired."""


class ConfigurationError(SmbVdiskError):
    """Configuration validation or loading failed."""
