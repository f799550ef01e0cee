"""Remote virtual disk query models."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .enums import ResolverErrorKind


class DiskQuery(BaseModel):
    """One CIM enumeration filtered by a share-name substring."""

    model_config = ConfigDict(frozen=True)

    namespace: str
    class_name: str
    share_property: str
    name_property: str
    share_contains: str = ""
    timeout: int = Field(default=30, ge=1, description="Query timeout in seconds")


class DiskRecord(BaseModel):
    """One virtual disk row returned by the management endpoint."""

    model_config = ConfigDict(frozen=True)

    friendly_name: str = ""
    share_name: str = ""
    properties: dict[str, Any] = Field(default_factory=dict)


class ResolverError(BaseModel):
    """Why resolution did not produce a DiskRecord."""

    model_config = ConfigDict(frozen=True)

    kind: ResolverErrorKind
    host: str
    detail: str = ""
