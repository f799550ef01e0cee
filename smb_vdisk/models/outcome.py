"""Mount outcome models handed to the presentation layer."""

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field

from .address import Address
from .enums import FailureReason, ResolverErrorKind


class Mounted(BaseModel):
    """The address resolved to a virtual disk."""

    model_config = ConfigDict(frozen=True)

    status: Literal["mounted"] = "mounted"
    address: Address
    identifier: str


class Failed(BaseModel):
    """The pipeline stopped before a disk was mounted.

    ``address`` is the trimmed input text when validation failed.
    """

    model_config = ConfigDict(frozen=True)

    status: Literal["failed"] = "failed"
    address: Address | str
    reason: FailureReason
    cause: ResolverErrorKind | None = None
    detail: str = ""

    @property
    def address_text(self) -> str:
        return self.address.url if isinstance(self.address, Address) else self.address


MountOutcome = Annotated[Mounted | Failed, Field(discriminator="status")]


class MountTab(BaseModel):
    """A presenter tab for a mounted address."""

    key: str
    header: str
    content: str
    identifier: str
