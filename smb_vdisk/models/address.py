"""Address models for smb:// share locations."""

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..constants import SMB_SCHEME


class Address(BaseModel):
    """A validated smb://host/share address.

    Produced by ``validate_address``; the model validator repeats the
    structural checks so a partially-valid Address cannot be built.
    """

    model_config = ConfigDict(frozen=True)

    raw: str = Field(description="Trimmed input the address was parsed from")
    scheme: str = SMB_SCHEME
    host: str
    share_path: str = ""

    @model_validator(mode="after")
    def check_structure(self) -> "Address":
        if self.scheme.lower() != SMB_SCHEME:
            raise ValueError(f"scheme must be '{SMB_SCHEME}', got '{self.scheme}'")
        if not self.host:
            raise ValueError("host must not be empty")
        return self

    @property
    def url(self) -> str:
        """Canonical smb:// form, used as the address key."""
        host = f"[{self.host}]" if ":" in self.host else self.host
        if self.share_path:
            return f"{SMB_SCHEME}://{host}/{self.share_path}"
        return f"{SMB_SCHEME}://{host}"

    def __str__(self) -> str:
        return self.url


class InvalidAddress(BaseModel):
    """Validation failure for a candidate address."""

    model_config = ConfigDict(frozen=True)

    raw: str
    reason: str
