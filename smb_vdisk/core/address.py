"""Validation of smb:// share addresses.

Pure functions only: nothing here touches the network or filesystem.
"""

import ipaddress
import re
from urllib.parse import unquote, urlsplit

from ..constants import PATH_SEPARATORS, SMB_PREFIX, SMB_SCHEME
from ..models.address import Address, InvalidAddress

HOSTNAME_PATTERN = re.compile(r"^[A-Za-z0-9_]([A-Za-z0-9._-]*[A-Za-z0-9_])?$")


def validate_address(raw: str, require_share: bool = False) -> Address | InvalidAddress:
    """Parse and structurally validate a candidate smb:// address.

    Args:
        raw: Free-form text from the address input
        require_share: Reject addresses without a share segment (``smb://host``)

    Returns:
        Address on success, otherwise InvalidAddress describing the first problem

    Examples:
        >>> validate_address("smb://fileserver01/backups/").share_path
        'backups'
        >>> validate_address("ftp://fileserver01/backups").reason
        'address must start with smb://'
    """
    text = (raw or "").strip()
    if not text:
        return InvalidAddress(raw=text, reason="address is empty")

    if not text.lower().startswith(SMB_PREFIX):
        return InvalidAddress(raw=text, reason=f"address must start with {SMB_PREFIX}")

    # urlsplit silently drops tabs and newlines; spaces are left to the host check
    if any(ch.isspace() and ch != " " for ch in text):
        return InvalidAddress(raw=text, reason="address must not contain control whitespace")

    try:
        parts = urlsplit(text)
        hostname = parts.hostname or ""
        parts.port  # noqa: B018 - raises ValueError for a malformed port
    except ValueError as e:
        return InvalidAddress(raw=text, reason=f"malformed URL: {e}")

    if parts.scheme.lower() != SMB_SCHEME:
        return InvalidAddress(raw=text, reason=f"scheme must be '{SMB_SCHEME}'")

    if not hostname:
        return InvalidAddress(raw=text, reason="address has no host")

    if not _is_valid_host(hostname):
        return InvalidAddress(raw=text, reason=f"invalid host '{hostname}'")

    share_path = unquote(parts.path).strip(PATH_SEPARATORS)
    if require_share and not share_path:
        return InvalidAddress(raw=text, reason="address has no share segment")

    return Address(raw=text, scheme=SMB_SCHEME, host=hostname, share_path=share_path)


def _is_valid_host(hostname: str) -> bool:
    """Accept DNS/NetBIOS style names and IP literals."""
    if ":" in hostname:
        try:
            ipaddress.IPv6Address(hostname)
        except ValueError:
            return False
        return True
    return bool(HOSTNAME_PATTERN.match(hostname))
