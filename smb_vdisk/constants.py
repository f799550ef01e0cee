"""Shared constants for the SMB virtual disk service."""

# Address grammar
SMB_SCHEME = "smb"
SMB_PREFIX = "smb://"
PATH_SEPARATORS = "/\\"

# CIM query defaults
DEFAULT_CIM_NAMESPACE = "root/Microsoft/Windows/Storage"
DEFAULT_CIM_CLASS = "MSFT_VirtualDisk"
DEFAULT_SHARE_PROPERTY = "ShareName"
DEFAULT_NAME_PROPERTY = "FriendlyName"

# Remote shell
POWERSHELL_EXECUTABLE = "powershell.exe"
DEFAULT_MANAGEMENT_PORT = 22

# Inline messages shown by the presentation layer
MSG_INVALID_ADDRESS = "Invalid SMB URL"
MSG_MOUNT_FAILED = "Mount failed"
MSG_MOUNT_CANCELLED = "Mount cancelled"
