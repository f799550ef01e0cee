"""CIM query construction and result parsing.

Queries run through PowerShell's ``Get-CimInstance`` on the remote host. The
script is shipped with ``-EncodedCommand`` so no shell quoting is involved;
only WQL and PowerShell string literals need escaping.
"""

import base64
import json
from typing import Any

from ..constants import POWERSHELL_EXECUTABLE
from ..models.disk import DiskQuery, DiskRecord
from .exceptions import QueryExecutionError


def escape_wql_like(value: str) -> str:
    """Escape a value for use inside a quoted WQL LIKE pattern.

    Examples:
        >>> escape_wql_like("a_b%c")
        'a[_]b[%]c'
    """
    escaped = value.replace("\\", "\\\\").replace("'", "\\'")
    # '[' first so the brackets added below are not re-escaped
    escaped = escaped.replace("[", "[[]")
    return escaped.replace("%", "[%]").replace("_", "[_]")


def build_wql_filter(query: DiskQuery) -> str:
    """Build the 'contains' filter on the share-name property."""
    return f"{query.share_property} LIKE '%{escape_wql_like(query.share_contains)}%'"


def _ps_literal(value: str) -> str:
    """Render a PowerShell single-quoted string literal."""
    return "'" + value.replace("'", "''") + "'"


def build_powershell_script(query: DiskQuery) -> str:
    """Build the PowerShell pipeline that enumerates matching disks as JSON."""
    properties = ",".join(_ps_literal(p) for p in (query.name_property, query.share_property))
    return (
        "$ErrorActionPreference = 'Stop'; "
        f"Get-CimInstance -Namespace {_ps_literal(query.namespace)} "
        f"-ClassName {_ps_literal(query.class_name)} "
        f"-Filter {_ps_literal(build_wql_filter(query))} "
        f"-OperationTimeoutSec {query.timeout} "
        f"| Select-Object -Property {properties} "
        "| ConvertTo-Json -Compress -Depth 2"
    )


def build_remote_command(query: DiskQuery) -> str:
    """Build the command line executed over the management session."""
    script = build_powershell_script(query)
    encoded = base64.b64encode(script.encode("utf-16-le")).decode("ascii")
    return f"{POWERSHELL_EXECUTABLE} -NoProfile -NonInteractive -EncodedCommand {encoded}"


def parse_query_output(output: str) -> list[dict[str, Any]]:
    """Parse ConvertTo-Json output into rows.

    ConvertTo-Json emits nothing for an empty pipeline, an object for a
    single row and an array otherwise.

    Raises:
        QueryExecutionError: If the output is not a JSON object or array of objects
    """
    text = output.lstrip("\ufeff").strip()
    if not text:
        return []

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise QueryExecutionError(f"Unparseable query output: {e}") from e

    if isinstance(data, dict):
        return [data]
    if isinstance(data, list) and all(isinstance(row, dict) for row in data):
        return data
    raise QueryExecutionError(f"Unexpected query output type: {type(data).__name__}")


def row_to_record(row: dict[str, Any], query: DiskQuery) -> DiskRecord:
    """Map a result row onto a DiskRecord using the configured property names."""
    friendly_name = row.get(query.name_property)
    share_name = row.get(query.share_property)
    return DiskRecord(
        friendly_name="" if friendly_name is None else str(friendly_name),
        share_name="" if share_name is None else str(share_name),
        properties=row,
    )
