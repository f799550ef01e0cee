"""Management sessions to remote hosts over SSH.

A session is opened per resolution attempt and closed before the attempt
returns; sessions are never pooled or shared between hosts.
"""

import asyncio
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional, Protocol

import structlog
from paramiko import AutoAddPolicy, SSHClient

from ..models.disk import DiskQuery
from .cim_query import build_remote_command, parse_query_output
from .config_loader import SmbVdiskConfig
from .exceptions import QueryExecutionError, SessionOpenError
from .settings import SESSION_CONNECT_TIMEOUT

logger = structlog.get_logger()

# Extra seconds granted on top of paramiko's own timeouts before giving up
TIMEOUT_GRACE_SECONDS = 5


class RemoteSession(Protocol):
    """What the resolver needs from a management session."""

    async def query(self, query: DiskQuery) -> list[dict[str, Any]]: ...

    def close(self) -> None: ...


@dataclass
class ManagementSession:
    """An open SSH connection to one host's management endpoint."""

    client: SSHClient
    hostname: str
    target: str
    created_at: datetime = field(default_factory=datetime.now)
    query_count: int = 0
    closed: bool = False
    on_close: Optional[Callable[["ManagementSession"], None]] = None

    async def query(self, query: DiskQuery) -> list[dict[str, Any]]:
        """Run a CIM query and return its rows.

        Raises:
            QueryExecutionError: On transport faults, timeouts, non-zero exit
                status or unparseable output
        """
        if self.closed:
            raise QueryExecutionError(f"Session to {self.hostname} is closed")

        command = build_remote_command(query)
        loop = asyncio.get_running_loop()

        def _execute() -> tuple[int, str, str]:
            stdin, stdout, stderr = self.client.exec_command(command, timeout=query.timeout)
            stdin.close()
            # Drain output before the exit status so a full window cannot stall the channel
            stdout_data = stdout.read().decode("utf-8", errors="replace")
            stderr_data = stderr.read().decode("utf-8", errors="replace")
            exit_code = stdout.channel.recv_exit_status()
            return exit_code, stdout_data, stderr_data

        try:
            exit_code, stdout_data, stderr_data = await asyncio.wait_for(
                loop.run_in_executor(None, _execute),
                timeout=query.timeout + TIMEOUT_GRACE_SECONDS,
            )
        except TimeoutError as e:
            raise QueryExecutionError(
                f"Query on {self.hostname} timed out after {query.timeout}s"
            ) from e
        except Exception as e:
            raise QueryExecutionError(f"Query on {self.hostname} failed: {e}") from e

        self.query_count += 1
        logger.debug(
            "Executed CIM query",
            host=self.hostname,
            namespace=query.namespace,
            class_name=query.class_name,
            exit_code=exit_code,
        )

        if exit_code != 0:
            raise QueryExecutionError(
                f"Query on {self.hostname} exited with status {exit_code}: "
                f"{stderr_data.strip()[:500]}"
            )
        return parse_query_output(stdout_data)

    def close(self) -> None:
        """Close the underlying connection. Safe to call more than once."""
        if self.closed:
            return
        self.closed = True
        try:
            self.client.close()
        except Exception as e:
            logger.warning("Error closing management session", host=self.hostname, error=str(e))
        logger.debug(
            "Closed management session",
            host=self.hostname,
            queries=self.query_count,
            lifetime=(datetime.now() - self.created_at).total_seconds(),
        )
        if self.on_close is not None:
            self.on_close(self)


class ManagementSessionFactory:
    """Opens management sessions using per-host connection overrides."""

    def __init__(
        self,
        config: SmbVdiskConfig | None = None,
        connect_timeout: int = SESSION_CONNECT_TIMEOUT,
    ):
        self.config = config or SmbVdiskConfig()
        self.connect_timeout = connect_timeout
        self._stats = {
            "sessions_opened": 0,
            "sessions_closed": 0,
            "connection_errors": 0,
        }

    def _connect_kwargs(self, hostname: str) -> dict[str, Any]:
        """Build paramiko connect arguments for a host."""
        host = self.config.host_for(hostname)
        connect_kwargs: dict[str, Any] = {
            "hostname": host.hostname or hostname,
            "port": host.port,
            "timeout": self.connect_timeout,
            "banner_timeout": self.connect_timeout,
            "auth_timeout": self.connect_timeout,
            "allow_agent": True,
            "look_for_keys": True,
        }
        if host.user:
            connect_kwargs["username"] = host.user
        return connect_kwargs

    async def open(self, hostname: str) -> ManagementSession:
        """Open a session to ``hostname``.

        Raises:
            SessionOpenError: If the connection cannot be established in time
        """
        client = SSHClient()
        client.load_system_host_keys()
        client.set_missing_host_key_policy(AutoAddPolicy())

        connect_kwargs = self._connect_kwargs(hostname)
        target = f"{connect_kwargs['hostname']}:{connect_kwargs['port']}"
        abandoned = threading.Event()

        def _connect() -> None:
            client.connect(**connect_kwargs)
            if abandoned.is_set():
                client.close()

        loop = asyncio.get_running_loop()
        try:
            await asyncio.wait_for(
                loop.run_in_executor(None, _connect),
                timeout=self.connect_timeout + TIMEOUT_GRACE_SECONDS,
            )
        except asyncio.CancelledError:
            abandoned.set()
            client.close()
            raise
        except Exception as e:
            abandoned.set()
            client.close()
            self._stats["connection_errors"] += 1
            logger.warning("Management session failed", host=hostname, target=target, error=str(e))
            raise SessionOpenError(f"Failed to connect to {target}: {e}") from e

        self._stats["sessions_opened"] += 1
        logger.debug(
            "Opened management session",
            host=hostname,
            target=target,
            total_opened=self._stats["sessions_opened"],
        )
        return ManagementSession(
            client=client,
            hostname=hostname,
            target=target,
            on_close=self._record_close,
        )

    def _record_close(self, session: ManagementSession) -> None:
        self._stats["sessions_closed"] += 1

    def get_stats(self) -> dict[str, Any]:
        """Get session statistics."""
        return {
            **self._stats,
            "open_sessions": self._stats["sessions_opened"] - self._stats["sessions_closed"],
        }
