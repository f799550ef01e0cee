"""Shared pytest fixtures for SMB virtual disk tests."""

import asyncio
from types import SimpleNamespace
from typing import Any
from unittest.mock import MagicMock

import pytest

from smb_vdisk.core.config_loader import QueryConfig, SmbVdiskConfig
from smb_vdisk.core.exceptions import SessionOpenError
from smb_vdisk.core.resolver import RemoteDiskResolver
from smb_vdisk.models.disk import DiskQuery
from smb_vdisk.services.mount import MountOrchestrator


class FakeSession:
    """In-memory management session that records how it was used."""

    def __init__(
        self,
        rows: list[dict[str, Any]] | None = None,
        error: Exception | None = None,
        block: asyncio.Event | None = None,
    ):
        self.rows = rows or []
        self.error = error
        self.block = block
        self.queries: list[DiskQuery] = []
        self.close_count = 0

    async def query(self, query: DiskQuery) -> list[dict[str, Any]]:
        self.queries.append(query)
        if self.block is not None:
            await self.block.wait()
        if self.error is not None:
            raise self.error
        return list(self.rows)

    def close(self) -> None:
        self.close_count += 1


class FakeSessionOpener:
    """Session opener that hands out FakeSession instances."""

    def __init__(
        self,
        rows: list[dict[str, Any]] | None = None,
        query_error: Exception | None = None,
        open_error: Exception | None = None,
        block_open: asyncio.Event | None = None,
        block_query: asyncio.Event | None = None,
    ):
        self.rows = rows
        self.query_error = query_error
        self.open_error = open_error
        self.block_open = block_open
        self.block_query = block_query
        self.opened_hosts: list[str] = []
        self.sessions: list[FakeSession] = []

    async def __call__(self, hostname: str) -> FakeSession:
        self.opened_hosts.append(hostname)
        if self.block_open is not None:
            await self.block_open.wait()
        if self.open_error is not None:
            raise self.open_error
        session = FakeSession(rows=self.rows, error=self.query_error, block=self.block_query)
        self.sessions.append(session)
        return session

    @property
    def open_count(self) -> int:
        return len(self.opened_hosts)


def disk_row(friendly_name: str, share_name: str, **extra: Any) -> dict[str, Any]:
    """A result row shaped like ConvertTo-Json output."""
    return {"FriendlyName": friendly_name, "ShareName": share_name, **extra}


@pytest.fixture
def backup_rows() -> list[dict[str, Any]]:
    return [disk_row("BackupVol", "backups")]


@pytest.fixture
def opener(backup_rows) -> FakeSessionOpener:
    """Opener whose sessions return a single BackupVol row."""
    return FakeSessionOpener(rows=backup_rows)


@pytest.fixture
def empty_opener() -> FakeSessionOpener:
    return FakeSessionOpener(rows=[])


@pytest.fixture
def unreachable_opener() -> FakeSessionOpener:
    return FakeSessionOpener(open_error=SessionOpenError("Failed to connect to unreachable-host:22"))


@pytest.fixture
def make_orchestrator():
    """Build an orchestrator around a given opener."""

    def _make(
        session_opener: FakeSessionOpener,
        require_share: bool = False,
        single_flight: bool = False,
    ) -> MountOrchestrator:
        resolver = RemoteDiskResolver(session_opener, query_config=QueryConfig(), query_timeout=5)
        return MountOrchestrator(
            resolver, require_share=require_share, single_flight=single_flight
        )

    return _make


@pytest.fixture
def config() -> SmbVdiskConfig:
    """Default configuration, independent of any .env or config file."""
    return SmbVdiskConfig()


# ====================
# MIDDLEWARE TESTING FIXTURES
# ====================


@pytest.fixture
def mock_context():
    """Create mock MiddlewareContext for unit tests."""
    context = MagicMock()
    context.method = "tools/call"
    context.source = "test_client"
    context.type = "request"
    context.timestamp = 1640995200.0
    context.message = SimpleNamespace(
        name="mount_share",
        arguments={"address": "smb://fileserver01/backups"},
    )
    return context


class MockCall:
    """Mock call_next function for middleware testing."""

    def __init__(self, return_value=None, exception=None):
        self.return_value = return_value or {"status": "success"}
        self.exception = exception
        self.call_count = 0

    async def __call__(self, context):
        self.call_count += 1
        if self.exception:
            raise self.exception
        return self.return_value


@pytest.fixture
def mock_call():
    return MockCall
