"""Tests for SSH management sessions."""

import base64
from unittest.mock import MagicMock, patch

import pytest
from paramiko import AuthenticationException, SSHClient

from smb_vdisk.core.config_loader import ManagementHost, SmbVdiskConfig
from smb_vdisk.core.exceptions import QueryExecutionError, SessionOpenError
from smb_vdisk.core.session import ManagementSession, ManagementSessionFactory
from smb_vdisk.models.disk import DiskQuery


@pytest.fixture
def disk_query():
    return DiskQuery(
        namespace="root/Microsoft/Windows/Storage",
        class_name="MSFT_VirtualDisk",
        share_property="ShareName",
        name_property="FriendlyName",
        share_contains="backups",
        timeout=5,
    )


def make_ssh_client(stdout: bytes = b"", stderr: bytes = b"", exit_code: int = 0) -> MagicMock:
    """Mock SSHClient whose exec_command yields the given output."""
    client = MagicMock(spec=SSHClient)
    stdin = MagicMock()
    out = MagicMock()
    out.read.return_value = stdout
    out.channel.recv_exit_status.return_value = exit_code
    err = MagicMock()
    err.read.return_value = stderr
    client.exec_command.return_value = (stdin, out, err)
    return client


@pytest.fixture
def factory():
    config = SmbVdiskConfig(
        hosts={
            "fileserver01": ManagementHost(user="svc-mount"),
            "nas": ManagementHost(hostname="nas.internal.example.com", port=2222),
        }
    )
    return ManagementSessionFactory(config=config, connect_timeout=3)


class TestManagementSession:
    """Test ManagementSession wrapper."""

    @pytest.mark.asyncio
    async def test_query_parses_rows(self, disk_query):
        client = make_ssh_client(b'{"FriendlyName":"BackupVol","ShareName":"backups"}\r\n')
        session = ManagementSession(client=client, hostname="fileserver01", target="fileserver01:22")

        rows = await session.query(disk_query)

        assert rows == [{"FriendlyName": "BackupVol", "ShareName": "backups"}]
        assert session.query_count == 1
        command = client.exec_command.call_args.args[0]
        assert command.startswith("powershell.exe -NoProfile -NonInteractive -EncodedCommand ")
        script = base64.b64decode(command.rsplit(" ", 1)[1]).decode("utf-16-le")
        assert "ShareName LIKE ''%backups%''" in script
        assert client.exec_command.call_args.kwargs["timeout"] == 5

    @pytest.mark.asyncio
    async def test_empty_output_is_no_rows(self, disk_query):
        session = ManagementSession(
            client=make_ssh_client(b""), hostname="fileserver01", target="fileserver01:22"
        )

        assert await session.query(disk_query) == []

    @pytest.mark.asyncio
    async def test_non_zero_exit_raises(self, disk_query):
        client = make_ssh_client(stderr=b"Get-CimInstance : Invalid namespace", exit_code=1)
        session = ManagementSession(client=client, hostname="fileserver01", target="fileserver01:22")

        with pytest.raises(QueryExecutionError, match="exited with status 1: Get-CimInstance"):
            await session.query(disk_query)

    @pytest.mark.asyncio
    async def test_transport_error_raises(self, disk_query):
        client = make_ssh_client()
        client.exec_command.side_effect = EOFError("channel closed")
        session = ManagementSession(client=client, hostname="fileserver01", target="fileserver01:22")

        with pytest.raises(QueryExecutionError, match="channel closed"):
            await session.query(disk_query)

    @pytest.mark.asyncio
    async def test_query_after_close_raises(self, disk_query):
        client = make_ssh_client()
        session = ManagementSession(client=client, hostname="fileserver01", target="fileserver01:22")
        session.close()

        with pytest.raises(QueryExecutionError, match="closed"):
            await session.query(disk_query)
        client.exec_command.assert_not_called()

    def test_close_is_idempotent(self):
        client = make_ssh_client()
        on_close = MagicMock()
        session = ManagementSession(
            client=client, hostname="fileserver01", target="fileserver01:22", on_close=on_close
        )

        session.close()
        session.close()

        assert session.closed is True
        client.close.assert_called_once()
        on_close.assert_called_once_with(session)

    def test_close_tolerates_client_errors(self):
        client = make_ssh_client()
        client.close.side_effect = OSError("socket already closed")
        session = ManagementSession(client=client, hostname="fileserver01", target="fileserver01:22")

        session.close()

        assert session.closed is True


class TestManagementSessionFactory:
    """Test session opening."""

    def test_connect_kwargs_default_host(self, factory):
        kwargs = factory._connect_kwargs("unknown-host")

        assert kwargs["hostname"] == "unknown-host"
        assert kwargs["port"] == 22
        assert kwargs["timeout"] == 3
        assert "username" not in kwargs

    def test_connect_kwargs_with_overrides(self, factory):
        assert factory._connect_kwargs("FileServer01")["username"] == "svc-mount"

        nas = factory._connect_kwargs("nas")
        assert nas["hostname"] == "nas.internal.example.com"
        assert nas["port"] == 2222

    @pytest.mark.asyncio
    async def test_open_success(self, factory):
        with patch("smb_vdisk.core.session.SSHClient") as mock_client_class:
            client = make_ssh_client()
            mock_client_class.return_value = client

            session = await factory.open("fileserver01")

        assert isinstance(session, ManagementSession)
        assert session.hostname == "fileserver01"
        assert session.target == "fileserver01:22"
        client.connect.assert_called_once()
        assert client.connect.call_args.kwargs["username"] == "svc-mount"
        assert factory.get_stats()["sessions_opened"] == 1
        assert factory.get_stats()["open_sessions"] == 1

        session.close()

        stats = factory.get_stats()
        assert stats["sessions_closed"] == 1
        assert stats["open_sessions"] == 0

    @pytest.mark.asyncio
    async def test_open_failure_closes_client(self, factory):
        with patch("smb_vdisk.core.session.SSHClient") as mock_client_class:
            client = make_ssh_client()
            client.connect.side_effect = AuthenticationException("Authentication failed")
            mock_client_class.return_value = client

            with pytest.raises(SessionOpenError, match="fileserver01:22"):
                await factory.open("fileserver01")

        client.close.assert_called()
        stats = factory.get_stats()
        assert stats["connection_errors"] == 1
        assert stats["sessions_opened"] == 0

    @pytest.mark.asyncio
    async def test_open_unreachable_host(self, factory):
        with patch("smb_vdisk.core.session.SSHClient") as mock_client_class:
            client = make_ssh_client()
            client.connect.side_effect = OSError("No route to host")
            mock_client_class.return_value = client

            with pytest.raises(SessionOpenError, match="No route to host"):
                await factory.open("nas")

    def test_default_config(self):
        factory = ManagementSessionFactory()

        assert factory.get_stats() == {
            "sessions_opened": 0,
            "sessions_closed": 0,
            "connection_errors": 0,
            "open_sessions": 0,
        }
