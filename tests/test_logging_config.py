"""Tests for logging setup."""

import logging
from logging.handlers import RotatingFileHandler

import pytest
import structlog
from conftest import FakeSessionOpener, disk_row

from smb_vdisk.core.address import validate_address
from smb_vdisk.core.logging_config import (
    LOG_STREAMS,
    get_middleware_logger,
    get_server_logger,
    setup_logging,
)
from smb_vdisk.core.resolver import RemoteDiskResolver


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    saved_root = (list(root.handlers), root.level)
    names = {name for names in LOG_STREAMS.values() for name in names}
    saved = {name: list(logging.getLogger(name).handlers) for name in names}
    yield
    for name, handlers in saved.items():
        logger = logging.getLogger(name)
        for handler in logger.handlers:
            if handler not in handlers:
                handler.close()
        logger.handlers[:] = handlers
    for handler in root.handlers:
        if handler not in saved_root[0]:
            handler.close()
    root.handlers[:] = saved_root[0]
    root.setLevel(saved_root[1])
    structlog.reset_defaults()


def test_setup_creates_log_files(tmp_path, restore_logging):
    log_dir = tmp_path / "logs"

    paths = setup_logging(log_dir=log_dir, log_level="DEBUG", max_file_size_mb=1)
    get_middleware_logger().info("middleware message", method="tools/call")

    assert paths["server.log"] == log_dir / "server.log"
    assert "Logging system initialized" in paths["server.log"].read_text()
    assert "middleware message" in paths["middleware.log"].read_text()
    assert "middleware message" not in paths["server.log"].read_text()
    assert logging.getLogger().level == logging.DEBUG


@pytest.mark.asyncio
async def test_pipeline_events_reach_server_log(tmp_path, restore_logging):
    paths = setup_logging(log_dir=tmp_path, log_level="INFO")
    resolver = RemoteDiskResolver(
        FakeSessionOpener(rows=[disk_row("BackupVol", "backups")]), query_timeout=5
    )

    await resolver.resolve(validate_address("smb://fileserver01/backups"))

    server_log = paths["server.log"].read_text()
    assert "Resolved virtual disk" in server_log
    assert "BackupVol" in server_log
    assert "Resolved virtual disk" not in paths["middleware.log"].read_text()


def test_repeated_setup_does_not_duplicate_handlers(tmp_path, restore_logging):
    setup_logging(log_dir=tmp_path / "first")
    paths = setup_logging(log_dir=tmp_path / "second")
    get_server_logger().info("after second setup")

    for name in ("server", "smb_vdisk", "middleware"):
        file_handlers = [
            h for h in logging.getLogger(name).handlers if isinstance(h, RotatingFileHandler)
        ]
        assert len(file_handlers) == 1
    assert paths["server.log"].read_text().count("after second setup") == 1
    assert "after second setup" not in (tmp_path / "first" / "server.log").read_text()


def test_unknown_level_falls_back_to_info(tmp_path, restore_logging):
    setup_logging(log_dir=tmp_path, log_level="chatty")

    assert logging.getLogger().level == logging.INFO
