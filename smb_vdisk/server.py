"""
SMB Virtual Disk MCP Server

A FastMCP server that resolves smb://host/share addresses to virtual disks on
the host's management endpoint and reports the mount outcome.
"""

import argparse
import os
import sys
import tempfile
from pathlib import Path
from typing import Annotated, Any

from fastmcp import FastMCP
from pydantic import Field

from .core.config_loader import DEFAULT_CONFIG_FILE, SmbVdiskConfig, load_config
from .core.error_response import MountErrorResponse
from .core.logging_config import get_server_logger
from .core.resolver import RemoteDiskResolver, SessionOpener
from .core.session import ManagementSessionFactory
from .middleware import ErrorHandlingMiddleware, LoggingMiddleware
from .models.outcome import Failed, Mounted
from .services import MountOrchestrator, OutcomeChannel, TabPresenter

MAX_ADDRESS_LENGTH = 2048


class SmbVdiskServer:
    """FastMCP server exposing the mount pipeline as tools."""

    def __init__(
        self,
        config: SmbVdiskConfig,
        config_path: str | None = None,
        open_session: SessionOpener | None = None,
    ):
        self.config = config
        self._config_path = config_path or config.config_file
        self.logger = get_server_logger()

        self.session_factory = ManagementSessionFactory(config)
        resolver = RemoteDiskResolver(
            open_session or self.session_factory.open,
            query_config=config.query,
        )
        self.orchestrator = MountOrchestrator(
            resolver,
            require_share=config.validation.require_share,
            single_flight=config.single_flight,
        )

        # Outcomes reach the presenter only through the channel
        self.channel = OutcomeChannel()
        self.presenter = TabPresenter()
        self.channel.subscribe(self.presenter)

        self.app: FastMCP | None = None

        self.logger.info(
            "SMB virtual disk server initialized",
            configured_hosts=list(config.hosts.keys()),
            query=config.query.model_dump(),
            require_share=config.validation.require_share,
            single_flight=config.single_flight,
            config_path=self._config_path,
        )

    def _initialize_app(self) -> None:
        """Initialize FastMCP app, middleware, and register tools."""
        self.app = FastMCP("SMB Virtual Disk Mounter")
        self._configure_middleware()

        self.app.tool(
            self.mount_share,
            annotations={
                "title": "Mount SMB Virtual Disk",
                "readOnlyHint": False,
                "destructiveHint": False,
                "idempotentHint": True,  # Same address resolves to the same disk
                "openWorldHint": True,  # Queries remote management endpoints
            },
        )
        self.app.tool(
            self.list_mounts,
            annotations={
                "title": "List Mounted Disks",
                "readOnlyHint": True,
                "destructiveHint": False,
                "idempotentHint": True,
                "openWorldHint": False,
            },
        )

    def _configure_middleware(self) -> None:
        """Configure FastMCP middleware stack (first added = first executed)."""
        if self.app is None:
            return
        self.app.add_middleware(
            ErrorHandlingMiddleware(
                include_traceback=self.config.server.log_level.upper() == "DEBUG",
                track_error_stats=True,
            )
        )
        self.app.add_middleware(
            LoggingMiddleware(
                include_payloads=_parse_env_bool("LOG_INCLUDE_PAYLOADS", True),
                max_payload_length=int(os.getenv("LOG_MAX_PAYLOAD_LENGTH", "1000")),
            )
        )

    async def mount_share(
        self,
        address: Annotated[str, Field(description="Share address, e.g. smb://fileserver01/backups")],
    ) -> dict[str, Any]:
        """Resolve an smb:// address to a virtual disk and mount it."""
        if len(address) > MAX_ADDRESS_LENGTH:
            return MountErrorResponse.validation_error(
                "address", address[:64] + "...", f"longer than {MAX_ADDRESS_LENGTH} characters"
            )

        outcome = await self.orchestrator.mount(address)
        self.channel.publish(outcome)
        self.logger.info("Mount request handled", summary=describe_outcome(outcome))

        if isinstance(outcome, Mounted):
            return {
                "success": True,
                "message": f"Mounted disk from: {outcome.address.raw}",
                **outcome.model_dump(mode="json"),
            }
        return MountErrorResponse.from_outcome(outcome)

    async def list_mounts(self) -> dict[str, Any]:
        """List tabs for mounted disks and the current address bar text."""
        snapshot = self.presenter.snapshot()
        return {"success": True, "count": len(snapshot["tabs"]), **snapshot}

    def run(self) -> None:
        """Run the FastMCP server."""
        try:
            self._initialize_app()
            self.logger.info(
                "Starting SMB virtual disk server",
                host=self.config.server.host,
                port=self.config.server.port,
            )
            if self.app is None:
                raise RuntimeError("FastMCP app not initialized")
            self.app.run(
                transport="http",
                host=self.config.server.host,
                port=self.config.server.port,
            )
        except Exception as e:
            self.logger.error("Server startup failed", error=str(e))
            raise


def describe_outcome(outcome: Mounted | Failed) -> str:
    """One-line summary of an outcome for logs and consoles."""
    if isinstance(outcome, Mounted):
        return f"mounted {outcome.address.url} as {outcome.identifier}"
    cause = f" ({outcome.cause.value})" if outcome.cause else ""
    return f"failed {outcome.address_text}: {outcome.reason.value}{cause}"


def _parse_env_bool(var_name: str, default: bool) -> bool:
    value = os.getenv(var_name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments.

    Server options default to None so that unset flags leave the values from
    the config file and environment in place.
    """
    parser = argparse.ArgumentParser(description="SMB virtual disk MCP server")
    parser.add_argument("--host", default=None, help="Server host")
    parser.add_argument("--port", type=int, default=None, help="Server port")
    parser.add_argument(
        "--config",
        default=None,
        help=f"Configuration file path (default: $SMB_VDISK_CONFIG or {DEFAULT_CONFIG_FILE})",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level",
    )
    parser.add_argument(
        "--validate-config", action="store_true", help="Validate configuration and exit"
    )
    return parser.parse_args(argv)


def apply_cli_overrides(config: SmbVdiskConfig, args: argparse.Namespace) -> SmbVdiskConfig:
    """Apply explicitly given command line flags over the loaded configuration."""
    if args.host is not None:
        config.server.host = args.host
    if args.port is not None:
        config.server.port = args.port
    if args.log_level is not None:
        config.server.log_level = args.log_level
    return config


def main() -> None:
    """Main entry point."""
    args = parse_args()
    config = apply_cli_overrides(load_config(args.config), args)
    logger = _setup_logging_system(config.server.log_level, _setup_log_directory())

    if args.validate_config:
        logger.info("Configuration is valid", config_path=config.config_file)
        return

    server = SmbVdiskServer(config, config_path=args.config)
    try:
        server.run()
    except KeyboardInterrupt:
        logger.info("Server shutdown requested")
    except Exception as e:
        logger.error("Server error", error=str(e))
        sys.exit(1)


def _setup_log_directory() -> str | None:
    """Pick a writable log directory."""
    log_dir_candidates = [
        os.getenv("LOG_DIR"),
        str(Path.home() / ".local" / "share" / "smb-vdisk" / "logs"),
        str(Path(tempfile.gettempdir()) / "smb-vdisk-logs"),
    ]
    for candidate in log_dir_candidates:
        if not candidate:
            continue
        try:
            candidate_path = Path(candidate)
            candidate_path.mkdir(parents=True, exist_ok=True)
            if os.access(candidate_path, os.W_OK):
                return str(candidate_path)
        except OSError:
            continue
    return None


def _setup_logging_system(log_level: str, log_dir: str | None):
    """Setup logging, falling back to plain console logging."""
    from .core.logging_config import setup_logging

    try:
        max_file_size_mb = int(os.getenv("LOG_FILE_SIZE_MB", "10"))
        if max_file_size_mb < 1 or max_file_size_mb > 100:
            max_file_size_mb = 10
    except ValueError:
        max_file_size_mb = 10

    try:
        setup_logging(
            log_dir=log_dir or tempfile.gettempdir(),
            log_level=log_level,
            max_file_size_mb=max_file_size_mb,
        )
        return get_server_logger()
    except OSError as e:
        print(f"Logging setup failed ({e}), using basic console logging")
        import logging

        logging.basicConfig(
            level=getattr(logging, log_level.upper(), logging.INFO),
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        )
        return get_server_logger()


if __name__ == "__main__":
    main()
