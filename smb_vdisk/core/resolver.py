"""Remote virtual disk resolution.

Looks up the virtual disk whose share name contains the address share path.
The match is a substring match evaluated by the remote query engine, so a
share path of ``back`` also matches ``backups``; the first row wins.
"""

from collections.abc import Awaitable, Callable

import structlog

from ..models.address import Address
from ..models.disk import DiskQuery, DiskRecord, ResolverError
from ..models.enums import ResolverErrorKind
from .cancellation import CancellationToken, run_cancellable
from .cim_query import row_to_record
from .config_loader import QueryConfig
from .exceptions import OperationCancelled
from .session import RemoteSession
from .settings import QUERY_TIMEOUT

SessionOpener = Callable[[str], Awaitable[RemoteSession]]


class RemoteDiskResolver:
    """Resolves an Address to the first matching virtual disk on its host."""

    def __init__(
        self,
        open_session: SessionOpener,
        query_config: QueryConfig | None = None,
        query_timeout: int = QUERY_TIMEOUT,
    ):
        self.open_session = open_session
        self.query_config = query_config or QueryConfig()
        self.query_timeout = query_timeout
        self.logger = structlog.get_logger()

    def build_query(self, address: Address) -> DiskQuery:
        """Build the disk query for an address."""
        return DiskQuery(
            namespace=self.query_config.namespace,
            class_name=self.query_config.class_name,
            share_property=self.query_config.share_property,
            name_property=self.query_config.name_property,
            share_contains=address.share_path,
            timeout=self.query_timeout,
        )

    async def resolve(
        self, address: Address, cancel: CancellationToken | None = None
    ) -> DiskRecord | ResolverError:
        """Find the virtual disk backing ``address``.

        Never raises: every failure comes back as a ResolverError. The session
        opened here is closed exactly once before returning.
        """
        log = self.logger.bind(host=address.host, share_path=address.share_path)

        try:
            session = await run_cancellable(self.open_session(address.host), cancel)
        except OperationCancelled:
            log.info("Resolution cancelled before session opened")
            return ResolverError(kind=ResolverErrorKind.CANCELLED, host=address.host)
        except Exception as e:
            log.warning("Could not open management session", error=str(e))
            return ResolverError(
                kind=ResolverErrorKind.CONNECTION_FAILED, host=address.host, detail=str(e)
            )

        query = self.build_query(address)
        try:
            rows = await run_cancellable(session.query(query), cancel)
            if not rows:
                log.info("No virtual disk matched share path")
                return ResolverError(
                    kind=ResolverErrorKind.NOT_FOUND,
                    host=address.host,
                    detail=f"No {query.class_name} with {query.share_property} "
                    f"containing '{address.share_path}'",
                )
            record = row_to_record(rows[0], query)
        except OperationCancelled:
            log.info("Resolution cancelled during query")
            return ResolverError(kind=ResolverErrorKind.CANCELLED, host=address.host)
        except Exception as e:
            log.warning("Virtual disk query failed", error=str(e), error_type=type(e).__name__)
            return ResolverError(
                kind=ResolverErrorKind.QUERY_FAILED, host=address.host, detail=str(e)
            )
        finally:
            session.close()

        log.info(
            "Resolved virtual disk",
            friendly_name=record.friendly_name,
            share_name=record.share_name,
        )
        return record
