"""
Mount Service

Sequences validation, remote resolution and mount into a single outcome.
"""

import asyncio
from collections.abc import Callable

import structlog

from ..core.address import validate_address
from ..core.cancellation import CancellationToken
from ..core.resolver import RemoteDiskResolver
from ..models.address import Address, InvalidAddress
from ..models.disk import DiskRecord, ResolverError
from ..models.enums import FailureReason, MountState, ResolverErrorKind
from ..models.outcome import Failed, Mounted, MountOutcome

TransitionObserver = Callable[[MountState], None]


class MountOrchestrator:
    """Turns raw address text into exactly one MountOutcome per call.

    Each call runs ``idle -> validating -> resolving -> mounted|failed`` from
    scratch. With ``single_flight`` enabled, concurrent calls for the same
    address share one resolution; the first caller's cancellation token
    governs that shared attempt.
    """

    def __init__(
        self,
        resolver: RemoteDiskResolver,
        require_share: bool = False,
        single_flight: bool = False,
    ):
        self.resolver = resolver
        self.require_share = require_share
        self.single_flight = single_flight
        self.logger = structlog.get_logger()
        self._inflight: dict[str, asyncio.Task] = {}

    async def mount(
        self,
        raw: str,
        cancel: CancellationToken | None = None,
        on_transition: TransitionObserver | None = None,
    ) -> MountOutcome:
        """Validate, resolve and mount the address typed by the user."""
        state = MountState.IDLE

        def advance(new_state: MountState) -> None:
            nonlocal state
            self.logger.debug("Mount state change", previous=state.value, state=new_state.value)
            state = new_state
            if on_transition is not None:
                on_transition(new_state)

        advance(MountState.VALIDATING)
        validated = validate_address(raw, require_share=self.require_share)
        if isinstance(validated, InvalidAddress):
            self.logger.info("Rejected address", raw=validated.raw, reason=validated.reason)
            advance(MountState.FAILED)
            return Failed(
                address=validated.raw,
                reason=FailureReason.INVALID_ADDRESS,
                detail=validated.reason,
            )

        address = validated
        if cancel is not None and cancel.cancelled:
            advance(MountState.FAILED)
            return Failed(address=address, reason=FailureReason.CANCELLED)

        advance(MountState.RESOLVING)
        resolution = await self._resolve(address, cancel)

        outcome = self._to_outcome(address, resolution)
        advance(MountState.MOUNTED if isinstance(outcome, Mounted) else MountState.FAILED)
        self.logger.info(
            "Mount finished",
            address=address.url,
            status=outcome.status,
            identifier=getattr(outcome, "identifier", None),
            reason=outcome.reason.value if isinstance(outcome, Failed) else None,
        )
        return outcome

    async def _resolve(
        self, address: Address, cancel: CancellationToken | None
    ) -> DiskRecord | ResolverError:
        if not self.single_flight:
            return await self.resolver.resolve(address, cancel)

        key = address.url.lower()
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self.resolver.resolve(address, cancel))
            self._inflight[key] = task
            task.add_done_callback(lambda _t, k=key: self._inflight.pop(k, None))
        else:
            self.logger.debug("Joining in-flight resolution", address=address.url)
        return await asyncio.shield(task)

    def _to_outcome(
        self, address: Address, resolution: DiskRecord | ResolverError
    ) -> MountOutcome:
        if isinstance(resolution, ResolverError):
            if resolution.kind is ResolverErrorKind.CANCELLED:
                return Failed(
                    address=address,
                    reason=FailureReason.CANCELLED,
                    cause=resolution.kind,
                    detail=resolution.detail,
                )
            return Failed(
                address=address,
                reason=FailureReason.MOUNT_FAILED,
                cause=resolution.kind,
                detail=resolution.detail,
            )

        return Mounted(address=address, identifier=self._mount_identifier(address, resolution))

    def _mount_identifier(self, address: Address, record: DiskRecord) -> str:
        """Identifier for a resolved disk; no mount table is touched here."""
        return record.friendly_name.strip() or address.url

    def inflight_count(self) -> int:
        return len(self._inflight)
