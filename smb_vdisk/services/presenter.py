"""
Outcome presentation

Headless adapters between the mount pipeline and whatever renders it. The
pipeline never touches presentation state; outcomes are published on an
OutcomeChannel and subscribers (such as TabPresenter) own all mutation.
"""

import asyncio
from collections.abc import Callable

import structlog

from ..constants import MSG_INVALID_ADDRESS, MSG_MOUNT_CANCELLED, MSG_MOUNT_FAILED
from ..core.cancellation import CancellationToken
from ..models.enums import FailureReason
from ..models.outcome import Failed, Mounted, MountOutcome, MountTab
from .mount import MountOrchestrator

OutcomeSubscriber = Callable[[MountOutcome], None]

FAILURE_MESSAGES = {
    FailureReason.INVALID_ADDRESS: MSG_INVALID_ADDRESS,
    FailureReason.MOUNT_FAILED: MSG_MOUNT_FAILED,
    FailureReason.CANCELLED: MSG_MOUNT_CANCELLED,
}


class OutcomeChannel:
    """Fan-out of mount outcomes to subscribers."""

    def __init__(self):
        self._subscribers: list[OutcomeSubscriber] = []
        self.logger = structlog.get_logger()

    def subscribe(self, subscriber: OutcomeSubscriber) -> Callable[[], None]:
        """Register a subscriber; returns a function that unsubscribes it."""
        self._subscribers.append(subscriber)

        def unsubscribe() -> None:
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

        return unsubscribe

    def publish(self, outcome: MountOutcome) -> None:
        for subscriber in list(self._subscribers):
            try:
                subscriber(outcome)
            except Exception as e:
                self.logger.error(
                    "Outcome subscriber failed",
                    subscriber=getattr(subscriber, "__qualname__", repr(subscriber)),
                    error=str(e),
                    exc_info=True,
                )


class TabPresenter:
    """Tab strip plus address bar, kept as plain data."""

    def __init__(self):
        self.tabs: dict[str, MountTab] = {}
        self.selected: str | None = None
        self.address_text: str = ""

    def __call__(self, outcome: MountOutcome) -> None:
        self.render(outcome)

    def render(self, outcome: MountOutcome) -> None:
        if isinstance(outcome, Mounted):
            key = outcome.address.url
            self.tabs[key] = MountTab(
                key=key,
                header=outcome.address.raw,
                content=f"Mounted disk from: {outcome.address.raw} ({outcome.identifier})",
                identifier=outcome.identifier,
            )
            self.selected = key
            self.address_text = outcome.address.raw
        elif isinstance(outcome, Failed):
            self.address_text = FAILURE_MESSAGES[outcome.reason]

    def snapshot(self) -> dict:
        return {
            "tabs": [tab.model_dump() for tab in self.tabs.values()],
            "selected": self.selected,
            "address_text": self.address_text,
        }


class MountController:
    """Runs submissions in the background and publishes their outcomes."""

    def __init__(self, orchestrator: MountOrchestrator, channel: OutcomeChannel):
        self.orchestrator = orchestrator
        self.channel = channel
        self._task: asyncio.Task | None = None
        self._token: CancellationToken | None = None

    def submit(self, raw: str) -> asyncio.Task | None:
        """Start mounting ``raw``. Blank input is ignored."""
        if not (raw or "").strip():
            return None
        token = CancellationToken()
        self._token = token
        self._task = asyncio.ensure_future(self._run(raw, token))
        return self._task

    async def _run(self, raw: str, token: CancellationToken) -> MountOutcome:
        outcome = await self.orchestrator.mount(raw, cancel=token)
        self.channel.publish(outcome)
        return outcome

    def cancel(self) -> bool:
        """Cancel the latest submission if it is still running."""
        if self._task is None or self._task.done() or self._token is None:
            return False
        self._token.cancel()
        return True

    async def wait(self) -> MountOutcome | None:
        if self._task is None:
            return None
        return await self._task

    @property
    def busy(self) -> bool:
        return self._task is not None and not self._task.done()
