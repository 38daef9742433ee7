"""Debounced auto-save coordination.

The coordinator collects field changes, waits for a quiet period and then
validates and submits the form. Every change and every run bumps an
integer version; a run that sees the version move after any await gives up
silently, so superseded work never submits stale values.

Pipeline for one run:
1. Wait (bounded) for validations already in flight on the run's fields
2. Require the changed fields to be error-free
3. Validate the affected-but-unchanged fields and wait for them to settle
4. Submit the host's current values
"""

import asyncio
import logging
from collections.abc import Iterable
from enum import Enum
from typing import Any, Protocol

from formality.subscriptions import SubscriptionGraph

logger = logging.getLogger(__name__)


class AutoSaveState(Enum):
    """Lifecycle of pending auto-save work."""

    IDLE = "idle"
    PENDING = "pending"  # Changes recorded, no timer running
    DEBOUNCING = "debouncing"  # Timer running
    EXECUTING = "executing"  # Validating/submitting


class SaveOutcome(Enum):
    """How a run ended."""

    SUBMITTED = "submitted"
    ABORTED = "aborted"  # Superseded by a newer change
    BLOCKED = "blocked"  # Validation failed or timed out
    FAILED = "failed"  # The host raised


class AutoSaveHost(Protocol):
    """Form state the coordinator drives.

    Validation triggered by ``set_value`` must be visible through
    ``is_validating`` as soon as ``set_value`` returns.
    """

    def set_value(self, name: str, value: Any) -> None:
        """Store a field value (and start its on-change validation)."""
        ...

    def get_values(self) -> dict[str, Any]:
        """Current value of every field."""
        ...

    def is_validating(self, name: str) -> bool:
        """Whether a validation of the field is in flight."""
        ...

    def get_error(self, name: str) -> Any:
        """The field's current error, or None."""
        ...

    async def trigger_validation(self, names: Iterable[str]) -> bool:
        """Validate exactly the named fields; True when all pass."""
        ...

    async def submit(self, values: dict[str, Any]) -> None:
        """Persist the values."""
        ...


class AutoSaveCoordinator:
    """Debounces changes into validated submissions.

    Usage:
        coordinator = AutoSaveCoordinator(store, graph, debounce=0.5)
        coordinator.change_field("email", "a@example.com")
        ...
        await coordinator.wait_idle()
    """

    def __init__(
        self,
        host: AutoSaveHost,
        graph: SubscriptionGraph | None = None,
        debounce: float = 1.0,
        poll_interval: float = 0.01,
        validation_timeout: float = 5.0,
    ):
        self.host = host
        self.graph = graph if graph is not None else SubscriptionGraph()
        self.debounce = debounce
        self.poll_interval = poll_interval
        self.validation_timeout = validation_timeout

        self.version = 0
        self.pending_changed: set[str] = set()
        self.pending_affected: set[str] = set()
        self.last_outcome: SaveOutcome | None = None

        self._timer: asyncio.TimerHandle | None = None
        self._tasks: set[asyncio.Task] = set()
        self._executing = 0
        # version -> (changed, affected) of runs not yet taken over
        self._held: dict[int, tuple[set[str], set[str]]] = {}

    @property
    def state(self) -> AutoSaveState:
        if self._timer is not None:
            return AutoSaveState.DEBOUNCING
        if self._executing:
            return AutoSaveState.EXECUTING
        if self.pending_changed or self.pending_affected:
            return AutoSaveState.PENDING
        return AutoSaveState.IDLE

    # -------------------------------------------------------------------------
    # Graph delegation
    # -------------------------------------------------------------------------

    def register_field(self, name: str) -> None:
        self.graph.register_field(name)

    def unregister_field(self, name: str) -> None:
        self.graph.unregister_field(name)

    def add_subscription(self, target: str, subscriber: str) -> None:
        self.graph.add_subscription(target, subscriber)

    def remove_subscription(self, target: str, subscriber: str) -> None:
        self.graph.remove_subscription(target, subscriber)

    # -------------------------------------------------------------------------
    # Changes and scheduling
    # -------------------------------------------------------------------------

    def change_field(self, name: str, value: Any) -> None:
        """Store a new value and (re)start the debounce window.

        Must be called from inside a running event loop.
        """
        self.host.set_value(name, value)
        self.mark_changed(name)

    def mark_changed(self, name: str) -> None:
        """Record a change whose value the host already holds."""
        self.pending_changed.add(name)
        self.pending_affected |= self.graph.affected_by(name)
        self.version += 1

        loop = asyncio.get_running_loop()
        if self._timer is not None:
            self._timer.cancel()
        self._timer = loop.call_later(self.debounce, self._fire)
        logger.debug(
            "Field '%s' changed (version %d), save in %.3fs",
            name,
            self.version,
            self.debounce,
        )

    def cancel(self) -> None:
        """Stop the pending timer and invalidate any running execution.

        Pending changes are kept; ``flush()`` can still save them.
        """
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self.version += 1

    async def flush(self) -> SaveOutcome | None:
        """Run the pending save now instead of waiting for the timer."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        task = self._start()
        if task is None:
            return None
        return await task

    async def wait_idle(self) -> None:
        """Wait until no execution is running."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _fire(self) -> None:
        self._timer = None
        self._start()

    def _start(self) -> asyncio.Task | None:
        changed = set(self.pending_changed)
        affected = set(self.pending_affected)
        # Older runs still in flight are superseded; the new run owns their fields
        for held_changed, held_affected in self._held.values():
            changed |= held_changed
            affected |= held_affected
        if not changed and not affected:
            return None

        self._held.clear()
        self.pending_changed, self.pending_affected = set(), set()
        self.version += 1
        self._held[self.version] = (changed, affected)

        task = asyncio.get_running_loop().create_task(
            self._execute(self.version, changed, affected)
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    async def _execute(
        self, version: int, changed: set[str], affected: set[str]
    ) -> SaveOutcome:
        self._executing += 1
        try:
            outcome = await self._run(version, changed, affected)
        except Exception:
            logger.exception("Auto-save run %d failed", version)
            outcome = SaveOutcome.FAILED
        finally:
            self._executing -= 1

        held = self._held.pop(version, None)
        if outcome is SaveOutcome.ABORTED and held is not None:
            # No newer run took these fields over yet
            self.pending_changed |= held[0]
            self.pending_affected |= held[1]

        self.last_outcome = outcome
        logger.debug("Auto-save run %d finished: %s", version, outcome.value)
        return outcome

    async def _run(
        self, version: int, changed: set[str], affected: set[str]
    ) -> SaveOutcome:
        outcome = await self._wait_for_validation(changed | affected, version)
        if outcome is not None:
            return outcome

        invalid = sorted(name for name in changed if self.host.get_error(name) is not None)
        if invalid:
            logger.info("Auto-save run %d blocked by invalid fields: %s", version, invalid)
            return SaveOutcome.BLOCKED

        targets = affected - changed
        if targets:
            valid = await self.host.trigger_validation(sorted(targets))
            if self.version != version:
                return SaveOutcome.ABORTED

            outcome = await self._wait_for_validation(targets, version)
            if outcome is not None:
                return outcome

            if not valid or any(self.host.get_error(name) is not None for name in targets):
                logger.info("Auto-save run %d blocked by affected fields", version)
                return SaveOutcome.BLOCKED

        if self.version != version:
            return SaveOutcome.ABORTED

        await self.host.submit(self.host.get_values())
        return SaveOutcome.SUBMITTED

    async def _wait_for_validation(
        self, names: set[str], version: int
    ) -> SaveOutcome | None:
        """Poll until no named field is validating.

        Returns None when settled, ABORTED when superseded, BLOCKED on
        timeout.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.validation_timeout

        while any(self.host.is_validating(name) for name in names):
            if self.version != version:
                return SaveOutcome.ABORTED
            if loop.time() >= deadline:
                logger.warning(
                    "Auto-save run %d timed out waiting for validation of %s",
                    version,
                    sorted(names),
                )
                return SaveOutcome.BLOCKED
            await asyncio.sleep(self.poll_interval)

        if self.version != version:
            return SaveOutcome.ABORTED
        return None
