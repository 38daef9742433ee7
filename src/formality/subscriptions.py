"""Field subscription graph.

Maps each *target* field to the *subscribers* that depend on it. Edges
come from inferred expression dependencies and explicit ``subscribesTo``
declarations and are added/removed as fields mount and unmount.
"""

import logging
from collections import deque
from collections.abc import Iterable

logger = logging.getLogger(__name__)


class SubscriptionGraph:
    """Adjacency map of target -> subscribers, plus the reverse index.

    Example:
        graph = SubscriptionGraph()
        graph.add_subscription("country", "state")
        graph.add_subscription("state", "city")
        graph.affected_by("country")   # {"state", "city"}
    """

    def __init__(self) -> None:
        self._subscribers: dict[str, set[str]] = {}
        self._subscriptions: dict[str, set[str]] = {}
        self._registered: dict[str, None] = {}

    # -------------------------------------------------------------------------
    # Registration
    # -------------------------------------------------------------------------

    def register_field(self, name: str) -> None:
        self._registered.setdefault(name, None)

    def unregister_field(self, name: str) -> None:
        """Forget a field and drop its outgoing subscriptions.

        Edges from other fields to it stay, so they resume when it remounts.
        """
        self._registered.pop(name, None)
        for target in list(self._subscriptions.get(name, ())):
            self.remove_subscription(target, name)

    def is_registered(self, name: str) -> bool:
        return name in self._registered

    def registered_fields(self) -> list[str]:
        """Registered fields in registration order."""
        return list(self._registered)

    # -------------------------------------------------------------------------
    # Edges
    # -------------------------------------------------------------------------

    def add_subscription(self, target: str, subscriber: str) -> None:
        """Make ``subscriber`` react to changes of ``target``."""
        if target == subscriber:
            logger.debug("Ignoring self-subscription of '%s'", target)
            return
        self._subscribers.setdefault(target, set()).add(subscriber)
        self._subscriptions.setdefault(subscriber, set()).add(target)

    def remove_subscription(self, target: str, subscriber: str) -> None:
        subscribers = self._subscribers.get(target)
        if subscribers is not None:
            subscribers.discard(subscriber)
            if not subscribers:
                del self._subscribers[target]

        targets = self._subscriptions.get(subscriber)
        if targets is not None:
            targets.discard(target)
            if not targets:
                del self._subscriptions[subscriber]

    def set_subscriptions(self, subscriber: str, targets: Iterable[str]) -> None:
        """Replace every subscription of ``subscriber`` with ``targets``."""
        wanted = set(targets) - {subscriber}
        current = set(self._subscriptions.get(subscriber, ()))

        for target in current - wanted:
            self.remove_subscription(target, subscriber)
        for target in wanted - current:
            self.add_subscription(target, subscriber)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def subscribers_of(self, target: str) -> set[str]:
        """Fields that directly depend on ``target``."""
        return set(self._subscribers.get(target, ()))

    def subscriptions_of(self, subscriber: str) -> set[str]:
        """Fields that ``subscriber`` directly depends on."""
        return set(self._subscriptions.get(subscriber, ()))

    def watchers(self, target: str) -> dict[str, bool]:
        """Direct subscribers as a ``{name: True}`` map."""
        return {name: True for name in sorted(self._subscribers.get(target, ()))}

    def affected_by(self, name: str) -> set[str]:
        """Every field that depends on ``name``, directly or transitively.

        Cycles are safe; ``name`` itself is never included.
        """
        visited: set[str] = {name}
        queue = deque([name])

        while queue:
            current = queue.popleft()
            for subscriber in self._subscribers.get(current, ()):
                if subscriber not in visited:
                    visited.add(subscriber)
                    queue.append(subscriber)

        visited.discard(name)
        return visited

    def unused_fields(self, all_names: Iterable[str]) -> list[str]:
        """Names from ``all_names`` that are not registered."""
        return [name for name in all_names if name not in self._registered]

    def to_dict(self) -> dict[str, list[str]]:
        """Target -> sorted subscribers, for display."""
        return {
            target: sorted(subscribers)
            for target, subscribers in sorted(self._subscribers.items())
        }
