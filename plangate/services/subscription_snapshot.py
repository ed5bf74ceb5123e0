import logging
from enum import Enum
from typing import Awaitable, Callable, Optional

from plangate.models.subscription import Subscription

logger = logging.getLogger(__name__)


SubscriptionFetcher = Callable[[], Awaitable[Optional[dict]]]


class SnapshotState(str, Enum):
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


class SubscriptionSnapshot:
    """
    Read-through cache of the user's subscription record.

    Starts in ``loading`` until the first fetch resolves. Each refresh takes a
    generation number and only the most recently started fetch may publish its
    result (last-fetch-wins). The snapshot never writes to billing.
    """

    def __init__(self, fetcher: Optional[SubscriptionFetcher] = None):
        self._fetcher = fetcher
        self._state = SnapshotState.LOADING
        self._value: Optional[Subscription] = None
        self._generation = 0
        self._stale = False
        self._last_error: Optional[str] = None

    @classmethod
    def resolved(cls, subscription: Optional[Subscription]) -> "SubscriptionSnapshot":
        """Snapshot already in ``ready`` state (fixtures, CLI)"""
        snapshot = cls()
        snapshot._publish(subscription)
        return snapshot

    @classmethod
    def failed(cls, error: str = "fetch failed") -> "SubscriptionSnapshot":
        snapshot = cls()
        snapshot._fail(error)
        return snapshot

    @property
    def state(self) -> SnapshotState:
        return self._state

    @property
    def is_loading(self) -> bool:
        return self._state == SnapshotState.LOADING

    @property
    def is_stale(self) -> bool:
        return self._stale

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    def current(self) -> Optional[Subscription]:
        """Latest resolved subscription; None when absent, loading or failed"""
        if self._state != SnapshotState.READY:
            return None
        return self._value

    def _publish(self, subscription: Optional[Subscription]):
        self._value = subscription
        self._state = SnapshotState.READY
        self._stale = False
        self._last_error = None

    def _fail(self, error: str):
        # Known-failed is pessimistic: drop the last value
        self._value = None
        self._state = SnapshotState.ERROR
        self._stale = False
        self._last_error = error

    async def refresh(self) -> Optional[Subscription]:
        """Fetch the subscription and publish it unless a newer fetch started meanwhile"""
        if self._fetcher is None:
            raise RuntimeError("SubscriptionSnapshot has no fetcher")

        self._generation += 1
        generation = self._generation
        logger.info(f"refresh: Entry - generation: {generation}")

        error = None
        subscription = None
        try:
            payload = await self._fetcher()
            if payload is not None:
                subscription = Subscription.model_validate(payload)
        except Exception as e:
            error = str(e) or type(e).__name__

        if generation != self._generation:
            logger.info(f"refresh: Discarded - generation {generation} superseded by {self._generation}")
            return self.current()

        if error is not None:
            self._fail(error)
            logger.error(f"refresh: Failure - SNAPSHOT_FETCH_FAILED: {error}")
        else:
            self._publish(subscription)
            logger.info(
                f"refresh: Success - plan: {subscription.plan_name if subscription else None}, "
                f"status: {subscription.status.value if subscription else None}"
            )
        return self.current()

    def mark_stale(self):
        self._stale = True

    async def invalidate(self) -> Optional[Subscription]:
        """Mark stale and re-fetch (call after payment success or cancellation)"""
        logger.info("invalidate: Entry")
        self.mark_stale()
        return await self.refresh()
