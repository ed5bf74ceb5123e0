import logging
from datetime import datetime
from typing import Any, Callable, Iterable, Mapping, Optional
from zoneinfo import ZoneInfo

from plangate.core.config import settings
from plangate.models.usage import ResourceKey, UsageCounter

logger = logging.getLogger(__name__)


ResourceProvider = Callable[[], Iterable[Any]]


def local_now() -> datetime:
    """Now in the configured usage timezone; "this month" follows the user's calendar"""
    return datetime.now(ZoneInfo(settings.usage_timezone))


def _field(item: Any, *names: str) -> Any:
    """Read the first present field from a dict or object (camelCase or snake_case)"""
    for name in names:
        if isinstance(item, Mapping):
            if name in item:
                return item[name]
        elif hasattr(item, name):
            return getattr(item, name)
    return None


def _parse_datetime(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            return None
    return None


def _is_deleted(item: Any) -> bool:
    return bool(_field(item, "isDeleted", "is_deleted")) or _field(item, "deletedAt", "deleted_at") is not None


def _is_active_goal(item: Any) -> bool:
    is_active = _field(item, "isActive", "is_active")
    return not _is_deleted(item) and is_active is not False


def _in_month(item: Any, now: datetime) -> bool:
    when = _parse_datetime(_field(item, "transactionDate", "transaction_date", "date"))
    if when is None:
        return False
    if when.tzinfo is not None and now.tzinfo is not None:
        when = when.astimezone(now.tzinfo)
    return when.year == now.year and when.month == now.month


class UsageCounters:
    """
    Live counts of limited resources.

    Counts are derived from the providers on every call and never cached here;
    staleness is whatever the owning resource lists allow.
    """

    def __init__(
        self,
        providers: Optional[Mapping[str, ResourceProvider]] = None,
        clock: Callable[[], datetime] = local_now,
    ):
        self._providers = {ResourceKey(key).value: provider for key, provider in (providers or {}).items()}
        self._clock = clock

    @classmethod
    def from_lists(cls, clock: Optional[Callable[[], datetime]] = None, **lists: Iterable[Any]) -> "UsageCounters":
        """Counters over fixed lists, e.g. ``from_lists(categories=[...])``"""
        providers = {key: (lambda items=list(items): items) for key, items in lists.items()}
        if clock is None:
            return cls(providers)
        return cls(providers, clock=clock)

    def count_of(self, resource_key: str) -> int:
        provider = self._providers.get(resource_key)
        if provider is None:
            return 0

        items = list(provider() or [])
        if resource_key == ResourceKey.TRANSACTIONS.value:
            now = self._clock()
            return sum(1 for item in items if not _is_deleted(item) and _in_month(item, now))
        if resource_key == ResourceKey.GOALS.value:
            return sum(1 for item in items if _is_active_goal(item))
        return sum(1 for item in items if not _is_deleted(item))

    def counter(self, resource_key: str) -> UsageCounter:
        return UsageCounter(resource_key=resource_key, current_count=self.count_of(resource_key))

    def counters(self) -> list[UsageCounter]:
        return [self.counter(key.value) for key in ResourceKey]


async def load_usage_counters(client, resource_keys: Iterable[str] = None) -> UsageCounters:
    """
    Fetch resource lists through a FinanceApiClient and wrap them in counters.
    Only known resource keys are fetched.
    """
    logger.info("load_usage_counters: Entry")

    keys = []
    for key in resource_keys or [k.value for k in ResourceKey]:
        try:
            keys.append(ResourceKey(key).value)
        except ValueError:
            logger.warning(f"load_usage_counters: Unknown resource - {key}")

    lists = {}
    for key in keys:
        lists[key] = await client.list_resources(key)

    logger.info(f"load_usage_counters: Success - {', '.join(keys) or 'none'}")
    return UsageCounters.from_lists(**lists)
