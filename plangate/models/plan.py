from dataclasses import dataclass
from enum import IntEnum
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict

from plangate.models.usage import ResourceKey


class PlanTier(IntEnum):
    """Closed set of plan tiers; the value is the ordinal tier level."""
    FREE = 0
    PREMIUM = 1
    ENTERPRISE = 2

    @classmethod
    def from_name(cls, name: Optional[str]) -> Optional["PlanTier"]:
        if not name:
            return None
        return cls.__members__.get(name.strip().upper())


@dataclass(frozen=True)
class Finite:
    """A quota ceiling of ``count`` resources."""
    count: int

    def allows(self, current_count: int) -> bool:
        # current_count already includes created resources, so one more must fit
        return current_count < self.count


@dataclass(frozen=True)
class Unlimited:
    """No quota ceiling."""

    def allows(self, current_count: int) -> bool:
        return True


UNLIMITED = Unlimited()

Limit = Union[Finite, Unlimited]


def limit_from_nullable(value: Optional[int]) -> Limit:
    """Billing payloads use null (and legacy -1) for unlimited."""
    if value is None or value < 0:
        return UNLIMITED
    return Finite(int(value))


def limit_to_nullable(limit: Limit) -> Optional[int]:
    if isinstance(limit, Finite):
        return limit.count
    return None


class PlanLimits(BaseModel):
    """Quota ceilings for a plan"""
    model_config = ConfigDict(frozen=True)

    transactions: Limit = UNLIMITED
    goals: Limit = UNLIMITED
    categories: Limit = UNLIMITED

    def for_resource(self, resource_key: str) -> Optional[Limit]:
        """Limit for a resource key, None when the key is not a limited resource"""
        try:
            key = ResourceKey(resource_key)
        except ValueError:
            return None
        return getattr(self, key.value)


class PlanCapabilities(BaseModel):
    model_config = ConfigDict(frozen=True)

    has_ai: bool = False
    has_ocr: bool = False
    has_reports: bool = True
    has_export: bool = False
    has_priority_support: bool = False


class Plan(BaseModel):
    """A subscription plan in the catalog"""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    tier: PlanTier
    limits: PlanLimits = PlanLimits()
    capabilities: PlanCapabilities = PlanCapabilities()
    features: tuple[str, ...] = ()
    description: str = ""
    price: float = 0
    currency: str = "IDR"
    interval: str = "monthly"

    @property
    def tier_level(self) -> int:
        return int(self.tier)
