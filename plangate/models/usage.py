from enum import Enum

from pydantic import BaseModel, Field


class ResourceKey(str, Enum):
    TRANSACTIONS = "transactions"  # per calendar month
    GOALS = "goals"
    CATEGORIES = "categories"


class UsageCounter(BaseModel):
    resource_key: str
    current_count: int = Field(default=0, ge=0)
