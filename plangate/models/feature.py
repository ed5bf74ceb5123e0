from pydantic import BaseModel, ConfigDict

from plangate.models.plan import PlanTier


class FeatureRequirement(BaseModel):
    model_config = ConfigDict(frozen=True)

    feature_key: str
    min_tier: PlanTier

    @property
    def min_tier_level(self) -> int:
        return int(self.min_tier)
