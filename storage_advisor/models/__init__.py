"""Storage domain enumerations."""

from storage_advisor.models.storage import (
    CostSource,
    EstimationBasis,
    PowerState,
    RecommendationKind,
    Redundancy,
    ResourceKind,
    RunStatus,
    StorageClass,
)

__all__ = [
    "CostSource",
    "EstimationBasis",
    "PowerState",
    "RecommendationKind",
    "Redundancy",
    "ResourceKind",
    "RunStatus",
    "StorageClass",
]
