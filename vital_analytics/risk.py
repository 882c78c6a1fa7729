"""Map category distributions to a bounded risk score and tier."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional, Sequence

from .models import UNKNOWN_CATEGORY, CategoryDistribution, InvalidConfigurationError, RiskAssessment


@dataclass(frozen=True)
class RiskTier:
    """Named score band ``[lower, upper)``; ``upper=None`` is unbounded."""

    name: str
    lower: float
    upper: Optional[float] = None

    def contains(self, score: float) -> bool:
        if score < self.lower:
            return False
        return self.upper is None or score < self.upper


@dataclass(frozen=True)
class RiskScale:
    """Category weights plus contiguous tiers covering every reachable score."""

    weights: Mapping[str, float]
    tiers: Sequence[RiskTier]
    excluded: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        tiers = tuple(self.tiers)
        if not self.weights:
            raise InvalidConfigurationError("Risk scale needs at least one category weight")
        if not tiers:
            raise InvalidConfigurationError("Risk scale needs at least one tier")
        for tier in tiers:
            if tier.upper is not None and tier.lower >= tier.upper:
                raise InvalidConfigurationError(f"Risk tier {tier.name!r} has lower >= upper")
        for current, following in zip(tiers, tiers[1:]):
            if current.upper is None or current.upper != following.lower:
                raise InvalidConfigurationError(
                    f"Risk tiers {current.name!r} and {following.name!r} are not contiguous"
                )
        lowest = min(self.weights.values())
        highest = max(self.weights.values())
        if lowest < tiers[0].lower:
            raise InvalidConfigurationError("Risk tiers do not cover the lowest category weight")
        if tiers[-1].upper is not None and highest >= tiers[-1].upper:
            raise InvalidConfigurationError("Risk tiers do not cover the highest category weight")
        object.__setattr__(self, "tiers", tiers)
        object.__setattr__(self, "weights", dict(self.weights))
        object.__setattr__(self, "excluded", tuple(self.excluded))

    def tier_for(self, score: float) -> str:
        for tier in self.tiers:
            if tier.contains(score):
                return tier.name
        raise InvalidConfigurationError(f"Score {score} falls outside every risk tier")


def score(distribution: CategoryDistribution, scale: RiskScale) -> Optional[RiskAssessment]:
    """Count-weighted mean of category weights, mapped to a tier.

    ``Unknown`` readings and categories listed in ``scale.excluded`` are left
    out of the score. Returns None when nothing remains to score.
    """

    weighted_total = 0.0
    sample_size = 0
    for name, stats in distribution.categories.items():
        if name == UNKNOWN_CATEGORY or name in scale.excluded:
            continue
        if name not in scale.weights:
            raise InvalidConfigurationError(f"No risk weight configured for category {name!r}")
        weighted_total += scale.weights[name] * stats.count
        sample_size += stats.count

    if sample_size == 0:
        return None
    value = weighted_total / sample_size
    return RiskAssessment(score=value, tier=scale.tier_for(value), sample_size=sample_size)
