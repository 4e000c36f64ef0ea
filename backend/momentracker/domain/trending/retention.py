from __future__ import annotations

from dataclasses import dataclass, replace

from momentracker.domain.trending.schemas import RetentionDecision, TrendingDimensions

REASON_CURRENTLY_TRENDING = "currently trending"
REASON_SIX_HOUR_MOMENTUM = "sustained 6h momentum"
REASON_TWENTY_FOUR_HOUR_INTEREST = "sustained 24h interest"
REASON_BELOW_THRESHOLDS = "below thresholds"


@dataclass(slots=True, frozen=True)
class RetentionPolicy:
    six_hour_min_avg_score: float = 50.0
    twenty_four_hour_min_avg_score: float = 40.0

    def decide(self, dimensions: TrendingDimensions) -> RetentionDecision:
        # First match wins.
        if dimensions.real_time.is_currently_trending:
            return RetentionDecision(keep=True, reason=REASON_CURRENTLY_TRENDING)
        if dimensions.six_hour.avg_score > self.six_hour_min_avg_score:
            return RetentionDecision(keep=True, reason=REASON_SIX_HOUR_MOMENTUM)
        if dimensions.twenty_four_hour.avg_score > self.twenty_four_hour_min_avg_score:
            return RetentionDecision(keep=True, reason=REASON_TWENTY_FOUR_HOUR_INTEREST)
        return RetentionDecision(keep=False, reason=REASON_BELOW_THRESHOLDS)

    def apply(self, dimensions: TrendingDimensions) -> TrendingDimensions:
        decision = self.decide(dimensions)
        return replace(dimensions, keep_symbol=decision.keep, keep_reason=decision.reason)
