"""
Readiness Calculator

Classifies a wine's drinking readiness from vintage age, color and its
structural profile. Pure and deterministic: same inputs and algorithm
version always give an identical ReadinessResult.
"""

from typing import Iterable, List, Optional

import numpy as np

from cellarwise.constants import (
    AlgorithmConstants,
    AgingPotential,
    Confidence,
    ReadinessStatus,
    RED_AGING_BUCKETS,
    RED_DECAY_YEARS,
    RED_SCORE_AT_HOLD_END,
    RED_SCORE_AT_MAX_AGE,
    RED_SCORE_AT_PEAK,
    RED_SCORE_AT_VINTAGE,
    RED_SCORE_FLOOR,
    TYPE_BANDS,
    TypeBand,
    WineColor,
    aging_bucket_for,
)
from cellarwise.heuristics import HeuristicProfileEstimator
from cellarwise.schema import ReadinessResult, StructuralProfile, WineRecord
from cellarwise.utils import clamp, logger, round_half_up


UNKNOWN_VINTAGE_REASON = "vintage out of plausible range"
HEURISTIC_REASON = "structure estimated from grape and region (no AI profile)"


def is_plausible_vintage(vintage_year: Optional[int], current_year: int) -> bool:
    """True when the vintage lies in [MIN_VINTAGE, current_year]."""
    if vintage_year is None or isinstance(vintage_year, bool):
        return False
    return AlgorithmConstants.MIN_VINTAGE <= vintage_year <= current_year


def _interpolate(age: int, ages: List[float], scores: List[float]) -> int:
    # np.interp holds the end values flat outside the anchor range
    value = float(np.interp(age, ages, scores))
    return int(clamp(round_half_up(value), 0, 100))


class ReadinessCalculator:
    """
    Readiness classifier.

    Reds age by structure bucket; sparkling, white and rose follow fixed
    type bands. A missing red profile is estimated heuristically.
    """

    def __init__(self, algorithm_version: int, estimator: Optional[HeuristicProfileEstimator] = None):
        if algorithm_version < 1:
            raise ValueError(f"algorithm_version must be >= 1, got {algorithm_version}")
        self.algorithm_version = algorithm_version
        self.estimator = estimator or HeuristicProfileEstimator()

    def compute(
        self,
        vintage_year: Optional[int],
        current_year: int,
        color=WineColor.RED,
        profile: Optional[StructuralProfile] = None,
        grapes: Iterable[str] = (),
        region: Optional[str] = None,
    ) -> ReadinessResult:
        """
        Compute readiness for one wine.

        Args:
            vintage_year: Harvest year, None for non-vintage
            current_year: Reference year (explicit for determinism)
            color: Wine color
            profile: Stored structural profile, if any
            grapes: Grape names for typicity notes and heuristic fallback
            region: Region text for reasons and heuristic fallback

        Returns:
            ReadinessResult stamped with this calculator's algorithm version
        """
        if not is_plausible_vintage(vintage_year, current_year):
            return self._unknown(current_year)

        age = current_year - vintage_year
        wine_color = WineColor.parse(color)

        if wine_color in TYPE_BANDS:
            return self._compute_band(TYPE_BANDS[wine_color], wine_color, vintage_year, age, grapes, region)
        return self._compute_red(vintage_year, age, profile, grapes, region)

    def compute_for_wine(
        self,
        wine: WineRecord,
        current_year: int,
        profile: Optional[StructuralProfile] = None,
    ) -> ReadinessResult:
        """Compute readiness from a stored wine record."""
        return self.compute(
            wine.vintage_year,
            current_year,
            color=wine.color,
            profile=profile,
            grapes=wine.grapes,
            region=wine.region or wine.appellation,
        )

    def _unknown(self, current_year: int) -> ReadinessResult:
        return ReadinessResult(
            score=AlgorithmConstants.UNKNOWN_SCORE,
            status=ReadinessStatus.UNKNOWN,
            drink_window_start=current_year,
            drink_window_end=current_year,
            confidence=Confidence.LOW,
            reasons=[UNKNOWN_VINTAGE_REASON],
            algorithm_version=self.algorithm_version,
        )

    def _compute_band(self, band: TypeBand, color: WineColor, vintage: int, age: int,
                      grapes, region) -> ReadinessResult:
        start, plateau, at_window_end, floor = band.scores
        score = _interpolate(
            age,
            [0, band.rise_end, band.plateau_end, band.window_end, band.window_end + band.decay_years],
            [start, plateau, plateau, at_window_end, floor],
        )

        if age < band.rise_end:
            status = ReadinessStatus.READY_NOW
            age_reason = f"age {age}y: {color.value} is ready on release, rising until {band.rise_end}y"
        elif age <= band.plateau_end:
            status = ReadinessStatus.PEAK
            age_reason = f"age {age}y within {color.value} peak {band.rise_end}-{band.plateau_end}y"
        elif age <= band.window_end:
            status = ReadinessStatus.IN_WINDOW
            age_reason = f"age {age}y past peak, {color.value} window closes at {band.window_end}y"
        else:
            status = ReadinessStatus.PAST_PEAK
            age_reason = f"age {age}y beyond the {band.window_end}y {color.value} window"

        reasons = [f"{color.value} wines follow a fixed drinking band", age_reason]
        reasons.extend(self.estimator.typicity(grapes))
        if region:
            reasons.append(f"region: {region}")

        return ReadinessResult(
            score=score,
            status=status,
            drink_window_start=vintage,
            drink_window_end=vintage + band.window_end,
            confidence=band.confidence,
            reasons=reasons,
            algorithm_version=self.algorithm_version,
        )

    def _compute_red(self, vintage: int, age: int, profile: Optional[StructuralProfile],
                     grapes, region) -> ReadinessResult:
        reasons = []
        heuristic = profile is None
        if heuristic:
            profile = self.estimator.estimate(grapes, region, WineColor.RED)
            reasons.append(HEURISTIC_REASON)

        structure = profile.structure_score
        bucket = aging_bucket_for(structure)
        hold, peak_start, peak_end, max_age = RED_AGING_BUCKETS[bucket]
        reasons.append(f"structure score {structure:.1f} -> {bucket.value} aging potential")
        reasons.extend(self.estimator.typicity(grapes))

        if age < hold:
            status = ReadinessStatus.TOO_YOUNG
            age_reason = f"age {age}y below the {hold}y hold"
        elif age < peak_start:
            status = ReadinessStatus.APPROACHING
            age_reason = f"age {age}y, peak starts at {peak_start}y"
        elif age <= peak_end:
            status = ReadinessStatus.PEAK
            age_reason = f"age {age}y within peak {peak_start}-{peak_end}y"
        elif age <= max_age:
            status = ReadinessStatus.IN_WINDOW
            age_reason = f"age {age}y past peak, window closes at {max_age}y"
        else:
            status = ReadinessStatus.PAST_PEAK
            age_reason = f"age {age}y beyond max age {max_age}y"
        reasons.append(age_reason)
        if region:
            reasons.append(f"region: {region}")

        score = _interpolate(
            age,
            [0, hold, peak_start, peak_end, max_age, max_age + RED_DECAY_YEARS],
            [RED_SCORE_AT_VINTAGE, RED_SCORE_AT_HOLD_END, RED_SCORE_AT_PEAK,
             RED_SCORE_AT_PEAK, RED_SCORE_AT_MAX_AGE, RED_SCORE_FLOOR],
        )

        decisive = Confidence.MED if bucket == AgingPotential.MEDIUM else Confidence.HIGH
        if heuristic:
            confidence = Confidence.LOW
        elif profile.confidence is not None:
            confidence = Confidence.lowest(decisive, profile.confidence)
        else:
            confidence = decisive

        logger.debug(f"Red readiness: age={age} bucket={bucket.value} status={status.value} score={score}")

        return ReadinessResult(
            score=score,
            status=status,
            drink_window_start=vintage + hold,
            drink_window_end=vintage + max_age,
            confidence=confidence,
            reasons=reasons,
            algorithm_version=self.algorithm_version,
        )


__all__ = [
    'ReadinessCalculator',
    'is_plausible_vintage',
    'UNKNOWN_VINTAGE_REASON',
    'HEURISTIC_REASON',
]
