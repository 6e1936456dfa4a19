"""
Evening Lineup Planner

Picks the best-pairing bottles for a dish and orders them light to bold
by power, repairing jarring jumps with a bridge bottle where one exists.
"""

import math
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Tuple

from cellarwise.config import LINEUP_MAX_POWER_JUMP, LINEUP_MIN_RATING
from cellarwise.constants import LineupConstants
from cellarwise.heuristics import HeuristicProfileEstimator
from cellarwise.pairing import PairingResult, PairingScorer
from cellarwise.schema import Bottle, FoodProfile, LineupSlot, StructuralProfile
from cellarwise.utils import clamp, logger


def target_bottle_count(seat_count: int) -> int:
    """One bottle per two guests, never fewer than 2 or more than 6."""
    wanted = math.ceil(max(seat_count, 0) / LineupConstants.GUESTS_PER_BOTTLE)
    return int(clamp(wanted, LineupConstants.MIN_BOTTLES, LineupConstants.MAX_BOTTLES))


@dataclass
class Candidate:
    """A bottle with its resolved profile and pairing against the dish."""
    bottle: Bottle
    profile: StructuralProfile
    pairing: PairingResult
    rank: int = 0

    @property
    def power(self) -> int:
        return self.profile.power

    @property
    def rating(self) -> float:
        return self.bottle.rating or 0.0

    def rank_key(self) -> tuple:
        readiness = self.bottle.readiness.score if self.bottle.readiness else 0
        return (-self.pairing.score, -self.rating, -readiness, self.bottle.bottle_id)

    def order_key(self) -> tuple:
        return (self.power, -self.rating, self.bottle.bottle_id)


@dataclass
class LineupPlan:
    """Ordered lineup plus what could not be smoothed out."""
    slots: List[LineupSlot]
    target_count: int
    jarring_pairs: List[Tuple[str, str]] = field(default_factory=list)
    swaps: int = 0

    @property
    def best_effort(self) -> bool:
        return bool(self.jarring_pairs)


def _jarring(ordered: List[Candidate], max_jump: int) -> List[Tuple[Candidate, Candidate]]:
    return [
        (a, b) for a, b in zip(ordered, ordered[1:])
        if abs(b.power - a.power) > max_jump
    ]


class LineupOrderer:
    """
    Select and order a tasting lineup, light to bold.

    `min_rating` is an inclusive bound: a bottle rated exactly at the
    threshold stays eligible. Unrated bottles count as 0.
    """

    def __init__(
        self,
        scorer: Optional[PairingScorer] = None,
        estimator: Optional[HeuristicProfileEstimator] = None,
        min_rating: float = LINEUP_MIN_RATING,
        max_power_jump: int = LINEUP_MAX_POWER_JUMP,
    ):
        self.scorer = scorer or PairingScorer()
        self.estimator = estimator or HeuristicProfileEstimator()
        self.min_rating = min_rating
        self.max_power_jump = max_power_jump

    def _candidates(self, pool: Iterable[Bottle], food: FoodProfile) -> List[Candidate]:
        candidates = []
        for bottle in pool:
            if bottle.quantity <= 0 or (bottle.rating or 0.0) < self.min_rating:
                continue
            profile = bottle.profile or self.estimator.estimate(bottle.grapes, bottle.region, bottle.color)
            candidates.append(Candidate(bottle, profile, self.scorer.evaluate(profile, food)))

        candidates.sort(key=Candidate.rank_key)

        distinct = []
        seen_wines = set()
        for candidate in candidates:
            if candidate.bottle.wine_id in seen_wines:
                continue
            seen_wines.add(candidate.bottle.wine_id)
            candidate.rank = len(distinct)
            distinct.append(candidate)
        return distinct

    def _repair(self, selected: List[Candidate], bench: List[Candidate]) -> Tuple[List[Candidate], int]:
        """Swap the lowest-ranked pick for a bridge bottle while that reduces jarring jumps."""
        ordered = sorted(selected, key=Candidate.order_key)
        bridges: List[Candidate] = []
        swaps = 0

        for _ in range(LineupConstants.MAX_REPAIR_PASSES):
            jarring = _jarring(ordered, self.max_power_jump)
            if not jarring or not bench:
                break

            originals = [c for c in ordered if not any(c is b for b in bridges)]
            if not originals:
                break
            weakest = max(originals, key=lambda c: c.rank)
            accepted = None
            for low, high in jarring:
                gap = (min(low.power, high.power), max(low.power, high.power))
                for bridge in bench:
                    if not gap[0] < bridge.power < gap[1]:
                        continue
                    trial = sorted([c for c in ordered if c is not weakest] + [bridge], key=Candidate.order_key)
                    if len(_jarring(trial, self.max_power_jump)) < len(jarring):
                        accepted = (bridge, trial)
                        break
                if accepted:
                    break

            if accepted is None:
                break

            bridge, ordered = accepted
            bench = [c for c in bench if c is not bridge]
            bridges.append(bridge)
            swaps += 1
            logger.debug(f"Swapped {weakest.bottle.bottle_id} for bridge {bridge.bottle.bottle_id}")

        return ordered, swaps

    def plan(self, candidate_pool: Iterable[Bottle], food: Optional[FoodProfile], seat_count: int) -> LineupPlan:
        """
        Build a lineup for a dish and a number of guests.

        Args:
            candidate_pool: In-stock bottles to choose from
            food: Dish description (None = neutral)
            seat_count: Number of guests

        Returns:
            LineupPlan with ordered slots and any jarring pairs left over
        """
        food = food or FoodProfile()
        target = target_bottle_count(seat_count)
        ranked = self._candidates(candidate_pool, food)

        if not ranked:
            logger.info("No eligible bottles for lineup")
            return LineupPlan(slots=[], target_count=target)

        ordered, swaps = self._repair(ranked[:target], ranked[target:])
        jarring = _jarring(ordered, self.max_power_jump)
        if jarring:
            logger.warning(
                f"Best-effort lineup: {len(jarring)} jarring transition(s) over {self.max_power_jump} power"
            )

        slots = []
        for index, candidate in enumerate(ordered):
            label = (
                LineupConstants.SLOT_LABELS[index]
                if index < len(LineupConstants.SLOT_LABELS)
                else f"Wine {index + 1}"
            )
            bottle = candidate.bottle
            if bottle.profile is None:
                bottle = bottle.model_copy(update={"profile": candidate.profile})
            slots.append(LineupSlot(
                position=index + 1,
                label=label,
                bottle=bottle,
                pairing_score=candidate.pairing.score,
                explanation=candidate.pairing.explanation,
                power=candidate.power,
            ))

        return LineupPlan(
            slots=slots,
            target_count=target,
            jarring_pairs=[(a.bottle.bottle_id, b.bottle.bottle_id) for a, b in jarring],
            swaps=swaps,
        )

    def order(self, candidate_pool: Iterable[Bottle], food: Optional[FoodProfile], seat_count: int) -> List[LineupSlot]:
        """Ordered lineup slots, light to bold."""
        return self.plan(candidate_pool, food, seat_count).slots


__all__ = [
    'LineupOrderer',
    'LineupPlan',
    'Candidate',
    'target_bottle_count',
]
