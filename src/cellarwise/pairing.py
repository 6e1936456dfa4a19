"""
Pairing Scorer

Rates how well a wine's structure suits a described dish. Base score 50,
plus signed rule contributions, clamped to 0-100 and rounded half-up.
"""

from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

from cellarwise.constants import Level, PairingTier, PairingWeights, Protein, Sauce
from cellarwise.heuristics import HeuristicProfileEstimator
from cellarwise.schema import FoodProfile, StructuralProfile
from cellarwise.utils import clamp, round_half_up


NEUTRAL_EXPLANATION = "No strong pairing signals; a neutral match"

W = PairingWeights

RICH_SAUCES = (Sauce.RICH, Sauce.CREAM)
FATTY_PROTEINS = (Protein.BEEF, Protein.LAMB, Protein.PORK)
RED_MEATS = (Protein.BEEF, Protein.LAMB)
LIGHT_PROTEINS = (Protein.POULTRY, Protein.VEGETARIAN)


@dataclass
class RuleContribution:
    """Signed points from one pairing rule and the sentence explaining them."""
    rule: str
    points: float
    text: str


@dataclass
class PairingResult:
    """Full pairing breakdown for one wine/dish combination."""
    score: int
    explanation: str
    contributions: List[RuleContribution] = field(default_factory=list)

    @property
    def tier(self) -> PairingTier:
        return PairingTier.from_score(self.score)


def _fat_rule(p: StructuralProfile, food: FoodProfile) -> Optional[RuleContribution]:
    if food.sauce not in RICH_SAUCES and food.protein not in FATTY_PROTEINS:
        return None
    points = (p.tannin + p.acidity - W.FAT_PIVOT) * W.FAT_WEIGHT
    if points >= 0:
        text = "tannin and acidity cut through the fat and richness"
    else:
        text = "too little tannin or acidity to cut the richness"
    return RuleContribution("fat", points, text)


def _meat_body_rule(p: StructuralProfile, food: FoodProfile) -> Optional[RuleContribution]:
    if food.protein not in RED_MEATS:
        return None
    points = (p.body - W.MEAT_BODY_PIVOT) * W.MEAT_BODY_WEIGHT
    if points >= 0:
        text = "full body matches the weight of red meat protein"
    else:
        text = "too light-bodied for red meat protein"
    return RuleContribution("meat_body", points, text)


def _tomato_rule(p: StructuralProfile, food: FoodProfile) -> Optional[RuleContribution]:
    if food.sauce != Sauce.TOMATO:
        return None
    points = (p.acidity - W.TOMATO_ACID_PIVOT) * W.TOMATO_ACID_WEIGHT
    if points >= 0:
        text = "acidity stands up to the tomato's own acidity"
    else:
        text = "tomato acidity will make the wine taste flat"
    return RuleContribution("tomato", points, text)


def _spice_rule(p: StructuralProfile, food: FoodProfile) -> Optional[RuleContribution]:
    if food.spice_level != Level.HIGH:
        return None
    points = (
        -W.SPICE_TANNIN_PENALTY * max(p.tannin - W.SPICE_TANNIN_PIVOT, 0)
        - W.SPICE_POWER_PENALTY * max(p.power - W.SPICE_POWER_PIVOT, 0)
        + W.SPICE_SWEETNESS_REWARD * min(p.sweetness, W.SPICE_SWEETNESS_CAP)
    )
    if points >= 0:
        text = "residual sweetness tames the heat"
    else:
        text = "tannin and alcohol amplify the heat"
    return RuleContribution("spice", points, text)


def _smoke_rule(p: StructuralProfile, food: FoodProfile) -> Optional[RuleContribution]:
    smoky = food.smoke_level in (Level.MED, Level.HIGH)
    if not smoky and food.sauce != Sauce.BBQ:
        return None
    factor = W.SMOKE_FACTORS.get(food.smoke_level.value if smoky else Level.MED.value, 1.0)
    points = factor * (
        W.SMOKE_OAK_WEIGHT * (p.oak - W.SMOKE_OAK_PIVOT)
        + W.SMOKE_BODY_WEIGHT * (p.body - W.SMOKE_BODY_PIVOT)
    )
    if points >= 0:
        text = "oak and body stand up to smoke and char"
    else:
        text = "too light or unoaked for smoky, charred flavours"
    return RuleContribution("smoke", points, text)


def _fish_rule(p: StructuralProfile, food: FoodProfile) -> Optional[RuleContribution]:
    if food.protein != Protein.FISH:
        return None
    points = (
        -W.FISH_TANNIN_PENALTY * max(p.tannin - W.FISH_TANNIN_PIVOT, 0)
        + W.FISH_ACID_WEIGHT * (p.acidity - W.FISH_ACID_PIVOT)
    )
    if points >= 0:
        text = "fresh acidity lifts the fish"
    else:
        text = "tannin clashes with fish protein"
    return RuleContribution("fish", points, text)


def _light_protein_rule(p: StructuralProfile, food: FoodProfile) -> Optional[RuleContribution]:
    if food.protein not in LIGHT_PROTEINS:
        return None
    low, high = W.LIGHT_PROTEIN_BODY_RANGE
    if not low <= p.body <= high:
        return None
    return RuleContribution("light_protein", W.LIGHT_PROTEIN_BONUS, "medium body suits a lighter protein")


PairingRule = Callable[[StructuralProfile, FoodProfile], Optional[RuleContribution]]

# Order matters: it breaks ties when choosing the explanation
DEFAULT_RULES: Tuple[PairingRule, ...] = (
    _fat_rule,
    _meat_body_rule,
    _tomato_rule,
    _spice_rule,
    _smoke_rule,
    _fish_rule,
    _light_protein_rule,
)


class PairingScorer:
    """Deterministic rule-based wine/food pairing."""

    def __init__(self, rules: Optional[Tuple[PairingRule, ...]] = None):
        self.rules = tuple(DEFAULT_RULES if rules is None else rules)
        self._neutral_profile = HeuristicProfileEstimator().estimate()

    def evaluate(self, profile: Optional[StructuralProfile], food: Optional[FoodProfile]) -> PairingResult:
        """
        Score a profile against a dish and keep the per-rule breakdown.

        Missing profile or food is treated as neutral; never raises.
        """
        profile = profile or self._neutral_profile
        food = food or FoodProfile()

        contributions = [c for c in (rule(profile, food) for rule in self.rules) if c is not None]
        total = sum(c.points for c in contributions)
        score = round_half_up(clamp(W.BASE_SCORE + total, 0, 100))

        return PairingResult(
            score=int(score),
            explanation=self._explain(contributions),
            contributions=contributions,
        )

    def score(self, profile: Optional[StructuralProfile], food: Optional[FoodProfile]) -> Tuple[int, str]:
        """Return (score 0-100, explanation)."""
        result = self.evaluate(profile, food)
        return result.score, result.explanation

    @staticmethod
    def _explain(contributions: List[RuleContribution]) -> str:
        ranked = sorted(
            (c for c in contributions if c.points != 0),
            key=lambda c: abs(c.points),
            reverse=True,
        )
        if not ranked:
            return NEUTRAL_EXPLANATION

        top = ranked[0]
        parts = [top.text]
        if len(ranked) > 1 and abs(ranked[1].points) >= abs(top.points) * W.SECONDARY_EXPLANATION_RATIO:
            parts.append(ranked[1].text)
        return "; ".join(parts)


__all__ = [
    'PairingScorer',
    'PairingResult',
    'RuleContribution',
    'NEUTRAL_EXPLANATION',
    'DEFAULT_RULES',
]
