"""
Heuristic Structural Profiles

Coarse body/tannin/acidity/oak/sweetness estimates from grape, region and
color when no AI profile is available. Tables are pluggable: register new
grapes or regions without touching the readiness calculator.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

import numpy as np

from cellarwise.constants import (
    AlgorithmConstants,
    Confidence,
    ColumnNames,
    ProfileOrigin,
    WineColor,
)
from cellarwise.schema import StructuralProfile
from cellarwise.utils import clamp, logger, normalize_name, normalize_names, round_half_up


NEUTRAL_AXIS = 2

# Maximum tannin a wine of this color can plausibly carry
COLOR_TANNIN_CAPS: Dict[WineColor, int] = {
    WineColor.WHITE: 1,
    WineColor.SPARKLING: 1,
    WineColor.ROSE: 2,
}


@dataclass
class GrapeRule:
    """Absolute axes for a grape variety, matched on normalized aliases."""
    aliases: Tuple[str, ...]
    body: int
    tannin: int
    acidity: int
    oak: int
    sweetness: int = 0
    note: str = ""

    def __post_init__(self):
        self.aliases = tuple(normalize_name(alias) for alias in self.aliases)

    def axes(self) -> np.ndarray:
        return np.array([self.body, self.tannin, self.acidity, self.oak, self.sweetness], dtype=float)

    def matches(self, grape: str) -> bool:
        return grape in self.aliases


@dataclass
class RegionRule:
    """Signed axis deltas applied when a region name contains a keyword."""
    keywords: Tuple[str, ...]
    deltas: Dict[str, int] = field(default_factory=dict)

    def __post_init__(self):
        self.keywords = tuple(normalize_name(keyword) for keyword in self.keywords)

    def matches(self, region: str) -> bool:
        return any(keyword in region for keyword in self.keywords)


# Axis order used by the rule vectors
_AXES = (ColumnNames.BODY, ColumnNames.TANNIN, ColumnNames.ACIDITY, ColumnNames.OAK, ColumnNames.SWEETNESS)


DEFAULT_GRAPE_RULES: List[GrapeRule] = [
    # Reds
    GrapeRule(("nebbiolo",), 4, 5, 5, 3, 0, "Nebbiolo: high tannin and acidity, built for long aging"),
    GrapeRule(("cabernet sauvignon", "cabernet"), 5, 5, 4, 4, 0, "Cabernet Sauvignon: firm tannin, needs years to soften"),
    GrapeRule(("syrah", "shiraz"), 5, 4, 3, 3, 0, "Syrah/Shiraz: dense and tannic, ages well"),
    GrapeRule(("merlot",), 4, 3, 3, 3, 0, "Merlot: supple tannin, approachable earlier"),
    GrapeRule(("pinot noir", "spatburgunder"), 2, 2, 5, 2, 0, "Pinot Noir: light tannin, acidity carries it"),
    GrapeRule(("gamay",), 2, 1, 4, 1, 0, "Gamay: fruit-driven, best young"),
    GrapeRule(("sangiovese",), 3, 4, 5, 2, 0, "Sangiovese: bright acidity and firm tannin"),
    GrapeRule(("tempranillo", "tinta de toro"), 4, 4, 3, 4, 0, "Tempranillo: often oak-aged, long-lived"),
    GrapeRule(("malbec",), 5, 4, 3, 3, 0, "Malbec: ripe and dark, moderate aging"),
    GrapeRule(("grenache", "garnacha"), 4, 2, 2, 2, 0, "Grenache: generous fruit, soft tannin"),
    GrapeRule(("zinfandel", "primitivo"), 5, 3, 2, 3, 1, "Zinfandel: ripe and alcoholic, drink within a decade"),
    GrapeRule(("aglianico",), 5, 5, 5, 3, 0, "Aglianico: fierce tannin, needs long cellaring"),
    # Whites and sparkling
    GrapeRule(("chardonnay",), 4, 0, 3, 3, 0, "Chardonnay: fuller white, often oaked"),
    GrapeRule(("sauvignon blanc",), 2, 0, 5, 0, 0, "Sauvignon Blanc: crisp, drink young"),
    GrapeRule(("riesling",), 2, 0, 5, 0, 2, "Riesling: high acidity lets it age gracefully"),
    GrapeRule(("chenin blanc", "chenin"), 3, 0, 5, 1, 1, "Chenin Blanc: acidity gives aging range"),
    GrapeRule(("albarino", "alvarinho"), 2, 0, 5, 0, 0, "Albarino: fresh and saline, drink young"),
    GrapeRule(("moscato", "muscat"), 2, 0, 2, 0, 4, "Moscato: sweet and aromatic, drink young"),
    GrapeRule(("glera", "prosecco"), 1, 0, 4, 0, 1, "Glera: light and fresh, drink young"),
    GrapeRule(("pinot grigio", "pinot gris"), 2, 0, 3, 0, 0, "Pinot Grigio: light, drink young"),
]


DEFAULT_REGION_RULES: List[RegionRule] = [
    RegionRule(("bordeaux", "napa"), {"body": 1, "tannin": 1, "oak": 1}),
    RegionRule(("burgundy", "bourgogne", "willamette"), {"body": -1, "acidity": 1, "oak": 1}),
    RegionRule(("rioja", "barolo"), {"tannin": 1, "oak": 1}),
    RegionRule(("rhone", "barossa"), {"body": 1, "oak": -1}),
    RegionRule(("brunello", "montalcino"), {"tannin": 1, "acidity": 1}),
    RegionRule(("champagne",), {"acidity": 1}),
    RegionRule(("beaujolais",), {"tannin": -1}),
]


class HeuristicProfileEstimator:
    """
    Grape/region/color lookup estimator.

    Matched grapes are averaged, region deltas are added, then color caps
    apply. Output is always `source=heuristic`, `confidence=low`.
    """

    def __init__(
        self,
        grape_rules: Optional[Iterable[GrapeRule]] = None,
        region_rules: Optional[Iterable[RegionRule]] = None,
    ):
        self.grape_rules: List[GrapeRule] = list(DEFAULT_GRAPE_RULES if grape_rules is None else grape_rules)
        self.region_rules: List[RegionRule] = list(DEFAULT_REGION_RULES if region_rules is None else region_rules)

    def register_grape(self, rule: GrapeRule) -> None:
        """Add a grape rule. Later rules win over earlier ones for the same alias."""
        self.grape_rules.insert(0, rule)
        logger.debug(f"Registered grape rule for {rule.aliases}")

    def register_region(self, rule: RegionRule) -> None:
        """Add a region rule; it stacks with any other matching region rule."""
        self.region_rules.append(rule)
        logger.debug(f"Registered region rule for {rule.keywords}")

    def _match_grapes(self, grapes) -> List[GrapeRule]:
        matched = []
        for grape in normalize_names(grapes):
            rule = next((r for r in self.grape_rules if r.matches(grape)), None)
            if rule is not None and rule not in matched:
                matched.append(rule)
        return matched

    def _match_regions(self, region) -> List[RegionRule]:
        text = normalize_name(region)
        if not text:
            return []
        return [rule for rule in self.region_rules if rule.matches(text)]

    def typicity(self, grapes) -> List[str]:
        """Typicity notes for the matched grapes, in input order."""
        return [rule.note for rule in self._match_grapes(grapes) if rule.note]

    def estimate(self, grapes=None, region=None, color=None) -> StructuralProfile:
        """
        Estimate a structural profile. Never raises.

        Args:
            grapes: List of grape names (or a comma-separated string)
            region: Region or appellation text
            color: Wine color (anything WineColor.parse accepts)

        Returns:
            Heuristic StructuralProfile with low confidence
        """
        wine_color = WineColor.parse(color)
        grape_rules = self._match_grapes(grapes)
        region_rules = self._match_regions(region)

        if not grape_rules and not region_rules:
            return self._neutral()

        if grape_rules:
            axes = np.mean([rule.axes() for rule in grape_rules], axis=0)
        else:
            axes = np.full(len(_AXES), float(NEUTRAL_AXIS))

        for rule in region_rules:
            for axis, delta in rule.deltas.items():
                axes[_AXES.index(axis)] += delta

        values = {
            axis: int(clamp(round_half_up(value), AlgorithmConstants.MIN_AXIS, AlgorithmConstants.MAX_AXIS))
            for axis, value in zip(_AXES, axes)
        }

        cap = COLOR_TANNIN_CAPS.get(wine_color)
        if cap is not None:
            values[ColumnNames.TANNIN] = min(values[ColumnNames.TANNIN], cap)

        return StructuralProfile(
            **values,
            confidence=Confidence.LOW,
            source=ProfileOrigin.HEURISTIC,
        )

    @staticmethod
    def _neutral() -> StructuralProfile:
        return StructuralProfile(
            body=NEUTRAL_AXIS,
            tannin=NEUTRAL_AXIS,
            acidity=NEUTRAL_AXIS,
            oak=NEUTRAL_AXIS,
            sweetness=NEUTRAL_AXIS,
            confidence=Confidence.LOW,
            source=ProfileOrigin.HEURISTIC,
        )


__all__ = [
    'GrapeRule',
    'RegionRule',
    'HeuristicProfileEstimator',
    'DEFAULT_GRAPE_RULES',
    'DEFAULT_REGION_RULES',
]
