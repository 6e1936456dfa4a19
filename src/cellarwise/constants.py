"""
Cellarwise Constants and Enums

Centralized constants, enums, and tunable weights to eliminate string
duplication and keep every magic number documented in one place.
"""

from enum import Enum
from typing import Dict, Optional, Tuple


# =======================
# WINE ATTRIBUTE ENUMS
# =======================

class WineColor(str, Enum):
    """Wine color categories."""
    RED = "red"
    WHITE = "white"
    ROSE = "rose"
    SPARKLING = "sparkling"

    @classmethod
    def parse(cls, value) -> 'WineColor':
        """Lenient parsing ("Rosé", "Sparkling Brut", "RED"). Unknown → red."""
        if isinstance(value, cls):
            return value
        text = str(value or "").strip().lower().replace("é", "e")
        if "sparkling" in text or "champagne" in text:
            return cls.SPARKLING
        if "rose" in text:
            return cls.ROSE
        if "white" in text:
            return cls.WHITE
        return cls.RED


class Confidence(str, Enum):
    """Confidence levels shared by profiles and readiness results."""
    LOW = "low"
    MED = "med"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _CONFIDENCE_RANK[self]

    @classmethod
    def lowest(cls, *levels: 'Confidence') -> 'Confidence':
        """Return the weakest of the given confidence levels."""
        return min(levels, key=lambda level: level.rank)


_CONFIDENCE_RANK = {Confidence.LOW: 0, Confidence.MED: 1, Confidence.HIGH: 2}


class ProfileOrigin(str, Enum):
    """Where a structural profile came from."""
    AI = "ai"
    HEURISTIC = "heuristic"


class ReadinessStatus(str, Enum):
    """Drinking readiness classification."""
    TOO_YOUNG = "TooYoung"
    APPROACHING = "Approaching"
    PEAK = "Peak"
    IN_WINDOW = "InWindow"
    PAST_PEAK = "PastPeak"
    READY_NOW = "ReadyNow"
    UNKNOWN = "Unknown"


class AgingPotential(str, Enum):
    """Aging-potential bucket derived from the structure score."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# =======================
# FOOD PROFILE ENUMS
# =======================

class Protein(str, Enum):
    BEEF = "beef"
    LAMB = "lamb"
    PORK = "pork"
    POULTRY = "poultry"
    FISH = "fish"
    VEGETARIAN = "vegetarian"
    NONE = "none"


class Sauce(str, Enum):
    NONE = "none"
    TOMATO = "tomato"
    CREAM = "cream"
    BBQ = "bbq"
    RICH = "rich"


class Level(str, Enum):
    """Low/med/high intensity used for spice and smoke."""
    LOW = "low"
    MED = "med"
    HIGH = "high"


# Spellings used by older clients of the app
FOOD_ALIASES: Dict[str, str] = {
    "chicken": "poultry",
    "turkey": "poultry",
    "duck": "poultry",
    "veggie": "vegetarian",
    "vegan": "vegetarian",
    "seafood": "fish",
    "creamy": "cream",
    "medium": "med",
}


class PairingTier(Enum):
    """Pairing tiers with thresholds and display strings."""
    EXCELLENT = ("Excellent match", 75)
    GOOD = ("Good match", 60)
    FAIR = ("Fair match", 45)
    POOR = ("Poor match", 0)

    def __init__(self, display: str, threshold: int):
        self.display = display
        self.threshold = threshold

    @classmethod
    def from_score(cls, score: int) -> 'PairingTier':
        """Get tier from a 0-100 pairing score."""
        if score >= cls.EXCELLENT.threshold:
            return cls.EXCELLENT
        elif score >= cls.GOOD.threshold:
            return cls.GOOD
        elif score >= cls.FAIR.threshold:
            return cls.FAIR
        else:
            return cls.POOR


# =======================
# BACKFILL ENUMS
# =======================

class BackfillMode(str, Enum):
    """Which rows a backfill job visits."""
    MISSING_ONLY = "missing_only"
    STALE_OR_MISSING = "stale_or_missing"
    FORCE_ALL = "force_all"


class JobStatus(str, Enum):
    """Backfill job lifecycle states."""
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


# =======================
# COLUMN NAME CONSTANTS
# =======================

class ColumnNames:
    """Database and DataFrame column names to avoid string hardcoding."""

    ROW_ID = "row_id"
    WINE_ID = "wine_id"
    WINE_NAME = "wine_name"
    VINTAGE = "vintage"
    COLOR = "color"

    # Structural axes
    BODY = "body"
    TANNIN = "tannin"
    ACIDITY = "acidity"
    OAK = "oak"
    SWEETNESS = "sweetness"
    POWER = "power"

    # Readiness
    READINESS_SCORE = "readiness_score"
    READINESS_STATUS = "readiness_status"
    READINESS_CONFIDENCE = "readiness_confidence"
    READINESS_VERSION = "readiness_version"
    DRINK_WINDOW_START = "drink_window_start"
    DRINK_WINDOW_END = "drink_window_end"

    @classmethod
    def axis_columns(cls) -> list:
        """Get the five base structural axes, in power-weight order."""
        return [cls.BODY, cls.TANNIN, cls.OAK, cls.ACIDITY, cls.SWEETNESS]


# =======================
# ALGORITHM CONSTANTS
# =======================

class AlgorithmConstants:
    """
    Algorithm constants with documentation.

    Every weight here is tunable. Changing any of them changes readiness
    output, so bump READINESS_ALGORITHM_VERSION (config) alongside.
    """

    # AXIS RANGES
    MIN_AXIS = 0
    MAX_AXIS = 5
    MIN_POWER = 1
    MAX_POWER = 10

    # POWER FORMULA
    # power = (2*body + 1.5*tannin + 1*oak + 0.8*acidity + 0.2*sweetness) / 2
    # Body dominates perceived intensity, tannin follows; sweetness barely
    # moves it. Divisor maps the 0-27.5 raw range onto roughly 0-10.
    # Order matches ColumnNames.axis_columns().
    POWER_WEIGHTS = (2.0, 1.5, 1.0, 0.8, 0.2)
    POWER_DIVISOR = 2.0

    # STRUCTURE SCORE (aging potential)
    # structure = 1.2*tannin + 0.5*acidity + 0.5*oak + 0.5*power
    # Tannin is the main preservative; acidity and oak support; power adds
    # concentration. Max is 16.0.
    STRUCTURE_TANNIN_WEIGHT = 1.2
    STRUCTURE_ACIDITY_WEIGHT = 0.5
    STRUCTURE_OAK_WEIGHT = 0.5
    STRUCTURE_POWER_WEIGHT = 0.5

    # Bucket cut-offs on the structure score
    # >= 12.0 → high (Nebbiolo, Cabernet, Syrah, Tempranillo)
    # <= 7.0  → low  (Gamay, light reds)
    STRUCTURE_HIGH_THRESHOLD = 12.0
    STRUCTURE_LOW_THRESHOLD = 7.0

    # VINTAGE RANGE
    MIN_VINTAGE = 1900
    UNKNOWN_SCORE = 50


# Red aging buckets: (hold_years, peak_start, peak_end, max_age)
RED_AGING_BUCKETS: Dict[AgingPotential, Tuple[int, int, int, int]] = {
    AgingPotential.LOW: (1, 2, 5, 8),
    AgingPotential.MEDIUM: (2, 3, 8, 15),
    AgingPotential.HIGH: (4, 6, 15, 25),
}

# Red score anchors, keyed by bucket threshold name. Scores are interpolated
# linearly between anchors and held flat beyond the last one.
RED_SCORE_AT_VINTAGE = 20
RED_SCORE_AT_HOLD_END = 60
RED_SCORE_AT_PEAK = 90
RED_SCORE_AT_MAX_AGE = 65
RED_SCORE_FLOOR = 20
RED_DECAY_YEARS = 10


class TypeBand:
    """Fixed age band for non-red wines."""

    def __init__(
        self,
        rise_end: int,
        plateau_end: int,
        window_end: int,
        scores: Tuple[int, int, int, int],
        confidence: Confidence,
        decay_years: int = 7,
    ):
        self.rise_end = rise_end
        self.plateau_end = plateau_end
        self.window_end = window_end
        # (score at age 0, plateau score, score at window end, floor)
        self.scores = scores
        self.confidence = confidence
        self.decay_years = decay_years


TYPE_BANDS: Dict[WineColor, TypeBand] = {
    WineColor.SPARKLING: TypeBand(2, 5, 8, (80, 85, 60, 30), Confidence.HIGH),
    WineColor.WHITE: TypeBand(3, 7, 10, (75, 85, 70, 30), Confidence.MED),
    WineColor.ROSE: TypeBand(1, 3, 5, (75, 85, 60, 30), Confidence.MED),
}


# =======================
# PAIRING CONSTANTS
# =======================

class PairingWeights:
    """Signed weights for the pairing rules (points per axis step)."""

    BASE_SCORE = 50

    # Fat/richness: (tannin + acidity - pivot) * weight
    FAT_PIVOT = 5
    FAT_WEIGHT = 5

    # Red meat wants weight: (body - pivot) * weight
    MEAT_BODY_PIVOT = 3
    MEAT_BODY_WEIGHT = 5

    # Tomato: (acidity - pivot) * weight
    TOMATO_ACID_PIVOT = 3
    TOMATO_ACID_WEIGHT = 6

    # Spice: tannin and alcohol (power) amplify heat, sugar tames it
    SPICE_TANNIN_PIVOT = 3
    SPICE_TANNIN_PENALTY = 5
    SPICE_POWER_PIVOT = 6
    SPICE_POWER_PENALTY = 3
    SPICE_SWEETNESS_CAP = 3
    SPICE_SWEETNESS_REWARD = 4

    # Smoke/char
    SMOKE_OAK_PIVOT = 2
    SMOKE_OAK_WEIGHT = 3
    SMOKE_BODY_PIVOT = 3
    SMOKE_BODY_WEIGHT = 2
    SMOKE_FACTORS = {"med": 1.0, "high": 1.5}

    # Fish
    FISH_TANNIN_PIVOT = 2
    FISH_TANNIN_PENALTY = 6
    FISH_ACID_PIVOT = 3
    FISH_ACID_WEIGHT = 3

    # Poultry / vegetarian
    LIGHT_PROTEIN_BODY_RANGE = (2, 4)
    LIGHT_PROTEIN_BONUS = 5

    # A second rule joins the explanation when it is at least this
    # fraction of the strongest contribution.
    SECONDARY_EXPLANATION_RATIO = 0.5


# =======================
# LINEUP CONSTANTS
# =======================

class LineupConstants:
    """Tasting lineup sizing and labels."""

    MIN_BOTTLES = 2
    MAX_BOTTLES = 6
    GUESTS_PER_BOTTLE = 2
    # Repair passes attempted before accepting a best-effort order
    MAX_REPAIR_PASSES = 6

    SLOT_LABELS = ("Warm-up", "Mid", "Main", "Finale", "Grand Finale", "Closer")


# =======================
# BACKFILL CONSTANTS
# =======================

class BackfillConstants:
    """Bookkeeping limits for backfill jobs (sizes live in config)."""

    MAX_RECORDED_FAILURES = 50
    MAX_ERROR_LENGTH = 500


def aging_bucket_for(structure_score: float) -> AgingPotential:
    """Map a structure score onto an aging-potential bucket."""
    if structure_score >= AlgorithmConstants.STRUCTURE_HIGH_THRESHOLD:
        return AgingPotential.HIGH
    if structure_score <= AlgorithmConstants.STRUCTURE_LOW_THRESHOLD:
        return AgingPotential.LOW
    return AgingPotential.MEDIUM


def normalize_food_value(value: Optional[str]) -> Optional[str]:
    """Lower-case a food field and resolve legacy aliases."""
    if value is None:
        return None
    text = str(value).strip().lower()
    if not text:
        return None
    return FOOD_ALIASES.get(text, text)
