"""
Utility functions for Cellarwise.

Includes logging setup, name normalization, numeric helpers, and the
on-disk cache for profile-service responses.
"""

import hashlib
import json
import logging
import math
import re
import unicodedata
from pathlib import Path
from typing import Any, Iterable, List, Optional
from datetime import datetime, timedelta

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


# =======================
# NAME NORMALIZATION
# =======================

def normalize_name(name: Any) -> str:
    """
    Normalize a grape or region name for table lookups.

    Folds accents (Albariño → albarino, Rhône → rhone), lower-cases, and
    collapses punctuation/whitespace runs to single spaces. Never raises:
    non-strings are stringified, None becomes "".
    """
    if name is None:
        return ""
    text = unicodedata.normalize('NFKD', str(name))
    text = text.encode('ascii', 'ignore').decode('ascii').lower()
    text = re.sub(r"[^a-z0-9']+", ' ', text)
    return text.strip()


def normalize_names(names: Optional[Iterable[Any]]) -> List[str]:
    """Normalize a list of names, dropping empties. Accepts a bare string."""
    if names is None:
        return []
    if isinstance(names, str):
        names = re.split(r'[,/;]', names)
    try:
        normalized = [normalize_name(name) for name in names]
    except TypeError:
        normalized = [normalize_name(names)]
    return [name for name in normalized if name]


# =======================
# NUMERIC HELPERS
# =======================

def clamp(value: float, low: float, high: float) -> float:
    """Clamp value into [low, high]."""
    return max(low, min(high, value))


def round_half_up(value: float) -> int:
    """Round .5 away from zero's floor (2.5 → 3), unlike banker's round()."""
    return int(math.floor(value + 0.5))


# =======================
# PROFILE RESPONSE CACHING
# =======================

class ProfileCache:
    """
    On-disk cache of profile responses, one JSON file per (model, prompt).

    Entries older than `ttl_days` are treated as missing and removed on read.
    """

    def __init__(self, cache_dir: Optional[Path] = None, ttl_days: int = 30):
        self.cache_dir = Path(cache_dir) if cache_dir is not None else Path.cwd() / '.cache' / 'profiles'
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self.ttl = timedelta(days=ttl_days)
        logger.info(f"Profile cache at {self.cache_dir} (ttl {ttl_days}d)")

    @staticmethod
    def key_for(prompt: str, model: str) -> str:
        return hashlib.sha256(f"{model}\n{prompt}".encode()).hexdigest()

    def _path(self, prompt: str, model: str) -> Path:
        return self.cache_dir / f"{self.key_for(prompt, model)}.json"

    def get(self, prompt: str, model: str) -> Optional[dict]:
        """Cached response for the prompt, or None when absent or expired."""
        path = self._path(prompt, model)
        if not path.exists():
            return None

        try:
            with open(path, 'r') as f:
                entry = json.load(f)
            cached_at = datetime.fromisoformat(entry['cached_at'])
            response = entry['response']
        except (OSError, ValueError, KeyError) as e:
            logger.error(f"Unreadable profile cache entry {path.name}: {e}")
            return None

        if datetime.now() - cached_at > self.ttl:
            logger.debug(f"Profile cache entry {path.stem[:8]} expired")
            path.unlink(missing_ok=True)
            return None

        logger.debug(f"Profile cache hit {path.stem[:8]}")
        return response

    def put(self, prompt: str, model: str, response: dict, wine_id: Optional[str] = None) -> None:
        """Store a validated response."""
        path = self._path(prompt, model)
        entry = {
            'wine_id': wine_id,
            'model': model,
            'cached_at': datetime.now().isoformat(),
            'response': response,
        }
        try:
            with open(path, 'w') as f:
                json.dump(entry, f)
        except (OSError, TypeError) as e:
            logger.error(f"Could not write profile cache entry {path.name}: {e}")

    def clear(self) -> None:
        """Remove every cached entry."""
        removed = 0
        for path in self.cache_dir.glob("*.json"):
            path.unlink()
            removed += 1
        logger.info(f"Profile cache cleared ({removed} entries)")
