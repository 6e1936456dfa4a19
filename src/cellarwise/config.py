"""
Cellarwise Configuration
Centralized settings for the engine, overridable from the environment
"""

import os

from dotenv import load_dotenv

load_dotenv()

# Readiness algorithm version stamped on every result.
# Bump when constants.AlgorithmConstants or the band tables change.
READINESS_ALGORITHM_VERSION = int(os.getenv("READINESS_ALGORITHM_VERSION", "3"))

# Backfill
BACKFILL_BATCH_SIZE = int(os.getenv("BACKFILL_BATCH_SIZE", "200"))
BACKFILL_WORKERS = int(os.getenv("BACKFILL_WORKERS", "5"))

# Lineup planning
LINEUP_MIN_RATING = float(os.getenv("LINEUP_MIN_RATING", "0.0"))
LINEUP_MAX_POWER_JUMP = int(os.getenv("LINEUP_MAX_POWER_JUMP", "3"))

# OpenAI Model Configuration
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
OPENAI_TEMPERATURE = 0.0  # Deterministic for consistent profiles
OPENAI_SEED = 42  # Fixed seed for reproducibility

# Storage
DATABASE_URL = os.getenv("DATABASE_URL")
DB_POOL_MIN_SIZE = 1
DB_POOL_MAX_SIZE = 5
