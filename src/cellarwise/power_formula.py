"""
Centralized Power Formula

SINGLE SOURCE OF TRUTH for power and structure score calculations.
Profiles, the readiness calculator, pairing, and reports all call into here.
"""

import numpy as np
import pandas as pd
from typing import Dict, Mapping
from cellarwise.constants import AlgorithmConstants, ColumnNames
from cellarwise.utils import clamp, round_half_up, logger


_POWER_WEIGHTS = np.array(AlgorithmConstants.POWER_WEIGHTS)


def _axis_vector(axes: Mapping[str, float]) -> np.ndarray:
    return np.array([float(axes.get(col, 0) or 0) for col in ColumnNames.axis_columns()])


def calculate_power(axes: Mapping[str, float]) -> int:
    """
    Calculate the power score from the five base axes.

    Args:
        axes: Mapping with body, tannin, oak, acidity, sweetness (0-5)

    Returns:
        Integer power in [MIN_POWER, MAX_POWER]

    Formula:
        raw = 2*body + 1.5*tannin + 1*oak + 0.8*acidity + 0.2*sweetness
        power = round_half_up(clamp(raw / 2, 1, 10))
    """
    raw = float(np.dot(_POWER_WEIGHTS, _axis_vector(axes)))
    scaled = raw / AlgorithmConstants.POWER_DIVISOR
    return round_half_up(clamp(scaled, AlgorithmConstants.MIN_POWER, AlgorithmConstants.MAX_POWER))


def calculate_structure_score(tannin: float, acidity: float, oak: float, power: float) -> float:
    """
    Weighted structure score deciding red aging potential.

    Formula:
        structure = 1.2*tannin + 0.5*acidity + 0.5*oak + 0.5*power
    """
    score = (
        tannin * AlgorithmConstants.STRUCTURE_TANNIN_WEIGHT
        + acidity * AlgorithmConstants.STRUCTURE_ACIDITY_WEIGHT
        + oak * AlgorithmConstants.STRUCTURE_OAK_WEIGHT
        + power * AlgorithmConstants.STRUCTURE_POWER_WEIGHT
    )
    return round(score, 2)


def add_power_features_to_dataframe(df: pd.DataFrame) -> pd.DataFrame:
    """
    Add power and structure_score columns to a DataFrame of profiles.

    Rows missing an axis are treated as 0 on that axis.
    """
    if len(df) == 0:
        return df

    df = df.copy()
    axes = df.reindex(columns=ColumnNames.axis_columns()).fillna(0).astype(float)

    raw = axes.to_numpy() @ _POWER_WEIGHTS / AlgorithmConstants.POWER_DIVISOR
    clipped = np.clip(raw, AlgorithmConstants.MIN_POWER, AlgorithmConstants.MAX_POWER)
    df[ColumnNames.POWER] = np.floor(clipped + 0.5).astype(int)

    df["structure_score"] = (
        axes[ColumnNames.TANNIN] * AlgorithmConstants.STRUCTURE_TANNIN_WEIGHT
        + axes[ColumnNames.ACIDITY] * AlgorithmConstants.STRUCTURE_ACIDITY_WEIGHT
        + axes[ColumnNames.OAK] * AlgorithmConstants.STRUCTURE_OAK_WEIGHT
        + df[ColumnNames.POWER] * AlgorithmConstants.STRUCTURE_POWER_WEIGHT
    ).round(2)

    logger.debug(f"Added power features to {len(df)} profiles")

    return df


__all__ = [
    'calculate_power',
    'calculate_structure_score',
    'add_power_features_to_dataframe'
]
