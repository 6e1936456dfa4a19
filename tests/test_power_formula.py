"""
Tests for the centralized power formula.

Power must stay a pure function of the five base axes, rounded half-up
and clamped to 1-10; the structure score drives red aging buckets.
"""

import pandas as pd

from cellarwise.constants import AgingPotential, aging_bucket_for
from cellarwise.power_formula import (
    add_power_features_to_dataframe,
    calculate_power,
    calculate_structure_score,
)


class TestCalculatePower:
    """Test power derivation."""

    def test_full_bodied_wine_clamps_to_ten(self):
        """Raw 23.5 / 2 = 11.75 is clamped to the maximum."""
        axes = {'body': 4, 'tannin': 5, 'acidity': 5, 'oak': 4, 'sweetness': 0}
        assert calculate_power(axes) == 10

    def test_empty_axes_clamp_to_one(self):
        """All-zero axes give the minimum power."""
        assert calculate_power({}) == 1

    def test_rounds_half_up(self):
        """4.5 rounds to 5, not to the even 4."""
        axes = {'body': 2, 'tannin': 2, 'oak': 2, 'acidity': 0, 'sweetness': 0}
        assert calculate_power(axes) == 5

    def test_pinot_noir_power(self):
        """(4 + 3 + 2 + 4) / 2 = 6.5 -> 7."""
        axes = {'body': 2, 'tannin': 2, 'acidity': 5, 'oak': 2, 'sweetness': 0}
        assert calculate_power(axes) == 7

    def test_missing_and_none_axes_count_as_zero(self):
        """None values are treated like zeros."""
        assert calculate_power({'body': 5, 'tannin': None}) == 5


class TestStructureScore:
    """Test structure score and aging buckets."""

    def test_nebbiolo_structure_is_high(self):
        score = calculate_structure_score(tannin=5, acidity=5, oak=4, power=10)
        assert score == 15.5
        assert aging_bucket_for(score) == AgingPotential.HIGH

    def test_pinot_noir_structure_is_medium(self):
        power = calculate_power({'body': 2, 'tannin': 2, 'acidity': 5, 'oak': 2})
        score = calculate_structure_score(tannin=2, acidity=5, oak=2, power=power)
        assert power == 7
        assert score == 9.4
        assert aging_bucket_for(score) == AgingPotential.MEDIUM

    def test_gamay_structure_is_low(self):
        power = calculate_power({'body': 2, 'tannin': 1, 'acidity': 4, 'oak': 1})
        score = calculate_structure_score(tannin=1, acidity=4, oak=1, power=power)
        assert score == 6.2
        assert aging_bucket_for(score) == AgingPotential.LOW

    def test_bucket_thresholds_are_inclusive(self):
        assert aging_bucket_for(12.0) == AgingPotential.HIGH
        assert aging_bucket_for(7.0) == AgingPotential.LOW
        assert aging_bucket_for(7.01) == AgingPotential.MEDIUM


class TestDataFrameFeatures:
    """Test vectorized feature columns."""

    def test_matches_scalar_formula(self):
        """Vectorized power equals the scalar calculation row by row."""
        df = pd.DataFrame([
            {'body': 4, 'tannin': 5, 'acidity': 5, 'oak': 4, 'sweetness': 0},
            {'body': 2, 'tannin': 2, 'acidity': 0, 'oak': 2, 'sweetness': 0},
            {'body': 2, 'tannin': 1, 'acidity': 4, 'oak': 1, 'sweetness': 0},
        ])
        result = add_power_features_to_dataframe(df)

        expected = [calculate_power(row) for row in df.to_dict('records')]
        assert result['power'].tolist() == expected
        assert result['structure_score'].tolist() == [15.5, 5.9, 6.2]

    def test_missing_column_filled_with_zero(self):
        df = pd.DataFrame([{'body': 5, 'tannin': 0, 'acidity': 0, 'oak': 0}])
        result = add_power_features_to_dataframe(df)
        assert result['power'].iloc[0] == 5

    def test_empty_dataframe_returned_unchanged(self):
        df = pd.DataFrame()
        assert add_power_features_to_dataframe(df).empty

    def test_does_not_mutate_input(self):
        df = pd.DataFrame([{'body': 3, 'tannin': 3, 'acidity': 3, 'oak': 3, 'sweetness': 0}])
        add_power_features_to_dataframe(df)
        assert 'power' not in df.columns
