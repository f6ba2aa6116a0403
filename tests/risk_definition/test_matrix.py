"""
Tests for matrix validation and synchronization.
"""

import pytest

from risk_definition.matrix import (
    MatrixSynchronizer,
    MatrixValidator,
    resync_matrix,
    validate_matrix,
)
from risk_definition.types import CategoryRef, RiskValue, ValidationSeverity

from tests.risk_definition.builders import category, level, matrix_of, risk_scale, scale


@pytest.fixture
def risk_values():
    return risk_scale()


@pytest.fixture
def probability():
    return scale("p0", "p1", "p2")


@pytest.fixture
def validator():
    return MatrixValidator()


@pytest.fixture
def synchronizer():
    return MatrixSynchronizer()


# ============================================================
# MONOTONICITY
# ============================================================

class TestMatrixValidator:
    """Test monotonicity reporting."""

    def test_consistent_matrix_has_no_findings(self, validator, risk_values, probability):
        assert validator.validate(category("C", risk_values), probability) == []

    def test_single_violation_reported_at_its_cell(self, validator, risk_values, probability):
        cat = category("C", risk_values, [[0, 1, 2], [0, 0, 2], [0, 1, 2]])

        messages = validator.validate(cat, probability)

        assert len(messages) == 1
        assert messages[0].severity == ValidationSeverity.WARNING
        assert messages[0].cell == (1, 1)
        assert messages[0].affected_categories == [CategoryRef("C")]
        assert "C" in messages[0].description.get("de")

    def test_cell_breaking_both_directions_reported_twice(self, validator, risk_values):
        cat = category("C", risk_values, [[1, 1], [1, 0]], impacts=2)

        messages = validator.validate(cat, scale("p0", "p1"))

        assert [m.cell for m in messages] == [(1, 1), (1, 1)]

    def test_every_violation_collected(self, validator, risk_values, probability):
        cat = category("C", risk_values, [[2, 1, 0], [2, 1, 0], [2, 1, 0]])

        messages = validator.validate(cat, probability)

        assert sorted(m.cell for m in messages) == [
            (0, 1), (0, 2), (1, 1), (1, 2), (2, 1), (2, 2),
        ]

    def test_category_without_matrix_is_skipped(self, validator, risk_values, probability):
        cat = category("C", risk_values, supports_risk_values=False)
        assert validator.validate(cat, probability) == []

    def test_convenience_function(self, risk_values, probability):
        cat = category("C", risk_values, [[0, 1, 2], [0, 0, 2], [0, 1, 2]])
        assert len(validate_matrix(cat, probability)) == 1


# ============================================================
# STRUCTURE
# ============================================================

class TestStructureValidation:
    """Test shape and risk value checks."""

    def test_matching_matrix_has_no_errors(self, validator, risk_values, probability):
        assert validator.validate_structure(category("C", risk_values), risk_values, probability) == []

    def test_row_count_mismatch_is_an_error(self, validator, risk_values):
        cat = category("C", risk_values)

        messages = validator.validate_structure(cat, risk_values, scale("p0", "p1", "p2", "p3"))

        assert len(messages) == 1
        assert messages[0].is_error
        assert "probability" in messages[0].description.get()

    def test_column_count_mismatch_is_an_error(self, validator, risk_values, probability):
        cat = category("C", risk_values, [[0, 1], [1, 1], [1, 2]], impacts=3)

        messages = validator.validate_structure(cat, risk_values, probability)

        assert len(messages) == 1
        assert "impacts" in messages[0].description.get()

    def test_undefined_risk_value_is_an_error(self, validator, risk_values, probability):
        cat = category("C", risk_values)
        cat.value_matrix[0][0] = RiskValue(0, "rX")

        messages = validator.validate_structure(cat, risk_values, probability)

        assert len(messages) == 1
        assert messages[0].severity == ValidationSeverity.ERROR
        assert "rX" in messages[0].description.get()


# ============================================================
# RESYNCHRONIZATION
# ============================================================

class TestMatrixSynchronizer:
    """Test rebuilding matrices after axis changes."""

    def test_added_probability_row_filled_with_fallback(self, synchronizer, risk_values):
        cat = category("C", risk_values)
        fallback = risk_values.last()

        synced = synchronizer.resync(cat, scale("p0", "p1", "p2", "p3"), fallback)

        assert synced.rows == 4
        assert synced.value_matrix[:3] == cat.value_matrix
        assert synced.value_matrix[3] == [fallback, fallback, fallback]

    def test_removed_impact_column_drops_values(self, synchronizer, risk_values, probability):
        cat = category("C", risk_values)
        cat.potential_impacts = cat.potential_impacts[:2]

        synced = synchronizer.resync(cat, probability, risk_values.last())

        assert synced.columns == 2
        assert synced.value_matrix == [row[:2] for row in cat.value_matrix]

    def test_added_impact_column_filled_with_fallback(self, synchronizer, risk_values, probability):
        cat = category("C", risk_values)
        cat.potential_impacts = cat.potential_impacts + [level("C3")]
        fallback = risk_values.last()

        synced = synchronizer.resync(cat, probability, fallback)

        assert [row[3] for row in synced.value_matrix] == [fallback] * 3

    def test_value_above_fallback_is_capped(self, synchronizer, risk_values, probability):
        cat = category("C", risk_values)
        fallback = risk_values.get_level(1)

        synced = synchronizer.resync(cat, probability, fallback)

        assert synced.value_matrix[0] == matrix_of(risk_values, [[0, 1, 1]])[0]
        assert all(cell.ordinal_value <= 1 for row in synced.value_matrix for cell in row)

    def test_no_impacts_drops_matrix(self, synchronizer, risk_values, probability):
        cat = category("C", risk_values, impacts=0, ordinals=[[], [], []])

        synced = synchronizer.resync(cat, probability, risk_values.last())

        assert synced.value_matrix is None

    def test_input_is_not_modified(self, synchronizer, risk_values):
        cat = category("C", risk_values)
        before = [list(row) for row in cat.value_matrix]

        synchronizer.resync(cat, scale("p0"), risk_values.last())

        assert cat.value_matrix == before

    def test_resync_is_idempotent(self, synchronizer, risk_values):
        probability = scale("p0", "p1", "p2", "p3", "p4")
        once = synchronizer.resync(category("C", risk_values), probability, risk_values.last())
        twice = synchronizer.resync(once, probability, risk_values.last())
        assert once == twice

    def test_unsupported_category_rejected(self, synchronizer, risk_values, probability):
        cat = category("C", risk_values, supports_risk_values=False)
        with pytest.raises(ValueError):
            synchronizer.resync(cat, probability, risk_values.last())

    def test_convenience_function_skips_unsupported(self, risk_values, probability):
        cat = category("C", risk_values, supports_risk_values=False)
        assert resync_matrix(cat, probability, risk_values.last()) is cat
        assert resync_matrix(category("C", risk_values), probability, None).rows == 3
