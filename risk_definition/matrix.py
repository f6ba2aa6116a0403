"""
Risk Definition Engine - Matrix Validation and Synchronization.

============================================================
PURPOSE
============================================================
1. MatrixValidator: reports cells that break the monotonicity
   of a category's value matrix, and matrices that do not fit
   their definition (shape, unknown risk values).
2. MatrixSynchronizer: rebuilds a value matrix after the
   probability or impact axis was resized.

============================================================
MONOTONICITY
============================================================
Risk must not decrease with increasing probability or impact:

    matrix[r][c] <= matrix[r][c+1]
    matrix[r][c] <= matrix[r+1][c]

Violations are reported, never fixed. Every violation is
collected; the validator does not stop at the first one.

============================================================
RESYNCHRONIZATION
============================================================
Cell (row, column) of the new matrix keeps the old value only
if the old matrix has that coordinate AND the old value is not
above the fallback. Everything else becomes the fallback,
conventionally the highest risk value. A structural change
therefore never lowers a previously assigned risk value.

============================================================
"""

import logging
from dataclasses import replace
from typing import List, Optional

from .types import (
    CategoryDefinition,
    CategoryRef,
    DiscreteScale,
    RiskValue,
    TranslatedText,
    ValidationMessage,
    ValidationSeverity,
    ValueMatrix,
)


logger = logging.getLogger(__name__)


MATRIX_VALUE_INCONSISTENT_TEXT = TranslatedText.of(
    en="The risk matrices for the following criteria are inconsistent: %s",
    de="Die Risikomatrizen für die folgenden Kriterien sind inkonsistent: %s",
)

UNDEFINED_RISK_VALUES_TEXT = TranslatedText.of(
    en="Invalid risk values for category %s: %s",
    de="Ungültige Risikowerte für die Kategorie %s: %s",
)

IMPACT_MISMATCH_TEXT = TranslatedText.of(
    en="Value matrix for category %s does not conform to impacts.",
    de="Die Wertematrix der Kategorie %s passt nicht zu den Auswirkungen.",
)

PROBABILITY_MISMATCH_TEXT = TranslatedText.of(
    en="Value matrix for category %s does not conform to probability.",
    de="Die Wertematrix der Kategorie %s passt nicht zur Eintrittswahrscheinlichkeit.",
)


# ============================================================
# MATRIX VALIDATOR
# ============================================================


class MatrixValidator:
    """
    Checks value matrices of risk definition categories.

    Stateless. Produces ValidationMessages, never raises for a
    bad matrix.
    """

    def validate(
        self,
        category: CategoryDefinition,
        probability: DiscreteScale,
    ) -> List[ValidationMessage]:
        """
        Report every monotonicity violation of a category's matrix.

        A cell gets one WARNING per direction it violates, so a cell
        lower than both its left and its upper neighbour yields two
        messages with the same coordinate.

        Args:
            category: Category whose matrix is checked
            probability: Probability scale of the owning definition

        Returns:
            WARNING messages with (row, column) set, empty if consistent
        """
        if not category.value_matrix:
            return []

        refs = [CategoryRef.from_category(category)]
        description = MATRIX_VALUE_INCONSISTENT_TEXT.format(category.id)
        matrix = category.value_matrix
        messages: List[ValidationMessage] = []

        for row in range(len(matrix)):
            for column in range(len(matrix[row])):
                current = matrix[row][column].ordinal_value

                if column > 0 and current < matrix[row][column - 1].ordinal_value:
                    messages.append(self._inconsistency(description, refs, row, column))

                if (
                    row > 0
                    and column < len(matrix[row - 1])
                    and current < matrix[row - 1][column].ordinal_value
                ):
                    messages.append(self._inconsistency(description, refs, row, column))

        if messages:
            logger.debug(
                f"Matrix inconsistencies found | category={category.id} "
                f"count={len(messages)} probability_levels={probability.size}"
            )
        return messages

    def validate_structure(
        self,
        category: CategoryDefinition,
        risk_values: DiscreteScale,
        probability: DiscreteScale,
    ) -> List[ValidationMessage]:
        """
        Report matrices that do not fit their definition.

        Checks that every cell is one of the definition's risk values
        and that the matrix has one row per probability level and one
        column per potential impact level.

        Returns:
            ERROR messages without a cell coordinate
        """
        if not category.risk_values_supported:
            return []

        refs = [CategoryRef.from_category(category)]
        messages: List[ValidationMessage] = []

        known = {(rv.ordinal_value, rv.symbolic_risk) for rv in risk_values.levels}
        undefined = sorted(
            {
                cell.symbolic_risk
                for row in category.value_matrix
                for cell in row
                if (cell.ordinal_value, cell.symbolic_risk) not in known
            }
        )
        if undefined:
            messages.append(
                ValidationMessage(
                    severity=ValidationSeverity.ERROR,
                    description=UNDEFINED_RISK_VALUES_TEXT.format(category.id, ", ".join(undefined)),
                    affected_categories=refs,
                )
            )

        if len(category.value_matrix) != probability.size:
            messages.append(
                ValidationMessage(
                    severity=ValidationSeverity.ERROR,
                    description=PROBABILITY_MISMATCH_TEXT.format(category.id),
                    affected_categories=refs,
                )
            )

        impacts = len(category.potential_impacts)
        if any(len(row) != impacts for row in category.value_matrix):
            messages.append(
                ValidationMessage(
                    severity=ValidationSeverity.ERROR,
                    description=IMPACT_MISMATCH_TEXT.format(category.id),
                    affected_categories=refs,
                )
            )

        return messages

    @staticmethod
    def _inconsistency(
        description: TranslatedText,
        refs: List[CategoryRef],
        row: int,
        column: int,
    ) -> ValidationMessage:
        return ValidationMessage(
            severity=ValidationSeverity.WARNING,
            description=description,
            affected_categories=refs,
            row=row,
            column=column,
        )


# ============================================================
# MATRIX SYNCHRONIZER
# ============================================================


class MatrixSynchronizer:
    """
    Fits a category's value matrix to the current axes.

    Only meaningful for categories that support risk values.
    Returns a new CategoryDefinition; the input is not modified.
    """

    def resync(
        self,
        category: CategoryDefinition,
        probability: DiscreteScale,
        fallback: RiskValue,
    ) -> CategoryDefinition:
        """
        Rebuild the matrix to probability.size rows by
        len(potential_impacts) columns.

        Args:
            category: Category to synchronize
            probability: Probability scale defining the row count
            fallback: Value for new cells and for old cells above it

        Returns:
            Category with a synchronized matrix. A category without
            potential impacts loses its matrix.
        """
        category.ensure_risk_values_supported()

        if not category.potential_impacts:
            logger.debug(f"Category {category.id} has no impacts, dropping its matrix")
            return replace(category, value_matrix=None)

        old = category.value_matrix or []
        rows = probability.size
        columns = len(category.potential_impacts)

        matrix: ValueMatrix = [
            [self._value_or_fallback(old, row, column, fallback) for column in range(columns)]
            for row in range(rows)
        ]

        if rows != len(old) or any(len(r) != columns for r in old):
            logger.debug(
                f"Resized matrix | category={category.id} "
                f"from={len(old)}x{len(old[0]) if old else 0} to={rows}x{columns}"
            )

        return replace(category, value_matrix=matrix)

    @staticmethod
    def _value_or_fallback(
        matrix: ValueMatrix,
        row: int,
        column: int,
        fallback: RiskValue,
    ) -> RiskValue:
        if row >= len(matrix) or column >= len(matrix[row]):
            return fallback
        value = matrix[row][column]
        if value.ordinal_value > fallback.ordinal_value:
            return fallback
        return value


# ============================================================
# CONVENIENCE FUNCTIONS
# ============================================================


def validate_matrix(
    category: CategoryDefinition,
    probability: DiscreteScale,
) -> List[ValidationMessage]:
    """Monotonicity check with a throwaway validator."""
    return MatrixValidator().validate(category, probability)


def resync_matrix(
    category: CategoryDefinition,
    probability: DiscreteScale,
    fallback: Optional[RiskValue],
) -> CategoryDefinition:
    """
    Synchronize one category.

    Categories without risk values, or a missing fallback (a
    definition without risk values), leave the category as is.
    """
    if fallback is None or not category.risk_values_supported:
        return category
    return MatrixSynchronizer().resync(category, probability, fallback)
