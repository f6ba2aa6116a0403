"""
Risk Definition Engine - Change Detector.

============================================================
PURPOSE
============================================================
Computes the set of structural changes between a stored risk
definition and a candidate version.

============================================================
ALGORITHM
============================================================
1. No stored version           -> {NewRiskDefinition}
2. Impact inheriting links     -> ImpactLinksChanged
3. Implementation states,
   probability levels          -> TranslationDiff / ListResize / ColorDiff
4. Risk values                 -> RiskValueListResize (+ labels/colors)
5. Category count differs      -> CategoryListResize (removed and added
                                  ids by category id), stop here
6. Per category index          -> RiskMatrixResize / RiskMatrixValueDiff,
                                  TranslationDiff, ImpactListResize (+ labels/colors)

All checks run. Differences are reported once per scope, not
once per level: the result is a set.

Ordinal, label and color comparisons of a level are
independent. A level whose ordinal AND color changed reports
both the resize and the color change.

============================================================
"""

import logging
from typing import Dict, FrozenSet, List, Optional, Set, Sequence, Tuple

from .changes import (
    ChangeScope,
    ColorDiff,
    ImpactLinksChanged,
    ListResize,
    MatrixPresence,
    NewRiskDefinition,
    RiskDefinitionChange,
    RiskMatrixResize,
    RiskMatrixValueDiff,
    TranslationDiff,
    sorted_changes,
)
from .types import (
    CategoryDefinition,
    DiscreteLevel,
    DiscreteScale,
    RiskDefinition,
    Translations,
    ValueMatrix,
)


logger = logging.getLogger(__name__)


class ChangeDetector:
    """
    Pure comparison of two risk definition versions.

    Stateless and side-effect free; safe to share.
    """

    def detect(
        self,
        old: Optional[RiskDefinition],
        new: RiskDefinition,
    ) -> FrozenSet[RiskDefinitionChange]:
        """
        Classify how new differs from old.

        Args:
            old: Stored version, None if there is none
            new: Candidate version

        Returns:
            Set of detected changes, empty if the versions are equivalent
        """
        if old is None:
            return frozenset({NewRiskDefinition()})

        changes: Set[RiskDefinitionChange] = set()

        # --------------------------------------------------
        # Impact inheriting links
        # --------------------------------------------------
        if self._link_entries(old.impact_inheriting_links) != self._link_entries(
            new.impact_inheriting_links
        ):
            changes.add(ImpactLinksChanged())

        # --------------------------------------------------
        # Implementation states and probability
        # --------------------------------------------------
        changes |= self._scale_changes(
            ChangeScope.implementation_state(),
            old.implementation_state_definition,
            new.implementation_state_definition,
        )
        changes |= self._scale_changes(
            ChangeScope.probability(),
            old.probability,
            new.probability,
            affected_category_ids=tuple(c.id for c in old.categories),
        )

        # --------------------------------------------------
        # Risk values
        # --------------------------------------------------
        changes |= self._level_changes(
            ChangeScope.risk_value(),
            old.risk_values.levels,
            new.risk_values.levels,
        )
        if old.risk_values.translations != new.risk_values.translations:
            changes.add(TranslationDiff(ChangeScope.risk_value()))

        # --------------------------------------------------
        # Categories
        # --------------------------------------------------
        if len(old.categories) != len(new.categories):
            changes.add(self._category_list_resize(old.categories, new.categories))
        else:
            for index, (old_cat, new_cat) in enumerate(zip(old.categories, new.categories)):
                changes |= self._category_changes(index, old_cat, new_cat)

        if changes:
            logger.debug(
                f"Detected changes | risk_definition={new.id} "
                f"changes={[repr(c) for c in sorted_changes(changes)]}"
            )
        return frozenset(changes)

    # --------------------------------------------------------
    # SCALES AND LEVELS
    # --------------------------------------------------------

    def _scale_changes(
        self,
        scope: ChangeScope,
        old: DiscreteScale,
        new: DiscreteScale,
        affected_category_ids: Tuple[str, ...] = (),
    ) -> Set[RiskDefinitionChange]:
        changes = self._level_changes(scope, old.levels, new.levels, affected_category_ids)
        if old.translations != new.translations:
            changes.add(TranslationDiff(scope))
        return changes

    def _level_changes(
        self,
        scope: ChangeScope,
        old_levels: Sequence[DiscreteLevel],
        new_levels: Sequence[DiscreteLevel],
        affected_category_ids: Tuple[str, ...] = (),
    ) -> Set[RiskDefinitionChange]:
        """
        Compare two level sequences.

        A size difference is a resize; label and color comparison
        only make sense for equally sized sequences.
        """
        if len(old_levels) != len(new_levels):
            return {ListResize(scope, affected_category_ids)}

        changes: Set[RiskDefinitionChange] = set()
        for old_level, new_level in zip(old_levels, new_levels):
            if old_level.ordinal_value != new_level.ordinal_value:
                changes.add(ListResize(scope, affected_category_ids))
            if self._translations_differ(old_level.translations, new_level.translations):
                changes.add(TranslationDiff(scope))
            if old_level.html_color != new_level.html_color:
                changes.add(ColorDiff(scope))
        return changes

    # --------------------------------------------------------
    # CATEGORIES
    # --------------------------------------------------------

    def _category_list_resize(
        self,
        old: Sequence[CategoryDefinition],
        new: Sequence[CategoryDefinition],
    ) -> ListResize:
        old_ids = [c.id for c in old]
        new_ids = [c.id for c in new]
        return ListResize(
            ChangeScope.category_list(),
            affected_category_ids=tuple(i for i in old_ids if i not in new_ids),
            added_category_ids=tuple(i for i in new_ids if i not in old_ids),
        )

    def _category_changes(
        self,
        index: int,
        old: CategoryDefinition,
        new: CategoryDefinition,
    ) -> Set[RiskDefinitionChange]:
        changes = self._matrix_changes(index, new.id, old.value_matrix, new.value_matrix)

        if self._translations_differ(old.translations, new.translations):
            changes.add(TranslationDiff(ChangeScope.category_list(index)))

        changes |= self._level_changes(
            ChangeScope.impact_list(index),
            old.potential_impacts,
            new.potential_impacts,
            affected_category_ids=(old.id,),
        )
        return changes

    def _matrix_changes(
        self,
        index: int,
        category_id: str,
        old: Optional[ValueMatrix],
        new: Optional[ValueMatrix],
    ) -> Set[RiskDefinitionChange]:
        if old is None and new is None:
            return set()
        if old is None:
            return {RiskMatrixResize(index, category_id, MatrixPresence.ADDED)}
        if new is None:
            return {RiskMatrixResize(index, category_id, MatrixPresence.REMOVED)}
        if self._shape(old) != self._shape(new):
            return {RiskMatrixResize(index, category_id)}

        for old_row, new_row in zip(old, new):
            for old_cell, new_cell in zip(old_row, new_row):
                if (
                    old_cell.ordinal_value != new_cell.ordinal_value
                    or old_cell.symbolic_risk != new_cell.symbolic_risk
                ):
                    return {RiskMatrixValueDiff(index, category_id)}
        return set()

    # --------------------------------------------------------
    # HELPERS
    # --------------------------------------------------------

    @staticmethod
    def _shape(matrix: ValueMatrix) -> List[int]:
        return [len(row) for row in matrix]

    @staticmethod
    def _translations_differ(old: Translations, new: Translations) -> bool:
        return old != new

    @staticmethod
    def _link_entries(links: Dict[str, List[str]]) -> FrozenSet[Tuple[str, FrozenSet[str]]]:
        return frozenset((element_type, frozenset(targets)) for element_type, targets in links.items())


def detect_changes(
    old: Optional[RiskDefinition],
    new: RiskDefinition,
) -> FrozenSet[RiskDefinitionChange]:
    """Convenience wrapper around a throwaway ChangeDetector."""
    return ChangeDetector().detect(old, new)
