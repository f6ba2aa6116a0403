"""
Risk Definition Engine - Change Taxonomy.

============================================================
PURPOSE
============================================================
The closed set of structural differences between two
versions of a risk definition, and the downstream effects
each difference implies.

============================================================
CLOSED TAXONOMY
============================================================
Every change variant maps to exactly one
RiskDefinitionChangeKind. Consumers dispatch through tables
keyed by the kind enum, and each table is checked against the
enum at import time. Adding a kind without teaching every
table about it fails on import.

    NewRiskDefinition          no prior version
    ImpactLinksChanged         impact inheriting links differ
    TranslationDiff(scope)     labels differ somewhere in scope
    ColorDiff(scope)           a level color differs in scope
    ListResize(scope)          a scale changed its number of levels
    RiskMatrixResize(i)        matrix i changed shape
    RiskMatrixValueDiff(i)     matrix i changed a cell

ListResize derives its kind from the scope:
IMPLEMENTATION_STATE / PROBABILITY / RISK_VALUE /
CATEGORY_LIST / IMPACT_LIST -> *_LIST_RESIZE.

============================================================
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional, Tuple, Union

from .types import CategoryRef, TranslatedText


# ============================================================
# SCOPES
# ============================================================


class ScopeArea(str, Enum):
    """Part of a risk definition a translation, color or size change belongs to."""

    IMPLEMENTATION_STATE = "implementation_state"
    PROBABILITY = "probability"
    RISK_VALUE = "risk_value"
    CATEGORY_LIST = "category_list"
    IMPACT_LIST = "impact_list"


@dataclass(frozen=True)
class ChangeScope:
    """
    Where a change happened.

    category_index is required for IMPACT_LIST. For CATEGORY_LIST
    it is set when one category's own labels changed and left
    unset when the list of categories itself changed.
    """

    area: ScopeArea
    category_index: Optional[int] = None

    def __post_init__(self) -> None:
        if self.area == ScopeArea.IMPACT_LIST and self.category_index is None:
            raise ValueError("Impact list scope requires a category index")
        if self.area not in (ScopeArea.IMPACT_LIST, ScopeArea.CATEGORY_LIST) and (
            self.category_index is not None
        ):
            raise ValueError(f"Scope {self.area.value} does not take a category index")

    @classmethod
    def implementation_state(cls) -> "ChangeScope":
        return cls(ScopeArea.IMPLEMENTATION_STATE)

    @classmethod
    def probability(cls) -> "ChangeScope":
        return cls(ScopeArea.PROBABILITY)

    @classmethod
    def risk_value(cls) -> "ChangeScope":
        return cls(ScopeArea.RISK_VALUE)

    @classmethod
    def category_list(cls, category_index: Optional[int] = None) -> "ChangeScope":
        return cls(ScopeArea.CATEGORY_LIST, category_index)

    @classmethod
    def impact_list(cls, category_index: int) -> "ChangeScope":
        return cls(ScopeArea.IMPACT_LIST, category_index)

    def __str__(self) -> str:
        if self.category_index is None:
            return self.area.value
        return f"{self.area.value}[{self.category_index}]"


# ============================================================
# CHANGE KINDS
# ============================================================


class RiskDefinitionChangeKind(str, Enum):
    """
    Every kind of structural change. The allow-list of the save
    gate is a set of these.
    """

    NEW_RISK_DEFINITION = "NewRiskDefinition"
    IMPACT_LINKS_CHANGED = "ImpactLinksChanged"
    TRANSLATION_DIFF = "TranslationDiff"
    COLOR_DIFF = "ColorDiff"
    IMPLEMENTATION_STATE_LIST_RESIZE = "ImplementationStateListResize"
    PROBABILITY_LIST_RESIZE = "ProbabilityListResize"
    RISK_VALUE_LIST_RESIZE = "RiskValueListResize"
    CATEGORY_LIST_RESIZE = "CategoryListResize"
    IMPACT_LIST_RESIZE = "ImpactListResize"
    RISK_MATRIX_RESIZE = "RiskMatrixResize"
    RISK_MATRIX_VALUE_DIFF = "RiskMatrixValueDiff"


RESIZE_KIND_BY_AREA: Dict[ScopeArea, RiskDefinitionChangeKind] = {
    ScopeArea.IMPLEMENTATION_STATE: RiskDefinitionChangeKind.IMPLEMENTATION_STATE_LIST_RESIZE,
    ScopeArea.PROBABILITY: RiskDefinitionChangeKind.PROBABILITY_LIST_RESIZE,
    ScopeArea.RISK_VALUE: RiskDefinitionChangeKind.RISK_VALUE_LIST_RESIZE,
    ScopeArea.CATEGORY_LIST: RiskDefinitionChangeKind.CATEGORY_LIST_RESIZE,
    ScopeArea.IMPACT_LIST: RiskDefinitionChangeKind.IMPACT_LIST_RESIZE,
}


# ============================================================
# CHANGE VARIANTS
# ============================================================


@dataclass(frozen=True)
class NewRiskDefinition:
    """There was no stored version to compare with."""

    @property
    def kind(self) -> RiskDefinitionChangeKind:
        return RiskDefinitionChangeKind.NEW_RISK_DEFINITION


@dataclass(frozen=True)
class ImpactLinksChanged:
    @property
    def kind(self) -> RiskDefinitionChangeKind:
        return RiskDefinitionChangeKind.IMPACT_LINKS_CHANGED


@dataclass(frozen=True)
class TranslationDiff:
    scope: ChangeScope

    @property
    def kind(self) -> RiskDefinitionChangeKind:
        return RiskDefinitionChangeKind.TRANSLATION_DIFF


@dataclass(frozen=True)
class ColorDiff:
    scope: ChangeScope

    @property
    def kind(self) -> RiskDefinitionChangeKind:
        return RiskDefinitionChangeKind.COLOR_DIFF


@dataclass(frozen=True)
class ListResize:
    """
    A scale or list changed its number of levels.

    affected_category_ids lists the categories whose stored
    values become unaddressable; for the category list these are
    the removed categories. added_category_ids lists categories
    new to the category list. Both are informational and do not
    take part in equality.
    """

    scope: ChangeScope
    affected_category_ids: Tuple[str, ...] = field(default=(), compare=False)
    added_category_ids: Tuple[str, ...] = field(default=(), compare=False)

    @property
    def kind(self) -> RiskDefinitionChangeKind:
        return RESIZE_KIND_BY_AREA[self.scope.area]

    @property
    def categories(self) -> List[CategoryRef]:
        return [CategoryRef(category_id) for category_id in self.affected_category_ids]

    @property
    def added_categories(self) -> List[CategoryRef]:
        return [CategoryRef(category_id) for category_id in self.added_category_ids]


class MatrixPresence(str, Enum):
    """How a category's risk matrix changed shape."""

    ADDED = "added"
    REMOVED = "removed"
    RESHAPED = "reshaped"


@dataclass(frozen=True)
class RiskMatrixResize:
    """
    Matrix i changed shape, appeared or disappeared.

    presence is informational and does not take part in equality.
    """

    category_index: int
    category_id: str = field(default="", compare=False)
    presence: MatrixPresence = field(default=MatrixPresence.RESHAPED, compare=False)

    @property
    def kind(self) -> RiskDefinitionChangeKind:
        return RiskDefinitionChangeKind.RISK_MATRIX_RESIZE

    @property
    def category(self) -> CategoryRef:
        return CategoryRef(self.category_id)


@dataclass(frozen=True)
class RiskMatrixValueDiff:
    category_index: int
    category_id: str = field(default="", compare=False)

    @property
    def kind(self) -> RiskDefinitionChangeKind:
        return RiskDefinitionChangeKind.RISK_MATRIX_VALUE_DIFF

    @property
    def category(self) -> CategoryRef:
        return CategoryRef(self.category_id)


RiskDefinitionChange = Union[
    NewRiskDefinition,
    ImpactLinksChanged,
    TranslationDiff,
    ColorDiff,
    ListResize,
    RiskMatrixResize,
    RiskMatrixValueDiff,
]


# Variant class carrying each kind
CHANGE_TYPES: Dict[RiskDefinitionChangeKind, type] = {
    RiskDefinitionChangeKind.NEW_RISK_DEFINITION: NewRiskDefinition,
    RiskDefinitionChangeKind.IMPACT_LINKS_CHANGED: ImpactLinksChanged,
    RiskDefinitionChangeKind.TRANSLATION_DIFF: TranslationDiff,
    RiskDefinitionChangeKind.COLOR_DIFF: ColorDiff,
    RiskDefinitionChangeKind.IMPLEMENTATION_STATE_LIST_RESIZE: ListResize,
    RiskDefinitionChangeKind.PROBABILITY_LIST_RESIZE: ListResize,
    RiskDefinitionChangeKind.RISK_VALUE_LIST_RESIZE: ListResize,
    RiskDefinitionChangeKind.CATEGORY_LIST_RESIZE: ListResize,
    RiskDefinitionChangeKind.IMPACT_LIST_RESIZE: ListResize,
    RiskDefinitionChangeKind.RISK_MATRIX_RESIZE: RiskMatrixResize,
    RiskDefinitionChangeKind.RISK_MATRIX_VALUE_DIFF: RiskMatrixValueDiff,
}


# ============================================================
# CHANGE EFFECTS
# ============================================================


@dataclass(frozen=True)
class RiskRecalculation:
    @property
    def description(self) -> TranslatedText:
        return TranslatedText.of(
            en="Risk values are recalculated.",
            de="Risikowerte werden neu berechnet.",
        )


@dataclass(frozen=True)
class ImpactInheritanceRecalculation:
    @property
    def description(self) -> TranslatedText:
        return TranslatedText.of(
            en="Inherited impact values are recalculated for all assets, processes and scopes.",
            de="Vererbte Auswirkungswerte werden neu berechnet für alle Assets, Prozesse und Scopes.",
        )


@dataclass(frozen=True)
class RiskValueCategoryAddition:
    category: CategoryRef

    @property
    def description(self) -> TranslatedText:
        return TranslatedText.of(
            en="Risk values for category '%s' are added to risks.",
            de="Werte für die Kategorie '%s' werden Risiken hinzugefügt.",
        ).format(self.category)


@dataclass(frozen=True)
class RiskValueCategoryRemoval:
    category: CategoryRef

    @property
    def description(self) -> TranslatedText:
        return TranslatedText.of(
            en="Risk values for category '%s' are removed from all risks.",
            de="Werte für die Kategorie '%s' werden aus allen Risiken entfernt.",
        ).format(self.category)


@dataclass(frozen=True)
class ImpactCategoryRemoval:
    category: CategoryRef

    @property
    def description(self) -> TranslatedText:
        return TranslatedText.of(
            en="Impact values for category '%s' are removed from all assets, processes and scopes.",
            de="Auswirkungswerte für die Kategorie '%s' werden von allen Assets, Prozessen und Scopes entfernt.",
        ).format(self.category)


RiskDefinitionChangeEffect = Union[
    RiskRecalculation,
    ImpactInheritanceRecalculation,
    RiskValueCategoryAddition,
    RiskValueCategoryRemoval,
    ImpactCategoryRemoval,
]


def _no_effects(change: RiskDefinitionChange) -> List[RiskDefinitionChangeEffect]:
    return []


def _category_removal_effects(refs: Iterable[CategoryRef]) -> List[RiskDefinitionChangeEffect]:
    effects: List[RiskDefinitionChangeEffect] = []
    for ref in refs:
        effects.append(RiskValueCategoryRemoval(ref))
        effects.append(ImpactCategoryRemoval(ref))
    return effects


def _impact_list_resize_effects(change: ListResize) -> List[RiskDefinitionChangeEffect]:
    return _category_removal_effects(change.categories)


def _probability_resize_effects(change: ListResize) -> List[RiskDefinitionChangeEffect]:
    return [RiskValueCategoryRemoval(ref) for ref in change.categories]


def _category_list_resize_effects(change: ListResize) -> List[RiskDefinitionChangeEffect]:
    effects: List[RiskDefinitionChangeEffect] = [RiskRecalculation()]
    effects.extend(RiskValueCategoryAddition(ref) for ref in change.added_categories)
    effects.extend(_category_removal_effects(change.categories))
    return effects


def _matrix_resize_effects(change: RiskMatrixResize) -> List[RiskDefinitionChangeEffect]:
    if change.presence == MatrixPresence.REMOVED:
        return [RiskValueCategoryRemoval(change.category)]
    if change.presence == MatrixPresence.ADDED:
        return [RiskRecalculation(), RiskValueCategoryAddition(change.category)]
    return [RiskRecalculation()]


EFFECT_BUILDERS: Dict[
    RiskDefinitionChangeKind, Callable[..., List[RiskDefinitionChangeEffect]]
] = {
    RiskDefinitionChangeKind.NEW_RISK_DEFINITION: _no_effects,
    RiskDefinitionChangeKind.IMPACT_LINKS_CHANGED: lambda c: [ImpactInheritanceRecalculation()],
    RiskDefinitionChangeKind.TRANSLATION_DIFF: _no_effects,
    RiskDefinitionChangeKind.COLOR_DIFF: _no_effects,
    RiskDefinitionChangeKind.IMPLEMENTATION_STATE_LIST_RESIZE: _no_effects,
    RiskDefinitionChangeKind.PROBABILITY_LIST_RESIZE: _probability_resize_effects,
    RiskDefinitionChangeKind.RISK_VALUE_LIST_RESIZE: _no_effects,
    RiskDefinitionChangeKind.CATEGORY_LIST_RESIZE: _category_list_resize_effects,
    RiskDefinitionChangeKind.IMPACT_LIST_RESIZE: _impact_list_resize_effects,
    RiskDefinitionChangeKind.RISK_MATRIX_RESIZE: _matrix_resize_effects,
    RiskDefinitionChangeKind.RISK_MATRIX_VALUE_DIFF: lambda c: [RiskRecalculation()],
}


# Human-facing label of each kind, shown in rejection messages and summaries
CHANGE_KIND_DESCRIPTIONS: Dict[RiskDefinitionChangeKind, TranslatedText] = {
    RiskDefinitionChangeKind.NEW_RISK_DEFINITION: TranslatedText.of(
        en="New risk definition", de="Neue Risikodefinition"
    ),
    RiskDefinitionChangeKind.IMPACT_LINKS_CHANGED: TranslatedText.of(
        en="Impact inheriting links changed", de="Vererbende Links geändert"
    ),
    RiskDefinitionChangeKind.TRANSLATION_DIFF: TranslatedText.of(
        en="Translations changed", de="Übersetzungen geändert"
    ),
    RiskDefinitionChangeKind.COLOR_DIFF: TranslatedText.of(
        en="Colors changed", de="Farben geändert"
    ),
    RiskDefinitionChangeKind.IMPLEMENTATION_STATE_LIST_RESIZE: TranslatedText.of(
        en="Number of implementation states changed",
        de="Anzahl der Umsetzungsstatus geändert",
    ),
    RiskDefinitionChangeKind.PROBABILITY_LIST_RESIZE: TranslatedText.of(
        en="Number of probability levels changed",
        de="Anzahl der Eintrittswahrscheinlichkeiten geändert",
    ),
    RiskDefinitionChangeKind.RISK_VALUE_LIST_RESIZE: TranslatedText.of(
        en="Number of risk values changed", de="Anzahl der Risikowerte geändert"
    ),
    RiskDefinitionChangeKind.CATEGORY_LIST_RESIZE: TranslatedText.of(
        en="Number of categories changed", de="Anzahl der Kategorien geändert"
    ),
    RiskDefinitionChangeKind.IMPACT_LIST_RESIZE: TranslatedText.of(
        en="Number of impact levels changed", de="Anzahl der Auswirkungsstufen geändert"
    ),
    RiskDefinitionChangeKind.RISK_MATRIX_RESIZE: TranslatedText.of(
        en="Risk matrix resized", de="Risikomatrix in der Größe geändert"
    ),
    RiskDefinitionChangeKind.RISK_MATRIX_VALUE_DIFF: TranslatedText.of(
        en="Risk matrix values changed", de="Werte der Risikomatrix geändert"
    ),
}


def ensure_exhaustive(table: Dict[RiskDefinitionChangeKind, object], name: str) -> None:
    """
    Fail if a dispatch table does not cover every change kind.

    Raises:
        TypeError: Listing the kinds the table misses
    """
    missing = set(RiskDefinitionChangeKind) - set(table)
    if missing:
        raise TypeError(
            f"{name} does not handle change kinds: {sorted(k.value for k in missing)}"
        )


ensure_exhaustive(CHANGE_TYPES, "CHANGE_TYPES")
ensure_exhaustive(EFFECT_BUILDERS, "EFFECT_BUILDERS")
ensure_exhaustive(CHANGE_KIND_DESCRIPTIONS, "CHANGE_KIND_DESCRIPTIONS")


# ============================================================
# CHANGE SET HELPERS
# ============================================================


def _sort_key(change: RiskDefinitionChange) -> Tuple[str, str]:
    return (change.kind.value, repr(change))


def sorted_changes(changes: Iterable[RiskDefinitionChange]) -> List[RiskDefinitionChange]:
    """Deterministic order for output and logging."""
    return sorted(set(changes), key=_sort_key)


def kinds_of(changes: Iterable[RiskDefinitionChange]) -> FrozenSet[RiskDefinitionChangeKind]:
    return frozenset(change.kind for change in changes)


def effects_of(change: RiskDefinitionChange) -> List[RiskDefinitionChangeEffect]:
    return EFFECT_BUILDERS[change.kind](change)


def get_effects(changes: Iterable[RiskDefinitionChange]) -> List[RiskDefinitionChangeEffect]:
    """All distinct effects of a change set, in a stable order."""
    effects: List[RiskDefinitionChangeEffect] = []
    for change in sorted_changes(changes):
        for effect in effects_of(change):
            if effect not in effects:
                effects.append(effect)
    return effects


def _distinct_refs(refs: Iterable[CategoryRef]) -> List[CategoryRef]:
    result: List[CategoryRef] = []
    for ref in refs:
        if ref not in result:
            result.append(ref)
    return result


def resized_matrix_categories(changes: Iterable[RiskDefinitionChange]) -> List[CategoryRef]:
    matrix_changes = sorted(
        (c for c in changes if isinstance(c, RiskMatrixResize)),
        key=lambda c: c.category_index,
    )
    return _distinct_refs(c.category for c in matrix_changes)


def changed_matrix_categories(changes: Iterable[RiskDefinitionChange]) -> List[CategoryRef]:
    matrix_changes = sorted(
        (c for c in changes if isinstance(c, RiskMatrixValueDiff)),
        key=lambda c: c.category_index,
    )
    return _distinct_refs(c.category for c in matrix_changes)


def removed_risk_value_categories(changes: Iterable[RiskDefinitionChange]) -> List[CategoryRef]:
    return _distinct_refs(
        e.category for e in get_effects(changes) if isinstance(e, RiskValueCategoryRemoval)
    )


def removed_impact_categories(changes: Iterable[RiskDefinitionChange]) -> List[CategoryRef]:
    return _distinct_refs(
        e.category for e in get_effects(changes) if isinstance(e, ImpactCategoryRemoval)
    )


def added_risk_value_categories(changes: Iterable[RiskDefinitionChange]) -> List[CategoryRef]:
    return _distinct_refs(
        e.category for e in get_effects(changes) if isinstance(e, RiskValueCategoryAddition)
    )


def requires_risk_recalculation(changes: Iterable[RiskDefinitionChange]) -> bool:
    return any(isinstance(e, RiskRecalculation) for e in get_effects(changes))


def requires_impact_inheritance_recalculation(changes: Iterable[RiskDefinitionChange]) -> bool:
    return any(isinstance(e, ImpactInheritanceRecalculation) for e in get_effects(changes))


def requires_migration(changes: Iterable[RiskDefinitionChange]) -> bool:
    """True if stored element values must be migrated after committing the change set."""
    changes = list(changes)
    return (
        RiskDefinitionChangeKind.PROBABILITY_LIST_RESIZE in kinds_of(changes)
        or bool(removed_impact_categories(changes))
        or bool(removed_risk_value_categories(changes))
        or bool(added_risk_value_categories(changes))
    )
