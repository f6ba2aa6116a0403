"""
Risk Definition Engine - Type Definitions.

============================================================
PURPOSE
============================================================
Data contracts for the Risk Definition Engine.

A risk definition is a multi-dimensional assessment scheme:
probability levels x impact levels -> risk value, one value
matrix per impact category.

============================================================
DESIGN PRINCIPLES
============================================================
- Levels (DiscreteValue, RiskValue) are immutable
- Scales are rebuilt, never patched: ordinals are re-assigned
  densely from the sequence order on construction
- Aggregates are replaced wholesale through the save workflow,
  never edited in place, so change detection stays accurate
- Matrix shape is value_matrix[probability][impact]

============================================================
"""

import copy
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Union


DEFAULT_LOCALE = "en"


# ============================================================
# TRANSLATIONS
# ============================================================


@dataclass(frozen=True)
class Translation:
    """Localized label of a level, scale or category."""

    name: str
    abbreviation: Optional[str] = None
    description: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {"name": self.name}
        if self.abbreviation is not None:
            data["abbreviation"] = self.abbreviation
        if self.description is not None:
            data["description"] = self.description
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Translation":
        return cls(
            name=data["name"],
            abbreviation=data.get("abbreviation"),
            description=data.get("description"),
        )


Translations = Dict[str, Translation]


def _translations_to_dict(translations: Translations) -> Dict[str, Any]:
    return {locale: t.to_dict() for locale, t in sorted(translations.items())}


def _translations_from_dict(data: Optional[Dict[str, Any]]) -> Translations:
    return {locale: Translation.from_dict(t) for locale, t in (data or {}).items()}


@dataclass(frozen=True)
class TranslatedText:
    """
    Human-facing text in several locales.

    Used for validation messages and change effect descriptions.
    """

    translations: Dict[str, str] = field(default_factory=dict, hash=False)

    @classmethod
    def of(cls, **by_locale: str) -> "TranslatedText":
        """Build from keyword arguments, e.g. TranslatedText.of(en=..., de=...)."""
        return cls(translations=dict(by_locale))

    def get(self, locale: str = DEFAULT_LOCALE) -> Optional[str]:
        """Text for a locale, falling back to the default locale."""
        if locale in self.translations:
            return self.translations[locale]
        return self.translations.get(DEFAULT_LOCALE)

    def format(self, *args: Any) -> "TranslatedText":
        """Return a copy with every locale's template formatted with args."""
        return TranslatedText(
            translations={locale: text % args for locale, text in self.translations.items()}
        )

    def __str__(self) -> str:
        return self.get() or ""


# ============================================================
# LEVELS
# ============================================================


@dataclass(frozen=True)
class DiscreteValue:
    """
    One ranked level of a discrete scale.

    Used for probability, potential impact and implementation
    status levels.
    """

    ordinal_value: int
    html_color: Optional[str] = None
    translations: Translations = field(default_factory=dict, hash=False)

    def __post_init__(self) -> None:
        if self.ordinal_value < 0:
            raise ValueError(f"Ordinal value must not be negative: {self.ordinal_value}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ordinal_value": self.ordinal_value,
            "html_color": self.html_color,
            "translations": _translations_to_dict(self.translations),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DiscreteValue":
        return cls(
            ordinal_value=data["ordinal_value"],
            html_color=data.get("html_color"),
            translations=_translations_from_dict(data.get("translations")),
        )


@dataclass(frozen=True)
class RiskValue:
    """
    One level of the overall risk value scale.

    Matrix cells hold RiskValues; a cell is identified by the
    pair (ordinal_value, symbolic_risk).
    """

    ordinal_value: int
    symbolic_risk: str
    html_color: Optional[str] = None
    translations: Translations = field(default_factory=dict, hash=False)

    def __post_init__(self) -> None:
        if self.ordinal_value < 0:
            raise ValueError(f"Ordinal value must not be negative: {self.ordinal_value}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ordinal_value": self.ordinal_value,
            "symbolic_risk": self.symbolic_risk,
            "html_color": self.html_color,
            "translations": _translations_to_dict(self.translations),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RiskValue":
        return cls(
            ordinal_value=data["ordinal_value"],
            symbolic_risk=data["symbolic_risk"],
            html_color=data.get("html_color"),
            translations=_translations_from_dict(data.get("translations")),
        )


DiscreteLevel = Union[DiscreteValue, RiskValue]


def _with_dense_ordinals(levels: List[DiscreteLevel]) -> List[DiscreteLevel]:
    """Re-assign ordinals from the sequence position."""
    return [
        level if level.ordinal_value == index else replace(level, ordinal_value=index)
        for index, level in enumerate(levels)
    ]


def _level_from_dict(data: Dict[str, Any]) -> DiscreteLevel:
    if "symbolic_risk" in data:
        return RiskValue.from_dict(data)
    return DiscreteValue.from_dict(data)


# ============================================================
# DISCRETE SCALE
# ============================================================


@dataclass
class DiscreteScale:
    """
    Ordered list of ranked levels.

    The sequence order IS the ordinal order. Two scales are the
    same size iff they hold the same number of levels.
    """

    levels: List[DiscreteLevel] = field(default_factory=list)
    translations: Translations = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.levels = _with_dense_ordinals(list(self.levels))

    @property
    def size(self) -> int:
        return len(self.levels)

    def last(self) -> Optional[DiscreteLevel]:
        """Highest-ordinal level, None for an empty scale."""
        return self.levels[-1] if self.levels else None

    def get_level(self, ordinal_value: int) -> Optional[DiscreteLevel]:
        if 0 <= ordinal_value < len(self.levels):
            return self.levels[ordinal_value]
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "levels": [level.to_dict() for level in self.levels],
            "translations": _translations_to_dict(self.translations),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DiscreteScale":
        return cls(
            levels=[_level_from_dict(level) for level in data.get("levels", [])],
            translations=_translations_from_dict(data.get("translations")),
        )


# ============================================================
# CATEGORY DEFINITION
# ============================================================


@dataclass(frozen=True)
class CategoryRef:
    """Lightweight reference to a category, used in messages and effects."""

    id: str

    @classmethod
    def from_category(cls, category: "CategoryDefinition") -> "CategoryRef":
        return cls(id=category.id)

    def __str__(self) -> str:
        return self.id


ValueMatrix = List[List[RiskValue]]


@dataclass
class CategoryDefinition:
    """
    One impact dimension (e.g. confidentiality).

    Owns its potential impact levels and, if risk values are
    supported, a value matrix with one row per probability level
    and one column per potential impact level.
    """

    id: str
    potential_impacts: List[DiscreteValue] = field(default_factory=list)
    value_matrix: Optional[ValueMatrix] = None
    translations: Translations = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("A category id must be present.")
        self.potential_impacts = _with_dense_ordinals(list(self.potential_impacts))

    @property
    def risk_values_supported(self) -> bool:
        return self.value_matrix is not None

    @property
    def rows(self) -> int:
        return len(self.value_matrix) if self.value_matrix else 0

    @property
    def columns(self) -> int:
        return len(self.value_matrix[0]) if self.value_matrix else 0

    def ensure_risk_values_supported(self) -> None:
        if not self.risk_values_supported:
            raise ValueError(f"Category {self.id} does not support risk values.")

    def get_risk_value(self, probability_ordinal: int, impact_ordinal: int) -> RiskValue:
        """
        Look up the matrix cell for a probability/impact pair.

        Raises:
            ValueError: If risk values are unsupported or a coordinate is out of range
        """
        self.ensure_risk_values_supported()
        if not 0 <= probability_ordinal < len(self.value_matrix):
            raise ValueError(f"No risk value for probability: {probability_ordinal}")
        row = self.value_matrix[probability_ordinal]
        if not 0 <= impact_ordinal < len(row):
            raise ValueError(f"No risk value for impact: {impact_ordinal}")
        return row[impact_ordinal]

    def get_level(self, ordinal_value: int) -> Optional[DiscreteValue]:
        if 0 <= ordinal_value < len(self.potential_impacts):
            return self.potential_impacts[ordinal_value]
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "potential_impacts": [level.to_dict() for level in self.potential_impacts],
            "value_matrix": (
                [[cell.to_dict() for cell in row] for row in self.value_matrix]
                if self.value_matrix is not None
                else None
            ),
            "translations": _translations_to_dict(self.translations),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CategoryDefinition":
        matrix = data.get("value_matrix")
        return cls(
            id=data["id"],
            potential_impacts=[DiscreteValue.from_dict(l) for l in data.get("potential_impacts", [])],
            value_matrix=(
                [[RiskValue.from_dict(cell) for cell in row] for row in matrix]
                if matrix is not None
                else None
            ),
            translations=_translations_from_dict(data.get("translations")),
        )


# ============================================================
# RISK DEFINITION
# ============================================================


@dataclass(frozen=True)
class RiskMethod:
    """How impacts are combined into a risk value (descriptive only)."""

    impact_method: str = "highwatermark"
    description: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"impact_method": self.impact_method, "description": self.description}


@dataclass
class RiskDefinition:
    """
    The full risk assessment scheme of one methodology in a domain.

    ============================================================
    INVARIANTS (checked on construction)
    ============================================================
    - Category ids are unique
    - Risk value symbolic ids are unique
    - All scales carry dense zero-based ordinals

    Matrix shape and monotonicity are NOT construction
    invariants. They are reported by the matrix validator.

    ============================================================
    """

    id: str
    probability: DiscreteScale = field(default_factory=DiscreteScale)
    implementation_state_definition: DiscreteScale = field(default_factory=DiscreteScale)
    risk_values: DiscreteScale = field(default_factory=DiscreteScale)
    categories: List[CategoryDefinition] = field(default_factory=list)
    impact_inheriting_links: Dict[str, List[str]] = field(default_factory=dict)
    risk_method: Optional[RiskMethod] = None

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("An id must be present.")

        category_ids = [c.id for c in self.categories]
        if len(category_ids) != len(set(category_ids)):
            raise ValueError("Categories not unique.")

        symbolic = [getattr(rv, "symbolic_risk", None) for rv in self.risk_values.levels]
        if None in symbolic:
            raise ValueError("Risk values must carry a symbolic risk id.")
        if len(symbolic) != len(set(symbolic)):
            raise ValueError("SymbolicRisk not unique.")

    def get_category(self, category_id: str) -> Optional[CategoryDefinition]:
        for category in self.categories:
            if category.id == category_id:
                return category
        return None

    def get_risk_value(self, key: Union[str, int]) -> Optional[RiskValue]:
        """Look up a risk value by symbolic id or by ordinal."""
        for risk_value in self.risk_values.levels:
            if isinstance(key, str) and risk_value.symbolic_risk == key:
                return risk_value
            if isinstance(key, int) and risk_value.ordinal_value == key:
                return risk_value
        return None

    def copy(self) -> "RiskDefinition":
        """Deep copy, used to derive a new version from a stored one."""
        return copy.deepcopy(self)

    def to_dict(self) -> Dict[str, Any]:
        """Plain-dict form for the persistence adapter."""
        return {
            "id": self.id,
            "probability": self.probability.to_dict(),
            "implementation_state_definition": self.implementation_state_definition.to_dict(),
            "risk_values": self.risk_values.to_dict(),
            "categories": [c.to_dict() for c in self.categories],
            "impact_inheriting_links": {
                element_type: list(links)
                for element_type, links in sorted(self.impact_inheriting_links.items())
            },
            "risk_method": self.risk_method.to_dict() if self.risk_method else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RiskDefinition":
        method = data.get("risk_method")
        return cls(
            id=data["id"],
            probability=DiscreteScale.from_dict(data.get("probability", {})),
            implementation_state_definition=DiscreteScale.from_dict(
                data.get("implementation_state_definition", {})
            ),
            risk_values=DiscreteScale.from_dict(data.get("risk_values", {})),
            categories=[CategoryDefinition.from_dict(c) for c in data.get("categories", [])],
            impact_inheriting_links={
                element_type: list(links)
                for element_type, links in data.get("impact_inheriting_links", {}).items()
            },
            risk_method=RiskMethod(**method) if method else None,
        )


# ============================================================
# VALIDATION MESSAGES
# ============================================================


class ValidationSeverity(str, Enum):
    """Severity of a validation finding. Findings are data, never raised."""

    WARNING = "WARNING"
    ERROR = "ERROR"


@dataclass(frozen=True)
class ValidationMessage:
    """
    One human-facing finding produced by the evaluate workflow.

    Transient: never persisted. row/column are set only for
    findings that point at a single matrix cell.
    """

    severity: ValidationSeverity
    description: TranslatedText
    affected_categories: List[CategoryRef] = field(default_factory=list, hash=False)
    row: Optional[int] = None
    column: Optional[int] = None

    @property
    def cell(self) -> Optional[tuple]:
        if self.row is None or self.column is None:
            return None
        return (self.row, self.column)

    @property
    def is_error(self) -> bool:
        return self.severity == ValidationSeverity.ERROR

    def to_dict(self) -> Dict[str, Any]:
        return {
            "severity": self.severity.value,
            "description": dict(self.description.translations),
            "affected_categories": [ref.id for ref in self.affected_categories],
            "row": self.row,
            "column": self.column,
        }
