"""
Tests for Risk Definition Types.

============================================================
PURPOSE
============================================================
Construction invariants and lookups of the data model:
1. Translated texts
2. Levels and scales
3. Categories and their matrices
4. Risk definitions

============================================================
"""

import pytest

from risk_definition.types import (
    CategoryDefinition,
    CategoryRef,
    DiscreteScale,
    DiscreteValue,
    RiskDefinition,
    RiskMethod,
    RiskValue,
    TranslatedText,
    ValidationMessage,
    ValidationSeverity,
)

from tests.risk_definition.builders import category, definition, risk_scale


# ============================================================
# TRANSLATED TEXT
# ============================================================

class TestTranslatedText:
    """Test locale lookup and formatting."""

    def test_get_falls_back_to_english(self):
        text = TranslatedText.of(en="Hello", de="Hallo")
        assert text.get("de") == "Hallo"
        assert text.get("fr") == "Hello"

    def test_format_applies_to_every_locale(self):
        text = TranslatedText.of(en="Category %s", de="Kategorie %s").format("C")
        assert text.translations == {"en": "Category C", "de": "Kategorie C"}
        assert str(text) == "Category C"


# ============================================================
# LEVELS AND SCALES
# ============================================================

class TestDiscreteScale:
    """Test ordinal handling of scales."""

    def test_ordinals_are_dense_and_follow_order(self):
        scale = DiscreteScale(levels=[DiscreteValue(5), DiscreteValue(9), DiscreteValue(2)])
        assert [lvl.ordinal_value for lvl in scale.levels] == [0, 1, 2]
        assert scale.size == 3

    def test_negative_ordinal_rejected(self):
        with pytest.raises(ValueError):
            DiscreteValue(-1)

    def test_last_and_get_level(self):
        scale = risk_scale("low", "high")
        assert scale.last().symbolic_risk == "high"
        assert scale.get_level(0).symbolic_risk == "low"
        assert scale.get_level(2) is None

    def test_empty_scale_has_no_last(self):
        assert DiscreteScale().last() is None


# ============================================================
# CATEGORIES
# ============================================================

class TestCategoryDefinition:
    """Test matrix lookups."""

    def test_get_risk_value(self):
        cat = category("C", risk_scale())
        assert cat.get_risk_value(0, 2).symbolic_risk == "r3"
        assert cat.rows == 3
        assert cat.columns == 3

    def test_get_risk_value_out_of_range(self):
        cat = category("C", risk_scale())
        with pytest.raises(ValueError):
            cat.get_risk_value(3, 0)
        with pytest.raises(ValueError):
            cat.get_risk_value(0, 3)

    def test_unsupported_category_has_no_risk_values(self):
        cat = category("C", risk_scale(), supports_risk_values=False)
        assert not cat.risk_values_supported
        with pytest.raises(ValueError):
            cat.get_risk_value(0, 0)

    def test_empty_id_rejected(self):
        with pytest.raises(ValueError):
            CategoryDefinition(id="")


# ============================================================
# RISK DEFINITION
# ============================================================

class TestRiskDefinition:
    """Test construction invariants and copies."""

    def test_duplicate_categories_rejected(self):
        risk_values = risk_scale()
        with pytest.raises(ValueError, match="Categories not unique"):
            RiskDefinition(
                id="id",
                risk_values=risk_values,
                categories=[category("C", risk_values), category("C", risk_values)],
            )

    def test_duplicate_symbolic_risk_rejected(self):
        with pytest.raises(ValueError, match="SymbolicRisk not unique"):
            RiskDefinition(id="id", risk_values=risk_scale("r1", "r1"))

    def test_risk_values_must_be_risk_values(self):
        with pytest.raises(ValueError):
            RiskDefinition(id="id", risk_values=DiscreteScale(levels=[DiscreteValue(0)]))

    def test_empty_id_rejected(self):
        with pytest.raises(ValueError):
            RiskDefinition(id="")

    def test_lookups(self):
        rd = definition()
        assert rd.get_category("I").id == "I"
        assert rd.get_category("X") is None
        assert rd.get_risk_value("r2").ordinal_value == 1
        assert rd.get_risk_value(2).symbolic_risk == "r3"
        assert rd.get_risk_value("nope") is None

    def test_copy_is_independent(self):
        rd = definition()
        copied = rd.copy()
        copied.categories[0].value_matrix[0][0] = RiskValue(2, "r3")
        copied.impact_inheriting_links["asset"].append("document")

        assert rd.categories[0].value_matrix[0][0].symbolic_risk == "r1"
        assert rd.impact_inheriting_links["asset"] == ["process", "scope"]

    def test_dict_form_restores_an_equal_definition(self):
        rd = definition()
        rd.risk_method = RiskMethod(impact_method="highwatermark", description="max")
        rd.categories.append(category("A", rd.risk_values, supports_risk_values=False))

        assert RiskDefinition.from_dict(rd.to_dict()) == rd


# ============================================================
# VALIDATION MESSAGES
# ============================================================

class TestValidationMessage:
    """Test message helpers."""

    def test_cell_and_severity(self):
        message = ValidationMessage(
            severity=ValidationSeverity.ERROR,
            description=TranslatedText.of(en="bad"),
            affected_categories=[CategoryRef("C")],
            row=1,
            column=2,
        )
        assert message.cell == (1, 2)
        assert message.is_error
        assert message.to_dict()["affected_categories"] == ["C"]

    def test_message_without_cell(self):
        message = ValidationMessage(ValidationSeverity.WARNING, TranslatedText.of(en="x"))
        assert message.cell is None
        assert not message.is_error
