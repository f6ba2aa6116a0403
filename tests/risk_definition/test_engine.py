"""
Tests for the Risk Definition Engine workflows.

============================================================
PURPOSE
============================================================
Save, evaluate and delete against an in-process domain with
mocked repositories:
1. Save gate and commit
2. Read-only evaluation with matrix synchronization
3. Delete with element cleanup and template migration

============================================================
"""

from dataclasses import replace
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from core.clock import FixedClock
from core.exceptions import NotFoundError, UnprocessableDataError
from risk_definition.changes import (
    ChangeScope,
    ListResize,
    NewRiskDefinition,
    RiskDefinitionChangeKind as Kind,
    RiskMatrixResize,
    RiskMatrixValueDiff,
    RiskRecalculation,
    RiskValueCategoryRemoval,
)
from risk_definition.config import (
    RiskDefinitionEngineConfig,
    get_cosmetic_policy,
    get_default_policy,
    get_draft_policy,
)
from risk_definition.domain import Domain
from risk_definition.engine import (
    DeleteRiskDefinitionInput,
    EvaluateRiskDefinitionInput,
    RiskDefinitionEngine,
    SaveRiskDefinitionInput,
    format_evaluation_summary,
)
from risk_definition.events import CollectingEventPublisher
from risk_definition.interfaces import (
    DomainRepository,
    RiskAffectedElement,
    RiskAffectedRepository,
    TemplateItemMigrationService,
)
from risk_definition.types import CategoryRef, DiscreteScale, ValidationSeverity

from tests.risk_definition.builders import category, definition, with_category, with_probability_levels


NOW = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def stored():
    return definition()


@pytest.fixture
def domain(stored):
    return Domain(domain_id="d1", client_id="c1", name="DS-GVO", risk_definitions={"id": stored})


@pytest.fixture
def domain_repository(domain):
    repository = MagicMock(spec=DomainRepository)
    repository.get_by_id.return_value = domain
    return repository


@pytest.fixture
def publisher():
    return CollectingEventPublisher()


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
def engine(domain_repository, publisher, clock):
    return RiskDefinitionEngine(
        domain_repository=domain_repository,
        event_publisher=publisher,
        clock=clock,
    )


def save_request(rd, allowed, ref="id"):
    return SaveRiskDefinitionInput(
        client_id="c1",
        domain_id="d1",
        risk_definition_ref=ref,
        risk_definition=rd,
        allowed_changes=allowed,
    )


# ============================================================
# SAVE
# ============================================================

class TestSave:
    """Test the save gate and commits."""

    def test_new_definition(self, engine, domain, publisher, domain_repository):
        candidate = definition()

        assert engine.save(save_request(candidate, get_default_policy(), ref="new")) is True

        domain_repository.get_by_id.assert_called_once_with("d1", "c1")
        assert domain.get_risk_definition("new") is candidate
        assert domain.updated_at == NOW
        (event,) = publisher.events
        assert event.changes == {NewRiskDefinition()}
        assert event.is_new_definition
        assert event.occurred_at == NOW
        assert event.source == "risk_definition.engine"

    def test_rejected_change_leaves_domain_untouched(self, engine, domain, stored, publisher):
        candidate = with_probability_levels(stored, 4)

        with pytest.raises(UnprocessableDataError) as exc_info:
            engine.save(save_request(candidate, get_cosmetic_policy()))

        error = exc_info.value
        assert error.allowed_changes == ["ColorDiff", "TranslationDiff"]
        assert error.rejected_changes == ["ProbabilityListResize"]
        assert "ColorDiff, TranslationDiff" in error.message
        assert domain.get_risk_definition("id") is stored
        assert domain.updated_at is None
        assert publisher.events == []

    def test_color_change_with_empty_allow_list_leaves_stored_version(self, engine, domain, stored, publisher):
        before = stored.to_dict()
        levels = list(stored.probability.levels)
        levels[1] = replace(levels[1], html_color="#ff0000")
        candidate = replace(stored, probability=DiscreteScale(levels, stored.probability.translations))

        with pytest.raises(UnprocessableDataError) as exc_info:
            engine.save(save_request(candidate, set()))

        assert exc_info.value.rejected_changes == ["ColorDiff"]
        assert domain.get_risk_definition("id") is stored
        assert stored.to_dict() == before
        assert domain.updated_at is None
        assert publisher.events == []

    def test_allowed_change_is_committed(self, engine, domain, stored, publisher):
        levels = [replace(lvl, html_color="#ffffff") for lvl in stored.probability.levels]
        candidate = replace(stored, probability=DiscreteScale(levels, stored.probability.translations))

        assert engine.save(save_request(candidate, get_cosmetic_policy())) is False

        assert domain.get_risk_definition("id") is candidate
        (event,) = publisher.events
        assert event.change_kinds == {Kind.COLOR_DIFF}
        assert not event.requires_risk_recalculation

    def test_plain_set_of_kinds_accepted(self, engine, stored):
        candidate = with_probability_levels(stored, 2)

        assert engine.save(save_request(candidate, {Kind.PROBABILITY_LIST_RESIZE})) is False

    def test_unchanged_definition_passes_empty_allow_list(self, engine, stored, publisher):
        assert engine.save(save_request(stored.copy(), set())) is False
        assert publisher.events[0].changes == frozenset()

    def test_inactive_domain(self, engine, domain):
        domain.deactivate()

        with pytest.raises(NotFoundError) as exc_info:
            engine.save(save_request(definition(), get_draft_policy()))
        assert exc_info.value.message == "Domain is inactive."

    def test_stats(self, engine, stored):
        engine.save(save_request(stored.copy(), set()))
        with pytest.raises(UnprocessableDataError):
            engine.save(save_request(with_probability_levels(stored, 5), set()))

        stats = engine.get_health_status()["stats"]
        assert stats["saved"] == 1
        assert stats["rejected"] == 1


# ============================================================
# EVALUATE
# ============================================================

def evaluate_request(rd=None, ref="id", allowed=None):
    return EvaluateRiskDefinitionInput(
        client_id="c1",
        domain_id="d1",
        risk_definition_ref=ref,
        risk_definition=rd,
        allowed_changes=allowed,
    )


class TestEvaluate:
    """Test the read-only preview."""

    def test_probability_growth_synchronizes_matrices(self, engine, domain, stored, publisher):
        candidate = with_probability_levels(stored, 4)

        output = engine.evaluate(evaluate_request(candidate))

        top = stored.risk_values.last()
        for cat in output.risk_definition.categories:
            assert cat.rows == 4
            assert cat.value_matrix[3] == [top, top, top]

        assert output.detected_changes == {
            ListResize(ChangeScope.probability()),
            RiskMatrixResize(0),
            RiskMatrixResize(1),
        }
        assert RiskValueCategoryRemoval(CategoryRef("C")) in output.effects
        assert RiskValueCategoryRemoval(CategoryRef("I")) in output.effects

        (summary,) = output.validation_messages
        assert summary.severity == ValidationSeverity.WARNING
        assert summary.description.get().endswith("C, I")
        assert summary.affected_categories == [CategoryRef("C"), CategoryRef("I")]

    def test_evaluate_is_read_only(self, engine, domain, stored, publisher):
        candidate = with_probability_levels(stored, 4)

        engine.evaluate(evaluate_request(candidate))

        assert candidate.categories[0].rows == 3
        assert domain.get_risk_definition("id") is stored
        assert stored.categories[0].rows == 3
        assert domain.updated_at is None
        assert publisher.events == []

    def test_gate_not_enforced(self, engine, stored):
        candidate = with_probability_levels(stored, 2)
        candidate.categories.append(category("A", stored.risk_values))

        output = engine.evaluate(evaluate_request(candidate))

        assert Kind.CATEGORY_LIST_RESIZE in output.change_kinds
        assert RiskRecalculation() in output.effects

    def test_inconsistent_matrix_reported(self, engine, stored):
        candidate = with_category(stored, 0, category("C", stored.risk_values, [[0, 1, 2], [1, 0, 2], [1, 2, 2]]))

        output = engine.evaluate(evaluate_request(candidate))

        assert output.detected_changes == {RiskMatrixValueDiff(0)}
        assert output.effects == [RiskRecalculation()]
        cells = [m.cell for m in output.validation_messages if m.cell is not None]
        assert cells == [(1, 1), (1, 1)]
        summaries = [m for m in output.validation_messages if m.cell is None]
        assert len(summaries) == 1
        assert summaries[0].description.get("en").endswith(": C")
        assert not output.has_errors

    def test_without_candidate_validates_stored(self, engine, stored):
        output = engine.evaluate(evaluate_request())

        assert output.risk_definition is stored
        assert output.detected_changes == frozenset()
        assert output.validation_messages == []
        assert output.effects == []

    def test_without_candidate_unknown_ref(self, engine):
        with pytest.raises(NotFoundError):
            engine.evaluate(evaluate_request(ref="missing"))

    def test_new_definition(self, engine):
        output = engine.evaluate(evaluate_request(definition(), ref="other"))

        assert output.detected_changes == {NewRiskDefinition()}
        assert output.effects == []

    def test_probability_growth_to_five_levels_fills_with_fallback(self, engine, stored):
        output = engine.evaluate(evaluate_request(with_probability_levels(stored, 5)))

        top = stored.risk_values.last()
        for old_cat, cat in zip(stored.categories, output.risk_definition.categories):
            assert cat.rows == 5
            assert cat.value_matrix[:3] == old_cat.value_matrix
            assert cat.value_matrix[3] == [top, top, top]
            assert cat.value_matrix[4] == [top, top, top]
            assert all(cell.ordinal_value <= top.ordinal_value for row in cat.value_matrix for cell in row)

    def test_unsupported_kinds_follow_allow_list(self, engine, stored):
        candidate = with_probability_levels(stored, 4)

        output = engine.evaluate(evaluate_request(candidate, allowed=get_cosmetic_policy()))

        assert output.unsupported_kinds == {Kind.PROBABILITY_LIST_RESIZE, Kind.RISK_MATRIX_RESIZE}
        assert output.risk_definition.categories[0].rows == 4

    def test_unsupported_kinds_accept_plain_set(self, engine, stored):
        candidate = with_probability_levels(stored, 4)

        output = engine.evaluate(
            evaluate_request(candidate, allowed={Kind.PROBABILITY_LIST_RESIZE, Kind.RISK_MATRIX_RESIZE})
        )

        assert output.unsupported_kinds == frozenset()

    def test_unsupported_kinds_default_to_configured_policy(self, domain_repository, clock, stored):
        candidate = with_probability_levels(stored, 4)
        strict = RiskDefinitionEngine(domain_repository, clock=clock)
        lenient = RiskDefinitionEngine(
            domain_repository,
            clock=clock,
            config=RiskDefinitionEngineConfig(default_policy=get_draft_policy()),
        )

        assert strict.evaluate(evaluate_request(candidate)).unsupported_kinds == {
            Kind.PROBABILITY_LIST_RESIZE,
            Kind.RISK_MATRIX_RESIZE,
        }
        assert lenient.evaluate(evaluate_request(candidate)).unsupported_kinds == frozenset()

    def test_summary_uses_configured_locale(self, domain_repository, clock, stored):
        engine = RiskDefinitionEngine(
            domain_repository,
            clock=clock,
            config=RiskDefinitionEngineConfig(default_locale="de"),
        )
        output = engine.evaluate(evaluate_request(with_probability_levels(stored, 4)))

        assert "Risikomatrizen" in engine.format_summary(output)
        assert "Risikomatrizen" in engine.format_summary(output, locale="fr")
        assert "risk matrices" in engine.format_summary(output, locale="en")

    def test_summary_text(self, engine, stored):
        output = engine.evaluate(evaluate_request(with_probability_levels(stored, 4)))

        text = format_evaluation_summary(output, locale="de")

        assert "ProbabilityListResize" in text
        assert "Risikomatrizen" in text


# ============================================================
# DELETE
# ============================================================

@pytest.fixture
def elements():
    changed = MagicMock(spec=RiskAffectedElement)
    changed.remove_risk_definition.return_value = True
    untouched = MagicMock(spec=RiskAffectedElement)
    untouched.remove_risk_definition.return_value = False
    return changed, untouched


@pytest.fixture
def delete_engine(domain_repository, clock, elements):
    repository = MagicMock(spec=RiskAffectedRepository)
    repository.find_by_domain.return_value = list(elements)
    migration = MagicMock(spec=TemplateItemMigrationService)
    engine = RiskDefinitionEngine(
        domain_repository=domain_repository,
        risk_affected_repositories=[repository],
        migration_service=migration,
        clock=clock,
    )
    return engine, migration


def delete_request(ref="id"):
    return DeleteRiskDefinitionInput(client_id="c1", domain_id="d1", risk_definition_ref=ref)


class TestDelete:
    """Test removal and cleanup."""

    def test_delete(self, delete_engine, domain, elements):
        engine, migration = delete_engine
        changed, untouched = elements

        assert engine.delete(delete_request()) == 1

        assert domain.get_risk_definition("id") is None
        assert domain.updated_at == NOW
        changed.remove_risk_definition.assert_called_once_with("id", domain)
        changed.set_updated_at.assert_called_once_with(NOW)
        untouched.set_updated_at.assert_not_called()
        migration.remove_risk_definition.assert_called_once_with(domain, "id")

    def test_unknown_ref(self, delete_engine, domain, stored):
        engine, migration = delete_engine

        with pytest.raises(NotFoundError):
            engine.delete(delete_request("missing"))

        assert domain.get_risk_definition("id") is stored
        migration.remove_risk_definition.assert_not_called()

    def test_inactive_domain(self, delete_engine, domain):
        engine, migration = delete_engine
        domain.deactivate()

        with pytest.raises(NotFoundError):
            engine.delete(delete_request())
        migration.remove_risk_definition.assert_not_called()
