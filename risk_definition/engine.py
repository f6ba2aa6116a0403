"""
Risk Definition Engine - Main Engine.

============================================================
WORKFLOWS
============================================================
SAVE
    1. Load the domain; inactive counts as missing
    2. Detect changes against the stored version
    3. Any change kind outside the allow-list -> reject, the
       domain is untouched
    4. Otherwise commit: store, stamp, publish an event

EVALUATE (read-only)
    Synchronize the candidate's matrices to its axes, detect
    changes against the stored version, validate, and report
    the resulting effects. The allow-list is NOT enforced here:
    evaluate exists to show the user what a save would do.

DELETE
    Remove the definition from the domain, strip it from every
    risk-affected element, then hand over to the template item
    migration service.

============================================================
I/O
============================================================
The engine performs no I/O of its own. Repositories, the
event publisher and the migration service are injected and
run inside the caller's transaction.

============================================================
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Sequence, Union

from core.clock import ClockFactory, ClockProtocol
from core.exceptions import NotFoundError, UnprocessableDataError

from .changes import (
    RiskDefinitionChange,
    RiskDefinitionChangeEffect,
    RiskDefinitionChangeKind,
    changed_matrix_categories,
    get_effects,
    kinds_of,
    resized_matrix_categories,
)
from .config import AllowedChangesPolicy, RiskDefinitionEngineConfig, get_default_config
from .detector import ChangeDetector
from .events import EventPublisher, LoggingEventPublisher, RiskDefinitionChangedEvent
from .interfaces import (
    DomainProtocol,
    DomainRepository,
    RiskAffectedRepository,
    TemplateItemMigrationService,
)
from .matrix import MatrixSynchronizer, MatrixValidator
from .state_machine import SaveState, SaveWorkflow
from .types import (
    CategoryRef,
    RiskDefinition,
    TranslatedText,
    ValidationMessage,
    ValidationSeverity,
)


logger = logging.getLogger("risk_definition.engine")


MATRICES_RESIZED_TEXT = TranslatedText.of(
    en="The following risk matrices have been resized, please adjust the risk values if necessary: %s",
    de="Die folgenden Risikomatrizen wurden in der Größe verändert, bitte passen Sie die Risikowerte ggf. an: %s",
)

MATRICES_CHANGED_TEXT = TranslatedText.of(
    en="Risk matrices have been changed. Please adjust the risk values for the following criteria: %s",
    de="Risikomatrizen wurden geändert. Bitte passen Sie die Risikowerte für die folgenden Kriterien an: %s",
)


# ============================================================
# INPUTS AND OUTPUTS
# ============================================================


AllowedChanges = Union[AllowedChangesPolicy, Iterable[RiskDefinitionChangeKind]]


@dataclass(frozen=True)
class SaveRiskDefinitionInput:
    client_id: Any
    domain_id: Any
    risk_definition_ref: str
    risk_definition: RiskDefinition
    allowed_changes: AllowedChanges


@dataclass(frozen=True)
class EvaluateRiskDefinitionInput:
    """
    risk_definition is the candidate to evaluate. Without one the
    stored version is validated as it is.

    allowed_changes is not enforced; detected kinds outside it
    (or outside the configured default policy when omitted) are
    reported as unsupported_kinds on the output.
    """

    client_id: Any
    domain_id: Any
    risk_definition_ref: str
    risk_definition: Optional[RiskDefinition] = None
    allowed_changes: Optional[AllowedChanges] = None


@dataclass(frozen=True)
class EvaluateRiskDefinitionOutput:
    risk_definition: RiskDefinition
    detected_changes: FrozenSet[RiskDefinitionChange]
    validation_messages: List[ValidationMessage] = field(default_factory=list)
    effects: List[RiskDefinitionChangeEffect] = field(default_factory=list)
    # Kinds a save with the same allow-list would reject
    unsupported_kinds: FrozenSet[RiskDefinitionChangeKind] = frozenset()

    @property
    def has_errors(self) -> bool:
        return any(message.is_error for message in self.validation_messages)

    @property
    def change_kinds(self) -> FrozenSet[RiskDefinitionChangeKind]:
        return kinds_of(self.detected_changes)


@dataclass(frozen=True)
class DeleteRiskDefinitionInput:
    client_id: Any
    domain_id: Any
    risk_definition_ref: str


def _as_policy(
    allowed: Optional[AllowedChanges],
    default: Optional[AllowedChangesPolicy] = None,
) -> AllowedChangesPolicy:
    if allowed is None and default is not None:
        return default
    if isinstance(allowed, AllowedChangesPolicy):
        return allowed
    return AllowedChangesPolicy.of(allowed)


# ============================================================
# ENGINE
# ============================================================


class RiskDefinitionEngine:
    """
    Versioning and consistency workflows for risk definitions.

    One instance can serve many requests; it holds no
    per-request state.
    """

    def __init__(
        self,
        domain_repository: DomainRepository,
        event_publisher: Optional[EventPublisher] = None,
        risk_affected_repositories: Sequence[RiskAffectedRepository] = (),
        migration_service: Optional[TemplateItemMigrationService] = None,
        clock: Optional[ClockProtocol] = None,
        config: Optional[RiskDefinitionEngineConfig] = None,
        detector: Optional[ChangeDetector] = None,
        validator: Optional[MatrixValidator] = None,
        synchronizer: Optional[MatrixSynchronizer] = None,
    ):
        """
        Initialize the engine.

        Args:
            domain_repository: Loads domains for a client
            event_publisher: Receives one event per committed save
            risk_affected_repositories: Element repositories cleaned up on delete
            migration_service: Strips deleted definitions from template items
            clock: Time source, defaults to the process-wide clock
            config: Engine settings
        """
        self._domains = domain_repository
        self._publisher = event_publisher or LoggingEventPublisher(logger)
        self._affected_repositories = list(risk_affected_repositories)
        self._migration_service = migration_service
        self._clock = clock or ClockFactory.get_clock()
        self._config = config or get_default_config()
        self._detector = detector or ChangeDetector()
        self._validator = validator or MatrixValidator()
        self._synchronizer = synchronizer or MatrixSynchronizer()

        self._stats = {"saved": 0, "rejected": 0, "evaluated": 0, "deleted": 0}
        logger.info(
            f"RiskDefinitionEngine initialized | source={self._config.event_source} "
            f"affected_repositories={len(self._affected_repositories)}"
        )

    @property
    def config(self) -> RiskDefinitionEngineConfig:
        return self._config

    def get_health_status(self) -> Dict[str, Any]:
        return {
            "status": "healthy",
            "module": "risk_definition",
            "stats": dict(self._stats),
        }

    # ============================================================
    # SAVE
    # ============================================================

    def save(self, request: SaveRiskDefinitionInput) -> bool:
        """
        Store a new or updated risk definition.

        Returns:
            True if the definition did not exist before

        Raises:
            NotFoundError: Domain missing or inactive
            UnprocessableDataError: A detected change is not allowed
        """
        ref = request.risk_definition_ref
        policy = _as_policy(request.allowed_changes)
        domain = self._load_active_domain(request.domain_id, request.client_id)
        workflow = SaveWorkflow(risk_definition_ref=ref)

        changes = self._detector.detect(domain.get_risk_definition(ref), request.risk_definition)
        workflow.transition_to(
            SaveState.VALIDATED,
            reason=f"{len(changes)} change(s) detected",
            at=self._clock.now(),
        )

        rejected = sorted(kind.value for kind in kinds_of(changes) if not policy.permits(kind))
        if rejected:
            workflow.transition_to(SaveState.REJECTED, reason=", ".join(rejected), at=self._clock.now())
            self._stats["rejected"] += 1
            allowed = policy.sorted_names()
            logger.info(
                f"Risk definition save rejected | domain={domain.id} ref={ref} "
                f"rejected={rejected} allowed={list(allowed)}"
            )
            raise UnprocessableDataError(
                "Your modifications on this existing risk definition are not supported yet. "
                f"Currently, only the following changes are allowed: {', '.join(allowed)}.",
                allowed_changes=allowed,
                rejected_changes=rejected,
            )

        now = self._clock.now()
        domain.apply_risk_definition(ref, request.risk_definition)
        domain.set_updated_at(now)
        workflow.transition_to(SaveState.COMMITTED, at=now)

        event = RiskDefinitionChangedEvent(
            domain=domain,
            risk_definition_ref=ref,
            new_definition=request.risk_definition,
            changes=changes,
            source=self._config.event_source,
            occurred_at=now,
        )
        self._publisher.publish(event)
        self._stats["saved"] += 1

        logger.info(
            f"Risk definition saved | domain={domain.id} ref={ref} "
            f"new={event.is_new_definition} kinds={sorted(k.value for k in event.change_kinds)}"
        )
        return event.is_new_definition

    # ============================================================
    # EVALUATE
    # ============================================================

    def evaluate(self, request: EvaluateRiskDefinitionInput) -> EvaluateRiskDefinitionOutput:
        """
        Preview a save without performing it.

        Neither the stored definition nor the candidate passed in is
        modified; the candidate is synchronized on a copy.

        Raises:
            NotFoundError: Domain missing or inactive, or no candidate
                and no stored definition under the ref
        """
        ref = request.risk_definition_ref
        domain = self._load_active_domain(request.domain_id, request.client_id)
        stored = domain.get_risk_definition(ref)
        self._stats["evaluated"] += 1

        if request.risk_definition is None:
            if stored is None:
                raise NotFoundError(
                    f"Risk definition {ref} not found.",
                    domain_id=domain.id,
                    risk_definition_ref=ref,
                )
            messages = self._validate(stored)
            self._log_findings(domain, ref, messages)
            return EvaluateRiskDefinitionOutput(
                risk_definition=stored,
                detected_changes=frozenset(),
                validation_messages=messages,
                effects=[],
            )

        candidate = self._synchronize(request.risk_definition.copy())
        changes = self._detector.detect(stored, candidate)
        policy = _as_policy(request.allowed_changes, self._config.default_policy)
        unsupported = frozenset(kind for kind in kinds_of(changes) if not policy.permits(kind))

        messages = self._validate(candidate)
        messages.extend(self._summary_messages(changes))
        self._log_findings(domain, ref, messages)
        if unsupported:
            logger.info(
                f"Evaluated changes would be rejected on save | domain={domain.id} ref={ref} "
                f"unsupported={sorted(k.value for k in unsupported)} policy={policy.name}"
            )

        return EvaluateRiskDefinitionOutput(
            risk_definition=candidate,
            detected_changes=changes,
            validation_messages=messages,
            effects=get_effects(changes),
            unsupported_kinds=unsupported,
        )

    def _synchronize(self, definition: RiskDefinition) -> RiskDefinition:
        """Fit every matrix of definition to its axes, in place."""
        fallback = definition.risk_values.last()
        if fallback is None:
            return definition
        definition.categories = [
            self._synchronizer.resync(category, definition.probability, fallback)
            if category.risk_values_supported
            else category
            for category in definition.categories
        ]
        return definition

    def _validate(self, definition: RiskDefinition) -> List[ValidationMessage]:
        messages: List[ValidationMessage] = []
        for category in definition.categories:
            messages.extend(
                self._validator.validate_structure(category, definition.risk_values, definition.probability)
            )
            messages.extend(self._validator.validate(category, definition.probability))
        return messages

    @staticmethod
    def _summary_messages(changes: FrozenSet[RiskDefinitionChange]) -> List[ValidationMessage]:
        messages: List[ValidationMessage] = []

        resized = resized_matrix_categories(changes)
        if resized:
            messages.append(_summary(MATRICES_RESIZED_TEXT, resized))

        changed = changed_matrix_categories(changes)
        if changed:
            messages.append(_summary(MATRICES_CHANGED_TEXT, changed))

        return messages

    @staticmethod
    def _log_findings(domain: DomainProtocol, ref: str, messages: List[ValidationMessage]) -> None:
        if not messages:
            return
        errors = sum(1 for m in messages if m.is_error)
        logger.warning(
            f"Risk definition findings | domain={domain.id} ref={ref} "
            f"errors={errors} warnings={len(messages) - errors}"
        )

    def format_summary(self, output: EvaluateRiskDefinitionOutput, locale: Optional[str] = None) -> str:
        """Evaluation report in locale, or the configured default locale."""
        return format_evaluation_summary(output, self._config.resolve_locale(locale))

    # ============================================================
    # DELETE
    # ============================================================

    def delete(self, request: DeleteRiskDefinitionInput) -> int:
        """
        Remove a risk definition and every reference to it.

        Returns:
            Number of risk-affected elements that were updated

        Raises:
            NotFoundError: Domain missing or inactive, or unknown ref
        """
        ref = request.risk_definition_ref
        domain = self._load_active_domain(request.domain_id, request.client_id)
        if domain.get_risk_definition(ref) is None:
            raise NotFoundError(
                f"Risk definition {ref} not found.",
                domain_id=domain.id,
                risk_definition_ref=ref,
            )

        now = self._clock.now()
        domain.remove_risk_definition(ref)
        domain.set_updated_at(now)

        updated = 0
        for repository in self._affected_repositories:
            for element in repository.find_by_domain(domain):
                if element.remove_risk_definition(ref, domain):
                    element.set_updated_at(now)
                    updated += 1

        if self._migration_service is not None:
            self._migration_service.remove_risk_definition(domain, ref)

        self._stats["deleted"] += 1
        logger.info(f"Risk definition deleted | domain={domain.id} ref={ref} updated_elements={updated}")
        return updated

    # ============================================================
    # HELPERS
    # ============================================================

    def _load_active_domain(self, domain_id: Any, client_id: Any) -> DomainProtocol:
        domain = self._domains.get_by_id(domain_id, client_id)
        if not domain.is_active:
            raise NotFoundError("Domain is inactive.", domain_id=domain_id)
        return domain


def _summary(template: TranslatedText, refs: List[CategoryRef]) -> ValidationMessage:
    return ValidationMessage(
        severity=ValidationSeverity.WARNING,
        description=template.format(", ".join(ref.id for ref in refs)),
        affected_categories=list(refs),
    )


def format_evaluation_summary(output: EvaluateRiskDefinitionOutput, locale: str = "en") -> str:
    """Plain-text report of an evaluation, one finding or effect per line."""
    lines = [f"Risk definition {output.risk_definition.id}"]
    kinds = sorted(kind.value for kind in output.change_kinds)
    lines.append(f"Changes: {', '.join(kinds) if kinds else 'none'}")
    for message in output.validation_messages:
        cell = f" {message.cell}" if message.cell else ""
        lines.append(f"[{message.severity.value}]{cell} {message.description.get(locale)}")
    for effect in output.effects:
        lines.append(f"Effect: {effect.description.get(locale)}")
    return "\n".join(lines)
