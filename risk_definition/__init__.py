"""
Risk Definition Engine - Package.

============================================================
PURPOSE
============================================================
Versioning and consistency rules for risk definitions: the
multi-dimensional schemes (probability x impact -> risk value)
a domain uses to assess risks.

============================================================
WHAT IT DOES
============================================================
- Classifies how a candidate definition differs from the
  stored one into a closed set of change kinds
- Gates saves on an explicit allow-list of change kinds
- Keeps value matrices in shape when axes are resized,
  without ever lowering an assigned risk value
- Reports monotonicity violations of value matrices
- Derives downstream effects (recalculation, removal of
  stored values) from a change set
- Removes a definition and its references on delete

============================================================
WHAT IT IS NOT
============================================================
- NOT a risk calculator for individual elements
- NOT an authorization layer
- NOT a wire format: the dict forms are for persistence only

============================================================
USAGE
============================================================
    from risk_definition import (
        RiskDefinitionEngine,
        SaveRiskDefinitionInput,
        get_cosmetic_policy,
    )

    engine = RiskDefinitionEngine(domain_repository=repository)
    is_new = engine.save(
        SaveRiskDefinitionInput(
            client_id=client_id,
            domain_id=domain_id,
            risk_definition_ref="id",
            risk_definition=definition,
            allowed_changes=get_cosmetic_policy(),
        )
    )

============================================================
"""

from .types import (
    DEFAULT_LOCALE,
    Translation,
    TranslatedText,
    DiscreteValue,
    RiskValue,
    DiscreteScale,
    CategoryRef,
    CategoryDefinition,
    RiskMethod,
    RiskDefinition,
    ValidationSeverity,
    ValidationMessage,
)
from .changes import (
    ScopeArea,
    ChangeScope,
    RiskDefinitionChangeKind,
    NewRiskDefinition,
    ImpactLinksChanged,
    TranslationDiff,
    ColorDiff,
    ListResize,
    MatrixPresence,
    RiskMatrixResize,
    RiskMatrixValueDiff,
    RiskRecalculation,
    ImpactInheritanceRecalculation,
    RiskValueCategoryAddition,
    RiskValueCategoryRemoval,
    ImpactCategoryRemoval,
    get_effects,
    requires_migration,
    requires_risk_recalculation,
)
from .config import (
    AllowedChangesPolicy,
    RiskDefinitionEngineConfig,
    get_cosmetic_policy,
    get_default_config,
    get_default_policy,
    get_draft_policy,
    load_config_from_env,
)
from .detector import ChangeDetector, detect_changes
from .matrix import MatrixSynchronizer, MatrixValidator, resync_matrix, validate_matrix
from .domain import Domain
from .events import (
    RiskDefinitionChangedEvent,
    LoggingEventPublisher,
    CollectingEventPublisher,
    CompositeEventPublisher,
)
from .state_machine import SaveState, SaveWorkflow
from .engine import (
    RiskDefinitionEngine,
    SaveRiskDefinitionInput,
    EvaluateRiskDefinitionInput,
    EvaluateRiskDefinitionOutput,
    DeleteRiskDefinitionInput,
    format_evaluation_summary,
)
from .repository import SqlDomainRepository, ChangeLogPublisher


__version__ = "1.0.0"

__all__ = [
    # Types
    "DEFAULT_LOCALE",
    "Translation",
    "TranslatedText",
    "DiscreteValue",
    "RiskValue",
    "DiscreteScale",
    "CategoryRef",
    "CategoryDefinition",
    "RiskMethod",
    "RiskDefinition",
    "ValidationSeverity",
    "ValidationMessage",
    # Changes
    "ScopeArea",
    "ChangeScope",
    "RiskDefinitionChangeKind",
    "NewRiskDefinition",
    "ImpactLinksChanged",
    "TranslationDiff",
    "ColorDiff",
    "ListResize",
    "MatrixPresence",
    "RiskMatrixResize",
    "RiskMatrixValueDiff",
    "RiskRecalculation",
    "ImpactInheritanceRecalculation",
    "RiskValueCategoryAddition",
    "RiskValueCategoryRemoval",
    "ImpactCategoryRemoval",
    "get_effects",
    "requires_migration",
    "requires_risk_recalculation",
    # Config
    "AllowedChangesPolicy",
    "RiskDefinitionEngineConfig",
    "get_cosmetic_policy",
    "get_default_config",
    "get_default_policy",
    "get_draft_policy",
    "load_config_from_env",
    # Detection and matrices
    "ChangeDetector",
    "detect_changes",
    "MatrixSynchronizer",
    "MatrixValidator",
    "resync_matrix",
    "validate_matrix",
    # Workflows
    "Domain",
    "RiskDefinitionChangedEvent",
    "LoggingEventPublisher",
    "CollectingEventPublisher",
    "CompositeEventPublisher",
    "SaveState",
    "SaveWorkflow",
    "RiskDefinitionEngine",
    "SaveRiskDefinitionInput",
    "EvaluateRiskDefinitionInput",
    "EvaluateRiskDefinitionOutput",
    "DeleteRiskDefinitionInput",
    "format_evaluation_summary",
    # Persistence
    "SqlDomainRepository",
    "ChangeLogPublisher",
]
