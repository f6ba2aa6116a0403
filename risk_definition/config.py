"""
Risk Definition Engine - Configuration.

============================================================
PURPOSE
============================================================
Defines the configuration dataclasses of the engine and the
allowed-change policies callers pass to the save workflow.

============================================================
POLICY PHILOSOPHY
============================================================
The allow-list is injected per call, never read from global
state. A production domain typically allows cosmetic changes
only; a draft allows everything.

- COSMETIC: labels and colors. Stored risk values keep their
  meaning.
- DEFAULT: cosmetic, plus first creation, matrix value edits
  and impact link edits. Stored values stay addressable;
  affected risks are recalculated downstream.
- DRAFT: every change kind.

============================================================
ENVIRONMENT
============================================================
    RISK_DEFINITION_DEFAULT_LOCALE     default "en"
    RISK_DEFINITION_LOCALES            default "en,de"
    RISK_DEFINITION_EVENT_SOURCE       default "risk_definition.engine"
    RISK_DEFINITION_PERSIST_CHANGES    default "true"
    RISK_DEFINITION_POLICY             cosmetic | default | draft

============================================================
"""

import os
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, Optional, Tuple

from dotenv import load_dotenv

from core.exceptions import ConfigurationError

from .changes import RiskDefinitionChangeKind


# ============================================================
# ALLOWED CHANGES POLICY
# ============================================================


@dataclass(frozen=True)
class AllowedChangesPolicy:
    """
    Set of change kinds a save may commit.

    Anything outside the set makes the save fail as a whole.
    """

    allowed: FrozenSet[RiskDefinitionChangeKind] = frozenset()
    name: str = "custom"

    @classmethod
    def of(cls, kinds: Iterable[RiskDefinitionChangeKind], name: str = "custom") -> "AllowedChangesPolicy":
        return cls(allowed=frozenset(kinds), name=name)

    def permits(self, kind: RiskDefinitionChangeKind) -> bool:
        return kind in self.allowed

    def union(self, other: "AllowedChangesPolicy") -> "AllowedChangesPolicy":
        return AllowedChangesPolicy(allowed=self.allowed | other.allowed, name=f"{self.name}+{other.name}")

    def sorted_names(self) -> Tuple[str, ...]:
        return tuple(sorted(kind.value for kind in self.allowed))

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "allowed": list(self.sorted_names())}


COSMETIC_CHANGE_KINDS: FrozenSet[RiskDefinitionChangeKind] = frozenset({
    RiskDefinitionChangeKind.TRANSLATION_DIFF,
    RiskDefinitionChangeKind.COLOR_DIFF,
})

DEFAULT_CHANGE_KINDS: FrozenSet[RiskDefinitionChangeKind] = COSMETIC_CHANGE_KINDS | frozenset({
    RiskDefinitionChangeKind.NEW_RISK_DEFINITION,
    RiskDefinitionChangeKind.RISK_MATRIX_VALUE_DIFF,
    RiskDefinitionChangeKind.IMPACT_LINKS_CHANGED,
})


def get_cosmetic_policy() -> AllowedChangesPolicy:
    """Labels and colors only. Suitable for domains in production use."""
    return AllowedChangesPolicy(allowed=COSMETIC_CHANGE_KINDS, name="cosmetic")


def get_default_policy() -> AllowedChangesPolicy:
    """Changes that keep every stored value addressable."""
    return AllowedChangesPolicy(allowed=DEFAULT_CHANGE_KINDS, name="default")


def get_draft_policy() -> AllowedChangesPolicy:
    """Every change kind. Suitable for drafts nobody has assessed against yet."""
    return AllowedChangesPolicy(allowed=frozenset(RiskDefinitionChangeKind), name="draft")


POLICY_FACTORIES = {
    "cosmetic": get_cosmetic_policy,
    "default": get_default_policy,
    "draft": get_draft_policy,
}


def get_policy(name: str) -> AllowedChangesPolicy:
    """
    Look up a named policy.

    Raises:
        ConfigurationError: For an unknown policy name
    """
    try:
        return POLICY_FACTORIES[name.strip().lower()]()
    except KeyError:
        raise ConfigurationError(
            f"Unknown allowed-changes policy: {name}",
            config_key="RISK_DEFINITION_POLICY",
            actual_value=name,
        ) from None


# ============================================================
# ENGINE CONFIGURATION
# ============================================================


@dataclass(frozen=True)
class RiskDefinitionEngineConfig:
    """
    Settings of the risk definition engine.

    default_policy is what evaluate previews against when the
    request carries no allow-list; saves always carry their own.
    default_locale is the language of summaries when the caller
    names none or an unsupported one.
    """

    default_locale: str = "en"
    supported_locales: Tuple[str, ...] = ("en", "de")

    # Source tag carried by published change events
    event_source: str = "risk_definition.engine"

    # Write an audit row per committed change set (SQL adapter)
    persist_change_log: bool = True

    default_policy: AllowedChangesPolicy = field(default_factory=get_default_policy)

    def __post_init__(self) -> None:
        if self.default_locale not in self.supported_locales:
            raise ConfigurationError(
                f"Default locale {self.default_locale} is not a supported locale",
                config_key="RISK_DEFINITION_DEFAULT_LOCALE",
                actual_value=self.default_locale,
            )

    def resolve_locale(self, locale: Optional[str] = None) -> str:
        """locale if supported, otherwise the default locale."""
        if locale in self.supported_locales:
            return locale
        return self.default_locale

    def to_dict(self) -> Dict[str, Any]:
        return {
            "default_locale": self.default_locale,
            "supported_locales": list(self.supported_locales),
            "event_source": self.event_source,
            "persist_change_log": self.persist_change_log,
            "default_policy": self.default_policy.to_dict(),
        }


def get_default_config() -> RiskDefinitionEngineConfig:
    """Return the default engine configuration."""
    return RiskDefinitionEngineConfig()


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in ("1", "true", "yes", "on"):
        return True
    if value in ("0", "false", "no", "off"):
        return False
    raise ConfigurationError(f"Invalid boolean for {name}", config_key=name, actual_value=raw)


def load_config_from_env() -> RiskDefinitionEngineConfig:
    """
    Build the engine configuration from environment variables.

    Reads a .env file first if one is present.
    """
    load_dotenv()

    locales = tuple(
        locale.strip()
        for locale in os.getenv("RISK_DEFINITION_LOCALES", "en,de").split(",")
        if locale.strip()
    )
    return RiskDefinitionEngineConfig(
        default_locale=os.getenv("RISK_DEFINITION_DEFAULT_LOCALE", "en"),
        supported_locales=locales,
        event_source=os.getenv("RISK_DEFINITION_EVENT_SOURCE", "risk_definition.engine"),
        persist_change_log=_env_bool("RISK_DEFINITION_PERSIST_CHANGES", True),
        default_policy=get_policy(os.getenv("RISK_DEFINITION_POLICY", "default")),
    )
