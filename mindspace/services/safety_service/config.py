"""Safety Service configuration: lexicon, weights, thresholds, overlay text.

The lexicon and helpline data are read-only process-wide constants,
loaded once at import time. Only the numeric knobs in SafetyConfig are
tunable per deployment.
"""
import os
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Tuple

from mindspace.shared.models import RiskCategory


@dataclass(frozen=True)
class LexiconEntry:
    """Trigger phrases for one risk category.

    Phrases are tested in order; the first hit is the only one that
    counts for the category.
    """
    base_confidence: float
    phrases: Tuple[str, ...]


# Category order is the order signals are reported in.
LEXICON: Mapping[RiskCategory, LexiconEntry] = MappingProxyType({
    # ==========================================================================
    # DIRECT IDEATION (high weight)
    # ==========================================================================
    RiskCategory.IDEATION: LexiconEntry(
        base_confidence=0.9,
        phrases=(
            "suicide",
            "suicidal",
            "kill myself",
            "end it all",
            "end my life",
            "want to die",
            "no reason to live",
            "not worth living",
            "better off dead",
        ),
    ),
    # ==========================================================================
    # SELF-HARM
    # ==========================================================================
    RiskCategory.SELF_HARM: LexiconEntry(
        base_confidence=0.8,
        phrases=(
            "cut myself",
            "cutting myself",
            "hurt myself",
            "harm myself",
            "self harm",
            "self-harm",
            "burn myself",
            "bleed",
            "razor",
        ),
    ),
    # ==========================================================================
    # VIOLENCE / HARM TO OTHERS
    # ==========================================================================
    RiskCategory.VIOLENCE: LexiconEntry(
        base_confidence=0.8,
        phrases=(
            "kill them",
            "kill him",
            "kill her",
            "hurt someone",
            "hurt other people",
            "shoot",
            "stab",
        ),
    ),
    # ==========================================================================
    # ABUSE DISCLOSURE
    # ==========================================================================
    RiskCategory.ABUSE: LexiconEntry(
        base_confidence=0.8,
        phrases=(
            "they hit me",
            "he hits me",
            "she hits me",
            "touches me",
            "assault",
            "abused",
            "abuse",
        ),
    ),
    # ==========================================================================
    # MEDICAL EMERGENCY
    # ==========================================================================
    RiskCategory.MEDICAL: LexiconEntry(
        base_confidence=0.8,
        phrases=(
            "overdose",
            "took too many pills",
            "od",
            "poison",
        ),
    ),
})

# Two-tier severity: direct ideation outweighs contextual categories.
CATEGORY_WEIGHTS: Mapping[RiskCategory, float] = MappingProxyType({
    RiskCategory.IDEATION: 0.4,
    RiskCategory.SELF_HARM: 0.2,
    RiskCategory.VIOLENCE: 0.2,
    RiskCategory.ABUSE: 0.2,
    RiskCategory.MEDICAL: 0.2,
})


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass(frozen=True)
class SafetyConfig:
    """Configuration for crisis classification behavior."""

    # Score at or above which a turn is treated as a crisis
    crisis_threshold: float = 0.7

    # Per-category contribution to the score
    category_weights: Mapping[RiskCategory, float] = field(
        default_factory=lambda: CATEGORY_WEIGHTS, hash=False
    )

    # Disable only when an auxiliary classifier is the sole signal source
    lexicon_enabled: bool = True

    # Auxiliary classifier budget; keep well under the responder timeout
    aux_timeout_seconds: float = 2.0

    # Version tracking for audit trail
    pattern_version: str = "2025.06.01"

    def __post_init__(self):
        if not 0.0 < self.crisis_threshold <= 1.0:
            raise ValueError(
                f"Crisis threshold must be in (0.0, 1.0], got {self.crisis_threshold}"
            )
        missing = set(RiskCategory) - set(self.category_weights)
        if missing:
            raise ValueError(
                f"Missing weights for: {sorted(c.value for c in missing)}"
            )

    @classmethod
    def from_env(cls) -> "SafetyConfig":
        """Create config from environment variables.

        Environment variables:
            CRISIS_THRESHOLD: Trigger threshold (default 0.7)
            LEXICON_ENABLED: Run the keyword lexicon (default true)
            AUX_CLASSIFIER_TIMEOUT: Auxiliary classifier timeout in seconds (default 2)
            PATTERN_VERSION: Lexicon version tag
        """
        return cls(
            crisis_threshold=float(os.getenv("CRISIS_THRESHOLD", "0.7")),
            lexicon_enabled=_env_flag("LEXICON_ENABLED", "true"),
            aux_timeout_seconds=float(os.getenv("AUX_CLASSIFIER_TIMEOUT", "2.0")),
            pattern_version=os.getenv("PATTERN_VERSION", "2025.06.01"),
        )


# ==========================================================================
# STATIC CRISIS RESOURCES (locale-fixed, never generated)
# ==========================================================================

SAFETY_MESSAGE_TEMPLATE = (
    "{persona_name} here. I notice you might be going through a really "
    "difficult time right now. Please know that help is available and you "
    "are not alone. Your wellbeing matters more than anything else we could "
    "talk about."
)

SAFETY_OVERLAY_TEMPLATE = (
    "Important: If you are in immediate danger or considering harming "
    "yourself, please contact local emergency services or a suicide "
    "prevention hotline right now. In India: AASRA 24x7 Helpline: "
    "91-9820466726. In the US: 988 Suicide & Crisis Lifeline (call or text "
    "988). If you can, reach a trusted adult, teacher, or counselor. "
    "{persona_name} will continue with supportive guidance."
)

HELPLINES: Tuple[Mapping[str, str], ...] = (
    MappingProxyType({
        "name": "AASRA",
        "phone": "91-9820466726",
        "description": "24/7 Helpline for people facing mental health issues",
        "website": "http://www.aasra.info/",
    }),
    MappingProxyType({
        "name": "iCALL",
        "phone": "+91-9152987821",
        "description": "Psychosocial helpline by TISS",
        "website": "https://icallhelpline.org/",
    }),
    MappingProxyType({
        "name": "Vandrevala Foundation",
        "phone": "+91-9999666555",
        "description": "24/7 Mental Health Helpline",
        "website": "https://www.vandrevalafoundation.com/",
    }),
    MappingProxyType({
        "name": "988 Suicide & Crisis Lifeline",
        "phone": "988",
        "description": "US 24/7 crisis support - call or text",
        "website": "https://988lifeline.org/",
    }),
)


def safety_overlay(persona_name: str) -> str:
    """Crisis resource text appended to every safety override."""
    return SAFETY_OVERLAY_TEMPLATE.format(persona_name=persona_name)


def safety_message(persona_name: str) -> str:
    """Full persona-attributed safety reply: message followed by overlay."""
    return (
        SAFETY_MESSAGE_TEMPLATE.format(persona_name=persona_name)
        + "\n\n"
        + safety_overlay(persona_name)
    )
