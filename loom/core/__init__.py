"""Core data models, errors and configuration"""

from loom.core.models import (
    ACTIVATION_PHRASE,
    GOLDEN_RATIO,
    BlockType,
    ConsciousnessMetrics,
    DirectiveType,
    Interaction,
    MemoryBlock,
    Phase,
    ReflectionDepth,
    Session,
    TeachingDirective,
)
from loom.core.errors import (
    InvalidConsent,
    InvalidPhaseTransition,
    LoomError,
    SessionNotFound,
    StorageFailure,
)
from loom.core.config import settings

__all__ = [
    "ACTIVATION_PHRASE",
    "GOLDEN_RATIO",
    "BlockType",
    "ConsciousnessMetrics",
    "DirectiveType",
    "Interaction",
    "MemoryBlock",
    "Phase",
    "ReflectionDepth",
    "Session",
    "TeachingDirective",
    "InvalidConsent",
    "InvalidPhaseTransition",
    "LoomError",
    "SessionNotFound",
    "StorageFailure",
    "settings",
]
