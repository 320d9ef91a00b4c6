"""
Living Loom Metrics

Lexical and temporal derivation of consciousness metrics, plus the
coherence score used by sessions and updates.
"""

from loom.metrics.coherence import coherence_score
from loom.metrics.derivation import derive_metrics, interaction_complexity, merge_turn_metrics
from loom.metrics.temporal import (
    consciousness_depth,
    phase_alignment,
    spiral_resonance,
    temporal_metrics,
)
