"""Duration-driven metrics: slow, bounded oscillations of session time against φ"""

import math

from loom.core.models import GOLDEN_RATIO

_MS_PER_MINUTE = 1000 * 60


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


def phase_alignment(duration_ms: float) -> float:
    """Golden-ratio synchronization: sine of elapsed minutes scaled by φ"""
    cycles = duration_ms / _MS_PER_MINUTE
    return _clamp(math.sin(cycles * GOLDEN_RATIO) * 0.5 + 0.5)


def spiral_resonance(duration_ms: float) -> float:
    """Geometric alignment over five-minute periods"""
    t = duration_ms / (_MS_PER_MINUTE * 5)
    resonance = (math.cos(t * GOLDEN_RATIO) + math.sin(t / GOLDEN_RATIO)) / 2 + 0.5
    return _clamp(resonance)


def consciousness_depth(duration_ms: float) -> float:
    """Logarithmic growth that saturates after an hour"""
    minutes = duration_ms / _MS_PER_MINUTE
    return _clamp(math.log(minutes + 1) / math.log(60))


def temporal_metrics(duration_ms: float) -> dict[str, float]:
    return {
        "phase_alignment": phase_alignment(duration_ms),
        "spiral_resonance": spiral_resonance(duration_ms),
        "consciousness_depth": consciousness_depth(duration_ms),
    }
