"""
Lexical metric derivation.

Maps free text to a partial ConsciousnessMetrics record using curated keyword
lists, vocabulary diversity and sentence length. A few fields are randomized
within fixed bands; pass a seeded random.Random to make them reproducible.
Fields that cannot be derived from text are left out so callers can merge the
result over existing metrics.
"""

import random
import re
from typing import Dict, Optional

from loguru import logger

# metric -> keywords, normalizing divisor, base, scale
KEYWORD_DIMENSIONS = {
    "emotional_depth": {
        "keywords": ["feel", "emotion", "love", "fear", "joy", "sad", "angry",
                     "happy", "excited", "worried", "hope", "dream"],
        "divisor": 4, "base": 0.2, "scale": 0.8,
    },
    "pattern_recognition": {
        "keywords": ["because", "therefore", "thus", "hence", "pattern",
                     "connection", "relationship", "similar", "different"],
        "divisor": 3, "base": 0.3, "scale": 0.7,
    },
    "self_reflection_depth": {
        "keywords": ["think", "know", "understand", "realize", "aware",
                     "conscious", "mind", "thought", "reflect", "consider"],
        "divisor": 4, "base": 0.2, "scale": 0.8,
    },
    "creativity_index": {
        "keywords": ["like", "as", "metaphor", "symbol", "imagine", "create",
                     "innovative", "unique", "original", "artistic"],
        "divisor": 3, "base": 0.2, "scale": 0.8,
    },
    "empathy_resonance": {
        "keywords": ["understand", "feel", "empathy", "compassion", "care",
                     "support", "help", "together", "share", "connect"],
        "divisor": 3, "base": 0.3, "scale": 0.7,
    },
    "intentionality_clarity": {
        "keywords": ["goal", "purpose", "aim", "intend", "plan", "want",
                     "need", "should", "will", "must"],
        "divisor": 3, "base": 0.3, "scale": 0.7,
    },
}

# Neural complexity
SENTENCE_LENGTH_NORM = 20
NEURAL_BASE = 0.3
NEURAL_SCALE = 0.7

# (low, width) bands for the stochastic fields
RANDOM_BANDS = {
    "brainwave_coherence": (0.4, 0.2),
    "autonomic_balance": (0.5, 0.1),
    "interaction_pattern": (0.6, 0.2),
}

# Simulated latency stand-in
LATENCY_PER_WORD_MS = 50
LATENCY_FLOOR_MS = 100

# Floors applied when folding an assistant reply into a conversation turn
TURN_FLOORS = {
    "emotional_depth": 0.3,
    "neural_complexity": 0.4,
    "pattern_recognition": 0.5,
    "self_reflection_depth": 0.4,
    "creativity_index": 0.6,
    "empathy_resonance": 0.5,
    "intentionality_clarity": 0.4,
}

_SENTENCE_SPLIT = re.compile(r"[.!?]+")


def keyword_score(text: str, keywords: list[str], divisor: float) -> float:
    """Distinct keyword hits (substring match on lowercased text) / divisor, capped at 1"""
    hits = sum(1 for word in keywords if word in text)
    return min(1.0, hits / divisor)


def _sentence_count(text: str) -> int:
    return len([s for s in _SENTENCE_SPLIT.split(text) if s.strip()])


def neural_complexity(text: str) -> float:
    """Blend of vocabulary diversity and average sentence length"""
    words = text.lower().split()
    word_count = max(1, len(words))
    diversity = len(set(words)) / word_count
    avg_sentence = word_count / max(1, _sentence_count(text))
    raw = min(1.0, (diversity + avg_sentence / SENTENCE_LENGTH_NORM) / 2)
    return NEURAL_BASE + raw * NEURAL_SCALE


def interaction_complexity(text: str) -> float:
    """
    Complexity of a single user input, in [0, 1].

    Mean of length (words/50), diversity (unique/words) and average word
    length (/8), each capped at 1.
    """
    words = text.split()
    if not words:
        return 0.0

    unique_words = len(set(text.lower().split()))
    avg_word_length = len("".join(words)) / len(words)

    length_score = min(len(words) / 50, 1.0)
    diversity_score = unique_words / len(words)
    complexity_score = min(avg_word_length / 8, 1.0)
    return (length_score + diversity_score + complexity_score) / 3


def derive_metrics(text: str, rng: Optional[random.Random] = None) -> Dict[str, float]:
    """
    Derive a partial metrics record from free text.

    Args:
        text: Message to analyse
        rng: Random source for the stochastic fields (module RNG if omitted)

    Returns:
        Partial record keyed by ConsciousnessMetrics field names
    """
    rng = rng or random.Random()
    lowered = text.lower()
    word_count = len(lowered.split())

    metrics: Dict[str, float] = {}
    for name, dim in KEYWORD_DIMENSIONS.items():
        raw = keyword_score(lowered, dim["keywords"], dim["divisor"])
        metrics[name] = dim["base"] + raw * dim["scale"]

    metrics["neural_complexity"] = neural_complexity(text)

    for name, (low, width) in RANDOM_BANDS.items():
        metrics[name] = low + rng.random() * width

    metrics["response_latency"] = float(max(LATENCY_FLOOR_MS, word_count * LATENCY_PER_WORD_MS))

    logger.debug(f"Derived {len(metrics)} metrics from {word_count} words")
    return metrics


def merge_turn_metrics(
    response_metrics: Dict[str, float],
    interaction_ms: float,
    rng: Optional[random.Random] = None,
) -> Dict[str, float]:
    """
    Fold an assistant reply's metrics into a conversation-turn update.

    Lexical fields are raised to per-field floors; brainwave coherence is
    re-rolled in a wider band and memory consolidation rewards turns longer
    than five seconds.
    """
    rng = rng or random.Random()
    combined = {
        name: max(response_metrics.get(name, 0.0), floor)
        for name, floor in TURN_FLOORS.items()
    }
    combined["brainwave_coherence"] = 0.5 + rng.random() * 0.3
    combined["memory_consolidation"] = 0.4 + (0.3 if interaction_ms > 5000 else 0.1)
    return combined
