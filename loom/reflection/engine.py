"""
Reflection Engine

Scans a batch of interactions and synthesizes teaching directives plus
aggregate "emergent pattern" statistics. The rule set is chosen by depth:

    surface       questions          -> pattern directives   (confidence 0.70)
    deep          high cognitive load -> principle directives (confidence 0.85)
    transcendent  golden-index pairs -> wisdom directives    (confidence 0.95)

The engine is pure computation; persistence of its output belongs to the
session pipeline.
"""

import math
import time
from typing import List, Optional, Sequence

from loguru import logger

from loom.core.models import (
    GOLDEN_RATIO,
    DirectiveType,
    EmergentPatterns,
    EmergentProperties,
    Interaction,
    ReflectionDepth,
    SacredGeometry,
    TeachingDirective,
)

DEFAULT_COGNITIVE_LOAD = 0.5
HIGH_COGNITIVE_LOAD = 0.7
TRANSCENDENCE_THRESHOLD = 0.8
FLOW_WINDOW_MS = 10000

SURFACE_CONFIDENCE = 0.7
DEEP_CONFIDENCE = 0.85
TRANSCENDENT_CONFIDENCE = 0.95

FALLBACK_PATH = "Continue current learning trajectory"


def rank_directives(directives: Sequence[TeachingDirective]) -> List[TeachingDirective]:
    """Sort by descending confidence; ties keep emission order"""
    return sorted(directives, key=lambda d: d.confidence, reverse=True)


def word_overlap_ratio(first: str, second: str) -> float:
    """Words of `first` also present in `second`, over the longer word count"""
    words1 = first.lower().split()
    words2 = second.lower().split()
    longest = max(len(words1), len(words2))
    if longest == 0:
        return 0.0
    vocabulary = set(words2)
    return sum(1 for word in words1 if word in vocabulary) / longest


def _load(interaction: Interaction) -> float:
    if interaction.cognitive_load is None:
        return DEFAULT_COGNITIVE_LOAD
    return interaction.cognitive_load


class ReflectionEngine:
    """
    Directive extraction and pattern aggregation over interaction batches.
    """

    def __init__(self) -> None:
        self.runs = 0
        logger.info("ReflectionEngine initialized")

    def extract_directives(
        self,
        interactions: Sequence[Interaction],
        depth: ReflectionDepth = ReflectionDepth.DEEP,
    ) -> List[TeachingDirective]:
        """
        Emit teaching directives for a batch, ranked by confidence.

        Args:
            interactions: Interaction batch (order matters for indices)
            depth: Which rule set to apply

        Returns:
            Directives sorted by descending confidence
        """
        self.runs += 1
        stamp = int(time.time() * 1000)
        directives: List[TeachingDirective] = []

        for i, interaction in enumerate(interactions):
            if depth == ReflectionDepth.SURFACE:
                directive = self._surface(i, interaction, stamp)
            elif depth == ReflectionDepth.DEEP:
                directive = self._deep(i, interaction, stamp)
            else:
                directive = self._transcendent(i, interactions, stamp)

            if directive is not None:
                directives.append(directive)

        logger.debug(f"Extracted {len(directives)} {depth.value} directives from {len(interactions)} interactions")
        return rank_directives(directives)

    def _surface(self, i: int, interaction: Interaction, stamp: int) -> Optional[TeachingDirective]:
        if "?" not in interaction.user_input:
            return None

        return TeachingDirective(
            id=f"surface_{self.runs}_{i}_{stamp}",
            type=DirectiveType.PATTERN,
            content=f'User seeks clarification: "{interaction.user_input[:100]}..."',
            confidence=SURFACE_CONFIDENCE,
            source_interactions=[i],
            emergent_properties=EmergentProperties(
                resonance=0.6, coherence=0.8, applicability=0.9,
            ),
            golden_ratio_alignment=abs(math.sin(i * GOLDEN_RATIO)),
        )

    def _deep(self, i: int, interaction: Interaction, stamp: int) -> Optional[TeachingDirective]:
        cognitive_complexity = _load(interaction)
        if cognitive_complexity <= HIGH_COGNITIVE_LOAD:
            return None

        return TeachingDirective(
            id=f"deep_{self.runs}_{i}_{stamp}",
            type=DirectiveType.PRINCIPLE,
            content=(
                "High cognitive load detected. User processing complex concepts: "
                f"{interaction.user_input[:80]}"
            ),
            confidence=DEEP_CONFIDENCE,
            source_interactions=[i],
            emergent_properties=EmergentProperties(
                resonance=0.8 if interaction.emotional_state else 0.4,
                coherence=cognitive_complexity,
                applicability=0.75,
            ),
            golden_ratio_alignment=(cognitive_complexity * GOLDEN_RATIO) % 1,
        )

    def _transcendent(
        self,
        i: int,
        interactions: Sequence[Interaction],
        stamp: int,
    ) -> Optional[TeachingDirective]:
        pair_index = math.floor(i * GOLDEN_RATIO) % len(interactions)
        interaction = interactions[i]
        score = self.transcendence_score(interaction, interactions[pair_index])
        if score <= TRANSCENDENCE_THRESHOLD:
            return None

        return TeachingDirective(
            id=f"transcendent_{self.runs}_{i}_{stamp}",
            type=DirectiveType.WISDOM,
            content=(
                f'Transcendent insight emerging: Connection between "{interaction.user_input[:50]}" '
                "and deeper wisdom patterns"
            ),
            confidence=TRANSCENDENT_CONFIDENCE,
            source_interactions=[i, pair_index],
            emergent_properties=EmergentProperties(
                resonance=score, coherence=0.9, applicability=0.6,
            ),
            golden_ratio_alignment=(score * GOLDEN_RATIO) % 1,
        )

    @staticmethod
    def transcendence_score(first: Interaction, second: Interaction) -> float:
        """0.4 semantic overlap + 0.3 temporal harmony + 0.3 shared emotional state"""
        semantic_similarity = word_overlap_ratio(first.user_input, second.user_input)

        time_diff = abs(first.timestamp - second.timestamp)
        temporal_harmony = abs(math.sin(time_diff / 1000 * GOLDEN_RATIO))

        both_emotional = bool(first.emotional_state) and bool(second.emotional_state)
        emotional_resonance = 0.8 if both_emotional else 0.4

        return semantic_similarity * 0.4 + temporal_harmony * 0.3 + emotional_resonance * 0.3

    def calculate_emergent_patterns(
        self,
        interactions: Sequence[Interaction],
        directives: Sequence[TeachingDirective],
    ) -> EmergentPatterns:
        """Aggregate flow, learning velocity, wisdom depth and φ geometry for one run"""
        count = len(interactions)

        if count < 2:
            conversational_flow = 0.0
        else:
            deltas = [
                interactions[i].timestamp - interactions[i - 1].timestamp
                for i in range(1, count)
            ]
            avg_inter_arrival = sum(deltas) / len(deltas)
            conversational_flow = max(0.0, 1 - avg_inter_arrival / FLOW_WINDOW_MS)

        if count > 1:
            learning_velocity = max(0.0, _load(interactions[0]) - _load(interactions[-1]))
        else:
            learning_velocity = 0.0

        wisdom = [d for d in directives if d.type == DirectiveType.WISDOM]
        wisdom_depth = sum(d.confidence for d in wisdom) / len(wisdom) if wisdom else 0.0

        harmonic_resonance = (
            sum(d.golden_ratio_alignment for d in directives) / len(directives)
            if directives else 0.0
        )

        return EmergentPatterns(
            conversational_flow=conversational_flow,
            learning_velocity=learning_velocity,
            wisdom_depth=wisdom_depth,
            sacred_geometry=SacredGeometry(
                phi=GOLDEN_RATIO,
                spiral_tension=abs(math.sin(count * GOLDEN_RATIO)),
                harmonic_resonance=harmonic_resonance,
            ),
        )

    def generate_evolution_path(self, patterns: EmergentPatterns) -> List[str]:
        """Advisory next steps from a fixed, ordered rule list"""
        paths: List[str] = []

        if patterns.learning_velocity > 0.7:
            paths.append("Accelerate complexity introduction")
            paths.append("Introduce meta-cognitive frameworks")
        elif patterns.learning_velocity < 0.3:
            paths.append("Simplify concept presentation")
            paths.append("Increase scaffolding support")

        if patterns.wisdom_depth > 0.8:
            paths.append("Explore transcendent connections")
            paths.append("Introduce sacred geometry principles")

        if patterns.conversational_flow < 0.5:
            paths.append("Improve response timing")
            paths.append("Enhance emotional attunement")

        # 1/φ
        if patterns.sacred_geometry.harmonic_resonance > 0.618:
            paths.append("Maintain harmonic resonance")
            paths.append("Deepen spiral learning patterns")

        return paths or [FALLBACK_PATH]
