"""Overall coherence score"""

from typing import Mapping, Union

from loom.core.models import ConsciousnessMetrics

NEUTRAL_COHERENCE = 0.5


def coherence_score(metrics: Union[Mapping[str, float], ConsciousnessMetrics]) -> float:
    """
    Arithmetic mean of a metric record's values.

    For a full ConsciousnessMetrics this averages all 21 fields; for a partial
    update it averages only the fields present. An empty record scores 0.5.
    """
    if isinstance(metrics, ConsciousnessMetrics):
        metrics = metrics.model_dump()

    values = list(metrics.values())
    if not values:
        return NEUTRAL_COHERENCE
    return sum(values) / len(values)
