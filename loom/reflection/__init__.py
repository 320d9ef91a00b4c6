"""Reflection: teaching-directive extraction and emergent pattern aggregation"""

from loom.reflection.engine import ReflectionEngine, rank_directives, word_overlap_ratio
