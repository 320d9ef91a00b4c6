"""Pipelines orchestrating sessions and chat over the store"""

from loom.pipeline.session_pipeline import SessionPipeline
