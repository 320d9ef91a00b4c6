"""Persistence layer"""

from loom.storage.sqlite_store import LoomStore
