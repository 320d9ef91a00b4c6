"""
Memory chain: append-only hash-linked event log for sessions
"""

from loom.memory.hashing import canonical_json, chain_hash
from loom.memory.memory_chain import append_block, genesis_block, verify_chain
