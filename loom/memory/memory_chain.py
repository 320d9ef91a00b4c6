"""
Append-only, hash-linked memory chain.

Index 0 is always the genesis block (previous_hash "0", signature "genesis").
Every later block links to its predecessor through previous_hash and hashes
{previous_hash, timestamp, content}. Blocks are never mutated once appended:
append_block returns a new list and leaves its input untouched.
"""

from typing import Any, Optional

from loguru import logger

from loom.core.models import BlockData, BlockType, MemoryBlock, utc_now_iso
from loom.memory.hashing import canonical_json, chain_hash

GENESIS_PREVIOUS_HASH = "0"
GENESIS_SIGNATURE = "genesis"
CONSENT_MARKER = "CONSENT_GRANTED"


def _genesis_hash(session_id: str, timestamp: str) -> str:
    return chain_hash(canonical_json({
        "session_id": session_id,
        "timestamp": timestamp,
        "phrase": CONSENT_MARKER,
    }))


def _block_hash(previous_hash: str, timestamp: str, content: dict[str, Any]) -> str:
    return chain_hash(canonical_json({
        "previous_hash": previous_hash,
        "timestamp": timestamp,
        "content": content,
    }))


def genesis_block(
    session_id: str,
    timestamp: str,
    phrase: str,
    device_fingerprint: Optional[str] = None,
) -> MemoryBlock:
    """Build the consent block every session chain starts with"""
    return MemoryBlock(
        hash=_genesis_hash(session_id, timestamp),
        previous_hash=GENESIS_PREVIOUS_HASH,
        timestamp=timestamp,
        data=BlockData(
            type=BlockType.INTERACTION,
            content={
                "event": "consent_granted",
                "phrase": phrase,
                "device_fingerprint": device_fingerprint,
            },
            significance=1.0,
        ),
        signature=GENESIS_SIGNATURE,
    )


def append_block(
    chain: list[MemoryBlock],
    block_type: BlockType,
    content: dict[str, Any],
    significance: float,
    signature: str = "system",
    timestamp: Optional[str] = None,
) -> list[MemoryBlock]:
    """
    Append a block linked to the chain's current tail.

    Args:
        chain: Existing chain, genesis first
        block_type: Event kind recorded by the block
        content: Arbitrary JSON-serialisable payload
        significance: Importance weighting in [0, 1]
        signature: Provenance marker of the writer
        timestamp: Override for the block time (defaults to now)

    Returns:
        A new list holding the old blocks plus the appended one
    """
    if not chain:
        raise ValueError("Cannot append to an empty chain: genesis block required")

    timestamp = timestamp or utc_now_iso()
    previous_hash = chain[-1].hash
    block = MemoryBlock(
        hash=_block_hash(previous_hash, timestamp, content),
        previous_hash=previous_hash,
        timestamp=timestamp,
        data=BlockData(type=block_type, content=content, significance=significance),
        signature=signature,
    )

    logger.debug(
        f"Appended {block_type.value} block #{len(chain)} "
        f"({previous_hash} -> {block.hash})"
    )
    return [*chain, block]


def verify_chain(chain: list[MemoryBlock], session_id: Optional[str] = None) -> bool:
    """
    Check the genesis invariants and every hash link.

    The genesis hash can only be recomputed when the owning session id is
    known; without it only its previous_hash and signature are checked.
    """
    if not chain:
        return False

    genesis = chain[0]
    if genesis.previous_hash != GENESIS_PREVIOUS_HASH or genesis.signature != GENESIS_SIGNATURE:
        return False
    if session_id is not None and genesis.hash != _genesis_hash(session_id, genesis.timestamp):
        return False

    for index in range(1, len(chain)):
        block, predecessor = chain[index], chain[index - 1]
        if block.previous_hash != predecessor.hash:
            logger.warning(f"Broken chain link at block #{index}")
            return False
        if block.hash != _block_hash(block.previous_hash, block.timestamp, block.data.content):
            logger.warning(f"Hash mismatch at block #{index}")
            return False

    return True
