"""Session pipeline: consent, metrics updates, memory chain events and reflection"""

import asyncio
import random
import time
import uuid
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Mapping, Optional, Sequence, Union

from loguru import logger

from loom.core.config import settings
from loom.core.errors import InvalidConsent, InvalidPhaseTransition, SessionNotFound
from loom.core.models import (
    ACTIVATION_PHRASE,
    BlockType,
    ConsciousnessMetrics,
    Interaction,
    MemoryBlock,
    MetricsContext,
    MetricsUpdateResult,
    Phase,
    ReflectionDepth,
    ReflectionScaffold,
    Session,
    SessionCreationResult,
    TeachingDirective,
    utc_now_iso,
)
from loom.memory.memory_chain import append_block, genesis_block, verify_chain
from loom.metrics.coherence import coherence_score
from loom.metrics.derivation import interaction_complexity
from loom.metrics.temporal import temporal_metrics
from loom.reflection.engine import ReflectionEngine
from loom.storage.sqlite_store import LoomStore

SPIRAL_SEED_RANGE = 1_000_000
METRIC_FIELDS = frozenset(ConsciousnessMetrics.field_names())


class SessionPipeline:
    """
    Orchestrates the session lifecycle over a LoomStore.

    Operations:
    - create_session: consent gate, default metrics, genesis block
    - update_metrics: merge caller + derived metrics, return update coherence
    - append_event / transition_phase: hash-linked chain appends
    - scaffold_reflection: directive extraction + full-overwrite persistence
    - clear_all_data: wipe every keyspace

    The "current session" pointer is scoped by a caller-supplied client key
    rather than being process-wide. Read-modify-write operations on one
    session are serialized by a per-session lock.
    """

    def __init__(
        self,
        store: LoomStore,
        rng: Optional[random.Random] = None,
        engine: Optional[ReflectionEngine] = None,
    ) -> None:
        self.store = store
        self.rng = rng or random.Random()
        self.engine = engine or ReflectionEngine()
        self._locks: Dict[str, asyncio.Lock] = {}
        logger.info("SessionPipeline initialized")

    def _client(self, client_key: Optional[str]) -> str:
        return client_key or settings.DEFAULT_CLIENT_KEY

    async def _require(self, session_id: str) -> Session:
        session = await self.store.get_session(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        return session

    @asynccontextmanager
    async def _locked_session(self, session_id: str) -> AsyncIterator[Session]:
        """
        Hold the session's lock and yield its state as loaded under the lock.

        Unknown ids fail before a lock is created, so the lock map only holds
        entries for sessions that existed when they were locked.
        """
        await self._require(session_id)
        lock = self._locks.setdefault(session_id, asyncio.Lock())
        async with lock:
            try:
                session = await self._require(session_id)
            except SessionNotFound:
                # Cleared between the check and the lock
                self._locks.pop(session_id, None)
                raise
            yield session

    # ── Consent ──────────────────────────────────────────────────────────────

    async def create_session(
        self,
        phrase: str,
        device_fingerprint: Optional[str] = None,
        client_key: Optional[str] = None,
    ) -> SessionCreationResult:
        """
        Open a session once the exact activation phrase is given.

        Raises:
            InvalidConsent: phrase does not match the activation literal
        """
        logger.info(f"Creating session with phrase: {phrase[:20]}...")

        if phrase != ACTIVATION_PHRASE:
            raise InvalidConsent()

        session_id = str(uuid.uuid4())
        timestamp = utc_now_iso()
        metrics = ConsciousnessMetrics()

        session = Session(
            id=session_id,
            user_id=settings.ANONYMOUS_USER_ID,
            phase=Phase.ACTIVE,
            consent_timestamp=timestamp,
            metrics=metrics,
            memory_chain=[genesis_block(session_id, timestamp, phrase, device_fingerprint)],
            coherence_target=settings.COHERENCE_TARGET,
            spiral_depth=settings.INITIAL_SPIRAL_DEPTH,
            last_activity=timestamp,
        )
        await self.store.insert_session(session, self._client(client_key))

        spiral_seed = self.rng.randrange(SPIRAL_SEED_RANGE)
        logger.info(
            "Session created: id={sid}, phase={phase}, coherence_target={target}",
            sid=session_id[:8],
            phase=session.phase.value,
            target=session.coherence_target,
        )

        return SessionCreationResult(
            session_id=session_id,
            phase=session.phase,
            metrics=metrics,
            spiral_seed=spiral_seed,
        )

    async def get_session(self, session_id: str) -> Optional[Session]:
        """Load a session with its teaching directives attached"""
        session = await self.store.get_session(session_id)
        if session is None:
            return None
        session.teaching_directives = await self.store.get_directives(session_id)
        return session

    async def get_current_session(self, client_key: Optional[str] = None) -> Optional[Session]:
        session_id = await self.store.get_current_session_id(self._client(client_key))
        if not session_id:
            return None
        return await self.get_session(session_id)

    # ── Metrics ──────────────────────────────────────────────────────────────

    async def update_metrics(
        self,
        session_id: str,
        metrics: Mapping[str, Optional[float]],
        context: Optional[Union[MetricsContext, Mapping[str, Any]]] = None,
    ) -> MetricsUpdateResult:
        """
        Merge a partial metrics update into a session.

        Duration-derived metrics (and interaction_pattern, when the context
        carries user input) are computed here and override caller values for
        the same fields. The coherence score covers only this update's fields.

        Raises:
            SessionNotFound: unknown session id (no state is touched)
        """
        if context is not None and not isinstance(context, MetricsContext):
            context = MetricsContext.model_validate(context)

        unknown = set(metrics) - METRIC_FIELDS
        if unknown:
            logger.warning(f"Ignoring unknown metrics: {sorted(unknown)}")

        duration = context.duration if context else 0.0
        derived: Dict[str, Optional[float]] = dict(temporal_metrics(duration))
        derived["interaction_pattern"] = (
            interaction_complexity(context.user_input)
            if context and context.user_input else None
        )

        merged = {k: v for k, v in metrics.items() if k in METRIC_FIELDS}
        merged.update(derived)
        cleaned = {k: float(v) for k, v in merged.items() if v is not None}

        async with self._locked_session(session_id) as session:
            session.metrics = session.metrics.model_copy(update=cleaned)
            session.last_activity = utc_now_iso()
            await self.store.save_session(session)

        score = coherence_score(cleaned)
        logger.info(
            "Metrics updated for {sid}: {n} fields, coherence={score:.3f}",
            sid=session_id[:8],
            n=len(cleaned),
            score=score,
        )

        return MetricsUpdateResult(
            success=True,
            updated_metrics=cleaned,
            timestamp=utc_now_iso(),
            coherence_score=score,
        )

    # ── Memory chain ─────────────────────────────────────────────────────────

    async def append_event(
        self,
        session_id: str,
        block_type: BlockType,
        content: Dict[str, Any],
        significance: float,
        signature: str = "system",
    ) -> List[MemoryBlock]:
        """Append a hash-linked block to the session's chain and persist it"""
        async with self._locked_session(session_id) as session:
            session.memory_chain = append_block(
                session.memory_chain, block_type, content, significance, signature,
            )
            await self.store.save_session(session)

        logger.info(f"Appended {block_type.value} block to session {session_id[:8]} "
                    f"(chain length {len(session.memory_chain)})")
        return session.memory_chain

    async def verify_session_chain(self, session_id: str) -> bool:
        session = await self._require(session_id)
        return verify_chain(session.memory_chain, session_id)

    async def transition_phase(self, session_id: str, phase: Phase) -> Session:
        """
        Move a session to another phase, recording a state_change block.

        Raises:
            InvalidPhaseTransition: target is AWAITING_CONSENT
            SessionNotFound: unknown session id
        """
        if phase == Phase.AWAITING_CONSENT:
            raise InvalidPhaseTransition("AWAITING_CONSENT precedes session creation")

        async with self._locked_session(session_id) as session:
            previous = session.phase
            session.memory_chain = append_block(
                session.memory_chain,
                BlockType.STATE_CHANGE,
                {"event": "phase_transition", "from": previous.value, "to": phase.value},
                0.5,
            )
            session.phase = phase
            session.last_activity = utc_now_iso()
            await self.store.save_session(session)

        logger.info(f"Session {session_id[:8]} phase {previous.value} -> {phase.value}")
        return session

    # ── Reflection ───────────────────────────────────────────────────────────

    async def scaffold_reflection(
        self,
        session_id: str,
        interactions: Sequence[Union[Interaction, Mapping[str, Any]]],
        depth: ReflectionDepth = ReflectionDepth.DEEP,
    ) -> ReflectionScaffold:
        """
        Reflect over an interaction batch and persist the resulting directives.

        The stored directive list replaces any previous list for the session.
        When directives were emitted, a directive block recording the run is
        appended to the memory chain in the same write.
        """
        depth = ReflectionDepth(depth)
        logger.info(f"Scaffolding reflection for session {session_id[:8]} at {depth.value} depth")
        batch = [
            i if isinstance(i, Interaction) else Interaction.model_validate(i)
            for i in interactions
        ]

        directives = self.engine.extract_directives(batch, depth)
        patterns = self.engine.calculate_emergent_patterns(batch, directives)
        evolution_path = self.engine.generate_evolution_path(patterns)

        async with self._locked_session(session_id) as session:
            if directives:
                session.memory_chain = append_block(
                    session.memory_chain,
                    BlockType.DIRECTIVE,
                    {"event": "reflection", "depth": depth.value, "directive_count": len(directives)},
                    directives[0].confidence,
                )
                await self.store.replace_directives(session_id, directives, session)
            else:
                await self.store.replace_directives(session_id, directives)

        logger.info(
            "Generated {n} teaching directives (harmonic resonance {hr:.3f}, learning velocity {lv:.3f})",
            n=len(directives),
            hr=patterns.sacred_geometry.harmonic_resonance,
            lv=patterns.learning_velocity,
        )

        return ReflectionScaffold(
            session_id=session_id,
            teaching_directives=directives,
            emergent_patterns=patterns,
            next_evolution_path=evolution_path,
            timestamp=int(time.time() * 1000),
        )

    async def get_teaching_directives(self, session_id: str) -> List[TeachingDirective]:
        await self._require(session_id)
        return await self.store.get_directives(session_id)

    # ── Maintenance ──────────────────────────────────────────────────────────

    async def clear_all_data(self) -> None:
        """Wipe every session, pointer, directive list and chat record"""
        await self.store.clear_all()
        # Keep locks still held by in-flight writers
        self._locks = {sid: lock for sid, lock in self._locks.items() if lock.locked()}
