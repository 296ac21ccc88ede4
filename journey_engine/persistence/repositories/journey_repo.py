"""Journey repository for database operations."""

import asyncio
import json
from datetime import datetime, timezone
from typing import Dict, List, Optional

import aiosqlite
import structlog

from journey_engine.core.exceptions import JourneyNotFoundError
from journey_engine.domain.models.artifact import Artifact
from journey_engine.domain.models.insight import Insight
from journey_engine.domain.models.journey import Journey, JourneyStatus
from journey_engine.domain.models.stage import Stage

log = structlog.get_logger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class JourneyRepository:
    """
    SQLite-backed journey store.

    Opens a connection per operation. Writes for the same journey are
    serialized with a per-journey asyncio.Lock; different journeys write
    independently.
    """

    def __init__(self, db_path: str):
        self.db_path = str(db_path)
        self._locks: Dict[str, asyncio.Lock] = {}

    def _lock(self, journey_id: str) -> asyncio.Lock:
        if journey_id not in self._locks:
            self._locks[journey_id] = asyncio.Lock()
        return self._locks[journey_id]

    async def _connect(self) -> aiosqlite.Connection:
        db = await aiosqlite.connect(self.db_path)
        await db.execute("PRAGMA foreign_keys = ON")
        db.row_factory = aiosqlite.Row
        return db

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    async def create_journey(self, journey: Journey) -> Journey:
        """Insert a new journey row (stages and insights are appended later)."""
        async with self._lock(journey.id):
            db = await self._connect()
            try:
                await db.execute(
                    "INSERT INTO journeys (id, question, max_depth, status, "
                    "synthesis_count, error, created_at, updated_at) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                    (
                        journey.id,
                        journey.question,
                        journey.max_depth,
                        journey.status.value,
                        journey.synthesis_count,
                        journey.error,
                        journey.created_at.isoformat(),
                        _now(),
                    ),
                )
                await db.commit()
            finally:
                await db.close()

        log.info("journey_created", journey_id=journey.id)
        return journey

    async def append_stage(self, journey_id: str, stage: Stage) -> None:
        """Insert a finished stage and its artifacts in one transaction."""
        async with self._lock(journey_id):
            db = await self._connect()
            try:
                await self._require_journey(db, journey_id)
                await db.execute(
                    """INSERT INTO stages (
                        journey_id, sequence, stage_type, status, output,
                        reasoning_trace, error, is_summary, provider_id, model_id,
                        token_usage, tool_invocations, created_at, started_at, completed_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                    (
                        journey_id,
                        stage.sequence,
                        stage.stage_type.value,
                        stage.status.value,
                        stage.output,
                        stage.reasoning_trace,
                        stage.error,
                        int(stage.is_summary),
                        stage.provider_id,
                        stage.model_id,
                        json.dumps(stage.token_usage),
                        json.dumps(stage.tool_invocations),
                        stage.created_at.isoformat(),
                        _iso(stage.started_at),
                        _iso(stage.completed_at),
                    ),
                )
                for ordinal, artifact in enumerate(stage.artifacts):
                    await db.execute(
                        """INSERT INTO artifacts (
                            id, journey_id, stage_sequence, ordinal, type, title,
                            content, metadata, created_at
                        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                        (
                            artifact.id,
                            journey_id,
                            stage.sequence,
                            ordinal,
                            artifact.type.value,
                            artifact.title,
                            artifact.content,
                            json.dumps(artifact.metadata),
                            artifact.created_at.isoformat(),
                        ),
                    )
                await self._touch(db, journey_id)
                await db.commit()
            finally:
                await db.close()

        log.debug(
            "stage_persisted",
            journey_id=journey_id,
            sequence=stage.sequence,
            status=stage.status.value,
            artifacts=len(stage.artifacts),
        )

    async def append_insight(self, journey_id: str, insight: Insight) -> None:
        async with self._lock(journey_id):
            db = await self._connect()
            try:
                await self._require_journey(db, journey_id)
                await db.execute(
                    'INSERT INTO insights (journey_id, "order", category, text, score, '
                    "stage_sequence, created_at) VALUES (?, ?, ?, ?, ?, ?, ?)",
                    (
                        journey_id,
                        insight.order,
                        insight.category,
                        insight.text,
                        insight.score,
                        insight.stage_sequence,
                        insight.created_at.isoformat(),
                    ),
                )
                await self._touch(db, journey_id)
                await db.commit()
            finally:
                await db.close()

    async def update_journey_status(
        self,
        journey_id: str,
        status: JourneyStatus,
        error: Optional[str] = None,
    ) -> None:
        """Persist a status change.

        Raises:
            JourneyNotFoundError: If the journey does not exist
        """
        async with self._lock(journey_id):
            db = await self._connect()
            try:
                cursor = await db.execute(
                    "UPDATE journeys SET status = ?, error = ?, updated_at = ? WHERE id = ?",
                    (status.value, error, _now(), journey_id),
                )
                if cursor.rowcount == 0:
                    raise JourneyNotFoundError(f"Journey {journey_id} not found")
                await db.commit()
            finally:
                await db.close()

    async def update_synthesis_count(self, journey_id: str, count: int) -> None:
        async with self._lock(journey_id):
            db = await self._connect()
            try:
                cursor = await db.execute(
                    "UPDATE journeys SET synthesis_count = ?, updated_at = ? WHERE id = ?",
                    (count, _now(), journey_id),
                )
                if cursor.rowcount == 0:
                    raise JourneyNotFoundError(f"Journey {journey_id} not found")
                await db.commit()
            finally:
                await db.close()

    async def delete(self, journey_id: str) -> bool:
        """Delete a journey and everything it owns. Returns True if deleted."""
        async with self._lock(journey_id):
            db = await self._connect()
            try:
                cursor = await db.execute("DELETE FROM journeys WHERE id = ?", (journey_id,))
                await db.commit()
                deleted = cursor.rowcount > 0
            finally:
                await db.close()
        self._locks.pop(journey_id, None)
        return deleted

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def get_journey(self, journey_id: str) -> Optional[Journey]:
        """Load a journey with its stages, artifacts and insights."""
        db = await self._connect()
        try:
            cursor = await db.execute("SELECT * FROM journeys WHERE id = ?", (journey_id,))
            row = await cursor.fetchone()
            if not row:
                return None

            cursor = await db.execute(
                "SELECT * FROM artifacts WHERE journey_id = ? ORDER BY stage_sequence, ordinal",
                (journey_id,),
            )
            artifacts: Dict[int, List[Artifact]] = {}
            for a in await cursor.fetchall():
                artifacts.setdefault(a["stage_sequence"], []).append(self._row_to_artifact(a))

            cursor = await db.execute(
                "SELECT * FROM stages WHERE journey_id = ? ORDER BY sequence",
                (journey_id,),
            )
            stages = [
                self._row_to_stage(s, artifacts.get(s["sequence"], []))
                for s in await cursor.fetchall()
            ]

            cursor = await db.execute(
                'SELECT * FROM insights WHERE journey_id = ? ORDER BY "order"',
                (journey_id,),
            )
            insights = [self._row_to_insight(i) for i in await cursor.fetchall()]
        finally:
            await db.close()

        return self._row_to_journey(row, stages=stages, insights=insights)

    async def list_journeys(self) -> List[Journey]:
        """List journeys newest first, without stages or insights."""
        db = await self._connect()
        try:
            cursor = await db.execute("SELECT * FROM journeys ORDER BY created_at DESC")
            rows = await cursor.fetchall()
        finally:
            await db.close()
        return [self._row_to_journey(row) for row in rows]

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    async def _require_journey(self, db: aiosqlite.Connection, journey_id: str) -> None:
        cursor = await db.execute("SELECT 1 FROM journeys WHERE id = ?", (journey_id,))
        if await cursor.fetchone() is None:
            raise JourneyNotFoundError(f"Journey {journey_id} not found")

    async def _touch(self, db: aiosqlite.Connection, journey_id: str) -> None:
        await db.execute(
            "UPDATE journeys SET updated_at = ? WHERE id = ?", (_now(), journey_id)
        )

    def _row_to_journey(
        self,
        row: aiosqlite.Row,
        stages: Optional[List[Stage]] = None,
        insights: Optional[List[Insight]] = None,
    ) -> Journey:
        return Journey(
            id=row["id"],
            question=row["question"],
            max_depth=row["max_depth"],
            status=JourneyStatus(row["status"]),
            synthesis_count=row["synthesis_count"],
            error=row["error"],
            created_at=datetime.fromisoformat(row["created_at"]),
            stages=stages or [],
            insights=insights or [],
        )

    def _row_to_stage(self, row: aiosqlite.Row, artifacts: List[Artifact]) -> Stage:
        return Stage.restore(
            sequence=row["sequence"],
            stage_type=row["stage_type"],
            status=row["status"],
            output=row["output"],
            reasoning_trace=row["reasoning_trace"],
            error=row["error"],
            is_summary=bool(row["is_summary"]),
            provider_id=row["provider_id"],
            model_id=row["model_id"],
            token_usage=json.loads(row["token_usage"]) if row["token_usage"] else {},
            tool_invocations=(
                json.loads(row["tool_invocations"]) if row["tool_invocations"] else []
            ),
            artifacts=artifacts,
            created_at=datetime.fromisoformat(row["created_at"]),
            started_at=row["started_at"],
            completed_at=row["completed_at"],
        )

    def _row_to_artifact(self, row: aiosqlite.Row) -> Artifact:
        return Artifact(
            id=row["id"],
            type=row["type"],
            title=row["title"],
            content=row["content"],
            metadata=json.loads(row["metadata"]) if row["metadata"] else {},
            stage_sequence=row["stage_sequence"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    def _row_to_insight(self, row: aiosqlite.Row) -> Insight:
        return Insight(
            category=row["category"],
            text=row["text"],
            score=row["score"],
            order=row["order"],
            stage_sequence=row["stage_sequence"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )
