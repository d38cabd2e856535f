"""
ReelRank Telemetry Service — best-effort ingestion of client interaction events.

Contract:
  - at most ``telemetry_max_batch`` events are looked at per call
  - malformed fields are coerced where possible; otherwise the event is dropped
  - unknown event types, unparseable ids and events on missing videos are dropped
  - duplicates inside a batch collapse to one row
  - an unknown viewer id is stored as anonymous
  - storage failures are logged and swallowed; the caller always sees success
"""
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from reelrank.core.config import get_settings
from reelrank.core.database import async_session_factory
from reelrank.core.metrics import TELEMETRY_EVENTS
from reelrank.models.models import User, Video, VideoEvent, VideoEventType
from reelrank.schemas.schemas import TelemetryBatch, TelemetryEventIn

logger = logging.getLogger(__name__)
settings = get_settings()

EVENT_TYPES: Dict[str, VideoEventType] = {e.value: e for e in VideoEventType}
MAX_SESSION_ID = 128
DEFAULT_SESSION = "anonymous"


def _session(value: Any, default: str) -> str:
    if isinstance(value, str) and value.strip():
        return value[:MAX_SESSION_ID]
    return default


class TelemetryService:

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] = async_session_factory,
        max_batch: int = settings.telemetry_max_batch,
    ):
        self.session_factory = session_factory
        self.max_batch = max_batch

    def _events(self, batch: TelemetryBatch) -> list:
        """The slice of the batch that is looked at; a non-list ``events`` is empty."""
        events = batch.events if isinstance(batch.events, list) else []
        return events[: self.max_batch]

    def received(self, batch: TelemetryBatch) -> int:
        return len(self._events(batch))

    @staticmethod
    def _fields(event) -> Optional[Dict[str, Any]]:
        if isinstance(event, TelemetryEventIn):
            return event.model_dump()
        if isinstance(event, dict):
            return event
        return None

    @staticmethod
    def _parse(event, default_session: str) -> Optional[Tuple[uuid.UUID, VideoEventType, str, dict, Any]]:
        fields = TelemetryService._fields(event)
        if fields is None:
            return None

        raw_type = fields.get("event_type")
        if not isinstance(raw_type, str):
            return None
        event_type = EVENT_TYPES.get(raw_type.strip().lower())
        if event_type is None:
            return None

        try:
            video_id = uuid.UUID(str(fields.get("video_id")))
        except (ValueError, TypeError, AttributeError):
            return None

        payload = fields.get("payload")
        timestamp = fields.get("timestamp")
        if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float, str)):
            timestamp = None

        return (
            video_id,
            event_type,
            _session(fields.get("session_id"), default_session),
            dict(payload) if isinstance(payload, dict) else {},
            timestamp,
        )

    def prepare(self, batch: TelemetryBatch) -> List[Tuple[uuid.UUID, VideoEventType, str, dict]]:
        """Validate and dedupe a batch without touching storage."""
        default_session = _session(batch.session_id, DEFAULT_SESSION)
        rows = []
        seen = set()
        for event in self._events(batch):
            parsed = self._parse(event, default_session)
            if parsed is None:
                continue
            video_id, event_type, session_id, payload, timestamp = parsed
            key = (video_id, event_type, session_id, timestamp)
            if key in seen:
                continue
            seen.add(key)
            rows.append((video_id, event_type, session_id, payload))
        return rows

    async def ingest(self, batch: TelemetryBatch, viewer_id: Optional[uuid.UUID] = None) -> int:
        """Persist what can be persisted; return how many rows were written."""
        received = self.received(batch)
        rows = self.prepare(batch)
        if not rows:
            TELEMETRY_EVENTS.labels(outcome="dropped").inc(received)
            return 0

        try:
            async with self.session_factory() as db:
                existing = await db.execute(
                    select(Video.id).where(Video.id.in_({r[0] for r in rows}))
                )
                known = set(existing.scalars().all())
                user_id = None
                if viewer_id is not None:
                    user_id = await db.scalar(select(User.id).where(User.id == viewer_id))
                    if user_id is None:
                        logger.debug("Telemetry from unknown viewer %s stored as anonymous", viewer_id)
                now = datetime.now(timezone.utc)
                events = [
                    VideoEvent(
                        user_id=user_id,
                        video_id=video_id,
                        event_type=event_type,
                        payload=payload,
                        session_id=session_id,
                        created_at=now,
                    )
                    for video_id, event_type, session_id, payload in rows
                    if video_id in known
                ]
                db.add_all(events)
                await db.commit()
        except Exception as e:
            TELEMETRY_EVENTS.labels(outcome="failed").inc(len(rows))
            logger.warning(f"Telemetry ingestion failed, {len(rows)} events lost: {e}")
            return 0

        persisted = len(events)
        TELEMETRY_EVENTS.labels(outcome="persisted").inc(persisted)
        TELEMETRY_EVENTS.labels(outcome="dropped").inc(received - persisted)
        logger.debug("Telemetry batch: received=%d persisted=%d", received, persisted)
        return persisted


telemetry_service = TelemetryService()
