"""
ReelRank API — Telemetry ingestion.
"""
from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends

from reelrank.api.deps import get_telemetry_service, get_viewer_id
from reelrank.schemas.schemas import TelemetryBatch, TelemetryIngestResponse
from reelrank.services.telemetry.telemetry_service import TelemetryService

router = APIRouter(prefix="/videos", tags=["Telemetry"])


@router.post("/events", response_model=TelemetryIngestResponse)
async def ingest_events(
    batch: TelemetryBatch,
    viewer_id: Optional[uuid.UUID] = Depends(get_viewer_id),
    service: TelemetryService = Depends(get_telemetry_service),
):
    """Accept a batch of feed telemetry. Always succeeds; see ``persisted`` for what was kept."""
    persisted = await service.ingest(batch, viewer_id)
    return TelemetryIngestResponse(
        received=service.received(batch),
        persisted=persisted,
    )
