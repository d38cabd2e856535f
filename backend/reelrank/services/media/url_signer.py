"""
ReelRank URL Signer — time-bounded playable URLs for stored media.

Objects live in an S3-compatible bucket (MinIO locally, R2 in production);
URLs are SigV4 presigned GETs. Applied to the final page only, immediately
before serialization. Videos without a storage key (legacy uploads) keep their
stored URL.
"""
from __future__ import annotations

import logging
from datetime import timedelta
from typing import Optional, Tuple

from minio import Minio

from reelrank.core.config import get_settings
from reelrank.models.models import Video

logger = logging.getLogger(__name__)
settings = get_settings()


class UrlSigner:

    def __init__(
        self,
        endpoint: str,
        access_key: str,
        secret_key: str,
        bucket: str,
        secure: bool = False,
        region: str = "us-east-1",
        expiry_seconds: int = 3600,
    ):
        self.client = Minio(
            endpoint,
            access_key=access_key,
            secret_key=secret_key,
            secure=secure,
            region=region,
        )
        self.bucket = bucket
        self.expiry_seconds = expiry_seconds

    async def sign(self, key: str, expires_in: Optional[int] = None) -> str:
        # Presigning is local computation once the region is pinned.
        return self.client.presigned_get_object(
            bucket_name=self.bucket,
            object_name=key,
            expires=timedelta(seconds=expires_in or self.expiry_seconds),
        )

    async def sign_video_urls(self, video: Video) -> Tuple[str, Optional[str]]:
        video_url = await self.sign(video.r2_video_key) if video.r2_video_key else video.video_url
        thumbnail = await self.sign(video.r2_thumbnail_key) if video.r2_thumbnail_key else video.thumbnail
        return video_url, thumbnail


url_signer = UrlSigner(
    endpoint=settings.minio_endpoint,
    access_key=settings.minio_access_key,
    secret_key=settings.minio_secret_key,
    bucket=settings.minio_bucket,
    secure=settings.minio_secure,
    region=settings.minio_region,
    expiry_seconds=settings.media_url_expiry_seconds,
)
