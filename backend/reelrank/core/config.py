"""
ReelRank Core Settings — video feed ranking engine.

Every ranking constant lives here so it can be tuned per deployment through
``REELRANK_*`` environment variables without touching the scoring code.
"""
from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8",
        env_prefix="REELRANK_", case_sensitive=False,
    )

    # ── App ──────────────────────────────────────────────────────────────
    app_name: str = "ReelRank"
    app_version: str = "1.0.0"
    debug: bool = False
    log_level: str = "INFO"
    api_prefix: str = "/api/v1"

    # ── PostgreSQL ───────────────────────────────────────────────────────
    db_host: str = "postgres"
    db_port: int = 5432
    db_user: str = "reelrank"
    db_password: str = "reelrank_secret"
    db_name: str = "reelrank"
    db_echo: bool = False

    @property
    def database_url(self) -> str:
        return (
            f"postgresql+asyncpg://{self.db_user}:{self.db_password}"
            f"@{self.db_host}:{self.db_port}/{self.db_name}"
        )

    # ── Feed Requests ────────────────────────────────────────────────────
    feed_default_page_size: int = 20
    feed_max_page_size: int = 50
    feed_max_exclude_ids: int = 200
    feed_candidate_multiplier: int = 5
    feed_max_candidate_pool: int = 1000
    feed_read_timeout_seconds: float = 5.0

    # ── Signals & Cold Start ─────────────────────────────────────────────
    signal_lookback_days: int = 14
    preferred_watch_pct: int = 50
    tier_warm_min_events: int = 10
    tier_established_min_events: int = 50
    cold_explore_ratio: float = 0.5
    warm_explore_ratio: float = 0.3

    # ── Diversity ────────────────────────────────────────────────────────
    personalized_creator_cap: int = 2
    trending_creator_cap: int = 3

    # ── Personalized Scoring Weights ─────────────────────────────────────
    recency_window_days: float = 10.0
    engagement_like_weight: float = 2.0
    engagement_view_weight: float = 1.0
    engagement_comment_weight: float = 3.0
    engagement_log_scale: float = 3.0
    creator_boost: float = 5.0
    follow_boost: float = 8.0
    like_boost: float = 3.0
    skip_penalty: float = 8.0
    new_creator_boost: float = 3.0
    new_creator_max_views: int = 100
    exploration_boost: float = 2.0
    local_trend_min_engagement: int = 100
    local_trend_max_age_hours: float = 48.0

    # ── Trending ─────────────────────────────────────────────────────────
    trending_window_days: int = 7
    trending_min_views: int = 10
    trending_share_weight: float = 50.0
    trending_completion_weight: float = 40.0
    trending_decay_offset_hours: float = 2.0
    trending_decay_exponent: float = 1.5

    # ── Telemetry ────────────────────────────────────────────────────────
    telemetry_max_batch: int = 100

    # ── MinIO / S3 (media storage, R2-compatible) ────────────────────────
    minio_endpoint: str = "minio:9000"
    minio_access_key: str = "reelrank_minio"
    minio_secret_key: str = "reelrank_minio_secret"
    minio_bucket: str = "reelrank-media"
    minio_secure: bool = False
    minio_region: str = "us-east-1"  # set explicitly: presigning then needs no bucket lookup
    media_url_expiry_seconds: int = 3600


@lru_cache()
def get_settings() -> Settings:
    return Settings()
