"""Runtime configuration using pydantic-settings.

Every tunable can be overridden with an environment variable named
``RECS_<FIELD>`` (upper-case), e.g. ``RECS_F1_LIMIT=100``.  Scoring weights
use ``RECS_WEIGHT_<FIELD>``.  A ``.env`` file is loaded by the package
``__init__`` before this module reads anything.
"""

from functools import lru_cache
from typing import Literal

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ScoringWeights(BaseSettings):
    """Weights for both scoring schemes."""

    model_config = SettingsConfigDict(env_prefix="RECS_WEIGHT_", env_ignore_empty=True)

    # additive scheme
    social_graph: float = 40.0
    community: float = 25.0
    interest: float = 20.0
    relationship_status: float = 10.0
    popularity: float = 10.0

    # semantic blend
    semantic_similarity: float = 0.7
    semantic_interest: float = 0.3


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="RECS_", env_ignore_empty=True, populate_by_name=True
    )

    # ── Elasticsearch ─────────────────────────────────────────────────────
    # Connection settings also accept the unprefixed names used by deployments.
    es_url: str = Field(
        "http://localhost:9200", validation_alias=AliasChoices("RECS_ES_URL", "ES_URL")
    )
    es_api_key: str | None = Field(
        None, validation_alias=AliasChoices("RECS_ES_API_KEY", "ES_API_KEY")
    )

    # ── Candidate retrieval ───────────────────────────────────────────────
    f1_limit: int = Field(50, ge=1)
    f1_sample: int = Field(5, ge=1)
    f2_limit: int = Field(10, ge=1)
    f2_cap: int = Field(30, ge=1)
    profile_batch_size: int = Field(10, ge=1, le=10)
    any_of_values: int = Field(10, ge=1, le=10)
    shared_tag_limit: int = 20
    shared_community_limit: int = 20
    trending_limit: int = 20
    semantic_pool_size: int = 100
    semantic_limit: int = 20
    semantic_enabled: bool = True

    # ── Scoring / ranking ─────────────────────────────────────────────────
    scoring_scheme: Literal["additive", "semantic"] = "additive"
    weights: ScoringWeights = Field(default_factory=ScoringWeights)
    score_floor: float | None = None
    batch_top_n: int = Field(20, ge=1)
    interactive_top_n: int = Field(5, ge=1)

    # ── Batch job ─────────────────────────────────────────────────────────
    batch_schedule: str = "0 0 * * *"
    batch_timezone: str = "UTC"
    batch_user_limit: int = Field(200, ge=1)
    small_userbase_threshold: int = 20
    small_userbase_bonus: float = 1.0
    write_batch_size: int = Field(500, ge=1)

    # ── Follow graph ──────────────────────────────────────────────────────
    followers_page_size: int = Field(20, ge=1)
    follow_rate_limit: int = Field(2, ge=1)
    follow_rate_window: float = Field(1.0, gt=0)
    toggle_max_retries: int = Field(5, ge=1)
    toggle_retry_backoff: float = 0.05
    lock_ttl_seconds: float = 30.0

    # ── Embedding provider ────────────────────────────────────────────────
    embedding_url: str | None = Field(
        None, validation_alias=AliasChoices("RECS_EMBEDDING_URL", "EMBEDDING_URL")
    )
    embedding_timeout: float = 5.0

    @property
    def effective_score_floor(self) -> float | None:
        """Configured floor, or the scheme default (0.3 for semantic)."""
        if self.score_floor is not None:
            return self.score_floor
        if self.scoring_scheme == "semantic":
            return 0.3
        return None


@lru_cache
def get_settings() -> Settings:
    return Settings()
