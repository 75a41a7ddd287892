"""Pipeline configuration from environment variables (.env supported).

Provider credentials are optional: a missing key disables that provider.
"""

import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel

from lib.contact_discovery.scoring import ScoringPolicy

load_dotenv()

THIRTY_DAYS = 30 * 24 * 60 * 60


def _int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value not in (None, "") else default


def _float(name: str, default: float) -> float:
    value = os.getenv(name)
    return float(value) if value not in (None, "") else default


def _bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value in (None, ""):
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _str(name: str) -> Optional[str]:
    return os.getenv(name) or None


class PipelineSettings(BaseModel):
    max_cost_per_prospect_cents: int = 50
    cache_ttl_seconds: int = THIRTY_DAYS
    http_timeout_seconds: float = 20.0
    fetch_max_retries: int = 2
    search_delay_seconds: float = 1.5
    worker_concurrency: int = 10
    max_jobs_per_second: float = 30.0
    pattern_fallback: bool = True
    paid_verify_min_score: int = 70

    redis_url: Optional[str] = None
    sqs_queue_url: Optional[str] = None
    aws_region: str = "eu-north-1"

    hunter_api_key: Optional[str] = None
    snov_client_id: Optional[str] = None
    snov_client_secret: Optional[str] = None
    apollo_api_key: Optional[str] = None
    google_search_api_key: Optional[str] = None
    google_search_cx: Optional[str] = None

    hunter_domain_search_cost_cents: int = 5
    hunter_finder_cost_cents: int = 1
    hunter_verify_cost_cents: int = 1
    snov_credit_cost_cents: int = 1
    apollo_credit_cost_cents: int = 1
    google_search_cost_cents: int = 5

    scoring: ScoringPolicy = ScoringPolicy()

    @property
    def snov_configured(self) -> bool:
        return bool(self.snov_client_id and self.snov_client_secret)

    @property
    def google_search_configured(self) -> bool:
        return bool(self.google_search_api_key and self.google_search_cx)

    @classmethod
    def from_env(cls) -> "PipelineSettings":
        return cls(
            max_cost_per_prospect_cents=_int("MAX_CONTACT_COST_PER_PROSPECT_CENTS", 50),
            cache_ttl_seconds=_int("CONTACT_CACHE_TTL_SECONDS", THIRTY_DAYS),
            http_timeout_seconds=_float("HTTP_TIMEOUT_SECONDS", 20.0),
            fetch_max_retries=_int("FETCH_MAX_RETRIES", 2),
            search_delay_seconds=_float("SEARCH_DELAY_SECONDS", 1.5),
            worker_concurrency=_int("WORKER_CONCURRENCY", 10),
            max_jobs_per_second=_float("MAX_JOBS_PER_SECOND", 30.0),
            pattern_fallback=_bool("PATTERN_FALLBACK", True),
            paid_verify_min_score=_int("PAID_VERIFY_MIN_SCORE", 70),
            redis_url=_str("REDIS_URL"),
            sqs_queue_url=_str("SQS_CONTACT_FINDER_QUEUE_URL"),
            aws_region=os.getenv("AWS_REGION", "eu-north-1"),
            hunter_api_key=_str("HUNTER_API_KEY"),
            snov_client_id=_str("SNOV_CLIENT_ID"),
            snov_client_secret=_str("SNOV_CLIENT_SECRET"),
            apollo_api_key=_str("APOLLO_API_KEY"),
            google_search_api_key=_str("GOOGLE_SEARCH_API_KEY"),
            google_search_cx=_str("GOOGLE_SEARCH_CX"),
            hunter_domain_search_cost_cents=_int("HUNTER_DOMAIN_SEARCH_COST_CENTS", 5),
            hunter_finder_cost_cents=_int("HUNTER_FINDER_COST_CENTS", 1),
            hunter_verify_cost_cents=_int("HUNTER_VERIFY_COST_CENTS", 1),
            snov_credit_cost_cents=_int("SNOV_CREDIT_COST_CENTS", 1),
            apollo_credit_cost_cents=_int("APOLLO_CREDIT_COST_CENTS", 1),
            google_search_cost_cents=_int("GOOGLE_SEARCH_COST_CENTS", 5),
        )
