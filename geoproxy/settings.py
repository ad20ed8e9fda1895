import os
from dataclasses import dataclass
from typing import Optional, Tuple


DEFAULT_CACHE_TTL_SECONDS = 3600
DEFAULT_UPSTREAM_TIMEOUT_SECONDS = 8.0


@dataclass(frozen=True)
class Settings:
    cors_origins: Tuple[str, ...]

    upstream_flood: str
    upstream_water: Optional[str]

    cache_ttl_seconds: int
    upstream_timeout_seconds: float

    redis_url: str
    log_level: str

    @classmethod
    def from_env(cls) -> "Settings":
        def _int(name: str, default: int) -> int:
            raw = os.getenv(name, "").strip()
            if not raw:
                return default
            try:
                return int(raw)
            except ValueError:
                return default

        def _float(name: str, default: float) -> float:
            raw = os.getenv(name, "").strip()
            try:
                return float(raw) if raw else default
            except ValueError:
                return default

        # "https://xxx.vercel.app, http://localhost:3000" or "*"
        cors_origins = tuple(
            o.strip()
            for o in os.getenv("CORS_ORIGIN", "*").split(",")
            if o.strip()
        )

        # UPSTREAM is the single-endpoint name from earlier deployments.
        upstream_flood = (os.getenv("UPSTREAM_FLOOD", "").strip() or os.getenv("UPSTREAM", "").strip())
        upstream_water = os.getenv("UPSTREAM_WATER", "").strip() or None

        return cls(
            cors_origins=cors_origins,
            upstream_flood=upstream_flood,
            upstream_water=upstream_water,
            cache_ttl_seconds=_int("CACHE_TTL", DEFAULT_CACHE_TTL_SECONDS),
            upstream_timeout_seconds=_float("UPSTREAM_TIMEOUT_SECONDS", DEFAULT_UPSTREAM_TIMEOUT_SECONDS),
            redis_url=os.getenv("REDIS_URL", "").strip(),
            log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO",
        )

    def validate(self) -> None:
        if not self.upstream_flood:
            raise RuntimeError("No upstream configured: set UPSTREAM_FLOOD (or the legacy UPSTREAM)")


S = Settings.from_env()


def get_settings() -> Settings:
    return S
