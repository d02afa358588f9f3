import json

from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# Resolve backend root (…/backend/) regardless of current working directory
BASE_DIR = Path(__file__).resolve().parents[2]
ENV_FILE = BASE_DIR / ".env"

class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    APP_NAME: str = "Research Swarm Coordinator"
    ENV: str = "dev"
    LOG_LEVEL: str = "INFO"
    # One origin or several, comma separated.
    # Example: "http://localhost:5173,https://example.com"
    BACKEND_CORS_ORIGINS: list[str] = ["http://localhost:5173"]

    # PostgreSQL in production; SQLite works for local runs and tests.
    DATABASE_URL: str = "sqlite:///./research_swarm.db"
    # Create missing tables on startup (deployments using alembic can turn this off).
    DB_AUTO_CREATE: bool = True

    # JSON file with the missions (and their tasks) seeded at startup.
    # Missions that already exist in the store are never re-seeded.
    MISSIONS_SEED_PATH: str | None = None

    # ===== Admin =====
    # Admin endpoints (stale release, QC cycle reset) require X-Admin-Key.
    # Empty key disables them entirely.
    ADMIN_KEY: str = ""

    # ===== Assignment policy =====
    # Fraction of assignments (past warm-up) that try a QC review first.
    QC_RATE: float = 0.30
    # No QC reviews are handed out until the mission has this many findings.
    QC_WARMUP_FINDINGS: int = 5
    # Task budget when registration does not send max_tasks (0 = unlimited).
    DEFAULT_MAX_TASKS: int = 5
    # Re-selection attempts after losing an atomic claim race.
    CLAIM_MAX_RETRIES: int = 25

    # ===== Stale-agent reclamation =====
    # Agents researching open-ended questions can be silent for a long time,
    # so reclamation is manual by default.
    HEARTBEAT_TIMEOUT_SEC: int = 3600
    AUTO_RECLAIM_ENABLED: bool = False
    AUTO_RECLAIM_INTERVAL_SEC: int = 300
    STALE_RELEASE_DEFAULT_HOURS: int = 2

    # ===== Redis (event stream + RQ) =====
    EVENT_BUS_ENABLED: bool = False
    ASYNC_QUEUE_ENABLED: bool = False
    REDIS_URL: str = "redis://localhost:6379/0"
    RQ_DEFAULT_TIMEOUT_SEC: int = 1800

    @field_validator("QC_RATE")
    @classmethod
    def _check_qc_rate(cls, v: float) -> float:
        if not 0.0 <= float(v) <= 1.0:
            raise ValueError("QC_RATE must be within [0, 1]")
        return float(v)

    @field_validator("BACKEND_CORS_ORIGINS", mode="before")
    @classmethod
    def _parse_cors_origins(cls, v):
        if v is None or v == "":
            return []

        if isinstance(v, list):
            return v

        # JSON list first, then comma separated
        if isinstance(v, str):
            s = v.strip()
            if s.startswith("["):
                try:
                    return json.loads(s)
                except ValueError:
                    pass
            return [item.strip() for item in s.split(",") if item.strip()]

        return v


settings = Settings()
