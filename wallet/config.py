"""
Runtime configuration for the wallet service.

Values come from the process environment; a local ``.env`` file is loaded
first when present.
"""
import logging
import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

DEFAULT_LEDGER_URL = "https://beam-coin-ledger.vercel.app"


def _split_origins(raw: str) -> list[str]:
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


@dataclass
class Settings:
    mongodb_uri: Optional[str] = None
    mongodb_db: str = "readyaimgo"
    mongodb_timeout_ms: int = 5000
    beam_ledger_url: str = DEFAULT_LEDGER_URL
    beam_ledger_admin_url: Optional[str] = None
    beam_ledger_token: Optional[str] = None
    beam_ledger_timeout: float = 10.0
    log_level: str = "INFO"
    cors_origins: list[str] = field(default_factory=lambda: ["*"])

    @classmethod
    def from_env(cls) -> "Settings":
        ledger_url = os.getenv("BEAM_LEDGER_URL", DEFAULT_LEDGER_URL)
        return cls(
            mongodb_uri=os.getenv("MONGODB_URI") or None,
            mongodb_db=os.getenv("MONGODB_DB", "readyaimgo"),
            mongodb_timeout_ms=int(os.getenv("MONGODB_TIMEOUT", "5000")),
            beam_ledger_url=ledger_url,
            beam_ledger_admin_url=os.getenv("BEAM_LEDGER_ADMIN_URL") or ledger_url,
            beam_ledger_token=os.getenv("BEAM_LEDGER_TOKEN") or None,
            beam_ledger_timeout=float(os.getenv("BEAM_LEDGER_TIMEOUT", "10")),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            cors_origins=_split_origins(os.getenv("CORS_ORIGINS", "*")),
        )


def setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
