"""
Runtime configuration.

Everything tunable about competitions lives here: K-factor schedules, league
points and transaction retry limits. Values come from the environment (a
``.env`` file is honoured) and are resolved once into an immutable
``Settings`` object that services receive explicitly.
"""
import logging
import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import List, Optional, Tuple

from dotenv import load_dotenv

load_dotenv()

# (matches_played upper bound, K). None as the bound means "everyone else".
KTier = Tuple[Optional[int], int]

DEFAULT_CLUB_K_TIERS = "30:40,100:20,*:10"
DEFAULT_GLOBAL_K_TIERS = "10:32,*:16"


def parse_k_tiers(raw: str) -> List[KTier]:
    """
    Parse a K-factor schedule like ``"30:40,100:20,*:10"``.

    Each entry is ``below:K``: players with fewer than ``below`` matches get
    ``K``. ``*`` marks the catch-all tier and must come last.
    """
    tiers: List[KTier] = []
    for chunk in raw.split(","):
        chunk = chunk.strip()
        if not chunk:
            continue
        bound_raw, sep, k_raw = chunk.partition(":")
        if not sep:
            raise ValueError(f"Invalid K tier '{chunk}': expected 'below:K'")
        bound = None if bound_raw.strip() == "*" else int(bound_raw)
        tiers.append((bound, int(k_raw)))

    if not tiers:
        raise ValueError("K tier schedule is empty")
    if tiers[-1][0] is not None:
        raise ValueError("K tier schedule must end with a '*' catch-all tier")
    if any(bound is None for bound, _ in tiers[:-1]):
        raise ValueError("Only the last K tier may use '*'")

    bounds = [bound for bound, _ in tiers[:-1]]
    if bounds != sorted(bounds):
        raise ValueError("K tier bounds must be ascending")
    return tiers


@dataclass(frozen=True)
class Settings:
    database_url: str = "sqlite:///./courtside.db"
    sql_echo: bool = False
    log_level: str = "INFO"
    default_rating: int = 1200
    club_k_tiers: List[KTier] = field(default_factory=lambda: parse_k_tiers(DEFAULT_CLUB_K_TIERS))
    global_k_tiers: List[KTier] = field(default_factory=lambda: parse_k_tiers(DEFAULT_GLOBAL_K_TIERS))
    points_for_win: int = 3
    points_for_loss: int = 0
    transaction_max_attempts: int = 5
    cors_origins: List[str] = field(default_factory=list)


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


@lru_cache
def get_settings() -> Settings:
    """Build settings from the environment (cached)."""
    extra_origins = os.getenv("CORS_ORIGINS", "")
    return Settings(
        database_url=os.getenv("DATABASE_URL", "sqlite:///./courtside.db"),
        sql_echo=_env_bool("SQL_ECHO"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        default_rating=int(os.getenv("DEFAULT_RATING", "1200")),
        club_k_tiers=parse_k_tiers(os.getenv("CLUB_K_TIERS", DEFAULT_CLUB_K_TIERS)),
        global_k_tiers=parse_k_tiers(os.getenv("GLOBAL_K_TIERS", DEFAULT_GLOBAL_K_TIERS)),
        points_for_win=int(os.getenv("POINTS_FOR_WIN", "3")),
        points_for_loss=int(os.getenv("POINTS_FOR_LOSS", "0")),
        transaction_max_attempts=int(os.getenv("TRANSACTION_MAX_ATTEMPTS", "5")),
        cors_origins=[o.strip() for o in extra_origins.split(",") if o.strip()],
    )


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
