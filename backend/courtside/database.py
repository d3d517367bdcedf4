from pathlib import Path

from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, create_engine

from courtside.config import get_settings

DATABASE_URL = get_settings().database_url

_is_sqlite = DATABASE_URL.startswith("sqlite")
_connect_args = {"check_same_thread": False} if _is_sqlite else {}

if _is_sqlite and ":memory:" not in DATABASE_URL:
    db_path = DATABASE_URL.replace("sqlite:///", "", 1)
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)

engine: Engine = create_engine(
    DATABASE_URL,
    echo=get_settings().sql_echo,
    connect_args=_connect_args,
)


def get_engine() -> Engine:
    """Engine used by the transaction coordinator (overridable in tests)"""
    return engine


def init_db() -> None:
    """Initialize database - create all tables"""
    # Import all models to ensure they're registered with SQLModel metadata
    from courtside.models.competition import Competition  # noqa: F401
    from courtside.models.match import Match  # noqa: F401
    from courtside.models.participant import Participant  # noqa: F401
    from courtside.models.rating_profile import RatingHistory, RatingProfile  # noqa: F401

    SQLModel.metadata.create_all(engine)
