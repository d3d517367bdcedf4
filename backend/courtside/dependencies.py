from fastapi import Depends
from sqlalchemy.engine import Engine

from courtside.config import Settings, get_settings
from courtside.database import get_engine
from courtside.services.competition_service import CompetitionService
from courtside.services.notifications import NotificationDispatcher, get_dispatcher
from courtside.services.transaction import TransactionCoordinator


def get_coordinator(
    engine: Engine = Depends(get_engine),
    settings: Settings = Depends(get_settings),
) -> TransactionCoordinator:
    return TransactionCoordinator.for_engine(engine, max_attempts=settings.transaction_max_attempts)


def get_competition_service(
    coordinator: TransactionCoordinator = Depends(get_coordinator),
    settings: Settings = Depends(get_settings),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> CompetitionService:
    return CompetitionService(coordinator, settings, dispatcher)
