# api/deps.py
from typing import Optional

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from core.db import db_enabled, get_db_session
from services.journey_db_service import JourneyDBService
from services.journey_service import journey_service


async def get_journey_service(session: Optional[AsyncSession] = Depends(get_db_session)):
    """DB-backed service when USE_DB is on and a session exists, else the in-memory singleton."""
    use_db = settings.USE_DB and session is not None and db_enabled()
    if use_db:
        return JourneyDBService(session)
    return journey_service
