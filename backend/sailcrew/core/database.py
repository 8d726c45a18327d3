# backend/sailcrew/core/database.py
"""
Moteur SQLAlchemy async + session factory.

get_db            : dépendance FastAPI (session liée à la requête)
AsyncSessionLocal : pour les tâches de fond (pipeline d'évaluation, batch
                    de matching) : chaque tâche ouvre SA propre session,
                    jamais celle de la requête HTTP déjà fermée.
"""
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import declarative_base

from sailcrew.core.config import settings

engine = create_async_engine(settings.DATABASE_URL, pool_pre_ping=True, echo=settings.DEBUG)

AsyncSessionLocal = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

Base = declarative_base()


async def get_db() -> AsyncIterator[AsyncSession]:
    async with AsyncSessionLocal() as session:
        yield session


def PgEnum(enum_cls):
    """Type ENUM Postgres qui stocke la VALEUR (ex : 'Pending approval'), pas le nom du membre."""
    return SAEnum(
        enum_cls,
        name=enum_cls.__name__.lower(),
        values_callable=lambda members: [m.value for m in members],
    )
