"""
Database connection and session management.
"""
from fastapi import Depends
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
from .config import settings

class Base(DeclarativeBase):
    """Base class for all database models."""
    pass

engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    pool_pre_ping=True,
    pool_size=5,
    max_overflow=10,
)

async_session = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False
)

def get_session_factory() -> async_sessionmaker:
    """Dependency for the session factory (discovery pipelines open their own sessions)."""
    return async_session

async def get_session(factory: async_sessionmaker = Depends(get_session_factory)):
    """Dependency for getting database sessions."""
    async with factory() as session:
        yield session
