"""Database base configuration and session management."""

from typing import Any

from sqlalchemy import MetaData, create_engine, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker

from remitrecon.exceptions import DatabaseConnectionError

# Naming convention for constraints
convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

metadata = MetaData(naming_convention=convention)


class Base(DeclarativeBase):
    """Base class for all database models."""

    metadata = metadata

    def to_dict(self) -> dict[str, Any]:
        """Convert model to dictionary."""
        return {c.name: getattr(self, c.name) for c in self.__table__.columns}


class IntPKMixin:
    """Integer autoincrement primary key shared by every table."""

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)


# Database engine and session (configured at runtime)
engine = None
SessionLocal = None


def init_db(database_url: str = "sqlite:///./remitrecon.db", create_tables: bool = True) -> None:
    """Initialize database engine and session factory.

    Args:
        database_url: SQLAlchemy connection URL
        create_tables: Create missing tables (development and tests; production
            schemas are owned by the upstream loader)
    """
    global engine, SessionLocal

    engine = create_engine(
        database_url,
        echo=False,  # Set to True for SQL debug logging
        pool_pre_ping=True,  # Verify connections before using
    )

    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    if create_tables:
        Base.metadata.create_all(bind=engine)


def get_session() -> Session:
    """Create a new session from the configured factory."""
    if SessionLocal is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")
    return SessionLocal()


def check_connection() -> None:
    """Open a connection and run a trivial query.

    Raises:
        DatabaseConnectionError: If the database cannot be reached
    """
    if engine is None:
        raise DatabaseConnectionError("Database not initialized. Call init_db() first.")

    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        raise DatabaseConnectionError(
            "Cannot establish a database session",
            context={"dialect": engine.dialect.name},
            original_error=e,
        ) from e


def dispose_db() -> None:
    """Close all pooled connections and forget the engine."""
    global engine, SessionLocal

    if engine is not None:
        engine.dispose()
    engine = None
    SessionLocal = None
