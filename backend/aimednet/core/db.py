from collections.abc import Generator

from sqlmodel import Session, SQLModel, create_engine

from aimednet.core.config import settings

engine = create_engine(
    str(settings.DATABASE_URI),
    connect_args={"check_same_thread": False}
    if settings.DATABASE_URI.startswith("sqlite")
    else {},
)


def create_db_and_tables() -> None:
    """Create database tables."""
    # Register table models on the metadata before create_all
    import aimednet.models  # noqa: F401

    SQLModel.metadata.create_all(engine)


def get_db_session() -> Generator[Session, None, None]:
    """Get database session."""
    with Session(engine) as session:
        yield session


def init_db() -> None:
    """Initialize database with tables."""
    create_db_and_tables()
