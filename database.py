# database.py
from sqlmodel import create_engine, SQLModel, Session
import config

connect_args = {"check_same_thread": False} if config.DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(config.DATABASE_URL, echo=False, connect_args=connect_args)


def create_db_and_tables():
    # Tables are only created when missing; existing rows are untouched
    import models  # noqa: F401
    SQLModel.metadata.create_all(engine)


def get_session():
    """FastAPI dependency yielding a Credential Store session"""
    with Session(engine) as session:
        yield session
