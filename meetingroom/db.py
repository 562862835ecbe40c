import os
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from meetingroom.config import DATABASE_URL


def _connect_args(url):
    if url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}


engine = create_engine(DATABASE_URL, connect_args=_connect_args(DATABASE_URL))
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def init_database():
    if DATABASE_URL.startswith("sqlite:///./") and not os.path.exists("./data"):
        os.makedirs("./data")
    # Register every table on the metadata before creating them
    import meetingroom.models  # noqa: F401

    Base.metadata.create_all(bind=engine)


def get_db():
    """Provide a database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
