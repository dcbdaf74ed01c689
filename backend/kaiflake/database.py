from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from kaiflake.config import get_settings

settings = get_settings()

# pool_pre_ping: verify connections before using them
engine = create_engine(
    settings.database_url,
    echo=settings.debug,
    future=True,
    pool_pre_ping=True,
)
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
