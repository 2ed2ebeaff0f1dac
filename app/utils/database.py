from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

from app.core.config import DATABASE_URL

# ---------------------
# SQLAlchemy engine / session / Base
# ---------------------
engine = create_engine(
    DATABASE_URL,
    echo=False,
    pool_pre_ping=True,  # drops dead connections automatically
    future=True,
)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()


def get_db():
    """One session per request; anything not committed is rolled back."""
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
