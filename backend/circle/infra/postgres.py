import logging

from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from circle.config import DATABASE_URL
from circle.models.base import Base

logger = logging.getLogger(__name__)

# =========================
# ENGINE CONFIGURATION
# =========================


def build_engine(url: str = DATABASE_URL):
    """
    PostgreSQL gets a real pool; sqlite (tests, local runs) shares a single
    connection so an in-memory database survives across sessions.
    """
    if url.startswith("sqlite"):
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            echo=False,
        )

    return create_engine(
        url,
        pool_pre_ping=True,  # Check connections before using them
        pool_size=5,         # Maintain 5 connections in the pool
        max_overflow=10,     # Allow 10 extra connections if needed
        pool_recycle=3600,   # Recycle connections every hour
        echo=False           # Set True to see SQL statements (debugging)
    )


engine = build_engine()

# =========================
# SESSION CONFIGURATION
# =========================

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine
)

# =========================
# DATABASE FUNCTIONS
# =========================

def get_db():
    """
    FastAPI dependency to provide a DB session to routes.
    Usage:
        def my_route(db: Session = Depends(get_db)):
            ...
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """
    Create all tables based on registered models.
    """
    # Import models here to register them with Base
    from circle.models import conversation, message, user  # noqa: F401

    Base.metadata.create_all(bind=engine)
    logger.info("✅ Database tables created")


def check_connection() -> bool:
    """
    Ping the database.
    """
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        logger.info("✅ Database connection successful")
        return True
    except Exception as e:
        logger.error("❌ Database connection failed: %s", e)
        return False
