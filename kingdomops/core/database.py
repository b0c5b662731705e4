from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from kingdomops.core.config import settings

engine = create_engine(settings.DATABASE_URL, echo=settings.DATABASE_ECHO, future=True, pool_pre_ping=True)
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)

def init_db(bind=None):
    """Create tables if they don't exist. Production deployments run migrations instead."""
    from kingdomops.models.orm import Base
    Base.metadata.create_all(bind=bind or engine)

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
