from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from salary_app.core.config import settings

# Support both PostgreSQL and SQLite via centralized settings
DATABASE_URL = settings.database_url

if DATABASE_URL.startswith("postgresql"):
    engine = create_engine(DATABASE_URL)
else:
    # SQLite configuration for local development/testing
    engine = create_engine(
        DATABASE_URL, connect_args={"check_same_thread": False}
    )

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

def get_db():
    """
    Session Provider: Provides a database session per request.
    The engine only reads; writes belong to the authoring workflow.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

def init_db():
    """
    Registers all models and initializes the database schema.
    This should be called during the application startup lifespan.
    """
    from salary_app.models import pay_component, salary_structure  # noqa: F401
    Base.metadata.create_all(bind=engine)
