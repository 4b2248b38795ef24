from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from .config import get_settings

# DATABASE_URL env var; sqlite file in the working directory for dev
DATABASE_URL = get_settings().database_url

# sqlite connections are shared with the threadpool and the background tasks
connect_args = {"check_same_thread": False} if DATABASE_URL.startswith('sqlite') else {}

engine = create_engine(DATABASE_URL, connect_args=connect_args, pool_pre_ping=True)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_models():
    """Import every model module so Base.metadata knows all tables, then create them."""
    from . import models, cause_models, donation_models, product_models, order_models, quote_models  # noqa: F401
    Base.metadata.create_all(bind=engine)
