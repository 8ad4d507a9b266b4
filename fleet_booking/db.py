import os
import uuid
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from fleet_booking.config import SQLALCHEMY_DATABASE_URL


connect_args = {"check_same_thread": False} if SQLALCHEMY_DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args=connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def new_id():
    return str(uuid.uuid4())


def import_models():
    """Import every model module so their tables register on ``Base.metadata``."""
    from fleet_booking.models import booking, vehicle, user, notification, message, key_issue  # noqa: F401


def init_database():
    if SQLALCHEMY_DATABASE_URL.startswith("sqlite:///./data") and not os.path.exists("./data"):
        os.makedirs("./data")
    import_models()
    Base.metadata.create_all(bind=engine)


def get_db():
    """Provide a database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
