# silni/infra/db/database.py
# connection to the shared store (SQLAlchemy ORM)
import logging
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from silni.infra.config import settings

DATABASE_URL = settings.DATABASE_URL

connect_args = {}
if DATABASE_URL.startswith("mysql"):
    connect_args = {'charset': 'utf8mb4'}
elif DATABASE_URL.startswith("sqlite"):
    connect_args = {'check_same_thread': False}

engine = create_engine(DATABASE_URL, connect_args=connect_args, pool_pre_ping=True)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

def get_db():
    logging.debug("Creating a new DB session")
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
