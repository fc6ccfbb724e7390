# bantconfirm/database.py
# ------------------------------------------------------------
# SQLAlchemy setup for the marketplace store
# - PostgreSQL when DB_HOST points at a server, SQLite for local runs
# - Table creation happens in the FastAPI startup hook
# ------------------------------------------------------------
from sqlalchemy import create_engine
from sqlalchemy.engine import URL
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool
from decouple import config

DB_HOST = config("DB_HOST", default="localhost")
DB_PORT = int(config("DB_PORT", default=5432))
DB_USER = config("DB_USER", default="postgres")
DB_PASSWORD = config("DB_PASSWORD", default="")
DB_NAME = config("DB_NAME", default="bantconfirm")
SQLITE_URL = config("SQLITE_URL", default="sqlite:///./bantconfirm.db")


def database_url():
    if DB_HOST == "localhost":
        return SQLITE_URL
    return URL.create(
        drivername="postgresql+psycopg2",
        username=DB_USER,
        password=DB_PASSWORD,
        host=DB_HOST,
        port=DB_PORT,
        database=DB_NAME,
    )


def make_engine(url=None, **kwargs):
    url = url or database_url()
    if str(url).startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
        if str(url) in ("sqlite://", "sqlite:///:memory:"):
            # in-memory databases live on one shared connection
            kwargs.setdefault("poolclass", StaticPool)
    return create_engine(url, **kwargs)


engine = make_engine()
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
Base = declarative_base()


# Dependency
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
