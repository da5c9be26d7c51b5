from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, declarative_base

from config.paths import get_config_dir

# Database location
DB_PATH = get_config_dir() / "settings.db"

# Create engine with WAL mode
engine = create_engine(
    f'sqlite:///{DB_PATH}',
    connect_args={'check_same_thread': False},
    echo=False,
    pool_pre_ping=True,  # Verify connections are alive before using
)

# Enable WAL mode on connection
@event.listens_for(engine, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA synchronous=NORMAL")
    cursor.execute("PRAGMA busy_timeout=5000")  # Wait up to 5s for locks instead of failing immediately
    cursor.close()

SessionLocal = sessionmaker(bind=engine)
Base = declarative_base()

def get_db():
    """Dependency for FastAPI routes"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
