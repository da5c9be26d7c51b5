from database import engine, Base, SessionLocal
from models import Setting
from constants import DEFAULT_SETTINGS, SettingKeys
from sqlalchemy.orm import Session
import logging

logger = logging.getLogger(__name__)


def seed_default_settings(db: Session) -> int:
    """
    Insert missing default settings without touching existing values.

    Returns:
        Number of settings inserted
    """
    inserted = 0
    for key, value in DEFAULT_SETTINGS.items():
        if not db.query(Setting).filter(Setting.key == key).first():
            db.add(Setting(key=key, value=value))
            inserted += 1
    db.commit()
    return inserted


def load_tool_path_settings(db: Session) -> dict:
    """Custom tool paths currently configured (empty string = default)."""
    rows = db.query(Setting).filter(Setting.key.in_(SettingKeys.TOOL_PATH_KEYS)).all()
    paths = {key: '' for key in SettingKeys.TOOL_PATH_KEYS}
    paths.update({row.key: row.value for row in rows})
    return paths


def init_database():
    """Create all tables and insert default settings"""
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        inserted = seed_default_settings(db)
        if inserted:
            logger.info(f"Seeded {inserted} default setting(s)")
        logger.info("✅ Database initialized successfully")
    finally:
        db.close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    init_database()
