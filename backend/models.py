from sqlalchemy import Column, String, Text, DateTime
from datetime import datetime, timezone
from database import Base


class Setting(Base):
    """
    Persistent user setting (key/value).

    Keys are listed in constants.SettingKeys. Booleans are stored as the
    strings 'true'/'false'; an empty tool path means "use the default".
    """
    __tablename__ = 'settings'

    key = Column(String, primary_key=True)
    value = Column(Text, nullable=False, default='')
    updated_at = Column(DateTime, default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    def as_bool(self) -> bool:
        return (self.value or '').strip().lower() == 'true'

    def __repr__(self) -> str:
        return f"<Setting {self.key}={self.value!r}>"
