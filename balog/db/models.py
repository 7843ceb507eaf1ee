from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, DateTime, Index
from balog.db.database import Base

UNKNOWN_LOCATION = "Unknown"


#the BanActionLog model is one ban action reported by fail2ban.
class BanActionLog(Base):
    """ban action log entry."""
    __tablename__ = "ban_action_logs"

    id = Column(Integer, primary_key=True, index=True)
    protocol = Column(String(64), nullable=False, index=True)    # "sshd", "postfix"
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc), nullable=False, index=True)
    ip = Column(String(64), nullable=False, index=True)

    location = Column(String(128), nullable=True)                # country name, NULL until resolved

    __table_args__ = (
        Index("idx_ban_action_logs_protocol_created_at", "protocol", "created_at"),
    )

    def __repr__(self):
        return f"<BanActionLog {self.id} {self.protocol} {self.ip}>"


#the Location model caches the resolved country of an ip.
class Location(Base):
    """cached geolocation of an ip."""
    __tablename__ = "locations"

    id = Column(Integer, primary_key=True, index=True)
    ip = Column(String(64), nullable=False, unique=True)
    country_name = Column(String(128), nullable=False, index=True)  # UNKNOWN_LOCATION if lookup failed

    @property
    def is_cached(self) -> bool:
        """False for the not-cached sentinel returned by a lookup miss."""
        return bool(self.id)

    def __repr__(self):
        return f"<Location {self.ip} {self.country_name}>"
