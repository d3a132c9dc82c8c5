"""Installation model for tracking reporting client installations."""

from sqlalchemy import Column, DateTime, Integer, String, UniqueConstraint
from sqlalchemy.sql import func

from releasewatch.db import Base


class Installation(Base):
    """Last known app and OS details of a client installation."""

    __tablename__ = "installations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(255), nullable=False, index=True)  # Installation identifier
    app_name = Column(String(64), nullable=False)  # e.g., "companion"
    app_version = Column(String(64), nullable=False)  # e.g., "3.3.1"
    app_build = Column(String(128), nullable=False)  # e.g., "3.3.1+7001-stable-ee7c3daa"

    os_platform = Column(String(64), nullable=False)  # linux, darwin, win32
    os_arch = Column(String(32), nullable=False)  # x64, arm64
    os_release = Column(String(128), nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        UniqueConstraint("user_id", "app_name", name="uq_installation_user_app"),
    )

    def __repr__(self):
        return f"<Installation(user_id={self.user_id}, app={self.app_name} {self.app_version})>"
