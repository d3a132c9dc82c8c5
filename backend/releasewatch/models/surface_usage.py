"""Surface usage aggregates (physical control surfaces per installation)."""

from sqlalchemy import Column, Date, DateTime, Index, Integer, String, UniqueConstraint

from releasewatch.db import Base

SURFACE_SERIAL_MAX_LENGTH = 64
SURFACE_MODULE_MAX_LENGTH = 128
SURFACE_DESCRIPTION_MAX_LENGTH = 128


class SurfaceDailyUsage(Base):
    """Highest number of surfaces of one module seen in a single report, per UTC day."""

    __tablename__ = "surface_daily_usage"

    id = Column(Integer, primary_key=True, autoincrement=True)
    date = Column(Date, nullable=False)  # UTC day bucket
    user_id = Column(String(255), nullable=False)
    module_name = Column(String(SURFACE_MODULE_MAX_LENGTH), nullable=False)
    max_count = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("date", "user_id", "module_name", name="uq_surface_daily_date_user_module"),
        Index("idx_surface_daily_user_date", "user_id", "date"),
    )


class SurfaceUserLastSeen(Base):
    """All-time record of one physical surface at one installation."""

    __tablename__ = "surface_user_last_seen"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(255), nullable=False)
    module_name = Column(String(SURFACE_MODULE_MAX_LENGTH), nullable=False)
    surface_serial = Column(String(SURFACE_SERIAL_MAX_LENGTH), nullable=False)
    surface_description = Column(String(SURFACE_DESCRIPTION_MAX_LENGTH), nullable=False)
    max_count = Column(Integer, nullable=False, default=0)  # Highest per-module count reported alongside it
    last_seen = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "user_id", "module_name", "surface_serial", name="uq_surface_last_seen_user_module_serial"
        ),
        Index("idx_surface_last_seen_user_serial", "user_id", "surface_serial"),
    )
