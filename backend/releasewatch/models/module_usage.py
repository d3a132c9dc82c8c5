"""Connection module usage aggregates."""

from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, String, UniqueConstraint

from releasewatch.db import Base

MODULE_NAME_MAX_LENGTH = 128
MODULE_VERSION_MAX_LENGTH = 32

MODULE_TYPE_CONNECTION = "CONNECTION"


class KnownModule(Base):
    """Catalogue of (module, version) identities.

    The empty version string is the synthetic "all versions" identity whose
    counts are the per-report sum over every version of the module.
    """

    __tablename__ = "known_modules"

    id = Column(Integer, primary_key=True, autoincrement=True)
    module_type = Column(String(32), nullable=False)  # CONNECTION
    module_name = Column(String(MODULE_NAME_MAX_LENGTH), nullable=False)
    module_version = Column(String(MODULE_VERSION_MAX_LENGTH), nullable=False, default="")

    __table_args__ = (
        UniqueConstraint(
            "module_type", "module_name", "module_version", name="uq_known_module_type_name_version"
        ),
    )

    def __repr__(self):
        return f"<KnownModule(name={self.module_name}, version={self.module_version or '*'})>"


class ModuleDailyUsage(Base):
    """Highest instance count of a module identity in a single report, per UTC day."""

    __tablename__ = "module_daily_usage"

    id = Column(Integer, primary_key=True, autoincrement=True)
    date = Column(Date, nullable=False)  # UTC day bucket
    user_id = Column(String(255), nullable=False)
    module_id = Column(Integer, ForeignKey("known_modules.id", ondelete="CASCADE"), nullable=False)
    max_count = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("date", "user_id", "module_id", name="uq_module_daily_date_user_module"),
    )


class ModuleUserLastSeen(Base):
    """All-time high-water mark of a module identity at one installation."""

    __tablename__ = "module_user_last_seen"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(255), nullable=False)
    module_id = Column(Integer, ForeignKey("known_modules.id", ondelete="CASCADE"), nullable=False)
    max_count = Column(Integer, nullable=False, default=0)
    last_seen = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "module_id", name="uq_module_last_seen_user_module"),
    )
