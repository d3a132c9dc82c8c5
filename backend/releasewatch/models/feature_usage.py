"""Feature usage snapshot reported by an installation."""

from sqlalchemy import Boolean, Column, DateTime, Integer, String
from sqlalchemy.sql import func

from releasewatch.db import Base


class InstallationFeatures(Base):
    """Latest feature flags and configuration sizes of one installation.

    Unlike the usage aggregates this is a plain snapshot: each report replaces
    the previous row.
    """

    __tablename__ = "installation_features"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(255), unique=True, nullable=False)

    app_version = Column(String(64), nullable=False)
    app_build = Column(String(128), nullable=False)
    os_platform = Column(String(64), nullable=False)
    os_release = Column(String(128), nullable=False)
    os_arch = Column(String(32), nullable=False)

    # General feature flags
    is_bound_to_loopback = Column(Boolean, nullable=False)
    has_admin_password = Column(Boolean, nullable=False)
    has_pincode_lockout = Column(Boolean, nullable=False)
    cloud_enabled = Column(Boolean, nullable=False)
    https_enabled = Column(Boolean, nullable=False)

    # Protocol usage
    tcp_enabled = Column(Boolean, nullable=False)
    tcp_deprecated_enabled = Column(Boolean, nullable=False)
    udp_enabled = Column(Boolean, nullable=False)
    udp_deprecated_enabled = Column(Boolean, nullable=False)
    osc_enabled = Column(Boolean, nullable=False)
    osc_deprecated_enabled = Column(Boolean, nullable=False)
    rosstalk_enabled = Column(Boolean, nullable=False)
    emberplus_enabled = Column(Boolean, nullable=False)
    artnet_enabled = Column(Boolean, nullable=False)

    # Configuration size
    connection_count = Column(Integer, nullable=True)
    page_count = Column(Integer, nullable=False)
    button_count = Column(Integer, nullable=False)
    trigger_count = Column(Integer, nullable=False)
    surface_group_count = Column(Integer, nullable=True)
    custom_variable_count = Column(Integer, nullable=False)
    expression_variable_count = Column(Integer, nullable=False)
    grid_min_col = Column(Integer, nullable=False)
    grid_max_col = Column(Integer, nullable=False)
    grid_min_row = Column(Integer, nullable=False)
    grid_max_row = Column(Integer, nullable=False)
    connected_satellites = Column(Integer, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
