"""Feature usage snapshot writer."""

import logging
from datetime import datetime, timezone
from typing import Any, Dict

from sqlalchemy.ext.asyncio import AsyncSession

from releasewatch.exceptions import MalformedInputError
from releasewatch.models.feature_usage import InstallationFeatures
from releasewatch.schemas.update import AppInfo, OsInfo
from releasewatch.schemas.usage import FeatureUsage
from releasewatch.services.usage_store import MergeResult, UsageStore, upsert_replace
from releasewatch.services.version_advisor import TRACKED_APP_NAME
from releasewatch.utils.coercion import clamp
from releasewatch.utils.security import sanitize_log_message

logger = logging.getLogger(__name__)


def feature_row(app: AppInfo, os_info: OsInfo, features: FeatureUsage) -> Dict[str, Any]:
    """Map a reported feature object to installation_features columns."""
    return {
        "app_version": clamp(app.version, 64),
        "app_build": clamp(app.build, 128),
        "os_platform": clamp(os_info.platform, 64),
        "os_release": clamp(os_info.release, 128),
        "os_arch": clamp(os_info.arch, 32),
        # General feature flags
        "is_bound_to_loopback": features.isBoundToLoopback,
        "has_admin_password": features.hasAdminPassword,
        "has_pincode_lockout": features.hasPincodeLockout,
        "cloud_enabled": features.cloudEnabled,
        "https_enabled": features.httpsEnabled,
        # Protocol usage
        "tcp_enabled": features.tcpEnabled,
        "tcp_deprecated_enabled": features.tcpDeprecatedEnabled,
        "udp_enabled": features.udpEnabled,
        "udp_deprecated_enabled": features.udpDeprecatedEnabled,
        "osc_enabled": features.oscEnabled,
        "osc_deprecated_enabled": features.oscDeprecatedEnabled,
        "rosstalk_enabled": features.rossTalkEnabled,
        "emberplus_enabled": features.emberPlusEnabled,
        "artnet_enabled": features.artnetEnabled,
        # Configuration size
        "connection_count": features.connectionCount,
        "page_count": features.pageCount,
        "button_count": features.buttonCount,
        "trigger_count": features.triggerCount,
        "surface_group_count": features.surfaceGroupCount,
        "custom_variable_count": features.customVariableCount,
        "expression_variable_count": features.expressionVariableCount,
        "grid_min_col": features.gridSize.minCol,
        "grid_max_col": features.gridSize.maxCol,
        "grid_min_row": features.gridSize.minRow,
        "grid_max_row": features.gridSize.maxRow,
        "connected_satellites": features.connectedSatellites,
    }


class FeatureUsageWriter:
    """Stores the latest feature snapshot of an installation."""

    def __init__(self, store: UsageStore) -> None:
        self.store = store

    async def write(
        self, subject_id: str, app: AppInfo, os_info: OsInfo, features: FeatureUsage
    ) -> MergeResult:
        """Replace the feature snapshot of one installation.

        Raises:
            MalformedInputError: If the report is not from the tracked product
        """
        if app.name != TRACKED_APP_NAME:
            raise MalformedInputError(
                "Feature usage can only be recorded for the tracked product", "app.name", app.name
            )

        values = feature_row(app, os_info, features)
        values["updated_at"] = datetime.now(timezone.utc)

        async def work(session: AsyncSession) -> None:
            await upsert_replace(session, InstallationFeatures, {"user_id": subject_id}, values)

        await self.store.run(work)
        logger.debug(f"Stored feature usage for {sanitize_log_message(subject_id)}")
        return MergeResult(merged=1)
