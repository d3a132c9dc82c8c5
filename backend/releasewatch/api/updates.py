"""Update check endpoints."""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends

from releasewatch.dependencies import get_installation_service, get_release_tracker
from releasewatch.schemas.update import (
    LegacyUpdateCheckRequest,
    LegacyUpdateCheckResponse,
    UpdateCheckRequest,
    UpdateCheckResponse,
)
from releasewatch.services.installation_service import InstallationService
from releasewatch.services.metrics import record_update_check
from releasewatch.services.release_tracker import ReleaseTracker
from releasewatch.services.version_advisor import TRACKED_APP_NAME, Advice, advise

logger = logging.getLogger(__name__)

router = APIRouter()


def _advise(build: str, tracker: ReleaseTracker) -> Advice:
    advice = advise(build, tracker.get_snapshot())
    record_update_check(advice.kind.value)
    return advice


@router.post(
    "/updates",
    response_model=UpdateCheckResponse,
    response_model_exclude_none=True,
    summary="Check if updates are available",
)
async def check_for_update(
    request: UpdateCheckRequest,
    background_tasks: BackgroundTasks,
    tracker: ReleaseTracker = Depends(get_release_tracker),
    installations: InstallationService = Depends(get_installation_service),
) -> UpdateCheckResponse:
    """Advise an installation about updates.

    The installation is recorded after the response is sent.
    """
    background_tasks.add_task(installations.record, request)

    if request.app.name != TRACKED_APP_NAME:
        record_update_check("other_app")
        return UpdateCheckResponse(ok=True, message="")

    advice = _advise(request.app.build, tracker)
    return UpdateCheckResponse(ok=not advice.retry, message=advice.message, link=advice.link)


@router.post(
    "/updates-old",
    response_model=LegacyUpdateCheckResponse,
    response_model_exclude_none=True,
    summary="Check if updates are available (legacy endpoint)",
)
async def check_for_update_legacy(
    request: LegacyUpdateCheckRequest,
    background_tasks: BackgroundTasks,
    tracker: ReleaseTracker = Depends(get_release_tracker),
    installations: InstallationService = Depends(get_installation_service),
) -> LegacyUpdateCheckResponse:
    """Advise an installation using the flat legacy request shape.

    Legacy clients have no retry flag; an unavailable snapshot yields an empty message.
    """
    background_tasks.add_task(installations.record, request.to_update_check())

    advice = _advise(request.app_build, tracker)
    return LegacyUpdateCheckResponse(message=advice.message, link=advice.link)
