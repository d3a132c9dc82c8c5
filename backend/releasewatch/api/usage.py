"""Usage report endpoints.

Three wire shapes are accepted, one per endpoint. All of them answer
``{"ok": bool}``; ``ok`` is False when the report should be sent again.
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends

from releasewatch.dependencies import get_usage_aggregator, get_usage_normalizer
from releasewatch.exceptions import MalformedInputError
from releasewatch.schemas.usage import DetailedUsageRequest, LegacyUsageRequest, UsageReportResponse
from releasewatch.services.metrics import record_usage_report
from releasewatch.services.usage_aggregator import FeatureReport, UsageAggregator
from releasewatch.services.usage_normalizer import (
    EnumeratedUsagePayload,
    LegacyBlobPayload,
    ModernUsagePayload,
    UsageNormalizer,
    UsagePayload,
)
from releasewatch.utils.security import sanitize_log_message

logger = logging.getLogger(__name__)

router = APIRouter()


async def _submit(
    shape: str,
    payload: UsagePayload,
    normalizer: UsageNormalizer,
    aggregator: UsageAggregator,
    features: Optional[FeatureReport] = None,
) -> UsageReportResponse:
    try:
        usage = normalizer.normalize(payload)
    except MalformedInputError as e:
        logger.info(f"Rejected {shape} usage report: {sanitize_log_message(str(e))}")
        record_usage_report(shape, False)
        return UsageReportResponse(ok=False)

    accepted = await aggregator.submit_normalized(usage, features)
    record_usage_report(shape, accepted)
    return UsageReportResponse(ok=accepted)


@router.post(
    "/companion/detailed-usage",
    response_model=UsageReportResponse,
    summary="Report detailed usage information",
)
async def report_detailed_usage(
    request: DetailedUsageRequest,
    normalizer: UsageNormalizer = Depends(get_usage_normalizer),
    aggregator: UsageAggregator = Depends(get_usage_aggregator),
) -> UsageReportResponse:
    features = None
    if request.features is not None:
        features = FeatureReport(app=request.app, os=request.os, features=request.features)

    payload = ModernUsagePayload(
        subject_id=request.id, surfaces=request.surfaces, connections=request.connections
    )
    return await _submit("modern", payload, normalizer, aggregator, features)


@router.post(
    "/companion/usage",
    response_model=UsageReportResponse,
    summary="Report usage information (legacy enumerated shape)",
)
async def report_usage(
    request: LegacyUsageRequest,
    normalizer: UsageNormalizer = Depends(get_usage_normalizer),
    aggregator: UsageAggregator = Depends(get_usage_aggregator),
) -> UsageReportResponse:
    payload = EnumeratedUsagePayload(
        subject_id=request.id, surfaces=request.surfaces, modules=request.modules
    )
    return await _submit("enumerated", payload, normalizer, aggregator)


@router.post(
    "/old-metrics",
    response_model=UsageReportResponse,
    summary="Report usage information (legacy free-form shape)",
)
async def report_old_metrics(
    body: Any = Body(default=None),
    normalizer: UsageNormalizer = Depends(get_usage_normalizer),
    aggregator: UsageAggregator = Depends(get_usage_aggregator),
) -> UsageReportResponse:
    """Accept any JSON body; the normalizer decides what is usable."""
    return await _submit("blob", LegacyBlobPayload(body), normalizer, aggregator)
