"""
CPA Monitor - Upload Endpoints

Facebook Ads Manager CSV exports.
"""

import logging

from fastapi import APIRouter, File, HTTPException, Query, UploadFile, status

from cpa_monitor.api.deps import AppSettings
from cpa_monitor.connectors.facebook_csv import parse_csv
from cpa_monitor.core.exceptions import DataIntegrityError
from cpa_monitor.core.supabase import get_supabase_service
from cpa_monitor.models.common import ErrorCodes, ErrorDetail
from cpa_monitor.models.metrics import DailyMetric, Platform
from cpa_monitor.models.policy import DEFAULT_ROLLING_POLICY
from cpa_monitor.models.requests import CsvUploadResponse
from cpa_monitor.models.source_rows import SourceKind
from cpa_monitor.services.chart_series import build_chart_series
from cpa_monitor.services.integrity import check_integrity
from cpa_monitor.services.normalizer import MetricNormalizer, validate_csv_headers
from cpa_monitor.services.rolling_cpa import compute_rolling_each_day
from cpa_monitor.services.sync_service import merge_stored_history
from cpa_monitor.services.warehouse import to_warehouse_rows

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/uploads", tags=["Uploads"])


@router.post("/facebook-csv", response_model=CsvUploadResponse)
async def upload_facebook_csv(
    config: AppSettings,
    file: UploadFile = File(..., description="Facebook Ads Manager CSV export"),
    persist: bool = Query(False, description="Upsert the records into the warehouse"),
):
    """
    Normalize a Facebook CSV export.

    Per-row problems are returned in `result.errors`. Records that fail the
    integrity guard get no chart and the reason is returned in
    `integrity_error`; with `persist` they fail the request instead. Persisted
    records are upserted with each day's rolling CPA change, measured against
    the stored days before the upload.
    """
    content = await file.read()

    try:
        headers, rows = parse_csv(content)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": ErrorCodes.INVALID_INPUT, "message": str(e)},
        )

    policy = config.normalizer_policy()
    header_check = validate_csv_headers(headers, policy.aliases)
    if not header_check.valid:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": ErrorCodes.INVALID_CSV_HEADERS, "errors": header_check.errors},
        )

    result = MetricNormalizer(policy).normalize(rows, SourceKind.FACEBOOK_CSV)
    logger.info(
        f"Upload {file.filename}: {result.summary.valid_rows} valid rows, "
        f"{len(result.warnings)} issues"
    )

    rows_upserted = 0
    chart = []
    integrity_error = None
    if result.data:
        try:
            records = check_integrity(result.data, config.integrity_policy())
        except DataIntegrityError as e:
            if persist:
                raise
            logger.warning(f"Upload {file.filename} failed the integrity guard: {e.heuristic.value}")
            integrity_error = ErrorDetail(code=e.code, message=e.message, details=e.details)
        else:
            chart = build_chart_series(records)
            if persist:
                rows_upserted = await _persist(records)

    return CsvUploadResponse(
        filename=file.filename,
        result=result,
        chart=chart,
        integrity_error=integrity_error,
        rows_upserted=rows_upserted,
    )


async def _persist(records: list[DailyMetric]) -> int:
    """Upsert records with each day's change against stored history."""
    supabase = get_supabase_service()
    history = await merge_stored_history(
        supabase, records, DEFAULT_ROLLING_POLICY.window_days, Platform.FACEBOOK
    )
    results = compute_rolling_each_day(history, {r.date for r in records})
    return await supabase.upsert_ad_performance(to_warehouse_rows(records, results))
