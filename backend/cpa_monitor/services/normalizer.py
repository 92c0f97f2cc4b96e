"""
CPA Monitor - Metric Normalizer

Turns raw source rows (Facebook CSV exports, Google Ads API rows) into
canonical DailyMetric records. Per-row problems are recorded and the row is
skipped; they never fail the whole pass.
"""

import logging
import math
import re
from datetime import date, datetime, timedelta
from typing import Any, Iterable, Mapping, Optional, Union

from pydantic import ValidationError

from cpa_monitor.models.metrics import (
    CsvDialect,
    DailyMetric,
    DateSpan,
    HeaderCheck,
    NormalizationResult,
    NormalizationSummary,
    Platform,
    RowIssueKind,
    RowParseWarning,
)
from cpa_monitor.models.policy import (
    DEFAULT_NORMALIZER_POLICY,
    HeaderAliases,
    NormalizerPolicy,
)
from cpa_monitor.models.source_rows import (
    FacebookCsvRow,
    GoogleAdsApiRow,
    SourceKind,
    SourceRow,
    detect_csv_dialect,
)

logger = logging.getLogger(__name__)

# CSV row numbers shown to users are 1-based and count the header line.
CSV_FIRST_DATA_ROW = 2

_SLUG_PATTERN = re.compile(r"[^a-z0-9]")
_TEXT_DATE_FORMATS = ("%b %d, %Y", "%d %b %Y", "%B %d, %Y", "%Y%m%d")


# ===========================================
# VALUE PARSING
# ===========================================

def parse_amount(value: str) -> Optional[float]:
    """Parse a money/count cell, stripping "$" and thousands separators.

    Returns None unless the result is a finite, non-negative number.
    """
    text = str(value).strip().replace("$", "").replace(",", "").replace(" ", "")
    if not text:
        return None
    try:
        number = float(text)
    except ValueError:
        return None
    if not math.isfinite(number) or number < 0:
        return None
    return number


def parse_count(value: str) -> Optional[int]:
    number = parse_amount(value)
    return int(number) if number is not None else None


def parse_report_date(value: str) -> Optional[date]:
    """Parse MM/DD/YYYY (US month-first), YYYY/MM/DD or ISO YYYY-MM-DD."""
    text = str(value).strip()
    if not text:
        return None
    try:
        if "/" in text:
            parts = [p.strip() for p in text.split("/")]
            if len(parts) != 3:
                return None
            first, second, third = (int(p) for p in parts)
            if len(parts[0]) == 4:
                return date(first, second, third)
            if len(parts[2]) != 4:
                return None
            return date(third, first, second)
        if "-" in text:
            return date.fromisoformat(text[:10])
    except ValueError:
        return None

    for fmt in _TEXT_DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def slugify_ad_set_name(name: str) -> str:
    return _SLUG_PATTERN.sub("_", name.lower())[:20]


class AdSetIdAllocator:
    """
    Deterministic ids for CSV ad sets.

    `fb_<slug>_<ordinal>`: the ordinal separates distinct display names that
    collapse to the same slug, in order of first appearance. The same name
    always maps to the same id within one file.
    """

    def __init__(self, prefix: str = "fb"):
        self.prefix = prefix
        self._names_by_slug: dict[str, list[str]] = {}

    def id_for(self, ad_set_name: str) -> str:
        name = ad_set_name.strip()
        slug = slugify_ad_set_name(name)
        names = self._names_by_slug.setdefault(slug, [])
        if name not in names:
            names.append(name)
        ordinal = names.index(name)
        return f"{self.prefix}_{slug}_{ordinal:03d}"


# ===========================================
# HEADER CHECKS
# ===========================================

def validate_csv_headers(
    headers: Iterable[str],
    aliases: HeaderAliases = DEFAULT_NORMALIZER_POLICY.aliases,
) -> HeaderCheck:
    """Check that an export carries the columns the normalizer needs."""
    names = {str(h).strip() for h in headers}
    errors = []

    for field in ("ad_set_name", "amount_spent", "results"):
        options = aliases.for_field(field)
        if not any(option in names for option in options):
            primary, alternatives = options[0], options[1:]
            errors.append(
                f'Missing required column: "{primary}" '
                f'(or alternatives: {", ".join(alternatives) or "none"})'
            )

    date_columns = aliases.reporting_start + aliases.reporting_end
    if not any(col in names for col in date_columns):
        errors.append('Missing date columns. Expected "Reporting starts" or "Reporting ends"')

    return HeaderCheck(valid=not errors, errors=errors)


# ===========================================
# NORMALIZER
# ===========================================

class _Pass:
    """Mutable bookkeeping for a single normalization pass."""

    def __init__(self, total_rows: int):
        self.total_rows = total_rows
        self.records: dict[tuple, DailyMetric] = {}
        self.warnings: list[RowParseWarning] = []
        self.valid_rows = 0
        self.invalid_rows = 0
        self.skipped_rows = 0

    def warn(self, row: int, kind: RowIssueKind, message: str) -> None:
        logger.debug(f"Row {row}: {message}")
        self.warnings.append(RowParseWarning(row=row, kind=kind, message=message))

    def reject(self, row: int, kind: RowIssueKind, message: str) -> None:
        self.warn(row, kind, message)
        self.invalid_rows += 1

    def accept(self, row: int, metric: DailyMetric) -> None:
        self.valid_rows += 1
        existing = self.records.get(metric.key)
        if existing is None:
            self.records[metric.key] = metric
            return

        merged = existing.model_copy(update={
            "spend": existing.spend + metric.spend,
            "conversions": existing.conversions + metric.conversions,
            "impressions": _sum_optional(existing.impressions, metric.impressions),
            "clicks": _sum_optional(existing.clicks, metric.clicks),
        })
        self.records[metric.key] = merged
        self.warn(
            row,
            RowIssueKind.DUPLICATE_MERGED,
            f"Duplicate row for {metric.ad_set_name or metric.ad_set_id} on "
            f"{metric.date.isoformat()} merged into earlier row",
        )

    def result(self, dialect: Optional[CsvDialect] = None) -> NormalizationResult:
        data = list(self.records.values())
        total_spend = sum(m.spend for m in data)
        total_conversions = sum(m.conversions for m in data)
        dates = sorted({m.date for m in data})

        summary = NormalizationSummary(
            total_rows=self.total_rows,
            valid_rows=self.valid_rows,
            invalid_rows=self.invalid_rows,
            skipped_rows=self.skipped_rows,
            total_spend=total_spend,
            total_conversions=total_conversions,
            average_cpa=total_spend / total_conversions if total_conversions > 0 else 0.0,
            date_range=DateSpan(
                start=dates[0] if dates else None,
                end=dates[-1] if dates else None,
            ),
            dialect=dialect,
        )
        return NormalizationResult(
            success=len(data) > 0,
            data=data,
            warnings=self.warnings,
            summary=summary,
        )


def _sum_optional(a: Optional[int], b: Optional[int]) -> Optional[int]:
    if a is None and b is None:
        return None
    return (a or 0) + (b or 0)


class MetricNormalizer:
    """
    Maps source-specific rows to DailyMetric.

    Stateless between calls; every call to `normalize` is an independent pass.
    """

    def __init__(self, policy: NormalizerPolicy = DEFAULT_NORMALIZER_POLICY):
        self.policy = policy

    def normalize(
        self,
        raw_rows: Iterable[Mapping[str, Any]],
        source_kind: Union[SourceKind, str],
        processing_date: Optional[date] = None,
    ) -> NormalizationResult:
        """
        Normalize a batch of raw rows.

        Args:
            raw_rows: Key-value rows as read from the source
            source_kind: Which source shape the rows follow
            processing_date: "Today" for the yesterday fallback (defaults to date.today())

        Returns:
            NormalizationResult; success is False when no row produced data
        """
        kind = SourceKind(source_kind)
        rows = list(raw_rows)
        today = processing_date or date.today()

        if kind == SourceKind.FACEBOOK_CSV:
            result = self._normalize_csv(rows, today)
        else:
            result = self._normalize_api(rows, today)

        summary = result.summary
        logger.info(
            f"Normalized {kind.value}: {summary.valid_rows}/{summary.total_rows} rows valid, "
            f"{summary.invalid_rows} invalid, {summary.skipped_rows} skipped, "
            f"{len(result.data)} records"
        )
        return result

    # ---------- Facebook CSV ----------

    def _normalize_csv(self, rows: list[Mapping[str, Any]], today: date) -> NormalizationResult:
        state = _Pass(total_rows=len(rows))
        headers: dict[str, None] = {}
        for raw in rows:
            headers.update((str(k).strip(), None) for k in raw.keys() if k is not None)
        dialect = detect_csv_dialect(headers)
        ids = AdSetIdAllocator()

        for index, raw in enumerate(rows):
            row_number = index + CSV_FIRST_DATA_ROW
            try:
                source = FacebookCsvRow.from_mapping(raw, self.policy.aliases, dialect)
                self._process_source_row(source, row_number, today, state, ids)
            except (ValueError, TypeError, AttributeError) as e:
                state.reject(row_number, RowIssueKind.PROCESSING_ERROR, f"Processing error - {e}")

        return state.result(dialect=dialect)

    def _process_csv_row(
        self,
        row: FacebookCsvRow,
        row_number: int,
        today: date,
        state: _Pass,
        ids: AdSetIdAllocator,
    ) -> None:
        if not row.ad_set_name:
            state.skipped_rows += 1
            return

        if row.delivery.lower() in self.policy.inactive_delivery_values:
            logger.debug(f"Row {row_number}: skipping {row.delivery} ad set {row.ad_set_name}")
            state.skipped_rows += 1
            return

        spend = parse_amount(row.amount_spent)
        if spend is None:
            state.reject(row_number, RowIssueKind.INVALID_SPEND, f"Invalid spend amount: {row.amount_spent}")
            return

        conversions = parse_amount(row.results or "0")
        if conversions is None:
            state.reject(row_number, RowIssueKind.INVALID_CONVERSIONS, f"Invalid results count: {row.results}")
            return

        if spend == 0:
            state.skipped_rows += 1
            return

        derived_cpa = spend / conversions if conversions > 0 else 0.0
        supplied_cpa = parse_amount(row.cost_per_result) if row.cost_per_result else None
        if (
            supplied_cpa is not None
            and conversions > 0
            and abs(derived_cpa - supplied_cpa) > self.policy.cpa_mismatch_tolerance
        ):
            state.warn(
                row_number,
                RowIssueKind.CPA_MISMATCH,
                f"CPA calculation mismatch. Expected: {derived_cpa:.2f}, Got: {supplied_cpa:.2f}",
            )

        report_date = self._resolve_csv_date(row, row_number, today, state)

        metric = DailyMetric(
            date=report_date,
            platform=Platform.FACEBOOK,
            ad_set_id=ids.id_for(row.ad_set_name),
            ad_set_name=row.ad_set_name,
            spend=spend,
            conversions=conversions,
            campaign_name=row.campaign_name or None,
            impressions=parse_count(row.impressions) if row.impressions else None,
            clicks=parse_count(row.link_clicks) if row.link_clicks else None,
        )
        state.accept(row_number, metric)

    def _resolve_csv_date(self, row: FacebookCsvRow, row_number: int, today: date, state: _Pass) -> date:
        yesterday = today - timedelta(days=1)
        candidates = [value for value in (row.reporting_start, row.reporting_end) if value]

        if not candidates:
            state.warn(
                row_number,
                RowIssueKind.MISSING_DATE,
                f"No date found, using yesterday: {yesterday.isoformat()}",
            )
            return yesterday

        for value in candidates:
            parsed = parse_report_date(value)
            if parsed is not None:
                return parsed

        state.warn(
            row_number,
            RowIssueKind.UNPARSEABLE_DATE,
            f"Unparseable date '{candidates[0]}', using yesterday: {yesterday.isoformat()}",
        )
        return yesterday

    # ---------- Google Ads API ----------

    def _normalize_api(self, rows: list[Mapping[str, Any]], today: date) -> NormalizationResult:
        state = _Pass(total_rows=len(rows))

        for index, raw in enumerate(rows):
            row_number = index + 1
            try:
                source = GoogleAdsApiRow.model_validate(dict(raw))
            except ValidationError as e:
                state.reject(
                    row_number,
                    RowIssueKind.PROCESSING_ERROR,
                    f"Invalid API row - {e.error_count()} validation error(s)",
                )
                continue
            try:
                self._process_source_row(source, row_number, today, state)
            except ValueError as e:
                state.reject(row_number, RowIssueKind.PROCESSING_ERROR, f"Processing error - {e}")

        return state.result()

    def _process_api_row(self, row: GoogleAdsApiRow, row_number: int, today: date, state: _Pass) -> None:
        if row.cost_micros < 0:
            state.reject(row_number, RowIssueKind.INVALID_SPEND, f"Invalid cost_micros: {row.cost_micros}")
            return
        if not math.isfinite(row.conversions) or row.conversions < 0:
            state.reject(row_number, RowIssueKind.INVALID_CONVERSIONS, f"Invalid conversions: {row.conversions}")
            return

        spend = row.cost_micros / self.policy.micros_per_unit
        if spend == 0:
            state.skipped_rows += 1
            return

        report_date = parse_report_date(row.date)
        if report_date is None:
            report_date = today - timedelta(days=1)
            state.warn(
                row_number,
                RowIssueKind.UNPARSEABLE_DATE,
                f"Unparseable date '{row.date}', using yesterday: {report_date.isoformat()}",
            )

        metric = DailyMetric(
            date=report_date,
            platform=Platform.GOOGLE,
            ad_set_id=f"ga_{row.ad_group_id}",
            ad_set_name=row.ad_group_name,
            spend=spend,
            conversions=row.conversions,
            campaign_name=row.campaign_name,
            impressions=row.impressions,
            clicks=row.clicks,
        )
        state.accept(row_number, metric)

    # ---------- dispatch ----------

    def _process_source_row(
        self,
        row: SourceRow,
        row_number: int,
        today: date,
        state: _Pass,
        ids: Optional[AdSetIdAllocator] = None,
    ) -> None:
        if isinstance(row, FacebookCsvRow):
            self._process_csv_row(row, row_number, today, state, ids or AdSetIdAllocator())
        elif isinstance(row, GoogleAdsApiRow):
            self._process_api_row(row, row_number, today, state)
        else:
            raise TypeError(f"Unsupported source row: {type(row).__name__}")


_default_normalizer = MetricNormalizer()


def normalize(
    raw_rows: Iterable[Mapping[str, Any]],
    source_kind: Union[SourceKind, str],
    processing_date: Optional[date] = None,
) -> NormalizationResult:
    """Normalize rows with the default policy."""
    return _default_normalizer.normalize(raw_rows, source_kind, processing_date=processing_date)
