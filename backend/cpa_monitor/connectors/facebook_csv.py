"""
CPA Monitor - Facebook CSV Reader

Turns uploaded Ads Manager export bytes into header-trimmed row dicts.
Values are kept as strings; parsing happens in the normalizer.
"""

import io
import logging

import pandas as pd

logger = logging.getLogger(__name__)


def parse_csv(content: bytes) -> tuple[list[str], list[dict]]:
    """
    Parse CSV bytes into (headers, rows).

    Raises:
        ValueError: the content is not decodable or not a CSV table
    """
    if not content or not content.strip():
        return [], []

    try:
        df = pd.read_csv(
            io.BytesIO(content),
            encoding="utf-8-sig",
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
        )
    except pd.errors.EmptyDataError:
        return [], []
    except (pd.errors.ParserError, UnicodeDecodeError) as e:
        raise ValueError(f"Could not parse CSV: {e}") from e

    df.columns = [str(c).strip() for c in df.columns]
    # Lines of bare separators survive skip_blank_lines
    df = df[(df != "").any(axis=1)]

    rows = df.to_dict(orient="records")
    logger.debug(f"Parsed {len(rows)} CSV rows with {len(df.columns)} columns")
    return list(df.columns), rows


def read_csv_rows(content: bytes) -> list[dict]:
    return parse_csv(content)[1]
