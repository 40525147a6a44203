"""
데이터 정규화 유틸리티

이 모듈은 원천 팩트 행(매출, 재고, 리뷰, 매장)의 타입과 형식을
표준화하는 함수들을 제공합니다. 모든 날짜는 ``YYYY-MM-DD`` 문자열로,
숫자는 유한한 float로 정규화됩니다. 파싱할 수 없는 값은 예외 대신
빈 문자열 / 0으로 바뀌며, 배치 전체의 처리를 중단시키지 않습니다.
"""

from __future__ import annotations

import logging
import math
import re
from datetime import date, datetime, timedelta
from typing import Any, Iterable, Mapping, Optional, Sequence

import numpy as np
import pandas as pd

from ..core.config import INVENTORY_TABLE, LOCATIONS_TABLE, REVIEWS_TABLE, SALES_TABLE
from .aliases import normalize_category, normalize_order_type
from .models import INVENTORY_COLUMNS, LOCATION_COLUMNS, REVIEW_COLUMNS, SALES_COLUMNS

logger = logging.getLogger(__name__)

_EPOCH = date(1970, 1, 1)
_ISO_PREFIX = re.compile(r"^\d{4}-\d{2}-\d{2}")
_INTEGER_TEXT = re.compile(r"^-?\d+$")
_YEAR_TEXT = re.compile(r"(?<!\d)\d{4}(?!\d)")
_MIN_YEAR = 1900

_TRUE_TOKENS = {"true", "t", "yes", "y", "1", "active"}
_FALSE_TOKENS = {"false", "f", "no", "n", "0", "inactive"}


# Common column aliases observed in upstream exports (Snowflake upper-case
# columns, spreadsheet headers). Values are compared after lower-casing and
# collapsing spaces/hyphens to underscores.
SALES_COLUMN_ALIASES: dict[str, Sequence[str]] = {
    "location_id": ("location_id", "loc", "loc_id", "store_id", "location"),
    "date": ("date", "sale_date", "sales_date", "order_date"),
    "order_type": ("order_type", "channel", "type"),
    "revenue": ("revenue", "rev", "sales", "amount", "daily_total"),
    "num_orders": ("num_orders", "orders", "order_count", "total_orders"),
}

INVENTORY_COLUMN_ALIASES: dict[str, Sequence[str]] = {
    "location_id": ("location_id", "loc", "loc_id", "store_id", "location"),
    "date": ("date", "record_date", "inventory_date"),
    "category": ("category", "item_category"),
    "units_received": ("units_received", "received"),
    "units_used": ("units_used", "used"),
    "units_wasted": ("units_wasted", "wasted", "waste_units"),
    "waste_cost": ("waste_cost", "cost"),
}

REVIEW_COLUMN_ALIASES: dict[str, Sequence[str]] = {
    "location_id": ("location_id", "loc", "loc_id", "store_id", "location"),
    "date": ("date", "review_date"),
    "rating": ("rating", "stars", "score"),
    "review_text": ("review_text", "text", "comment"),
    "customer_name": ("customer_name", "customer"),
}

LOCATION_COLUMN_ALIASES: dict[str, Sequence[str]] = {
    "location_id": ("location_id", "loc", "loc_id", "store_id", "id"),
    "name": ("name", "location_name", "store_name"),
    "city": ("city",),
    "state": ("state",),
    "manager": ("manager", "manager_name"),
    "seating_capacity": ("seating_capacity", "seats", "capacity"),
    "open_date": ("open_date", "opened", "opening_date"),
    "is_active": ("is_active", "active"),
}


# ========================================
# 스칼라 정규화
# ========================================


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    try:
        result = pd.isna(value)
    except (TypeError, ValueError):
        return False
    return bool(result) if isinstance(result, (bool, np.bool_)) else False


def _from_epoch_days(days: int) -> str:
    try:
        return (_EPOCH + timedelta(days=int(days))).isoformat()
    except (OverflowError, ValueError):
        return ""


def normalize_date(value: Any) -> str:
    """
    날짜 값을 ``YYYY-MM-DD`` 문자열로 정규화합니다.

    지원 형식:
    - epoch-day 정수/실수/숫자 문자열 (1970-01-01 기준 일수, 예: 19723)
    - ISO 형식 문자열 (앞 10자리 사용, 예: "2024-01-01T10:00:00Z")
    - datetime / date / pd.Timestamp
    - 4자리 연도를 포함하고 pandas가 해석할 수 있는 자유 텍스트 (예: "Jan 5, 2024")

    이미 정규화된 값은 그대로 반환되므로 멱등적입니다.

    Args:
        value: 임의 형태의 원본 날짜 값

    Returns:
        ``YYYY-MM-DD`` 문자열. 해석할 수 없으면 빈 문자열.

    Examples:
        >>> normalize_date(19723)
        '2024-01-01'
        >>> normalize_date("2024-01-01 14:30")
        '2024-01-01'
        >>> normalize_date("not a date")
        ''
    """
    if isinstance(value, bool):
        return ""
    if not isinstance(value, str) and _is_missing(value):
        return ""

    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, np.datetime64):
        return pd.Timestamp(value).date().isoformat()
    if isinstance(value, (int, np.integer)):
        return _from_epoch_days(int(value))
    if isinstance(value, (float, np.floating)):
        if not math.isfinite(float(value)):
            return ""
        return _from_epoch_days(math.trunc(float(value)))

    text = str(value).strip()
    if not text:
        return ""

    if _INTEGER_TEXT.match(text):
        return _from_epoch_days(int(text))

    if _ISO_PREFIX.match(text):
        candidate = text[:10]
        try:
            date.fromisoformat(candidate)
        except ValueError:
            return ""
        return candidate

    # 연도가 없는 텍스트("now", "today", "5 Jan")는 현재 시각이나 1년으로 해석되므로 거부
    if not _YEAR_TEXT.search(text):
        return ""
    try:
        parsed = pd.to_datetime(text, errors="coerce")
    except (ValueError, TypeError, OverflowError):
        return ""
    if _is_missing(parsed) or parsed.year < _MIN_YEAR:
        return ""
    return parsed.date().isoformat()


def safe_number(value: Any) -> float:
    """
    값을 유한한 float로 안전하게 변환합니다.

    천 단위 콤마와 통화 기호는 제거되며, 결측/비유한/해석 불가 값은 0.0이 됩니다.

    Examples:
        >>> safe_number("1,234.5")
        1234.5
        >>> safe_number(float("nan"))
        0.0
    """
    if _is_missing(value):
        return 0.0
    if isinstance(value, str):
        value = value.strip().replace(",", "").replace("$", "")
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def normalize_id(value: Any) -> str:
    """매장 ID를 문자열로 정규화합니다 (``1``, ``1.0``, ``"1"`` → ``"1"``)."""
    if isinstance(value, bool) or _is_missing(value):
        return ""
    if isinstance(value, (float, np.floating)):
        number = float(value)
        if math.isfinite(number) and number.is_integer():
            return str(int(number))
        return str(value)
    text = str(value).strip()
    if text.casefold() in {"nan", "none", "null", "<na>"}:
        return ""
    try:
        number = float(text)
    except ValueError:
        return text
    if math.isfinite(number) and number.is_integer() and "e" not in text.casefold():
        return str(int(number))
    return text


def _normalize_text(value: Any) -> str:
    if _is_missing(value):
        return ""
    text = str(value).strip()
    return "" if text.casefold() in {"nan", "none", "null", "<na>"} else text


def _normalize_flag(value: Any) -> bool:
    if isinstance(value, (bool, np.bool_)):
        return bool(value)
    if _is_missing(value):
        return True
    text = str(value).strip().casefold()
    if text in _FALSE_TOKENS:
        return False
    if text in _TRUE_TOKENS:
        return True
    return bool(safe_number(value))


# ========================================
# 컬럼 별칭 처리
# ========================================


def _column_key(name: object) -> str:
    return re.sub(r"[\s\-]+", "_", str(name).strip().casefold())


def _build_column_lookup(columns: Iterable[object]) -> dict[str, object]:
    """Create a mapping of normalised column names to the original labels."""

    lookup: dict[str, object] = {}
    for col in columns:
        key = _column_key(col)
        if key and key not in lookup:
            lookup[key] = col
    return lookup


def _find_column(lookup: dict[str, object], aliases: Sequence[str]) -> Optional[object]:
    """Return the first matching column for *aliases* using *lookup*."""

    for alias in aliases:
        found = lookup.get(_column_key(alias))
        if found is not None:
            return found
    return None


def rename_aliases(
    frame: pd.DataFrame, aliases: Mapping[str, Sequence[str]]
) -> pd.DataFrame:
    lookup = _build_column_lookup(frame.columns)
    rename_map: dict[object, str] = {}
    consumed: set[object] = set()

    for canonical, names in aliases.items():
        if canonical in frame.columns:
            consumed.add(canonical)
            continue
        match = _find_column(lookup, names)
        if match is None or match in consumed:
            continue
        rename_map[match] = canonical
        consumed.add(match)

    return frame.rename(columns=rename_map)


def _column(frame: pd.DataFrame, name: str, default: Any) -> pd.Series:
    if name in frame.columns:
        return frame[name]
    return pd.Series([default] * len(frame), index=frame.index, dtype=object)


def numeric_series(series: pd.Series) -> pd.Series:
    """Series를 유한한 float Series로 변환합니다 (해석 불가/비유한 값은 0)."""
    if pd.api.types.is_bool_dtype(series):
        values = series.astype(float)
    elif pd.api.types.is_numeric_dtype(series):
        values = pd.to_numeric(series, errors="coerce")
    else:
        text = series.astype(str).str.replace(",", "", regex=False).str.replace(
            "$", "", regex=False
        )
        values = pd.to_numeric(text.str.strip(), errors="coerce")
    return values.replace([np.inf, -np.inf], np.nan).fillna(0.0).astype(float)


def _prepare(frame: Optional[pd.DataFrame], aliases: Mapping[str, Sequence[str]]) -> pd.DataFrame:
    if frame is None:
        return pd.DataFrame()
    return rename_aliases(pd.DataFrame(frame), aliases).reset_index(drop=True)


def _log_unparseable(kind: str, dates: pd.Series) -> None:
    bad = int((dates == "").sum())
    if bad:
        logger.debug(f"{kind}: {bad} rows with unparseable dates excluded from date buckets")


# ========================================
# 테이블 정규화
# ========================================


def normalize_sales(frame: Optional[pd.DataFrame]) -> pd.DataFrame:
    """
    매출 팩트를 표준 스키마로 정규화합니다.

    표준 스키마:
    - location_id: 매장 ID (문자열)
    - date: 판매일 (YYYY-MM-DD, 해석 불가 시 "")
    - order_type: dine-in / takeout / delivery
    - revenue: 매출 (float)
    - num_orders: 주문 수 (float)

    Args:
        frame: 원본 매출 데이터프레임 (Snowflake 대문자 컬럼 등 허용)

    Returns:
        표준 스키마 데이터프레임
    """
    src = _prepare(frame, SALES_COLUMN_ALIASES)
    out = pd.DataFrame(index=src.index)
    out["location_id"] = _column(src, "location_id", "").map(normalize_id)
    out["date"] = _column(src, "date", "").map(normalize_date)
    out["order_type"] = _column(src, "order_type", "").map(normalize_order_type)
    out["revenue"] = numeric_series(_column(src, "revenue", 0))
    out["num_orders"] = numeric_series(_column(src, "num_orders", 0))
    _log_unparseable("sales", out["date"])
    return out[SALES_COLUMNS].astype({"location_id": str, "date": str, "order_type": str})


def normalize_inventory(frame: Optional[pd.DataFrame]) -> pd.DataFrame:
    """
    재고/폐기 팩트를 표준 스키마로 정규화합니다.

    수량 값은 clamp하지 않습니다. 폐기 수량이 입고 수량을 초과하는
    원본 데이터도 그대로 통과합니다.
    """
    src = _prepare(frame, INVENTORY_COLUMN_ALIASES)
    out = pd.DataFrame(index=src.index)
    out["location_id"] = _column(src, "location_id", "").map(normalize_id)
    out["date"] = _column(src, "date", "").map(normalize_date)
    out["category"] = _column(src, "category", "").map(normalize_category)
    for col in ("units_received", "units_used", "units_wasted", "waste_cost"):
        out[col] = numeric_series(_column(src, col, 0))
    _log_unparseable("inventory", out["date"])
    return out[INVENTORY_COLUMNS].astype({"location_id": str, "date": str, "category": str})


def normalize_reviews(frame: Optional[pd.DataFrame]) -> pd.DataFrame:
    """리뷰 팩트를 표준 스키마로 정규화합니다."""
    src = _prepare(frame, REVIEW_COLUMN_ALIASES)
    out = pd.DataFrame(index=src.index)
    out["location_id"] = _column(src, "location_id", "").map(normalize_id)
    out["date"] = _column(src, "date", "").map(normalize_date)
    out["rating"] = numeric_series(_column(src, "rating", 0))
    out["review_text"] = _column(src, "review_text", "").map(_normalize_text)
    out["customer_name"] = _column(src, "customer_name", "").map(_normalize_text)
    _log_unparseable("reviews", out["date"])
    return out[REVIEW_COLUMNS].astype({"location_id": str, "date": str})


def normalize_locations(frame: Optional[pd.DataFrame]) -> pd.DataFrame:
    """
    매장 기준 정보를 표준 스키마로 정규화합니다.

    ID가 비어 있는 행은 참조할 수 없으므로 제거하고,
    중복 ID는 첫 행만 유지합니다.
    """
    src = _prepare(frame, LOCATION_COLUMN_ALIASES)
    out = pd.DataFrame(index=src.index)
    out["location_id"] = _column(src, "location_id", "").map(normalize_id)
    for col in ("name", "city", "state", "manager"):
        out[col] = _column(src, col, "").map(_normalize_text)
    out["seating_capacity"] = numeric_series(_column(src, "seating_capacity", 0)).astype(int)
    out["open_date"] = _column(src, "open_date", "").map(normalize_date)
    out["is_active"] = _column(src, "is_active", True).map(_normalize_flag).astype(bool)

    out = out[out["location_id"] != ""]
    out = out.drop_duplicates(subset=["location_id"], keep="first").copy()
    # 이름이 없으면 ID를 표시명으로 사용
    out["name"] = out["name"].where(out["name"] != "", out["location_id"])
    return out[LOCATION_COLUMNS].reset_index(drop=True).astype({"location_id": str})


# 테이블 이름(또는 짧은 키) → (정규화 키, 정규화 함수)
_TABLE_NORMALIZERS = {
    LOCATIONS_TABLE: ("locations", normalize_locations),
    SALES_TABLE: ("sales", normalize_sales),
    INVENTORY_TABLE: ("inventory", normalize_inventory),
    REVIEWS_TABLE: ("reviews", normalize_reviews),
    "locations": ("locations", normalize_locations),
    "sales": ("sales", normalize_sales),
    "inventory": ("inventory", normalize_inventory),
    "reviews": ("reviews", normalize_reviews),
}


def table_kind(name: object) -> Optional[str]:
    """테이블 이름(``DAILY_SALES``) 또는 짧은 키(``sales``)를 짧은 키로 변환합니다."""
    key = str(name).strip()
    entry = _TABLE_NORMALIZERS.get(key) or _TABLE_NORMALIZERS.get(key.upper())
    return entry[0] if entry else None


def normalize_tables(raw: Mapping[str, Optional[pd.DataFrame]]) -> dict[str, pd.DataFrame]:
    """
    원본 테이블 묶음을 정규화합니다.

    Args:
        raw: 테이블 이름(``DAILY_SALES`` 등) 또는 짧은 키(``sales`` 등)를
            키로 하는 원본 데이터프레임 매핑. 없는 테이블은 빈 표로 채웁니다.

    Returns:
        ``locations``, ``sales``, ``inventory``, ``reviews`` 키를 가진 딕셔너리
    """
    frames: dict[str, Optional[pd.DataFrame]] = {}
    for name, frame in raw.items():
        kind = table_kind(name)
        if kind is None:
            logger.debug(f"Ignoring unknown table: {name}")
            continue
        frames[kind] = frame

    out = {
        "locations": normalize_locations(frames.get("locations")),
        "sales": normalize_sales(frames.get("sales")),
        "inventory": normalize_inventory(frames.get("inventory")),
        "reviews": normalize_reviews(frames.get("reviews")),
    }
    logger.debug(
        "Normalized: %s locations, %s sales, %s inventory, %s reviews",
        len(out["locations"]),
        len(out["sales"]),
        len(out["inventory"]),
        len(out["reviews"]),
    )
    return out
