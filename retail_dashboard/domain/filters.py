"""
필터 엔진: 기간 clamp 및 차원 필터링

이 모듈은 정규화된 팩트 테이블에 기간 조건과 차원(매장/도시/카테고리/
주문 유형) 조건을 적용합니다. 요청 기간은 실제 데이터에 존재하는
최소/최대 날짜로 clamp됩니다. 출력 행의 순서는 의미가 없으며,
하위 단계가 명시적으로 정렬합니다.
"""

from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Iterable, Mapping, Optional, Tuple

import pandas as pd

from .exceptions import FilterError
from .models import (
    INVENTORY_COLUMNS,
    LOCATION_COLUMNS,
    REVIEW_COLUMNS,
    SALES_COLUMNS,
    FactBundle,
    FilterState,
    Selection,
)
from .normalization import normalize_date
from .validation import validate_filter_state

logger = logging.getLogger(__name__)

DateBounds = Tuple[Optional[str], Optional[str]]


# ========================================
# 날짜 헬퍼
# ========================================


def calculate_date_bounds(*frames: Optional[pd.DataFrame], date_column: str = "date") -> DateBounds:
    """
    여러 팩트 테이블에 실제로 존재하는 최소/최대 날짜를 계산합니다.

    해석 불가 날짜("")는 무시합니다.

    Returns:
        (최소 날짜, 최대 날짜). 유효한 날짜가 하나도 없으면 (None, None).

    Examples:
        >>> calculate_date_bounds(sales_df, inventory_df)
        ('2024-01-01', '2024-03-31')
    """
    dates: list[str] = []
    for frame in frames:
        if frame is None or frame.empty or date_column not in frame.columns:
            continue
        valid = frame[date_column].astype(str)
        valid = valid[valid != ""]
        if not valid.empty:
            dates.extend([valid.min(), valid.max()])

    if not dates:
        return None, None
    return min(dates), max(dates)


def clamp_date(value: str, lower: str, upper: str) -> str:
    """ISO 날짜 문자열을 [lower, upper] 범위로 clamp합니다."""
    if value < lower:
        return lower
    if value > upper:
        return upper
    return value


def clamp_date_range(
    start: Optional[str],
    end: Optional[str],
    bounds: DateBounds,
) -> DateBounds:
    """
    요청 기간을 데이터 경계로 clamp합니다.

    - start가 없으면 최소 날짜, end가 없으면 최대 날짜를 사용합니다.
    - 요청 start가 최소 날짜보다 앞서면 최소 날짜로, end가 최대 날짜보다
      뒤면 최대 날짜로 당깁니다.

    Args:
        start / end: 요청 기간 (정규화 전 값 허용)
        bounds: calculate_date_bounds 결과

    Returns:
        clamp된 (start, end). 데이터가 없으면 (None, None).
    """
    lower, upper = bounds
    if lower is None or upper is None:
        return None, None

    start_norm = normalize_date(start) if start else ""
    end_norm = normalize_date(end) if end else ""

    safe_start = clamp_date(start_norm or lower, lower, upper)
    safe_end = clamp_date(end_norm or upper, lower, upper)
    return safe_start, safe_end


def shift_days(iso_date: str, days: int) -> str:
    return (date.fromisoformat(iso_date) + timedelta(days=days)).isoformat()


def previous_period(start: Optional[str], end: Optional[str], bounds: DateBounds) -> Optional[DateBounds]:
    """
    현재 기간과 같은 길이의, 바로 직전 기간을 계산합니다.

    직전 기간의 종료일이 데이터 최소 날짜보다 앞서면 비교할 수 없으므로
    None을 반환합니다. 그 외에는 데이터 경계로 clamp합니다.

    Examples:
        >>> previous_period("2024-01-08", "2024-01-14", ("2024-01-01", "2024-01-31"))
        ('2024-01-01', '2024-01-07')
    """
    lower, upper = bounds
    if not start or not end or lower is None or upper is None:
        return None

    duration = (date.fromisoformat(end) - date.fromisoformat(start)).days + 1
    prev_end = shift_days(start, -1)
    prev_start = shift_days(prev_end, -(duration - 1))
    if prev_end < lower:
        return None
    return clamp_date(prev_start, lower, upper), clamp_date(prev_end, lower, upper)


# ========================================
# DataFrame 필터 헬퍼
# ========================================


def filter_date_range(
    df: pd.DataFrame,
    start: Optional[str],
    end: Optional[str],
    date_column: str = "date",
) -> pd.DataFrame:
    """
    DataFrame을 포함(inclusive) 기간으로 필터링합니다.

    기간이 없으면(None) 빈 결과를 반환합니다. 해석 불가 날짜("")를 가진
    행은 항상 제외됩니다.
    """
    if df.empty or date_column not in df.columns:
        return df.copy()
    if start is None or end is None:
        return df.iloc[0:0].copy()

    dates = df[date_column].astype(str)
    mask = (dates != "") & (dates >= start) & (dates <= end)
    return df[mask].copy()


def filter_by_values(
    df: pd.DataFrame,
    column: str,
    selection: Selection,
) -> pd.DataFrame:
    """
    DataFrame을 선택자로 필터링합니다.

    Args:
        df: 필터링할 DataFrame
        column: 비교할 컬럼명
        selection: 선택자 (전체 선택이면 그대로 반환)

    Returns:
        필터링된 DataFrame (복사본)

    Raises:
        FilterError: 컬럼이 존재하지 않는 경우 (비어 있지 않은 DataFrame에 한함)
    """
    if selection.is_all:
        return df.copy()
    if df.empty:
        return df.copy()
    if column not in df.columns:
        raise FilterError(f"'{column}' 컬럼으로 필터링할 수 없습니다.")
    return df[df[column].astype(str).isin(selection.values)].copy()


def filter_by_locations(df: pd.DataFrame, locations: Selection | Iterable[str]) -> pd.DataFrame:
    """DataFrame을 매장 ID로 필터링합니다."""
    selection = locations if isinstance(locations, Selection) else Selection.of(locations)
    return filter_by_values(df, "location_id", selection)


def resolve_location_selection(locations: pd.DataFrame, state: FilterState) -> Selection:
    """
    필터 상태를 실제 매장 ID 선택자로 해석합니다.

    매장 기준 정보가 있으면 매장 선택, 도시 선택, 운영 여부를 모두 적용한
    코호트 ID 집합을 반환합니다. 기준 정보가 없으면 매장 선택자만 사용하며,
    이때 도시 선택은 해석할 수 없으므로 빈 선택이 됩니다.
    """
    if locations is None or locations.empty:
        if not state.cities.is_all:
            logger.warning("City filter requested without location reference data")
            return Selection.of([])
        return state.locations

    cohort = filter_by_values(locations, "location_id", state.locations)
    cohort = filter_by_values(cohort, "city", state.cities)
    if not state.include_inactive:
        cohort = cohort[cohort["is_active"].astype(bool)]
    return Selection.of(cohort["location_id"].astype(str))


def _empty(columns: list) -> pd.DataFrame:
    return pd.DataFrame(columns=columns)


# ========================================
# 필터 엔진
# ========================================


def filter_facts(
    tables: Mapping[str, pd.DataFrame],
    state: FilterState,
) -> FactBundle:
    """
    정규화된 팩트 테이블에 필터 상태를 적용합니다.

    처리 순서:
    1. 필터 상태 검증 (start <= end)
    2. 데이터 경계 계산 및 기간 clamp
    3. 코호트 매장 ID 해석 (매장/도시/운영 여부)
    4. 팩트별 기간·매장 필터, 매출에는 주문 유형, 재고에는 카테고리 필터

    Args:
        tables: normalize_tables 결과 (locations, sales, inventory, reviews)
        state: 필터 상태

    Returns:
        FactBundle (clamp된 기간 포함)

    Raises:
        ValidationError: 기간 정보가 잘못된 경우
    """
    validate_filter_state(state)

    locations = tables.get("locations")
    sales = tables.get("sales")
    inventory = tables.get("inventory")
    reviews = tables.get("reviews")
    locations = _empty(LOCATION_COLUMNS) if locations is None else locations
    sales = _empty(SALES_COLUMNS) if sales is None else sales
    inventory = _empty(INVENTORY_COLUMNS) if inventory is None else inventory
    reviews = _empty(REVIEW_COLUMNS) if reviews is None else reviews

    bounds = calculate_date_bounds(sales, inventory, reviews)
    start, end = clamp_date_range(state.start, state.end, bounds)
    logger.debug(f"Clamped range: {state.start}..{state.end} -> {start}..{end}")

    selection = resolve_location_selection(locations, state)

    cohort = locations if locations.empty else filter_by_locations(locations, selection)

    f_sales = filter_by_locations(filter_date_range(sales, start, end), selection)
    f_sales = filter_by_values(f_sales, "order_type", state.order_types)

    f_inventory = filter_by_locations(filter_date_range(inventory, start, end), selection)
    f_inventory = filter_by_values(f_inventory, "category", state.categories)

    f_reviews = filter_by_locations(filter_date_range(reviews, start, end), selection)

    logger.debug(
        "Filtered: %s sales, %s inventory, %s reviews, %s locations",
        len(f_sales),
        len(f_inventory),
        len(f_reviews),
        len(cohort),
    )
    return FactBundle(
        locations=cohort.reset_index(drop=True),
        sales=f_sales.reset_index(drop=True),
        inventory=f_inventory.reset_index(drop=True),
        reviews=f_reviews.reset_index(drop=True),
        start=start,
        end=end,
    )
