"""
도메인 계층 퍼블릭 API

이 모듈은 도메인 계층의 주요 클래스와 함수를 재수출하여
일관된 퍼블릭 API를 제공합니다.
"""
from __future__ import annotations

from .exceptions import DomainError, FetchError, FilterError, ValidationError
from .filters import (
    calculate_date_bounds,
    clamp_date_range,
    filter_by_locations,
    filter_by_values,
    filter_date_range,
    filter_facts,
    previous_period,
    resolve_location_selection,
)
from .models import (
    AnomalyCheck,
    AnomalyStatus,
    FactBundle,
    FilterState,
    Location,
    PivotKey,
    ScorecardRow,
    Selection,
    Status,
    TrendDirection,
)
from .normalization import (
    normalize_date,
    normalize_id,
    normalize_inventory,
    normalize_locations,
    normalize_reviews,
    normalize_sales,
    normalize_tables,
    safe_number,
)
from .validation import validate_filter_state, validate_raw_tables

__all__ = [
    # 예외
    "DomainError",
    "ValidationError",
    "FetchError",
    "FilterError",
    # 모델
    "Location",
    "Selection",
    "FilterState",
    "FactBundle",
    "ScorecardRow",
    "PivotKey",
    "AnomalyCheck",
    "AnomalyStatus",
    "Status",
    "TrendDirection",
    # 정규화
    "normalize_date",
    "normalize_id",
    "safe_number",
    "normalize_sales",
    "normalize_inventory",
    "normalize_reviews",
    "normalize_locations",
    "normalize_tables",
    # 검증
    "validate_raw_tables",
    "validate_filter_state",
    # 필터
    "calculate_date_bounds",
    "clamp_date_range",
    "previous_period",
    "filter_date_range",
    "filter_by_values",
    "filter_by_locations",
    "resolve_location_selection",
    "filter_facts",
]
