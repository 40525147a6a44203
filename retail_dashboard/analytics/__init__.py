"""
분석 계층 퍼블릭 API

집계, 지표 파생, 분류, 비교, 이상 감지, 폐기 지표 함수를 재수출합니다.
"""
from __future__ import annotations

from .aggregation import (
    aggregate,
    daily_totals,
    location_totals,
    order_type_mix,
    rating_distribution,
    sort_by_keys,
)
from .anomaly import cohort_trend, detect_drop_anomaly, half_period_trend
from .classification import (
    CohortThresholds,
    build_scorecard,
    classify,
    compute_thresholds,
    count_by_status,
    scorecard_records,
)
from .comparison import (
    compare_by_dimension,
    compare_locations,
    compare_order_types,
    order_type_trend,
    pivot_series,
)
from .metrics import (
    KpiSummary,
    format_delta,
    moving_average,
    percent_change,
    revenue_per_seat,
    smooth_frame,
    summarize_kpis,
    waste_rate,
)
from .waste import (
    inventory_summary,
    location_waste_trends,
    waste_by_category,
    waste_by_location,
    waste_trend,
)

__all__ = [
    # 집계
    "aggregate",
    "daily_totals",
    "location_totals",
    "order_type_mix",
    "rating_distribution",
    "sort_by_keys",
    # 지표
    "waste_rate",
    "revenue_per_seat",
    "percent_change",
    "format_delta",
    "moving_average",
    "smooth_frame",
    "KpiSummary",
    "summarize_kpis",
    # 분류
    "CohortThresholds",
    "compute_thresholds",
    "classify",
    "build_scorecard",
    "scorecard_records",
    "count_by_status",
    # 비교
    "pivot_series",
    "compare_locations",
    "compare_by_dimension",
    "compare_order_types",
    "order_type_trend",
    # 이상 감지 / 추세
    "cohort_trend",
    "detect_drop_anomaly",
    "half_period_trend",
    # 폐기
    "waste_by_location",
    "location_waste_trends",
    "waste_by_category",
    "inventory_summary",
    "waste_trend",
]
