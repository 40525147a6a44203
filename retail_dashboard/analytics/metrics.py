"""지표 파생 함수들.

집계 결과로부터 비율, 좌석당 매출, 기간 대비 증감률, 이동 평균과
KPI 요약을 계산합니다. 모든 함수는 순수 함수이며, 계산할 수 없는
경우에도 예외 대신 센티널 값(0 또는 None)을 반환합니다.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

import pandas as pd

from ..common.data_utils import series_values
from ..domain.models import FactBundle


def waste_rate(wasted: float, received: float) -> float:
    """폐기율(%) = wasted / received * 100. 입고가 0 이하면 0."""
    if received > 0:
        return wasted / received * 100
    return 0.0


def revenue_per_seat(revenue: float, seats: float) -> float:
    """좌석당 매출. 좌석 수가 1 미만이면 1로 간주합니다."""
    return revenue / max(seats, 1)


def percent_change(current: float, previous: float) -> Optional[float]:
    """
    이전 값 대비 증감률(%)을 계산합니다.

    이전 값이 0 이하이면 계산할 수 없으므로 None을 반환합니다.

    Examples:
        >>> percent_change(110, 100)
        10.0
        >>> percent_change(5, 0) is None
        True
    """
    if previous > 0:
        return (current - previous) / previous * 100
    return None


def format_delta(delta: Optional[float]) -> str:
    """KPI 카드용 증감 라벨 (``"+12.3%"`` / ``"-4.0%"`` / ``"n/a"``)."""
    if delta is None:
        return "n/a"
    sign = "+" if delta >= 0 else ""
    return f"{sign}{delta:.1f}%"


def moving_average(series: Sequence[float] | pd.Series, k: int) -> list[float]:
    """
    부분 윈도우 이동 평균을 계산합니다.

    인덱스 i의 값은 ``series[max(0, i-k+1)..i]``의 평균입니다. 앞쪽 인덱스는
    0으로 채우지 않고 더 짧은 윈도우를 사용하므로 출력 길이는 입력과 같습니다.

    Args:
        series: 숫자 시퀀스 (비유한/해석 불가 값은 0으로 간주)
        k: 윈도우 크기 (1 미만이면 1)

    Returns:
        입력과 같은 길이의 float 리스트
    """
    values = series_values(series)
    if not values:
        return []
    window = int(max(1, k))
    rolled = pd.Series(values, dtype=float).rolling(window=window, min_periods=1).mean()
    return [float(v) for v in rolled]


def smooth_frame(frame: pd.DataFrame, columns: Sequence[str], k: int) -> pd.DataFrame:
    """
    이미 키 순으로 정렬된 DataFrame의 지정 컬럼에 이동 평균을 적용합니다.

    원본은 변경하지 않고 새 DataFrame을 반환합니다.
    """
    out = frame.copy()
    for col in columns:
        if col in out.columns:
            out[col] = moving_average(out[col].tolist(), k)
    return out


# ========================================
# KPI 요약
# ========================================


@dataclass(frozen=True)
class KpiSummary:
    """요약 카드용 KPI 묶음."""

    total_revenue: float
    total_orders: float
    avg_order_value: float
    avg_rating: float
    review_count: int
    total_waste_cost: float
    waste_rate: float
    revenue_delta: Optional[float] = None

    @property
    def revenue_delta_label(self) -> str:
        return format_delta(self.revenue_delta)

    def to_record(self) -> dict:
        return {
            "total_revenue": self.total_revenue,
            "total_orders": self.total_orders,
            "avg_order_value": self.avg_order_value,
            "avg_rating": self.avg_rating,
            "review_count": self.review_count,
            "total_waste_cost": self.total_waste_cost,
            "waste_rate": self.waste_rate,
            "revenue_delta": self.revenue_delta,
            "revenue_delta_label": self.revenue_delta_label,
        }


def _column_sum(frame: pd.DataFrame, column: str) -> float:
    if frame is None or frame.empty or column not in frame.columns:
        return 0.0
    return float(pd.to_numeric(frame[column], errors="coerce").fillna(0).sum())


def summarize_kpis(bundle: FactBundle, previous_sales: Optional[pd.DataFrame] = None) -> KpiSummary:
    """
    필터된 팩트로부터 KPI 요약을 계산합니다.

    Args:
        bundle: 현재 기간 팩트 묶음
        previous_sales: 직전 동일 길이 기간의 매출 팩트 (None이면 증감률 n/a)

    Returns:
        KpiSummary. 빈 입력이면 모든 값이 0이고 증감률은 None.
    """
    total_revenue = _column_sum(bundle.sales, "revenue")
    total_orders = _column_sum(bundle.sales, "num_orders")

    review_count = 0 if bundle.reviews.empty else int(len(bundle.reviews))
    avg_rating = _column_sum(bundle.reviews, "rating") / review_count if review_count else 0.0

    received = _column_sum(bundle.inventory, "units_received")
    wasted = _column_sum(bundle.inventory, "units_wasted")

    delta = None
    if previous_sales is not None:
        delta = percent_change(total_revenue, _column_sum(previous_sales, "revenue"))

    return KpiSummary(
        total_revenue=total_revenue,
        total_orders=total_orders,
        avg_order_value=total_revenue / total_orders if total_orders > 0 else 0.0,
        avg_rating=avg_rating,
        review_count=review_count,
        total_waste_cost=_column_sum(bundle.inventory, "waste_cost"),
        waste_rate=waste_rate(wasted, received),
        revenue_delta=delta,
    )
