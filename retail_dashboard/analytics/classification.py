"""매장 스코어카드 분류 엔진.

현재 코호트(필터된 매장 집합)의 분위수를 기준으로 각 매장에
top / attention / ok 상태와 사람이 읽을 수 있는 사유 목록을 부여합니다.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional, Sequence

import pandas as pd

from ..common.performance import measure_time
from ..core.config import CONFIG, DashboardConfig
from ..domain.models import Location, ScorecardRow, Status
from .anomaly import cohort_trend

logger = logging.getLogger(__name__)

GENERIC_OK_REASON = "All metrics within normal range"


@dataclass(frozen=True)
class CohortThresholds:
    """
    코호트 분위수 기준값.

    분위수는 오름차순 정렬 리스트의 ``floor(n * q)`` 인덱스 값입니다.
    코호트가 작으면(n < 4) p25와 p75가 같은 인덱스로 겹칠 수 있으며,
    이 단순화는 의도적으로 그대로 유지합니다.
    """

    p25_revenue: float
    p75_revenue: float
    p75_waste: float
    median_rating: float
    size: int


def _money(value: float) -> str:
    return f"${value:,.0f}"


def _stars(value: float) -> str:
    return f"{value:.1f} ★"


def _quantile_at(values: Sequence[float], q: float) -> float:
    ordered = sorted(values)
    index = min(int(math.floor(len(ordered) * q)), len(ordered) - 1)
    return float(ordered[index])


def compute_thresholds(
    totals: pd.DataFrame,
    *,
    config: DashboardConfig = CONFIG,
) -> Optional[CohortThresholds]:
    """
    매장별 집계(location_totals 결과)로부터 코호트 기준값을 계산합니다.

    Returns:
        CohortThresholds. 코호트가 비어 있으면 None.
    """
    if totals is None or totals.empty:
        return None

    cfg = config.classification
    revenues = totals["total_revenue"].astype(float).tolist()
    wastes = totals["total_waste"].astype(float).tolist()
    ratings = totals["avg_rating"].astype(float).tolist()

    return CohortThresholds(
        p25_revenue=_quantile_at(revenues, cfg.bottom_quantile),
        p75_revenue=_quantile_at(revenues, cfg.top_quantile),
        p75_waste=_quantile_at(wastes, cfg.waste_quantile),
        median_rating=_quantile_at(ratings, cfg.median_quantile),
        size=len(revenues),
    )


def classify(
    revenue: float,
    rating: float,
    waste: float,
    thresholds: CohortThresholds,
    *,
    config: DashboardConfig = CONFIG,
) -> tuple:
    """
    단일 매장의 상태와 사유를 판정합니다.

    판정 순서 (먼저 일치하는 규칙이 적용됨):
    1. top: 매출 >= p75 AND 평점 >= 4.0
    2. attention: 매출 <= p25 OR 평점 < 3.5 OR 폐기 >= p75
       (조건마다 사유 1개, 각 사유에 사용된 임계값 포함)
    3. ok: 충족된 긍정 조건마다 사유, 하나도 없으면 일반 사유

    top 조건과 attention 조건을 동시에 만족하면 항상 top입니다.

    Returns:
        (Status, 사유 튜플)
    """
    cfg = config.classification
    t = thresholds

    if revenue >= t.p75_revenue and rating >= cfg.top_rating:
        return Status.TOP, (
            f"Top 25% revenue (≥ {_money(t.p75_revenue)})",
            f"Strong rating ({_stars(rating)})",
        )

    reasons = []
    if revenue <= t.p25_revenue:
        reasons.append(f"Bottom 25% revenue (≤ {_money(t.p25_revenue)})")
    if rating < cfg.attention_rating:
        reasons.append(f"Low rating ({_stars(rating)} < {cfg.attention_rating:.1f})")
    if waste >= t.p75_waste:
        reasons.append(f"High waste: top 25% (≥ {_money(t.p75_waste)})")
    if reasons:
        return Status.ATTENTION, tuple(reasons)

    ok_reasons = []
    if t.p25_revenue < revenue < t.p75_revenue:
        ok_reasons.append("Revenue in middle 50%")
    if rating >= t.median_rating:
        ok_reasons.append(f"Rating above median ({_stars(t.median_rating)})")
    if waste < t.p75_waste:
        ok_reasons.append("Waste below threshold")
    return Status.OK, tuple(ok_reasons) if ok_reasons else (GENERIC_OK_REASON,)


@measure_time
def build_scorecard(
    totals: pd.DataFrame,
    *,
    config: DashboardConfig = CONFIG,
) -> list:
    """
    코호트 전체의 스코어카드 행을 생성합니다.

    각 행에는 상태/사유와 함께 코호트 평균 매출 대비 추세가 포함됩니다.

    Args:
        totals: location_totals 결과

    Returns:
        매출 내림차순(동률이면 이름순)으로 정렬된 ScorecardRow 리스트.
        코호트가 비어 있으면 빈 리스트.
    """
    thresholds = compute_thresholds(totals, config=config)
    if thresholds is None:
        return []

    mean_revenue = float(totals["total_revenue"].astype(float).mean())
    rows = []
    for record in totals.to_dict(orient="records"):
        revenue = float(record["total_revenue"])
        rating = float(record["avg_rating"])
        waste = float(record["total_waste"])
        status, reasons = classify(revenue, rating, waste, thresholds, config=config)
        location = Location.from_record(record)
        rows.append(
            ScorecardRow(
                location_id=location.location_id,
                name=location.name,
                manager=location.manager,
                seating_capacity=location.seating_capacity,
                total_revenue=revenue,
                total_orders=float(record.get("total_orders", 0.0)),
                avg_rating=rating,
                review_count=int(record.get("review_count", 0)),
                total_waste=waste,
                waste_rate=float(record.get("waste_rate", 0.0)),
                revenue_per_seat=float(record.get("revenue_per_seat", 0.0)),
                status=status,
                reasons=reasons,
                trend=cohort_trend(revenue, mean_revenue, config=config.trend),
            )
        )

    rows.sort(key=lambda r: (-r.total_revenue, r.name))
    logger.debug(
        "Scorecard built: %s rows (p25=%.2f, p75=%.2f, p75 waste=%.2f)",
        len(rows),
        thresholds.p25_revenue,
        thresholds.p75_revenue,
        thresholds.p75_waste,
    )
    return rows


def scorecard_records(rows: Sequence[ScorecardRow]) -> list:
    """내보내기 협력자용 평면 dict 리스트."""
    return [row.to_record() for row in rows]


def count_by_status(rows: Sequence[ScorecardRow]) -> dict:
    """상태별 매장 수 (요약 카드의 "주의 필요 매장 수" 등)."""
    counts = {status.value: 0 for status in Status}
    for row in rows:
        counts[row.status.value] += 1
    return counts
