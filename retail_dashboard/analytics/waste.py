"""폐기 / 재고 지표."""

from __future__ import annotations

import logging
from typing import Optional

import numpy as np
import pandas as pd

from ..core.config import CONFIG, DashboardConfig
from ..domain.models import FactBundle, TrendDirection
from .aggregation import aggregate, location_totals
from .anomaly import half_period_trend

logger = logging.getLogger(__name__)

_INVENTORY_FIELDS = ["units_received", "units_used", "units_wasted", "waste_cost"]

# 폐기량 증가(UP)는 악화
_WASTE_TREND_LABELS = {
    TrendDirection.UP: "worsening",
    TrendDirection.DOWN: "improving",
    TrendDirection.FLAT: "stable",
}


def _with_waste_rate(frame: pd.DataFrame) -> pd.DataFrame:
    received = frame["units_received"].astype(float)
    frame["waste_rate"] = np.where(
        received > 0, frame["units_wasted"].astype(float) / received.where(received > 0, 1) * 100, 0.0
    )
    return frame


def location_waste_trends(inventory: Optional[pd.DataFrame], *, config: DashboardConfig = CONFIG) -> dict:
    """
    매장별 폐기 추세 (improving / worsening / stable).

    매장의 일별 폐기 수량을 날짜순으로 나눠 전반부 대비 후반부 변화율이
    ``waste.trend_pct``를 초과하면 worsening, 미만이면 improving입니다.
    전반부 폐기량이 0이면 stable입니다.
    """
    daily = aggregate(inventory, ["location_id", "date"], ["units_wasted"])
    trends = {}
    for location_id, group in daily.groupby("location_id", sort=False):
        direction, _ = half_period_trend(group["units_wasted"], threshold_pct=config.waste.trend_pct)
        trends[str(location_id)] = _WASTE_TREND_LABELS[direction]
    return trends


def waste_by_location(bundle: FactBundle, *, config: DashboardConfig = CONFIG) -> pd.DataFrame:
    """
    매장별 폐기 현황.

    컬럼: location_id, name, waste_cost, units_wasted, units_received,
    waste_rate, above_threshold (폐기율이 임계값 초과),
    waste_trend (``location_waste_trends`` 결과, 폐기 기록이 없으면 stable)

    Returns:
        폐기 비용 내림차순 DataFrame
    """
    totals = location_totals(bundle)
    columns = [
        "location_id",
        "name",
        "waste_cost",
        "units_wasted",
        "units_received",
        "waste_rate",
        "above_threshold",
        "waste_trend",
    ]
    if totals.empty:
        return pd.DataFrame(columns=columns)

    out = totals.rename(columns={"total_waste": "waste_cost"})
    out["above_threshold"] = out["waste_rate"] > config.waste.rate_threshold_pct
    trends = location_waste_trends(bundle.inventory, config=config)
    out["waste_trend"] = out["location_id"].astype(str).map(trends).fillna("stable")
    out = out.sort_values("waste_cost", ascending=False, kind="mergesort").reset_index(drop=True)

    flagged = int(out["above_threshold"].sum())
    if flagged:
        logger.info(f"{flagged} locations above waste threshold ({config.waste.rate_threshold_pct}%)")
    return out[columns]


def inventory_summary(inventory: Optional[pd.DataFrame]) -> pd.DataFrame:
    """
    카테고리별 입고/사용/폐기 수량, 폐기 비용, 폐기율.

    카테고리는 정규 순서로 정렬됩니다.
    """
    agg = aggregate(inventory, "category", _INVENTORY_FIELDS)
    if agg.empty:
        return pd.DataFrame(columns=["category", *_INVENTORY_FIELDS, "waste_rate"])
    return _with_waste_rate(agg)


def waste_by_category(inventory: Optional[pd.DataFrame]) -> pd.DataFrame:
    """카테고리별 폐기 비용과 폐기 수량 (정규 순서)."""
    return aggregate(inventory, "category", ["waste_cost", "units_wasted"])


def waste_trend(inventory: Optional[pd.DataFrame]) -> pd.DataFrame:
    """일별 폐기 비용 (``date``, ``waste_cost``)."""
    return aggregate(inventory, "date", ["waste_cost"])
