"""End-to-end derivation graph for the retail dashboard."""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Sequence

import pandas as pd

from .analytics.aggregation import daily_totals, location_totals, order_type_mix, rating_distribution
from .analytics.anomaly import detect_drop_anomaly, half_period_trend
from .analytics.classification import build_scorecard, count_by_status, scorecard_records
from .analytics.comparison import compare_by_dimension, compare_locations, compare_order_types, order_type_trend
from .analytics.metrics import smooth_frame, summarize_kpis
from .analytics.waste import inventory_summary, waste_by_category, waste_by_location, waste_trend
from .common.data_utils import to_chart_records, to_plain_records
from .common.memo import DerivationGraph
from .common.performance import measure_time_context
from .core.config import CONFIG, ChartConfig, DashboardConfig
from .domain.filters import calculate_date_bounds, filter_date_range, filter_facts, previous_period
from .domain.models import FactBundle, FilterState
from .domain.normalization import normalize_tables, table_kind
from .domain.validation import validate_raw_tables

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DashboardView:
    """표시 계층에 전달되는 평면 결과 묶음."""

    start: Optional[str]
    end: Optional[str]
    kpis: dict
    revenue_trend: list
    revenue_direction: dict
    revenue_anomaly: dict
    order_type_mix: list
    order_type_trend: list
    scorecard: list
    status_counts: dict
    location_anomalies: dict
    waste_by_location: list
    waste_by_category: list
    inventory_summary: list
    waste_trend: list
    rating_distribution: list
    comparison: list = field(default_factory=list)
    category_comparison: list = field(default_factory=list)
    order_type_comparison: list = field(default_factory=list)


# ========================================
# 노드 함수
# ========================================


def _normalize(raw: Mapping[str, Any]) -> dict:
    short = {}
    for name, frame in raw.items():
        kind = table_kind(name)
        if kind is not None:
            short[kind] = frame
    validate_raw_tables(short)
    return normalize_tables(short)


def _previous_sales(normalized: Mapping[str, pd.DataFrame], state: FilterState, bundle: FactBundle) -> Optional[pd.DataFrame]:
    tables = (normalized["sales"], normalized["inventory"], normalized["reviews"])
    previous = previous_period(bundle.start, bundle.end, calculate_date_bounds(*tables))
    if previous is None:
        return None
    prev_state = dataclasses.replace(state, start=previous[0], end=previous[1])
    return filter_facts(normalized, prev_state).sales


def _revenue_trend(daily: pd.DataFrame, chart: ChartConfig) -> pd.DataFrame:
    if chart.smoothing and not daily.empty:
        return smooth_frame(daily, ["total"], chart.moving_average_window)
    return daily


def _location_anomalies(bundle: FactBundle, config: DashboardConfig) -> dict:
    if bundle.sales.empty:
        return {}
    result = {}
    for location_id, frame in bundle.sales.groupby(bundle.sales["location_id"].astype(str), sort=True):
        series = daily_totals(frame, "revenue")["total"]
        result[location_id] = detect_drop_anomaly(series, config=config.anomaly)
    flagged = [loc for loc, check in result.items() if check.is_anomaly]
    if flagged:
        logger.info(f"Revenue drop detected for locations: {flagged}")
    return result


def _comparison_sales(normalized: Mapping[str, pd.DataFrame], bundle: FactBundle) -> pd.DataFrame:
    return filter_date_range(normalized["sales"], bundle.start, bundle.end)


def _comparison_inventory(normalized: Mapping[str, pd.DataFrame], bundle: FactBundle) -> pd.DataFrame:
    return filter_date_range(normalized["inventory"], bundle.start, bundle.end)


class DashboardEngine:
    """
    대시보드 파생 값의 메모이즈된 의존성 그래프.

    소스:
        raw: 원본 테이블 매핑 (``DAILY_SALES`` 등 또는 ``sales`` 등)
        state: FilterState
        compare_ids: 비교할 매장 ID 목록
        chart: ChartConfig (이동 평균 토글)

    각 노드는 상위 입력의 내용이 바뀐 경우에만 다시 계산됩니다.
    예를 들어 이동 평균 토글만 바뀌면 ``revenue_trend``만 재계산되고
    필터/집계/스코어카드는 캐시를 사용합니다.

    Examples:
        >>> engine = DashboardEngine()
        >>> engine.update(raw_tables, FilterState(start="2024-01-01"))
        >>> view = engine.view()
        >>> view.scorecard[0]["status"]
        'top'
    """

    def __init__(self, config: DashboardConfig = CONFIG) -> None:
        self.config = config
        self.graph = DerivationGraph()
        self._register()
        self.graph.set_sources(raw={}, state=FilterState(), compare_ids=(), chart=config.chart)

    def _register(self) -> None:
        cfg = self.config
        g = self.graph

        g.node("normalized", _normalize, deps=["raw"])
        g.node("bundle", filter_facts, deps=["normalized", "state"])
        g.node("previous_sales", _previous_sales, deps=["normalized", "state", "bundle"])

        g.node("totals", location_totals, deps=["bundle"])
        g.node("scorecard", lambda totals: build_scorecard(totals, config=cfg), deps=["totals"])
        g.node("kpis", lambda b, prev: summarize_kpis(b, prev), deps=["bundle", "previous_sales"])

        g.node("daily_revenue", lambda b: daily_totals(b.sales, "revenue"), deps=["bundle"])
        g.node("revenue_trend", _revenue_trend, deps=["daily_revenue", "chart"])
        g.node(
            "revenue_anomaly",
            lambda daily: detect_drop_anomaly(daily["total"] if not daily.empty else [], config=cfg.anomaly),
            deps=["daily_revenue"],
        )
        g.node(
            "revenue_direction",
            lambda daily: half_period_trend(daily["total"] if not daily.empty else [], config=cfg.trend),
            deps=["daily_revenue"],
        )
        g.node("location_anomalies", lambda b: _location_anomalies(b, cfg), deps=["bundle"])

        g.node("order_type_mix", lambda b: order_type_mix(b.sales), deps=["bundle"])
        g.node("order_type_trend", lambda b: order_type_trend(b.sales), deps=["bundle"])

        g.node("waste_by_location", lambda b: waste_by_location(b, config=cfg), deps=["bundle"])
        g.node("waste_by_category", lambda b: waste_by_category(b.inventory), deps=["bundle"])
        g.node("inventory_summary", lambda b: inventory_summary(b.inventory), deps=["bundle"])
        g.node("waste_trend", lambda b: waste_trend(b.inventory), deps=["bundle"])
        g.node("rating_distribution", lambda b: rating_distribution(b.reviews), deps=["bundle"])

        g.node("comparison_sales", _comparison_sales, deps=["normalized", "bundle"])
        g.node("comparison_inventory", _comparison_inventory, deps=["normalized", "bundle"])
        g.node(
            "comparison",
            lambda sales, n, ids: compare_locations(sales, n["locations"], list(ids), config=cfg),
            deps=["comparison_sales", "normalized", "compare_ids"],
        )
        g.node(
            "category_comparison",
            lambda inv, n, ids: compare_by_dimension(
                inv, n["locations"], list(ids), "category", "waste_cost", config=cfg
            ),
            deps=["comparison_inventory", "normalized", "compare_ids"],
        )
        g.node(
            "order_type_comparison",
            lambda sales, n, ids: compare_order_types(sales, n["locations"], list(ids), config=cfg),
            deps=["comparison_sales", "normalized", "compare_ids"],
        )

    def update(
        self,
        raw_tables: Optional[Mapping[str, pd.DataFrame]] = None,
        state: Optional[FilterState] = None,
        *,
        compare_ids: Optional[Sequence[str]] = None,
        chart: Optional[ChartConfig] = None,
    ) -> None:
        """전달된 소스만 갱신합니다. 내용이 같으면 하위 노드는 캐시를 유지합니다."""
        sources: dict = {}
        if raw_tables is not None:
            sources["raw"] = dict(raw_tables)
        if state is not None:
            sources["state"] = state
        if compare_ids is not None:
            sources["compare_ids"] = tuple(str(v) for v in compare_ids)
        if chart is not None:
            sources["chart"] = chart
        self.graph.set_sources(**sources)

    def get(self, name: str) -> Any:
        return self.graph.get(name)

    def computations(self, name: str) -> int:
        return self.graph.computations(name)

    def view(self) -> DashboardView:
        """
        현재 소스로 DashboardView를 생성합니다.

        Raises:
            ValidationError: 원본 테이블 구조 또는 필터 상태가 잘못된 경우
        """
        with measure_time_context("Dashboard view"):
            g = self.graph
            bundle: FactBundle = g.get("bundle")
            direction, pct = g.get("revenue_direction")
            scorecard = g.get("scorecard")

            view = DashboardView(
                start=bundle.start,
                end=bundle.end,
                kpis=g.get("kpis").to_record(),
                revenue_trend=to_chart_records(g.get("revenue_trend"), key="date"),
                revenue_direction={"direction": direction.value, "label": direction.label, "pct": pct},
                revenue_anomaly=g.get("revenue_anomaly").to_record(),
                order_type_mix=to_chart_records(g.get("order_type_mix"), key="order_type", sort=False),
                order_type_trend=to_chart_records(g.get("order_type_trend"), key="date"),
                scorecard=scorecard_records(scorecard),
                status_counts=count_by_status(scorecard),
                location_anomalies={
                    loc: check.to_record() for loc, check in g.get("location_anomalies").items()
                },
                waste_by_location=to_plain_records(g.get("waste_by_location")),
                waste_by_category=to_chart_records(g.get("waste_by_category"), key="category", sort=False),
                inventory_summary=to_plain_records(g.get("inventory_summary")),
                waste_trend=to_chart_records(g.get("waste_trend"), key="date"),
                rating_distribution=to_plain_records(g.get("rating_distribution")),
                comparison=to_chart_records(g.get("comparison"), key="date"),
                category_comparison=to_chart_records(g.get("category_comparison"), key="date"),
                order_type_comparison=to_chart_records(
                    g.get("order_type_comparison"), key="order_type", sort=False
                ),
            )

        logger.debug(
            f"View built for {view.start}..{view.end}: {len(view.scorecard)} locations, "
            f"{len(view.revenue_trend)} trend points"
        )
        return view


def build_dashboard(
    raw_tables: Mapping[str, pd.DataFrame],
    filter_state: Optional[FilterState] = None,
    *,
    compare_ids: Sequence[str] = (),
    config: DashboardConfig = CONFIG,
) -> DashboardView:
    """원본 테이블과 필터 상태로부터 DashboardView를 한 번에 생성합니다."""
    engine = DashboardEngine(config)
    engine.update(raw_tables, filter_state or FilterState(), compare_ids=compare_ids)
    return engine.view()
