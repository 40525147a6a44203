"""
파생 그래프 / DashboardView 통합 테스트
"""
from __future__ import annotations

import dataclasses

import pandas as pd
import pytest

from retail_dashboard.core.config import ChartConfig
from retail_dashboard.domain.exceptions import ValidationError
from retail_dashboard.domain.models import FilterState, Selection
from retail_dashboard.pipeline import DashboardEngine, build_dashboard


def test_build_dashboard_view(raw_tables):
    """DashboardView - 전체 기간 평면 결과"""
    view = build_dashboard(raw_tables, FilterState())

    assert (view.start, view.end) == ("2024-01-01", "2024-01-04")
    assert view.kpis["total_revenue"] == 2600.0
    assert view.kpis["revenue_delta_label"] == "n/a"
    assert [r["key"] for r in view.revenue_trend] == [
        "2024-01-01",
        "2024-01-02",
        "2024-01-03",
        "2024-01-04",
    ]
    assert view.revenue_trend[0]["total"] == 650.0
    assert [r["key"] for r in view.order_type_mix] == ["dine-in", "takeout", "delivery"]
    assert [r["location_id"] for r in view.scorecard] == ["1", "2", "3"]
    assert view.status_counts == {"top": 1, "attention": 2, "ok": 0}
    assert view.revenue_anomaly["status"] == "undetermined"
    assert view.revenue_direction["direction"] == "flat"
    assert set(view.location_anomalies) == {"1", "2", "3"}
    assert view.waste_by_location[0]["location_id"] == "2"
    assert view.waste_trend == [{"key": "2024-01-02", "waste_cost": 90.0}]
    assert view.waste_by_location[0]["waste_trend"] == "stable"
    assert view.rating_distribution == [
        {"star": 1, "count": 0},
        {"star": 2, "count": 0},
        {"star": 3, "count": 1},
        {"star": 4, "count": 2},
        {"star": 5, "count": 1},
    ]
    assert view.comparison == []


def test_build_dashboard_with_comparison(raw_tables):
    """DashboardView - 비교 시계열"""
    view = build_dashboard(raw_tables, FilterState(), compare_ids=["1", "3"])

    assert view.comparison[0] == {"key": "2024-01-01", "Downtown": 400.0, "Uptown": 50.0}
    assert [r["key"] for r in view.order_type_comparison] == ["dine-in", "takeout", "delivery"]
    assert view.category_comparison[0]["Downtown|dairy"] == 20.0


def test_build_dashboard_previous_period_delta(raw_tables):
    """DashboardView - 직전 기간 대비 증감률"""
    view = build_dashboard(raw_tables, FilterState(start="2024-01-03", end="2024-01-04"))

    assert view.kpis["revenue_delta"] == pytest.approx(0.0)
    assert view.kpis["revenue_delta_label"] == "+0.0%"


def test_build_dashboard_rejects_inverted_range(raw_tables):
    """역전된 기간은 ValidationError"""
    with pytest.raises(ValidationError):
        build_dashboard(raw_tables, FilterState(start="2024-01-04", end="2024-01-01"))


def test_build_dashboard_rejects_missing_columns(raw_tables):
    """필수 컬럼 누락은 ValidationError"""
    raw_tables = dict(raw_tables)
    raw_tables["DAILY_SALES"] = pd.DataFrame({"LOCATION_ID": [1], "REVENUE": [10]})

    with pytest.raises(ValidationError):
        build_dashboard(raw_tables)


def test_build_dashboard_empty_input():
    """빈 입력 - 예외 없이 빈 결과"""
    view = build_dashboard({})

    assert view.start is None
    assert view.scorecard == []
    assert view.revenue_trend == []
    assert view.kpis["total_revenue"] == 0.0


# ============================================================
# 메모이제이션
# ============================================================

def test_engine_reuses_cached_nodes(raw_tables):
    """같은 내용의 입력을 다시 넣으면 재계산 없음"""
    engine = DashboardEngine()
    engine.update(raw_tables, FilterState())
    engine.view()

    engine.update({k: v.copy() for k, v in raw_tables.items()}, FilterState())
    engine.view()

    assert engine.computations("normalized") == 1
    assert engine.computations("scorecard") == 1


def test_engine_smoothing_toggle_recomputes_only_trend(raw_tables):
    """이동 평균 토글은 추세 노드만 재계산"""
    engine = DashboardEngine()
    engine.update(raw_tables, FilterState())
    before = engine.view()

    engine.update(chart=ChartConfig(smoothing=True, moving_average_window=2))
    after = engine.view()

    assert engine.computations("revenue_trend") == 2
    assert engine.computations("bundle") == 1
    assert engine.computations("scorecard") == 1
    assert [r["total"] for r in after.revenue_trend] == [r["total"] for r in before.revenue_trend]
    assert after.scorecard == before.scorecard


def test_engine_filter_change_recomputes(raw_tables):
    """필터 변경 시 하위 노드 재계산"""
    engine = DashboardEngine()
    engine.update(raw_tables, FilterState())
    engine.view()

    state = dataclasses.replace(FilterState(), cities=Selection.of(["Dallas"]))
    engine.update(state=state)
    view = engine.view()

    assert engine.computations("normalized") == 1
    assert engine.computations("bundle") == 2
    assert [r["location_id"] for r in view.scorecard] == ["3"]
    assert view.scorecard[0]["status"] == "top"
