"""
스코어카드 분류 테스트
"""
from __future__ import annotations

import pandas as pd
import pytest

from retail_dashboard.analytics.aggregation import location_totals
from retail_dashboard.analytics.classification import (
    CohortThresholds,
    build_scorecard,
    classify,
    compute_thresholds,
    count_by_status,
    scorecard_records,
)
from retail_dashboard.domain.filters import filter_facts
from retail_dashboard.domain.models import FilterState, Status, TrendDirection


def _totals(rows):
    return pd.DataFrame(
        rows,
        columns=["location_id", "name", "total_revenue", "avg_rating", "total_waste"],
    )


@pytest.fixture
def thresholds():
    return CohortThresholds(
        p25_revenue=1000.0,
        p75_revenue=5000.0,
        p75_waste=300.0,
        median_rating=4.2,
        size=8,
    )


# ============================================================
# 분위수
# ============================================================

def test_compute_thresholds_floor_index():
    """분위수 - 정렬 리스트의 floor(n*q) 인덱스"""
    totals = _totals([
        (str(i), f"L{i}", rev, rating, waste)
        for i, (rev, rating, waste) in enumerate(
            [(100, 3.0, 10), (200, 4.0, 20), (300, 4.5, 30), (400, 5.0, 40), (500, 3.5, 50)]
        )
    ])

    t = compute_thresholds(totals)

    assert t.p25_revenue == 200.0
    assert t.p75_revenue == 400.0
    assert t.p75_waste == 40.0
    assert t.median_rating == 4.0
    assert t.size == 5


def test_compute_thresholds_empty_cohort():
    """빈 코호트는 None"""
    assert compute_thresholds(_totals([])) is None
    assert build_scorecard(_totals([])) == []


# ============================================================
# 상태 판정
# ============================================================

def test_top_wins_over_attention_at_boundaries(thresholds):
    """top 우선 - 매출 == p75, 평점 == 4.0, 폐기 == p75 이면 top"""
    status, reasons = classify(5000.0, 4.0, 300.0, thresholds)

    assert status is Status.TOP
    assert reasons == ("Top 25% revenue (≥ $5,000)", "Strong rating (4.0 ★)")


def test_attention_reasons_one_per_condition(thresholds):
    """attention - 조건마다 사유 1개, 임계값 포함"""
    status, reasons = classify(800.0, 3.2, 450.0, thresholds)

    assert status is Status.ATTENTION
    assert reasons == (
        "Bottom 25% revenue (≤ $1,000)",
        "Low rating (3.2 ★ < 3.5)",
        "High waste: top 25% (≥ $300)",
    )


def test_high_revenue_low_rating_is_attention(thresholds):
    """매출 상위라도 평점이 낮으면 attention"""
    status, reasons = classify(9000.0, 3.0, 10.0, thresholds)

    assert status is Status.ATTENTION
    assert reasons == ("Low rating (3.0 ★ < 3.5)",)


def test_ok_reasons(thresholds):
    """ok - 충족된 긍정 조건마다 사유"""
    status, reasons = classify(3000.0, 4.5, 100.0, thresholds)

    assert status is Status.OK
    assert reasons == (
        "Revenue in middle 50%",
        "Rating above median (4.2 ★)",
        "Waste below threshold",
    )


def test_revenue_at_p75_without_top_rating():
    """매출 == p75 이지만 평점 < 4.0 → top 아님, 중간 50%에도 해당하지 않음"""
    t = CohortThresholds(p25_revenue=50.0, p75_revenue=100.0, p75_waste=20.0, median_rating=4.5, size=4)

    status, reasons = classify(100.0, 3.8, 10.0, t)

    assert status is Status.OK
    assert reasons == ("Waste below threshold",)


# ============================================================
# 스코어카드
# ============================================================

def test_build_scorecard(normalized):
    """스코어카드 - 상태, 사유, 정렬, 코호트 추세"""
    bundle = filter_facts(normalized, FilterState())

    rows = build_scorecard(location_totals(bundle))

    assert [r.location_id for r in rows] == ["1", "2", "3"]
    by_id = {r.location_id: r for r in rows}

    assert by_id["1"].status is Status.TOP
    assert by_id["1"].reasons == ("Top 25% revenue (≥ $1,600)", "Strong rating (4.5 ★)")
    assert by_id["1"].trend is TrendDirection.UP

    assert by_id["2"].status is Status.ATTENTION
    assert by_id["2"].reasons == ("Low rating (3.0 ★ < 3.5)", "High waste: top 25% (≥ $60)")
    assert by_id["2"].trend is TrendDirection.FLAT

    assert by_id["3"].status is Status.ATTENTION
    assert by_id["3"].reasons == ("Bottom 25% revenue (≤ $200)",)
    assert by_id["3"].trend is TrendDirection.DOWN

    assert count_by_status(rows) == {"top": 1, "attention": 2, "ok": 0}


def test_scorecard_records_are_plain(normalized):
    """내보내기 레코드 - 평면 dict"""
    bundle = filter_facts(normalized, FilterState())

    records = scorecard_records(build_scorecard(location_totals(bundle)))

    assert records[0]["status"] == "top"
    assert records[0]["trend"] == "up"
    assert isinstance(records[0]["reasons"], list)
    assert records[0]["name"] == "Downtown"
    assert records[0]["manager"] == "Kim"
