"""
비교 / 피벗 엔진 테스트
"""
from __future__ import annotations

import pandas as pd
import pytest

from retail_dashboard.analytics.comparison import (
    compare_by_dimension,
    compare_locations,
    compare_order_types,
    order_type_trend,
    pivot_series,
)
from retail_dashboard.common.data_utils import to_chart_records
from retail_dashboard.domain.exceptions import ValidationError
from retail_dashboard.domain.models import PivotKey


@pytest.fixture
def long_sales() -> pd.DataFrame:
    return pd.DataFrame({
        "date": ["2024-01-02", "2024-01-01", "2024-01-03", "2024-01-01"],
        "name": ["A", "A", "B", "A"],
        "revenue": [20.0, 10.0, 5.0, 1.0],
    })


# ============================================================
# pivot_series
# ============================================================

def test_pivot_series_union_of_dates_and_zero_fill(long_sales):
    """피벗 - 날짜 합집합, 누락 값은 0"""
    wide = pivot_series(long_sales, entity="name", value="revenue")

    assert wide["date"].tolist() == ["2024-01-01", "2024-01-02", "2024-01-03"]
    assert list(wide.columns) == ["date", "A", "B"]
    assert wide["A"].tolist() == [11.0, 20.0, 0.0]
    assert wide["B"].tolist() == [0.0, 0.0, 5.0]


def test_pivot_series_completeness(long_sales):
    """피벗 완전성 - 모든 행이 모든 엔티티 컬럼을 가짐 (선택만 되고 데이터 없는 엔티티 포함)"""
    wide = pivot_series(long_sales, entity="name", value="revenue", entities=["B", "A", "C"])

    assert list(wide.columns) == ["date", "B", "A", "C"]
    assert not wide.isna().any().any()
    assert wide["C"].tolist() == [0.0, 0.0, 0.0]


def test_pivot_series_composite_keys():
    """피벗 - entity|sub 복합 컬럼"""
    frame = pd.DataFrame({
        "date": ["2024-01-01", "2024-01-01", "2024-01-02"],
        "name": ["A", "A", "B"],
        "category": ["produce", "dairy", "dairy"],
        "waste_cost": [1.0, 2.0, 3.0],
    })

    wide = pivot_series(frame, entity="name", value="waste_cost", sub="category")

    assert list(wide.columns) == ["date", "A|dairy", "A|produce", "B|dairy", "B|produce"]
    assert wide.loc[wide["date"] == "2024-01-01", "A|dairy"].item() == 2.0
    assert wide.loc[wide["date"] == "2024-01-01", "B|dairy"].item() == 0.0
    assert PivotKey.parse(wide.columns[3]) == PivotKey("B", "dairy")


def test_pivot_series_escapes_separator_in_names():
    """피벗 - 이름에 | 가 있어도 라벨이 모호하지 않고 복원 가능"""
    frame = pd.DataFrame({
        "date": ["2024-01-01", "2024-01-01"],
        "name": ["A|B", "A"],
        "category": ["dairy", "B|dairy"],
        "waste_cost": [1.0, 2.0],
    })

    wide = pivot_series(frame, entity="name", value="waste_cost", sub="category", entities=["A|B", "A"])
    labels = list(wide.columns[1:])

    assert len(set(labels)) == 4
    assert PivotKey.parse(PivotKey("A|B", "dairy").label) == PivotKey("A|B", "dairy")
    assert wide[PivotKey("A|B", "dairy").label].tolist() == [1.0]
    assert wide[PivotKey("A", "B|dairy").label].tolist() == [2.0]


def test_pivot_series_empty():
    """피벗 - 빈 입력"""
    wide = pivot_series(pd.DataFrame(), entity="name", value="revenue", entities=["A"])

    assert wide.empty
    assert list(wide.columns) == ["date", "A"]


# ============================================================
# 매장 비교
# ============================================================

def test_compare_locations_uses_names(normalized):
    """매장 비교 - 매장명 컬럼, 선택 순서 유지"""
    wide = compare_locations(normalized["sales"], normalized["locations"], ["2", "1"])

    assert list(wide.columns) == ["date", "Harbor", "Downtown"]
    assert len(wide) == 4
    assert wide["Downtown"].sum() == 1600.0
    assert wide["Harbor"].tolist() == [200.0, 200.0, 200.0, 200.0]


def test_compare_locations_too_many(normalized):
    """매장 비교 - 최대 3개 초과 시 ValidationError"""
    with pytest.raises(ValidationError):
        compare_locations(normalized["sales"], normalized["locations"], ["1", "2", "3", "4"])


def test_compare_locations_no_selection(normalized):
    """매장 비교 - 선택 없음은 빈 결과"""
    wide = compare_locations(normalized["sales"], normalized["locations"], [])

    assert wide.empty


def test_compare_locations_duplicate_names():
    """매장 비교 - 같은 이름이면 ID로 구분"""
    sales = pd.DataFrame({
        "location_id": ["1", "2"],
        "date": ["2024-01-01", "2024-01-01"],
        "revenue": [10.0, 20.0],
    })
    locations = pd.DataFrame({"location_id": ["1", "2"], "name": ["Main", "Main"]})

    wide = compare_locations(sales, locations, ["1", "2"])

    assert list(wide.columns) == ["date", "Main (1)", "Main (2)"]


def test_compare_locations_structural_names():
    """매장 비교 - 매장명이 key/date/order_type이면 ID로 구분 (차트 key 보존)"""
    sales = pd.DataFrame({
        "location_id": ["1", "2", "3"],
        "date": ["2024-01-01"] * 3,
        "order_type": ["dine-in"] * 3,
        "revenue": [10.0, 20.0, 30.0],
    })
    locations = pd.DataFrame({"location_id": ["1", "2", "3"], "name": ["key", "date", "order_type"]})

    wide = compare_locations(sales, locations, ["1", "2", "3"])
    records = to_chart_records(wide, key="date")
    by_type = compare_order_types(sales, locations, ["3"])

    assert list(wide.columns) == ["date", "key (1)", "date (2)", "order_type (3)"]
    assert records == [{"key": "2024-01-01", "key (1)": 10.0, "date (2)": 20.0, "order_type (3)": 30.0}]
    assert by_type["order_type"].tolist() == ["dine-in", "takeout", "delivery"]
    assert by_type["order_type (3)"].tolist() == [30.0, 0.0, 0.0]


def test_pivot_label_clash_raises():
    """피벗 라벨이 행 키 또는 차트 key와 겹치면 ValidationError"""
    frame = pd.DataFrame({"date": ["2024-01-01"], "name": ["date"], "revenue": [1.0]})

    with pytest.raises(ValidationError):
        pivot_series(frame, entity="name", value="revenue")
    with pytest.raises(ValidationError):
        pivot_series(frame.assign(name="key"), entity="name", value="revenue")
    with pytest.raises(ValidationError):
        to_chart_records(pd.DataFrame({"day": ["2024-01-01"], "key": [1.0]}), key="day")


def test_compare_by_dimension(normalized):
    """매장 x 카테고리 비교"""
    wide = compare_by_dimension(
        normalized["inventory"], normalized["locations"], ["1", "2"], "category", "waste_cost"
    )

    assert "Downtown|dairy" in wide.columns
    assert "Harbor|produce" in wide.columns
    assert wide["Harbor|produce"].sum() == 60.0
    assert wide["Downtown|produce"].sum() == 0.0


def test_compare_order_types(normalized):
    """주문 유형별 매장 비교 - 정규 주문 유형 행 포함"""
    result = compare_order_types(normalized["sales"], normalized["locations"], ["1", "2"])

    assert result["order_type"].tolist() == ["dine-in", "takeout", "delivery"]
    indexed = result.set_index("order_type")
    assert indexed.loc["dine-in", "Downtown"] == 1200.0
    assert indexed.loc["takeout", "Downtown"] == 0.0
    assert indexed.loc["takeout", "Harbor"] == 800.0


def test_order_type_trend(normalized):
    """일별 주문 유형별 매출"""
    wide = order_type_trend(normalized["sales"])

    assert list(wide.columns) == ["date", "dine-in", "takeout", "delivery"]
    assert wide.loc[wide["date"] == "2024-01-01", "dine-in"].item() == 300.0 + 50.0 + 999.0
