"""집계 엔진.

필터된 팩트를 복합 키(날짜, 매장, 카테고리, 주문 유형 또는 그 조합)로
그룹화하여 합계/건수로 축약합니다. 합산은 교환·결합 법칙을 만족하므로
입력 행의 순서가 결과에 영향을 주지 않습니다. 출력은 항상 키 기준
오름차순이며, 카테고리/주문 유형은 처음 등장한 순서가 아니라 고정된
정규 순서를 따릅니다.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional, Sequence

import numpy as np
import pandas as pd

from ..domain.aliases import category_rank, order_type_rank
from ..domain.models import FactBundle
from ..domain.normalization import numeric_series

logger = logging.getLogger(__name__)

# 정규 순서를 갖는 범주형 키
_CANONICAL_RANKS = {
    "category": category_rank,
    "order_type": order_type_rank,
}

LOCATION_TOTAL_COLUMNS = [
    "location_id",
    "name",
    "manager",
    "city",
    "seating_capacity",
    "total_revenue",
    "total_orders",
    "avg_rating",
    "review_count",
    "total_waste",
    "units_received",
    "units_wasted",
    "waste_rate",
    "revenue_per_seat",
]


def _sort_key(column: pd.Series) -> pd.Series:
    rank = _CANONICAL_RANKS.get(column.name)
    if rank is not None:
        return column.astype(str).map(lambda v: "{:04d}|{}".format(*rank(v)))
    if column.name == "location_id":
        numeric = pd.to_numeric(column, errors="coerce")
        if not numeric.isna().any():
            return numeric
    return column.astype(str)


def sort_by_keys(frame: pd.DataFrame, keys: Sequence[str]) -> pd.DataFrame:
    """
    키 컬럼 기준으로 안정 정렬합니다.

    - ``category`` / ``order_type``: 정규 순서 (알 수 없는 값은 뒤쪽, 알파벳순)
    - ``location_id``: 모두 숫자면 숫자 순서
    - 그 외(날짜 포함): 문자열 오름차순 (ISO 날짜는 시간 순서와 같음)
    """
    if frame.empty:
        return frame.reset_index(drop=True)
    keys = [k for k in keys if k in frame.columns]
    if not keys:
        return frame.reset_index(drop=True)
    return frame.sort_values(keys, key=_sort_key, kind="mergesort").reset_index(drop=True)


def aggregate(
    frame: Optional[pd.DataFrame],
    by: str | Sequence[str],
    sums: Iterable[str] = (),
    *,
    count: Optional[str] = None,
) -> pd.DataFrame:
    """
    팩트를 복합 키로 그룹화하여 숫자 필드를 합산합니다.

    Args:
        frame: 필터된 팩트 DataFrame
        by: 그룹 키 컬럼 (단일 또는 복수)
        sums: 합산할 숫자 컬럼
        count: 지정하면 그룹별 행 수를 이 이름의 컬럼으로 추가

    Returns:
        키별 1행의 DataFrame (키 오름차순). 빈 입력이면 컬럼만 있는 빈 DataFrame.
        키에 ``date``가 포함되면 날짜가 ""인 행은 제외됩니다.

    Raises:
        KeyError: 키 또는 합산 컬럼이 DataFrame에 없을 경우

    Examples:
        >>> aggregate(sales, "date", ["revenue"])
                 date  revenue
        0  2024-01-01    300.0
        1  2024-01-02    150.0
    """
    keys = [by] if isinstance(by, str) else list(by)
    fields = list(sums)
    columns = keys + fields + ([count] if count else [])

    if frame is None or frame.empty:
        return pd.DataFrame(columns=columns)

    missing = [c for c in keys + fields if c not in frame.columns]
    if missing:
        raise KeyError(f"aggregate requires columns: {missing}")

    work = frame[keys + fields].copy()
    if "date" in keys:
        work = work[work["date"].astype(str) != ""]
    if work.empty:
        return pd.DataFrame(columns=columns)

    for col in keys:
        work[col] = work[col].astype(str)
    for col in fields:
        work[col] = numeric_series(work[col])

    grouped = work.groupby(keys, sort=False, dropna=False)
    if fields:
        result = grouped[fields].sum()
        if count:
            result[count] = grouped.size()
    else:
        result = grouped.size().to_frame(count or "count")
    result = result.reset_index()

    return sort_by_keys(result[[c for c in columns if c in result.columns]], keys)


def daily_totals(frame: Optional[pd.DataFrame], field: str = "revenue", *, name: str = "total") -> pd.DataFrame:
    """날짜별 합계 (``date``, ``total``)."""
    result = aggregate(frame, "date", [field])
    return result.rename(columns={field: name})


def _cohort_frame(bundle: FactBundle) -> pd.DataFrame:
    if not bundle.locations.empty:
        cohort = bundle.locations.copy()
    else:
        # 매장 기준 정보가 없으면 팩트에 등장한 ID로 코호트를 구성
        ids: set[str] = set()
        for frame in (bundle.sales, bundle.inventory, bundle.reviews):
            if not frame.empty:
                ids.update(frame["location_id"].astype(str))
        ids.discard("")
        cohort = pd.DataFrame({"location_id": sorted(ids)})
        cohort["name"] = cohort["location_id"]

    for col, default in (("name", ""), ("manager", ""), ("city", ""), ("seating_capacity", 0)):
        if col not in cohort.columns:
            cohort[col] = default
    cohort["location_id"] = cohort["location_id"].astype(str)
    return cohort[["location_id", "name", "manager", "city", "seating_capacity"]]


def location_totals(bundle: FactBundle) -> pd.DataFrame:
    """
    코호트 매장별 집계를 계산합니다 (스코어카드의 입력).

    팩트가 하나도 없는 코호트 매장도 0 값으로 포함됩니다.

    출력 컬럼:
    - total_revenue / total_orders: 매출·주문 합계
    - avg_rating / review_count: 리뷰 평균 평점(리뷰 없으면 0)과 건수
    - total_waste: 폐기 비용 합계
    - units_received / units_wasted / waste_rate: 폐기율(%)
    - revenue_per_seat: 좌석당 매출

    Returns:
        매장 ID 순으로 정렬된 DataFrame
    """
    cohort = _cohort_frame(bundle)
    if cohort.empty:
        return pd.DataFrame(columns=LOCATION_TOTAL_COLUMNS)

    sales = aggregate(bundle.sales, "location_id", ["revenue", "num_orders"])
    inventory = aggregate(
        bundle.inventory, "location_id", ["waste_cost", "units_received", "units_wasted"]
    )
    reviews = aggregate(bundle.reviews, "location_id", ["rating"], count="review_count")

    out = (
        cohort.merge(sales, on="location_id", how="left")
        .merge(inventory, on="location_id", how="left")
        .merge(reviews, on="location_id", how="left")
    )
    numeric_cols = [
        "revenue",
        "num_orders",
        "waste_cost",
        "units_received",
        "units_wasted",
        "rating",
        "review_count",
        "seating_capacity",
    ]
    for col in numeric_cols:
        out[col] = pd.to_numeric(out[col], errors="coerce").fillna(0.0).astype(float)

    out = out.rename(
        columns={"revenue": "total_revenue", "num_orders": "total_orders", "waste_cost": "total_waste"}
    )
    counts = out["review_count"]
    out["avg_rating"] = np.where(counts > 0, out["rating"] / counts.where(counts > 0, 1), 0.0)
    out["review_count"] = counts.astype(int)
    received = out["units_received"]
    out["waste_rate"] = np.where(
        received > 0, out["units_wasted"] / received.where(received > 0, 1) * 100, 0.0
    )
    out["revenue_per_seat"] = out["total_revenue"] / out["seating_capacity"].clip(lower=1)
    out["seating_capacity"] = out["seating_capacity"].astype(int)

    logger.debug(f"Location totals computed for {len(out)} locations")
    return sort_by_keys(out[LOCATION_TOTAL_COLUMNS], ["location_id"])


def order_type_mix(sales: Optional[pd.DataFrame]) -> pd.DataFrame:
    """
    주문 유형별 매출 합계와 비중(%)을 계산합니다.

    Returns:
        ``order_type``, ``revenue``, ``share_pct`` 컬럼 (정규 순서)
    """
    mix = aggregate(sales, "order_type", ["revenue"])
    if mix.empty:
        return pd.DataFrame(columns=["order_type", "revenue", "share_pct"])
    total = float(mix["revenue"].sum())
    mix["share_pct"] = mix["revenue"] / total * 100 if total > 0 else 0.0
    return mix


def rating_distribution(reviews: Optional[pd.DataFrame]) -> pd.DataFrame:
    """
    리뷰 평점 분포 (1~5점 별 건수).

    평점은 반올림(0.5는 올림) 후 1~5 범위로 잘라 집계하며, 건수가 0인 별점도
    포함합니다.

    Returns:
        ``star``, ``count`` 컬럼의 5행 DataFrame
    """
    stars = pd.Series(range(1, 6), name="star")
    if reviews is None or reviews.empty or "rating" not in reviews.columns:
        return pd.DataFrame({"star": stars, "count": 0})

    rounded = np.floor(numeric_series(reviews["rating"]) + 0.5).clip(1, 5).astype(int)
    counts = rounded.value_counts().reindex(stars, fill_value=0)
    return pd.DataFrame({"star": stars, "count": counts.to_numpy().astype(int)})
