"""비교 / 피벗 엔진.

소수의 매장(기본 최대 3개)을 날짜 축 위에 나란히 놓는 wide 형식
시계열을 만듭니다. 어느 엔티티에 데이터가 없는 날짜는 누락 대신
0으로 채워지므로 차트의 모든 행이 같은 컬럼을 갖습니다.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

import pandas as pd

from ..core.config import CONFIG, ORDER_TYPES, DashboardConfig
from ..domain.exceptions import ValidationError
from ..domain.models import PivotKey
from ..domain.validation import validate_comparison_selection
from .aggregation import aggregate, sort_by_keys

logger = logging.getLogger(__name__)

# 비교 결과의 구조 컬럼. 같은 이름의 매장은 "이름 (ID)"로 표시
_RESERVED_COLUMNS = frozenset({"key", "date", "order_type"})


def _ordered_unique(frame: pd.DataFrame, column: str) -> list[str]:
    values = pd.DataFrame({column: frame[column].astype(str).unique()})
    return sort_by_keys(values, [column])[column].tolist()


def pivot_series(
    long_frame: Optional[pd.DataFrame],
    *,
    entity: str,
    value: str,
    sub: Optional[str] = None,
    key: str = "date",
    entities: Optional[Sequence[str]] = None,
) -> pd.DataFrame:
    """
    long 형식 팩트를 날짜 x 엔티티(x 하위 차원) wide 형식으로 변환합니다.

    - 행: 모든 엔티티 날짜의 합집합, 오름차순
    - 컬럼: ``PivotKey(entity, sub).label`` (``"Downtown"`` 또는 ``"Downtown|dairy"``)
    - 값이 없는 칸은 0

    Args:
        long_frame: 팩트 DataFrame
        entity: 엔티티 컬럼 (예: ``name``, ``order_type``)
        value: 합산할 숫자 컬럼
        sub: 하위 차원 컬럼 (예: ``category``)
        key: 행 키 컬럼
        entities: 컬럼 순서를 고정할 엔티티 목록. 데이터가 없는 엔티티도
            0 컬럼으로 포함됩니다. None이면 관측된 엔티티를 정렬하여 사용.

    Returns:
        ``key`` 컬럼 + 피벗 컬럼들의 DataFrame

    Raises:
        ValidationError: 피벗 라벨이 ``key`` 또는 차트 레코드의 ``"key"``와 같은 경우
    """
    keys = [key, entity] + ([sub] if sub else [])
    agg = aggregate(long_frame, keys, [value])

    if entities is not None:
        entity_order = [str(e) for e in entities]
        agg = agg[agg[entity].isin(entity_order)]
    elif agg.empty:
        entity_order = []
    else:
        entity_order = _ordered_unique(agg, entity)

    if sub:
        sub_order = _ordered_unique(agg, sub) if not agg.empty else []
        pivot_keys = [PivotKey(e, s) for e in entity_order for s in sub_order]
    else:
        pivot_keys = [PivotKey(e) for e in entity_order]
    labels = [pk.label for pk in pivot_keys]
    clashes = sorted({key, "key"} & set(labels))
    if clashes:
        raise ValidationError(f"피벗 컬럼명이 행 키 컬럼과 겹칩니다: {clashes}")

    if agg.empty:
        return pd.DataFrame(columns=[key, *labels])

    agg = agg.copy()
    if sub:
        agg["_label"] = [PivotKey(e, s).label for e, s in zip(agg[entity], agg[sub])]
    else:
        agg["_label"] = [PivotKey(e).label for e in agg[entity]]

    dates = sorted(agg[key].unique())
    wide = agg.pivot_table(index=key, columns="_label", values=value, aggfunc="sum", fill_value=0.0)
    wide = wide.reindex(index=dates, columns=labels, fill_value=0.0).astype(float)
    wide.columns.name = None
    return wide.rename_axis(key).reset_index()


def location_display_names(locations: pd.DataFrame, location_ids: Sequence[str]) -> dict:
    """
    매장 ID → 비교 차트 컬럼명.

    이름이 없으면 ID를, 같은 이름이 여러 번 선택되거나 이름이 구조 컬럼
    (``key``, ``date``, ``order_type``)과 같으면 ``"이름 (ID)"``를 사용합니다.
    """
    names = {}
    if locations is not None and not locations.empty and "name" in locations.columns:
        lookup = locations.drop_duplicates("location_id")
        names = dict(zip(lookup["location_id"].astype(str), lookup["name"].astype(str)))

    display = {loc: names.get(loc) or loc for loc in location_ids}
    counts = pd.Series(list(display.values()), dtype=object).value_counts()
    for loc, name in display.items():
        if counts.get(name, 0) > 1 or name in _RESERVED_COLUMNS:
            display[loc] = f"{name} ({loc})"
    return display


def _selected_frame(
    frame: Optional[pd.DataFrame],
    locations: pd.DataFrame,
    selected_ids: Sequence[str],
    config: DashboardConfig,
) -> tuple:
    ids = validate_comparison_selection(selected_ids, config.comparison.max_locations)
    display = location_display_names(locations, ids)
    if frame is None or frame.empty or not ids:
        return None, ids, display

    work = frame[frame["location_id"].astype(str).isin(ids)].copy()
    work["entity"] = work["location_id"].astype(str).map(display)
    return work, ids, display


def compare_locations(
    sales: Optional[pd.DataFrame],
    locations: pd.DataFrame,
    selected_ids: Sequence[str],
    metric: str = "revenue",
    *,
    config: DashboardConfig = CONFIG,
) -> pd.DataFrame:
    """
    선택한 매장들의 일별 지표를 매장명 컬럼으로 나란히 배치합니다.

    Raises:
        ValidationError: 선택 매장 수가 ``comparison.max_locations``를 초과한 경우

    Examples:
        >>> compare_locations(sales, locations, ["1", "2"])
                 date  Downtown  Harbor
        0  2024-01-01     300.0     0.0
        1  2024-01-02       0.0   150.0
    """
    work, ids, display = _selected_frame(sales, locations, selected_ids, config)
    columns = [display[loc] for loc in ids]
    if work is None:
        return pd.DataFrame(columns=["date", *columns])
    logger.debug(f"Comparing {metric} for {len(ids)} locations")
    return pivot_series(work, entity="entity", value=metric, entities=columns)


def compare_by_dimension(
    frame: Optional[pd.DataFrame],
    locations: pd.DataFrame,
    selected_ids: Sequence[str],
    dimension: str,
    value: str,
    *,
    config: DashboardConfig = CONFIG,
) -> pd.DataFrame:
    """
    매장 x 하위 차원(카테고리 등) 복합 컬럼(``"Downtown|dairy"``) 비교 시계열.

    Raises:
        ValidationError: 선택 매장 수 초과
    """
    work, ids, display = _selected_frame(frame, locations, selected_ids, config)
    if work is None:
        return pd.DataFrame(columns=["date"])
    return pivot_series(
        work,
        entity="entity",
        value=value,
        sub=dimension,
        entities=[display[loc] for loc in ids],
    )


def compare_order_types(
    sales: Optional[pd.DataFrame],
    locations: pd.DataFrame,
    selected_ids: Sequence[str],
    *,
    config: DashboardConfig = CONFIG,
) -> pd.DataFrame:
    """
    주문 유형별(행) 매장별(컬럼) 매출 합계.

    정규 주문 유형은 데이터가 없어도 0 행으로 포함됩니다.
    """
    work, ids, display = _selected_frame(sales, locations, selected_ids, config)
    columns = [display[loc] for loc in ids]
    if not ids:
        return pd.DataFrame(columns=["order_type"])

    order_types = list(ORDER_TYPES)
    if work is not None:
        order_types += [t for t in _ordered_unique(work, "order_type") if t not in order_types]

    result = pd.DataFrame({"order_type": order_types})
    for column in columns:
        result[column] = 0.0
    if work is None:
        return result

    agg = aggregate(work, ["order_type", "entity"], ["revenue"])
    for row in agg.itertuples(index=False):
        result.loc[result["order_type"] == row.order_type, row.entity] = float(row.revenue)
    return result


def order_type_trend(sales: Optional[pd.DataFrame]) -> pd.DataFrame:
    """일별 주문 유형별 매출 (컬럼: 정규 순서의 주문 유형)."""
    return pivot_series(sales, entity="order_type", value="revenue")
