"""공통 데이터 처리 유틸리티 함수 모듈.

파생 결과를 프레젠테이션 협력자가 기대하는
평면 레코드(``{"key": ..., series: number}``)로 바꾸는 함수를 제공합니다.
"""

from __future__ import annotations

import math
from typing import Any, Iterable, Optional, Sequence

import numpy as np
import pandas as pd

from ..domain.exceptions import ValidationError


def _plain(value: Any) -> Any:
    # numpy 스칼라를 파이썬 기본 타입으로 변환 (비유한 값은 0)
    if isinstance(value, (np.integer,)):
        return int(value)
    if isinstance(value, (np.floating, float)):
        number = float(value)
        return number if math.isfinite(number) else 0.0
    if isinstance(value, np.bool_):
        return bool(value)
    return value


def to_chart_records(
    frame: pd.DataFrame,
    *,
    key: str,
    series: Optional[Sequence[str]] = None,
    sort: bool = True,
) -> list[dict]:
    """
    DataFrame을 차트 컴포넌트용 레코드 리스트로 변환합니다.

    각 레코드는 ``{"key": str, <series>: number, ...}`` 형태이며
    ``key`` 기준 오름차순으로 정렬됩니다.

    Args:
        frame: 변환할 DataFrame
        key: 키로 사용할 컬럼명 (보통 ``date``)
        series: 포함할 숫자 컬럼 (None이면 key 외 모든 컬럼)
        sort: key 기준 정렬 여부 (카테고리처럼 정규 순서를 유지해야 하면 False)

    Returns:
        레코드 리스트. 입력이 비어 있으면 빈 리스트.

    Raises:
        ValidationError: ``key``가 아닌 시리즈 컬럼 이름이 ``"key"``인 경우
    """
    if frame is None or frame.empty or key not in frame.columns:
        return []

    columns = [c for c in (series or frame.columns) if c != key and c in frame.columns]
    if "key" in columns:
        raise ValidationError(f"시리즈 컬럼 'key'가 레코드 키와 겹칩니다 (key={key!r})")
    work = frame[[key, *columns]].copy()
    work[key] = work[key].astype(str)
    if sort:
        work = work.sort_values(key, kind="mergesort")

    records = []
    for values in work.to_dict(orient="records"):
        record = {"key": str(values.pop(key))}
        record.update({col: _plain(values[col]) for col in columns})
        records.append(record)
    return records


def to_plain_records(frame: pd.DataFrame) -> list[dict]:
    """내보내기 협력자용 평면 dict 리스트로 변환합니다."""
    if frame is None or frame.empty:
        return []
    return [
        {col: _plain(val) for col, val in row.items()}
        for row in frame.to_dict(orient="records")
    ]


def series_values(values: Iterable[Any]) -> list[float]:
    """임의의 iterable을 유한한 float 리스트로 변환합니다."""
    out: list[float] = []
    for value in values:
        try:
            number = float(value)
        except (TypeError, ValueError):
            number = 0.0
        out.append(number if math.isfinite(number) else 0.0)
    return out
