"""
도메인 데이터 검증 로직

이 모듈은 파생 파이프라인에 들어가기 전에 원본 테이블과 필터 상태의
구조적 정합성을 검증합니다. 값 단위의 파싱 실패(날짜/숫자)는 정규화
단계에서 센티널 값으로 흡수되므로 여기서는 다루지 않습니다.
"""

from __future__ import annotations

import logging
from typing import Mapping, Optional, Sequence

import pandas as pd

from .exceptions import ValidationError
from .models import FilterState
from .normalization import (
    INVENTORY_COLUMN_ALIASES,
    LOCATION_COLUMN_ALIASES,
    REVIEW_COLUMN_ALIASES,
    SALES_COLUMN_ALIASES,
    normalize_date,
    rename_aliases,
)

logger = logging.getLogger(__name__)

# 테이블별 (별칭 정의, 필수 컬럼)
_REQUIRED = {
    "locations": (LOCATION_COLUMN_ALIASES, ("location_id",)),
    "sales": (SALES_COLUMN_ALIASES, ("location_id", "date", "revenue")),
    "inventory": (INVENTORY_COLUMN_ALIASES, ("location_id", "date", "category")),
    "reviews": (REVIEW_COLUMN_ALIASES, ("location_id", "date", "rating")),
}


def missing_columns(frame: pd.DataFrame, kind: str) -> list[str]:
    """
    별칭을 해석한 뒤에도 누락된 필수 컬럼 목록을 반환합니다.

    Args:
        frame: 원본 데이터프레임
        kind: ``locations`` / ``sales`` / ``inventory`` / ``reviews``

    Returns:
        누락된 정규 컬럼 이름 리스트 (정렬됨)
    """
    aliases, required = _REQUIRED[kind]
    resolved = rename_aliases(frame, aliases)
    return sorted(col for col in required if col not in resolved.columns)


def validate_raw_tables(tables: Mapping[str, Optional[pd.DataFrame]]) -> None:
    """
    정규화 전 원본 테이블의 구조를 검증합니다.

    검증 항목:
    1. 각 값이 DataFrame(또는 None)인지 확인
    2. 비어 있지 않은 테이블에 필수 컬럼이 존재하는지 확인
       - locations: location_id
       - sales: location_id, date, revenue
       - inventory: location_id, date, category
       - reviews: location_id, date, rating

    빈 테이블은 "데이터 없음"으로 간주하여 통과시킵니다.

    Args:
        tables: 짧은 키(``sales`` 등)를 키로 하는 원본 테이블 매핑

    Raises:
        ValidationError: 구조 검증 실패 시
    """
    logger.debug("Validating raw tables")

    for kind, frame in tables.items():
        if kind not in _REQUIRED:
            continue
        if frame is None:
            continue
        if not isinstance(frame, pd.DataFrame):
            logger.error(f"{kind} is not a DataFrame: {type(frame)}")
            raise ValidationError(f"{kind} 데이터가 손상되었습니다. 데이터를 다시 불러와 주세요.")
        if frame.empty:
            continue

        missing = missing_columns(frame, kind)
        if missing:
            logger.error(f"Missing {kind} columns: {missing}")
            raise ValidationError(
                f"{kind} 데이터에 필요한 컬럼이 없습니다: " + ", ".join(missing)
            )

    logger.debug("Raw table validation passed")


def validate_filter_state(state: FilterState) -> None:
    """
    필터 상태의 기간 정보를 검증합니다.

    - start/end가 주어졌다면 날짜로 해석 가능해야 합니다.
    - 둘 다 주어졌다면 start <= end 여야 합니다.

    Raises:
        ValidationError: 기간 정보가 잘못된 경우
    """
    start = normalize_date(state.start) if state.start else ""
    end = normalize_date(state.end) if state.end else ""

    if state.start and not start:
        raise ValidationError(f"시작일을 해석할 수 없습니다: {state.start!r}")
    if state.end and not end:
        raise ValidationError(f"종료일을 해석할 수 없습니다: {state.end!r}")
    if start and end and end < start:
        logger.error(f"Invalid date range: start={start}, end={end}")
        raise ValidationError("기간의 종료일이 시작일보다 빠릅니다. 기간을 다시 선택하세요.")


def validate_comparison_selection(location_ids: Sequence[str], max_locations: int) -> list[str]:
    """
    비교 대상 매장 선택을 검증하고 중복을 제거한 리스트를 반환합니다.

    Raises:
        ValidationError: 선택된 매장 수가 허용치를 초과한 경우
    """
    unique: list[str] = []
    for loc in location_ids:
        key = str(loc)
        if key and key not in unique:
            unique.append(key)
    if len(unique) > max_locations:
        raise ValidationError(
            f"최대 {max_locations}개 매장까지 비교할 수 있습니다 (선택: {len(unique)}개)."
        )
    return unique
