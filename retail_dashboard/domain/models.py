"""
도메인 모델: 리테일 대시보드의 핵심 데이터 구조

이 모듈은 대시보드 파생 엔진이 주고받는 데이터 모델을 정의합니다.
모든 모델은 불변(frozen) 데이터클래스 또는 NamedTuple로 구현되어
파생 단계 사이에서 안전하게 전달됩니다. 팩트 테이블 자체는
pandas DataFrame으로 다루며, 그 컬럼 스키마는 아래 상수로 고정합니다.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Mapping, NamedTuple, Optional

import pandas as pd

# ========================================
# 정규 컬럼 스키마
# ========================================

LOCATION_COLUMNS = [
    "location_id",
    "name",
    "city",
    "state",
    "manager",
    "seating_capacity",
    "open_date",
    "is_active",
]
SALES_COLUMNS = ["location_id", "date", "order_type", "revenue", "num_orders"]
INVENTORY_COLUMNS = [
    "location_id",
    "date",
    "category",
    "units_received",
    "units_used",
    "units_wasted",
    "waste_cost",
]
REVIEW_COLUMNS = ["location_id", "date", "rating", "review_text", "customer_name"]


class Status(str, Enum):
    """스코어카드 상태"""

    TOP = "top"
    ATTENTION = "attention"
    OK = "ok"


class TrendDirection(str, Enum):
    """코호트 대비 추세 방향"""

    UP = "up"
    DOWN = "down"
    FLAT = "flat"

    @property
    def label(self) -> str:
        """사람이 읽는 라벨 (improving / declining / stable)."""
        return {"up": "improving", "down": "declining", "flat": "stable"}[self.value]


class AnomalyStatus(str, Enum):
    """이상 감지 결과 상태"""

    ANOMALY = "anomaly"
    NORMAL = "normal"
    UNDETERMINED = "undetermined"


@dataclass(frozen=True)
class Location:
    """
    매장 기준 정보 (불변 참조 데이터).

    Attributes:
        location_id: 매장 식별자 (문자열로 정규화)
        name: 매장명
        city / state: 소재지
        manager: 매니저 이름
        seating_capacity: 좌석 수
        open_date: 개점일 (YYYY-MM-DD 또는 빈 문자열)
        is_active: 운영 중 여부
    """

    location_id: str
    name: str
    city: str = ""
    state: str = ""
    manager: str = ""
    seating_capacity: int = 0
    open_date: str = ""
    is_active: bool = True

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Location":
        return cls(
            location_id=str(record.get("location_id", "")),
            name=str(record.get("name", "")),
            city=str(record.get("city", "")),
            state=str(record.get("state", "")),
            manager=str(record.get("manager", "")),
            seating_capacity=int(record.get("seating_capacity", 0) or 0),
            open_date=str(record.get("open_date", "")),
            is_active=bool(record.get("is_active", True)),
        )


@dataclass(frozen=True)
class Selection:
    """
    차원 선택자: 명시적인 값 집합 또는 "전체".

    ``values``가 None이면 전체 선택을 의미합니다. 빈 집합은
    "아무것도 선택하지 않음"이며 전체와 구분됩니다.

    Examples:
        >>> Selection.all().contains("1")
        True
        >>> Selection.of(["1", "2"]).contains("3")
        False
    """

    values: Optional[frozenset] = None

    @classmethod
    def all(cls) -> "Selection":
        return cls(None)

    @classmethod
    def of(cls, values: Iterable[Any]) -> "Selection":
        return cls(frozenset(str(v) for v in values))

    @property
    def is_all(self) -> bool:
        return self.values is None

    def contains(self, value: Any) -> bool:
        return self.values is None or str(value) in self.values


@dataclass(frozen=True)
class FilterState:
    """
    사용자가 선택한 필터 상태.

    Attributes:
        start / end: 요청 기간 (YYYY-MM-DD, None이면 데이터 경계 사용)
        locations: 매장 선택자
        cities: 도시 선택자 (매장 기준 정보로 매장 ID에 매핑)
        categories: 재고 카테고리 선택자 (재고 팩트에 적용)
        order_types: 주문 유형 선택자 (매출 팩트에 적용)
        include_inactive: 비활성 매장을 코호트에 포함할지 여부
    """

    start: Optional[str] = None
    end: Optional[str] = None
    locations: Selection = field(default_factory=Selection.all)
    cities: Selection = field(default_factory=Selection.all)
    categories: Selection = field(default_factory=Selection.all)
    order_types: Selection = field(default_factory=Selection.all)
    include_inactive: bool = False


@dataclass(frozen=True)
class FactBundle:
    """
    필터가 적용된 팩트 묶음.

    Attributes:
        locations: 코호트에 포함된 매장 기준 정보
        sales / inventory / reviews: 기간·차원 필터가 적용된 팩트
        start / end: 실제로 적용된 (clamp된) 기간. 데이터가 없으면 None.
    """

    locations: pd.DataFrame
    sales: pd.DataFrame
    inventory: pd.DataFrame
    reviews: pd.DataFrame
    start: Optional[str] = None
    end: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return self.sales.empty and self.inventory.empty and self.reviews.empty


@dataclass(frozen=True)
class ScorecardRow:
    """매장별 스코어카드 행 (파생 데이터)."""

    location_id: str
    name: str
    manager: str
    seating_capacity: int
    total_revenue: float
    total_orders: float
    avg_rating: float
    review_count: int
    total_waste: float
    waste_rate: float
    revenue_per_seat: float
    status: Status
    reasons: tuple
    trend: TrendDirection = TrendDirection.FLAT

    def to_record(self) -> dict:
        """내보내기용 평면 dict로 변환합니다."""
        return {
            "location_id": self.location_id,
            "name": self.name,
            "manager": self.manager,
            "seating_capacity": self.seating_capacity,
            "total_revenue": self.total_revenue,
            "total_orders": self.total_orders,
            "avg_rating": self.avg_rating,
            "review_count": self.review_count,
            "total_waste": self.total_waste,
            "waste_rate": self.waste_rate,
            "revenue_per_seat": self.revenue_per_seat,
            "status": self.status.value,
            "reasons": list(self.reasons),
            "trend": self.trend.value,
        }


def _escape_label(value: Any) -> str:
    return str(value).replace("\\", "\\\\").replace("|", "\\|")


class PivotKey(NamedTuple):
    """
    비교 피벗의 컬럼 키.

    문자열 라벨 형식은 ``entity`` 또는 ``entity|sub`` 입니다.
    (예: ``"Downtown|dairy"``) 각 부분의 ``\\``와 ``|``는 ``\\\\``, ``\\|``로
    이스케이프되므로 이름에 ``|``가 있어도 ``parse(label)``로 복원됩니다.
    """

    entity: str
    sub: Optional[str] = None

    @property
    def label(self) -> str:
        entity = _escape_label(self.entity)
        if self.sub is None or self.sub == "":
            return entity
        return f"{entity}|{_escape_label(self.sub)}"

    @classmethod
    def parse(cls, label: str) -> "PivotKey":
        parts = [[]]
        escaped = False
        for char in str(label):
            if escaped:
                parts[-1].append(char)
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == "|" and len(parts) == 1:
                parts.append([])
            else:
                parts[-1].append(char)
        entity = "".join(parts[0])
        return cls(entity, "".join(parts[1]) if len(parts) > 1 else None)


@dataclass(frozen=True)
class AnomalyCheck:
    """
    후행 윈도우 급감 감지 결과.

    Attributes:
        status: anomaly / normal / undetermined
        pct_drop: 반올림된 하락률(%) (판정 불가면 None)
        avg_previous: 직전 윈도우 평균
        avg_last: 최근 윈도우 평균
    """

    status: AnomalyStatus
    pct_drop: Optional[int] = None
    avg_previous: Optional[float] = None
    avg_last: Optional[float] = None

    @property
    def is_anomaly(self) -> bool:
        return self.status is AnomalyStatus.ANOMALY

    @classmethod
    def undetermined(cls) -> "AnomalyCheck":
        return cls(AnomalyStatus.UNDETERMINED)

    def to_record(self) -> dict:
        return {
            "status": self.status.value,
            "pct_drop": self.pct_drop,
            "avg_previous": self.avg_previous,
            "avg_last": self.avg_last,
        }
