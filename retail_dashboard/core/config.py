"""Configuration and constants for the retail dashboard.

분류 임계값, 추세/이상 감지 파라미터, Google Sheets 테이블 이름 등
전역 설정을 제공합니다.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

# ============================================================
# Google Sheets 설정
# ============================================================

# Google Sheets 문서 ID (환경변수로 주입)
GSHEET_ID = os.getenv("GSHEET_ID", "")

# 서비스 계정 JSON 파일 경로 (환경변수로 주입)
GSHEET_CREDENTIALS_FILE = os.getenv("GSHEET_CREDENTIALS_FILE", "")


# ============================================================
# 테이블 / 차원 상수
# ============================================================

LOCATIONS_TABLE = "LOCATIONS"
SALES_TABLE = "DAILY_SALES"
REVIEWS_TABLE = "CUSTOMER_REVIEWS"
INVENTORY_TABLE = "INVENTORY"

FACT_TABLES = (LOCATIONS_TABLE, SALES_TABLE, REVIEWS_TABLE, INVENTORY_TABLE)

# 주문 유형의 정규 순서 (차트/집계 출력 순서)
ORDER_TYPES = ("dine-in", "takeout", "delivery")

# 재고 카테고리의 정규 순서
CATEGORIES = ("dairy", "produce", "cones_cups", "toppings", "syrups")


# ============================================================
# 분석 설정
# ============================================================

@dataclass(frozen=True)
class ClassificationConfig:
    """매장 스코어카드 분류 설정"""

    # 상위 매출 분위 (floor(n * q) 인덱스)
    top_quantile: float = 0.75

    # 하위 매출 분위
    bottom_quantile: float = 0.25

    # 평점 중앙값 분위
    median_quantile: float = 0.5

    # 폐기 상위 분위
    waste_quantile: float = 0.75

    # top 판정 최소 평점
    top_rating: float = 4.0

    # attention 판정 평점 (미만이면 attention)
    attention_rating: float = 3.5


@dataclass(frozen=True)
class TrendConfig:
    """코호트 대비 추세 판정 설정"""

    # 코호트 평균 대비 비율이 이 값을 "초과"하면 up
    up_ratio: float = 1.15

    # 코호트 평균 대비 비율이 이 값 "미만"이면 down
    down_ratio: float = 0.85

    # 기간 전반/후반 비교 시 변화율 임계값 (%)
    half_period_pct: float = 5.0


@dataclass(frozen=True)
class AnomalyConfig:
    """매출 급감 감지 설정"""

    # 비교 윈도우 (일)
    window: int = 7

    # 이전 윈도우 대비 하락 비율 (0.30 = 30%)
    drop_threshold: float = 0.30


@dataclass(frozen=True)
class WasteConfig:
    """폐기율 관련 설정"""

    # 폐기율 경고 임계값 (%)
    rate_threshold_pct: float = 10.0

    # 매장별 폐기 추세: 후반부 폐기 수량 변화율 임계값 (%)
    trend_pct: float = 10.0


@dataclass(frozen=True)
class ComparisonConfig:
    """매장 비교 화면 설정"""

    # 동시에 비교 가능한 최대 매장 수
    max_locations: int = 3


@dataclass(frozen=True)
class ChartConfig:
    """차트 데이터 준비 설정 (UI 토글은 여기로 주입)"""

    # 이동 평균 사용 여부
    smoothing: bool = False

    # 이동 평균 윈도우 (일)
    moving_average_window: int = 7


@dataclass(frozen=True)
class DashboardConfig:
    """대시보드 전역 설정"""

    classification: ClassificationConfig = field(default_factory=ClassificationConfig)
    trend: TrendConfig = field(default_factory=TrendConfig)
    anomaly: AnomalyConfig = field(default_factory=AnomalyConfig)
    waste: WasteConfig = field(default_factory=WasteConfig)
    comparison: ComparisonConfig = field(default_factory=ComparisonConfig)
    chart: ChartConfig = field(default_factory=ChartConfig)


# ============================================================
# 전역 설정 인스턴스
# ============================================================

# 전역 설정 객체 (불변)
CONFIG = DashboardConfig()
