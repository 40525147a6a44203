import os
import sys
from pathlib import Path

import pandas as pd
import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def pytest_configure(config):
    """pytest 초기화 시점에 실행되어 테스트 수집 전에 환경을 준비합니다.

    이 훅은 테스트 모듈이 import되기 전에 실행되므로,
    config.py가 로드될 때 GSHEET_ID가 이미 설정되어 있습니다.
    """
    # 테스트 환경 설정: 필수 환경변수가 없으면 테스트용 값 설정
    if not os.getenv("GSHEET_ID"):
        os.environ["GSHEET_ID"] = "test-sheet-id-for-pytest"


# ============================================================
# 공용 원본 테이블 (Snowflake 대문자 컬럼 형식)
#
# 활성 매장 1~3, 비활성 매장 4.
# 매출 합계: 1=1600, 2=800, 3=200 (2024-01-01 ~ 2024-01-04)
# 평점: 1=4.5, 2=3.0, 3=4.0 / 폐기 비용: 1=20, 2=60, 3=10
# ============================================================


@pytest.fixture
def raw_locations() -> pd.DataFrame:
    return pd.DataFrame({
        "LOCATION_ID": [1, 2, 3, 4],
        "NAME": ["Downtown", "Harbor", "Uptown", "Closed"],
        "CITY": ["Austin", "Austin", "Dallas", "Dallas"],
        "MANAGER_NAME": ["Kim", "Lee", "Park", "Choi"],
        "SEATING_CAPACITY": [50, 40, 30, 20],
        "IS_ACTIVE": [True, True, True, False],
    })


@pytest.fixture
def raw_sales() -> pd.DataFrame:
    days = ["2024-01-01", "2024-01-02", "2024-01-03", "2024-01-04"]
    rows = []
    for day in days:
        rows.append((1, day, "Dine In", 300, 10))
        rows.append((1, day, "Delivery", 100, 10))
        rows.append((2, day, "Take Out", 200, 10))
        rows.append((3, day, "dine-in", 50, 10))
    rows.append((4, "2024-01-01", "dine-in", 999, 10))
    return pd.DataFrame(rows, columns=["LOCATION_ID", "SALE_DATE", "ORDER_TYPE", "REVENUE", "NUM_ORDERS"])


@pytest.fixture
def raw_inventory() -> pd.DataFrame:
    return pd.DataFrame({
        "LOCATION_ID": [1, 2, 3],
        "RECORD_DATE": ["2024-01-02", "2024-01-02", "2024-01-02"],
        "CATEGORY": ["dairy", "produce", "toppings"],
        "UNITS_RECEIVED": [100, 50, 20],
        "UNITS_USED": [95, 40, 16],
        "UNITS_WASTED": [5, 10, 4],
        "WASTE_COST": [20.0, 60.0, 10.0],
    })


@pytest.fixture
def raw_reviews() -> pd.DataFrame:
    return pd.DataFrame({
        "LOCATION_ID": [1, 1, 2, 3],
        "REVIEW_DATE": ["2024-01-01", "2024-01-03", "2024-01-02", "2024-01-04"],
        "RATING": [5, 4, 3, 4],
        "REVIEW_TEXT": ["great", "good", "slow", "nice"],
        "CUSTOMER_NAME": ["A", "B", "C", "D"],
    })


@pytest.fixture
def raw_tables(raw_locations, raw_sales, raw_inventory, raw_reviews) -> dict:
    return {
        "LOCATIONS": raw_locations,
        "DAILY_SALES": raw_sales,
        "INVENTORY": raw_inventory,
        "CUSTOMER_REVIEWS": raw_reviews,
    }


@pytest.fixture
def normalized(raw_tables) -> dict:
    from retail_dashboard.domain.normalization import normalize_tables

    return normalize_tables(raw_tables)
