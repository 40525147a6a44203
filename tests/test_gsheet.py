"""
Google Sheets fetcher 테스트 (gspread 클라이언트는 mock)
"""
from __future__ import annotations

import asyncio
import time
from unittest import mock

import gspread
import pytest

from retail_dashboard.core.config import FACT_TABLES, SALES_TABLE
from retail_dashboard.data_sources.fetch import FactQuery, LatestFetchCoordinator
from retail_dashboard.data_sources.gsheet import SCOPES, GSheetFetcher
from retail_dashboard.domain.exceptions import FetchError


def _client_with_records(records):
    worksheet = mock.MagicMock()
    worksheet.get_all_records.return_value = records
    spreadsheet = mock.MagicMock()
    spreadsheet.worksheet.return_value = worksheet
    client = mock.MagicMock()
    client.open_by_key.return_value = spreadsheet
    return client


def test_fetch_reads_worksheet_and_applies_query():
    """워크시트 조회 후 기간 조건 적용"""
    client = _client_with_records([
        {"LOCATION_ID": 1, "SALE_DATE": "2024-01-01", "REVENUE": 10},
        {"LOCATION_ID": 1, "SALE_DATE": "2024-01-05", "REVENUE": 20},
    ])
    fetcher = GSheetFetcher("sheet-123", client=client)

    frame = asyncio.run(fetcher.fetch(FactQuery.build(SALES_TABLE, "2024-01-01", "2024-01-02")))

    client.open_by_key.assert_called_once_with("sheet-123")
    client.open_by_key.return_value.worksheet.assert_called_once_with(SALES_TABLE)
    assert frame["REVENUE"].tolist() == [10]


def test_fetch_opens_spreadsheet_once():
    """스프레드시트는 한 번만 연다"""
    client = _client_with_records([])
    fetcher = GSheetFetcher("sheet-123", client=client)

    asyncio.run(fetcher.fetch(FactQuery(SALES_TABLE)))
    asyncio.run(fetcher.fetch(FactQuery("INVENTORY")))

    assert client.open_by_key.call_count == 1


def test_concurrent_table_reads_open_spreadsheet_once():
    """동시 테이블 조회에서도 인증/문서 열기는 한 번"""
    client = _client_with_records([])
    spreadsheet = client.open_by_key.return_value

    def slow_open(key):
        time.sleep(0.05)
        return spreadsheet

    client.open_by_key.side_effect = slow_open
    coordinator = LatestFetchCoordinator(GSheetFetcher("sheet-123", client=client))

    result = asyncio.run(coordinator.load())

    assert set(result) == set(FACT_TABLES)
    assert client.open_by_key.call_count == 1
    assert spreadsheet.worksheet.call_count == len(FACT_TABLES)


def test_missing_worksheet_raises_fetch_error():
    """없는 워크시트 → 테이블 이름을 가진 FetchError"""
    client = _client_with_records([])
    client.open_by_key.return_value.worksheet.side_effect = gspread.exceptions.WorksheetNotFound("DAILY_SALES")
    fetcher = GSheetFetcher("sheet-123", client=client)

    with pytest.raises(FetchError) as exc_info:
        asyncio.run(fetcher.fetch(FactQuery(SALES_TABLE)))

    assert exc_info.value.table == SALES_TABLE


def test_api_failure_raises_fetch_error():
    """API 오류 → FetchError로 변환"""
    client = mock.MagicMock()
    client.open_by_key.side_effect = RuntimeError("quota exceeded")
    fetcher = GSheetFetcher("sheet-123", client=client)

    with pytest.raises(FetchError, match="quota exceeded") as exc_info:
        asyncio.run(fetcher.fetch(FactQuery(SALES_TABLE)))

    assert exc_info.value.table == SALES_TABLE


def test_missing_configuration_raises_fetch_error():
    """문서 ID 또는 인증 정보가 없으면 FetchError"""
    with pytest.raises(FetchError):
        asyncio.run(GSheetFetcher("", client=mock.MagicMock()).fetch(FactQuery(SALES_TABLE)))

    with pytest.raises(FetchError):
        asyncio.run(GSheetFetcher("sheet-123", credentials_file="").fetch(FactQuery(SALES_TABLE)))


def test_authorize_with_service_account_info():
    """서비스 계정 정보로 인증 (private_key 개행 복원)"""
    info = {"type": "service_account", "private_key": "-----BEGIN-----\\nabc\\n-----END-----\\n"}

    with mock.patch(
        "retail_dashboard.data_sources.gsheet.Credentials.from_service_account_info"
    ) as from_info, mock.patch("retail_dashboard.data_sources.gsheet.gspread.authorize") as authorize:
        authorize.return_value = _client_with_records([])
        fetcher = GSheetFetcher("sheet-123", credentials_info=info)

        asyncio.run(fetcher.fetch(FactQuery(SALES_TABLE)))

    passed_info = from_info.call_args.args[0]
    assert passed_info["private_key"] == "-----BEGIN-----\nabc\n-----END-----"
    assert from_info.call_args.kwargs["scopes"] == SCOPES
    authorize.assert_called_once_with(from_info.return_value)
