"""
Google Sheets fetcher

팩트 테이블마다 같은 이름의 워크시트(``LOCATIONS``, ``DAILY_SALES``,
``CUSTOMER_REVIEWS``, ``INVENTORY``)를 읽어 원본 DataFrame을 반환합니다.
gspread 호출은 블로킹이므로 ``asyncio.to_thread``로 실행합니다.
"""

from __future__ import annotations

import asyncio
import json
import logging
import threading
from typing import Any, Mapping, Optional

import gspread
import pandas as pd
from google.oauth2.service_account import Credentials

from ..common.performance import measure_time_context
from ..core.config import GSHEET_CREDENTIALS_FILE, GSHEET_ID
from ..domain.exceptions import FetchError
from .fetch import FactQuery, apply_query

logger = logging.getLogger(__name__)

SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets.readonly",
    "https://www.googleapis.com/auth/drive.readonly",
]


def _credentials_from_info(info: Mapping[str, Any] | str) -> Credentials:
    if isinstance(info, str):
        credentials_info = json.loads(info)
    else:
        credentials_info = dict(info)

    if "private_key" in credentials_info:
        credentials_info["private_key"] = credentials_info["private_key"].replace("\\n", "\n").strip()

    return Credentials.from_service_account_info(credentials_info, scopes=SCOPES)


class GSheetFetcher:
    """
    Google Sheets 기반 FactFetcher.

    Args:
        spreadsheet_id: 문서 ID (기본값: 환경변수 ``GSHEET_ID``)
        credentials_info: 서비스 계정 정보 (dict 또는 JSON 문자열)
        credentials_file: 서비스 계정 JSON 파일 경로
            (``credentials_info``가 없을 때 사용, 기본값: ``GSHEET_CREDENTIALS_FILE``)
        client: 이미 인증된 gspread 클라이언트 (주입 시 인증 생략)
    """

    def __init__(
        self,
        spreadsheet_id: str = GSHEET_ID,
        *,
        credentials_info: Optional[Mapping[str, Any] | str] = None,
        credentials_file: str = GSHEET_CREDENTIALS_FILE,
        client: Optional[gspread.Client] = None,
    ) -> None:
        self.spreadsheet_id = spreadsheet_id
        self.credentials_info = credentials_info
        self.credentials_file = credentials_file
        self._client = client
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        # 테이블별 to_thread 호출이 동시에 인증/문서 열기를 하지 않도록 보호
        self._open_lock = threading.Lock()

    def _authorize(self) -> gspread.Client:
        if self._client is not None:
            return self._client
        if self.credentials_info is not None:
            credentials = _credentials_from_info(self.credentials_info)
        elif self.credentials_file:
            credentials = Credentials.from_service_account_file(self.credentials_file, scopes=SCOPES)
        else:
            raise FetchError("Google Sheets 인증 정보가 없습니다 (credentials_info 또는 GSHEET_CREDENTIALS_FILE).")
        self._client = gspread.authorize(credentials)
        return self._client

    def _open(self) -> gspread.Spreadsheet:
        with self._open_lock:
            if self._spreadsheet is None:
                if not self.spreadsheet_id:
                    raise FetchError("GSHEET_ID가 설정되지 않았습니다.")
                self._spreadsheet = self._authorize().open_by_key(self.spreadsheet_id)
            return self._spreadsheet

    def read_table(self, table: str) -> pd.DataFrame:
        """워크시트 하나를 DataFrame으로 읽습니다 (블로킹)."""
        try:
            worksheet = self._open().worksheet(table)
        except gspread.exceptions.WorksheetNotFound as exc:
            raise FetchError(f"{table} 시트를 찾을 수 없습니다.", table=table) from exc
        return pd.DataFrame(worksheet.get_all_records())

    async def fetch(self, query: FactQuery) -> pd.DataFrame:
        """
        조회 조건에 맞는 행을 반환합니다.

        Raises:
            FetchError: 인증/네트워크/시트 조회에 실패한 경우 (테이블 이름 포함)
        """
        try:
            with measure_time_context(f"Google Sheets fetch: {query.table}"):
                frame = await asyncio.to_thread(self.read_table, query.table)
        except FetchError as exc:
            logger.error(f"Failed to load {query.table} from Google Sheets: {exc}")
            if exc.table is None:
                exc.table = query.table
            raise
        except Exception as exc:
            logger.error(f"Failed to load {query.table} from Google Sheets: {exc}", exc_info=True)
            raise FetchError(
                f"Google Sheets 데이터를 불러오는 중 오류가 발생했습니다: {exc}",
                table=query.table,
            ) from exc

        logger.info(f"Loaded {len(frame)} rows from {query.table}")
        return apply_query(frame, query)
