"""Fact fetching interfaces and the latest-request-wins coordinator."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Iterable, Mapping, Optional, Protocol, Sequence

import pandas as pd

from ..core.config import (
    FACT_TABLES,
    INVENTORY_TABLE,
    LOCATIONS_TABLE,
    REVIEWS_TABLE,
    SALES_TABLE,
)
from ..domain.exceptions import FetchError
from ..domain.normalization import (
    INVENTORY_COLUMN_ALIASES,
    LOCATION_COLUMN_ALIASES,
    REVIEW_COLUMN_ALIASES,
    SALES_COLUMN_ALIASES,
    normalize_date,
    normalize_id,
    rename_aliases,
)

logger = logging.getLogger(__name__)

_TABLE_ALIASES = {
    LOCATIONS_TABLE: LOCATION_COLUMN_ALIASES,
    SALES_TABLE: SALES_COLUMN_ALIASES,
    INVENTORY_TABLE: INVENTORY_COLUMN_ALIASES,
    REVIEWS_TABLE: REVIEW_COLUMN_ALIASES,
}


@dataclass(frozen=True)
class FactQuery:
    """
    원천 테이블 조회 조건.

    SQL 문자열 대신 구조화된 조건(기간, 매장 ID)을 담습니다.
    ``None`` 조건은 제한이 없음을 뜻합니다.
    """

    table: str
    start: Optional[str] = None
    end: Optional[str] = None
    location_ids: Optional[frozenset] = None

    @classmethod
    def build(
        cls,
        table: str,
        start: Optional[str] = None,
        end: Optional[str] = None,
        location_ids: Optional[Iterable[str]] = None,
    ) -> "FactQuery":
        ids = None if location_ids is None else frozenset(normalize_id(v) for v in location_ids)
        return cls(table, normalize_date(start) or None, normalize_date(end) or None, ids)


def apply_query(frame: Optional[pd.DataFrame], query: FactQuery) -> pd.DataFrame:
    """
    원본 DataFrame에 조회 조건을 적용합니다.

    컬럼 별칭을 해석하여 날짜/매장 컬럼을 찾되, 반환 값은 원본 컬럼을
    그대로 유지합니다. 날짜 컬럼이 없는 테이블(매장 기준 정보)에는
    기간 조건이 적용되지 않습니다. 날짜를 해석할 수 없는 행은 기간
    조건이 있을 때 제외됩니다.
    """
    if frame is None:
        return pd.DataFrame()
    if frame.empty:
        return frame.copy()

    resolved = rename_aliases(frame, _TABLE_ALIASES.get(query.table, {}))
    mask = pd.Series(True, index=frame.index)

    if (query.start or query.end) and "date" in resolved.columns:
        dates = resolved["date"].map(normalize_date)
        mask &= dates != ""
        if query.start:
            mask &= dates >= query.start
        if query.end:
            mask &= dates <= query.end

    if query.location_ids is not None and "location_id" in resolved.columns:
        mask &= resolved["location_id"].map(normalize_id).isin(query.location_ids)

    return frame[mask.values].reset_index(drop=True)


class FactFetcher(Protocol):
    """원천 테이블을 비동기로 조회하는 협력자."""

    async def fetch(self, query: FactQuery) -> pd.DataFrame:  # pragma: no cover - interface definition
        ...


class StaticFrameFetcher:
    """메모리에 있는 원본 테이블을 반환하는 fetcher (테스트/오프라인용)."""

    def __init__(self, tables: Mapping[str, pd.DataFrame], *, delay: float = 0.0) -> None:
        self.tables = dict(tables)
        self.delay = delay

    async def fetch(self, query: FactQuery) -> pd.DataFrame:
        if self.delay:
            await asyncio.sleep(self.delay)
        frame = self.tables.get(query.table)
        if frame is None:
            logger.debug(f"No in-memory table for {query.table}")
            return pd.DataFrame()
        return apply_query(frame.copy(), query)


class LatestFetchCoordinator:
    """
    가장 마지막에 시작된 조회 결과만 반영하는 조정자.

    조회를 시작할 때마다 증가하는 토큰을 부여하고, 결과가 도착했을 때
    그 토큰이 최신이 아니면 결과를 버립니다 (병합하지 않음).
    늦게 끝난 이전 요청이 최신 결과를 덮어쓰지 않도록 보장합니다.

    Examples:
        >>> coordinator = LatestFetchCoordinator(StaticFrameFetcher(raw_tables))
        >>> tables = await coordinator.load(start="2024-01-01", end="2024-01-31")
        >>> tables is None  # 더 최신 조회가 시작된 경우
        False
    """

    def __init__(self, fetcher: FactFetcher, tables: Sequence[str] = FACT_TABLES) -> None:
        self.fetcher = fetcher
        self.tables = tuple(tables)
        self._token = 0
        self.applied: Optional[dict] = None
        self.applied_token = 0

    @property
    def latest_token(self) -> int:
        return self._token

    def is_latest(self, token: int) -> bool:
        return token == self._token

    async def _fetch_one(self, query: FactQuery) -> pd.DataFrame:
        try:
            return await self.fetcher.fetch(query)
        except FetchError:
            raise
        except Exception as exc:
            logger.error(f"Failed to fetch {query.table}: {exc}", exc_info=True)
            raise FetchError(f"{query.table} 데이터를 불러오지 못했습니다: {exc}", table=query.table) from exc

    async def load(
        self,
        start: Optional[str] = None,
        end: Optional[str] = None,
        location_ids: Optional[Iterable[str]] = None,
    ) -> Optional[dict]:
        """
        모든 팩트 테이블을 동시에 조회합니다.

        Returns:
            테이블 이름 → 원본 DataFrame 매핑. 조회 도중 더 최신 요청이
            시작되었으면 None (결과 폐기).

        Raises:
            FetchError: 최신 요청의 조회가 실패한 경우. 이미 대체된 요청의
                실패는 경고 로그만 남기고 None을 반환합니다.
        """
        self._token += 1
        token = self._token
        queries = [FactQuery.build(table, start, end, location_ids) for table in self.tables]
        logger.info(f"Fetch #{token} started: {start}..{end}")

        try:
            frames = await asyncio.gather(*(self._fetch_one(q) for q in queries))
        except FetchError as exc:
            if not self.is_latest(token):
                logger.warning(f"Discarding failure of superseded fetch #{token}: {exc}")
                return None
            raise

        if not self.is_latest(token):
            logger.warning(f"Discarding superseded fetch #{token} (latest: #{self._token})")
            return None

        result = dict(zip(self.tables, frames))
        self.applied = result
        self.applied_token = token
        logger.info(
            f"Fetch #{token} applied: "
            + ", ".join(f"{name}={len(frame)}" for name, frame in result.items())
        )
        return result
