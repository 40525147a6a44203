"""이상 감지 및 추세 판정 함수들."""

from __future__ import annotations

import logging
from typing import Optional, Sequence, Tuple

import pandas as pd

from ..common.data_utils import series_values
from ..core.config import CONFIG, AnomalyConfig, TrendConfig
from ..domain.models import AnomalyCheck, AnomalyStatus, TrendDirection

logger = logging.getLogger(__name__)


def cohort_trend(
    value: float,
    cohort_mean: float,
    *,
    config: TrendConfig = CONFIG.trend,
) -> TrendDirection:
    """
    코호트 평균 대비 매장 지표의 방향을 판정합니다.

    ``r = value / cohort_mean``에 대해 ``r > 1.15``이면 UP, ``r < 0.85``이면
    DOWN, 그 외는 FLAT입니다. 경계값(정확히 1.15 또는 0.85)은 FLAT입니다.
    평균이 0 이하이면 비교할 수 없으므로 FLAT을 반환합니다.

    Examples:
        >>> cohort_trend(115, 100)
        <TrendDirection.FLAT: 'flat'>
        >>> cohort_trend(120, 100)
        <TrendDirection.UP: 'up'>
    """
    if cohort_mean <= 0:
        return TrendDirection.FLAT
    ratio = value / cohort_mean
    if ratio > config.up_ratio:
        return TrendDirection.UP
    if ratio < config.down_ratio:
        return TrendDirection.DOWN
    return TrendDirection.FLAT


def detect_drop_anomaly(
    series: Sequence[float] | pd.Series,
    *,
    config: AnomalyConfig = CONFIG.anomaly,
) -> AnomalyCheck:
    """
    최근 윈도우 평균이 직전 윈도우 대비 급감했는지 확인합니다.

    최소 ``2 * window``개의 값이 필요합니다. 마지막 ``window``개 평균을
    그 직전 ``window``개 평균과 비교하여 하락률이 ``drop_threshold`` 이상이면
    이상(anomaly)으로 보고합니다.

    Args:
        series: 날짜 오름차순으로 정렬된 일별 값
        config: 윈도우/임계값 설정

    Returns:
        AnomalyCheck
        - ANOMALY: 하락률(반올림 %)과 두 윈도우 평균 포함
        - NORMAL: 하락률이 임계값 미만
        - UNDETERMINED: 이력이 부족하거나 직전 평균이 0 이하
    """
    values = series_values(series)
    window = int(max(1, config.window))
    if len(values) < window * 2:
        return AnomalyCheck.undetermined()

    last = values[-window:]
    previous = values[-window * 2 : -window]
    avg_last = sum(last) / len(last)
    avg_previous = sum(previous) / len(previous)
    if avg_previous <= 0:
        return AnomalyCheck.undetermined()

    change = round((avg_last - avg_previous) / avg_previous, 10)
    if change <= -config.drop_threshold:
        pct = int(round(abs(change) * 100))
        logger.info(f"Drop anomaly detected: {pct}% ({avg_previous:.1f} -> {avg_last:.1f})")
        return AnomalyCheck(
            AnomalyStatus.ANOMALY,
            pct_drop=pct,
            avg_previous=avg_previous,
            avg_last=avg_last,
        )
    return AnomalyCheck(
        AnomalyStatus.NORMAL,
        pct_drop=None,
        avg_previous=avg_previous,
        avg_last=avg_last,
    )


def half_period_trend(
    series: Sequence[float] | pd.Series,
    *,
    config: TrendConfig = CONFIG.trend,
    threshold_pct: Optional[float] = None,
) -> Tuple[TrendDirection, Optional[float]]:
    """
    기간 전반부 합계 대비 후반부 합계의 변화로 추세를 판정합니다.

    변화율이 ``+half_period_pct``를 초과하면 UP, ``-half_period_pct`` 미만이면
    DOWN입니다. 전반부 합계가 0 이하이면 (FLAT, None)을 반환합니다.
    ``threshold_pct``를 주면 설정값 대신 사용합니다.

    Returns:
        (방향, 변화율 %)
    """
    values = series_values(series)
    mid = len(values) // 2
    first = sum(values[:mid])
    second = sum(values[mid:])
    if first <= 0:
        return TrendDirection.FLAT, None

    limit = config.half_period_pct if threshold_pct is None else threshold_pct
    pct = (second - first) / first * 100
    if pct > limit:
        return TrendDirection.UP, pct
    if pct < -limit:
        return TrendDirection.DOWN, pct
    return TrendDirection.FLAT, pct
