"""공통 유틸리티 모듈.

여러 계층에서 재사용하는 데이터 처리, 메모이제이션, 성능 측정 도구를 제공합니다.
"""

from .data_utils import to_chart_records, to_plain_records
from .memo import DerivationGraph, fingerprint
from .performance import PerformanceContext, measure_time, measure_time_context

__all__ = [
    "to_chart_records",
    "to_plain_records",
    "DerivationGraph",
    "fingerprint",
    "measure_time",
    "measure_time_context",
    "PerformanceContext",
]
