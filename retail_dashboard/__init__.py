"""
리테일 대시보드 분석 패키지

매장 매출/재고/리뷰 팩트로부터 KPI, 매장 스코어카드, 비교 시계열,
이상 감지 결과를 파생하는 엔진입니다. 표시 계층과 분리되어 있으며
결과는 평면 레코드로 전달됩니다.
"""

from __future__ import annotations

__version__ = "1.0.0"
