"""
도메인 계층 예외 정의

이 모듈은 리테일 대시보드 도메인 계층에서 발생할 수 있는
예외를 정의합니다. 계산 가드(0으로 나누기, 빈 코호트, 이력 부족)는
예외가 아니라 센티널 값(0, None, 빈 DataFrame)으로 처리되므로
여기에 포함되지 않습니다.
"""

from __future__ import annotations

from typing import Optional


class DomainError(Exception):
    """
    도메인 계층의 기본 예외 클래스.

    모든 도메인 예외는 이 클래스를 상속합니다.
    """

    pass


class ValidationError(DomainError):
    """
    입력 검증 실패 시 발생하는 예외.

    예: 필수 컬럼 누락, 시작일이 종료일보다 늦은 기간,
    비교 가능한 매장 수 초과 등
    """

    pass


class FetchError(DomainError):
    """
    원천 데이터 조회 실패 시 발생하는 예외.

    UI에 복구 가능한 오류로 노출됩니다. 재시도는 호출자의 책임이며
    엔진 내부에서는 재시도하지 않습니다.

    Attributes:
        table: 조회에 실패한 테이블 이름 (알 수 없으면 None)
    """

    def __init__(self, message: str, *, table: Optional[str] = None) -> None:
        super().__init__(message)
        self.table = table


class FilterError(DomainError):
    """
    필터 구성이 잘못된 경우 발생하는 예외.

    지원하지 않는 차원으로 필터링을 시도하는 경우 등에 사용합니다.
    """

    pass
