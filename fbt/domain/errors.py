"""
연관 계산 예외 클래스

- CalculationError 계열: 실행 단위로 치명적 (스케줄러가 재시도 결정)
- lift 계산 실패, 추천 조회 실패는 예외로 전파하지 않는다
"""

from typing import List


class CalculationError(Exception):
    """연관 계산 실행 실패"""
    pass


class CorpusUnavailableError(CalculationError):
    """주문 데이터 조회 실패 (아무것도 저장하지 않음)"""
    pass


class ClassifierUnavailableError(CalculationError):
    """번들 여부 판별 실패 (번들 혼입 방지를 위해 치명적)"""
    pass


class ScoringFailedError(CalculationError):
    """모든 상품 쌍의 점수 계산 실패 (코퍼스 수준 오류, 저장하지 않음)"""
    pass


class PersistenceFailedError(CalculationError):
    """연관 테이블 교체 실패 (트랜잭션 롤백됨)"""
    pass


class SettingsValidationError(ValueError):
    """설정 검증 실패"""

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__(f"Invalid settings: {', '.join(self.errors)}")
