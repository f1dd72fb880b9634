"""
fbt -- 함께 구매한 상품(Frequently Bought Together) 연관 계산 엔진

계층:
- association: 동시구매 행렬, 점수 계산 (순수 계산)
- infrastructure: SQLite 스키마, Repository
- application: 계산 파이프라인, 추천 조회, 스케줄 작업
- presentation: CLI
"""

__version__ = "1.0.0"
