"""
연관 상품 계산 패키지

주문 단위 동시구매 패턴을 분석하여 상품 쌍 점수를 계산한다.

- CooccurrenceMatrixBuilder: 주문 → 상품 쌍 동시구매 행렬
- ScoringEngine: frequency + recency + value 가중 점수, lift
"""

from fbt.association.cooccurrence import CooccurrenceMatrixBuilder
from fbt.association.scoring import ScoringEngine

__all__ = ['CooccurrenceMatrixBuilder', 'ScoringEngine']
