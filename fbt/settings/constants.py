"""
연관 계산 엔진 - 비즈니스 상수
- 설정 기본값
- 주문 상태
- 조회/저장 상한

정식 경로: from fbt.settings.constants import ...
"""

# =====================================================================
# 연관 계산 설정 기본값
# =====================================================================

DEFAULT_SETTINGS = {
    "enabled": False,
    "job_schedule": "02:00",                # 매일 새벽 2시
    "analysis_time_window_days": 90,
    "min_cooccurrence_threshold": 5,
    "min_score_threshold": 0.3,
    "max_recommendations_per_product": 4,
    "frequency_weight": 0.5,
    "recency_weight": 0.3,
    "value_weight": 0.2,
    "pdp_related_section": True,
    "pdp_under_add_to_cart": True,
    "cart_page": True,
    "checkout_page": False,
    "fallback_to_related_products": True,
    "lift_enabled": False,
}

# 설정 검증 범위
MIN_TIME_WINDOW_DAYS = 1
MAX_TIME_WINDOW_DAYS = 365
WEIGHT_SUM_TOLERANCE = 0.01

# =====================================================================
# 주문 상태
# =====================================================================

# 분석 대상 (완료된 주문만)
COMPLETED_ORDER_STATES = ("PaymentSettled", "Shipped", "Delivered")

# =====================================================================
# 조회 / 저장
# =====================================================================

# 관리자 분석용 원본 연관 조회 건수
ADMIN_ASSOCIATION_LIMIT = 20

# 일괄 INSERT 청크 크기
SAVE_CHUNK_SIZE = 500

# lift 필터 기준 (이하이면 우연 수준)
LIFT_CHANCE_LEVEL = 1.0
