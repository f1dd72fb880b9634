"""
RecommendationService -- 함께 구매한 상품 추천 조회

연관 테이블을 읽기만 한다. 조회 실패는 로그 후 빈 목록으로 바꿔
호출 측(상품 상세·장바구니 화면)이 실패하지 않도록 한다.

Usage:
    service = RecommendationService(db_path=db_path, channel_id="default")
    ids = service.recommendations_for_product("P1", DisplayContext.PDP_RELATED)
    ids = service.recommendations_for_cart(["P1", "P2"])
"""

from pathlib import Path
from typing import Dict, List, Optional, Union

from fbt.domain.models import (
    AssociationStats,
    CalculationSettings,
    DisplayContext,
    ProductAssociation,
)
from fbt.infrastructure.database.repos import (
    AssociationRepository,
    AssociationSettingsRepository,
    ProductRepository,
)
from fbt.settings.app_config import DEFAULT_CHANNEL_ID
from fbt.settings.constants import ADMIN_ASSOCIATION_LIMIT
from fbt.utils.logger import get_logger

logger = get_logger(__name__)


class RecommendationService:
    """추천 조회 서비스 (채널 단위)"""

    def __init__(
        self,
        db_path: Optional[Union[str, Path]] = None,
        channel_id: Optional[str] = None,
        association_repo: Optional[AssociationRepository] = None,
        product_repo: Optional[ProductRepository] = None,
        settings_repo: Optional[AssociationSettingsRepository] = None,
    ):
        self.channel_id = channel_id or DEFAULT_CHANNEL_ID
        self.association_repo = association_repo or AssociationRepository(db_path=db_path)
        self.product_repo = product_repo or ProductRepository(db_path=db_path)
        self.settings_repo = settings_repo or AssociationSettingsRepository(db_path=db_path)

    # =================================================================
    # 화면 진입점 (설정 게이트 포함)
    # =================================================================

    def recommendations_for_product(
        self,
        product_id: str,
        context: Optional[DisplayContext] = None,
    ) -> List[str]:
        """상품 상세 추천 (기능 꺼짐·노출 위치 꺼짐이면 [])"""
        try:
            context = DisplayContext(context) if context else DisplayContext.PDP_RELATED
            settings = self.settings_repo.get_settings()
        except Exception as e:
            logger.error(f"[추천조회] 설정 조회 실패: {product_id} ({context}) - {e}")
            return []

        if not settings.enabled or not settings.is_location_enabled(context):
            logger.debug(f"[추천조회] 비활성: enabled={settings.enabled}, context={context.value}")
            return []

        return self.get_for_product(product_id, context, settings)

    def recommendations_for_cart(self, product_ids: List[str]) -> List[str]:
        """장바구니 추천 (기능 꺼짐·cart_page 꺼짐이면 [])"""
        try:
            settings = self.settings_repo.get_settings()
        except Exception as e:
            logger.error(f"[추천조회] 설정 조회 실패: {e}")
            return []

        if not settings.enabled or not settings.cart_page:
            return []

        return self.get_for_cart(product_ids, settings)

    # =================================================================
    # 조회
    # =================================================================

    def get_for_product(
        self,
        product_id: str,
        context: DisplayContext,
        settings: CalculationSettings,
    ) -> List[str]:
        """단일 상품 추천

        Args:
            product_id: 기준 상품
            context: 노출 위치 (로그용, 게이트는 호출 측)
            settings: 설정 스냅샷

        Returns:
            추천 상품 ID (final_score 내림차순, 최대 max_recommendations_per_product)
        """
        limit = settings.max_recommendations_per_product
        try:
            if self.product_repo.is_bundle(product_id):
                return []

            associations = self.association_repo.find_by_source(
                product_id, self.channel_id, limit=limit
            )
            target_ids = self.product_repo.filter_bundles(
                [a.target_product_id for a in associations]
            )
            result = self.product_repo.filter_displayable(target_ids)
        except Exception as e:
            logger.error(f"[추천조회] 상품 추천 실패: {product_id} ({context.value}) - {e}")
            return []

        if len(result) < limit and settings.fallback_to_related_products:
            result = self._fill_from_related(product_id, result, limit)

        logger.debug(f"[추천조회] {product_id} ({context.value}) → {len(result)}건")
        return result

    def get_for_cart(self, product_ids: List[str], settings: CalculationSettings) -> List[str]:
        """장바구니 추천

        장바구니 상품 각각의 연관 점수를 target별로 합산한다.
        장바구니에 이미 있는 상품과 번들은 제외한다.
        """
        if not product_ids:
            return []

        cart = {str(pid) for pid in product_ids}
        try:
            associations = self.association_repo.find_by_sources(list(cart), self.channel_id)

            totals: Dict[str, float] = {}
            for a in associations:
                if a.target_product_id in cart:
                    continue
                totals[a.target_product_id] = totals.get(a.target_product_id, 0.0) + a.final_score

            if not totals:
                return []

            candidates = self.product_repo.filter_displayable(
                self.product_repo.filter_bundles(list(totals))
            )
            ranked = sorted(candidates, key=lambda pid: (-totals[pid], pid))
        except Exception as e:
            logger.error(f"[추천조회] 장바구니 추천 실패: {len(cart)}개 상품 - {e}")
            return []

        return ranked[:settings.max_recommendations_per_product]

    # =================================================================
    # 관리자 조회
    # =================================================================

    def get_stats(self, channel_id: Optional[str] = None) -> AssociationStats:
        """채널 연관 통계 (실패 시 0)"""
        try:
            return self.association_repo.get_stats(channel_id or self.channel_id)
        except Exception as e:
            logger.error(f"[추천조회] 통계 조회 실패: {e}")
            return AssociationStats()

    def get_product_associations(
        self,
        product_id: str,
        channel_id: Optional[str] = None,
        limit: int = ADMIN_ASSOCIATION_LIMIT,
    ) -> List[ProductAssociation]:
        """상품 연관 원본 행 (점수 포함, 필터 없음)"""
        try:
            return self.association_repo.find_by_source(
                product_id, channel_id or self.channel_id, limit=limit
            )
        except Exception as e:
            logger.error(f"[추천조회] 연관 조회 실패: {product_id} - {e}")
            return []

    # -----------------------------------------------------------------
    # 내부
    # -----------------------------------------------------------------

    def _fill_from_related(self, product_id: str, current: List[str], limit: int) -> List[str]:
        """관련상품으로 부족분 채우기 (실패 시 기존 목록 유지)"""
        try:
            related = self.product_repo.get_related_product_ids(product_id)
            seen = set(current) | {str(product_id)}
            candidates = [pid for pid in dict.fromkeys(related) if pid not in seen]
            candidates = self.product_repo.filter_displayable(
                self.product_repo.filter_bundles(candidates)
            )
        except Exception as e:
            logger.warning(f"[추천조회] 관련상품 폴백 실패: {product_id} - {e}")
            return current

        return current + candidates[:limit - len(current)]
