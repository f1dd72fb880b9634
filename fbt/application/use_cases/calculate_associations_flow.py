"""
CalculateAssociationsFlow -- 연관 계산 정기 작업 플로우

설정 스냅샷 조회 → (활성 시) 파이프라인 실행 → 실행 통계 기록.
실패는 결과 dict로 돌려주고 재시도하지 않는다.

실행 통계(last_calculation*)는 설정 단일 행에 있으므로 여러 채널을 돌리면
마지막으로 끝난 채널의 값만 남는다. 채널별 결과는 반환 dict와
[연관계산] 채널 완료 로그에 남는다.
"""

from pathlib import Path
from typing import Any, Dict, Optional, Union

from fbt.application.services.association_calculation_service import (
    AssociationCalculationService,
)
from fbt.infrastructure.database.repos import AssociationSettingsRepository
from fbt.utils.logger import get_logger, log_with_context

logger = get_logger(__name__)


class CalculateAssociationsFlow:
    """연관 계산 플로우

    Usage:
        flow = CalculateAssociationsFlow(channel_ctx=ctx)
        result = flow.run()
        # → {"success": True, "status": "success", "associations_count": 120, ...}
    """

    def __init__(
        self,
        channel_ctx=None,
        db_path: Optional[Union[str, Path]] = None,
        service: Optional[AssociationCalculationService] = None,
    ):
        self.channel_ctx = channel_ctx
        self.settings_repo = AssociationSettingsRepository(db_path=db_path)
        self.service = service or AssociationCalculationService(db_path=db_path)

    @property
    def channel_id(self) -> Optional[str]:
        return self.channel_ctx.channel_id if self.channel_ctx else None

    def run(self) -> Dict[str, Any]:
        """연관 계산 실행

        Returns:
            skipped: {success: True, status: "skipped", reason: "disabled"}
            success: {success: True, status: "success", associations_count, duration_ms}
            error:   {success: False, status: "error", error: str}
        """
        try:
            settings = self.settings_repo.get_settings()
            if not settings.enabled:
                logger.info(f"[연관계산] 비활성 → 건너뜀: channel={self.channel_id}")
                return {"success": True, "status": "skipped", "reason": "disabled"}

            summary = self.service.calculate(settings, channel_id=self.channel_id)
            log_with_context(
                logger, "info", "[연관계산] 채널 완료",
                channel=summary.channel_id,
                associations=summary.associations_written,
                duration_ms=summary.duration_ms,
            )
            self.settings_repo.update_calculation_stats(
                associations_count=summary.associations_written,
                duration_ms=summary.duration_ms,
            )
            return {
                "success": True,
                "status": "success",
                "channel_id": summary.channel_id,
                "associations_count": summary.associations_written,
                "duration_ms": summary.duration_ms,
            }
        except Exception as e:
            logger.error(f"[연관계산] 실패: channel={self.channel_id} - {e}", exc_info=True)
            return {"success": False, "status": "error", "error": str(e)}
