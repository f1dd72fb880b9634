"""
MultiChannelRunner -- 다채널 병렬 실행기

ThreadPoolExecutor를 사용하여 모든 활성 채널에 대해 작업을 병렬 실행합니다.
채널별 실패는 결과 dict로 수집하고 다른 채널 실행은 계속된다.
"""

from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Callable, Dict, List, Optional

from fbt.utils.logger import get_logger

logger = get_logger(__name__)


class MultiChannelRunner:
    """다채널 병렬 실행기

    Usage:
        runner = MultiChannelRunner()
        results = runner.run_parallel(
            task_fn=lambda ctx: CalculateAssociationsFlow(channel_ctx=ctx).run(),
            task_name="calculate_associations"
        )
    """

    def __init__(self, max_workers: int = 4, channels: Optional[List[Any]] = None):
        """초기화

        Args:
            max_workers: 최대 병렬 워커 수
            channels: 실행 대상 ChannelContext 목록 (기본: 활성 채널 전체)
        """
        self.max_workers = max_workers
        self.channels = channels

    def run_parallel(
        self,
        task_fn: Callable,
        task_name: str = "task",
    ) -> List[Dict[str, Any]]:
        """모든 활성 채널에 대해 병렬 실행

        Args:
            task_fn: ChannelContext를 받는 작업 함수
            task_name: 작업 이름 (로깅용)

        Returns:
            [{channel_id, success, result, error}, ...]
        """
        from fbt.settings.channel_context import ChannelContext

        channels = self.channels if self.channels is not None else ChannelContext.get_all_active()
        if not channels:
            logger.warning(f"[{task_name}] 활성 채널 없음")
            return []

        logger.info(
            f"[{task_name}] {len(channels)}개 채널 병렬 실행 시작"
            f" (max_workers={self.max_workers})"
        )

        results = []
        workers = min(self.max_workers, len(channels))

        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = {
                executor.submit(self._run_single, task_fn, ctx, task_name): ctx
                for ctx in channels
            }
            for future in as_completed(futures):
                ctx = futures[future]
                try:
                    results.append(future.result())
                except Exception as e:
                    logger.error(f"[{task_name}] {ctx.channel_id} 실패: {e}", exc_info=True)
                    results.append({
                        "channel_id": ctx.channel_id,
                        "success": False,
                        "error": str(e),
                    })

        results.sort(key=lambda r: r["channel_id"])
        success_count = sum(1 for r in results if r.get("success"))
        logger.info(f"[{task_name}] 완료: {success_count}/{len(channels)} 성공")
        return results

    def _run_single(
        self,
        task_fn: Callable,
        channel_ctx: Any,
        task_name: str,
    ) -> Dict[str, Any]:
        """단일 채널 실행

        작업이 {"success": False, ...}를 돌려주면 실패로 집계한다.
        """
        channel_id = channel_ctx.channel_id
        logger.info(f"[{task_name}] {channel_id} 시작")
        try:
            result = task_fn(channel_ctx)
        except Exception as e:
            logger.error(f"[{task_name}] {channel_id} 실패: {e}")
            return {
                "channel_id": channel_id,
                "success": False,
                "error": str(e),
            }

        success = not (isinstance(result, dict) and result.get("success") is False)
        logger.info(f"[{task_name}] {channel_id} 완료 (success={success})")
        entry = {"channel_id": channel_id, "success": success, "result": result}
        if not success:
            entry["error"] = result.get("error")
        return entry
