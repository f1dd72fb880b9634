"""
스케줄러 실행기 (연관 계산)

- 매일 job_schedule(기본 02:00): 모든 활성 채널 연관 계산
- 매일 04:00: 오래된 로그 정리
- 중복 실행 방지 (락 파일)

설정(enabled)이 꺼져 있으면 작업은 실행되지만 계산은 건너뛴다.
실패한 실행은 다음 예약 시각까지 재시도하지 않는다.

Usage:
    python run_scheduler.py                  # 스케줄러 시작
    python run_scheduler.py --now            # 즉시 1회 실행 (모든 활성 채널)
    python run_scheduler.py --now --channel default
    python run_scheduler.py --time 03:30     # 설정 대신 지정 시각 사용
"""

import argparse
import atexit
import os
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import schedule

# 경로 설정
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from fbt.application.scheduler.job_definitions import get_job, load_flow_class
from fbt.application.scheduler.job_scheduler import MultiChannelRunner
from fbt.infrastructure.database.repos import AssociationSettingsRepository
from fbt.infrastructure.database.schema import init_db
from fbt.settings.app_config import SCHEDULER_LOCK_FILE
from fbt.settings.channel_context import ChannelContext
from fbt.utils.logger import cleanup_old_logs, get_logger

logger = get_logger(__name__)

LOCK_FILE = SCHEDULER_LOCK_FILE

_runner = MultiChannelRunner(max_workers=4)


def _is_pid_running(pid: int) -> bool:
    """PID가 실행 중인지 확인"""
    try:
        os.kill(pid, 0)
        return True
    except OSError:
        return False


def acquire_lock() -> bool:
    """락 파일 생성 (중복 실행 방지)"""
    try:
        LOCK_FILE.parent.mkdir(parents=True, exist_ok=True)

        if LOCK_FILE.exists():
            try:
                old_pid = int(LOCK_FILE.read_text().strip())
                if _is_pid_running(old_pid):
                    print(f"[ERROR] 스케줄러가 이미 실행 중입니다 (PID: {old_pid})")
                    return False
                print("[WARN] 오래된 락 파일 발견. 삭제합니다.")
                LOCK_FILE.unlink()
            except (ValueError, FileNotFoundError):
                LOCK_FILE.unlink(missing_ok=True)

        LOCK_FILE.write_text(str(os.getpid()))
        return True
    except OSError as e:
        print(f"[ERROR] 락 파일 생성 실패: {e}")
        return False


def release_lock() -> None:
    """락 파일 삭제"""
    try:
        if LOCK_FILE.exists():
            LOCK_FILE.unlink()
            print("[INFO] 락 파일 삭제됨")
    except OSError as e:
        print(f"[WARN] 락 파일 삭제 실패: {e}")


# ── 작업 래퍼 ──

def calculate_associations_wrapper(channel_id: Optional[str] = None) -> List[Dict[str, Any]]:
    """연관 계산 -- 채널별 병렬 (channel_id 지정 시 해당 채널만)"""
    logger.info("=" * 60)
    logger.info(f"Association calculation at {datetime.now().isoformat()}")
    logger.info("=" * 60)

    job = get_job("calculate_associations")
    flow_class = load_flow_class(job)

    runner = _runner
    if channel_id:
        runner = MultiChannelRunner(channels=[ChannelContext.from_channel_id(channel_id)])

    results = runner.run_parallel(
        task_fn=lambda ctx: flow_class(channel_ctx=ctx).run(),
        task_name="CalculateAssociations",
    )
    for r in results:
        result = r.get("result") or {}
        logger.info(
            f"  - {r['channel_id']}: status={result.get('status', 'error')}, "
            f"associations={result.get('associations_count', 0)}, "
            f"duration_ms={result.get('duration_ms', 0)}"
        )
    return results


def log_cleanup_wrapper() -> None:
    """로그 정리 (30일 초과 삭제, 50MB 초과 잘라내기)"""
    cleanup_old_logs(max_age_days=30, max_file_mb=50)
    logger.info("[Scheduler] Log cleanup done")


# ── 실행 모드 ──

def run_scheduler(schedule_time: Optional[str] = None) -> None:
    """스케줄러 실행

    Args:
        schedule_time: 실행 시간 (HH:MM). None이면 설정의 job_schedule.
    """
    if not acquire_lock():
        sys.exit(1)
    atexit.register(release_lock)

    logger.info("=" * 60)
    logger.info("FBT Association Engine - Scheduler")
    logger.info("=" * 60)
    logger.info(f"[Scheduler] Started at: {datetime.now().isoformat()}")
    logger.info(f"[Scheduler] PID: {os.getpid()}")
    logger.info("[Scheduler] Press Ctrl+C to stop")
    logger.info("=" * 60)

    init_db()
    settings = AssociationSettingsRepository().ensure_defaults()
    run_at = schedule_time or settings.job_schedule

    schedule.every().day.at(run_at).do(calculate_associations_wrapper)
    logger.info(f"[Schedule] Association calculation: {run_at} (enabled={settings.enabled})")

    schedule.every().day.at("04:00").do(log_cleanup_wrapper)
    logger.info("[Schedule] Log cleanup: 04:00")

    logger.info(f"[Scheduler] Total jobs: {len(schedule.jobs)}")
    logger.info(f"[Scheduler] Next run: {schedule.next_run()}")

    while True:
        schedule.run_pending()
        time.sleep(60)  # 1분마다 체크


def run_now(channel_id: Optional[str] = None) -> int:
    """즉시 1회 실행"""
    init_db()
    AssociationSettingsRepository().ensure_defaults()
    results = calculate_associations_wrapper(channel_id)
    return 0 if all(r.get("success") for r in results) else 1


def main() -> None:
    parser = argparse.ArgumentParser(description="FBT association calculation scheduler")
    parser.add_argument(
        "--now",
        action="store_true",
        help="Run association calculation immediately and exit",
    )
    parser.add_argument(
        "--time",
        type=str,
        default=None,
        help="Daily run time HH:MM (default: job_schedule setting)",
    )
    parser.add_argument(
        "--channel",
        type=str,
        default=None,
        help="Run for specific channel ID only (with --now)",
    )
    args = parser.parse_args()

    cleanup_old_logs(max_age_days=30, max_file_mb=50)

    try:
        if args.now:
            sys.exit(run_now(args.channel))
        run_scheduler(args.time)
    except KeyboardInterrupt:
        print("\n[Scheduler] Stopped by user")
        release_lock()
        sys.exit(0)


if __name__ == "__main__":
    main()
