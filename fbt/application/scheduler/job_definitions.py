"""
JobDefinitions -- 스케줄 작업 정의 레지스트리

정기 실행 작업을 선언적으로 정의합니다.
"""

from dataclasses import dataclass
from typing import List


@dataclass
class JobDefinition:
    """스케줄 작업 정의

    Args:
        name: 작업 이름
        flow_class: Use Case 클래스 경로 (run() 메서드 필요)
        schedule: 기본 실행 시간 ("HH:MM"). 설정의 job_schedule이 우선한다.
        multi_channel: True면 모든 활성 채널에 대해 병렬 실행
        enabled: 활성화 여부
    """
    name: str
    flow_class: str  # 문자열로 저장 (lazy import)
    schedule: str = ""
    multi_channel: bool = True
    enabled: bool = True


SCHEDULED_JOBS: List[JobDefinition] = [
    JobDefinition(
        name="calculate_associations",
        flow_class="fbt.application.use_cases.calculate_associations_flow.CalculateAssociationsFlow",
        schedule="02:00",
        multi_channel=True,
    ),
]


def get_job(name: str) -> JobDefinition:
    """이름으로 작업 정의 조회"""
    for job in SCHEDULED_JOBS:
        if job.name == name:
            return job
    raise KeyError(f"Unknown job: {name}")


def load_flow_class(job: JobDefinition):
    """flow_class 문자열 → 클래스 (lazy import)"""
    import importlib

    module_path, class_name = job.flow_class.rsplit(".", 1)
    return getattr(importlib.import_module(module_path), class_name)
