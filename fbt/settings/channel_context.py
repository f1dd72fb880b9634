"""
ChannelContext -- 판매 채널 식별 값 객체

연관 테이블은 채널 단위로 계산·조회된다.
채널 목록은 config/channels.json에서 읽고, 파일이 없으면
FBT_DEFAULT_CHANNEL 하나만 활성으로 본다.

ChannelContext는 frozen dataclass로 멀티스레드 안전합니다.
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from fbt.settings.app_config import CHANNELS_JSON, DEFAULT_CHANNEL_ID
from fbt.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ChannelContext:
    """채널 컨텍스트 (불변 값 객체)

    Usage:
        ctx = ChannelContext.from_channel_id("default")
        service.calculate(settings, channel_id=ctx.channel_id)
    """
    channel_id: str
    channel_name: str = ""
    is_active: bool = True
    description: str = ""

    @classmethod
    def from_channel_id(cls, channel_id: str) -> "ChannelContext":
        """channel_id로 ChannelContext 생성

        Raises:
            ValueError: channels.json에 채널이 없는 경우 (기본 채널 제외)
        """
        channel_data = _find_channel_in_config(channel_id)
        if channel_data is None:
            if channel_id == DEFAULT_CHANNEL_ID:
                return cls(channel_id=channel_id, channel_name="기본채널")
            raise ValueError(f"채널 {channel_id}를 찾을 수 없습니다 (channels.json)")
        return cls.from_dict(channel_data)

    @classmethod
    def default(cls) -> "ChannelContext":
        """기본 채널 컨텍스트 (첫 번째 활성 채널)"""
        active = [c for c in _load_channels_json() if c.get("is_active", True)]
        if not active:
            return cls(channel_id=DEFAULT_CHANNEL_ID, channel_name="기본채널")
        return cls.from_dict(active[0])

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChannelContext":
        return cls(
            channel_id=str(data["channel_id"]),
            channel_name=data.get("channel_name", ""),
            is_active=data.get("is_active", True),
            description=data.get("description", ""),
        )

    @classmethod
    def get_all_active(cls) -> List["ChannelContext"]:
        """모든 활성 채널 컨텍스트 목록"""
        channels = _load_channels_json()
        if not channels:
            return [cls.default()]
        return [cls.from_dict(c) for c in channels if c.get("is_active", True)]


# ── 내부 헬퍼 함수 ──

def _load_channels_json() -> List[Dict[str, Any]]:
    """channels.json 로드"""
    if not CHANNELS_JSON.exists():
        return []
    try:
        with open(CHANNELS_JSON, 'r', encoding='utf-8') as f:
            data = json.load(f)
        return data.get("channels", [])
    except (OSError, ValueError) as e:
        logger.error(f"channels.json 로드 실패: {e}")
        return []


def _find_channel_in_config(channel_id: str) -> Optional[Dict[str, Any]]:
    for channel in _load_channels_json():
        if str(channel.get("channel_id")) == channel_id:
            return channel
    return None
