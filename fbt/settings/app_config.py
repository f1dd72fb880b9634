"""
통합 설정 진입점

경로와 환경변수 기반 설정을 한곳에서 제공한다.
.env 파일이 있으면 python-dotenv로 먼저 로드한다.

Usage:
    from fbt.settings.app_config import DB_PATH, DEFAULT_CHANNEL_ID
    from fbt.settings.constants import DEFAULT_SETTINGS
"""

import os
from pathlib import Path

from dotenv import load_dotenv

# ── 프로젝트 경로 ──
PROJECT_ROOT = Path(__file__).parent.parent.parent
CONFIG_DIR = PROJECT_ROOT / "config"
DATA_DIR = PROJECT_ROOT / "data"

load_dotenv(PROJECT_ROOT / ".env")

# ── DB ──
DEFAULT_DB_NAME = "fbt.db"
DB_PATH = Path(os.getenv("FBT_DB_PATH") or DATA_DIR / DEFAULT_DB_NAME)
DB_TIMEOUT_SECONDS = 10

# ── 채널 ──
CHANNELS_JSON = CONFIG_DIR / "channels.json"
DEFAULT_CHANNEL_ID = os.getenv("FBT_DEFAULT_CHANNEL", "default")

# ── 스케줄러 ──
SCHEDULER_LOCK_FILE = DATA_DIR / "scheduler.lock"
