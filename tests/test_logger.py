"""
로깅 유틸리티 (fbt.utils.logger) 테스트

- log_with_context(): 컨텍스트 키=값 포맷
- get_logger(): 모듈명 기반 로그 파일 분류
- cleanup_old_logs(): 오래된 백업 삭제, 비대 파일 잘라내기
"""

import logging
import os
import time
from unittest.mock import MagicMock

import pytest

import fbt.utils.logger as logger_module
from fbt.utils.logger import LOG_FILES, cleanup_old_logs, get_logger, log_with_context


def _file_handler_paths(logger):
    return {
        os.path.normcase(os.path.abspath(h.baseFilename))
        for h in logger.handlers
        if isinstance(h, logging.FileHandler)
    }


@pytest.mark.unit
class TestLogWithContext:

    def test_context_appended(self):
        mock_logger = MagicMock()
        log_with_context(mock_logger, "warning", "lift 계산 실패", source="P1", target="P2")

        msg = mock_logger.warning.call_args[0][0]
        assert msg == "lift 계산 실패 | source=P1 | target=P2"

    def test_none_values_excluded(self):
        mock_logger = MagicMock()
        log_with_context(mock_logger, "info", "완료", channel_id=None)

        mock_logger.info.assert_called_once_with("완료", exc_info=False)

    def test_exc_info_passed(self):
        mock_logger = MagicMock()
        log_with_context(mock_logger, "error", "에러", exc_info=True, channel_id="default")

        assert mock_logger.error.call_args[1]["exc_info"] is True


@pytest.mark.unit
class TestGetLogger:

    def test_calculation_modules_routed(self):
        logger = get_logger("fbt.association.scoring")
        assert os.path.normcase(os.path.abspath(LOG_FILES["calculation"])) in _file_handler_paths(logger)

    def test_recommendation_modules_routed(self):
        logger = get_logger("fbt.application.services.recommendation_service")
        assert os.path.normcase(os.path.abspath(LOG_FILES["recommendation"])) in _file_handler_paths(logger)

    def test_other_modules_to_main(self):
        logger = get_logger("fbt.settings.channel_context")
        assert os.path.normcase(os.path.abspath(LOG_FILES["main"])) in _file_handler_paths(logger)

    def test_configured_once(self):
        first = get_logger("fbt.tests.once")
        count = len(first.handlers)

        assert get_logger("fbt.tests.once") is first
        assert len(first.handlers) == count


@pytest.mark.unit
class TestCleanupOldLogs:

    @pytest.fixture
    def log_dir(self, tmp_path, monkeypatch):
        monkeypatch.setattr(logger_module, "LOG_DIR", tmp_path)
        return tmp_path

    def test_old_backups_removed(self, log_dir):
        old = log_dir / "fbt.log.3"
        old.write_text("old")
        past = time.time() - 40 * 24 * 3600
        os.utime(old, (past, past))
        recent = log_dir / "fbt.log.1"
        recent.write_text("recent")

        cleanup_old_logs(max_age_days=30)

        assert not old.exists()
        assert recent.exists()

    def test_oversized_log_truncated(self, log_dir):
        big = log_dir / "calculation.log"
        big.write_bytes(b"x" * 100 + b"\n" + b"tail line\n" * 10)

        logger_module._truncate_log_file(big, keep_bytes=50)

        content = big.read_bytes()
        assert content.startswith(b"[LOG TRUNCATED")
        assert content.endswith(b"tail line\n")
        assert len(content) < 120
