"""
로깅 모듈.

[ 역할 ]
    파일 + 콘솔 로거를 설정하고, 모듈별 자식 로거를 발급.
    정산 내역, 배치 진행 상황(종목별 처리/skip), 에러 등을 기록.

[ 로거 계층 ]
    portfolio_tracker               ← setup_logger()가 핸들러를 붙이는 루트
      ├── portfolio_tracker.settlement
      ├── portfolio_tracker.wallet
      ├── portfolio_tracker.indicators
      ├── portfolio_tracker.strategies
      └── portfolio_tracker.store

[ 로그 파일 위치 ]
    {log_dir}/{name}_{YYYYMMDD}.log (예: logs/portfolio_tracker_20240601.log)

[ 호출하는 곳 ]
    - run_pipeline.py에서 setup_logger() 호출
    - 각 모듈 상단에서 logger = get_logger("settlement") 형태로 사용
"""

import logging
import sys
from datetime import datetime
from pathlib import Path

ROOT_LOGGER = "portfolio_tracker"

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def get_logger(component: str) -> logging.Logger:
    """portfolio_tracker.<component> 자식 로거."""
    return logging.getLogger(f"{ROOT_LOGGER}.{component}")


def daily_log_path(log_dir: str | Path, name: str = ROOT_LOGGER) -> Path:
    """오늘 날짜 로그 파일 경로. 디렉토리가 없으면 만든다."""
    directory = Path(log_dir)
    directory.mkdir(parents=True, exist_ok=True)
    return directory / f"{name}_{datetime.now():%Y%m%d}.log"


def setup_logger(
    name: str = ROOT_LOGGER,
    level: str = "INFO",
    log_dir: str | None = "logs",
    console: bool = True,
) -> logging.Logger:
    """로거 설정. 파일 핸들러(일별) + 콘솔 핸들러 등록.

    이미 핸들러가 있으면 레벨만 바꾼다. log_dir이 None이면 콘솔만 사용.
    """
    logger = logging.getLogger(name)
    logger.setLevel(level.upper())
    if logger.handlers:
        return logger

    handlers: list[logging.Handler] = []
    if log_dir is not None:
        handlers.append(logging.FileHandler(daily_log_path(log_dir, name), encoding="utf-8"))
    if console:
        handlers.append(logging.StreamHandler(sys.stdout))

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    return logger
