"""
추천 전략 모듈.

[ 전략 등록 방식 ]
    @register(StrategyId.XXX) 데코레이터를 붙이면 STRATEGY_REGISTRY에 자동 등록.
    StrategyEngine과 run_pipeline.py는 전략 ID 문자열만으로 전략 인스턴스를 만든다.

[ 새 전략 추가 방법 ]
    1. 이 디렉토리에 새 .py 파일 생성
    2. StrategyCalculator를 상속받는 클래스 작성 (compute_batch, describe 구현)
    3. @register("전략ID") 데코레이터 추가
    4. config.yaml의 strategies.enabled에 ID 추가
"""

from importlib import import_module
from pathlib import Path
from typing import Any

from portfolio_tracker.core.strategy import StrategyCalculator, StrategyId

# 전략 ID → 전략 클래스 매핑
STRATEGY_REGISTRY: dict[str, type[StrategyCalculator]] = {}


def register(strategy_id: str | StrategyId):
    """전략 클래스를 STRATEGY_REGISTRY에 등록하는 데코레이터."""
    key = strategy_id.value if isinstance(strategy_id, StrategyId) else strategy_id

    def decorator(cls: type[StrategyCalculator]):
        STRATEGY_REGISTRY[key] = cls
        return cls
    return decorator


def create_strategy(strategy_id: str | StrategyId, params: dict[str, Any] | None = None) -> StrategyCalculator:
    """ID로 전략 인스턴스를 생성.

    Args:
        strategy_id: 등록된 전략 ID (예: "rsi", "point_pivot")
        params: 전략 파라미터 (각 전략의 DEFAULT_PARAMS를 오버라이드)

    Raises:
        ValueError: 등록되지 않은 전략 ID
    """
    key = strategy_id.value if isinstance(strategy_id, StrategyId) else strategy_id
    if key not in STRATEGY_REGISTRY:
        available = ", ".join(sorted(STRATEGY_REGISTRY.keys()))
        raise ValueError(f"Unknown strategy: '{key}'. Available: {available}")
    return STRATEGY_REGISTRY[key](params=params)


def list_strategies() -> list[str]:
    """등록된 전략 ID 목록 반환."""
    return sorted(STRATEGY_REGISTRY.keys())


def _auto_discover():
    """이 디렉토리의 모든 전략 모듈을 자동 임포트하여 @register가 실행되게 한다."""
    strategies_dir = Path(__file__).parent
    for py_file in strategies_dir.glob("*.py"):
        if py_file.name.startswith("_"):
            continue
        import_module(f"portfolio_tracker.strategies.{py_file.stem}")


# 모듈 로드 시 자동 탐색
_auto_discover()
