"""
=============================================================================
포트폴리오 트래커 (Portfolio Tracker)
=============================================================================

[ 시스템 전체 구조 ]

    run_pipeline.py (진입점, 지표/전략 배치)
         │
         ├── utils/config.py        ← config.yaml 설정 로드
         ├── utils/logger.py        ← 로깅
         │
         └── service.py             ← PortfolioService (외부 계층의 단일 진입점)
               │
               ├── accounting/settlement.py   ← 매수/매도 기록 + FIFO 정산
               ├── accounting/wallet.py       ← 다중 통화 현금 원장 (total/invested/treasury)
               ├── accounting/performance.py  ← 실현 성과 지표
               │
               ├── pipeline/indicator_engine.py ← RSI/EMA/Stochastic/피벗 배치 계산
               │     └── indicators/
               └── pipeline/strategy_engine.py  ← 전략 배치 실행 + 결과 upsert
                     └── strategies/


[ 핵심 추상 클래스 (core/) - 모든 구현체의 부모 ]

    core/store.py::PortfolioStore → data/memory_store.py::InMemoryPortfolioStore
                                  → data/sql_store.py::SqlPortfolioStore (SQLAlchemy)

    core/store.py::MarketStore    → data/memory_store.py::InMemoryMarketStore
                                  → data/clickhouse_store.py::ClickHouseMarketStore

    core/strategy.py::StrategyCalculator → strategies/*.py (5개 기본 전략)


[ 데이터 흐름 ]

    1. 거래 제출 → 종목/통화 확인 → 매수는 treasury 확인, 매도는 보유 수량 확인
    2. 매도 시 오래된 매수 lot부터 소진 → 청산 기록(실현 손익) 생성
    3. 배치: 일봉 → 지표 row (증분/전체) → 전략 추천 (종목×전략별 최신 1건)
    4. 조회: 미청산 포지션 + 전략 추천, 청산 기록 → 성과 지표
"""
