"""
Backtest session orchestration.

BacktestService starts sessions as independent asyncio tasks, bounds how
many simulate at once, exposes non-blocking progress and hands out results
once a session is terminal. Each session's simulation state is owned by
its own task.
"""

import asyncio
import time
from collections.abc import Sequence

from loguru import logger

from src.backtest.concurrency import ConcurrencyManager
from src.backtest.metrics import calculate_metrics
from src.backtest.simulator import BacktestSimulator
from src.core.constants import DEFAULT_MAX_CONCURRENT_BACKTESTS, PROGRESS_YIELD_INTERVAL
from src.core.enums import SessionStatus
from src.core.exceptions.backtest import (
    BacktestStillRunningError,
    ConfigurationError,
    SessionCancelledError,
    SessionNotFoundError,
    TradingEngineException,
)
from src.core.interfaces.data import IMarketDataSource
from src.core.interfaces.indicators import IIndicatorCalculator
from src.core.models.backtest import BacktestConfig, BacktestResult, BacktestSession, Progress
from src.core.models.bar import Bar
from src.core.settings import EngineSettings
from src.core.utils.decorators import log_operation
from src.infrastructure.data.ohlcv_validator import OHLCVValidator
from src.strategy.indicator_orchestrator import IndicatorOrchestrator
from src.strategy.signal_evaluator import compile_strategy


class BacktestService:
    """
    Runs backtest sessions concurrently.

    Args:
        data_source: Market-data source for configs without inline bars
        calculator: Indicator calculator, defaults to the built-in one
        max_concurrent: Size of the running-session pool
        progress_interval: Bars between progress updates and event-loop yields
        settings: Engine settings; overrides max_concurrent when given
    """

    def __init__(
        self,
        data_source: IMarketDataSource | None = None,
        calculator: IIndicatorCalculator | None = None,
        max_concurrent: int = DEFAULT_MAX_CONCURRENT_BACKTESTS,
        progress_interval: int = PROGRESS_YIELD_INTERVAL,
        settings: EngineSettings | None = None,
    ) -> None:
        if settings is not None:
            max_concurrent = settings.max_concurrent_backtests
        if progress_interval < 1:
            raise ConfigurationError(
                f"progress_interval must be at least 1, got {progress_interval}"
            )
        self._data_source = data_source
        self._orchestrator = IndicatorOrchestrator(calculator)
        self._validator = OHLCVValidator()
        self._concurrency = ConcurrencyManager(max_concurrent)
        self._progress_interval = progress_interval
        self._sessions: dict[str, BacktestSession] = {}
        self._results: dict[str, BacktestResult] = {}
        self._tasks: dict[str, asyncio.Task[None]] = {}

    @property
    def concurrency(self) -> ConcurrencyManager:
        return self._concurrency

    @log_operation
    async def start_backtest(self, config: BacktestConfig) -> str:
        """
        Create a session and schedule it.

        Returns:
            The new session id
        """
        session = BacktestSession(config=config)
        self._sessions[session.id] = session
        self._tasks[session.id] = asyncio.create_task(
            self._run_session(session), name=f"backtest-{session.id}"
        )
        logger.info(
            f"Backtest {session.id} created for strategy {config.strategy.name}",
            extra={"session_id": session.id},
        )
        return session.id

    def get_session(self, session_id: str) -> BacktestSession:
        """
        Raises:
            SessionNotFoundError: For unknown ids
        """
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def get_progress(self, session_id: str) -> Progress:
        return self.get_session(session_id).progress()

    def get_result(self, session_id: str) -> BacktestResult:
        """
        Raises:
            SessionNotFoundError: For unknown ids
            BacktestStillRunningError: While the session is not terminal
        """
        session = self.get_session(session_id)
        result = self._results.get(session_id)
        if not session.status.is_terminal or result is None:
            raise BacktestStillRunningError(session_id, session.status.value)
        return result

    async def wait_for_result(self, session_id: str) -> BacktestResult:
        """Wait for a session's task to finish and return its result."""
        self.get_session(session_id)
        task = self._tasks.get(session_id)
        if task is not None:
            await asyncio.shield(task)
        return self.get_result(session_id)

    def cancel(self, session_id: str) -> bool:
        """
        Request cooperative cancellation.

        A queued session stops immediately. A running one finishes its
        in-flight bar and then stops.

        Returns:
            False when the session had already finished
        """
        session = self.get_session(session_id)
        if session.status.is_terminal:
            logger.info(f"Backtest {session_id} already {session.status}, nothing to cancel")
            return False

        session.cancel_requested = True
        if session.status == SessionStatus.QUEUED and self._concurrency.withdraw(session_id):
            session.transition(SessionStatus.STOPPED)
        logger.info(f"Cancellation requested for backtest {session_id}")
        return True

    def list_sessions(
        self,
        status: SessionStatus | None = None,
        strategy_name: str | None = None,
    ) -> list[BacktestSession]:
        """Sessions ordered by creation time, optionally filtered."""
        sessions = sorted(self._sessions.values(), key=lambda s: s.created_at)
        if status is not None:
            sessions = [s for s in sessions if s.status == status]
        if strategy_name is not None:
            sessions = [s for s in sessions if s.strategy.name == strategy_name]
        return sessions

    async def shutdown(self) -> None:
        """Cancel every active session and wait for their tasks."""
        for session in self._sessions.values():
            if session.status.is_active:
                self.cancel(session.id)
        tasks = [task for task in self._tasks.values() if not task.done()]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info(f"Backtest service shut down ({len(tasks)} tasks awaited)")

    async def _run_session(self, session: BacktestSession) -> None:
        simulator: BacktestSimulator | None = None
        acquired = False
        try:
            await self._concurrency.acquire(
                session.id, on_queued=lambda _: session.transition(SessionStatus.QUEUED)
            )
            acquired = True
            session.transition(SessionStatus.RUNNING)
            if session.cancel_requested:
                raise SessionCancelledError(session.id, 0)

            simulator = await self._prepare(session)
            await self._simulate(session, simulator)
            session.transition(SessionStatus.COMPLETED)
            logger.success(
                f"Backtest {session.id} completed: {simulator.bars_processed} bars, "
                f"{len(simulator.trades)} trades",
                extra={"session_id": session.id},
            )
        except SessionCancelledError:
            if session.status != SessionStatus.STOPPED:
                session.transition(SessionStatus.STOPPED)
            logger.info(
                f"Backtest {session.id} stopped after {session.bars_processed} bars",
                extra={"session_id": session.id},
            )
        except TradingEngineException as e:
            self._fail(session, e)
        except Exception as e:
            logger.exception(f"Unexpected error in backtest {session.id}")
            self._fail(session, e)
        finally:
            self._results[session.id] = self._build_result(session, simulator)
            if acquired:
                self._concurrency.release(session.id)

    def _fail(self, session: BacktestSession, error: Exception) -> None:
        session.error_message = str(error)
        session.transition(SessionStatus.FAILED)
        logger.error(
            f"Backtest {session.id} failed: {error}",
            extra={"session_id": session.id, "error_type": type(error).__name__},
        )

    async def _prepare(self, session: BacktestSession) -> BacktestSimulator:
        """Validate the strategy and data and precompute indicators."""
        config = session.config
        strategy = config.strategy
        compiled = compile_strategy(strategy)
        self._orchestrator.validate_unique_names(strategy.indicators)

        bars = await self._load_bars(config)
        session.total_bars = len(bars)
        self._validator.validate_bars(bars, strategy.timeframe)
        indicators = await self._orchestrator.calculate_all_async(strategy.indicators, bars)

        return BacktestSimulator(
            config=config,
            bars=bars,
            indicators=indicators,
            warmup_bars=self._orchestrator.minimum_bars_required(strategy.indicators),
            compiled=compiled,
            session_id=session.id,
        )

    async def _load_bars(self, config: BacktestConfig) -> Sequence[Bar]:
        if config.bars is not None:
            return config.bars
        if self._data_source is None:
            raise ConfigurationError("No market data source configured and no bars supplied")
        if config.start_date is None or config.end_date is None:
            raise ConfigurationError("A date range is required to fetch bars")
        strategy = config.strategy
        return await self._data_source.fetch_historical_bars(
            strategy.symbol, strategy.timeframe, config.start_date, config.end_date
        )

    async def _simulate(self, session: BacktestSession, simulator: BacktestSimulator) -> None:
        started = time.monotonic()
        while not simulator.is_finished:
            if session.cancel_requested:
                raise SessionCancelledError(session.id, simulator.bars_processed)

            simulator.process_next_bar()
            processed = simulator.bars_processed
            if processed % self._progress_interval == 0 or simulator.is_finished:
                elapsed = time.monotonic() - started
                remaining = simulator.total_bars - processed
                session.record_progress(processed, elapsed / processed * remaining)
                await asyncio.sleep(0)

    def _build_result(
        self, session: BacktestSession, simulator: BacktestSimulator | None
    ) -> BacktestResult:
        if simulator is None:
            return BacktestResult(
                session_id=session.id,
                status=session.status,
                config=session.config,
                trades=(),
                equity_curve=(),
                metrics=None,
                bars_processed=0,
                total_bars=session.total_bars,
                error_message=session.error_message,
                started_at=session.started_at,
                ended_at=session.ended_at,
            )

        eta = 0.0 if simulator.is_finished else session.eta_seconds
        session.record_progress(simulator.bars_processed, eta)
        equity_curve = simulator.equity_curve.points
        metrics = (
            calculate_metrics(simulator.trades, equity_curve, session.config.initial_capital)
            if equity_curve
            else None
        )
        return BacktestResult(
            session_id=session.id,
            status=session.status,
            config=session.config,
            trades=tuple(simulator.trades),
            equity_curve=equity_curve,
            metrics=metrics,
            bars_processed=simulator.bars_processed,
            total_bars=simulator.total_bars,
            signal_conflicts=simulator.signal_conflicts,
            risk_denials=simulator.risk_denials,
            error_message=session.error_message,
            started_at=session.started_at,
            ended_at=session.ended_at,
        )
