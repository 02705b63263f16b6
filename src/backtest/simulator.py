"""
Bar-by-bar backtest simulation.

A BacktestSimulator owns the mutable state of exactly one session: cash,
the open position, the trade journal and the equity curve. Each call to
process_next_bar runs one full bar and appends exactly one equity snapshot,
so stopping between calls never leaves a torn snapshot.
"""

from collections.abc import Callable, Mapping, Sequence
from decimal import Decimal

from loguru import logger

from src.backtest.equity_curve import EquityCurve
from src.backtest.executor import SimulatedExecutor
from src.core.constants import MIN_TRADE_CAPITAL_FLOOR, MIN_TRADE_CAPITAL_RATIO
from src.core.enums import SignalType, SizingMethod
from src.core.exceptions.backtest import InsufficientFundsError
from src.core.exceptions.conditions import SignalConflictError
from src.core.exceptions.risk import PositionSizingError
from src.core.models.backtest import BacktestConfig, EquitySnapshot
from src.core.models.bar import Bar
from src.core.models.indicator import IndicatorSeries
from src.core.models.portfolio import PortfolioState, PositionExposure, ProposedTrade
from src.core.models.position import Position
from src.core.models.trade import Trade
from src.core.types.financial import ONE, ZERO
from src.risk.position_sizer import size_position, stop_price_for
from src.risk.risk_manager import RiskManager
from src.strategy.conditions import EvaluationContext
from src.strategy.indicator_orchestrator import IndicatorOrchestrator
from src.strategy.signal_evaluator import (
    CompiledStrategy,
    SignalEvaluator,
    build_context,
    compile_strategy,
)


class BacktestSimulator:
    """
    Simulates one strategy over a validated bar series.

    Args:
        config: Backtest configuration
        bars: Bars ordered by timestamp
        indicators: Precomputed indicator series keyed by name
        warmup_bars: Bars that must be seen before signals are evaluated
        risk_manager: Risk gate, defaults to the strategy's limits
        executor: Fill simulator, defaults to the config's cost model
        session_id: Owning session, used for log context
    """

    def __init__(
        self,
        config: BacktestConfig,
        bars: Sequence[Bar],
        indicators: Mapping[str, IndicatorSeries] | None = None,
        warmup_bars: int = 0,
        risk_manager: RiskManager | None = None,
        executor: SimulatedExecutor | None = None,
        compiled: CompiledStrategy | None = None,
        session_id: str = "",
    ) -> None:
        self.config = config
        self.strategy = config.strategy
        self.session_id = session_id
        self._bars = list(bars)
        self._indicators = dict(indicators or {})
        self._warmup_bars = warmup_bars
        self._compiled = compiled or compile_strategy(self.strategy)
        self._evaluator = SignalEvaluator(config.treat_undefined_as_no_signal)
        self._risk_manager = risk_manager or RiskManager(self.strategy.risk.limits)
        self._executor = executor or SimulatedExecutor(config.commission_rate, config.slippage_bps)
        self._min_trade_capital = max(
            config.initial_capital * MIN_TRADE_CAPITAL_RATIO, MIN_TRADE_CAPITAL_FLOOR
        )

        self._cash = config.initial_capital
        self._position: Position | None = None
        self._portfolio = PortfolioState.initial(config.initial_capital)
        self._realized_since_last_bar = ZERO
        self._previous_context: EvaluationContext | None = None
        self._index = 0

        self.trades: list[Trade] = []
        self.closed_positions: list[Position] = []
        self.equity_curve = EquityCurve()
        self.signal_conflicts = 0
        self.risk_denials = 0
        self._conflict_warning_emitted = False

    @property
    def bars_processed(self) -> int:
        return self._index

    @property
    def total_bars(self) -> int:
        return len(self._bars)

    @property
    def is_finished(self) -> bool:
        return self._index >= len(self._bars)

    @property
    def cash(self) -> Decimal:
        return self._cash

    @property
    def position(self) -> Position | None:
        return self._position

    @property
    def portfolio(self) -> PortfolioState:
        return self._portfolio

    def run(self, should_stop: Callable[[], bool] | None = None) -> None:
        """Process remaining bars synchronously, checking should_stop between bars."""
        while not self.is_finished:
            if should_stop is not None and should_stop():
                logger.info(
                    f"Simulation {self.session_id} stopped after {self._index} bars",
                    extra={"session_id": self.session_id},
                )
                return
            self.process_next_bar()

    def process_next_bar(self) -> EquitySnapshot:
        """
        Run one bar: mark to market, evaluate signals, trade, snapshot.

        Raises:
            UndefinedVariableError: When a condition references an unknown
                variable and undefined variables are not treated as no signal
        """
        bar = self._bars[self._index]
        self._mark_to_market(bar)

        if self._index + 1 >= self._warmup_bars:
            self._evaluate_bar(bar)

        snapshot = self._snapshot(bar)
        self.equity_curve.append(snapshot)
        self._index += 1
        return snapshot

    def _mark_to_market(self, bar: Bar) -> None:
        if self._position is not None:
            self._position.update_market_price(bar.close)
            self._position.bars_held += 1

        self._portfolio = self._portfolio.advance(
            equity=self._equity(bar.close),
            open_positions=self._exposures(),
            realized_pnl=self._realized_since_last_bar,
            trading_day=bar.timestamp.date(),
        )
        self._realized_since_last_bar = ZERO

    def _evaluate_bar(self, bar: Bar) -> None:
        values = IndicatorOrchestrator.value_at(self._indicators, bar.timestamp)
        context = build_context(
            bar, values, self.strategy.symbol, self._position, self._previous_context
        )
        self._previous_context = context.with_previous(None)

        result = self._evaluator.evaluate(self._compiled, context)
        try:
            self._evaluator.detect_conflicts(result)
        except SignalConflictError as e:
            self._record_conflict(bar, e)
            return

        if self._position is not None and (result.exit or result.stop):
            self._close_position(bar, SignalType.EXIT if result.exit else SignalType.STOP)
        elif self._position is None and result.entry:
            self._open_position(bar)

    def _record_conflict(self, bar: Bar, error: SignalConflictError) -> None:
        self.signal_conflicts += 1
        logger.warning(
            f"{error} at {bar.timestamp.isoformat()}; skipping bar",
            extra={"session_id": self.session_id, "signals": error.signals},
        )
        threshold = self.config.conflict_warning_threshold
        if (
            threshold is not None
            and self.signal_conflicts >= threshold
            and not self._conflict_warning_emitted
        ):
            self._conflict_warning_emitted = True
            logger.warning(
                f"Session {self.session_id} reached {self.signal_conflicts} signal conflicts; "
                f"strategy {self.strategy.name} conditions overlap",
                extra={"session_id": self.session_id},
            )

    def _open_position(self, bar: Bar) -> None:
        if self._cash < self._min_trade_capital:
            logger.debug(f"Cash {self._cash} below minimum trade capital, skipping entry")
            return

        side = self.strategy.side
        trade_side = side.opening_trade_side()
        expected_price = self._executor.calculate_fill_price(bar.close, trade_side)
        sizing = self.strategy.position_sizing
        stop_loss_pct = self.strategy.effective_stop_loss_pct()
        stop_price = None
        if sizing.method == SizingMethod.RISK_BASED and stop_loss_pct is not None:
            stop_price = stop_price_for(expected_price, stop_loss_pct, side)

        try:
            quantity = size_position(
                sizing, self._portfolio.current_equity, expected_price, stop_price
            )
        except PositionSizingError as e:
            logger.warning(f"Entry skipped at {bar.timestamp.isoformat()}: {e}")
            return

        if side.is_long:
            quantity = min(
                quantity,
                self._executor.max_affordable_quantity(self._cash, bar.close, trade_side),
            )
        if quantity <= ZERO:
            return

        proposed = ProposedTrade(self.strategy.symbol, trade_side, quantity, bar.close)
        decision = self._risk_manager.check_trade(proposed, self._portfolio)
        if not decision:
            self.risk_denials += 1
            logger.warning(
                f"Entry denied at {bar.timestamp.isoformat()}: {decision.message}",
                extra={"session_id": self.session_id, "reason": str(decision.reason)},
            )
            return

        try:
            fill = self._executor.execute(trade_side, quantity, bar.close)
            if side.is_long:
                SimulatedExecutor.validate_order(
                    trade_side, quantity, fill.price, self._cash - fill.fee
                )
        except InsufficientFundsError as e:
            logger.warning(f"Entry skipped at {bar.timestamp.isoformat()}: {e}")
            return

        self._cash -= side.direction * fill.notional + fill.fee
        self._position = Position(
            symbol=self.strategy.symbol,
            side=side,
            quantity=quantity,
            entry_price=fill.price,
            opened_at=bar.timestamp,
            fees=fill.fee,
            stop_loss=self._protective_level(fill.price, self.strategy.risk.stop_loss_pct, -1),
            take_profit=self._protective_level(fill.price, self.strategy.risk.take_profit_pct, 1),
        )
        self.trades.append(
            Trade(
                timestamp=bar.timestamp,
                symbol=self.strategy.symbol,
                side=trade_side,
                signal_type=SignalType.ENTRY,
                quantity=quantity,
                price=fill.price,
                fee=fill.fee,
                requested_price=bar.close,
            )
        )
        logger.debug(
            f"Opened {side} {quantity} {self.strategy.symbol} @ {fill.price}",
            extra={"session_id": self.session_id},
        )

    def _protective_level(self, entry: Decimal, pct: Decimal | None, sign: int) -> Decimal | None:
        """Stop (sign -1) or take-profit (sign 1) price for the strategy side."""
        if pct is None:
            return None
        return entry * (ONE + sign * self.strategy.side.direction * pct)

    def _close_position(self, bar: Bar, signal_type: SignalType) -> None:
        position = self._position
        if position is None:
            return

        trade_side = position.side.closing_trade_side()
        fill = self._executor.execute(trade_side, position.quantity, bar.close)
        realized = position.close(fill.price, fill.fee, bar.timestamp)

        self._cash += position.side.direction * fill.notional - fill.fee
        self._realized_since_last_bar += realized
        self.trades.append(
            Trade(
                timestamp=bar.timestamp,
                symbol=position.symbol,
                side=trade_side,
                signal_type=signal_type,
                quantity=position.quantity,
                price=fill.price,
                fee=fill.fee,
                pnl=realized,
                requested_price=bar.close,
                entry_price=position.entry_price,
                exit_price=fill.price,
                duration=position.holding_duration(),
            )
        )
        self.closed_positions.append(position)
        self._position = None
        logger.debug(
            f"Closed {position.side} {position.symbol} on {signal_type} with PnL {realized}",
            extra={"session_id": self.session_id},
        )

    def _equity(self, price: Decimal) -> Decimal:
        if self._position is None:
            return self._cash
        return self._cash + self._position.market_value(price)

    def _exposures(self) -> tuple[PositionExposure, ...]:
        position = self._position
        if position is None or position.current_price is None:
            return ()
        return (
            PositionExposure(
                symbol=position.symbol,
                side=position.side,
                quantity=position.quantity,
                current_price=position.current_price,
                unrealized_pnl=position.unrealized_pnl,
            ),
        )

    def _snapshot(self, bar: Bar) -> EquitySnapshot:
        positions_value = (
            self._position.market_value(bar.close) if self._position is not None else ZERO
        )
        return EquitySnapshot(
            timestamp=bar.timestamp,
            equity=self._cash + positions_value,
            cash=self._cash,
            positions_value=positions_value,
        )
