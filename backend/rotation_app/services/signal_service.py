"""Signal evaluation job.

Loads one SymbolContext per symbol, evaluates them concurrently, then
writes signals, paper fills and candidate states in batches and delivers
alerts for new alert-worthy verdicts.
"""

import asyncio
import logging
from collections import Counter
from datetime import date
from decimal import Decimal

from rotation_core.decision import RegimeInputs, SymbolContext, build_trend_features, classify_regime
from rotation_core.indicators import DEFAULT_LOOKBACK_DAYS
from rotation_core.models import (
    DEFAULT_THRESHOLDS,
    MarketRegime,
    PortfolioSettings,
    SectorMetric,
    SignalRecord,
)
from rotation_core.pipeline import SymbolOutcome, evaluate_symbol
from rotation_app.config import get_settings
from rotation_app.services.alerts import AlertNotifier
from rotation_app.services.paper_broker import PaperBroker
from rotation_app.storage import (
    AiScoreRepository,
    BarRepository,
    IndicatorRepository,
    PositionRepository,
    SectorRepository,
    SettingsRepository,
    SignalRepository,
)
from rotation_app.universe_config import normalize_symbols

logger = logging.getLogger(__name__)


def best_sector_by_symbol(
    ranks: list[SectorMetric], members: dict[str, list[str]]
) -> dict[str, tuple[str, int]]:
    """symbol -> (sector name, rank) using the best-ranked sector it belongs to."""
    best: dict[str, tuple[str, int]] = {}
    for metric in ranks:
        for symbol in members.get(metric.sector_id, []):
            if symbol not in best or metric.rank < best[symbol][1]:
                best[symbol] = (metric.sector_name, metric.rank)
    return best


class SignalService:
    """Runs the decision engine for a date."""

    def __init__(
        self,
        bar_repo: BarRepository | None = None,
        indicator_repo: IndicatorRepository | None = None,
        sector_repo: SectorRepository | None = None,
        ai_repo: AiScoreRepository | None = None,
        signal_repo: SignalRepository | None = None,
        position_repo: PositionRepository | None = None,
        settings_repo: SettingsRepository | None = None,
        notifier: AlertNotifier | None = None,
        broker: PaperBroker | None = None,
        benchmark: str | None = None,
        max_concurrency: int | None = None,
        lookback_days: int = DEFAULT_LOOKBACK_DAYS,
    ):
        settings = get_settings()
        self.bar_repo = bar_repo or BarRepository()
        self.indicator_repo = indicator_repo or IndicatorRepository()
        self.sector_repo = sector_repo or SectorRepository()
        self.ai_repo = ai_repo or AiScoreRepository()
        self.signal_repo = signal_repo or SignalRepository()
        self.position_repo = position_repo or PositionRepository()
        self.settings_repo = settings_repo or SettingsRepository()
        self.notifier = notifier or AlertNotifier(signal_repo=self.signal_repo)
        self.broker = broker or PaperBroker()
        self.benchmark = benchmark or settings.market_benchmark
        self.max_concurrency = max_concurrency or settings.max_concurrency
        # Same window as the indicator job so the EMA21 series matches row.ema21
        self.lookback_days = lookback_days

    async def _regime(self, as_of: date) -> MarketRegime | None:
        row = await self.indicator_repo.get(self.benchmark, as_of)
        closes = await self.bar_repo.get_closes_on(as_of, [self.benchmark])
        if row is None or self.benchmark not in closes:
            logger.warning("No %s regime data for %s", self.benchmark, as_of)
            return None
        return classify_regime(
            RegimeInputs(self.benchmark, closes[self.benchmark], row.ema50, row.ema200)
        )

    async def _build_context(
        self,
        symbol: str,
        as_of: date,
        indicators: dict,
        sectors: dict[str, tuple[str, int]],
        scores: dict,
        positions: dict,
        candidates: dict,
        semaphore: asyncio.Semaphore,
    ) -> SymbolContext:
        async with semaphore:
            bars = await self.bar_repo.load_bars(symbol, as_of, self.lookback_days)
            position = positions.get(symbol)
            sessions = None
            if position is not None and position.is_open and position.opened_at:
                sessions = await self.bar_repo.count_sessions(symbol, position.opened_at, as_of)

        close = bars[-1].close if bars and bars[-1].date == as_of else None
        row = indicators.get(symbol)
        trend = build_trend_features(row, bars, DEFAULT_THRESHOLDS) if row and close is not None else None

        sector_name, sector_rank = sectors.get(symbol, (None, None))
        previous_state, previous_score_id = candidates.get(symbol, (None, None))
        stored = scores.get(symbol)

        return SymbolContext(
            symbol=symbol,
            as_of=as_of,
            close=close,
            trend=trend,
            sector_name=sector_name,
            sector_rank=sector_rank,
            ai_score=stored.score if stored else None,
            ai_score_is_new=stored is not None and stored.id != previous_score_id,
            position=position,
            sessions_since_entry=sessions,
            previous_candidate=previous_state,
            extra={
                "ai_score_id": stored.id if stored else None,
                "previous_ai_score_id": previous_score_id,
            },
        )

    async def run(self, as_of: date, symbols: list[str] | None = None) -> dict:
        settings: PortfolioSettings = await self.settings_repo.get_active()

        sector_defs = await self.sector_repo.list_enabled()
        members = {s.id: s.symbols for s in sector_defs}
        open_positions = await self.position_repo.get_open()
        if symbols:
            universe = normalize_symbols(symbols)
        else:
            universe = normalize_symbols(
                [sym for s in sector_defs for sym in s.symbols]
                + [p.symbol for p in open_positions]
            )

        regime = await self._regime(as_of)
        ranks = await self.sector_repo.latest_ranks(as_of)
        sectors = best_sector_by_symbol(ranks, members)
        indicators = await self.indicator_repo.get_for_date(as_of, universe)
        scores = await self.ai_repo.latest_for_symbols(universe, as_of)
        positions = await self.position_repo.get_many(universe)
        candidates = await self.position_repo.get_candidate_states(universe)
        emissions = await self.notifier.previous_emissions(universe)

        semaphore = asyncio.Semaphore(self.max_concurrency)
        contexts = await asyncio.gather(*[
            self._build_context(s, as_of, indicators, sectors, scores, positions, candidates, semaphore)
            for s in universe
        ])

        outcomes = [
            evaluate_symbol(ctx, regime, settings, emissions.get(ctx.symbol))
            for ctx in contexts
        ]
        return await self._persist(as_of, regime, contexts, outcomes)

    async def _persist(
        self,
        as_of: date,
        regime: MarketRegime | None,
        contexts: list[SymbolContext],
        outcomes: list[SymbolOutcome],
    ) -> dict:
        signals: list[SignalRecord] = []
        positions = []
        orders = []
        candidate_rows = []

        for ctx, outcome in zip(contexts, outcomes):
            score_id = ctx.extra.get("ai_score_id")
            if ctx.close is None and ctx.position is not None and ctx.position.is_open:
                # Score stays unconsumed until a session can fill its exit
                score_id = ctx.extra.get("previous_ai_score_id")
            candidate_rows.append({
                "symbol": ctx.symbol,
                "state": outcome.candidate.value,
                "as_of_date": as_of,
                "last_ai_score_id": score_id,
            })
            decision = outcome.decision
            if decision is None:
                continue

            signal = SignalRecord(
                symbol=ctx.symbol,
                signal_type=decision.signal_type,
                as_of_date=as_of,
                reason=decision.reason,
                confidence=decision.confidence,
                shares=decision.shares,
            )
            signals.append(signal)

            if ctx.close is not None:
                filled = self.broker.fill(
                    ctx.symbol, decision, ctx.position, Decimal(ctx.close), as_of, signal.id
                )
                if filled:
                    positions.append(filled[0])
                    orders.append(filled[1])

        inserted = set(await self.signal_repo.insert_batch(signals))
        # Fills only for signals that are new; a re-run must not trade twice
        new_ids = {o.signal_id for o in orders if o.signal_id in inserted}
        await self.position_repo.save_fills(
            [p for p, o in zip(positions, orders) if o.signal_id in new_ids],
            [o for o in orders if o.signal_id in new_ids],
        )
        await self.position_repo.save_candidate_states(candidate_rows)

        alerted = []
        by_symbol = {s.symbol: s for s in signals}
        for outcome in outcomes:
            signal = by_symbol.get(outcome.symbol)
            if signal is None or signal.id not in inserted:
                continue
            if await self.notifier.deliver(outcome.alert, signal):
                alerted.append(signal.id)
        await self.signal_repo.mark_sent(alerted)

        counts = Counter(s.signal_type.value for s in signals)
        logger.info(
            "Signals %s regime=%s: %d symbols, %s, %d new, %d alerts",
            as_of, regime.value if regime else None, len(contexts),
            dict(counts), len(inserted), len(alerted),
        )
        return {
            "asOfDate": as_of.isoformat(),
            "regime": regime.value if regime else None,
            "symbolsEvaluated": len(contexts),
            "signals": dict(counts),
            "signalsInserted": len(inserted),
            "alertsSent": len(alerted),
            "candidates": dict(Counter(o.candidate.value for o in outcomes)),
        }
