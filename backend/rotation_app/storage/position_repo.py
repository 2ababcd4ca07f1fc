"""Paper position, paper order and candidate state repository."""

from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert

from rotation_core.models import (
    LIVE_STATES,
    PaperOrder,
    PaperPosition,
    PositionState,
)
from rotation_app.storage.database import (
    CandidateStateTable,
    PaperOrderTable,
    PaperPositionTable,
    get_database,
)


def _dec(value) -> Decimal | None:
    return Decimal(str(value)) if value is not None else None


def _row_to_position(row: PaperPositionTable) -> PaperPosition:
    pnl = row.pnl_json or {}
    return PaperPosition(
        symbol=row.symbol,
        state=PositionState(row.state),
        shares=row.shares,
        avg_entry=_dec(row.avg_entry),
        stop_price=_dec(row.stop_price),
        opened_at=row.opened_at,
        closed_at=row.closed_at,
        last_mark_price=_dec(row.last_mark_price),
        realized_pnl=Decimal(pnl.get("realized", "0")),
    )


class PositionRepository:
    """Repository for paper trading state."""

    async def get_many(self, symbols: list[str]) -> dict[str, PaperPosition]:
        if not symbols:
            return {}
        async with get_database().session() as session:
            result = await session.execute(
                select(PaperPositionTable).where(PaperPositionTable.symbol.in_(symbols))
            )
            return {row.symbol: _row_to_position(row) for row in result.scalars().all()}

    async def get_open(self) -> list[PaperPosition]:
        async with get_database().session() as session:
            result = await session.execute(
                select(PaperPositionTable)
                .where(PaperPositionTable.state.in_([s.value for s in LIVE_STATES]))
                .order_by(PaperPositionTable.symbol)
            )
            return [_row_to_position(row) for row in result.scalars().all()]

    async def save_fills(
        self, positions: list[PaperPosition], orders: list[PaperOrder]
    ) -> None:
        """Persist updated positions and their filled orders together."""
        if not positions and not orders:
            return

        async with get_database().session() as session:
            if positions:
                values = [
                    {
                        "symbol": p.symbol,
                        "state": p.state.value,
                        "shares": p.shares,
                        "avg_entry": p.avg_entry,
                        "stop_price": p.stop_price,
                        "opened_at": p.opened_at,
                        "closed_at": p.closed_at,
                        "last_mark_price": p.last_mark_price,
                        "pnl_json": {"realized": str(p.realized_pnl)},
                    }
                    for p in positions
                ]
                stmt = insert(PaperPositionTable).values(values)
                stmt = stmt.on_conflict_do_update(
                    index_elements=["symbol"],
                    set_={
                        c: getattr(stmt.excluded, c)
                        for c in (
                            "state", "shares", "avg_entry", "stop_price", "opened_at",
                            "closed_at", "last_mark_price", "pnl_json",
                        )
                    },
                )
                await session.execute(stmt)

            if orders:
                stmt = insert(PaperOrderTable).values([
                    {
                        "symbol": o.symbol,
                        "side": o.side.value,
                        "shares": o.shares,
                        "requested_fill_rule": o.fill_rule.value,
                        "requested_price": o.requested_price,
                        "filled_price": o.filled_price,
                        "status": o.status.value,
                        "signal_id": o.signal_id,
                        "created_at": o.created_at,
                        "filled_at": o.filled_at,
                    }
                    for o in orders
                ])
                stmt = stmt.on_conflict_do_nothing(index_elements=["signal_id"])
                await session.execute(stmt)

    async def get_candidate_states(self, symbols: list[str]) -> dict[str, tuple[str, str | None]]:
        """symbol -> (state, id of the AI score seen at that evaluation)."""
        if not symbols:
            return {}
        async with get_database().session() as session:
            result = await session.execute(
                select(
                    CandidateStateTable.symbol,
                    CandidateStateTable.state,
                    CandidateStateTable.last_ai_score_id,
                ).where(CandidateStateTable.symbol.in_(symbols))
            )
            return {symbol: (state, score_id) for symbol, state, score_id in result.all()}

    async def save_candidate_states(self, rows: list[dict]) -> None:
        """Upsert rows of {symbol, state, as_of_date, last_ai_score_id}."""
        if not rows:
            return
        async with get_database().session() as session:
            stmt = insert(CandidateStateTable).values(rows)
            stmt = stmt.on_conflict_do_update(
                index_elements=["symbol"],
                set_={
                    "state": stmt.excluded.state,
                    "as_of_date": stmt.excluded.as_of_date,
                    "last_ai_score_id": stmt.excluded.last_ai_score_id,
                },
            )
            await session.execute(stmt)
