"""Tests for the Stooq and research AI clients."""

from datetime import date
from decimal import Decimal

import httpx
import orjson
import pytest

from rotation_core.errors import InvalidAiScore
from rotation_core.models import DocType, GrowthPhase, HypeRisk
from rotation_app.clients import (
    ResearchAiClient,
    StooqClient,
    build_stooq_url,
    parse_acceleration_score,
    parse_stooq_csv,
    pick_bar_for_date,
)

SPY_CSV = """Date,Open,High,Low,Close,Volume
2026-02-12,10,12,9,11,100
2026-02-13,11,13,10,12,200
"""

VALID_SCORE = {
    "growth_phase": "strong_acceleration",
    "conviction": 82,
    "hype_risk": "medium",
    "catalysts": ["datacenter demand"],
    "risks": ["supply"],
    "summary": "Revenue growth accelerating.",
}


class TestStooqParsing:
    def test_parse_two_bars(self):
        bars = parse_stooq_csv("SPY", SPY_CSV)

        assert len(bars) == 2
        assert bars[-1].close == Decimal("12")
        assert bars[-1].volume == 200
        assert bars[-1].date == date(2026, 2, 13)

    def test_drops_non_numeric_rows(self):
        csv_text = SPY_CSV + "2026-02-14,abc,13,10,12,200\n2026-02-15,11,13,10,,200\n"
        bars = parse_stooq_csv("SPY", csv_text)
        assert [b.date for b in bars] == [date(2026, 2, 12), date(2026, 2, 13)]

    def test_drops_bad_dates_and_short_rows(self):
        csv_text = SPY_CSV + "not-a-date,1,1,1,1,1\n2026-02-16,1,1\n"
        assert len(parse_stooq_csv("SPY", csv_text)) == 2

    def test_quoted_fields(self):
        csv_text = SPY_CSV + '2026-02-17,"12","14","11","13.5","300"\n'
        bars = parse_stooq_csv("SPY", csv_text)
        assert bars[-1].close == Decimal("13.5")
        assert bars[-1].volume == 300

    def test_no_data(self):
        assert parse_stooq_csv("SPY", "No data") == []

    def test_pick_bar_for_date(self):
        bars = parse_stooq_csv("SPY", SPY_CSV)
        assert pick_bar_for_date(bars, date(2026, 2, 12)).close == Decimal("11")
        assert pick_bar_for_date(bars, date(2026, 2, 14)) is None

    def test_build_url(self):
        url = build_stooq_url("SPY", "https://stooq.com/q/d/l/")
        assert url == "https://stooq.com/q/d/l/?s=spy.us&i=d"


class TestStooqClient:
    @pytest.mark.asyncio
    async def test_fetch_daily_bars(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.params["s"] == "spy.us"
            return httpx.Response(200, text=SPY_CSV)

        client = StooqClient(base_url="https://stooq.test/q/d/l/")
        client._client = httpx.AsyncClient(transport=httpx.MockTransport(handler))

        bars = await client.fetch_daily_bars("SPY")
        await client.close()

        assert len(bars) == 2

    @pytest.mark.asyncio
    async def test_error_status_raises(self):
        client = StooqClient(base_url="https://stooq.test/q/d/l/")
        client._client = httpx.AsyncClient(
            transport=httpx.MockTransport(lambda request: httpx.Response(503))
        )

        with pytest.raises(httpx.HTTPStatusError):
            await client.fetch_daily_bars("SPY")
        await client.close()


class TestScoreParsing:
    def test_valid_score(self):
        score = parse_acceleration_score(VALID_SCORE)
        assert score.growth_phase == GrowthPhase.STRONG_ACCELERATION
        assert score.hype_risk == HypeRisk.MEDIUM
        assert score.is_accelerating

    def test_envelope_and_bytes(self):
        payload = orjson.dumps({"ok": True, "data": VALID_SCORE})
        assert parse_acceleration_score(payload).conviction == 82

    def test_conviction_out_of_range(self):
        with pytest.raises(InvalidAiScore) as exc_info:
            parse_acceleration_score({**VALID_SCORE, "conviction": 150})
        assert any("conviction" in e for e in exc_info.value.errors)

    def test_unknown_phase(self):
        with pytest.raises(InvalidAiScore):
            parse_acceleration_score({**VALID_SCORE, "growth_phase": "booming"})

    def test_not_json(self):
        with pytest.raises(InvalidAiScore):
            parse_acceleration_score(b"<html>")

    def test_not_an_object(self):
        with pytest.raises(InvalidAiScore):
            parse_acceleration_score([VALID_SCORE])


class TestResearchAiClient:
    @pytest.mark.asyncio
    async def test_score_text(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["auth"] = request.headers.get("Authorization")
            seen["body"] = orjson.loads(request.content)
            return httpx.Response(200, json=VALID_SCORE)

        client = ResearchAiClient(base_url="https://ai.test", api_key="secret")
        client._client = httpx.AsyncClient(
            base_url="https://ai.test",
            headers={"Authorization": "Bearer secret"},
            transport=httpx.MockTransport(handler),
        )

        score = await client.score_text("NVDA", DocType.EARNINGS, "Revenue up 120%")
        await client.close()

        assert score.conviction == 82
        assert seen["path"] == "/api/score/acceleration"
        assert seen["auth"] == "Bearer secret"
        assert seen["body"] == {"symbol": "NVDA", "docType": "earnings", "text": "Revenue up 120%"}
