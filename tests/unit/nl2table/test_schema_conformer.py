"""Tests for SchemaConformer."""

from __future__ import annotations

import json
import logging

import pytest

from src.nl2table.exceptions import UpstreamUnavailable
from src.nl2table.transform import SchemaConformer, build_transform_prompt, is_conforming_row
from tests.unit.nl2table.fakes import StubRouter

RAW = [{"id": "1", "name": "Heat"}, {"id": "2", "name": "Alien"}, {"id": "3", "name": "Up"}]


class TestIsConformingRow:
    """Tests for is_conforming_row."""

    def test_complete_string_row(self) -> None:
        assert is_conforming_row({"id": "1", "year": "1995", "extra": "x"}, ["id", "year"])

    @pytest.mark.parametrize(
        "value",
        [
            {"id": "1"},
            {"id": 1, "year": "1995"},
            {"id": "1", "year": None},
            ["1", "1995"],
            "id,year",
        ],
    )
    def test_rejects(self, value) -> None:
        assert not is_conforming_row(value, ["id", "year"])


class TestBuildTransformPrompt:
    """Tests for build_transform_prompt."""

    def test_embeds_sample_and_columns(self) -> None:
        prompt = build_transform_prompt(RAW[:1], ["id", "name", "year"])

        assert json.dumps([RAW[0]]) in prompt
        assert "Target Columns: id, name, year" in prompt


class TestSchemaConformer:
    """Tests for SchemaConformer.conform."""

    @pytest.mark.asyncio
    async def test_drops_rows_missing_a_column(self, caplog) -> None:
        router = StubRouter(
            {
                "RowsSchema": {
                    "data": [
                        {"id": "1", "name": "Heat", "year": "1995"},
                        {"id": "2", "name": "Alien"},
                        {"id": "3", "name": "Up", "year": "2009", "note": "extra"},
                    ]
                }
            }
        )

        with caplog.at_level(logging.WARNING):
            result = await SchemaConformer(router).conform(RAW, ["id", "name", "year"])

        assert result.rows == (
            {"id": "1", "name": "Heat", "year": "1995"},
            {"id": "3", "name": "Up", "year": "2009"},
        )
        assert result.dropped == 1
        assert "Dropped 1 malformed row(s), kept 2" in caplog.text

    @pytest.mark.asyncio
    async def test_never_patches_non_string_values(self) -> None:
        router = StubRouter({"RowsSchema": {"data": [{"id": 1, "name": "Heat"}, "garbage"]}})

        result = await SchemaConformer(router).conform(RAW, ["id", "name"])

        assert result.rows == ()
        assert result.dropped == 2

    @pytest.mark.asyncio
    async def test_sample_is_capped(self) -> None:
        raw = [{"n": str(i)} for i in range(50)]
        router = StubRouter({"RowsSchema": {"data": []}})

        await SchemaConformer(router).conform(raw, ["n"])

        prompt = router.calls[0]["prompt"]
        assert '"n": "19"' in prompt
        assert '"n": "20"' not in prompt

    @pytest.mark.asyncio
    async def test_empty_input_makes_no_call(self) -> None:
        router = StubRouter()

        result = await SchemaConformer(router).conform([], ["id"])

        assert result.rows == ()
        assert router.calls == []

    @pytest.mark.asyncio
    async def test_router_errors_propagate(self) -> None:
        router = StubRouter({"RowsSchema": UpstreamUnavailable("down", source="groq")})

        with pytest.raises(UpstreamUnavailable):
            await SchemaConformer(router).conform(RAW, ["id"])
