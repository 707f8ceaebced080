"""Unit tests for the stellar.cli.galaxy command-line entry point."""

from __future__ import annotations

import json
from argparse import Namespace
from pathlib import Path
from unittest.mock import patch

import pytest

from stellar.cli.galaxy import _build_parser, _format_galaxy, _read_names, _run
from stellar.config.engine_config import EngineConfig
from stellar.pipeline.fetch_queue import FetchQueue
from stellar.pipeline.galaxy_pipeline import GalaxyEngine
from stellar.utils.errors import ConfigurationError


def _engine(similarity, enrichment) -> GalaxyEngine:
    return GalaxyEngine(
        similarity,
        enrichment,
        config=EngineConfig(random_seed=7),
        queue=FetchQueue(max_concurrent=3, delay_ms=0),
    )


def _args(command: str, **kwargs) -> Namespace:
    defaults = {"config": "config/config.yaml", "json_output": False, "command": command}
    defaults.update(kwargs)
    return Namespace(**defaults)


# ======================================================================
# _build_parser
# ======================================================================


class TestBuildParser:
    def test_galaxy_with_seeds_and_drift(self) -> None:
        args = _build_parser().parse_args(["galaxy", "Radiohead", "Boards of Canada", "--drift"])

        assert args.command == "galaxy"
        assert args.seeds == ["Radiohead", "Boards of Canada"]
        assert args.drift is True
        assert args.json_output is False
        assert args.config == "config/config.yaml"

    def test_global_flags_before_command(self) -> None:
        args = _build_parser().parse_args(["--json", "--config", "other.yaml", "galaxy", "Burial"])

        assert args.json_output is True
        assert args.config == "other.yaml"
        assert args.drift is False

    def test_chain_default_hops(self) -> None:
        args = _build_parser().parse_args(["chain", "Slayer", "Enya"])

        assert (args.seed_a, args.seed_b, args.max_hops) == ("Slayer", "Enya", 4)

    def test_chain_custom_hops(self) -> None:
        args = _build_parser().parse_args(["chain", "Slayer", "Enya", "--max-hops", "2"])
        assert args.max_hops == 2

    def test_universe_with_dislikes(self) -> None:
        args = _build_parser().parse_args(["universe", "corpus.txt", "--dislikes", "no.txt"])

        assert args.corpus == "corpus.txt"
        assert args.dislikes == "no.txt"

    def test_collide_takes_two_corpora(self) -> None:
        args = _build_parser().parse_args(["collide", "mine.txt", "theirs.txt"])

        assert args.user_corpus == "mine.txt"
        assert args.friend_corpus == "theirs.txt"

    def test_command_required(self) -> None:
        with pytest.raises(SystemExit):
            _build_parser().parse_args([])

    def test_galaxy_requires_a_seed(self) -> None:
        with pytest.raises(SystemExit):
            _build_parser().parse_args(["galaxy"])


# ======================================================================
# Helpers
# ======================================================================


class TestReadNames:
    def test_skips_blank_and_comment_lines(self, tmp_path: Path) -> None:
        corpus = tmp_path / "corpus.txt"
        corpus.write_text("# my library\nLow\n\n  Slint  \n#skip\nMogwai\n", encoding="utf-8")

        assert _read_names(str(corpus)) == ["Low", "Slint", "Mogwai"]


# ======================================================================
# _run
# ======================================================================


class TestRun:
    @pytest.mark.asyncio
    async def test_configuration_error_exits_1(self, capsys) -> None:
        with patch("stellar.main.build_engine", side_effect=ConfigurationError("LASTFM_API_KEY is not set")):
            status = await _run(_args("galaxy", seeds=["Low"], drift=False), quiet=True)

        assert status == 1
        assert "LASTFM_API_KEY is not set" in capsys.readouterr().err

    @pytest.mark.asyncio
    async def test_galaxy_text_output(self, capsys, similarity_factory, fake_enrichment) -> None:
        similarity = similarity_factory(similar={"Low": [("Codeine", 0.8), ("Red House Painters", 0.6)]})
        engine = _engine(similarity, fake_enrichment)

        with patch("stellar.main.build_engine", return_value=engine):
            status = await _run(_args("galaxy", seeds=["Low"], drift=False), quiet=True)

        out = capsys.readouterr().out
        assert status == 0
        assert "Seeds: Low" in out
        assert "Codeine" in out
        assert "Red House Painters" in out

    @pytest.mark.asyncio
    async def test_galaxy_json_output(self, capsys, similarity_factory, fake_enrichment) -> None:
        similarity = similarity_factory(similar={"Low": [("Codeine", 0.8)]})
        engine = _engine(similarity, fake_enrichment)

        with patch("stellar.main.build_engine", return_value=engine):
            status = await _run(_args("galaxy", seeds=["Low"], drift=False, json_output=True), quiet=True)

        payload = json.loads(capsys.readouterr().out)
        assert status == 0
        assert {n["name"] for n in payload["nodes"]} == {"Low", "Codeine"}
        assert payload["links"]

    @pytest.mark.asyncio
    async def test_galaxy_discovery_error_exits_1(self, capsys, similarity_factory, fake_enrichment) -> None:
        engine = _engine(similarity_factory(), fake_enrichment)

        with patch("stellar.main.build_engine", return_value=engine):
            status = await _run(_args("galaxy", seeds=["Nobody"], drift=False), quiet=True)

        assert status == 1
        assert "No artists discovered" in capsys.readouterr().err

    @pytest.mark.asyncio
    async def test_chain_not_found(self, capsys, similarity_factory, fake_enrichment) -> None:
        engine = _engine(similarity_factory(), fake_enrichment)

        with patch("stellar.main.build_engine", return_value=engine):
            status = await _run(_args("chain", seed_a="A", seed_b="B", max_hops=2), quiet=True)

        assert status == 0
        assert "No chain found between A and B." in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_chain_found(self, capsys, similarity_factory, fake_enrichment) -> None:
        similarity = similarity_factory(similar={"A": [("M", 0.9)], "B": [("M", 0.7)]})
        engine = _engine(similarity, fake_enrichment)

        with patch("stellar.main.build_engine", return_value=engine):
            status = await _run(_args("chain", seed_a="A", seed_b="B", max_hops=2), quiet=True)

        assert status == 0
        assert "A → M → B" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_universe_missing_corpus_file(self, capsys, tmp_path, similarity_factory, fake_enrichment) -> None:
        engine = _engine(similarity_factory(), fake_enrichment)
        missing = tmp_path / "absent.txt"

        with patch("stellar.main.build_engine", return_value=engine):
            status = await _run(_args("universe", corpus=str(missing), dislikes=None), quiet=True)

        assert status == 1
        assert "Error:" in capsys.readouterr().err

    @pytest.mark.asyncio
    async def test_collide_text_output(self, capsys, tmp_path, similarity_factory, fake_enrichment) -> None:
        mine = tmp_path / "mine.txt"
        theirs = tmp_path / "theirs.txt"
        mine.write_text("Radiohead\nLow\n", encoding="utf-8")
        theirs.write_text("radiohead\nSlowdive\n", encoding="utf-8")
        engine = _engine(similarity_factory(similar={"Radiohead": [("Thom Yorke", 0.9)]}), fake_enrichment)

        with patch("stellar.main.build_engine", return_value=engine):
            status = await _run(_args("collide", user_corpus=str(mine), friend_corpus=str(theirs)), quiet=True)

        out = capsys.readouterr().out
        assert status == 0
        assert "Core overlap (1)" in out
        assert "Thom Yorke  via Radiohead" in out

    @pytest.mark.asyncio
    async def test_collide_json_output(self, capsys, tmp_path, similarity_factory, fake_enrichment) -> None:
        mine = tmp_path / "mine.txt"
        theirs = tmp_path / "theirs.txt"
        mine.write_text("Radiohead\n", encoding="utf-8")
        theirs.write_text("Radiohead\n", encoding="utf-8")
        engine = _engine(similarity_factory(), fake_enrichment)

        with patch("stellar.main.build_engine", return_value=engine):
            status = await _run(
                _args("collide", user_corpus=str(mine), friend_corpus=str(theirs), json_output=True), quiet=True
            )

        payload = json.loads(capsys.readouterr().out)
        assert status == 0
        assert [a["name"] for a in payload["zones"]["core_overlap"]] == ["Radiohead"]
        assert payload["stats"]["core_overlap_count"] == 1


# ======================================================================
# _format_galaxy
# ======================================================================


class TestFormatGalaxy:
    @pytest.mark.asyncio
    async def test_recommendations_sorted_by_score(self, similarity_factory, fake_enrichment) -> None:
        similarity = similarity_factory(similar={"Low": [("Weak Match", 0.1), ("Strong Match", 0.95)]})
        graph = await _engine(similarity, fake_enrichment).discover_galaxy(["Low"])

        text = _format_galaxy(graph)

        assert text.index("Strong Match") < text.index("Weak Match")
        assert f"Nodes: {len(graph.nodes)}" in text
