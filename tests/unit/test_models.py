"""Unit tests for the Stellar domain models."""

from __future__ import annotations

import pytest
from pydantic import TypeAdapter, ValidationError

from stellar.models.artist import (
    Artist,
    Candidate,
    CandidatePool,
    ChainBridgeProvenance,
    DeepCutProvenance,
    DiscoveryMethod,
    Provenance,
)
from stellar.models.graph import GalaxyGraph, GalaxyLink, GalaxyNode
from stellar.models.progress import ProgressEvent, RunPhase
from stellar.models.universe import HSLColor


# ======================================================================
# Artist / Candidate
# ======================================================================


class TestArtist:
    def test_key_is_normalized(self) -> None:
        assert Artist(id="1", name="  Boards  Of Canada ").key == "boards of canada"

    def test_synthesized_id_prefers_mbid(self) -> None:
        assert Artist.synthesize_id("Low", "abc-123") == "lastfm-abc-123"
        assert Artist.synthesize_id("Low") == "lastfm-Low"

    def test_frozen(self) -> None:
        artist = Artist(id="1", name="Low")
        with pytest.raises(ValidationError):
            artist.name = "Slint"  # type: ignore[misc]

    def test_match_score_bounds(self) -> None:
        with pytest.raises(ValidationError):
            Artist(id="1", name="Low", match_score=1.5)


class TestProvenance:
    def test_discriminated_by_method(self) -> None:
        adapter = TypeAdapter(Provenance)
        parsed = adapter.validate_python({
            "method": "deep_cut",
            "discovered_via": "id-1",
            "discovered_via_name": "Mogwai",
        })

        assert isinstance(parsed, DeepCutProvenance)
        assert parsed.discovered_via_name == "Mogwai"

    def test_chain_length(self) -> None:
        provenance = ChainBridgeProvenance(
            chain=("A", "B", "C", "D"), chain_position=1, bridges_between=("a", "d")
        )
        assert provenance.chain_length == 4

    def test_candidate_defaults_to_standard(self) -> None:
        candidate = Candidate(artist=Artist(id="x", name="X", match_score=0.4))

        assert candidate.method is DiscoveryMethod.STANDARD
        assert candidate.id == "x"
        assert candidate.match_score == 0.4

    def test_missing_match_score_is_zero(self) -> None:
        assert Candidate(artist=Artist(id="x", name="X")).match_score == 0.0


class TestCandidatePool:
    def test_mapping_and_name_lookup(self) -> None:
        pool = CandidatePool({
            "a": Candidate(artist=Artist(id="a", name="Sigur Rós")),
            "b": Candidate(artist=Artist(id="b", name="Low")),
        })

        assert list(pool) == ["a", "b"]
        assert len(pool) == 2
        assert pool.id_for_name(" sigur rós ") == "a"
        assert pool.id_for_name("Slint") is None
        assert pool.names() == {"sigur rós", "low"}
        assert "b" in pool
        assert repr(pool) == "CandidatePool(2 candidates)"

    def test_source_mapping_is_copied(self) -> None:
        items = {"a": Candidate(artist=Artist(id="a", name="A"))}
        pool = CandidatePool(items)
        items["b"] = Candidate(artist=Artist(id="b", name="B"))

        assert len(pool) == 1


# ======================================================================
# Graph / progress / color
# ======================================================================


class TestGalaxyGraph:
    def test_degree_and_node_filters(self) -> None:
        graph = GalaxyGraph(
            nodes=[
                GalaxyNode(id="s", name="Seed", type="seed"),
                GalaxyNode(id="r", name="Rec", type="recommendation"),
                GalaxyNode(id="q", name="Other", type="recommendation"),
            ],
            links=[GalaxyLink(source="s", target="r", strength=0.5)],
        )

        assert graph.degree("s") == 1
        assert graph.degree("q") == 0
        assert [n.id for n in graph.seed_nodes()] == ["s"]
        assert [n.id for n in graph.recommendation_nodes()] == ["r", "q"]


class TestProgressEvent:
    @pytest.mark.parametrize(
        ("current", "total", "expected"),
        [(0, 4, 0.0), (2, 4, 0.5), (9, 4, 1.0), (0, 0, 1.0)],
    )
    def test_fraction(self, current: int, total: int, expected: float) -> None:
        event = ProgressEvent(phase=RunPhase.DISCOVER, current=current, total=total)
        assert event.fraction == expected

    def test_phase_serializes_as_value(self) -> None:
        assert ProgressEvent(phase=RunPhase.LAYOUT).model_dump(mode="json")["phase"] == "layout"


class TestHSLColor:
    def test_to_css(self) -> None:
        assert HSLColor(h=10, s=80, l=55).to_css() == "hsla(10, 80%, 55%, 1)"
        assert HSLColor(h=10, s=80, l=55).to_css(0.5) == "hsla(10, 80%, 55%, 0.5)"
