"""Unit tests for tag vectors and k-means++ clustering."""

from __future__ import annotations

import numpy as np
import pytest

from stellar.models.artist import ArtistTag
from stellar.services.clustering import auto_k, cosine_similarity, kmeans, kmeans_plus_plus_init
from stellar.services.tag_vectors import build_tag_vectors, build_vocabulary, l2_normalize


def _tags(*pairs: tuple[str, int]) -> list[ArtistTag]:
    return [ArtistTag(name=name, count=count) for name, count in pairs]


# ======================================================================
# Tag vectors
# ======================================================================


class TestVocabulary:
    def test_small_corpus_keeps_single_use_tags(self) -> None:
        vocabulary = build_vocabulary({
            "A": _tags(("rock", 100), ("indie", 50)),
            "B": _tags(("rock", 80)),
        })
        assert vocabulary == ["rock", "indie"]

    def test_large_corpus_requires_two_artists(self) -> None:
        artist_tags = {f"Artist {i}": _tags((f"unique-{i}", 100), ("shared", 50)) for i in range(40)}
        assert build_vocabulary(artist_tags) == ["shared"]

    def test_capped_at_max_size(self) -> None:
        artist_tags = {"A": _tags(*((f"tag-{i}", 100) for i in range(20)))}
        assert len(build_vocabulary(artist_tags, max_size=5)) == 5


class TestTagVectors:
    def test_vectors_are_unit_length(self) -> None:
        space = build_tag_vectors({
            "Radiohead": _tags(("alternative", 100), ("electronic", 40)),
            "Burial": _tags(("electronic", 100), ("dubstep", 90)),
            "Low": _tags(("slowcore", 100)),
        })

        for vector in space.vectors.values():
            assert np.linalg.norm(vector) == pytest.approx(1.0)
            assert vector.dtype == np.float64

    def test_artist_without_vocabulary_tags_is_zero(self) -> None:
        artist_tags = {f"Artist {i}": _tags((f"unique-{i}", 100), ("shared", 50)) for i in range(40)}
        artist_tags["Loner"] = _tags(("nothing-else", 100))

        space = build_tag_vectors(artist_tags)

        assert not space.vectors["Loner"].any()

    def test_matrix_in_corpus_order(self) -> None:
        space = build_tag_vectors({"B": _tags(("x", 100)), "A": _tags(("y", 100))})
        names, matrix = space.matrix()
        assert names == ["B", "A"]
        assert matrix.shape == (2, 2)

    def test_zero_vector_normalization(self) -> None:
        zeros = np.zeros(3)
        assert l2_normalize(zeros) is zeros


# ======================================================================
# k-means++
# ======================================================================


class TestAutoK:
    @pytest.mark.parametrize(("n", "expected"), [(4, 2), (8, 2), (18, 3), (50, 5), (200, 8), (1000, 8)])
    def test_clamped_rounded_sqrt(self, n: int, expected: int) -> None:
        assert auto_k(n) == expected


class TestKMeans:
    def test_three_artists_form_one_cluster_without_centroid(self) -> None:
        data = np.eye(3)
        clusters = kmeans(["A", "B", "C"], data, rng=np.random.default_rng(1))

        assert len(clusters) == 1
        assert clusters[0].members == ["A", "B", "C"]
        assert clusters[0].centroid is None

    def test_zero_dimensions_form_one_cluster(self) -> None:
        clusters = kmeans(["A", "B", "C", "D"], np.zeros((4, 0)))
        assert len(clusters) == 1
        assert clusters[0].centroid is None

    def test_empty_corpus(self) -> None:
        assert kmeans([], np.zeros((0, 2))) == []

    def test_separable_groups(self) -> None:
        names = ["r1", "r2", "r3", "e1", "e2", "e3"]
        data = np.array([
            [1.0, 0.0], [0.95, 0.05], [0.9, 0.1],
            [0.0, 1.0], [0.05, 0.95], [0.1, 0.9],
        ])

        clusters = kmeans(names, data, k=2, rng=np.random.default_rng(7))

        groups = sorted(sorted(c.members) for c in clusters)
        assert groups == [["e1", "e2", "e3"], ["r1", "r2", "r3"]]

    def test_partition_covers_every_artist_once(self) -> None:
        rng = np.random.default_rng(3)
        data = rng.random((25, 6))
        names = [f"artist-{i}" for i in range(25)]

        clusters = kmeans(names, data, rng=np.random.default_rng(11))

        members = [m for c in clusters for m in c.members]
        assert sorted(members) == sorted(names)
        assert all(c.members for c in clusters)
        assert len(clusters) <= auto_k(25)

    def test_deterministic_for_same_seed(self) -> None:
        data = np.random.default_rng(5).random((12, 4))
        names = [str(i) for i in range(12)]

        first = kmeans(names, data, rng=np.random.default_rng(42))
        second = kmeans(names, data, rng=np.random.default_rng(42))

        assert [c.members for c in first] == [c.members for c in second]

    def test_init_with_identical_points(self) -> None:
        data = np.ones((5, 3))
        centroids = kmeans_plus_plus_init(data, 3, np.random.default_rng(0))
        assert centroids.shape == (3, 3)


class TestCosineSimilarity:
    def test_orthogonal_and_identical(self) -> None:
        assert cosine_similarity(np.array([1.0, 0.0]), np.array([0.0, 1.0])) == 0.0
        assert cosine_similarity(np.array([2.0, 0.0]), np.array([1.0, 0.0])) == pytest.approx(1.0)

    def test_zero_vector(self) -> None:
        assert cosine_similarity(np.zeros(2), np.array([1.0, 0.0])) == 0.0
