"""2D layout for the universe mini-map.

Cluster centers start at positions derived from a 31-hash of their
label, then relax under pairwise repulsion and a centering pull that
cool linearly to zero.  Members scatter in a jittered ring around their
center; recommendations sit in a wider outer ring with links back to the
members that suggested them.
"""

from __future__ import annotations

import math
from collections.abc import Sequence

import numpy as np

from stellar.models.universe import (
    BridgeArtist,
    Cluster,
    ClusterCenter,
    Point,
    Visualization,
    VizLink,
    VizNode,
)
from stellar.utils.colors import string_hash

_REPULSION_RANGE = 0.6
_REPULSION_STRENGTH = 0.4
_CENTER_PULL = 0.025
_MAX_BRIDGE_LINKS = 10


def initial_position(label: str, center: float) -> Point:
    value = string_hash(label)
    angle = ((value & 0xFFFF) / 0xFFFF) * math.pi * 2
    radius = 50 + ((value >> 16) / 0xFFFF) * 70
    return Point(x=center + radius * math.cos(angle), y=center + radius * math.sin(angle))


def cluster_weight(cluster: Cluster) -> float:
    return 50 + max(1, len(cluster.members)) * 8 + len(cluster.recommendations) * 4


def relax_cluster_positions(
    clusters: Sequence[Cluster],
    center: float,
    iterations: int = 80,
) -> list[Point]:
    """Force-relaxed cluster centers (deterministic for a given set of labels)."""
    n = len(clusters)
    if n == 0:
        return []
    if n == 1:
        return [Point(x=center, y=center)]

    starts = [initial_position(c.label or f"c{i}", center) for i, c in enumerate(clusters)]
    xs = [p.x for p in starts]
    ys = [p.y for p in starts]
    weights = [cluster_weight(c) for c in clusters]

    for iteration in range(iterations):
        cooling = 1 - iteration / iterations
        # Positions update in place so later clusters see earlier moves.
        for i in range(n):
            fx = fy = 0.0
            for j in range(n):
                if i == j:
                    continue
                dx = xs[i] - xs[j]
                dy = ys[i] - ys[j]
                dist = math.hypot(dx, dy) or 1.0
                min_dist = (weights[i] + weights[j]) * _REPULSION_RANGE
                if dist < min_dist:
                    force = (min_dist - dist) / dist * _REPULSION_STRENGTH * cooling
                    fx += dx * force
                    fy += dy * force
            fx += (center - xs[i]) * _CENTER_PULL * cooling
            fy += (center - ys[i]) * _CENTER_PULL * cooling
            xs[i] += fx
            ys[i] += fy

    return [Point(x=x, y=y) for x, y in zip(xs, ys)]


def build_visualization(
    clusters: Sequence[Cluster],
    bridges: Sequence[BridgeArtist],
    rng: np.random.Generator,
    canvas_size: int = 1000,
    iterations: int = 80,
) -> Visualization:
    """Position every cluster, member and recommendation on the canvas."""
    center = canvas_size / 2
    positions = relax_cluster_positions(clusters, center, iterations)

    nodes: list[VizNode] = []
    rec_links: list[VizLink] = []
    member_positions: dict[str, Point] = {}

    for cluster, position in zip(clusters, positions):
        cx, cy = position.x, position.y

        member_count = len(cluster.members)
        member_radius = 45 + member_count * 7
        for j, member in enumerate(cluster.members):
            angle = 2 * math.pi * j / member_count
            jitter = (rng.random() - 0.5) * member_radius * 0.35
            dist = member_radius * 0.3 + rng.random() * member_radius * 0.45
            point = Point(x=cx + dist * math.cos(angle) + jitter, y=cy + dist * math.sin(angle) + jitter)
            nodes.append(VizNode(
                x=point.x,
                y=point.y,
                cluster_id=cluster.id,
                name=member.name,
                source=member.source,
                image=member.image,
                size=5 if member.source == "favorite" else 4,
            ))
            member_positions[member.name] = point

        recs = cluster.recommendations
        rec_radius = member_radius + 40 + len(recs) * 4
        for j, rec in enumerate(recs):
            angle = 2 * math.pi * j / len(recs) + math.pi / len(recs)
            jitter = (rng.random() - 0.5) * rec_radius * 0.15
            dist = rec_radius * 0.7 + rng.random() * rec_radius * 0.3
            point = Point(x=cx + dist * math.cos(angle) + jitter, y=cy + dist * math.sin(angle) + jitter)
            nodes.append(VizNode(
                x=point.x,
                y=point.y,
                cluster_id=cluster.id,
                name=rec.name,
                is_recommendation=True,
                score=rec.score,
                match_score=rec.match_score,
                suggested_by=list(rec.suggested_by),
                size=8,
            ))
            for suggester in rec.suggested_by:
                member_point = member_positions.get(suggester)
                if member_point is not None:
                    rec_links.append(VizLink(
                        start=point,
                        end=member_point,
                        strength=rec.match_score or 0.5,
                    ))

    bridge_links = []
    for bridge in bridges[:_MAX_BRIDGE_LINKS]:
        first = bridge.clusters[0]
        second = bridge.clusters[1] if len(bridge.clusters) > 1 else first
        if first >= len(positions) or second >= len(positions):
            continue
        bridge_links.append(VizLink(
            start=positions[first],
            end=positions[second],
            strength=bridge.strength,
            name=bridge.name,
        ))

    return Visualization(
        nodes=nodes,
        cluster_centers=[
            ClusterCenter(
                x=p.x,
                y=p.y,
                label=c.label,
                color=c.color,
                member_count=len(c.members),
                rec_count=len(c.recommendations),
            )
            for c, p in zip(clusters, positions)
        ],
        bridge_links=bridge_links,
        rec_links=rec_links,
        width=canvas_size,
        height=canvas_size,
        total_recs=sum(len(c.recommendations) for c in clusters),
    )
