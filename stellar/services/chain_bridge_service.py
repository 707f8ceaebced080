"""Multi-hop chain bridges between two seed artists.

A chain bridge is a path through the similarity graph from seed A to seed B
(``A → X → Y → B``) for seed pairs that share neither a candidate nor a
single-intermediate bridge.  The search is a bidirectional BFS:

    - frontiers expand alternately from A's side and B's side;
    - the branch factor shrinks with every expansion (20/15/10/8 by
      default, the last value repeating);
    - path scores multiply the match score of every edge;
    - after every expansion the two reached sets are intersected.

The first expansion that produces an intersection yields the shortest
path.  Among equally short paths the higher score wins, then the
lexicographically smaller path of normalized names, so the result does
not depend on provider response order.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

from stellar.config.engine_config import EngineConfig
from stellar.interfaces.similarity_provider import ISimilarityProvider
from stellar.models.graph import ChainBridge
from stellar.utils.logging import get_logger
from stellar.utils.text_normalizer import name_key


@dataclass(frozen=True)
class _Reach:
    """How one side of the search reached an artist."""

    path: tuple[str, ...]   # display names, starting at this side's seed
    score: float


class ChainBridgeService:
    """Finds chain bridges using a (queued) similarity provider."""

    def __init__(self, similarity: ISimilarityProvider, config: EngineConfig) -> None:
        self._similarity = similarity
        self._config = config
        self._logger = get_logger(__name__)

    async def find_chain_bridge(
        self,
        seed_a: str,
        seed_b: str,
        max_hops: int | None = None,
        branch_limits: tuple[int, ...] | None = None,
    ) -> ChainBridge | None:
        """Return the best chain from *seed_a* to *seed_b*, or ``None``.

        Parameters
        ----------
        seed_a, seed_b:
            Artist names at either end of the chain.
        max_hops:
            Maximum number of intermediate artists; defaults to
            ``EngineConfig.chain_bridge_max_hops``.
        branch_limits:
            Per-expansion branch factors; the last one repeats.
        """
        hops_cap = self._config.chain_bridge_max_hops if max_hops is None else max_hops
        limits = tuple(branch_limits) if branch_limits else self._config.chain_bridge_branch_limits

        key_a, key_b = name_key(seed_a), name_key(seed_b)
        if not key_a or not key_b or key_a == key_b or hops_cap < 0:
            return None

        reached_a: dict[str, _Reach] = {key_a: _Reach((seed_a,), 1.0)}
        reached_b: dict[str, _Reach] = {key_b: _Reach((seed_b,), 1.0)}
        frontier_a = [key_a]
        frontier_b = [key_b]

        # A path with h intermediates has h + 1 edges; each expansion adds one edge.
        for expansion in range(hops_cap + 1):
            branch = self._config.branch_limit(expansion, limits)
            if expansion % 2 == 0:
                frontier_a = await self._expand(frontier_a, reached_a, branch)
            else:
                frontier_b = await self._expand(frontier_b, reached_b, branch)

            best = self._best_meeting(reached_a, reached_b)
            if best is not None:
                self._logger.info(
                    "chain_bridge_found",
                    seed_a=seed_a,
                    seed_b=seed_b,
                    hops=best.hops,
                    score=round(best.score, 4),
                    expansions=expansion + 1,
                )
                return best

            if not frontier_a and not frontier_b:
                break

        self._logger.info("chain_bridge_not_found", seed_a=seed_a, seed_b=seed_b, max_hops=hops_cap)
        return None

    async def _expand(
        self,
        frontier: list[str],
        reached: dict[str, _Reach],
        branch: int,
    ) -> list[str]:
        """Expand every frontier node by its top *branch* neighbours.

        Mutates *reached* (local to one search) and returns the next
        frontier: newly reached artists, best score first, capped at
        *branch* entries.
        """
        if not frontier:
            return []

        neighbour_lists = await asyncio.gather(*(
            self._similarity.get_similar_artists(reached[key].path[-1], self._config.similar_limit)
            for key in frontier
        ))

        discovered: dict[str, _Reach] = {}
        for key, neighbours in zip(frontier, neighbour_lists):
            origin = reached[key]
            ranked = sorted(neighbours, key=lambda s: -s.match_score)[:branch]
            for similar in ranked:
                neighbour_key = name_key(similar.name)
                if not neighbour_key or neighbour_key in reached:
                    continue
                reach = _Reach(origin.path + (similar.name,), origin.score * similar.match_score)
                current = discovered.get(neighbour_key)
                if current is None or _reach_order(reach) < _reach_order(current):
                    discovered[neighbour_key] = reach

        reached.update(discovered)
        ordered = sorted(discovered, key=lambda k: _reach_order(discovered[k]))
        return ordered[:branch]

    @staticmethod
    def _best_meeting(reached_a: dict[str, _Reach], reached_b: dict[str, _Reach]) -> ChainBridge | None:
        best: tuple[tuple, ChainBridge] | None = None
        for key in reached_a.keys() & reached_b.keys():
            from_a = reached_a[key]
            from_b = reached_b[key]
            chain = list(from_a.path) + list(reversed(from_b.path))[1:]
            score = from_a.score * from_b.score
            order = (len(chain), -score, tuple(name_key(n) for n in chain))
            if best is None or order < best[0]:
                best = (order, ChainBridge(chain=chain, hops=len(chain) - 2, score=score))
        return best[1] if best else None


def _reach_order(reach: _Reach) -> tuple:
    return (-reach.score, tuple(name_key(n) for n in reach.path))
