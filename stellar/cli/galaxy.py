# =============================================================================
# stellar/cli/galaxy.py - CLI for galaxy, chain, universe and collision runs
# =============================================================================
#
# Runs the engine from the command line without any host application:
#
#   galaxy    Discover related artists for one or more seeds and print the
#             recommendations (or the whole {nodes, links} graph as JSON).
#   chain     Trace the shortest similarity chain between two artists.
#   universe  Cluster an artist corpus (one name per line) and print the
#             clusters with their recommendations.
#   collide   Compare two corpora and print the overlap, exploration and
#             shared-frontier zones.
#
# Typical usage:
#   python -m stellar.cli galaxy "Radiohead" "Boards of Canada"
#   python -m stellar.cli galaxy "Burial" --drift --json > galaxy.json
#   python -m stellar.cli chain "Slayer" "Enya" --max-hops 4
#   python -m stellar.cli universe corpus.txt --dislikes dislikes.txt
#   python -m stellar.cli collide mine.txt theirs.txt
#
# Requires LASTFM_API_KEY in the environment or .env.
#
# The --quiet flag (auto-enabled with --json) sends structlog output to
# stderr at WARNING+ so stdout only carries results.
# =============================================================================

"""Command-line entry point for the Stellar engine.

Usage::

    python -m stellar.cli galaxy "Radiohead" "Boards of Canada" [--json] [--drift]
    python -m stellar.cli chain "A" "B" [--max-hops N]
    python -m stellar.cli universe corpus.txt [--dislikes file]
    python -m stellar.cli collide mine.txt theirs.txt
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path

from stellar.models.progress import ProgressEvent


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------

def _format_galaxy(graph) -> str:  # noqa: ANN001
    lines: list[str] = []
    sep = "=" * 60
    seeds = graph.seed_nodes()
    recs = sorted(graph.recommendation_nodes(), key=lambda n: -n.composite_score)

    lines.append(sep)
    lines.append("  Stellar - Galaxy")
    lines.append(sep)
    lines.append(f"Seeds: {', '.join(s.name for s in seeds)}")
    lines.append(f"Nodes: {len(graph.nodes)}  Links: {len(graph.links)}")
    lines.append("")

    for node in recs:
        tier = node.tier.value if hasattr(node.tier, "value") else node.tier
        method = node.discovery_method.value if node.discovery_method else "-"
        related = ", ".join(node.related_seed_names) or "-"
        lines.append(
            f"  {node.composite_score:5.2f}  {node.name:<32} [{tier}/{method}]  via {related}"
        )
    return "\n".join(lines)


def _format_universe(result) -> str:  # noqa: ANN001
    lines: list[str] = []
    sep = "=" * 60
    lines.append(sep)
    lines.append(f"  Stellar - Universe ({result.artist_count} artists)")
    lines.append(sep)

    for cluster in result.clusters:
        lines.append("")
        lines.append(f"[{cluster.id}] {cluster.label}  ({len(cluster.members)} artists)")
        lines.append("  Members: " + ", ".join(m.name for m in cluster.members))
        for rec in cluster.recommendations:
            flags = []
            if rec.is_hidden_gem:
                flags.append("gem")
            if rec.is_chain_link:
                flags.append(f"links {rec.remote_clusters}")
            suffix = f"  ({', '.join(flags)})" if flags else ""
            lines.append(f"    {rec.score:5.2f}  {rec.name}{suffix}")

    if result.bridges:
        lines.append("")
        lines.append("Bridge artists:")
        for bridge in result.bridges:
            lines.append(f"  {bridge.name} → clusters {bridge.clusters} ({bridge.strength:.2f})")
    return "\n".join(lines)


def _format_collision(result) -> str:  # noqa: ANN001
    lines: list[str] = []
    sep = "=" * 60
    zones = result.zones
    lines.append(sep)
    lines.append(f"  Stellar - Collision ({result.stats.total_artists} artists)")
    lines.append(sep)
    if result.top_tags:
        lines.append(f"Shared tags: {', '.join(result.top_tags)}")

    sections = [
        ("Core overlap", zones.core_overlap),
        ("Your exploration", zones.your_exploration),
        ("Friend's exploration", zones.friend_exploration),
        ("Shared frontier", zones.shared_frontier),
        ("Your artists", zones.your_artists),
        ("Friend's artists", zones.friend_artists),
    ]
    for title, artists in sections:
        lines.append("")
        lines.append(f"{title} ({len(artists)})")
        for artist in artists:
            if artist.connected_to:
                lines.append(f"  {artist.name}  ~ {', '.join(artist.connected_to)}")
            elif artist.suggested_by:
                lines.append(f"  {artist.score:5.2f}  {artist.name}  via {', '.join(artist.suggested_by)}")
            else:
                lines.append(f"  {artist.name}")
    return "\n".join(lines)


def _print_progress(event: ProgressEvent) -> None:
    print(f"[{event.phase.value}] {event.current}/{event.total} {event.message}", file=sys.stderr)


def _read_names(path: str) -> list[str]:
    text = Path(path).read_text(encoding="utf-8")
    return [line.strip() for line in text.splitlines() if line.strip() and not line.startswith("#")]


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

async def _run(args: argparse.Namespace, quiet: bool) -> int:
    # Deferred so quiet mode can reconfigure logging before loggers are cached.
    from stellar.main import build_engine
    from stellar.utils.errors import StellarError

    try:
        engine = build_engine(config_path=args.config, configure_logs=not quiet)
    except StellarError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    on_progress = None if quiet else _print_progress

    async with engine:
        try:
            if args.command == "galaxy":
                graph = await engine.discover_galaxy(
                    args.seeds, on_progress=on_progress, expand_drift=args.drift
                )
                output = graph.model_dump_json(indent=2) if args.json_output else _format_galaxy(graph)

            elif args.command == "chain":
                bridge = await engine.find_chain_bridge(args.seed_a, args.seed_b, max_hops=args.max_hops)
                if args.json_output:
                    output = json.dumps(bridge.model_dump() if bridge else None, indent=2)
                elif bridge is None:
                    output = f"No chain found between {args.seed_a} and {args.seed_b}."
                else:
                    output = f"{' → '.join(bridge.chain)}  ({bridge.hops} hops, score {bridge.score:.3f})"

            elif args.command == "universe":
                corpus = _read_names(args.corpus)
                dislikes = _read_names(args.dislikes) if args.dislikes else []
                result = await engine.compute_universe(corpus, dislikes, on_progress=on_progress)
                output = result.model_dump_json(indent=2) if args.json_output else _format_universe(result)

            else:
                collision = await engine.compute_collision(
                    _read_names(args.user_corpus), _read_names(args.friend_corpus), on_progress=on_progress
                )
                if args.json_output:
                    output = collision.model_dump_json(indent=2)
                else:
                    output = _format_collision(collision)

        except StellarError as exc:
            print(f"Error: {exc}", file=sys.stderr)
            return 1
        except OSError as exc:
            print(f"Error: {exc}", file=sys.stderr)
            return 1

    print(output)
    return 0


def _suppress_logs() -> None:
    """Send all structlog and stdlib logging to stderr at WARNING+.

    Called before the engine is built so structlog's cached loggers pick
    up this configuration rather than the default stdout renderer.
    """
    from stellar.utils.logging import configure_logging

    configure_logging(log_level="WARNING", stream=sys.stderr)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="stellar",
        description="Discover, score and map related artists.",
    )
    parser.add_argument("--config", default="config/config.yaml", help="Path to config YAML")
    parser.add_argument("--quiet", action="store_true", help="Only log warnings, to stderr")
    parser.add_argument(
        "--json", dest="json_output", action="store_true", help="Print JSON (implies --quiet)"
    )

    commands = parser.add_subparsers(dest="command", required=True)

    galaxy = commands.add_parser("galaxy", help="Build a galaxy from seed artists")
    galaxy.add_argument("seeds", nargs="+", help="Seed artist names")
    galaxy.add_argument("--drift", action="store_true", help="Add genre-adjacent drift artists")

    chain = commands.add_parser("chain", help="Find a similarity chain between two artists")
    chain.add_argument("seed_a")
    chain.add_argument("seed_b")
    chain.add_argument("--max-hops", type=int, default=4, help="Maximum intermediate artists")

    universe = commands.add_parser("universe", help="Cluster an artist corpus")
    universe.add_argument("corpus", help="File with one artist name per line")
    universe.add_argument("--dislikes", default=None, help="File of artists to never recommend")

    collide = commands.add_parser("collide", help="Compare two artist corpora")
    collide.add_argument("user_corpus", help="Your artists, one name per line")
    collide.add_argument("friend_corpus", help="The other corpus, one name per line")

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entry point: parse arguments, run the command, exit with its status."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    # JSON mode implies quiet.
    quiet = args.quiet or args.json_output
    if quiet:
        _suppress_logs()

    sys.exit(asyncio.run(_run(args, quiet)))


if __name__ == "__main__":
    main()
