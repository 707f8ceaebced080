"""Stellar - artist discovery, scoring, and cluster/layout engine.

Starting from a handful of seed artists the engine discovers related
artists through several strategies, tiers and scores them into a budgeted
recommendation set, and returns a weighted "galaxy" graph.  Given a user's
whole artist corpus it clusters artists by tag vectors into a labeled,
colored "universe" with per-cluster recommendations and a 2D layout.
Two users' corpora can be collided into shared, exclusive, exploration
and frontier zones.

Entry points:
    - :func:`stellar.main.build_engine` assembles a :class:`GalaxyEngine`
      from settings and ``config/config.yaml``.
    - ``python -m stellar.cli`` runs the engine from the command line.
"""

__version__ = "0.1.0"
