# =============================================================================
# stellar/cli/__init__.py - CLI package
# =============================================================================
#
# Command-line access to the engine without a host application.  All
# subcommands live in galaxy.py and use argparse; heavy imports (providers,
# the engine) are deferred until after logging is configured.
# =============================================================================

"""CLI tools for the Stellar engine.

- ``python -m stellar.cli galaxy`` - discover a galaxy from seed artists
- ``python -m stellar.cli chain`` - trace a similarity chain between two artists
- ``python -m stellar.cli universe`` - cluster an artist corpus
"""
