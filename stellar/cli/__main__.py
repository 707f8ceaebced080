"""Allow ``python -m stellar.cli`` execution."""

from stellar.cli.galaxy import main

main()
