# =============================================================================
# src/cli/__main__.py -- Package Entry Point
# =============================================================================
#
# Enables `python -m src.cli`, which delegates to the team import command.
# =============================================================================

"""Allow ``python -m src.cli`` execution."""

from src.cli.import_team import main

main()
