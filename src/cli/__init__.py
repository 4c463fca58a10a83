# =============================================================================
# src/cli/__init__.py -- CLI Module Overview
# =============================================================================
#
# Command-line tools that run the orchestration layer outside the web
# server.  Each submodule can be run directly via `python -m src.cli.<module>`.
#
#   IMPORT (import_team.py)
#      Imports one team's matches in one league plus the team's rostered
#      players, waits for every queued fetch to finish and prints the
#      aggregate status.
#
# Architecture Notes:
#   - argparse for argument parsing (not Click/Typer).
#   - Component assembly is shared with the web app via
#     src.main.build_components, imported lazily inside the command.
# =============================================================================

"""CLI tools for the esports stats orchestration layer.

- ``python -m src.cli.import_team`` -- import a team's league matches and players.
"""
