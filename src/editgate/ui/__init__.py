"""Command-line surface: argparse router and plain-text renderers."""

from editgate.ui.cli import CLIError, build_parser, run_cli
from editgate.ui.render import CLIRenderer, create_renderer

__all__ = ["CLIError", "CLIRenderer", "build_parser", "create_renderer", "run_cli"]
