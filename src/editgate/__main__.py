"""Module entrypoint for ``python -m editgate``."""

from __future__ import annotations

from editgate.main import cli_entrypoint

if __name__ == "__main__":
    raise SystemExit(cli_entrypoint())
