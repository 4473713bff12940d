"""Entry point for `python -m kubesim`.

Usage:
    python -m kubesim run --seconds 60
    python -m kubesim serve
"""

from __future__ import annotations

from kubesim.cli.main import cli

cli()
