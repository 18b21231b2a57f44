"""Entry point for `python -m kubestatelogs`.

Usage:
    python -m kubestatelogs
    uv run python -m kubestatelogs
"""

from __future__ import annotations

from kubestatelogs.app import run

run()
