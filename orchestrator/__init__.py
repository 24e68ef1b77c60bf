"""
Orchestrator Package - Command Line Entry Point.

============================================================
PACKAGE OVERVIEW
============================================================
Wires the portfolio packages behind one CLI:

    +-----------------------------------------------------+
    |                    orchestrator                     |
    |-----------------------------------------------------|
    |  sync / enqueue /   |  market_sync                  |
    |  process-queue      |                               |
    |  rollup / prune     |  sales_analytics              |
    |  portfolio          |  portfolio, market_pricing    |
    |  serve              |  dashboard                    |
    +-----------------------------------------------------+

============================================================
USAGE
============================================================
    python -m orchestrator --help

============================================================
"""

from .cli import create_parser, main, validate_args


__all__ = [
    "create_parser",
    "main",
    "validate_args",
]
