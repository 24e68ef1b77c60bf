#!/usr/bin/env python
"""
Portfolio Dashboard Launcher.

Creates the SQLite/Postgres schema if needed, then serves
dashboard.api:app. Host and port come from DASHBOARD_HOST
and DASHBOARD_PORT (or PORT, as set by most PaaS hosts).

Usage:
    python run_dashboard.py
    python run_dashboard.py --reload

Equivalent to:
    python -m orchestrator serve
"""

import os
import sys

from dotenv import load_dotenv

from orchestrator.cli import main


def build_argv(extra: list) -> list:
    """Translate environment settings into serve arguments."""
    argv = ["serve"]
    port = os.getenv("DASHBOARD_PORT") or os.getenv("PORT")
    if port:
        argv += ["--port", port]
    if os.getenv("ENVIRONMENT", "production") == "development":
        argv.append("--reload")
    return argv + extra


if __name__ == "__main__":
    load_dotenv()
    sys.exit(main(build_argv(sys.argv[1:])))
