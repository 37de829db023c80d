#!/usr/bin/env python3
"""
Entry point for the LP Position Indexer.
Wraps lp_indexer/cli.py to ensure correct import resolution.
"""
import sys
import os

# Ensure project root is in python path
sys.path.append(os.path.dirname(os.path.abspath(__file__)))

from lp_indexer.config.dotenv_loader import load_dotenv_files

# Explicit dotenv loading for local/dev. In prod this is a no-op.
load_dotenv_files()

from lp_indexer.cli import app

if __name__ == "__main__":
    app()
