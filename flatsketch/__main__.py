"""
flatsketch — entry point.

Usage:
    python -m flatsketch serve --port 3000
    python -m flatsketch submit photo.jpg --category hoodie
    python -m flatsketch run --all
"""

import sys

from flatsketch.cli import main

if __name__ == "__main__":
    sys.exit(main())
