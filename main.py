#!/usr/bin/env python3
"""Pomotune — entry point.

Run with:
    python main.py
    python -m pomotune
"""

import sys

from pomotune.__main__ import main


if __name__ == "__main__":
    sys.exit(main())
