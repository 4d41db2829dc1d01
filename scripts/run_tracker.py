#!/usr/bin/env python3
"""
Crypto Tracker - script entry point.

Same as the `cryptotracker` console command, runnable from a checkout:

    python scripts/run_tracker.py monitor --dry-run
    python scripts/run_tracker.py alert set bitcoin 50000
"""

import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from cryptotracker.cli import main

if __name__ == "__main__":
    sys.exit(main())
