#!/usr/bin/env python3
"""Run the gameweek pipeline CLI from a source checkout.

Usage:
    python scripts/run_pipeline.py --config configs/dev.yaml run-pipeline
    python scripts/run_pipeline.py --config configs/dev.yaml evaluate GW25
"""

import sys
from pathlib import Path

# Add src to path for development
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from gameweek_pipeline.pipeline.cli import main

if __name__ == "__main__":
    main()
