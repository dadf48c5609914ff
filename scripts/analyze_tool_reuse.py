"""
Tool Reuse Analysis

Analyzes tool creation patterns and usage to verify reuse. Same as the
``toolpool-report`` console script, runnable from a checkout.

Usage:
  python scripts/analyze_tool_reuse.py --manifests-dir generated-tools/manifests
"""
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from toolpool.cli import main

if __name__ == "__main__":
    sys.exit(main())
