import sys
from pathlib import Path

# (1) Add repository root, src/ and tests/ to sys.path to enable absolute imports
#     The root directory contains scripts/, src/ and tests/ (factories.py).
ROOT = Path(__file__).resolve().parents[1]
for path in (ROOT, ROOT / "src", ROOT / "tests"):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))
