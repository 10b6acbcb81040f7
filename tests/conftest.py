from __future__ import annotations

import sys
from pathlib import Path

# Tests import `yolox_kit` from the checkout; not every pytest import mode puts
# the repo root on sys.path.
_REPO_ROOT = str(Path(__file__).resolve().parents[1])
if _REPO_ROOT not in sys.path:
    sys.path.insert(0, _REPO_ROOT)
