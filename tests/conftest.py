from __future__ import annotations

import os
from pathlib import Path

# settings loads its JSON config at import time.
os.environ.setdefault(
    "SCRAPWATCH_CONFIG",
    str(Path(__file__).resolve().parent.parent / "config.example.json"),
)
