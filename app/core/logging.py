from __future__ import annotations

"""Application-wide logging utilities.

Everything logs through the `uvicorn.error` logger so scheduling events
land in the server output next to the request log.
"""

import logging
from typing import Iterable

logger = logging.getLogger("uvicorn.error")


def describe_cells(keys: Iterable[tuple]) -> str:
    """Compact ``user:day/shift`` rendering of cell keys for log lines."""
    return ", ".join(f"{k[1]}:{k[3]}/{k[2]}" for k in keys) or "-"
