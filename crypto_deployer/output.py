"""
Result I/O: deployment records and reports as JSON files.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any


def ensure_dir(path: str | Path) -> None:
    """Create directory and parents if they do not exist."""
    Path(path).mkdir(parents=True, exist_ok=True)


def write_json(obj: Any, path: str | Path) -> None:
    """Write JSON-serializable object to file (UTF-8), keys in insertion order."""
    path = Path(path)
    ensure_dir(path.parent)

    def _enc(o: Any) -> Any:
        if isinstance(o, dict):
            return {str(k): _enc(v) for k, v in o.items()}
        if isinstance(o, (list, tuple)):
            return [_enc(x) for x in o]
        if isinstance(o, (float, int, str, bool, type(None))):
            return o
        if hasattr(o, "value") and hasattr(o, "name"):  # enum
            return o.value
        return str(o)

    with open(path, "w", encoding="utf-8") as f:
        json.dump(_enc(obj), f, indent=2)
        f.write("\n")


def deployment_path(output_dir: str | Path, chain_id: int, mode: str) -> Path:
    """deployments/<chain_id>-<mode>.json"""
    return Path(output_dir) / f"{chain_id}-{mode.lower()}.json"
