import os
from pathlib import Path
from typing import Optional, Tuple

__version__ = "0.3.0"


def _parse_env_line(line: str) -> Optional[Tuple[str, str]]:
    """Split one `.env` line into (key, value); None for blanks and comments."""
    s = line.strip()
    if s.startswith("export "):
        s = s[len("export "):].lstrip()
    if not s or s.startswith("#") or "=" not in s:
        return None
    key, _, val = s.partition("=")
    val = val.strip()
    if len(val) >= 2 and val[0] == val[-1] and val[0] in "\"'":
        val = val[1:-1]
    key = key.strip()
    return (key, val) if key else None


def load_env_file(path: Path = Path(".env")) -> None:
    """Seed os.environ from `path`; variables already set win."""
    if not path.exists():
        return
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except OSError:
        return
    for parsed in filter(None, map(_parse_env_line, lines)):
        os.environ.setdefault(*parsed)


# Tests stay offline: no .env under pytest
if not os.getenv("PYTEST_CURRENT_TEST"):
    load_env_file()
