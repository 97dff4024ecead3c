from __future__ import annotations
import os
from typing import List, Optional

from scriptit.sit_datatypes import SitIOError


def resolve_path(path: str, base_dir: Optional[str]) -> str:
    # Relative paths resolve against the script's directory (or CWD).
    expanded = os.path.expanduser(path)
    if os.path.isabs(expanded):
        return os.path.normpath(expanded)
    base = base_dir or os.getcwd()
    return os.path.normpath(os.path.join(base, expanded))


def _require_path(path, func_name: str) -> str:
    if not isinstance(path, str):
        raise SitIOError(f"{func_name}() expects a string filename")
    return path


async def file_read(path: str, *, base_dir: Optional[str] = None) -> str:
    full = resolve_path(_require_path(path, "read"), base_dir)
    try:
        with open(full, "r", encoding="utf-8") as f:
            return f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise SitIOError(f"Cannot open file: {path} ({e.__class__.__name__})")


async def file_read_lines(path: str, *, base_dir: Optional[str] = None) -> List[str]:
    """Reads a text file as a list of lines without their line endings."""
    text = await file_read(_require_path(path, "readLine"), base_dir=base_dir)
    return text.splitlines()


async def file_write(path: str, text: str, mode: str = "w", *, base_dir: Optional[str] = None) -> None:
    if mode not in ("w", "a"):
        raise SitIOError(f"Unsupported write mode '{mode}', use 'w' or 'a'")
    full = resolve_path(_require_path(path, "write"), base_dir)
    try:
        with open(full, mode, encoding="utf-8") as f:
            f.write(text)
    except OSError as e:
        raise SitIOError(f"Cannot open file for writing: {path} ({e.__class__.__name__})")
