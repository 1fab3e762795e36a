"""Delivery checklist scanning."""

from pathlib import Path
from typing import List

from blueprints.exceptions import ChecklistError


def enumerate_unchecked_items(path: Path) -> List[str]:
    """Return the text of every ``- [ ] text`` line in the checklist.

    Lines with anything inside the brackets count as checked. A missing file
    means there is nothing left to do.

    Raises:
        ChecklistError: If the file exists but cannot be read as UTF-8 text.
    """
    if not path.exists():
        return []

    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ChecklistError(f"failed to read {path}: {e}") from e

    items = []
    for line in content.split("\n"):
        trimmed = line.lstrip()
        if not trimmed.startswith("-"):
            continue

        after_dash = trimmed[1:].lstrip()
        if not after_dash.startswith("["):
            continue

        close_idx = after_dash.find("]")
        if close_idx == -1:
            continue
        if after_dash[1:close_idx].strip():
            continue

        text = after_dash[close_idx + 1 :].strip()
        if text:
            items.append(text)

    return items


def format_enumerated(items: List[str]) -> str:
    """Render items as ``1) first`` / ``2) second`` lines."""
    return "\n".join(f"{idx}) {item}" for idx, item in enumerate(items, start=1))
