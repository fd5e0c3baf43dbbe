# src/codegrader/textutil.py
#
# Text utilities for codegrader.
#
# Responsibilities:
#   - Line-level edits of the newline-delimited feedback text
#   - Picking the "main" code file of a submission
#   - Collapsing blank lines in generated commentary

from __future__ import annotations

import re
from typing import Iterable, List, Optional

from .models import SubmissionFile


def _lines(text: str) -> List[str]:
    return (text or "").split("\n")


def line_matches(line: str, comment: str) -> bool:
    """A feedback line belongs to a comment when its trimmed text starts with the trimmed comment."""
    token = (comment or "").strip()
    if not token:
        return False
    return line.strip().startswith(token)


def append_line(text: str, line: str) -> str:
    """
    Append `line` to newline-delimited `text`.

    A blank `text` becomes just `line`; no leading newline is introduced.
    """
    if not text:
        return line
    return f"{text}\n{line}"


def remove_lines(text: str, comment: str) -> str:
    """Drop every line that matches `comment`."""
    return "\n".join(ln for ln in _lines(text) if not line_matches(ln, comment))


def replace_lines(text: str, old_comment: str, new_comment: str) -> str:
    """
    Replace each line matching `old_comment` with `new_comment`, then drop lines
    that are blank after trimming.
    """
    new = (new_comment or "").strip()
    out: List[str] = []
    for ln in _lines(text):
        if line_matches(ln, old_comment):
            ln = new
        if ln.strip():
            out.append(ln)
    return "\n".join(out)


def main_code_file(files: Optional[Iterable[SubmissionFile]]) -> Optional[SubmissionFile]:
    """Prefer a file named like main.py, otherwise the first file."""
    items = list(files or [])
    for f in items:
        if "main.py" in f.name.lower():
            return f
    return items[0] if items else None


def collapse_blank_lines(text: str) -> str:
    """Collapse 3+ newlines to 2 and strip. Used on model commentary before storing it."""
    if not text:
        return ""
    s = re.sub(r"\r\n?", "\n", text)
    s = re.sub(r"\n{3,}", "\n\n", s)
    return s.strip()
