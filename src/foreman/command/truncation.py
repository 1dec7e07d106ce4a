"""Bound command output before it lands in the short-term memory."""

from __future__ import annotations

import os
import tempfile
import unicodedata

MAX_LINES = 400
MAX_BYTES = 16 * 1024
OUTPUT_DIR = "~/.foreman/command-output"

KEEP_CONTROL = frozenset("\t\n\r")


def truncate_output(
    text: str,
    max_lines: int = MAX_LINES,
    max_bytes: int = MAX_BYTES,
    save_full: bool = True,
) -> str:
    """Keep the head of oversized output and append a notice.

    The notice says how much was dropped and, when ``save_full`` is set,
    where the untruncated text was written.
    """
    if not text:
        return text

    encoded = text.encode("utf-8", errors="replace")
    all_lines = text.split("\n")
    if len(all_lines) <= max_lines and len(encoded) <= max_bytes:
        return text

    head = "\n".join(all_lines[:max_lines])
    dropped = [f"{len(all_lines) - max_lines} lines skipped"] if len(all_lines) > max_lines else []

    head_bytes = head.encode("utf-8", errors="replace")
    if len(head_bytes) > max_bytes:
        # errors="ignore" drops a split multibyte character at the cut
        head = head_bytes[:max_bytes].decode("utf-8", errors="ignore")
        dropped.append(f"{len(encoded) - max_bytes} bytes skipped")

    notice = (
        f"[Output truncated: {', '.join(dropped)}. "
        f"Total: {len(all_lines)} lines, {len(encoded)} bytes]"
    )
    if save_full:
        notice += f"\n[Full output saved to: {save_output(text)}]"
    return f"{head}\n{notice}"


def save_output(text: str) -> str:
    """Write ``text`` under ``OUTPUT_DIR`` and return the file path."""
    directory = os.path.expanduser(OUTPUT_DIR)
    os.makedirs(directory, exist_ok=True)
    fd, path = tempfile.mkstemp(prefix="foreman-", suffix=".txt", dir=directory)
    with open(fd, "w", encoding="utf-8") as handle:
        handle.write(text)
    return path


def sanitize_text(text: str) -> str:
    """Drop control characters (C0, DEL, C1), keeping tabs and newlines."""
    return "".join(
        ch
        for ch in text
        if ch in KEEP_CONTROL or unicodedata.category(ch) != "Cc"
    )
