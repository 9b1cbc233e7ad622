"""Split large statement blocks into request-sized chunks on line boundaries."""

from __future__ import annotations


def chunk_text(text: str, max_len: int = 8000) -> list[str]:
    """Split text into chunks of at most ``max_len`` characters.

    Splits only between lines so a numbered line is never cut, except
    for a single line longer than ``max_len``, which is hard-split.
    """
    if max_len <= 0:
        raise ValueError("max_len must be positive")

    chunks: list[str] = []
    current = ""
    for line in text.split("\n"):
        addition = ("\n" if current else "") + line
        if len(current) + len(addition) <= max_len:
            current += addition
            continue

        if current:
            chunks.append(current)
        if len(line) > max_len:
            for start in range(0, len(line), max_len):
                chunks.append(line[start : start + max_len])
            current = ""
        else:
            current = line

    if current:
        chunks.append(current)
    return chunks


def split_for_requests(text: str, threshold: int, chunk_size: int) -> list[str]:
    """Return ``[text]`` when small enough, otherwise line-bounded chunks."""
    if len(text) <= threshold:
        return [text]
    return chunk_text(text, chunk_size)
