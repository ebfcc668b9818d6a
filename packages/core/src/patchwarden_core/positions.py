"""Map new-file line numbers to diff positions for inline review comments.

A diff position counts lines of the file's patch from 1: every ``@@`` hunk
header takes one position and so does every content line, removed lines
included. Removed lines have no new-file line number and can never be the
target of a comment.
"""

from __future__ import annotations

from typing import Iterable, Iterator

from patchwarden_core.models import ChangedFile


def _walk(changed_file: ChangedFile) -> Iterator[tuple[int, int, str]]:
    """Yield ``(position, new_line, text)`` for every commentable patch line."""
    position = 0
    for hunk in changed_file.hunks:
        position += 1  # the @@ header
        current_line = hunk.new_start
        for line in hunk.content.split("\n"):
            position += 1
            if line.startswith("-") or line.startswith("\\"):
                continue
            yield position, current_line, line
            current_line += 1


def line_to_diff_position(changed_files: Iterable[ChangedFile], path: str, new_line_number: int) -> int | None:
    """Return the diff position of ``new_line_number`` in ``path``, or None.

    None means the line is not part of the patch (or the file is not part of
    the diff at all); such findings can only appear in the review body.
    """
    changed_file = next((f for f in changed_files if f.path == path), None)
    if changed_file is None:
        return None
    for position, line_number, _ in _walk(changed_file):
        if line_number == new_line_number:
            return position
    return None


def diff_positions(changed_file: ChangedFile) -> dict[int, int]:
    """Return every commentable new-file line mapped to its diff position."""
    positions: dict[int, int] = {}
    for position, line_number, _ in _walk(changed_file):
        positions.setdefault(line_number, position)
    return positions


def get_line_content(changed_file: ChangedFile, new_line_number: int) -> str:
    """Return the source text of a new-file line as it appears in the patch."""
    for _, line_number, text in _walk(changed_file):
        if line_number == new_line_number:
            return text[1:] if text[:1] in ("+", " ") else text
    return ""
