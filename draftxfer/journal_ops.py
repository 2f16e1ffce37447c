"""Operations that compare journals with each other."""

from __future__ import annotations

import enum
from itertools import zip_longest

from .journal import Difference, HashRecord, Journal, JournalFileDiff


class _Side(enum.Enum):
    A = "a"
    B = "b"


def diff_journals(journal_a: Journal, journal_b: Journal) -> JournalFileDiff:
    """Compare the hash records of two journals block by block.

    Blocks present in both journals with different hashes are reported in the
    order they are met. Blocks present in only one journal follow, ordered by
    file id and offset, with the missing side's hash set to 0.
    """
    pending: dict[tuple[int, int], tuple[int, int, _Side]] = {}
    diffs: list[Difference] = []

    def visit(record: HashRecord, side: _Side) -> None:
        key = (record.file_id, record.offset)
        other = pending.pop(key, None)

        if other is None:
            pending[key] = (record.size, record.hash, side)
            return

        _, other_hash, _ = other
        if record.hash != other_hash:
            diffs.append(Difference(
                offset=record.offset,
                size=record.size,
                hash_a=record.hash if side is _Side.A else other_hash,
                hash_b=record.hash if side is _Side.B else other_hash,
                file_id=record.file_id,
            ))

    for rec_a, rec_b in zip_longest(journal_a, journal_b):
        if rec_a is not None:
            visit(rec_a, _Side.A)
        if rec_b is not None:
            visit(rec_b, _Side.B)

    for (file_id, offset), (size, hash_value, side) in sorted(pending.items()):
        diffs.append(Difference(
            offset=offset,
            size=size,
            hash_a=hash_value if side is _Side.A else 0,
            hash_b=hash_value if side is _Side.B else 0,
            file_id=file_id,
        ))

    return JournalFileDiff(diffs)