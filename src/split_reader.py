"""
Reading records back out of planned splits.

A split that does not start the file begins on the terminator of the
previous record, so the reader discards one (one-byte) record before
reading. Records are then read while their start lies before the end of the
split. The first split was shortened by one byte, so its limit is extended
by that byte again.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, List, Optional

from record_scanner import measure_next_record, normalize_quote_char
from split_planner import Split, uncorrect

logger = logging.getLogger(__name__)


def read_split_records(
    split: Split, quote_char, first: Optional[bool] = None
) -> Iterator[bytes]:
    """
    Yield the raw bytes of every record that belongs to split.

    first tells the reader whether this is the file's first split; it
    defaults to split.offset == 0.
    """
    quote = normalize_quote_char(quote_char)
    if first is None:
        first = split.offset == 0
    limit = split.end + 1 if first else split.end

    with open(split.file_path, "rb") as f:
        f.seek(split.offset)
        pos = split.offset

        if not first:
            skipped = measure_next_record(f, quote)
            if skipped is None:
                return
            pos += skipped

        while pos < limit:
            start = pos
            n = measure_next_record(f, quote)
            if n is None:
                break
            pos += n
            f.seek(start)
            yield f.read(n)


def count_split_records(split: Split, quote_char, first: Optional[bool] = None) -> int:
    return sum(1 for _ in read_split_records(split, quote_char, first=first))


@dataclass
class VerificationResult:
    path: str
    records_per_split: int
    split_counts: List[int] = field(default_factory=list)
    problems: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.problems

    @property
    def total_records(self) -> int:
        return sum(self.split_counts)


def verify_splits(path, splits: List[Split], quote_char, records_per_split: int) -> VerificationResult:
    """
    Read every split of one file and check the plan against the file.

    Checks that the logical ranges tile the file, that every split but the
    last holds exactly records_per_split records, and that the records read
    back reproduce the file byte for byte. Records are compared against a
    second sequential handle as they are read, so memory stays at one record.
    """
    path = Path(path)
    file_size = path.stat().st_size
    result = VerificationResult(path=str(path), records_per_split=records_per_split)

    expected_start = 0
    for start, end in uncorrect(splits):
        if start != expected_start:
            result.problems.append(f"gap or overlap at byte {expected_start} (next range starts at {start})")
        expected_start = end
    if expected_start != file_size:
        result.problems.append(f"ranges end at byte {expected_start}, file has {file_size} bytes")

    reproduced = True
    with path.open("rb") as original:
        for i, split in enumerate(splits):
            count = 0
            for record in read_split_records(split, quote_char, first=(i == 0)):
                count += 1
                if reproduced and original.read(len(record)) != record:
                    reproduced = False
            result.split_counts.append(count)

            last = i == len(splits) - 1
            if not last and count != records_per_split:
                result.problems.append(
                    f"split {i} holds {count} records, expected {records_per_split}"
                )
            if last and not 1 <= count <= records_per_split:
                result.problems.append(
                    f"last split holds {count} records, expected 1..{records_per_split}"
                )

        if reproduced and original.read(1):
            reproduced = False

    if not reproduced:
        result.problems.append("records read back do not reproduce the file")

    if result.ok:
        logger.debug("%s: %d splits verified", path, len(splits))
    else:
        logger.warning("%s: %d problems found", path, len(result.problems))
    return result
