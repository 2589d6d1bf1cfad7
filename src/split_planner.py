import logging
import multiprocessing as mp
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

from tqdm import tqdm

from record_scanner import DEFAULT_BUFFER_SIZE, iter_record_lengths, normalize_quote_char
from split_config import SplitConfig, parse_records_per_split
from split_errors import NotAFileError

logger = logging.getLogger(__name__)


# ------------------------------------------------------------
# Split: one byte range of one file, handed to one worker
# ------------------------------------------------------------
@dataclass(frozen=True)
class Split:
    file_path: str
    offset: int
    length: int
    location_hints: Tuple[str, ...] = ()

    def __post_init__(self):
        if self.offset < 0:
            raise ValueError(f"offset must be >= 0, got {self.offset}")
        if self.length < 0:
            raise ValueError(f"length must be >= 0, got {self.length}")

    @property
    def end(self) -> int:
        return self.offset + self.length

    def to_dict(self) -> Dict[str, Any]:
        return {
            "file_path": self.file_path,
            "offset": self.offset,
            "length": self.length,
            "location_hints": list(self.location_hints),
        }


@dataclass
class FilePlan:
    path: str
    splits: List[Split] = field(default_factory=list)
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


# ------------------------------------------------------------
# Boundary correction
# ------------------------------------------------------------
def correct_boundaries(path: str, chunks: List[Tuple[int, int]]) -> List[Split]:
    """
    Turn record-aligned (begin, length) chunks into splits.

    Every split after the first starts one byte early, inside the terminator
    of the previous record, and grows by one byte. The first split shrinks by
    one byte when another split follows it.
    """
    splits = []
    last = len(chunks) - 1
    for i, (begin, length) in enumerate(chunks):
        if i == 0:
            if last > 0:
                length -= 1
        else:
            begin -= 1
            length += 1
        splits.append(Split(path, begin, length))
    return splits


def uncorrect(splits: List[Split]) -> List[Tuple[int, int]]:
    """Reverse the boundary correction, returning logical [start, end) ranges."""
    ranges = []
    for i, s in enumerate(splits):
        if i == 0:
            end = s.end + 1 if len(splits) > 1 else s.end
            ranges.append((s.offset, end))
        else:
            ranges.append((s.offset + 1, s.end))
    return ranges


# ------------------------------------------------------------
# Per-file planning
# ------------------------------------------------------------
def plan_file_splits(
    path,
    quote_char,
    records_per_split: int = 1,
    buffer_size: int = DEFAULT_BUFFER_SIZE,
) -> List[Split]:
    """
    Walk the file ONCE and cut it into splits of records_per_split records.

    The file is opened for the duration of the scan only. Read errors
    propagate unchanged and no partial plan is returned.
    """
    quote = normalize_quote_char(quote_char)
    records_per_split = parse_records_per_split(records_per_split)
    path = Path(path)

    if path.is_dir():
        raise NotAFileError(f"Not a file: {path}")

    logger.debug("Scanning records: %s", path)

    chunks = []
    begin = length = count = 0
    total_records = 0
    with path.open("rb") as f:
        for n in iter_record_lengths(f, quote, buffer_size=buffer_size):
            count += 1
            length += n
            if count == records_per_split:
                chunks.append((begin, length))
                begin += length
                length = count = 0
            total_records += 1

    if count:
        chunks.append((begin, length))

    splits = correct_boundaries(str(path), chunks)
    logger.info(
        "%s: %d records, %d bytes, %d splits",
        path, total_records, begin + length, len(splits),
    )
    return splits


def _plan_worker(args) -> FilePlan:
    path, quote, records_per_split, buffer_size = args
    try:
        splits = plan_file_splits(path, quote, records_per_split, buffer_size)
    except OSError as exc:
        return FilePlan(path=str(path), error=exc)
    return FilePlan(path=str(path), splits=splits)


# ------------------------------------------------------------
# Job-level planning
# ------------------------------------------------------------
def plan_job_splits_by_file(
    paths: Iterable,
    config: SplitConfig,
    num_workers: int = 1,
    progress: bool = False,
    buffer_size: int = DEFAULT_BUFFER_SIZE,
) -> List[FilePlan]:
    """
    Plan every file independently, keeping each file's outcome.

    Configuration is validated before any file is touched. Files are planned
    in input order, in a process pool when num_workers > 1.
    """
    config.validate()
    tasks = [
        (str(p), config.quote_byte, config.records_per_split, buffer_size)
        for p in paths
    ]

    if num_workers > 1 and len(tasks) > 1:
        with mp.Pool(min(num_workers, len(tasks))) as pool:
            results = list(tqdm(
                pool.imap(_plan_worker, tasks),
                total=len(tasks),
                desc="Planning",
                ncols=100,
                disable=not progress,
            ))
    else:
        results = [
            _plan_worker(t)
            for t in tqdm(tasks, desc="Planning", ncols=100, disable=not progress)
        ]

    for plan in results:
        if not plan.ok:
            logger.error("Failed to plan %s: %s", plan.path, plan.error)
    return results


def plan_job_splits(
    paths: Iterable,
    config: SplitConfig,
    num_workers: int = 1,
    progress: bool = False,
    buffer_size: int = DEFAULT_BUFFER_SIZE,
) -> List[Split]:
    """
    Plan every input file and concatenate the split lists in input order.

    Every file is attempted; if any failed, the first failure is re-raised.
    """
    plans = plan_job_splits_by_file(
        paths, config, num_workers=num_workers, progress=progress, buffer_size=buffer_size
    )
    for plan in plans:
        if not plan.ok:
            raise plan.error

    splits = []
    for plan in plans:
        splits.extend(plan.splits)
    return splits
