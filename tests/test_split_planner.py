"""
Tests for split planning: boundary correction, degenerate files and
job-level planning over several files.
"""

import pytest

import split_planner

from split_config import SplitConfig
from split_errors import ConfigurationError, NotAFileError
from split_planner import (
    Split,
    correct_boundaries,
    plan_file_splits,
    plan_job_splits,
    plan_job_splits_by_file,
    uncorrect,
)


@pytest.fixture
def failing_scan(monkeypatch):
    """Make the planner's record iterator fail after two records; keeps the streams it saw."""
    seen = {"streams": [], "error": OSError("disk went away")}

    def _scan(stream, quote_char, buffer_size=None):
        seen["streams"].append(stream)
        yield 2
        yield 2
        raise seen["error"]

    monkeypatch.setattr(split_planner, "iter_record_lengths", _scan)
    return seen


def offsets(splits):
    return [(s.offset, s.length) for s in splits]


class TestPlanFileSplits:

    def test_boundary_correction_exact(self, write_csv):
        # record lengths 10, 10, 10, 10, 5
        data = b"aaaaaaaaa\n" * 4 + b"bbbbb"
        path = write_csv(data)
        splits = plan_file_splits(path, '"', records_per_split=2)
        assert offsets(splits) == [(0, 19), (19, 21), (39, 6)]
        assert all(s.file_path == str(path) for s in splits)
        assert all(s.location_hints == () for s in splits)

    def test_quoted_newline_never_split(self, write_csv):
        first = b'a,"line1\nline2",b\n'
        second = b"c,d,e\n"
        path = write_csv(first + second)
        splits = plan_file_splits(path, '"', records_per_split=1)
        assert offsets(splits) == [(0, len(first) - 1), (len(first) - 1, len(second) + 1)]

    def test_empty_file_has_no_splits(self, write_csv):
        assert plan_file_splits(write_csv(b""), '"') == []

    def test_single_record_without_terminator(self, write_csv):
        data = b'only,"one",record'
        path = write_csv(data)
        assert offsets(plan_file_splits(path, '"')) == [(0, len(data))]

    def test_fewer_records_than_target(self, write_csv):
        data = b"a\nb\nc\n"
        path = write_csv(data)
        assert offsets(plan_file_splits(path, '"', records_per_split=10)) == [(0, len(data))]

    def test_default_is_one_record_per_split(self, write_csv):
        path = write_csv(b"a\nb\nc\n")
        assert offsets(plan_file_splits(path, '"')) == [(0, 1), (1, 3), (3, 3)]

    def test_replanning_is_identical(self, mixed_csv):
        assert plan_file_splits(mixed_csv, '"', 2) == plan_file_splits(mixed_csv, '"', 2)

    @pytest.mark.parametrize("buffer_size", [1, 4, 64])
    def test_buffer_size_does_not_change_plan(self, mixed_csv, buffer_size):
        expected = plan_file_splits(mixed_csv, '"', 3)
        assert plan_file_splits(mixed_csv, '"', 3, buffer_size=buffer_size) == expected

    @pytest.mark.parametrize("records_per_split", [1, 2, 3, 4, 6, 7, 8, 100])
    def test_logical_ranges_tile_file(self, mixed_csv, mixed_records, records_per_split):
        splits = plan_file_splits(mixed_csv, '"', records_per_split)
        ranges = uncorrect(splits)
        assert ranges[0][0] == 0
        for (_, end), (start, _) in zip(ranges, ranges[1:]):
            assert end == start
        assert ranges[-1][1] == mixed_csv.stat().st_size

        # each range holds whole records
        boundaries = [0]
        for r in mixed_records:
            boundaries.append(boundaries[-1] + len(r))
        for start, end in ranges:
            assert start in boundaries
            assert end in boundaries

    def test_directory_is_rejected(self, tmp_path):
        with pytest.raises(NotAFileError, match="Not a file"):
            plan_file_splits(tmp_path, '"')

    def test_directory_error_is_an_os_error(self, tmp_path):
        with pytest.raises(IsADirectoryError):
            plan_file_splits(tmp_path, '"')

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            plan_file_splits(tmp_path / "missing.csv", '"')

    @pytest.mark.parametrize("records_per_split", [0, -3, "abc"])
    def test_invalid_records_per_split(self, write_csv, records_per_split):
        with pytest.raises(ConfigurationError):
            plan_file_splits(write_csv(b"a\n"), '"', records_per_split)

    def test_missing_quote(self, write_csv):
        with pytest.raises(ConfigurationError):
            plan_file_splits(write_csv(b"a\n"), None)

    def test_read_error_mid_file_returns_nothing_and_closes(self, write_csv, failing_scan):
        path = write_csv(b"a\nb\nc\nd\n")
        with pytest.raises(OSError) as excinfo:
            plan_file_splits(path, '"', records_per_split=1)
        assert excinfo.value is failing_scan["error"]
        assert len(failing_scan["streams"]) == 1
        assert failing_scan["streams"][0].closed


class TestBoundaryCorrection:

    def test_single_chunk_is_untouched(self):
        assert offsets(correct_boundaries("f", [(0, 42)])) == [(0, 42)]

    def test_uncorrect_reverses_correction(self):
        chunks = [(0, 20), (20, 20), (40, 5)]
        splits = correct_boundaries("f", chunks)
        assert uncorrect(splits) == [(0, 20), (20, 40), (40, 45)]

    def test_split_rejects_negative_values(self):
        with pytest.raises(ValueError):
            Split("f", -1, 3)
        with pytest.raises(ValueError):
            Split("f", 0, -1)

    def test_split_end(self):
        assert Split("f", 19, 21).end == 40


class TestPlanJobSplits:

    def test_concatenates_in_input_order(self, write_csv):
        a = write_csv(b"1\n2\n3\n", "a.csv")
        b = write_csv(b"x\ny\n", "b.csv")
        config = SplitConfig(quote_char='"', records_per_split=2)

        splits = plan_job_splits([b, a], config)

        assert [s.file_path for s in splits] == [str(b), str(a), str(a)]
        assert splits == plan_file_splits(b, '"', 2) + plan_file_splits(a, '"', 2)

    def test_missing_quote_fails_before_touching_files(self, tmp_path):
        config = SplitConfig(quote_char=None)
        with pytest.raises(ConfigurationError):
            plan_job_splits([tmp_path / "does-not-exist.csv"], config)

    def test_failed_file_does_not_stop_others(self, write_csv, tmp_path):
        good = write_csv(b"a\nb\n", "good.csv")
        folder = tmp_path / "folder"
        folder.mkdir()
        config = SplitConfig(quote_char='"')

        plans = plan_job_splits_by_file([folder, good], config)

        assert not plans[0].ok
        assert isinstance(plans[0].error, NotAFileError)
        assert plans[0].splits == []
        assert plans[1].ok
        assert len(plans[1].splits) == 2

    def test_read_error_mid_file_keeps_no_partial_plan(self, write_csv, failing_scan):
        path = write_csv(b"a\nb\nc\nd\n")
        config = SplitConfig(quote_char='"')

        plans = plan_job_splits_by_file([path], config)

        assert plans[0].error is failing_scan["error"]
        assert plans[0].splits == []
        assert failing_scan["streams"][0].closed

    def test_failure_is_reraised_unchanged(self, write_csv, tmp_path):
        good = write_csv(b"a\nb\n", "good.csv")
        config = SplitConfig(quote_char='"')
        with pytest.raises(FileNotFoundError):
            plan_job_splits([good, tmp_path / "missing.csv"], config)

    def test_parallel_matches_sequential(self, write_csv, mixed_records):
        paths = [
            write_csv(b"".join(mixed_records), f"part-{i}.csv")
            for i in range(4)
        ]
        config = SplitConfig(quote_char='"', records_per_split=3)

        sequential = plan_job_splits(paths, config, num_workers=1)
        parallel = plan_job_splits(paths, config, num_workers=2)

        assert parallel == sequential
