import pytest
import sys
from pathlib import Path

# Add src to sys.path so the flat modules import without installing
SRC_PATH = Path(__file__).resolve().parent.parent / "src"
if SRC_PATH.as_posix() not in sys.path:
    sys.path.insert(0, SRC_PATH.as_posix())


MIXED_RECORDS = [
    b"id,name,notes\n",
    b'1,"Smith, J","line one\nline two"\n',
    b'2,plain,"she said ""hi"""\n',
    b"\n",
    b'3,"multi\r\nline\r\ncrlf",x\r\n',
    b'4,"",""\n',
    b'5,"""quoted""",end',
]


@pytest.fixture
def write_csv(tmp_path: Path):
    """Return a factory that writes bytes to a CSV file under tmp_path."""
    def _write(data: bytes, name: str = "input.csv") -> Path:
        path = tmp_path / name
        path.write_bytes(data)
        return path
    return _write


@pytest.fixture
def mixed_records():
    """Records exercising quoted newlines, escaped quotes, blank lines and CRLF."""
    return list(MIXED_RECORDS)


@pytest.fixture
def mixed_csv(write_csv, mixed_records):
    return write_csv(b"".join(mixed_records), "mixed.csv")
