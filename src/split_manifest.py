import json
from pathlib import Path
from typing import List

import pandas as pd
import pyarrow as pa
import pyarrow.parquet as pq
import pyarrow.feather as feather
from fastavro import writer, reader, parse_schema

from split_planner import Split

FORMATS = ("csv", "jsonl", "parquet", "feather", "avro")

AVRO_SCHEMA = {
    "type": "record",
    "name": "Split",
    "fields": [
        {"name": "split_index", "type": "long"},
        {"name": "file_path", "type": "string"},
        {"name": "offset", "type": "long"},
        {"name": "length", "type": "long"},
        {"name": "location_hints", "type": {"type": "array", "items": "string"}},
    ],
}


# ------------------------------------------------------------
# Splits <-> DataFrame
# ------------------------------------------------------------
def splits_to_frame(splits: List[Split]) -> pd.DataFrame:
    rows = []
    for i, s in enumerate(splits):
        row = s.to_dict()
        row["split_index"] = i
        rows.append(row)

    columns = ["split_index", "file_path", "offset", "length", "location_hints"]
    if len(rows) == 0:
        return pd.DataFrame(columns=columns)
    return pd.DataFrame(rows, columns=columns)


def _hints(value):
    # csv stores hints as a JSON string, the binary formats as a list/array
    if value is None:
        return ()
    if isinstance(value, str):
        return tuple(json.loads(value)) if value else ()
    return tuple(str(h) for h in value)


def frame_to_splits(df: pd.DataFrame) -> List[Split]:
    if "split_index" in df.columns:
        df = df.sort_values("split_index")
    return [
        Split(
            file_path=str(row["file_path"]),
            offset=int(row["offset"]),
            length=int(row["length"]),
            location_hints=_hints(row["location_hints"]),
        )
        for _, row in df.iterrows()
    ]


# ------------------------------------------------------------
# Writing
# ------------------------------------------------------------
def write_manifest(splits: List[Split], output_dir, fmt="csv", stem="splits") -> Path:
    """Write a split plan to output_dir/<stem>.<fmt>."""
    if fmt not in FORMATS:
        raise ValueError(f"unknown manifest format {fmt!r}, expected one of {FORMATS}")

    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    final_file = output_dir / f"{stem}.{fmt}"

    df = splits_to_frame(splits)

    if fmt == "csv":
        out = df.copy()
        out["location_hints"] = out["location_hints"].map(json.dumps)
        out.to_csv(final_file, index=False)

    elif fmt == "jsonl":
        with open(final_file, "w", encoding="utf-8") as fout:
            for i, s in enumerate(splits):
                row = s.to_dict()
                row["split_index"] = i
                fout.write(json.dumps(row) + "\n")

    elif fmt in ("parquet", "feather"):
        table = pa.Table.from_pandas(
            df.astype({"split_index": "int64", "offset": "int64", "length": "int64"}),
            schema=pa.schema([
                ("split_index", pa.int64()),
                ("file_path", pa.string()),
                ("offset", pa.int64()),
                ("length", pa.int64()),
                ("location_hints", pa.list_(pa.string())),
            ]),
            preserve_index=False,
        )
        if fmt == "parquet":
            pq.write_table(table, final_file)
        else:
            feather.write_feather(table, final_file)

    elif fmt == "avro":
        records = [dict(s.to_dict(), split_index=i) for i, s in enumerate(splits)]
        parsed = parse_schema(AVRO_SCHEMA)
        with open(final_file, "wb") as out:
            writer(out, parsed, records)

    return final_file


# ------------------------------------------------------------
# Reading
# ------------------------------------------------------------
def read_manifest(path) -> List[Split]:
    """Load a split plan written by write_manifest; format comes from the suffix."""
    path = Path(path)
    fmt = path.suffix.lstrip(".")

    if fmt == "csv":
        df = pd.read_csv(path, dtype={"file_path": str, "location_hints": str},
                         keep_default_na=False)
        return frame_to_splits(df)

    if fmt == "jsonl":
        splits = []
        with open(path, "r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                row = json.loads(line)
                splits.append(Split(
                    file_path=row["file_path"],
                    offset=row["offset"],
                    length=row["length"],
                    location_hints=tuple(row.get("location_hints", ())),
                ))
        return splits

    if fmt == "parquet":
        return frame_to_splits(pd.read_parquet(path))

    if fmt == "feather":
        return frame_to_splits(pd.read_feather(path))

    if fmt == "avro":
        with open(path, "rb") as f:
            rows = sorted(reader(f), key=lambda r: r["split_index"])
        return [
            Split(r["file_path"], r["offset"], r["length"], tuple(r["location_hints"]))
            for r in rows
        ]

    raise ValueError(f"unknown manifest format {fmt!r}, expected one of {FORMATS}")
