"""
Configuration for split planning.

Settings come from a string-valued key-value mapping (the job configuration)
and are threaded explicitly into the planner; nothing is read from globals.
"""

from dataclasses import dataclass
from typing import Dict, Mapping, Optional

from record_scanner import normalize_quote_char
from split_errors import ConfigurationError

QUOTE_KEY = "mapreduce.csvinput.delimiter"
SEPARATOR_KEY = "mapreduce.csvinput.separator"
RECORDS_PER_SPLIT_KEY = "mapreduce.input.lineinputformat.linespermap"

DEFAULT_RECORDS_PER_SPLIT = 1


def parse_records_per_split(value) -> int:
    if value is None or value == "":
        return DEFAULT_RECORDS_PER_SPLIT
    if isinstance(value, bool):
        raise ConfigurationError(f"records per split must be an integer, got {value!r}")
    try:
        n = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(
            f"records per split must be an integer, got {value!r}"
        ) from exc
    if n < 1:
        raise ConfigurationError(f"records per split must be >= 1, got {n}")
    return n


@dataclass(frozen=True)
class SplitConfig:
    """
    Settings consumed by the split planner.

    Attributes:
        quote_char: Character that opens and closes quoted fields. Required.
        records_per_split: Target number of logical records per split.
        separator: Field separator. Not used for boundary detection; carried
            along for whatever parses the fields of each split later.
    """
    quote_char: Optional[str]
    records_per_split: int = DEFAULT_RECORDS_PER_SPLIT
    separator: Optional[str] = None

    @classmethod
    def from_mapping(cls, conf: Mapping[str, str]) -> "SplitConfig":
        return cls(
            quote_char=conf.get(QUOTE_KEY),
            records_per_split=parse_records_per_split(conf.get(RECORDS_PER_SPLIT_KEY)),
            separator=conf.get(SEPARATOR_KEY),
        )

    def to_mapping(self) -> Dict[str, str]:
        conf = {RECORDS_PER_SPLIT_KEY: str(self.records_per_split)}
        if self.quote_char is not None:
            conf[QUOTE_KEY] = self.quote_char
        if self.separator is not None:
            conf[SEPARATOR_KEY] = self.separator
        return conf

    def validate(self) -> "SplitConfig":
        """Raise ConfigurationError unless the settings are usable."""
        normalize_quote_char(self.quote_char)
        parse_records_per_split(self.records_per_split)
        return self

    @property
    def quote_byte(self) -> bytes:
        return normalize_quote_char(self.quote_char)
