from __future__ import annotations

import io
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType

import pandas as pd

"""Delimited table reader.

The first non-blank line is the header, every following non-blank line is one
RawRow. Cells are read as plain strings (no type inference and no NA
conversion, so "NA" or "007" survive untouched) and trimmed.

A structurally broken file is rejected as a whole with ParseError: an
unterminated quote, a line with more or fewer fields than the header, a header
with blank or duplicate names, or no data rows at all.
"""

__all__ = [
    "ParseError",
    "ParsedTable",
    "RawRow",
    "parse_table",
    "read_table_file",
]

RawRow = Mapping[str, str]


class ParseError(Exception):
    """Raised when an upload cannot be read as a delimited table."""


@dataclass(frozen=True)
class ParsedTable:
    columns: list[str]
    rows: list[RawRow] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.rows)


def _decode(content: bytes) -> str:
    try:
        # utf-8-sig: Excel 由来の BOM を許容
        return content.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise ParseError(f"file is not valid UTF-8: {e}") from e


def _read_frame(text: str, delimiter: str) -> pd.DataFrame:
    try:
        return pd.read_csv(
            io.StringIO(text),
            sep=delimiter,
            header=None,
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
        )
    except pd.errors.EmptyDataError as e:
        raise ParseError("file is empty") from e
    except pd.errors.ParserError as e:
        raise ParseError(f"malformed delimited content: {e}") from e


def _header(df: pd.DataFrame) -> list[str]:
    columns = [str(c).strip() for c in df.iloc[0].tolist()]
    for pos, name in enumerate(columns, start=1):
        if name == "":
            raise ParseError(f"header has an empty column name at position {pos}")
    seen: set[str] = set()
    for name in columns:
        if name in seen:
            raise ParseError(f"header has duplicate column name: {name!r}")
        seen.add(name)
    return columns


def parse_table(content: bytes, delimiter: str = ",") -> ParsedTable:
    """Parse raw upload bytes into the header and one RawRow per data line.

    Parameters
    ----------
    content: アップロードされた生バイト列 (UTF-8)
    delimiter: 区切り文字 (既定はカンマ)
    """
    text = _decode(content)
    if text.strip() == "":
        raise ParseError("file is empty")

    df = _read_frame(text, delimiter)
    columns = _header(df)

    rows: list[RawRow] = []
    for line_no, (_, raw) in enumerate(df.iloc[1:].iterrows(), start=2):
        values = raw.tolist()
        # 空白のみの行だけスキップ (",," のような区切りのみの行は空セルの行として残す)
        if str(values[0]).strip() == "" and all(pd.isna(v) for v in values[1:]):
            continue
        # pandas は列数不足の行を NaN で埋める -> 列数不一致として拒否
        if any(pd.isna(v) for v in values):
            present = sum(1 for v in values if not pd.isna(v))
            raise ParseError(
                f"inconsistent column count near data line {line_no}: "
                f"expected {len(columns)} fields, saw {present}"
            )
        row = {col: str(val).strip() for col, val in zip(columns, values, strict=True)}
        rows.append(MappingProxyType(row))

    if not rows:
        raise ParseError("file has a header but no data rows")

    return ParsedTable(columns=columns, rows=rows)


def read_table_file(path: Path, delimiter: str = ",") -> ParsedTable:
    """Read and parse a delimited file from disk."""
    try:
        content = path.read_bytes()
    except OSError as e:
        raise ParseError(f"cannot read {path}: {e}") from e
    return parse_table(content, delimiter=delimiter)
