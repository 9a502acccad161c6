"""Self-describing binary archive of one rolled series.

File layout (gzip-compressed, little-endian):
- MAGIC (4 bytes): b"FQAR"
- VERSION (1 byte): 1
- SCHEMA_LEN (4 bytes, uint32) followed by a UTF-8 JSON schema
- SYMBOL_LEN (2 bytes, uint16) followed by the UTF-8 symbol
- DAILY_COUNT (4 bytes, uint32) followed by daily records
- INTRADAY_COUNT (4 bytes, uint32) followed by intraday records

The schema lists the fields of ``DailyRecord``, ``IntradayRecord`` and
``ReturnsRecord`` as ``[name, type]`` pairs in encoding order. Intraday records
start with their timestamp and a presence bitmask over the optional fields;
only present optional fields are encoded. Decoding maps fields by name, so
unknown fields are skipped and fields missing from a file decode as ``None``.
"""

from __future__ import annotations

import gzip
import io
import json
import logging
import os
import struct
import tempfile
import zlib
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Any

from futures_quant.exceptions import ArchiveError
from futures_quant.generation.features import FEATURES, RETURNS, FeatureRecord, ReturnsRecord
from futures_quant.generation.roller import DailyRecord

LOGGER = logging.getLogger(__name__)

MAGIC = b"FQAR"
VERSION = 1
ARCHIVE_EXTENSION = "gobz"

_EPOCH = datetime(1970, 1, 1)
_HEADER_STRUCT = struct.Struct("<4sBI")
_U16 = struct.Struct("<H")
_U32 = struct.Struct("<I")

_SCALAR_STRUCTS = {
    "date": struct.Struct("<i"),
    "f8": struct.Struct("<d"),
    "ts": struct.Struct("<q"),
    "opt_f8": struct.Struct("<d"),
}
_RETURNS_FIELDS = ("High", "Low", "Close1", "Close2")
_RETURNS_STRUCT = struct.Struct("<4q")
_OPTIONAL_TYPES = {"opt_f8", "opt_returns"}


@dataclass(slots=True)
class Archive:
    symbol: str
    daily_records: list[DailyRecord] = field(default_factory=list)
    intraday_records: list[FeatureRecord] = field(default_factory=list)


def archive_path(archive_dir: str | Path, symbol: str, f_number: int) -> Path:
    return Path(archive_dir) / f"{symbol}.F{f_number}.{ARCHIVE_EXTENSION}"


def _current_schema() -> dict[str, list[list[str]]]:
    intraday = [["Timestamp", "ts"]]
    intraday.extend([descriptor.archive_name, "opt_f8"] for descriptor in FEATURES)
    intraday.extend([descriptor.archive_name, "opt_returns"] for descriptor in RETURNS)
    return {
        "DailyRecord": [["Date", "date"], ["Close", "f8"]],
        "IntradayRecord": intraday,
        "ReturnsRecord": [[name, "i8"] for name in _RETURNS_FIELDS],
    }


def _bitmask_size(optional_count: int) -> int:
    return (optional_count + 7) // 8


def _timestamp_to_seconds(timestamp: datetime) -> int:
    return int((timestamp - _EPOCH) // timedelta(seconds=1))


def encode_archive(archive: Archive) -> bytes:
    """Serialize an archive into the uncompressed binary layout."""
    schema = _current_schema()
    schema_bytes = json.dumps(schema, separators=(",", ":")).encode("utf-8")
    symbol_bytes = archive.symbol.encode("utf-8")
    out = io.BytesIO()
    out.write(_HEADER_STRUCT.pack(MAGIC, VERSION, len(schema_bytes)))
    out.write(schema_bytes)
    out.write(_U16.pack(len(symbol_bytes)))
    out.write(symbol_bytes)

    date_struct = _SCALAR_STRUCTS["date"]
    f8 = _SCALAR_STRUCTS["f8"]
    out.write(_U32.pack(len(archive.daily_records)))
    for record in archive.daily_records:
        out.write(date_struct.pack(record.date.toordinal()))
        out.write(f8.pack(record.close))

    ts_struct = _SCALAR_STRUCTS["ts"]
    optional_count = len(FEATURES) + len(RETURNS)
    mask_size = _bitmask_size(optional_count)
    out.write(_U32.pack(len(archive.intraday_records)))
    for record in archive.intraday_records:
        mask = 0
        body = io.BytesIO()
        for position, value in enumerate(record.features):
            if value is not None:
                mask |= 1 << position
                body.write(f8.pack(value))
        for position, returns in enumerate(record.returns, start=len(FEATURES)):
            if returns is not None:
                mask |= 1 << position
                body.write(_RETURNS_STRUCT.pack(returns.high, returns.low, returns.close1, returns.close2))
        out.write(ts_struct.pack(_timestamp_to_seconds(record.timestamp)))
        out.write(mask.to_bytes(mask_size, "little"))
        out.write(body.getvalue())
    return out.getvalue()


class _Reader:
    __slots__ = ("data", "offset")

    def __init__(self, data: bytes):
        self.data = data
        self.offset = 0

    def read(self, size: int) -> bytes:
        end = self.offset + size
        if end > len(self.data):
            raise ArchiveError("Unexpected end of archive data")
        chunk = self.data[self.offset : end]
        self.offset = end
        return chunk

    def unpack(self, fmt: struct.Struct) -> tuple[Any, ...]:
        values = fmt.unpack_from(self.data, self.offset) if self.offset + fmt.size <= len(self.data) else None
        if values is None:
            raise ArchiveError("Unexpected end of archive data")
        self.offset += fmt.size
        return values


def _field_size(type_name: str, returns_size: int) -> int:
    if type_name == "opt_returns":
        return returns_size
    if type_name == "i8":
        return 8
    try:
        return _SCALAR_STRUCTS[type_name].size
    except KeyError:
        raise ArchiveError(f"Unknown field type in archive schema: {type_name!r}") from None


def _decode_daily(reader: _Reader, fields: list[list[str]], count: int, returns_size: int) -> list[DailyRecord]:
    records = []
    for _ in range(count):
        values: dict[str, Any] = {}
        for name, type_name in fields:
            if name == "Date" and type_name == "date":
                values["date"] = date.fromordinal(reader.unpack(_SCALAR_STRUCTS["date"])[0])
            elif name == "Close" and type_name == "f8":
                values["close"] = reader.unpack(_SCALAR_STRUCTS["f8"])[0]
            else:
                reader.read(_field_size(type_name, returns_size))
        if "date" not in values or "close" not in values:
            raise ArchiveError("Archive daily records lack Date or Close")
        records.append(DailyRecord(date=values["date"], close=values["close"]))
    return records


def _returns_decoder(fields: list[list[str]]):
    names = [name for name, _ in fields]
    if any(name not in names for name in _RETURNS_FIELDS):
        raise ArchiveError(f"Archive ReturnsRecord schema is incomplete: {names}")
    fmt = struct.Struct("<" + "q" * len(names))

    def decode(raw: bytes) -> ReturnsRecord:
        values = dict(zip(names, fmt.unpack(raw)))
        return ReturnsRecord(
            high=values["High"], low=values["Low"], close1=values["Close1"], close2=values["Close2"]
        )

    return decode, fmt.size


def _decode_intraday(
    reader: _Reader, fields: list[list[str]], count: int, returns_fields: list[list[str]]
) -> list[FeatureRecord]:
    decode_returns, returns_size = _returns_decoder(returns_fields)
    feature_index = {descriptor.archive_name: descriptor.index for descriptor in FEATURES}
    returns_index = {descriptor.archive_name: descriptor.index for descriptor in RETURNS}
    optional = [(name, type_name) for name, type_name in fields if type_name in _OPTIONAL_TYPES]
    required = [(name, type_name) for name, type_name in fields if type_name not in _OPTIONAL_TYPES]
    if ["Timestamp", "ts"] not in [list(item) for item in required]:
        raise ArchiveError("Archive intraday records lack a Timestamp field")
    mask_size = _bitmask_size(len(optional))
    f8 = _SCALAR_STRUCTS["f8"]

    records = []
    for _ in range(count):
        timestamp = None
        for name, type_name in required:
            if name == "Timestamp":
                timestamp = _EPOCH + timedelta(seconds=reader.unpack(_SCALAR_STRUCTS["ts"])[0])
            else:
                reader.read(_field_size(type_name, returns_size))
        record = FeatureRecord.empty(timestamp)
        mask = int.from_bytes(reader.read(mask_size), "little")
        for position, (name, type_name) in enumerate(optional):
            if not mask & (1 << position):
                continue
            if type_name == "opt_f8":
                value = f8.unpack(reader.read(f8.size))[0]
                if name in feature_index:
                    record.features[feature_index[name]] = value
            else:
                raw = reader.read(returns_size)
                if name in returns_index:
                    record.returns[returns_index[name]] = decode_returns(raw)
        records.append(record)
    return records


def decode_archive(data: bytes) -> Archive:
    """Deserialize the uncompressed binary layout."""
    reader = _Reader(data)
    magic, version, schema_len = reader.unpack(_HEADER_STRUCT)
    if magic != MAGIC:
        raise ArchiveError(f"Invalid archive magic: {magic!r}")
    if version != VERSION:
        raise ArchiveError(f"Unsupported archive version: {version}")
    try:
        schema = json.loads(reader.read(schema_len).decode("utf-8"))
        daily_fields = schema["DailyRecord"]
        intraday_fields = schema["IntradayRecord"]
        returns_fields = schema["ReturnsRecord"]
        (symbol_len,) = reader.unpack(_U16)
        symbol = reader.read(symbol_len).decode("utf-8")
    except (UnicodeDecodeError, ValueError, KeyError, TypeError) as exc:
        raise ArchiveError(f"Invalid archive header: {exc}") from exc
    returns_size = 8 * len(returns_fields)

    (daily_count,) = reader.unpack(_U32)
    daily_records = _decode_daily(reader, daily_fields, daily_count, returns_size)
    (intraday_count,) = reader.unpack(_U32)
    intraday_records = _decode_intraday(reader, intraday_fields, intraday_count, returns_fields)
    return Archive(symbol=symbol, daily_records=daily_records, intraday_records=intraday_records)


def write_archive(path: str | Path, archive: Archive) -> int:
    """Write an archive atomically and return its size in bytes."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = encode_archive(archive)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "wb") as raw_file:
            with gzip.GzipFile(fileobj=raw_file, mode="wb") as gz_file:
                gz_file.write(payload)
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.remove(tmp_name)
        raise
    size = path.stat().st_size
    LOGGER.debug("Wrote %s (%d bytes)", path, size)
    return size


def read_archive(path: str | Path) -> Archive:
    path = Path(path)
    try:
        with gzip.open(path, "rb") as gz_file:
            payload = gz_file.read()
    except FileNotFoundError as exc:
        raise ArchiveError(f"Archive not found: {path}") from exc
    except (OSError, EOFError, zlib.error) as exc:
        raise ArchiveError(f"Failed to decompress archive {path}: {exc}") from exc
    try:
        return decode_archive(payload)
    except ArchiveError as exc:
        raise ArchiveError(f"{path}: {exc}") from exc
