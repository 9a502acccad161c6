"""Archive storage package exports."""

from futures_quant.storage.archive import (
    ARCHIVE_EXTENSION,
    Archive,
    archive_path,
    decode_archive,
    encode_archive,
    read_archive,
    write_archive,
)

__all__ = [
    "ARCHIVE_EXTENSION",
    "Archive",
    "archive_path",
    "decode_archive",
    "encode_archive",
    "read_archive",
    "write_archive",
]
