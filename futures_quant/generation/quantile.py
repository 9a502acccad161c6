"""Rank-quantile transform of momentum features.

Anchored features are scored against an ever-growing prefix distribution,
rolling features against a sliding window of ``buffer_size`` records.
"""

from __future__ import annotations

import logging
from bisect import bisect_left, insort
from collections.abc import Sequence

from futures_quant.exceptions import ConfigurationError
from futures_quant.generation.features import FEATURES, FeatureDescriptor, FeatureRecord

LOGGER = logging.getLogger(__name__)


def _quantile(rank: int, size: int) -> float:
    if size <= 1:
        return 0.5
    return rank / (size - 1)


def _copy_records(records: Sequence[FeatureRecord]) -> list[FeatureRecord]:
    return [FeatureRecord(record.timestamp, list(record.features), list(record.returns)) for record in records]


def _score_buffer(samples: list[tuple[float, int]]) -> list[tuple[int, float]]:
    """Return (record index, quantile) for a buffer; equal values share the lowest rank."""
    values = sorted(value for value, _ in samples)
    size = len(values)
    return [(index, _quantile(bisect_left(values, value), size)) for value, index in samples]


def _anchored(records: list[FeatureRecord], source: Sequence[FeatureRecord], descriptor: FeatureDescriptor, buffer_size: int) -> None:
    column = descriptor.index
    seed: list[tuple[float, int]] = []
    position = 0
    while position < len(source) and len(seed) < buffer_size:
        value = source[position].features[column]
        if value is not None:
            seed.append((value, position))
        position += 1
    for index, quantile in _score_buffer(seed):
        records[index].features[column] = quantile

    buffer = sorted(value for value, _ in seed)
    for index in range(position, len(source)):
        value = source[index].features[column]
        if value is None:
            continue
        rank = bisect_left(buffer, value)
        insort(buffer, value)
        records[index].features[column] = _quantile(rank, len(buffer))


def _write_window(
    records: list[FeatureRecord],
    source: Sequence[FeatureRecord],
    column: int,
    offset: int,
    buffer_size: int,
    update_range: int,
) -> None:
    samples = [
        (source[index].features[column], index)
        for index in range(offset, offset + buffer_size)
        if source[index].features[column] is not None
    ]
    first_updated = offset + buffer_size - update_range
    for index, quantile in _score_buffer(samples):
        if index >= first_updated:
            records[index].features[column] = quantile


def _rolling(records: list[FeatureRecord], source: Sequence[FeatureRecord], descriptor: FeatureDescriptor, buffer_size: int, stride: int) -> None:
    column = descriptor.index
    total = len(source)
    _write_window(records, source, column, 0, buffer_size, buffer_size)
    offset = stride
    while offset + buffer_size < total:
        _write_window(records, source, column, offset, buffer_size, stride)
        offset += stride
    # The final window may overlap the previous one; its values win.
    _write_window(records, source, column, total - buffer_size, buffer_size, stride)


def quantile_transform(
    records: Sequence[FeatureRecord],
    buffer_size: int,
    stride: int,
    descriptors: Sequence[FeatureDescriptor] = FEATURES,
) -> list[FeatureRecord]:
    """Return new records with every quantile feature mapped into [0, 1].

    Returns labels and non-quantile features are copied unchanged and the input
    records are not modified.
    """
    if not records:
        return list(records)
    buffer_size = min(buffer_size, len(records))
    if stride < 1 or stride >= buffer_size:
        raise ConfigurationError(
            f"Invalid stride for quantile transform (stride = {stride}, buffer_size = {buffer_size})"
        )
    output = _copy_records(records)
    for descriptor in descriptors:
        if not descriptor.quantile:
            continue
        if descriptor.anchored:
            _anchored(output, records, descriptor, buffer_size)
        else:
            _rolling(output, records, descriptor, buffer_size, stride)
    LOGGER.debug("Quantile transform of %d records (buffer %d, stride %d)", len(records), buffer_size, stride)
    return output
