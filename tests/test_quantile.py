from __future__ import annotations

import random
from datetime import datetime, timedelta

import pytest

from futures_quant.exceptions import ConfigurationError
from futures_quant.generation.features import FeatureRecord, ReturnsRecord, feature_by_name
from futures_quant.generation.quantile import quantile_transform

MOMENTUM_1D = feature_by_name("momentum_1d")
MOMENTUM_1H = feature_by_name("momentum_1h")


def _records(values, descriptor=MOMENTUM_1D):
    start = datetime(2024, 1, 8, 0, 0)
    records = []
    for offset, value in enumerate(values):
        record = FeatureRecord.empty(start + timedelta(hours=offset))
        record.features[descriptor.index] = value
        records.append(record)
    return records


def _column(records, descriptor):
    return [record.features[descriptor.index] for record in records]


def test_anchored_scores_seed_then_inserts():
    output = quantile_transform(_records([10.0, 30.0, 20.0, 40.0]), buffer_size=3, stride=1)
    assert _column(output, MOMENTUM_1D) == [0.0, 1.0, 0.5, 1.0]


def test_anchored_keeps_nulls_and_input_untouched():
    records = _records([10.0, None, 30.0, 20.0, 5.0])
    records[1].returns[0] = ReturnsRecord(high=3, low=1, close1=2, close2=2)
    output = quantile_transform(records, buffer_size=2, stride=1)
    assert _column(records, MOMENTUM_1D) == [10.0, None, 30.0, 20.0, 5.0]
    # Seed [10, 30], then 20 lands at rank 1 of 3 and 5 at rank 0 of 4.
    assert _column(output, MOMENTUM_1D) == [0.0, None, 1.0, 0.5, 0.0]
    assert output[1].returns[0] == records[1].returns[0]


def test_single_sample_buffer_scores_one_half():
    output = quantile_transform(_records([None, 7.0, None]), buffer_size=3, stride=2)
    assert _column(output, MOMENTUM_1D)[1] == 0.5


def test_stride_must_be_smaller_than_buffer():
    records = _records([1.0, 2.0, 3.0, 4.0, 5.0], MOMENTUM_1H)
    with pytest.raises(ConfigurationError):
        quantile_transform(records, buffer_size=3, stride=3)
    # buffer_size is clamped to the record count before the check.
    with pytest.raises(ConfigurationError):
        quantile_transform(records, buffer_size=100, stride=5)


def test_empty_input_is_returned_unchanged():
    assert quantile_transform([], buffer_size=10, stride=1) == []


def test_rolling_outputs_are_unit_range_and_cover_every_sample():
    rng = random.Random(7)
    values = [rng.uniform(-0.05, 0.05) for _ in range(47)]
    values[5] = None
    output = quantile_transform(_records(values, MOMENTUM_1H), buffer_size=10, stride=3)
    column = _column(output, MOMENTUM_1H)
    assert column[5] is None
    for raw, scored in zip(values, column):
        if raw is not None:
            assert scored is not None
            assert 0.0 <= scored <= 1.0


def test_rolling_first_window_preserves_order():
    values = [0.3, -0.1, 0.7, 0.2, 0.0, 0.5, 0.9, -0.4, 0.1, 0.6, 0.8, 0.4]
    output = quantile_transform(_records(values, MOMENTUM_1H), buffer_size=6, stride=2)
    head = _column(output, MOMENTUM_1H)[:4]
    raw = values[:4]
    for i in range(4):
        for j in range(4):
            if raw[i] < raw[j]:
                assert head[i] < head[j]


def test_rolling_final_window_overwrites_overlap():
    # Windows start at 0, 2 and finally 3; index 5 is scored by both of the last two.
    values = [1.0, 2.0, 3.0, 4.0, 5.0, 6.0, 10.0]
    output = quantile_transform(_records(values, MOMENTUM_1H), buffer_size=4, stride=2)
    assert _column(output, MOMENTUM_1H) == pytest.approx([0.0, 1 / 3, 2 / 3, 1.0, 2 / 3, 2 / 3, 1.0])
