"""Contract rolling, feature/label generation and quantile transform."""

from futures_quant.generation.features import (
    FEATURES,
    RETURNS,
    FeatureDescriptor,
    FeatureRecord,
    ReturnsDescriptor,
    ReturnsRecord,
    business_hours_adjust,
    feature_by_name,
    generate_feature_records,
    rate_of_change,
    returns_by_horizon,
    returns_by_name,
)
from futures_quant.generation.quantile import quantile_transform
from futures_quant.generation.roller import DailyRecord, RolledSeries, group_by_date, roll_contracts

__all__ = [
    "FEATURES",
    "RETURNS",
    "DailyRecord",
    "FeatureDescriptor",
    "FeatureRecord",
    "ReturnsDescriptor",
    "ReturnsRecord",
    "RolledSeries",
    "business_hours_adjust",
    "feature_by_name",
    "generate_feature_records",
    "group_by_date",
    "quantile_transform",
    "rate_of_change",
    "returns_by_horizon",
    "returns_by_name",
    "roll_contracts",
]
