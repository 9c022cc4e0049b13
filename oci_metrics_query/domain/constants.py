"""Fixed values shared by the editor-facing query model and the resolvers."""

from __future__ import annotations

from enum import Enum

AUTO = "auto"

DEFAULT_RESOURCE_GROUP = "NoResourceGroup"
DEFAULT_AGGREGATION = "mean()"
DEFAULT_TARGET_TYPE = "timeserie"
DEFAULT_OPERATOR = "="
DEFAULT_MAX_DIMENSION_COMBINATIONS = 20

# (threshold in days, window, resolution); last row catches longer ranges
DEFAULT_AUTO_BREAKPOINTS = (
    (7, "1m", "1m"),
    (30, "5m", "5m"),
    (90, "1h", "1h"),
)

ENVIRONMENTS = ("local", "OCI Instance")


class SelectPlaceholder(str, Enum):
    """Editor placeholder values meaning "nothing selected yet"."""

    REGION = "select region"
    COMPARTMENT = "select compartment"
    NAMESPACE = "select namespace"
    RESOURCEGROUP = "select resource group"
    METRIC = "select metric"
    WINDOW = "select window"
    DIMENSION_KEY = "select dimension"
    DIMENSION_VALUE = "select value"
