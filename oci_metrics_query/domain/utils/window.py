"""Automatic window/resolution selection from the dashboard time range."""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from ..constants import AUTO, DEFAULT_AUTO_BREAKPOINTS
from ..models import AutoBreakpoint, WindowResolution

logger = logging.getLogger(__name__)

DEFAULT_BREAKPOINT_TABLE = tuple(
    AutoBreakpoint(threshold_days=days, window=window, resolution=resolution)
    for days, window, resolution in DEFAULT_AUTO_BREAKPOINTS
)


def get_window_and_resolution(
    table: Sequence[AutoBreakpoint], time_range_days: float
) -> WindowResolution:
    """
    Pick the table row for a time range span.

    The index advances while it is not the last row and the span exceeds the
    current row's threshold, so the last row catches every longer range.

    Raises
    ------
    ValueError
        If ``table`` is empty.

    Examples
    --------
    >>> get_window_and_resolution(DEFAULT_BREAKPOINT_TABLE, 3).window
    '1m'
    >>> get_window_and_resolution(DEFAULT_BREAKPOINT_TABLE, 365).window
    '1h'
    """
    if not table:
        raise ValueError("auto breakpoint table must contain at least one row")
    i = 0
    while i < len(table) - 1 and time_range_days > table[i].threshold_days:
        i += 1
    row = table[i]
    return WindowResolution(window=row.window, resolution=row.resolution)


def resolve_auto_window_resolution(
    window_selected: Optional[str],
    resolution_selected: Optional[str],
    time_range_days: float,
    table: Sequence[AutoBreakpoint] = DEFAULT_BREAKPOINT_TABLE,
) -> WindowResolution:
    """
    Replace ``auto`` window and/or resolution with table-driven values.

    Inputs that are not ``auto`` are returned verbatim; when neither input is
    ``auto`` the table is not consulted at all.
    """
    result = WindowResolution(window=window_selected, resolution=resolution_selected)
    if window_selected != AUTO and resolution_selected != AUTO:
        return result
    row = get_window_and_resolution(table, time_range_days)
    if window_selected == AUTO:
        result.window = row.window
    if resolution_selected == AUTO:
        result.resolution = row.resolution
    logger.debug(
        "window.auto_resolved",
        extra={
            "days": time_range_days,
            "window": result.window,
            "resolution": result.resolution,
        },
    )
    return result
