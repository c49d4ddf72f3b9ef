# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
from datetime import datetime, timedelta, timezone


def ensure_utc(value: datetime) -> datetime:
    """Ensures that the given datetime is a UTC timezone-aware datetime.

    If the datetime isn't timezone-aware, its timezone is set to UTC. If it is aware,
    it's replaced with the equivalent datetime under UTC.

    :param value: A datetime object that may or may not be timezone-aware.
    :returns: A UTC timezone-aware equivalent datetime.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    else:
        return value.astimezone(timezone.utc)


def epoch_seconds_to_datetime(value: int | float) -> datetime:
    """Parse numerical epoch timestamps (seconds since 1970) into a datetime in UTC.

    Falls back to using ``timedelta`` when ``fromtimestamp`` raises ``OverflowError``,
    which 32-bit platforms do for values outside of 1970 through 2038.
    """
    try:
        return datetime.fromtimestamp(value, tz=timezone.utc)
    except OverflowError:
        epoch_zero = datetime(1970, 1, 1, 0, 0, 0, tzinfo=timezone.utc)
        return epoch_zero + timedelta(seconds=value)


def to_utc_datetime(value: datetime | int | float) -> datetime:
    """Normalize a signing timestamp into a UTC datetime truncated to seconds."""
    if isinstance(value, datetime):
        result = ensure_utc(value)
    else:
        result = epoch_seconds_to_datetime(value)
    return result.replace(microsecond=0)
