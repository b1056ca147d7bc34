"""Deterministic partition naming.

Names are a pure function of base name, kind tag, key, explicit prefix and
naming policy. ensure_future relies on this: a generated name that already
exists means the slot is already covered.
"""

from __future__ import annotations

from datetime import date

from partition_topology.config import NamingPolicy
from partition_topology.errors import ConfigurationError
from partition_topology.intervals import Interval, quarter_of

PLACEHOLDER = "%"
HASH_TAG = "p"

_DEFAULT_POLICY = NamingPolicy()


def resolve_placeholder(value: str | None, replacement: str) -> str | None:
    """Replace every placeholder marker in value.

    Example:
        >>> resolve_placeholder("%_archive", "orders")
        'orders_archive'
    """
    if value is None:
        return None
    return value.replace(PLACEHOLDER, replacement)


def needs_base_name(explicit_prefix: str | None) -> bool:
    """Return True when naming with this prefix requires the base name."""
    return explicit_prefix is None or PLACEHOLDER in explicit_prefix


def format_key(interval: Interval, start: date, policy: NamingPolicy | None = None) -> str:
    """Format the date key of a range partition starting at start.

    Example:
        >>> format_key(Interval.QUARTERLY, date(2024, 4, 1))
        '2024_Q2'
    """
    policy = policy or _DEFAULT_POLICY
    if interval in (Interval.DAILY, Interval.WEEKLY):
        return start.strftime(policy.daily_format)
    if interval is Interval.MONTHLY:
        return start.strftime(policy.monthly_format)
    if interval is Interval.QUARTERLY:
        return f"{start:%Y}_Q{quarter_of(start)}"
    return start.strftime("%Y")


def hash_key(remainder: int, modulus: int) -> str:
    """Zero-pad a remainder to the width of the largest remainder."""
    width = len(str(max(modulus - 1, 0)))
    return str(remainder).zfill(width)


def resolve_name(
    base_name: str | None,
    kind_tag: str,
    key: str,
    explicit_prefix: str | None = None,
    policy: NamingPolicy | None = None,
) -> str:
    """Build a partition name.

    The name is policy.prefix + prefix + kind_tag + key + policy.suffix,
    where prefix is the explicit prefix with the placeholder replaced by the
    base name, or "<base_name><separator>" when no prefix is given.

    Args:
        base_name: Parent table or partition name.
        kind_tag: One-letter interval tag ("d", "w", "m", "q", "y", "p").
        key: Formatted date key or padded hash remainder.
        explicit_prefix: Caller-supplied prefix, may contain the placeholder.
        policy: Naming policy; defaults to NamingPolicy().

    Returns:
        The partition name.

    Raises:
        ConfigurationError: If the base name is needed but missing.

    Example:
        >>> resolve_name("t", "m", "2024_01")
        't_m2024_01'
        >>> resolve_name("orders", "y", "2025", explicit_prefix="%_archive_")
        'orders_archive_y2025'
    """
    policy = policy or _DEFAULT_POLICY
    if needs_base_name(explicit_prefix) and not base_name:
        raise ConfigurationError(
            "A base name is required to resolve this partition name",
            field="base_name",
        )

    if explicit_prefix is None:
        prefix = f"{base_name}{policy.separator}"
    else:
        prefix = explicit_prefix.replace(PLACEHOLDER, base_name or "")

    return f"{policy.prefix}{prefix}{kind_tag}{key}{policy.suffix}"


def resolve_range_name(
    base_name: str | None,
    interval: Interval,
    start: date,
    explicit_prefix: str | None = None,
    policy: NamingPolicy | None = None,
) -> str:
    """Name the range partition of an interval starting at start."""
    return resolve_name(
        base_name,
        interval.tag,
        format_key(interval, start, policy),
        explicit_prefix,
        policy,
    )


def resolve_hash_name(
    base_name: str | None,
    remainder: int,
    modulus: int,
    explicit_prefix: str | None = None,
    policy: NamingPolicy | None = None,
) -> str:
    """Name one hash bucket.

    An explicit prefix already carries its own tag ("pool_p" gives
    pool_p0, pool_p1, ...); without one the default "<base>_p" is used.

    Example:
        >>> resolve_hash_name("t", 3, 4)
        't_p3'
    """
    tag = "" if explicit_prefix is not None else HASH_TAG
    return resolve_name(base_name, tag, hash_key(remainder, modulus), explicit_prefix, policy)
