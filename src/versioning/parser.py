"""Version ordering, NuGet range parsing and version selection.

Business Central versions are dotted numeric (major.minor.build.revision).
Missing trailing components compare as zero, and segments that are not
numeric fall back to ordinal string comparison. Numeric segments sort
before non-numeric ones so the ordering stays total.
"""

from typing import Iterable, List, Optional, Tuple

_MIN_COMPONENTS = 4


def version_key(text: str) -> Tuple[Tuple[int, object], ...]:
    """Return a total-order sort key for a version string."""
    segments = (text or "").strip().split('.')
    key: List[Tuple[int, object]] = []
    for seg in segments:
        if seg.isdigit():
            key.append((0, int(seg)))
        else:
            key.append((1, seg))
    # Drop trailing zeros beyond the padded width so 1.0.0.0.0 == 1.0
    while len(key) > _MIN_COMPONENTS and key[-1] == (0, 0):
        key.pop()
    while len(key) < _MIN_COMPONENTS:
        key.append((0, 0))
    return tuple(key)


def compare_versions(a: str, b: str) -> int:
    """Compare two version strings; returns -1, 0 or 1."""
    ka, kb = version_key(a), version_key(b)
    if ka < kb:
        return -1
    if ka > kb:
        return 1
    return 0


def max_version(versions: Iterable[str]) -> Optional[str]:
    """Return the highest version, keeping the first seen among equals."""
    best: Optional[str] = None
    for v in versions:
        if not v:
            continue
        if best is None or compare_versions(v, best) > 0:
            best = v
    return best


def satisfies(version: str, minimum: Optional[str]) -> bool:
    """True when ``version`` meets ``minimum`` (no minimum always satisfies)."""
    if not minimum:
        return True
    return compare_versions(version, minimum) >= 0


def range_lower_bound(range_text: Optional[str]) -> Optional[str]:
    """Extract the minimum version from a NuGet version range.

    ``1.0`` and ``[1.0,)`` both mean "1.0 or higher". Exclusive lower
    bounds are still reported as the minimum. ``(,2.0]``, ``*`` and an
    empty range carry no minimum.

    Examples:
        >>> range_lower_bound("[1.0.0.0, 2.0.0.0)")
        '1.0.0.0'
        >>> range_lower_bound("(,2.0]") is None
        True
    """
    if range_text is None:
        return None
    s = range_text.strip()
    if not s or s == '*':
        return None
    if s[0] in '[(':
        inner = s[1:-1] if s[-1] in '])' else s[1:]
        lower = inner.split(',', 1)[0].strip()
        return lower or None
    return s


def pick_version(candidates: List[str], minimum: Optional[str]) -> Tuple[Optional[str], bool]:
    """Pick the highest candidate meeting ``minimum``.

    Falls back to the highest candidate overall when none meets it.

    Returns:
        Tuple of (version_or_none, satisfied).
    """
    if not candidates:
        return None, False
    matching = [v for v in candidates if satisfies(v, minimum)]
    if matching:
        return max_version(matching), True
    return max_version(candidates), False
