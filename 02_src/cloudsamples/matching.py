"""Ant-style pattern matching shared by the bus and the gateway."""

from fnmatch import fnmatchcase


def ant_match(pattern: str, value: str, separator: str = "/") -> bool:
    """Match ``value`` against an ant pattern.

    ``?`` matches one character, ``*`` any characters inside one segment and
    ``**`` zero or more whole segments.
    """
    pattern_parts = [p for p in pattern.split(separator) if p != ""]
    value_parts = [v for v in value.split(separator) if v != ""]
    return _match_parts(pattern_parts, value_parts)


def _match_parts(pattern: list[str], value: list[str]) -> bool:
    if not pattern:
        return not value

    head, rest = pattern[0], pattern[1:]
    if head == "**":
        # Try consuming 0..n segments
        return any(_match_parts(rest, value[i:]) for i in range(len(value) + 1))

    if not value:
        return False
    return fnmatchcase(value[0], head) and _match_parts(rest, value[1:])
