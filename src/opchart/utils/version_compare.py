"""Semver parsing and helm-style version constraint matching."""

from __future__ import annotations

import re
from typing import Callable, Iterable

from packaging.version import InvalidVersion, Version

Predicate = Callable[[Version], bool]

_OPERATORS = ("!=", ">=", "=>", "<=", "=<", "~>", ">", "<", "=", "~", "^")
_WILDCARDS = frozenset({"x", "X", "*"})
_HYPHEN_RANGE = re.compile(r"^\s*(\S+)\s+-\s+(\S+)\s*$")


def parse_version(v: str) -> Version | None:
    """Parse a version string, returning None on failure."""
    try:
        return Version(v)
    except InvalidVersion:
        # Try stripping leading 'v'
        if v.startswith("v"):
            try:
                return Version(v[1:])
            except InvalidVersion:
                pass
    return None


class ConstraintError(ValueError):
    """Raised for a version constraint that cannot be parsed."""


class Constraint:
    """A helm (Masterminds semver) version constraint.

    Supports ``||`` alternatives, comma or space separated conjunctions,
    comparison operators, ``~``/``~>`` and ``^`` ranges, ``x``/``*``
    wildcards, and hyphen ranges. Pre-release versions only match when the
    constraint itself mentions a pre-release.
    """

    def __init__(self, text: str) -> None:
        self.text = text.strip()
        self._allow_prerelease = "-" in re.sub(r"\s+-\s+", " ", self.text)
        self._groups: list[list[Predicate]] = [
            _parse_group(group) for group in self.text.split("||")
        ]

    def __repr__(self) -> str:
        return f"Constraint({self.text!r})"

    def check(self, version: str | Version) -> bool:
        v = parse_version(version) if isinstance(version, str) else version
        if v is None:
            return False
        if v.is_prerelease and not self._allow_prerelease:
            return False
        return any(all(pred(v) for pred in group) for group in self._groups)


def satisfies(version: str, constraint: str) -> bool:
    """True if ``version`` matches ``constraint``; an empty constraint matches any release."""
    return Constraint(constraint or "*").check(version)


def latest_matching(versions: Iterable[str], constraint: str = "") -> str | None:
    """Return the highest version in ``versions`` satisfying ``constraint``."""
    c = Constraint(constraint or "*")
    best: tuple[Version, str] | None = None
    for raw in versions:
        v = parse_version(raw)
        if v is None or not c.check(v):
            continue
        if best is None or v > best[0]:
            best = (v, raw)
    return best[1] if best else None


def _parse_group(group: str) -> list[Predicate]:
    group = group.strip()
    if not group:
        return [lambda v: True]
    m = _HYPHEN_RANGE.match(group)
    if m:
        return _atom(">=", m.group(1)) + _atom("<=", m.group(2))
    preds: list[Predicate] = []
    tokens = [t for t in re.split(r"[\s,]+", group) if t]
    i = 0
    while i < len(tokens):
        token = tokens[i]
        # Allow "> 1.2" with a space between operator and version.
        if token in _OPERATORS and i + 1 < len(tokens):
            token = token + tokens[i + 1]
            i += 1
        op, rest = _split_operator(token)
        preds.extend(_atom(op, rest))
        i += 1
    return preds


def _split_operator(token: str) -> tuple[str, str]:
    for op in _OPERATORS:
        if token.startswith(op):
            return op, token[len(op):].strip()
    return "", token


def _parse_partial(text: str) -> tuple[list[int], str]:
    """Split ``1.2.x-rc.1`` into ([1, 2], "-rc.1"); wildcards end the list."""
    text = text.strip()
    if text.startswith("v"):
        text = text[1:]
    core, sep, suffix = re.match(r"^([^-+]*)([-+]?)(.*)$", text).groups()
    nums: list[int] = []
    for part in core.split(".")[:3]:
        if part in _WILDCARDS or part == "":
            break
        if not part.isdigit():
            raise ConstraintError(f"improper constraint: {text}")
        nums.append(int(part))
    return nums, (sep + suffix) if sep else ""


def _floor(nums: list[int], suffix: str = "") -> Version:
    padded = nums + [0] * (3 - len(nums))
    text = ".".join(str(n) for n in padded) + suffix
    try:
        return Version(text)
    except InvalidVersion as e:
        raise ConstraintError(f"improper constraint: {text}") from e


def _bump(nums: list[int]) -> Version:
    """Smallest version above every version that shares ``nums`` as a prefix."""
    bumped = list(nums)
    bumped[-1] += 1
    return _floor(bumped)


def _atom(op: str, text: str) -> list[Predicate]:
    if text in _WILDCARDS or text == "":
        if op in ("", "=", ">=", "=>", "<=", "=<", "~", "~>", "^"):
            return [lambda v: True]
        return [lambda v: False]
    nums, suffix = _parse_partial(text)
    if not nums:
        return [lambda v: op not in ("!=", "<", ">")]
    exact = len(nums) == 3
    floor = _floor(nums, suffix)

    def base(v: Version) -> Version:
        return Version(v.base_version) if not suffix else v

    if op in ("", "="):
        if exact:
            return [lambda v: base(v) == floor or v == floor]
        upper = _bump(nums)
        return [lambda v: floor <= base(v) < upper]
    if op == "!=":
        if exact:
            return [lambda v: v != floor]
        upper = _bump(nums)
        return [lambda v: not (floor <= base(v) < upper)]
    if op == ">":
        if exact:
            return [lambda v: v > floor]
        upper = _bump(nums)
        return [lambda v: base(v) >= upper]
    if op in (">=", "=>"):
        return [lambda v: v >= floor]
    if op == "<":
        return [lambda v: v < floor]
    if op in ("<=", "=<"):
        if exact:
            return [lambda v: v <= floor]
        upper = _bump(nums)
        return [lambda v: base(v) < upper]
    if op in ("~", "~>"):
        upper = _bump(nums[:2]) if len(nums) >= 2 else _bump(nums[:1])
        return [lambda v: v >= floor, lambda v: base(v) < upper]
    if op == "^":
        # First non-zero component is the compatibility boundary.
        for idx, n in enumerate(nums):
            if n != 0:
                upper = _bump(nums[: idx + 1])
                break
        else:
            upper = _bump(nums)
        return [lambda v: v >= floor, lambda v: base(v) < upper]
    raise ConstraintError(f"improper constraint: {op}{text}")
