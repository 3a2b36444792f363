"""Derive the custom resource identity for a chart-backed API."""

from __future__ import annotations

from opchart.config.constants import DEFAULT_CRD_VERSION, DEFAULT_GROUP, DEFAULT_VERSION
from opchart.models.resource import GroupVersionKind, ResourceIdentity

_DELIMITERS = frozenset("_ -.")


def to_camel(name: str) -> str:
    """Convert a chart name such as ``my-app`` to an identifier like ``MyApp``.

    Delimiters (``_``, ``-``, space, ``.``) are dropped and the letter after
    them is upper-cased, as is any letter following a digit. Other
    punctuation is dropped without affecting casing.
    """
    out: list[str] = []
    cap_next = True
    for ch in name.strip():
        is_letter = ch.isascii() and ch.isalpha()
        if is_letter:
            out.append(ch.upper() if cap_next else ch)
            cap_next = False
        elif ch.isascii() and ch.isdigit():
            out.append(ch)
            cap_next = True
        else:
            cap_next = ch in _DELIMITERS
    return "".join(out)


def pluralize(kind: str) -> str:
    """Lower-cased plural resource name for a kind."""
    word = kind.lower()
    if not word:
        return word
    if word.endswith(("s", "x", "z", "ch", "sh")):
        return word + "es"
    if word.endswith("y") and len(word) > 1 and word[-2] not in "aeiou":
        return word[:-1] + "ies"
    return word + "s"


def default_gvk(chart_name: str, gvk: GroupVersionKind) -> GroupVersionKind:
    """Fill unset group/version/kind from the defaults and the chart name."""
    return GroupVersionKind(
        group=gvk.group or DEFAULT_GROUP,
        version=gvk.version or DEFAULT_VERSION,
        kind=gvk.kind or to_camel(chart_name),
    )


def derive_identity(
    chart_name: str,
    gvk: GroupVersionKind,
    domain: str = "",
    crd_version: str = "",
) -> ResourceIdentity:
    """Build a fully populated resource identity.

    Explicit fields win; malformed values are passed through untouched.
    """
    return new_resource(default_gvk(chart_name, gvk), domain, crd_version)


def new_resource(gvk: GroupVersionKind, domain: str = "", crd_version: str = "") -> ResourceIdentity:
    """Resource identity for ``gvk`` exactly as given, with no defaulting."""
    return ResourceIdentity(
        group=gvk.group,
        version=gvk.version,
        kind=gvk.kind,
        domain=domain,
        plural=pluralize(gvk.kind),
        crd_version=crd_version or DEFAULT_CRD_VERSION,
        namespaced=True,
        path="",
    )
