"""Lossless quoting of command-line arguments for Windows programs."""

from __future__ import annotations

_NEEDS_QUOTING = frozenset('" \n\t\v')


def escape(arg: str) -> str:
    """Quote ``arg`` so the Windows argument parser reads it back unchanged."""
    if arg and _NEEDS_QUOTING.isdisjoint(arg):
        return arg

    out = ['"']
    slashes = 0
    for ch in arg:
        if ch == "\\":
            slashes += 1
            continue
        if ch == '"':
            out.append("\\" * (slashes * 2 + 1))
        else:
            out.append("\\" * slashes)
        out.append(ch)
        slashes = 0
    out.append("\\" * (slashes * 2))
    out.append('"')
    return "".join(out)