"""Semantic version ordering for contained stack versions."""

import re
from typing import Tuple

_SEMVER = re.compile(
    r"^v?(?P<major>0|[1-9]\d*)\.(?P<minor>0|[1-9]\d*)\.(?P<patch>0|[1-9]\d*)"
    r"(?:-(?P<prerelease>[0-9A-Za-z.-]+))?"
    r"(?:\+[0-9A-Za-z.-]+)?$"
)


def _prerelease_key(prerelease: str) -> Tuple:
    # Numeric identifiers sort below alphanumeric ones
    parts = []
    for identifier in prerelease.split('.'):
        if identifier.isdigit():
            parts.append((0, int(identifier), ''))
        else:
            parts.append((1, 0, identifier))
    return tuple(parts)


def parse_semantic_version(text: str) -> Tuple:
    """Parse ``major.minor.patch[-prerelease][+build]`` into a sortable key.

    A pre-release sorts below its release; build metadata is ignored.

    Raises:
        ValueError: If ``text`` is not a semantic version
    """
    match = _SEMVER.match(text.strip())
    if not match:
        raise ValueError(f"Invalid semantic version: {text!r}")

    release = (int(match['major']), int(match['minor']), int(match['patch']))
    prerelease = match['prerelease']
    if prerelease is None:
        return release + ((1,),)
    return release + ((0,) + _prerelease_key(prerelease),)
