"""Pattern resolution: absolute patterns, directory patterns and initial expansion."""

import glob
import logging
import os
import re
from dataclasses import dataclass, field
from functools import lru_cache

from filewatch.errors import PathResolutionError

logger = logging.getLogger(__name__)

WILDCARDS = "*?["
RECURSIVE_SUFFIX = "**/*"


@dataclass
class ResolvedPatterns:
    """Result of resolving the user's pattern string."""

    patterns: list[str]
    """Absolute glob patterns that filter events."""

    dir_patterns: list[str] = field(default_factory=list)
    """Patterns identifying directories that should join the watch set."""

    initial_files: list[str] = field(default_factory=list)
    """Concrete paths matched at startup. May contain duplicates."""


def absolute_patterns(raw: str) -> list[str]:
    """Split a comma-separated pattern string and make each piece absolute.

    Empty pieces (e.g. from a trailing comma) are skipped.

    Raises:
        PathResolutionError: If no pattern is given or the working directory
            cannot be read.
    """
    patterns = []
    for piece in raw.split(","):
        piece = piece.strip()
        if not piece:
            continue
        try:
            patterns.append(os.path.abspath(piece))
        except OSError as e:
            raise PathResolutionError(f"can't get absolute path for pattern: {piece} {e}") from e

    if not patterns:
        raise PathResolutionError(f"no patterns to watch in {raw!r}")
    return patterns


def directory_patterns(pattern: str) -> list[str]:
    """Derive the directory patterns for one absolute pattern.

    The pattern is split at its first wildcard. When a literal prefix exists
    the result is the prefix and the prefix followed by a recursive match;
    a pattern without wildcards is returned unchanged.
    """
    match = re.search(f"[{re.escape(WILDCARDS)}]", pattern)
    if match is None:
        return [pattern]

    prefix = pattern[: match.start()]
    return [prefix, prefix + RECURSIVE_SUFFIX]


def expand(patterns: list[str]) -> list[str]:
    """Expand glob patterns against the filesystem."""
    files: list[str] = []
    for pattern in patterns:
        files.extend(sorted(glob.glob(pattern, recursive=True)))
    return files


def resolve(raw: str) -> ResolvedPatterns:
    """Resolve a raw comma-separated pattern string.

    Args:
        raw: Patterns as given on the command line

    Returns:
        ResolvedPatterns with absolute patterns, directory patterns and the
        initial file list

    Raises:
        PathResolutionError: If a pattern cannot be made absolute
    """
    patterns = absolute_patterns(raw)

    dir_patterns: list[str] = []
    for pattern in patterns:
        dir_patterns.extend(directory_patterns(pattern))

    initial_files = expand(dir_patterns)
    if not initial_files:
        logger.warning(f"No existing paths match {', '.join(patterns)}")

    return ResolvedPatterns(patterns=patterns, dir_patterns=dir_patterns, initial_files=initial_files)


@lru_cache(maxsize=256)
def _compile(pattern: str) -> re.Pattern:
    parts = []
    i, n = 0, len(pattern)
    while i < n:
        c = pattern[i]
        if c == "*":
            if pattern.startswith("**", i):
                i += 2
                if pattern.startswith("/", i):
                    # "**/" also matches zero directories
                    parts.append("(?:.*/)?")
                    i += 1
                else:
                    parts.append(".*")
                continue
            parts.append("[^/]*")
        elif c == "?":
            parts.append("[^/]")
        elif c == "[":
            start = i + 1
            if start < n and pattern[start] == "!":
                start += 1
            if start < n and pattern[start] == "]":
                start += 1
            end = pattern.find("]", start)
            if end == -1:
                parts.append(re.escape(c))
            else:
                body = pattern[i + 1 : end].replace("\\", "\\\\")
                if body.startswith("!"):
                    body = "^" + body[1:]
                elif body.startswith("^"):
                    body = "\\" + body
                parts.append(f"[{body}]")
                i = end + 1
                continue
        else:
            parts.append(re.escape(c))
        i += 1
    return re.compile("".join(parts) + r"\Z", re.DOTALL)


def match(pattern: str, path: str) -> bool:
    """Check whether an absolute path matches a glob pattern.

    ``*`` and ``?`` stop at path separators, ``**`` crosses them.
    """
    return _compile(pattern).match(path) is not None
