"""Glob-based path selection over repository trees."""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from functools import lru_cache


@lru_cache(maxsize=256)
def glob_to_regex(glob: str) -> re.Pattern[str]:
    """Compile a repository glob into an anchored, case-insensitive regex.

    ``**/`` matches zero or more leading directories, ``**`` matches
    anything, ``*`` matches anything except ``/``.  Dots are literal.
    """
    glob = glob.strip()
    parts: list[str] = []
    i = 0
    while i < len(glob):
        if glob.startswith("**/", i):
            parts.append("(.*/)?")
            i += 3
        elif glob.startswith("**", i):
            parts.append(".*")
            i += 2
        elif glob[i] == "*":
            parts.append("[^/]*")
            i += 1
        else:
            parts.append(re.escape(glob[i]))
            i += 1
    return re.compile("^" + "".join(parts) + "$", re.IGNORECASE)


def matches_any(path: str, globs: Sequence[str], *, default_if_empty: bool) -> bool:
    if not globs:
        return default_if_empty
    return any(glob_to_regex(g).match(path) for g in globs)


class PathFilter:
    """Include / exclude / prefix selection.

    Parameters
    ----------
    include:
        Globs a path must match (empty → everything matches).
    exclude:
        Globs that reject a path; exclusion always wins.
    prefix:
        Optional path prefix.  When set, a path is kept only if it equals
        ``<prefix>.md`` or lives under ``<prefix>/`` (case-insensitive),
        and the include globs are bypassed.
    """

    def __init__(
        self,
        include: Sequence[str] = (),
        exclude: Sequence[str] = (),
        prefix: str = "",
    ) -> None:
        self.include = [g.strip() for g in include if g.strip()]
        self.exclude = [g.strip() for g in exclude if g.strip()]
        self.prefix = prefix.strip()

    def included(self, path: str) -> bool:
        return matches_any(path, self.include, default_if_empty=True)

    def excluded(self, path: str) -> bool:
        return matches_any(path, self.exclude, default_if_empty=False)

    def in_prefix(self, path: str) -> bool:
        if not self.prefix:
            return True
        lowered = path.lower()
        prefix = self.prefix.lower()
        return lowered == f"{prefix}.md" or lowered.startswith(f"{prefix}/")

    def accepts(self, path: str) -> bool:
        if self.excluded(path):
            return False
        if self.prefix:
            return self.in_prefix(path)
        return self.included(path)

    def select(self, paths: Iterable[str]) -> list[str]:
        """Return the accepted paths, preserving input order."""
        return [p for p in paths if self.accepts(p)]
