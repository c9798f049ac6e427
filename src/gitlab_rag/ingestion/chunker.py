"""Section-aware sliding-window chunking.

Each document is cut into fixed-size character windows that overlap by a
fixed amount.  While sliding, the chunker remembers the most recent
markdown heading so every chunk carries a breadcrumb, and it attaches the
document's front matter to every chunk.

Only the first heading found inside a window updates the section; later
headings in the same window take effect from the next window on.
"""

from __future__ import annotations

import re

from gitlab_rag.ingestion.models import Chunk

DEFAULT_CHUNK_SIZE = 2000
DEFAULT_CHUNK_OVERLAP = 200

_HEADING = re.compile(r"^#+\s+(.+)$", re.MULTILINE)
_FRONT_MATTER_CLOSE = re.compile(r"^---[ \t]*$", re.MULTILINE)
_SURROUNDING_QUOTES = re.compile(r"^['\"]|['\"]$")
_NON_SLUG = re.compile(r"[^a-z0-9]+")


def slugify(title: str) -> str:
    """``"Getting Started!"`` → ``"getting-started"``."""
    return _NON_SLUG.sub("-", title.lower()).strip("-")


def parse_front_matter(text: str) -> dict[str, str]:
    """Parse a leading ``---`` delimited ``key: value`` block.

    Returns an empty dict when the document does not open with a
    delimiter line or the block is never closed.
    """
    if not text.startswith("---"):
        return {}
    first_break = text.find("\n")
    if first_break == -1 or text[:first_break].strip() != "---":
        return {}
    closing = _FRONT_MATTER_CLOSE.search(text, first_break + 1)
    if closing is None:
        return {}

    metadata: dict[str, str] = {}
    for line in text[first_break + 1 : closing.start()].split("\n"):
        if ":" not in line:
            continue
        key, value = line.split(":", 1)
        key = key.strip()
        if not key:
            continue
        metadata[key] = _SURROUNDING_QUOTES.sub("", value.strip())
    return metadata


def make_chunk_id(source_uri: str, section_slug: str, chunk_index: int, offset: int) -> str:
    return f"{source_uri}|sec={section_slug or 'main'}|i={chunk_index}|o={offset}"


class SectionChunker:
    """Sliding-window splitter that tracks markdown sections.

    Parameters
    ----------
    chunk_size:
        Window size in characters; no chunk is longer.
    chunk_overlap:
        Characters shared by consecutive windows.  Must be smaller than
        *chunk_size*.
    """

    def __init__(
        self,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        chunk_overlap: int = DEFAULT_CHUNK_OVERLAP,
    ) -> None:
        if chunk_size <= 0:
            raise ValueError("chunk_size must be > 0")
        if chunk_overlap < 0:
            raise ValueError("chunk_overlap must be >= 0")
        if chunk_overlap >= chunk_size:
            raise ValueError(
                f"chunk_overlap ({chunk_overlap}) must be < chunk_size ({chunk_size})"
            )
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap

    def split(
        self,
        text: str,
        *,
        source_uri: str,
        repo_path: str,
        branch: str = "",
        front_matter: dict[str, str] | None = None,
        page: int | None = None,
    ) -> list[Chunk]:
        """Split *text* into chunks.

        Parameters
        ----------
        text:
            Normalized document text.
        source_uri:
            Document locator; prefix of every chunk id.
        repo_path / branch:
            Copied onto every chunk.
        front_matter:
            Pre-parsed front matter.  Parsed from *text* when omitted.
        page:
            Page number for paged sources (PDF), else ``None``.
        """
        if front_matter is None:
            front_matter = parse_front_matter(text)

        chunks: list[Chunk] = []
        title = ""
        slug = ""
        start = 0
        index = 0
        length = len(text)

        while start < length:
            end = min(length, start + self.chunk_size)
            window = text[start:end]

            heading = _HEADING.search(window)
            if heading:
                title = heading.group(1).strip()
                slug = slugify(title)

            chunks.append(
                Chunk(
                    id=make_chunk_id(source_uri, slug, index, start),
                    source_uri=source_uri,
                    repo_path=repo_path,
                    branch=branch,
                    text=window,
                    chunk_index=index,
                    offset=start,
                    length=len(window),
                    breadcrumb=title,
                    section_slug=slug,
                    front_matter=dict(front_matter),
                    page=page,
                )
            )

            if end == length:
                break
            start = max(0, end - self.chunk_overlap)
            index += 1

        return chunks
