"""GitLab → chunk ingestion for retrieval-augmented generation.

Pulls text-bearing files from a GitLab repository, normalizes them to
plain text, cuts them into section-aware overlapping chunks and hands the
batch to a vector-store sink.
"""

__version__ = "0.1.0"
