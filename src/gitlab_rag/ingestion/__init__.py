"""
Ingestion — GitLab tree traversal, normalization and section-aware chunking.

This package turns the files of one GitLab repository (Markdown, text,
HTML, PDF) into addressable chunks, persists per-run artifacts and hands
the chunk batch to an indexing sink.
"""
