"""Unit tests for glob compilation and path selection."""

from __future__ import annotations

import pytest

from gitlab_rag.ingestion.paths import PathFilter, glob_to_regex, matches_any


class TestGlobToRegex:
    @pytest.mark.parametrize(
        ("glob", "path"),
        [
            ("**/*.md", "README.md"),
            ("**/*.md", "docs/a/b.md"),
            ("docs/**", "docs/x/y.txt"),
            ("*.txt", "notes.txt"),
            (".git/**", ".git/hooks/pre-commit"),
            ("**/*.md", "readme.md"),
            ("**/node_modules/**", "web/node_modules/pkg/readme.md"),
            ("**/*.MD", "docs/guide.md"),
        ],
    )
    def test_matches(self, glob: str, path: str) -> None:
        assert glob_to_regex(glob).match(path)

    @pytest.mark.parametrize(
        ("glob", "path"),
        [
            ("*.txt", "docs/notes.txt"),
            ("**/*.md", "docs/readme.mdx"),
            ("docs/**", "other/docs/x.md"),
            ("**/*.md", "docs/amd"),
            (".git/**", "gitignore.md"),
            (".git/**", "xgit/config"),
        ],
    )
    def test_does_not_match(self, glob: str, path: str) -> None:
        assert not glob_to_regex(glob).match(path)

    def test_dot_is_literal(self) -> None:
        """A '.' in the glob must not act as a regex wildcard."""
        assert not glob_to_regex("a.md").match("axmd")

    def test_regex_metacharacters_are_escaped(self) -> None:
        assert glob_to_regex("docs/(draft)+.md").match("docs/(draft)+.md")


class TestMatchesAny:
    def test_empty_globs_use_default(self) -> None:
        assert matches_any("x.md", [], default_if_empty=True) is True
        assert matches_any("x.md", [], default_if_empty=False) is False

    def test_any_glob_suffices(self) -> None:
        assert matches_any("a.html", ["**/*.md", "**/*.html"], default_if_empty=False)


class TestPathFilter:
    def test_default_style_include_exclude(self) -> None:
        pf = PathFilter(
            include=["**/*.md", "**/*.txt", "**/*.html", "**/*.pdf"],
            exclude=[".git/**", "**/node_modules/**"],
        )
        assert pf.accepts("docs/guide.md")
        assert pf.accepts("index.html")
        assert not pf.accepts("src/main.py")
        assert not pf.accepts(".git/HEAD.txt")
        assert not pf.accepts("app/node_modules/lib/README.md")

    def test_exclusion_wins_over_inclusion(self) -> None:
        pf = PathFilter(include=["**/*.md"], exclude=["docs/private/**"])
        assert not pf.accepts("docs/private/secret.md")
        assert pf.accepts("docs/public.md")

    def test_empty_include_accepts_everything_not_excluded(self) -> None:
        pf = PathFilter(include=[], exclude=["*.bin"])
        assert pf.accepts("anything/at/all.xyz")
        assert not pf.accepts("blob.bin")

    def test_prefix_selects_file_and_subtree(self) -> None:
        pf = PathFilter(include=["**/*.md"], prefix="handbook")
        assert pf.accepts("handbook.md")
        assert pf.accepts("handbook/intro.md")
        assert pf.accepts("Handbook/Deep/Page.md")
        assert not pf.accepts("handbook-old/intro.md")
        assert not pf.accepts("docs/handbook/intro.md")

    def test_prefix_bypasses_include(self) -> None:
        """Inside the prefix, files the include globs would reject are kept."""
        pf = PathFilter(include=["**/*.md"], prefix="handbook")
        assert pf.accepts("handbook/diagram.pdf")

    def test_prefix_still_honours_exclude(self) -> None:
        pf = PathFilter(exclude=["**/drafts/**"], prefix="handbook")
        assert not pf.accepts("handbook/drafts/wip.md")

    def test_blank_globs_are_ignored(self) -> None:
        pf = PathFilter(include=["  ", "**/*.md"], exclude=[""])
        assert pf.include == ["**/*.md"]
        assert pf.exclude == []

    def test_select_preserves_order(self) -> None:
        pf = PathFilter(include=["**/*.md"])
        assert pf.select(["z.md", "a.py", "b/a.md", "c.md"]) == ["z.md", "b/a.md", "c.md"]
