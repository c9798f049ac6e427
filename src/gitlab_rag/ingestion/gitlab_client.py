"""Async GitLab v4 client: project resolution, tree listing, raw file fetch.

Usage::

    async with GitLabClient.from_settings(settings) as gitlab:
        entries = await gitlab.list_tree()
        raw = await gitlab.fetch("docs/index.md")
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import Any
from urllib.parse import quote

import httpx

from gitlab_rag.config import Settings
from gitlab_rag.errors import FetchError, NotFoundError, ResolutionError, TreeListingError
from gitlab_rag.ingestion.models import EntryKind, ProjectRef, RawContent, TreeEntry

logger = logging.getLogger(__name__)

TREE_PAGE_SIZE = 100
NEXT_PAGE_HEADER = "X-Next-Page"


def _is_transient(status_code: int) -> bool:
    return status_code == 429 or status_code >= 500


def _encode(value: str) -> str:
    # Slashes must be encoded too: GitLab addresses "group/repo" as "group%2Frepo".
    return quote(value, safe="")


def _mask(token: str) -> str:
    return f"{token[:6]}..." if token else "(none)"


class GitLabClient:
    """Read-only client for one GitLab project at one branch.

    Parameters
    ----------
    host:
        Base URL, e.g. ``https://gitlab.com``.
    project_path:
        Namespaced path, resolved to an id on first use.
    project_id:
        Numeric id; when given no lookup request is ever made.
    branch:
        Ref used for tree listing and path-based file retrieval.
    token:
        Optional personal/project access token (``PRIVATE-TOKEN`` header).
    timeout:
        Per-request timeout in seconds.
    max_retries:
        Attempts per request for transient failures (timeouts, connection
        errors, 5xx, 429).  Permanent failures are never retried.
    retry_backoff:
        Base delay; attempt *n* waits ``retry_backoff * 2 ** (n - 1)``.
    transport:
        Optional ``httpx`` transport (tests use ``httpx.MockTransport``).
    """

    def __init__(
        self,
        *,
        host: str = "https://gitlab.com",
        project_path: str = "",
        project_id: str = "",
        branch: str = "main",
        token: str = "",
        timeout: float = 30.0,
        max_retries: int = 3,
        retry_backoff: float = 1.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.host = host.rstrip("/")
        self.project_path = project_path.strip()
        self.project_id = project_id.strip()
        self.branch = branch
        self.max_retries = max(1, max_retries)
        self.retry_backoff = retry_backoff

        if not self.project_path and not self.project_id:
            raise ValueError("Set gitlab_project_path or gitlab_project_id")

        token = token.strip()
        headers = {"PRIVATE-TOKEN": token} if token else {}
        self._http = httpx.AsyncClient(
            base_url=self.host,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )
        self._project: ProjectRef | None = None
        self._blob_ids: dict[str, str] = {}

        logger.info(
            "GitLab host=%s path=%s projectId=%s branch=%s token=%s",
            self.host,
            self.project_path,
            self.project_id or "-",
            self.branch,
            _mask(token),
        )

    @classmethod
    def from_settings(cls, cfg: Settings, **overrides: Any) -> GitLabClient:
        kwargs: dict[str, Any] = {
            "host": cfg.gitlab_host,
            "project_path": cfg.gitlab_project_path,
            "project_id": cfg.gitlab_project_id,
            "branch": cfg.gitlab_branch,
            "token": cfg.gitlab_token,
            "timeout": cfg.http_timeout_seconds,
            "max_retries": cfg.http_max_retries,
            "retry_backoff": cfg.http_retry_backoff,
        }
        kwargs.update(overrides)
        return cls(**kwargs)

    async def __aenter__(self) -> GitLabClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    @property
    def blob_ids(self) -> Mapping[str, str]:
        """Path → blob sha for every file seen by :meth:`list_tree`."""
        return self._blob_ids

    # -- project ----------------------------------------------------------

    async def resolve_project(self) -> ProjectRef:
        """Return the project reference, resolving the id at most once."""
        if self._project is not None:
            return self._project

        if self.project_id:
            logger.info("Using configured projectId=%s", self.project_id)
            self._project = self._make_ref(self.project_id)
            return self._project

        url = f"/api/v4/projects/{_encode(self.project_path)}"
        logger.info("Resolving projectId url=%s%s (path=%s)", self.host, url, self.project_path)
        try:
            response = await self._get(url)
        except httpx.HTTPError as exc:
            raise ResolutionError(f"Project lookup failed: {exc}. Path={self.project_path}") from exc

        if not response.is_success:
            raise ResolutionError(
                f"Project could not be resolved ({response.status_code}): "
                f"{response.text}. Path={self.project_path}"
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise ResolutionError(f"Project lookup returned non-JSON body. Path={self.project_path}") from exc

        pid = payload.get("id") if isinstance(payload, dict) else None
        if pid is None:
            raise ResolutionError(f"Project JSON has no id. Path={self.project_path}")

        self._project = self._make_ref(str(pid))
        logger.info(
            "projectId=%s (name=%s, visibility=%s)",
            pid,
            payload.get("name_with_namespace"),
            payload.get("visibility"),
        )
        return self._project

    def _make_ref(self, resolved_id: str) -> ProjectRef:
        return ProjectRef(
            host=self.host,
            repo_path=self.project_path,
            resolved_id=resolved_id,
            branch=self.branch,
        )

    # -- tree -------------------------------------------------------------

    async def list_tree(self) -> list[TreeEntry]:
        """List every entry of the repository tree, following ``X-Next-Page``."""
        project = await self.resolve_project()
        url = f"/api/v4/projects/{project.resolved_id}/repository/tree"

        entries: list[TreeEntry] = []
        page = 1
        while True:
            params = {
                "recursive": "true",
                "per_page": TREE_PAGE_SIZE,
                "page": page,
                "ref": self.branch,
            }
            try:
                response = await self._get(url, params=params)
            except httpx.HTTPError as exc:
                raise TreeListingError(f"tree page {page} failed: {exc}") from exc
            if not response.is_success:
                raise TreeListingError(
                    f"tree page {page} failed ({response.status_code}): {response.text}"
                )

            try:
                items = response.json()
            except ValueError as exc:
                raise TreeListingError(f"tree page {page} returned non-JSON body") from exc
            if not isinstance(items, list):
                raise TreeListingError(f"tree page {page} is not a JSON list")

            batch = [TreeEntry.from_api(item) for item in items if isinstance(item, dict)]
            entries.extend(batch)

            next_raw = response.headers.get(NEXT_PAGE_HEADER, "").strip()
            logger.info("tree page=%d items=%d next=%s", page, len(batch), next_raw or "-")
            if not next_raw:
                break
            try:
                next_page = int(next_raw)
            except ValueError as exc:
                raise TreeListingError(f"bad {NEXT_PAGE_HEADER} header: {next_raw!r}") from exc
            if next_page <= page:
                logger.warning("tree pagination did not advance (page=%d next=%d); stopping", page, next_page)
                break
            page = next_page

        self._blob_ids = {e.path: e.blob_id for e in entries if e.kind is EntryKind.FILE}
        return entries

    # -- content ----------------------------------------------------------

    async def fetch(self, path: str, blob_id: str | None = None) -> RawContent:
        """Fetch a file by path, falling back to its blob sha on any failure.

        Raises
        ------
        NotFoundError
            Path retrieval failed and no blob sha is known for *path*.
        FetchError
            Both retrieval routes failed.
        """
        try:
            data = await self.fetch_raw(path)
        except FetchError as path_err:
            sha = blob_id or self._blob_ids.get(path)
            if not sha:
                raise NotFoundError(f"no blob sha for {path} ({path_err})") from path_err
            logger.info("Path fetch failed for %s (%s); falling back to blob %s", path, path_err, sha)
            data = await self.fetch_blob_raw(sha)
        return RawContent(path=path, data=data)

    async def fetch_raw(self, path: str) -> bytes:
        """Raw bytes by repository path at the configured branch."""
        project = await self.resolve_project()
        url = f"/api/v4/projects/{project.resolved_id}/repository/files/{_encode(path)}/raw"
        logger.debug("raw url=%s%s", self.host, url)
        return await self._get_bytes(url, what=f"path: {path}", params={"ref": self.branch})

    async def fetch_blob_raw(self, blob_id: str) -> bytes:
        """Raw bytes by blob sha."""
        project = await self.resolve_project()
        url = f"/api/v4/projects/{project.resolved_id}/repository/blobs/{blob_id}/raw"
        logger.debug("blob raw url=%s%s", self.host, url)
        return await self._get_bytes(url, what=f"blob sha: {blob_id}")

    async def _get_bytes(
        self,
        url: str,
        *,
        what: str,
        params: dict[str, Any] | None = None,
    ) -> bytes:
        try:
            response = await self._get(url, params=params)
        except httpx.HTTPError as exc:
            raise FetchError(f"Request failed by {what}: {exc}") from exc
        if response.status_code == 404:
            raise FetchError(f"File 404 by {what} body={response.text}")
        if not response.is_success:
            raise FetchError(f"HTTP {response.status_code} by {what}")
        return response.content

    # -- transport --------------------------------------------------------

    async def _get(self, url: str, *, params: dict[str, Any] | None = None) -> httpx.Response:
        """GET with bounded retry for transient failures.

        Returns the last response (possibly a 5xx) once attempts run out,
        or re-raises the last transport error.
        """
        for attempt in range(1, self.max_retries + 1):
            try:
                response = await self._http.get(url, params=params)
            except httpx.TransportError as exc:
                if attempt == self.max_retries:
                    raise
                reason = f"{type(exc).__name__}: {exc}"
            else:
                if not _is_transient(response.status_code) or attempt == self.max_retries:
                    return response
                reason = f"HTTP {response.status_code}"

            wait = self.retry_backoff * 2 ** (attempt - 1)
            logger.warning(
                "Retry %d/%d for %s (wait %.1fs): %s",
                attempt,
                self.max_retries,
                url,
                wait,
                reason,
            )
            await asyncio.sleep(wait)

        raise AssertionError("unreachable")  # pragma: no cover
