"""Client for the GitHub Actions API: workflow runs, jobs, logs and artifacts."""

from __future__ import annotations

import io
import re
import zipfile
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import requests

API_BASE_URL = "https://api.github.com"
"""Base URL of the GitHub REST API."""

DEFAULT_TIMEOUT = 30.0
"""Seconds to wait for a response before giving up."""

JOBS_PER_PAGE = 100
"""Largest page size GitHub allows when listing jobs."""

_ACCEPT = "application/vnd.github+json"
_RUN_URL = re.compile(r"^https://github\.com/([^/]+)/([^/]+)/actions/runs/(\d+)")
_FRACTION = re.compile(r"\.(\d+)")
_STATES = {"success": "passed", "failure": "failed", "cancelled": "canceled"}


class InvalidURLError(ValueError):
    """Raised for a URL that is not a GitHub Actions workflow run URL."""


class GitHubAPIError(RuntimeError):
    """Raised when a GitHub API call fails; ``status_code`` is set for HTTP errors."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def _parse_time(value: Any) -> datetime | None:
    if not value:
        return None
    text = str(value)
    if text[-1] in "Zz":
        text = text[:-1] + "+00:00"
    text = _FRACTION.sub(lambda m: "." + (m.group(1) + "000000")[:6], text, count=1)
    return datetime.fromisoformat(text)


def _text(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    return "" if value is None else str(value)


def _int(data: dict[str, Any], key: str) -> int:
    value = data.get(key)
    return 0 if value is None else int(value)


@dataclass
class WorkflowRun:
    """A GitHub Actions workflow run."""

    id: int = 0
    name: str = ""
    run_number: int = 0
    status: str = ""
    conclusion: str = ""
    html_url: str = ""
    created_at: datetime | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> WorkflowRun:
        return cls(
            id=_int(data, "id"),
            name=_text(data, "name"),
            run_number=_int(data, "run_number"),
            status=_text(data, "status"),
            conclusion=_text(data, "conclusion"),
            html_url=_text(data, "html_url"),
            created_at=_parse_time(data.get("created_at")),
        )


@dataclass
class Step:
    """A step within a workflow job."""

    name: str = ""
    status: str = ""
    conclusion: str = ""
    number: int = 0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Step:
        return cls(
            name=_text(data, "name"),
            status=_text(data, "status"),
            conclusion=_text(data, "conclusion"),
            number=_int(data, "number"),
        )


@dataclass
class WorkflowJob:
    """A job within a workflow run."""

    id: int = 0
    run_id: int = 0
    name: str = ""
    status: str = ""
    conclusion: str = ""
    started_at: datetime | None = None
    steps: list[Step] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> WorkflowJob:
        return cls(
            id=_int(data, "id"),
            run_id=_int(data, "run_id"),
            name=_text(data, "name"),
            status=_text(data, "status"),
            conclusion=_text(data, "conclusion"),
            started_at=_parse_time(data.get("started_at")),
            steps=[Step.from_dict(step) for step in data.get("steps") or []],
        )


@dataclass
class Artifact:
    """An artifact uploaded by a workflow run."""

    id: int = 0
    name: str = ""
    size_in_bytes: int = 0
    archive_download_url: str = ""
    expired: bool = False
    created_at: datetime | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Artifact:
        return cls(
            id=_int(data, "id"),
            name=_text(data, "name"),
            size_in_bytes=_int(data, "size_in_bytes"),
            archive_download_url=_text(data, "archive_download_url"),
            expired=bool(data.get("expired")),
            created_at=_parse_time(data.get("created_at")),
        )


def parse_workflow_run_url(url: str) -> tuple[str, str, str]:
    """Return owner, repository and run id from a workflow run URL."""
    match = _RUN_URL.match(url)
    if match is None:
        raise InvalidURLError(f"invalid GitHub Actions URL: {url}")
    owner, repo, run_id = match.groups()
    return owner, repo, run_id


def map_github_status(status: str, conclusion: str) -> str:
    """Map a GitHub status and conclusion to a Buildkite-like state."""
    if status == "completed":
        return _STATES.get(conclusion, conclusion)
    return status


class GitHubClient:
    """Authenticated access to the GitHub Actions API."""

    def __init__(
        self,
        token: str,
        base_url: str = API_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        session: requests.Session | None = None,
    ) -> None:
        self.token = token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()

    def _get(self, url: str, params: dict[str, Any] | None = None,
             allow_redirects: bool = True) -> requests.Response:
        headers = {"Authorization": f"Bearer {self.token}", "Accept": _ACCEPT}
        return self._session.get(url, headers=headers, params=params,
                                 timeout=self.timeout, allow_redirects=allow_redirects)

    @staticmethod
    def _check(response: requests.Response, expected: int = 200) -> None:
        if response.status_code != expected:
            body = response.content.decode("utf-8", errors="replace")
            raise GitHubAPIError(f"GitHub API error {response.status_code}: {body}",
                                 status_code=response.status_code)

    @staticmethod
    def _object(response: requests.Response) -> dict[str, Any]:
        data = response.json()
        if not isinstance(data, dict):
            raise ValueError("expected a JSON object")
        return data

    def get_workflow_run(self, owner: str, repo: str, run_id: str | int) -> WorkflowRun:
        """Fetch a workflow run's metadata."""
        response = self._get(f"{self.base_url}/repos/{owner}/{repo}/actions/runs/{run_id}")
        self._check(response)
        return WorkflowRun.from_dict(self._object(response))

    def get_workflow_jobs(self, owner: str, repo: str, run_id: str | int) -> list[WorkflowJob]:
        """Fetch every job of a workflow run, following pagination."""
        url = f"{self.base_url}/repos/{owner}/{repo}/actions/runs/{run_id}/jobs"
        jobs: list[WorkflowJob] = []
        page = 1
        while True:
            response = self._get(url, params={"per_page": JOBS_PER_PAGE, "page": page})
            self._check(response)
            data = self._object(response)
            page_jobs = [WorkflowJob.from_dict(job) for job in data.get("jobs") or []]
            jobs.extend(page_jobs)
            if len(jobs) >= _int(data, "total_count") or len(page_jobs) < JOBS_PER_PAGE:
                return jobs
            page += 1

    def get_job_logs(self, owner: str, repo: str, job_id: int) -> str:
        """Fetch a job's log text via the download URL the API redirects to."""
        response = self._get(
            f"{self.base_url}/repos/{owner}/{repo}/actions/jobs/{job_id}/logs",
            allow_redirects=False,
        )
        self._check(response, expected=302)
        log_url = response.headers.get("Location", "")
        if not log_url:
            raise GitHubAPIError("no redirect location for logs")
        log_response = self._session.get(log_url, timeout=self.timeout)
        return log_response.content.decode("utf-8", errors="replace")

    def get_artifacts(self, owner: str, repo: str, run_id: str | int) -> list[Artifact]:
        """List the artifacts of a workflow run."""
        response = self._get(f"{self.base_url}/repos/{owner}/{repo}/actions/runs/{run_id}/artifacts")
        self._check(response)
        data = self._object(response)
        return [Artifact.from_dict(item) for item in data.get("artifacts") or []]

    def download_artifact(self, download_url: str) -> dict[str, bytes]:
        """Download an artifact archive and return its files by name.

        Raises ValueError if the download is not a zip archive.
        """
        response = self._get(download_url)
        self._check(response)
        try:
            with zipfile.ZipFile(io.BytesIO(response.content)) as archive:
                return {
                    info.filename: archive.read(info)
                    for info in archive.infolist()
                    if not info.is_dir()
                }
        except zipfile.BadZipFile as exc:
            raise ValueError(f"invalid artifact archive: {exc}") from exc