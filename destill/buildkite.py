"""Client for the Buildkite REST API: builds, job logs and artifacts."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import requests

API_BASE_URL = "https://api.buildkite.com/v2"
"""Base URL of the Buildkite REST API."""

DEFAULT_TIMEOUT = 30.0
"""Seconds to wait for a response before giving up."""

_BUILD_URL = re.compile(r"https://buildkite\.com/([^/]+)/([^/]+)/builds/(\d+)")
_FRACTION = re.compile(r"\.(\d+)")


class BuildkiteError(RuntimeError):
    """Raised when a Buildkite API call fails; ``status_code`` is set for HTTP errors."""

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
class Job:
    """A job within a Buildkite build."""

    id: str = ""
    name: str = ""
    type: str = ""
    state: str = ""
    exit_status: int = 0
    created_at: datetime | None = None
    log_url: str = ""
    raw_log_url: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Job:
        return cls(
            id=_text(data, "id"),
            name=_text(data, "name"),
            type=_text(data, "type"),
            state=_text(data, "state"),
            exit_status=_int(data, "exit_status"),
            created_at=_parse_time(data.get("created_at")),
            log_url=_text(data, "log_url"),
            raw_log_url=_text(data, "raw_log_url"),
        )


@dataclass
class Build:
    """A Buildkite build with its jobs."""

    id: str = ""
    number: int = 0
    state: str = ""
    web_url: str = ""
    created_at: datetime | None = None
    jobs: list[Job] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Build:
        return cls(
            id=_text(data, "id"),
            number=_int(data, "number"),
            state=_text(data, "state"),
            web_url=_text(data, "web_url"),
            created_at=_parse_time(data.get("created_at")),
            jobs=[Job.from_dict(job) for job in data.get("jobs") or []],
        )


@dataclass
class Artifact:
    """A file uploaded by a Buildkite job."""

    id: str = ""
    job_id: str = ""
    path: str = ""
    download_url: str = ""
    file_size: int = 0
    sha1sum: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Artifact:
        return cls(
            id=_text(data, "id"),
            job_id=_text(data, "job_id"),
            path=_text(data, "path"),
            download_url=_text(data, "download_url"),
            file_size=_int(data, "file_size"),
            sha1sum=_text(data, "sha1sum"),
        )


def parse_build_url(build_url: str) -> tuple[str, str, int]:
    """Return organization, pipeline and build number from a build URL.

    Expects ``https://buildkite.com/{org}/{pipeline}/builds/{number}``;
    raises ValueError otherwise.
    """
    match = _BUILD_URL.search(build_url)
    if match is None:
        raise ValueError(f"invalid Buildkite URL format: {build_url}")
    org, pipeline, number = match.groups()
    return org, pipeline, int(number)


class BuildkiteClient:
    """Authenticated access to the Buildkite API."""

    def __init__(
        self,
        api_token: str,
        base_url: str = API_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        session: requests.Session | None = None,
    ) -> None:
        self.api_token = api_token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()

    def _get(self, url: str, accept: str | None = None) -> requests.Response:
        headers = {"Authorization": f"Bearer {self.api_token}"}
        if accept:
            headers["Accept"] = accept
        try:
            return self._session.get(url, headers=headers, timeout=self.timeout)
        except requests.RequestException as exc:
            raise BuildkiteError(f"failed to execute request: {exc}") from exc

    @staticmethod
    def _check(response: requests.Response, what: str = "API request failed") -> None:
        if response.status_code != 200:
            body = response.content.decode("utf-8", errors="replace")
            raise BuildkiteError(
                f"{what} with status {response.status_code}: {body}",
                status_code=response.status_code,
            )

    @staticmethod
    def _json(response: requests.Response) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise BuildkiteError(f"failed to decode response: {exc}") from exc

    def get_build(self, org: str, pipeline: str, build_number: str | int) -> Build:
        """Fetch a build's metadata, including its jobs."""
        url = f"{self.base_url}/organizations/{org}/pipelines/{pipeline}/builds/{build_number}"
        response = self._get(url, accept="application/json")
        self._check(response)
        data = self._json(response)
        if not isinstance(data, dict):
            raise BuildkiteError("failed to decode response: expected a JSON object")
        return Build.from_dict(data)

    def get_job_log(self, job_id: str) -> str:
        """Fetch a job's log by id; prefer get_job_log_by_url with the job's raw log URL."""
        return self.get_job_log_by_url(f"{self.base_url}/jobs/{job_id}/log")

    def get_job_log_by_url(self, raw_log_url: str) -> str:
        """Fetch raw log text from the URL the API gives for a job."""
        response = self._get(raw_log_url, accept="text/plain")
        self._check(response)
        return response.content.decode("utf-8", errors="replace")

    def get_job_artifacts(self, job_id: str) -> list[Artifact]:
        """List a job's artifacts; a job without any (HTTP 404) yields an empty list."""
        response = self._get(f"{self.base_url}/jobs/{job_id}/artifacts", accept="application/json")
        if response.status_code == 404:
            return []
        self._check(response)
        data = self._json(response)
        if data is None:
            return []
        if not isinstance(data, list):
            raise BuildkiteError("failed to decode response: expected a JSON array")
        return [Artifact.from_dict(item) for item in data]

    def download_artifact(self, download_url: str) -> bytes:
        """Download an artifact's content."""
        response = self._get(download_url)
        self._check(response, "download failed")
        return response.content