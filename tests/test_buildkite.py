from datetime import datetime, timezone

import pytest
import responses

from destill.buildkite import (
    Artifact,
    Build,
    BuildkiteClient,
    BuildkiteError,
    Job,
    parse_build_url,
)

BASE = "https://api.example.com/v2"


def make_client():
    return BuildkiteClient("token", base_url=BASE)


@pytest.mark.parametrize(
    "url, org, pipeline, number",
    [
        ("https://buildkite.com/my-org/my-pipeline/builds/4091", "my-org", "my-pipeline", 4091),
        ("https://buildkite.com/my-org-name/my-pipeline-name/builds/123",
         "my-org-name", "my-pipeline-name", 123),
        ("https://buildkite.com/myorg/mypipeline/builds/123", "myorg", "mypipeline", 123),
    ],
)
def test_parse_build_url_valid(url, org, pipeline, number):
    assert parse_build_url(url) == (org, pipeline, number)


@pytest.mark.parametrize(
    "url",
    [
        "https://buildkite.com/my-org/my-pipeline/builds/",
        "https://example.com/builds/123",
        "https://buildkite.com/my-org/my-pipeline/builds/abc",
    ],
)
def test_parse_build_url_invalid(url):
    with pytest.raises(ValueError):
        parse_build_url(url)


def test_new_client_keeps_token():
    client = BuildkiteClient("token")
    assert client.api_token == "token"
    assert client.timeout == 30.0


def test_build_number_from_integer_json():
    build = Build.from_dict(
        {
            "id": "test-build-id",
            "number": 77825,
            "state": "failed",
            "web_url": "https://buildkite.com/org/pipeline/builds/77825",
            "created_at": "2024-01-01T00:00:00Z",
            "jobs": [],
        }
    )
    assert build.number == 77825
    assert build.state == "failed"
    assert build.created_at == datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert build.jobs == []


def test_job_from_dict_with_fraction_and_null_exit():
    job = Job.from_dict(
        {
            "id": "j1",
            "name": "tests",
            "type": "script",
            "state": "failed",
            "exit_status": None,
            "created_at": "2024-01-01T12:00:00.5Z",
            "raw_log_url": "https://api.example.com/raw",
        }
    )
    assert job.exit_status == 0
    assert job.created_at.microsecond == 500000
    assert job.raw_log_url == "https://api.example.com/raw"


def test_get_build_parses_jobs_and_sends_auth():
    with responses.RequestsMock() as rsps:
        rsps.add(
            responses.GET,
            f"{BASE}/organizations/org/pipelines/pipe/builds/7",
            json={
                "id": "b-1",
                "number": 7,
                "state": "failed",
                "web_url": "https://buildkite.com/org/pipe/builds/7",
                "jobs": [
                    {"id": "j-1", "name": "unit", "type": "script", "state": "failed",
                     "exit_status": 2, "raw_log_url": f"{BASE}/raw/j-1"},
                    {"id": "j-2", "name": "wait", "type": "waiter", "state": "passed"},
                ],
            },
        )
        build = make_client().get_build("org", "pipe", "7")
        request = rsps.calls[0].request
        assert request.headers["Authorization"] == "Bearer token"
        assert request.headers["Accept"] == "application/json"
    assert build.id == "b-1"
    assert [job.id for job in build.jobs] == ["j-1", "j-2"]
    assert build.jobs[0].exit_status == 2
    assert build.jobs[1].type == "waiter"


def test_get_build_error_status():
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, f"{BASE}/organizations/o/pipelines/p/builds/1",
                 status=404, body="not found")
        with pytest.raises(BuildkiteError) as info:
            make_client().get_build("o", "p", 1)
    assert info.value.status_code == 404
    assert str(info.value) == "API request failed with status 404: not found"


def test_get_build_bad_json():
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, f"{BASE}/organizations/o/pipelines/p/builds/1", body="nope")
        with pytest.raises(BuildkiteError, match="failed to decode response"):
            make_client().get_build("o", "p", 1)


def test_get_job_log_by_url_returns_text():
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, f"{BASE}/raw/j-1", body="line one\nline two\n")
        text = make_client().get_job_log_by_url(f"{BASE}/raw/j-1")
        assert rsps.calls[0].request.headers["Accept"] == "text/plain"
    assert text == "line one\nline two\n"


def test_get_job_log_uses_jobs_endpoint():
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, f"{BASE}/jobs/abc/log", body="log text")
        assert make_client().get_job_log("abc") == "log text"


def test_get_job_artifacts_not_found_is_empty():
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, f"{BASE}/jobs/abc/artifacts", status=404)
        assert make_client().get_job_artifacts("abc") == []


def test_get_job_artifacts_parses_list():
    with responses.RequestsMock() as rsps:
        rsps.add(
            responses.GET,
            f"{BASE}/jobs/abc/artifacts",
            json=[{"id": "a1", "job_id": "abc", "path": "out/report.xml",
                   "download_url": f"{BASE}/dl/a1", "file_size": 42, "sha1sum": "deadbeef"}],
        )
        artifacts = make_client().get_job_artifacts("abc")
    assert artifacts == [
        Artifact(id="a1", job_id="abc", path="out/report.xml",
                 download_url=f"{BASE}/dl/a1", file_size=42, sha1sum="deadbeef")
    ]


def test_get_job_artifacts_server_error():
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, f"{BASE}/jobs/abc/artifacts", status=500, body="boom")
        with pytest.raises(BuildkiteError) as info:
            make_client().get_job_artifacts("abc")
    assert info.value.status_code == 500


def test_download_artifact():
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, f"{BASE}/dl/a1", body=b"\x00\x01binary")
        assert make_client().download_artifact(f"{BASE}/dl/a1") == b"\x00\x01binary"


def test_download_artifact_failure():
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, f"{BASE}/dl/a1", status=500, body="oops")
        with pytest.raises(BuildkiteError) as info:
            make_client().download_artifact(f"{BASE}/dl/a1")
    assert str(info.value) == "download failed with status 500: oops"