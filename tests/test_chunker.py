from destill.broker import InMemoryBroker
from destill.chunker import CONTEXT_OVERLAP, chunk_log, format_chunk_info
from destill.contracts import TOPIC_LOGS_RAW, LogChunk


def test_small_content():
    content = "line1\nline2\nline3"
    chunks = chunk_log(content, "req-1", "build-1", "job1", "job-id-1", None)
    assert len(chunks) == 1
    chunk = chunks[0]
    assert chunk.content == content
    assert chunk.chunk_index == 0
    assert chunk.total_chunks == 1
    assert chunk.line_start == 1
    assert chunk.line_end == 3


def test_empty_content():
    assert chunk_log("", "req-1", "build-1", "job1", "job-id-1", None) == []


def test_large_content():
    content = "\n".join(["a" * 1000] * 600)
    chunks = chunk_log(content, "req-1", "build-1", "job1", "job-id-1", None)
    assert len(chunks) >= 2
    for i, chunk in enumerate(chunks):
        assert chunk.chunk_index == i
        assert chunk.total_chunks == len(chunks)
        assert chunk.request_id == "req-1"
        assert chunk.build_id == "build-1"
        assert chunk.job_name == "job1"
        size = len(chunk.content.encode())
        if i < len(chunks) - 1:
            assert size >= 400 * 1024
        assert size <= 600 * 1024


def test_overlap():
    content = "\n".join(["x" * 600] * 1000)
    chunks = chunk_log(content, "req-1", "build-1", "job1", "job-id-1", None)
    assert len(chunks) >= 2
    for current, following in zip(chunks, chunks[1:]):
        assert following.line_start < current.line_end
        overlap = current.line_end - following.line_start + 1
        assert overlap <= CONTEXT_OVERLAP + 10


def test_metadata_is_copied():
    metadata = {"key1": "value1", "key2": "value2"}
    chunks = chunk_log("line\n" * 100, "req-1", "build-1", "job1", "job-id-1", metadata)
    assert len(chunks) >= 1
    for chunk in chunks:
        assert chunk.metadata == metadata
        chunk.metadata["extra"] = "x"
    assert "extra" not in metadata


def test_metadata_distinct_across_chunks():
    content = "\n".join(["x" * 600] * 1000)
    chunks = chunk_log(content, "r", "b", "j", "id", {"k": "v"})
    chunks[0].metadata["k"] = "changed"
    assert chunks[1].metadata["k"] == "v"


def test_trailing_newline_not_counted_as_line():
    chunks = chunk_log("line\n" * 100, "r", "b", "j", "id", None)
    assert chunks[0].line_end == 100


def test_format_chunk_info():
    chunk = chunk_log("line1\nline2", "req-1", "build-1", "job1", "job-id-1", None)[0]
    assert format_chunk_info(chunk) == "Chunk 1/1: lines 1-2 (11 bytes)"


def test_line_numbers():
    content = "\n".join(["x" * 10000] * 100)
    chunks = chunk_log(content, "req-1", "build-1", "job1", "job-id-1", None)
    assert len(chunks) >= 2
    assert chunks[0].line_start == 1
    assert chunks[-1].line_end == 100
    for chunk in chunks:
        assert chunk.line_start <= chunk.line_end
        assert chunk.line_start >= 1


def test_chunking_integration_with_broker():
    content = ("\x00" * 600 + "\n") * 1000
    chunks = chunk_log(content, "req-1", "build-1", "job1", "job-id-1", {"test": "integration"})
    assert len(chunks) >= 2
    with InMemoryBroker() as brk:
        sub = brk.subscribe(TOPIC_LOGS_RAW, "test-consumer")
        for chunk in chunks:
            brk.publish(TOPIC_LOGS_RAW, "build-1", chunk.to_json())
        received = [LogChunk.from_json(sub.get(timeout=2).value) for _ in chunks]
    assert [c.chunk_index for c in received] == list(range(len(chunks)))
    for chunk in received:
        assert chunk.request_id == "req-1"
        assert chunk.total_chunks == len(chunks)
        assert chunk.metadata["test"] == "integration"


def test_publish_flow_round_trip():
    chunk = LogChunk(
        request_id="req-test",
        build_id="org-pipeline-123",
        job_name="test-job",
        job_id="job-123",
        chunk_index=0,
        total_chunks=1,
        content="test log content",
        line_start=1,
        line_end=1,
        metadata={"test": "value"},
    )
    with InMemoryBroker() as brk:
        sub = brk.subscribe(TOPIC_LOGS_RAW, "test-consumer")
        brk.publish(TOPIC_LOGS_RAW, "org-pipeline-123", chunk.to_json())
        received = LogChunk.from_json(sub.get(timeout=1).value)
    assert received.request_id == chunk.request_id
    assert received.build_id == chunk.build_id
    assert received.content == chunk.content