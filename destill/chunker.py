"""Splitting job logs into overlapping chunks of about 500KB."""

from __future__ import annotations

from destill.contracts import LogChunk

TARGET_CHUNK_SIZE = 500 * 1024
"""Target size of each chunk in bytes."""

CONTEXT_OVERLAP = 50
"""Number of lines repeated at the start of the next chunk."""


def _split_lines(content: str) -> list[str]:
    lines = content.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return [line[:-1] if line.endswith("\r") else line for line in lines]


def _byte_len(text: str) -> int:
    return len(text.encode("utf-8"))


def chunk_log(
    content: str,
    request_id: str,
    build_id: str,
    job_name: str,
    job_id: str,
    metadata: dict[str, str] | None = None,
) -> list[LogChunk]:
    """Split ``content`` into chunks of about TARGET_CHUNK_SIZE bytes.

    Each chunk after the first repeats the last CONTEXT_OVERLAP lines of the
    previous one. Line numbers are 1-based and inclusive.
    """
    if not content:
        return []
    lines = _split_lines(content)
    if not lines:
        return []

    def make(index: int, text: str, start: int, end: int) -> LogChunk:
        return LogChunk(
            request_id=request_id,
            build_id=build_id,
            job_name=job_name,
            job_id=job_id,
            chunk_index=index,
            total_chunks=0,
            content=text,
            line_start=start,
            line_end=end,
            metadata=dict(metadata or {}),
        )

    if _byte_len(content) <= TARGET_CHUNK_SIZE:
        chunk = make(0, content, 1, len(lines))
        chunk.total_chunks = 1
        return [chunk]

    chunks: list[LogChunk] = []
    current: list[str] = []
    current_size = 0
    line_start = 1

    for i, line in enumerate(lines):
        line_size = _byte_len(line) + 1
        if current_size + line_size > TARGET_CHUNK_SIZE and current:
            chunks.append(make(len(chunks), "\n".join(current), line_start, i))
            overlap = current[-CONTEXT_OVERLAP:]
            line_start = i + 1 - len(overlap)
            current = list(overlap)
            current_size = sum(_byte_len(kept) + 1 for kept in overlap)
        current.append(line)
        current_size += line_size

    if current:
        chunks.append(make(len(chunks), "\n".join(current), line_start, len(lines)))

    for chunk in chunks:
        chunk.total_chunks = len(chunks)
    return chunks


def format_chunk_info(chunk: LogChunk) -> str:
    """Return a one-line summary of a chunk's position and size."""
    return (
        f"Chunk {chunk.chunk_index + 1}/{chunk.total_chunks}: "
        f"lines {chunk.line_start}-{chunk.line_end} ({_byte_len(chunk.content)} bytes)"
    )