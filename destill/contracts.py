"""Message types exchanged between the ingest and analyze stages."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field, replace
from typing import Any

TOPIC_LOGS_RAW = "destill.logs.raw"
"""Raw log chunks (about 500KB each)."""

TOPIC_ANALYSIS_FINDINGS = "destill.analysis.findings"
"""Analysis findings (triage cards)."""

TOPIC_REQUESTS = "destill.requests"
"""Build analysis requests."""

TOPIC_PROGRESS = "destill.progress"
"""Progress updates during analysis."""

_RECURRENCE_KEY = "recurrence_count"
_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def _load_object(data: str | bytes | bytearray) -> dict[str, Any]:
    if isinstance(data, (bytes, bytearray)):
        data = bytes(data).decode("utf-8")
    obj = json.loads(data)
    if not isinstance(obj, dict):
        raise ValueError("expected a JSON object")
    return obj


def _dump(obj: dict[str, Any]) -> bytes:
    return json.dumps(obj, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def _text(obj: dict[str, Any], key: str) -> str:
    value = obj.get(key)
    return "" if value is None else str(value)


def _number(obj: dict[str, Any], key: str) -> int:
    value = obj.get(key)
    return 0 if value is None else int(value)


def _mapping(obj: dict[str, Any], key: str) -> dict[str, str]:
    return {str(k): str(v) for k, v in (obj.get(key) or {}).items()}


def _lines(obj: dict[str, Any], key: str) -> list[str]:
    return [str(line) for line in (obj.get(key) or [])]


@dataclass
class LogChunk:
    """A slice of a job log, published to the raw-logs topic keyed by build id."""

    request_id: str = ""
    build_id: str = ""
    job_name: str = ""
    job_id: str = ""
    chunk_index: int = 0
    total_chunks: int = 0
    content: str = ""
    line_start: int = 0
    line_end: int = 0
    metadata: dict[str, str] = field(default_factory=dict)

    def to_json(self) -> bytes:
        return _dump(
            {
                "request_id": self.request_id,
                "build_id": self.build_id,
                "job_name": self.job_name,
                "job_id": self.job_id,
                "chunk_index": self.chunk_index,
                "total_chunks": self.total_chunks,
                "content": self.content,
                "line_start": self.line_start,
                "line_end": self.line_end,
                "metadata": self.metadata,
            }
        )

    @classmethod
    def from_json(cls, data: str | bytes | bytearray) -> LogChunk:
        obj = _load_object(data)
        return cls(
            request_id=_text(obj, "request_id"),
            build_id=_text(obj, "build_id"),
            job_name=_text(obj, "job_name"),
            job_id=_text(obj, "job_id"),
            chunk_index=_number(obj, "chunk_index"),
            total_chunks=_number(obj, "total_chunks"),
            content=_text(obj, "content"),
            line_start=_number(obj, "line_start"),
            line_end=_number(obj, "line_end"),
            metadata=_mapping(obj, "metadata"),
        )


@dataclass
class TriageCard:
    """An analysis finding with the context found inside its chunk."""

    id: str = ""
    request_id: str = ""
    message_hash: str = ""
    source: str = ""
    job_name: str = ""
    build_url: str = ""
    severity: str = ""
    raw_message: str = ""
    normalized_msg: str = ""
    confidence_score: float = 0.0
    pre_context: list[str] = field(default_factory=list)
    post_context: list[str] = field(default_factory=list)
    context_note: str = ""
    chunk_index: int = 0
    line_in_chunk: int = 0
    metadata: dict[str, str] = field(default_factory=dict)
    timestamp: str = ""

    @property
    def recurrence_count(self) -> int:
        """How often this finding recurred; 1 when not recorded or unreadable."""
        if not self.metadata:
            return 1
        value = self.metadata.get(_RECURRENCE_KEY)
        if value is None:
            return 1
        match = _LEADING_INT.match(value)
        return int(match.group(1)) if match else 1

    @recurrence_count.setter
    def recurrence_count(self, count: int) -> None:
        if self.metadata is None:
            self.metadata = {}
        self.metadata[_RECURRENCE_KEY] = str(int(count))

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "request_id": self.request_id,
            "message_hash": self.message_hash,
            "source": self.source,
            "job_name": self.job_name,
            "build_url": self.build_url,
            "severity": self.severity,
            "raw_message": self.raw_message,
            "normalized_message": self.normalized_msg,
            "confidence_score": self.confidence_score,
            "pre_context": list(self.pre_context),
            "post_context": list(self.post_context),
            "context_note": self.context_note,
            "chunk_index": self.chunk_index,
            "line_in_chunk": self.line_in_chunk,
            "metadata": dict(self.metadata or {}),
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TriageCard:
        score = data.get("confidence_score")
        return cls(
            id=_text(data, "id"),
            request_id=_text(data, "request_id"),
            message_hash=_text(data, "message_hash"),
            source=_text(data, "source"),
            job_name=_text(data, "job_name"),
            build_url=_text(data, "build_url"),
            severity=_text(data, "severity"),
            raw_message=_text(data, "raw_message"),
            normalized_msg=_text(data, "normalized_message"),
            confidence_score=0.0 if score is None else float(score),
            pre_context=_lines(data, "pre_context"),
            post_context=_lines(data, "post_context"),
            context_note=_text(data, "context_note"),
            chunk_index=_number(data, "chunk_index"),
            line_in_chunk=_number(data, "line_in_chunk"),
            metadata=_mapping(data, "metadata"),
            timestamp=_text(data, "timestamp"),
        )

    def to_json(self) -> bytes:
        return _dump(self.to_dict())

    @classmethod
    def from_json(cls, data: str | bytes | bytearray) -> TriageCard:
        return cls.from_dict(_load_object(data))


@dataclass
class AnalysisRequest:
    """A request to analyze one build, keyed by request id."""

    request_id: str = ""
    build_url: str = ""
    timestamp: str = ""

    def to_json(self) -> bytes:
        return _dump(
            {
                "request_id": self.request_id,
                "build_url": self.build_url,
                "timestamp": self.timestamp,
            }
        )

    @classmethod
    def from_json(cls, data: str | bytes | bytearray) -> AnalysisRequest:
        obj = _load_object(data)
        return cls(
            request_id=_text(obj, "request_id"),
            build_url=_text(obj, "build_url"),
            timestamp=_text(obj, "timestamp"),
        )


@dataclass
class RequestStatus:
    """Status of an analysis request: pending, processing, completed or failed."""

    request_id: str = ""
    build_url: str = ""
    status: str = ""
    chunks_total: int = 0
    chunks_processed: int = 0
    findings_count: int = 0


@dataclass
class ProgressUpdate:
    """Progress of a build analysis, published to the progress topic."""

    request_id: str = ""
    stage: str = ""
    current: int = 0
    total: int = 0
    timestamp: str = ""

    def to_json(self) -> bytes:
        return _dump(
            {
                "request_id": self.request_id,
                "stage": self.stage,
                "current": self.current,
                "total": self.total,
                "timestamp": self.timestamp,
            }
        )

    @classmethod
    def from_json(cls, data: str | bytes | bytearray) -> ProgressUpdate:
        obj = _load_object(data)
        return cls(
            request_id=_text(obj, "request_id"),
            stage=_text(obj, "stage"),
            current=_number(obj, "current"),
            total=_number(obj, "total"),
            timestamp=_text(obj, "timestamp"),
        )


def deduplicate_cards(cards: list[TriageCard]) -> list[TriageCard]:
    """Drop cards whose message hash was already seen, counting recurrences.

    The first card for each hash is kept (as a copy) and its recurrence
    count is raised once for every later duplicate.
    """
    seen: dict[str, int] = {}
    result: list[TriageCard] = []
    for card in cards:
        index = seen.get(card.message_hash)
        if index is not None:
            kept = result[index]
            kept.recurrence_count = kept.recurrence_count + 1
            continue
        kept = replace(
            card,
            metadata=dict(card.metadata or {}),
            pre_context=list(card.pre_context),
            post_context=list(card.post_context),
        )
        if kept.recurrence_count == 1:
            kept.recurrence_count = 1
        seen[card.message_hash] = len(result)
        result.append(kept)
    return result