"""Stateless scoring of log lines inside a single chunk."""

from __future__ import annotations

import hashlib
import re
from collections.abc import Callable
from dataclasses import dataclass, field

from destill.contracts import LogChunk, TriageCard

PRE_CONTEXT_LINES = 15
"""Lines taken from the chunk before a finding."""

POST_CONTEXT_LINES = 30
"""Lines taken from the chunk after a finding."""

MIN_CONFIDENCE = 0.5
"""Findings scoring below this are dropped."""

_FAILED_JOB_SHRINK = 0.4
_PASSED_JOB_FACTOR = 0.6

Normalizer = Callable[[str], str]


def _rx(pattern: str, ignore_case: bool = False) -> re.Pattern[str]:
    flags = re.ASCII | (re.IGNORECASE if ignore_case else 0)
    return re.compile(pattern, flags)


_FATAL = _rx(r"\b(FATAL|PANIC|CRITICAL)\b", True)
_ERROR = _rx(r"\b(ERROR|ERR|EXCEPTION|FAILURE|FAILED)\b", True)
_WARNING = _rx(r"\b(WARN|WARNING)\b", True)

_HIGH_CONFIDENCE = _rx(r"^.{0,50}\b(FATAL|ERROR|EXCEPTION|CRITICAL)\s*[\[:]", True)

# Signals that make a line more likely to be a real failure, applied in order.
_BOOSTS: tuple[tuple[tuple[re.Pattern[str], ...], float], ...] = (
    (  # stack traces
        (
            _rx(r"^\s+at\s+[\w.$]+\("),
            _rx(r"^Traceback \(most recent call", True),
            _rx(r'^\s*File ".*", line \d+'),
            _rx(r"^panic:"),
            _rx(r"^(Backtrace:|Stack trace:|#\d+\s+0x[0-9a-f]+)", True),
            _rx(r"^terminate called", True),
        ),
        0.30,
    ),
    (  # build tools
        (
            _rx(r"^npm ERR!"),
            _rx(r"\b(ENOENT|EACCES|ELIFECYCLE|ECONNREFUSED|ECONNRESET|E404|ERESOLVE)\b"),
            _rx(r"^\[ERROR\]|BUILD FAILURE"),
            _rx(r"^FAILURE:|BUILD FAILED"),
        ),
        0.30,
    ),
    (  # docker / kubernetes
        (
            _rx(r"(Error response from daemon|error during connect|Cannot connect to the Docker)", True),
            _rx(r"\b(ErrImagePull|ImagePullBackOff|CrashLoopBackOff|OOMKilled|NodeNotReady|RunContainerError)\b"),
        ),
        0.30,
    ),
    (  # crashes and resource exhaustion
        (
            _rx(r"(OutOfMemory|out of memory|OOM|Cannot allocate memory|heap space|memory exhausted)", True),
            _rx(r"(Segmentation fault|SIGSEGV|SIGKILL|SIGABRT|core dumped|Aborted)", True),
        ),
        0.35,
    ),
    (
        (_rx(r"(timed?\s*out|deadline exceeded|context canceled|context deadline|ETIMEDOUT)", True),),
        0.20,
    ),
    (  # exit codes
        (
            _rx(r"(exit(ed)?|return(ed)?|status).{0,20}(code|status)?\s*[:\s]+[1-9]\d*", True),
            _rx(r"(non-?zero|failed|failure).{0,15}(exit|return|code)", True),
        ),
        0.25,
    ),
    (  # compile, syntax and import errors
        (
            _rx(r"(cannot find symbol|undefined reference|does not exist|not found|unresolved|linker error)", True),
            _rx(r"(SyntaxError|unexpected token|parse error|invalid syntax|unexpected end)", True),
            _rx(r"(ModuleNotFoundError|cannot find module|No module named|import.*failed|could not resolve)", True),
        ),
        0.25,
    ),
    (
        (_rx(r"(Permission denied|Access denied|Unauthorized|403 Forbidden|401 Unauthorized|EACCES)", True),),
        0.20,
    ),
    (
        (_rx(r"(Connection refused|Connection reset|ECONNREFUSED|ECONNRESET|network unreachable|host unreachable)", True),),
        0.20,
    ),
    (
        (_rx(r"(assertion failed|AssertionError|assert.*failed|ASSERT)", True),),
        0.25,
    ),
)

# Signals of false positives, applied in order after the boosts.
_PENALTIES: tuple[tuple[re.Pattern[str], float], ...] = (
    (_rx(r"(^|[^\d])0 errors?\b|no errors?\b|errors?:\s*0\b", True), 0.50),
    (_rx(r"(expect|should|assert|must)\s*[\.(].{0,20}(error|throw|fail|reject)", True), 0.40),
    (_rx(r"(caught|rescued|handled|recovered|catching|recovery|graceful)", True), 0.30),
    (
        _rx(
            r"(error[A-Z_]|_error_|error_|\.error\(|\bgetError\b|\bsetError\b|\bisError\b"
            r"|\bhasError\b|\blastError\b|\bonError\b|\bhandleError\b)"
        ),
        0.25,
    ),
    (_rx(r"(succeeded|passed|success|ok).{0,20}(retry|attempt|retrying)", True), 0.40),
    (_rx(r"^\s*(//|#\s|/\*|\*\s|<!--)"), 0.30),
    (_rx(r"[\"'](ERROR|FATAL|WARN)[\"']"), 0.30),
    (_rx(r"(usage:|--help|example:|see also:|documentation)", True), 0.25),
)


@dataclass
class Finding:
    """An error line found in a chunk, with its surrounding context."""

    line_number: int
    raw_message: str
    normalized_msg: str
    severity: str
    confidence_score: float
    pre_context: list[str] = field(default_factory=list)
    post_context: list[str] = field(default_factory=list)
    context_note: str = ""


def detect_severity(line: str) -> str:
    """Return FATAL, ERROR, WARN or INFO for a log line."""
    if _FATAL.search(line):
        return "FATAL"
    if _ERROR.search(line):
        return "ERROR"
    if _WARNING.search(line):
        return "WARN"
    return "INFO"


def calculate_confidence(line: str, severity: str) -> float:
    """Score how likely ``line`` is a real, actionable error, between 0 and 1."""
    score = 0.5
    lower = line.lower()

    if _HIGH_CONFIDENCE.search(line):
        score += 0.25

    if severity == "FATAL":
        score += 0.2
    elif severity == "ERROR":
        score += 0.1

    for patterns, weight in _BOOSTS:
        if any(pattern.search(line) for pattern in patterns):
            score += weight

    for pattern, weight in _PENALTIES:
        if pattern.search(line):
            score -= weight

    if "test" in lower and "passed" in lower:
        score -= 0.30
    if "deprecated" in lower or "deprecation" in lower:
        score -= 0.20
    if "retry" in lower and "failed" not in lower and "error" not in lower:
        score -= 0.15

    return min(1.0, max(0.0, score))


def boost_confidence_for_failed_job(base_confidence: float) -> float:
    """Shrink the gap to 1.0, keeping order: errors in failed jobs matter more."""
    return 1.0 - (1.0 - base_confidence) * _FAILED_JOB_SHRINK


def penalize_confidence_for_passed_job(base_confidence: float) -> float:
    """Scale down confidence for errors seen in jobs that still passed."""
    return base_confidence * _PASSED_JOB_FACTOR


def extract_context(lines: list[str], line_index: int) -> tuple[list[str], list[str], str]:
    """Return the lines before and after ``line_index`` and a truncation note."""
    note = ""

    pre_start = line_index - PRE_CONTEXT_LINES
    if pre_start < 0:
        note = "truncated at chunk start"
        pre_start = 0
    pre_context = list(lines[pre_start:max(line_index, 0)])

    post_end = line_index + POST_CONTEXT_LINES + 1
    if post_end > len(lines):
        note = "truncated at chunk boundaries" if note else "truncated at chunk end"
        post_end = len(lines)
    post_context = list(lines[max(line_index + 1, 0):post_end])

    return pre_context, post_context, note


def analyze_chunk(chunk: LogChunk, normalize: Normalizer | None = None) -> list[Finding]:
    """Find ERROR and FATAL lines in one chunk.

    ``normalize`` turns a trimmed line into the form used for grouping
    duplicates; without it the trimmed line is used as it is. The job's
    ``exit_status`` metadata, when present, raises or lowers confidence.
    """
    lines = chunk.content.split("\n")

    exit_status = (chunk.metadata or {}).get("exit_status")
    job_failed = exit_status is not None and exit_status != "0"
    job_passed = exit_status == "0"

    findings: list[Finding] = []
    for index, line in enumerate(lines):
        trimmed = line.strip()
        if len(trimmed.encode("utf-8")) < 10:
            continue

        severity = detect_severity(trimmed)
        if severity not in ("ERROR", "FATAL"):
            continue

        confidence = calculate_confidence(trimmed, severity)
        if job_failed:
            confidence = boost_confidence_for_failed_job(confidence)
        elif job_passed:
            confidence = penalize_confidence_for_passed_job(confidence)
        if confidence < MIN_CONFIDENCE:
            continue

        pre_context, post_context, note = extract_context(lines, index)
        findings.append(
            Finding(
                line_number=chunk.line_start + index,
                raw_message=line,
                normalized_msg=normalize(trimmed) if normalize is not None else trimmed,
                severity=severity,
                confidence_score=confidence,
                pre_context=pre_context,
                post_context=post_context,
                context_note=note,
            )
        )
    return findings


def calculate_message_hash(normalized: str) -> str:
    """Return the hex SHA-256 of a normalized message."""
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()


def convert_to_triage_card(finding: Finding, chunk: LogChunk, request_id: str) -> TriageCard:
    """Build a triage card for ``finding``; the timestamp is left for the caller."""
    message_hash = calculate_message_hash(finding.normalized_msg)
    metadata = dict(chunk.metadata or {})
    return TriageCard(
        id=f"{chunk.job_id}-{message_hash[:8]}-{finding.line_number}",
        request_id=request_id,
        message_hash=message_hash,
        source="buildkite",
        job_name=chunk.job_name,
        build_url=metadata.get("build_url", ""),
        severity=finding.severity,
        raw_message=finding.raw_message,
        normalized_msg=finding.normalized_msg,
        confidence_score=finding.confidence_score,
        pre_context=list(finding.pre_context),
        post_context=list(finding.post_context),
        context_note=finding.context_note,
        chunk_index=chunk.chunk_index,
        line_in_chunk=finding.line_number - chunk.line_start,
        metadata=metadata,
        timestamp="0",
    )