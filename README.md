# destill

Triage for CI/CD build logs. `destill` splits job logs into overlapping
chunks, scans each chunk for the lines most likely to explain a failure, and
turns them into ranked, deduplicated findings ("triage cards").

It is a library: there is no command to run.

## Install

```
pip install destill
```

To run the test suite:

```
pip install "destill[test]"
pytest
```

## Modules

- `destill.buildkite`: `BuildkiteClient` fetches builds (`get_build`), job
  logs (`get_job_log`, `get_job_log_by_url`), artifact lists
  (`get_job_artifacts`, empty on HTTP 404) and artifact contents
  (`download_artifact`). Failed calls raise `BuildkiteError`, which carries
  `status_code` for HTTP errors. `parse_build_url` returns
  `(org, pipeline, number)` from a `https://buildkite.com/{org}/{pipeline}/builds/{number}`
  URL and raises `ValueError` for anything else.
- `destill.github`: `GitHubClient` fetches workflow runs, all jobs of a run
  (following pagination, 100 per page), job logs (through the redirect the
  API returns), artifact lists, and artifact archives unpacked into a
  `{file name: bytes}` dict. HTTP failures raise `GitHubAPIError`.
  `parse_workflow_run_url` returns `(owner, repo, run_id)` and raises
  `InvalidURLError` for other URLs. `map_github_status` maps a status and
  conclusion to `passed`, `failed`, `canceled`, or the value unchanged.
- `destill.chunker`: `chunk_log` splits a log into `LogChunk`s of about
  500 KB (`TARGET_CHUNK_SIZE`). Each chunk after the first repeats the last
  50 lines (`CONTEXT_OVERLAP`) of the chunk before it. Line numbers are
  1-based and inclusive. `format_chunk_info` gives a one-line summary such as
  `Chunk 1/1: lines 1-2 (11 bytes)`.
- `destill.analyzer`: `analyze_chunk` finds ERROR and FATAL lines and scores
  each one with `calculate_confidence`. Stack traces, out-of-memory and crash
  messages, build-tool, Docker and Kubernetes errors, exit codes, and
  compile, permission, connection and assertion failures score higher.
  Success summaries ("0 errors"), test expectations, handled errors,
  variable names, comments, quoted log levels, help text and deprecation
  notices score lower. When the chunk's metadata has `exit_status`, findings
  from a failed job are boosted and those from a passed job are scaled down.
  Findings below 0.5 are dropped. Each finding keeps up to 15 lines before and
  30 after, taken from its own chunk. An optional `normalize` callable sets the
  message used for grouping; without it the trimmed line is used.
  `convert_to_triage_card` turns a `Finding` into a `TriageCard` whose
  `message_hash` is the SHA-256 of the normalized message.
- `destill.contracts`: the message types `LogChunk`, `TriageCard`,
  `AnalysisRequest`, `ProgressUpdate` and `RequestStatus`, with JSON
  round-tripping, and the topic names `TOPIC_LOGS_RAW`,
  `TOPIC_ANALYSIS_FINDINGS`, `TOPIC_REQUESTS` and `TOPIC_PROGRESS`.
  `deduplicate_cards` keeps the first card for each message hash and counts
  repeats in its `recurrence_count`.
- `destill.broker`: `InMemoryBroker` is a thread-safe fan-out
  publish/subscribe broker. `subscribe` returns a `Subscription` with a
  buffer of 100 messages. When the buffer is full, new messages are dropped
  for that subscriber. `Subscription.get(timeout)` raises `TimeoutError` when
  nothing arrives and returns `None` once the broker is closed and the buffer
  is drained. Iterating a subscription yields messages until then. Using a
  closed broker raises `BrokerClosedError`.
- `destill.analyze_agent`: `AnalyzeAgent` reads log chunks from the
  `destill.logs.raw` topic and publishes one triage card per finding to
  `destill.analysis.findings`. `run` and `run_with_subscription` loop until
  a `threading.Event` is set or the subscription closes. `process_chunk`
  handles one message and returns the cards it published.
- `destill.submission`: `generate_request_id` (`req-YYYYMMDDTHHmmss-xxxxxxxx`),
  `build_analysis_request`, `load_cached_cards` (reads a JSON array of cards
  and sorts it) and `sort_cards_by_priority` (confidence, then recurrence
  count, both descending).
- `destill.config`: `load_from_env` reads `BUILDKITE_API_TOKEN` (required),
  `REDPANDA_BROKERS` (comma-separated) and `POSTGRES_DSN`, which is required
  whenever brokers are set. It raises `ConfigError` when these rules are not
  met.
- `destill.logger`: `ConsoleLogger` writes info and debug lines to stdout and
  errors to stderr. `SilentLogger` discards everything.

## Example

```python
from destill.analyzer import analyze_chunk, convert_to_triage_card
from destill.chunker import chunk_log
from destill.contracts import deduplicate_cards
from destill.submission import sort_cards_by_priority

with open("job.log", encoding="utf-8") as handle:
    log_text = handle.read()

chunks = chunk_log(log_text, "req-1", "build-1", "unit tests", "job-1",
                   {"exit_status": "1"})

cards = [
    convert_to_triage_card(finding, chunk, chunk.request_id)
    for chunk in chunks
    for finding in analyze_chunk(chunk)
]
cards = deduplicate_cards(cards)
sort_cards_by_priority(cards)

for card in cards[:5]:
    print(f"{card.confidence_score:.2f} {card.severity} {card.raw_message}")
```

Running the agent on the in-memory broker:

```python
import threading

from destill.analyze_agent import AnalyzeAgent
from destill.broker import InMemoryBroker
from destill.contracts import TOPIC_ANALYSIS_FINDINGS, TOPIC_LOGS_RAW
from destill.logger import SilentLogger

with InMemoryBroker() as broker:
    findings = broker.subscribe(TOPIC_ANALYSIS_FINDINGS, "viewer")
    stop = threading.Event()
    agent = AnalyzeAgent(broker, SilentLogger())
    worker = threading.Thread(target=agent.run, args=(stop,))
    worker.start()
    # publish LogChunk.to_json() payloads to TOPIC_LOGS_RAW, then read
    # TriageCard.from_json(findings.get(timeout=1).value)
    stop.set()
    worker.join()
```

## What it does not do

- There is no command-line program, terminal UI or long-running service.
  The pieces above have to be wired together in your own code.
- Nothing turns an `AnalysisRequest` into published log chunks. You fetch
  logs with the clients and split them with `chunk_log` yourself.
- The only broker is the in-memory one. `REDPANDA_BROKERS` and
  `POSTGRES_DSN` are read and checked by `load_from_env`, but nothing
  connects to a Kafka-compatible broker or to a database, and findings are
  not stored.
- No message normalizer is included. Pass your own `normalize` callable to
  group findings that differ only in numbers, timestamps or ids.
- Triage cards always carry `source="buildkite"`, including those built from
  GitHub Actions logs.