"""Agent that turns raw log chunks into published triage cards."""

from __future__ import annotations

import threading
from datetime import datetime

from destill.analyzer import Normalizer, analyze_chunk, convert_to_triage_card
from destill.broker import Broker, Message, Subscription
from destill.contracts import TOPIC_ANALYSIS_FINDINGS, TOPIC_LOGS_RAW, LogChunk, TriageCard
from destill.logger import Logger

GROUP_ID = "destill-analyze"
"""Consumer group the agent subscribes with."""


class AnalyzeAgent:
    """Consumes log chunks and publishes one triage card per finding."""

    def __init__(
        self,
        broker: Broker,
        logger: Logger,
        normalize: Normalizer | None = None,
        poll_interval: float = 0.1,
    ) -> None:
        self.broker = broker
        self.logger = logger
        self.normalize = normalize
        self.poll_interval = poll_interval

    def run(self, stop_event: threading.Event | None = None) -> None:
        """Subscribe to the raw-logs topic and process chunks until stopped."""
        self.logger.info("[AnalyzeAgent] Starting...")
        subscription = self.broker.subscribe(TOPIC_LOGS_RAW, GROUP_ID)
        self.run_with_subscription(subscription, stop_event)

    def run_with_subscription(
        self,
        subscription: Subscription,
        stop_event: threading.Event | None = None,
    ) -> None:
        """Process chunks from an existing subscription.

        Returns when ``stop_event`` is set or the subscription is closed.
        Errors from single chunks are logged and do not stop the loop.
        """
        stop = stop_event if stop_event is not None else threading.Event()
        self.logger.info("[AnalyzeAgent] Listening for log chunks on '%s' topic...", TOPIC_LOGS_RAW)

        while True:
            if stop.is_set():
                self.logger.info("[AnalyzeAgent] Stop requested, shutting down")
                return
            try:
                message = subscription.get(timeout=self.poll_interval)
            except TimeoutError:
                continue
            if message is None:
                self.logger.info("[AnalyzeAgent] Message channel closed, shutting down")
                return
            try:
                self.process_chunk(message)
            except ValueError as exc:
                self.logger.error("[AnalyzeAgent] Error processing chunk: %v", exc)

    def process_chunk(self, message: Message) -> list[TriageCard]:
        """Analyze one chunk and publish its findings; return the cards published.

        Raises ValueError when the message does not hold a log chunk.
        """
        try:
            chunk = LogChunk.from_json(message.value)
        except (ValueError, TypeError, AttributeError) as exc:
            raise ValueError(f"failed to unmarshal chunk: {exc}") from exc

        position = (chunk.chunk_index + 1, chunk.total_chunks)
        self.logger.debug(
            "[AnalyzeAgent] Processing chunk %d/%d for job '%s'", *position, chunk.job_name
        )

        findings = analyze_chunk(chunk, self.normalize)
        if not findings:
            self.logger.debug("[AnalyzeAgent] No findings in chunk %d/%d", *position)
            return []

        self.logger.info(
            "[AnalyzeAgent] Found %d issues in chunk %d/%d of job '%s'",
            len(findings), *position, chunk.job_name,
        )

        published: list[TriageCard] = []
        for finding in findings:
            card = convert_to_triage_card(finding, chunk, chunk.request_id)
            card.timestamp = datetime.now().astimezone().isoformat(timespec="seconds")
            try:
                self.broker.publish(TOPIC_ANALYSIS_FINDINGS, chunk.request_id, card.to_json())
            except Exception as exc:  # one failed publish must not stop the rest
                self.logger.error("[AnalyzeAgent] Failed to publish finding: %v", exc)
                continue
            self.logger.debug(
                "[AnalyzeAgent] Published finding: %s (confidence: %.2f)",
                finding.severity, finding.confidence_score,
            )
            published.append(card)
        return published