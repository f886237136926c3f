"""Creating analysis requests and loading cached triage cards."""

from __future__ import annotations

import json
import os
import secrets
from datetime import datetime, timezone

from destill.contracts import AnalysisRequest, TriageCard

REQUEST_ID_FORMAT = "req-YYYYMMDDTHHmmss-XXXXXXXX"
"""Shape of generated request ids: compact UTC timestamp and 8 random hex digits."""


def generate_request_id(now: datetime | None = None) -> str:
    """Return a unique request id that sorts by creation time.

    ``now`` defaults to the current time; a naive value is taken as UTC.
    """
    if now is None:
        moment = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        moment = now.replace(tzinfo=timezone.utc)
    else:
        moment = now.astimezone(timezone.utc)
    return f"req-{moment.strftime('%Y%m%dT%H%M%S')}-{secrets.token_hex(4)}"


def build_analysis_request(build_url: str) -> tuple[str, bytes]:
    """Create a request for ``build_url``; return its id and JSON payload."""
    request_id = generate_request_id()
    payload = AnalysisRequest(request_id=request_id, build_url=build_url)
    return request_id, payload.to_json()


def sort_cards_by_priority(cards: list[TriageCard]) -> None:
    """Sort in place by confidence, then recurrence count, both descending."""
    cards.sort(key=lambda card: (-card.confidence_score, -card.recurrence_count))


def load_cached_cards(cache_file: str | os.PathLike[str] | None) -> list[TriageCard]:
    """Read triage cards saved as a JSON array, sorted by priority.

    An empty path yields no cards. Raises OSError if the file cannot be read
    and ValueError if it does not hold a list of cards.
    """
    if not cache_file:
        return []
    with open(cache_file, encoding="utf-8") as handle:
        text = handle.read()
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ValueError(f"failed to unmarshal cache: {exc}") from exc
    if data is None:
        data = []
    if not isinstance(data, list) or not all(isinstance(item, dict) for item in data):
        raise ValueError("failed to unmarshal cache: expected a list of cards")
    cards = [TriageCard.from_dict(item) for item in data]
    sort_cards_by_priority(cards)
    return cards