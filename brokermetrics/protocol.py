"""Protocol message shapes for the HTTP surface (health, topics, consumer-lag statistics)."""

from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


# Error codes (use with error_response)
ERROR_BAD_REQUEST = "BAD_REQUEST"
ERROR_TOPIC_NOT_FOUND = "TOPIC_NOT_FOUND"
ERROR_TOPIC_EXISTS = "TOPIC_EXISTS"
ERROR_INTERNAL = "INTERNAL"


def ts() -> str:
    """Current UTC timestamp in ISO 8601 (e.g. 2025-08-25T10:00:00Z)."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def error_response(code: str, message: str, **fields: Any) -> Dict[str, Any]:
    out: Dict[str, Any] = {"error": {"code": code, "message": message}, "ts": ts()}
    out.update(fields)
    return out


# ---- Health ----

@dataclass
class HealthResponse:
    """Response for GET /health."""
    uptime_sec: float
    topics: int
    tracked_items: int
    counters: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "uptime_sec": int(self.uptime_sec),
            "topics": self.topics,
            "tracked_items": self.tracked_items,
            "counters": self.counters,
        }


# ---- Consumer-lag statistics ----

@dataclass
class StatisticsMessagesRequest:
    """Inbound query; from_time/to_time are epoch ms, <= 0 meaning unbounded (current bounds)."""
    topic: str
    consumer_group: str
    from_time: int = 0
    to_time: int = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StatisticsMessagesRequest":
        return cls(
            topic=str(data["topic"]),
            consumer_group=str(data["consumer_group"]),
            from_time=int(data.get("from_time") or 0),
            to_time=int(data.get("to_time") or 0),
        )


@dataclass
class StatisticsMessagesResult:
    """Delayed, not-yet-consumed and total messages of a topic for one consumer group."""
    delay_messages: int = 0
    active_messages: int = 0
    total_messages: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# ---- Topics ----

@dataclass
class TopicCreatedResponse:
    """Response for POST /topics (201 Created)."""
    status: str = "created"
    topic: str = ""
    read_queue_nums: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def topics_list_response(topics: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Response for GET /topics."""
    return {"topics": topics}


def counters_response(counters: Dict[str, Dict[str, float]]) -> Dict[str, Any]:
    """Response for GET /stats/counters."""
    return {"counters": counters}


def offset_committed_response(consumer_group: str, topic: str, queue_id: int, offset: int) -> Dict[str, Any]:
    return {
        "status": "committed",
        "consumer_group": consumer_group,
        "topic": topic,
        "queue_id": queue_id,
        "offset": offset,
    }


def parse_time(value: Optional[int]) -> int:
    """Normalize an optional epoch-ms bound; None and negatives mean unbounded (0)."""
    if value is None or value <= 0:
        return 0
    return int(value)
