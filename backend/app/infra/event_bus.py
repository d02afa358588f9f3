from __future__ import annotations

import json
import uuid
from datetime import datetime, timezone
from typing import Any

import redis


class RedisEventBus:
    def __init__(self, url: str = "redis://localhost:6379"):
        self.client = redis.Redis.from_url(url, decode_responses=True)
        self.stream_key = "research_swarm:activity"

    def publish(self, event_type: str, payload: dict[str, Any], mission_id: str | None = None) -> str:
        event_id = str(uuid.uuid4())
        event = {
            "event_id": event_id,
            "type": event_type,
            "payload": json.dumps(payload, default=str),
            "mission_id": str(mission_id or ""),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        self.client.xadd(self.stream_key, event)
        return event_id

    def pending_count(self) -> int:
        try:
            return int(self.client.xlen(self.stream_key))
        except redis.RedisError:
            return 0
