"""
Request, response and session records.

Requests and responses are immutable once created; responses may be shared
between callers through the cache.
"""

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .token_counter import TokenUsage


def new_id(prefix: str) -> str:
    """Unique id such as ``req_3f2a...``."""
    return f"{prefix}_{uuid.uuid4().hex[:16]}"


@dataclass(frozen=True)
class ProjectContext:
    """Workspace the prompt was written in."""
    root_path: str = ""
    project_type: str = "unknown"
    open_files: Tuple[str, ...] = ()
    dependencies: Tuple[str, ...] = ()


@dataclass(frozen=True)
class SecurityContext:
    """Caller identity and compliance posture attached to a request."""
    session_id: str
    user_id: str
    permissions: Tuple[str, ...] = ()
    compliance_level: str = "basic"
    auditing_enabled: bool = True


@dataclass(frozen=True)
class AiRequest:
    """A single prompt dispatched to a provider."""
    id: str
    prompt: str
    session_id: str
    timestamp: datetime
    context: Optional[ProjectContext] = None
    provider_id: Optional[str] = None
    security_context: Optional[SecurityContext] = None
    model: Optional[str] = None
    max_tokens: int = 4000
    temperature: float = 0.7
    timeout_seconds: float = 30.0

    def __post_init__(self):
        if self.max_tokens <= 0:
            raise ValueError("max_tokens must be > 0")
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")


@dataclass(frozen=True)
class AiResponse:
    """A successful provider reply.

    ``provider_id`` names the provider that actually answered, which may
    differ from the one routing chose if the fallback chain was used.
    """
    id: str
    request_id: str
    provider_id: str
    content: str
    confidence: float
    cost: float
    response_time_ms: float
    timestamp: datetime
    token_usage: TokenUsage
    quality_score: float = 0.0
    model: str = ""
    from_cache: bool = False

    def __post_init__(self):
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError("confidence must be between 0 and 1")
        if self.cost < 0:
            raise ValueError("cost cannot be negative")

    def as_cache_hit(self) -> "AiResponse":
        return replace(self, from_cache=True)


class MessageType(Enum):
    USER = "user"
    ASSISTANT = "assistant"


@dataclass
class ChatMessage:
    type: MessageType
    content: str
    timestamp: datetime
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ChatSession:
    """Conversation owned by one caller; at most one send in flight."""
    id: str
    name: str
    context: ProjectContext
    created_at: datetime
    messages: List[ChatMessage] = field(default_factory=list)

    @property
    def total_cost(self) -> float:
        return sum(m.metadata.get("cost", 0.0) for m in self.messages)

    def to_export_dict(self) -> Dict[str, Any]:
        """Serializable view used by conversation export."""
        return {
            "sessionId": self.id,
            "name": self.name,
            "createdAt": self.created_at.isoformat(),
            "messages": [
                {
                    "type": m.type.value,
                    "content": m.content,
                    "timestamp": m.timestamp.isoformat(),
                    "metadata": m.metadata,
                }
                for m in self.messages
            ],
            "analytics": {
                "messageCount": len(self.messages),
                "totalCost": self.total_cost,
            },
        }
