"""
Provider adapter interface and the versioned schema at the remote-call edge.

Adapters receive a ``GenerateRequest`` and must return a ``ProviderReply``;
loosely-typed backend payloads are validated and converted here and never
reach the routing core.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

from ai_route_guard.core.models import AiRequest
from ai_route_guard.core.providers import Provider

SCHEMA_VERSION = "1"


@dataclass(frozen=True)
class GenerateRequest:
    """Request payload for one provider call."""
    request_id: str
    provider_id: str
    model: str
    prompt: str
    max_tokens: int
    temperature: float
    timeout_seconds: float
    project_type: str = "unknown"
    project_root: str = ""

    @classmethod
    def from_request(cls, request: AiRequest, provider: Provider) -> "GenerateRequest":
        context = request.context
        return cls(
            request_id=request.id,
            provider_id=provider.id,
            model=request.model or provider.model_name,
            prompt=request.prompt,
            max_tokens=request.max_tokens,
            temperature=request.temperature,
            timeout_seconds=request.timeout_seconds,
            project_type=context.project_type if context else "unknown",
            project_root=context.root_path if context else "",
        )

    def to_payload(self) -> Dict[str, Any]:
        return {
            "schema_version": SCHEMA_VERSION,
            "request_id": self.request_id,
            "provider": self.provider_id,
            "model": self.model,
            "prompt": self.prompt,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "timeout_seconds": self.timeout_seconds,
            "context": {
                "project_type": self.project_type,
                "root_path": self.project_root,
            },
        }


@dataclass(frozen=True)
class ProviderReply:
    """Validated provider output.

    Token counts and cost are optional; the engine estimates whatever the
    provider does not report.
    """
    content: str
    model: str = ""
    prompt_tokens: Optional[int] = None
    completion_tokens: Optional[int] = None
    cost: Optional[float] = None
    confidence: float = 0.9
    quality_score: float = 0.85

    def __post_init__(self):
        if not isinstance(self.content, str):
            raise ValueError("reply content must be a string")
        if self.cost is not None and self.cost < 0:
            raise ValueError("reply cost cannot be negative")
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError("reply confidence must be between 0 and 1")
        for name in ("prompt_tokens", "completion_tokens"):
            value = getattr(self, name)
            if value is not None and value < 0:
                raise ValueError(f"{name} cannot be negative")

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "ProviderReply":
        """Validate and convert a raw backend payload.

        Raises:
            ValueError: If the schema version is unsupported or fields are invalid
        """
        if not isinstance(payload, dict):
            raise ValueError("reply payload must be a mapping")
        version = str(payload.get("schema_version", ""))
        if version != SCHEMA_VERSION:
            raise ValueError(f"Unsupported reply schema version: {version!r}")
        if "content" not in payload:
            raise ValueError("reply payload missing 'content'")
        usage = payload.get("usage") or {}
        return cls(
            content=payload["content"],
            model=payload.get("model", ""),
            prompt_tokens=usage.get("prompt_tokens"),
            completion_tokens=usage.get("completion_tokens"),
            cost=payload.get("cost"),
            confidence=float(payload.get("confidence", 0.9)),
            quality_score=float(payload.get("quality_score", 0.85)),
        )

    def to_payload(self) -> Dict[str, Any]:
        return {
            "schema_version": SCHEMA_VERSION,
            "content": self.content,
            "model": self.model,
            "usage": {
                "prompt_tokens": self.prompt_tokens,
                "completion_tokens": self.completion_tokens,
            },
            "cost": self.cost,
            "confidence": self.confidence,
            "quality_score": self.quality_score,
        }


class ProviderAdapter(ABC):
    """The ``generate`` collaborator: one remote model invocation.

    Implementations must honour ``request.timeout_seconds`` on their own
    remote call and raise on any failure.
    """

    @abstractmethod
    def generate(self, request: GenerateRequest, provider: Provider) -> ProviderReply:
        """Invoke the provider and return its validated reply."""
