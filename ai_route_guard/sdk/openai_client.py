"""
OpenAI-compatible provider adapter.

Talks to any endpoint speaking the OpenAI chat completions API. The request
timeout is enforced by the SDK on each call.
"""

from typing import Any, Dict, List, Optional

from openai import OpenAI

from ai_route_guard.core.providers import Provider
from .base import SCHEMA_VERSION, GenerateRequest, ProviderAdapter, ProviderReply

SYSTEM_PROMPT = "You are a coding assistant embedded in a code editor."


class OpenAIAdapter(ProviderAdapter):
    """Real remote adapter backed by the ``openai`` SDK.

    Failures are loud: API errors and timeouts propagate unchanged so the
    fallback chain can move on to the next provider.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        client: Optional[OpenAI] = None,
    ):
        """Initialize the adapter.

        Args:
            api_key: API key (defaults to the OPENAI_API_KEY environment variable)
            base_url: Endpoint override for OpenAI-compatible gateways
            client: Pre-built client, mainly for tests
        """
        self.client = client or OpenAI(api_key=api_key, base_url=base_url)

    def generate(self, request: GenerateRequest, provider: Provider) -> ProviderReply:
        """Create a chat completion for the request.

        Raises:
            ValueError: If the response has no choices
            OpenAI API errors: Propagated without modification
        """
        response = self.client.chat.completions.create(
            model=request.model,
            messages=self._build_messages(request),
            temperature=request.temperature,
            max_tokens=request.max_tokens,
            timeout=request.timeout_seconds,
        )

        if not response.choices:
            raise ValueError("OpenAI response contained no choices")

        content = response.choices[0].message.content or ""
        usage = response.usage
        return ProviderReply.from_payload({
            "schema_version": SCHEMA_VERSION,
            "content": content,
            "model": response.model or request.model,
            "usage": {
                "prompt_tokens": usage.prompt_tokens if usage else None,
                "completion_tokens": usage.completion_tokens if usage else None,
            },
        })

    @staticmethod
    def _build_messages(request: GenerateRequest) -> List[Dict[str, Any]]:
        system = SYSTEM_PROMPT
        if request.project_type != "unknown" or request.project_root:
            system += f"\nProject Type: {request.project_type}\nProject Path: {request.project_root}"
        return [
            {"role": "system", "content": system},
            {"role": "user", "content": request.prompt},
        ]
