"""
Pre-dispatch prompt scanning.

A table of compiled pattern detectors rejects prompts that look like they
carry credentials. A rejected prompt never reaches routing, costs nothing and
is never cached.
"""

import re
from dataclasses import dataclass
from typing import List, Optional, Pattern, Protocol, Sequence

from ai_route_guard.core.errors import SecurityViolation
from ai_route_guard.utils.logger import get_logger

logger = get_logger(__name__)


class Validator(Protocol):
    """Anything that can approve or reject prompt text."""

    def validate(self, prompt_text: str) -> bool:
        ...


@dataclass(frozen=True)
class PatternDetector:
    """One named rule of the security table."""
    name: str
    pattern: Pattern[str]
    description: str = ""

    def matches(self, text: str) -> bool:
        return self.pattern.search(text) is not None


def _detector(name: str, regex: str, description: str, flags: int = 0) -> PatternDetector:
    return PatternDetector(name=name, pattern=re.compile(regex, flags), description=description)


# Order matters only for reporting; any match rejects the prompt.
DEFAULT_DETECTORS: Sequence[PatternDetector] = (
    _detector(
        "credential_assignment",
        r"\b(?:api[_\- ]?key|access[_\- ]?key|secret(?:[_\- ]?key)?|client[_\- ]?secret|"
        r"auth[_\- ]?token|access[_\- ]?token|bearer|token|password|passwd|pwd|"
        r"credentials?|private[_\- ]?key)\b[\"']?\s*[:=]\s*[\"']?[^\s\"']{4,}",
        "credential keyword followed by an assigned value",
        re.IGNORECASE,
    ),
    _detector(
        "aws_access_key_id",
        r"\b(?:AKIA|ASIA)[0-9A-Z]{16}\b",
        "AWS access key id",
    ),
    _detector(
        "provider_secret_key",
        r"\b(?:sk|pk|rk)-(?:[A-Za-z0-9]+-)?[A-Za-z0-9]{20,}\b",
        "prefixed API secret key",
    ),
    _detector(
        "private_key_block",
        r"-----BEGIN (?:[A-Z]+ )?PRIVATE KEY-----",
        "PEM private key block",
    ),
    _detector(
        "long_opaque_token",
        r"\b(?=[A-Za-z0-9_\-]*\d)(?=[A-Za-z0-9_\-]*[A-Za-z])[A-Za-z0-9_\-]{32,}\b",
        "long mixed letter/digit token",
    ),
    _detector(
        "payment_card_number",
        r"\b(?:\d{4}[ \-]?){3}\d{4}\b",
        "16-digit payment card grouping",
    ),
)


class SecurityGate:
    """Table-driven ``Validator`` over a list of pattern detectors."""

    def __init__(self, detectors: Optional[Sequence[PatternDetector]] = None):
        self.detectors: List[PatternDetector] = list(
            DEFAULT_DETECTORS if detectors is None else detectors
        )

    def scan(self, prompt_text: str) -> List[str]:
        """Names of every detector matching the text."""
        if not prompt_text:
            return []
        return [d.name for d in self.detectors if d.matches(prompt_text)]

    def validate(self, prompt_text: str) -> bool:
        """True when no detector matches."""
        return not self.scan(prompt_text)

    def enforce(self, prompt_text: str) -> None:
        """Reject the prompt if any detector matches.

        Raises:
            SecurityViolation: With the names of the matching detectors
        """
        matched = self.scan(prompt_text)
        if matched:
            # Only rule names are logged, never the matched content
            logger.warning("Prompt rejected by security gate: %s", ", ".join(matched))
            raise SecurityViolation(
                "Message contains potentially sensitive information.",
                detectors=matched,
            )

    def add_detector(self, detector: PatternDetector) -> None:
        self.detectors.append(detector)
