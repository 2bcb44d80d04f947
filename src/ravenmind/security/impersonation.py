"""Impersonation and prompt-injection detection.

Two layers feed one verdict:

1. Pattern detection over the message text (configured suspicious patterns
   plus built-in injection and role-claim patterns).
2. Name similarity: display name and username compared against protected
   role names by Levenshtein ratio, after folding Unicode homoglyphs.

Each threat carries a severity; the confidence is
``min(0.5 * max_weight + 0.5 * mean_weight, 1.0)``.
"""

import logging
import re
from enum import Enum
from typing import ClassVar

from pydantic import BaseModel, Field

from ravenmind.config.schema import ImpersonationConfig

logger = logging.getLogger(__name__)

PROTECTED_NAMES = (
    "owner",
    "admin",
    "administrator",
    "moderator",
    "system",
    "bot",
    "discord",
    "staff",
)

# Lookalike characters folded to ASCII; zero-width characters removed
HOMOGLYPHS: dict[str, str] = {
    "а": "a",  # Cyrillic
    "е": "e",
    "і": "i",
    "о": "o",
    "р": "p",
    "с": "c",
    "х": "x",
    "у": "y",
    "ω": "w",  # Greek
    "ν": "v",
    "\U0001d41a": "a",  # Mathematical bold
    "\U0001d41b": "b",
    "\U0001d428": "o",
    "\u200b": "",
    "\u200c": "",
    "\u200d": "",
    "\ufeff": "",
}

_ZERO_WIDTH = re.compile(r"[\u200b-\u200d\ufeff]")

DETECTION_THRESHOLD = 0.3


class Severity(str, Enum):
    """Threat severity."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


SEVERITY_WEIGHTS: dict[Severity, float] = {
    Severity.LOW: 0.2,
    Severity.MEDIUM: 0.4,
    Severity.HIGH: 0.7,
    Severity.CRITICAL: 1.0,
}


class ThreatDetail(BaseModel):
    """A single detected threat."""

    type: str  # "pattern", "role_claim" or "name_similarity"
    description: str
    matched: str
    severity: Severity


class DetectionResult(BaseModel):
    """Verdict for one message."""

    detected: bool = False
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    threats: list[ThreatDetail] = Field(default_factory=list)
    sanitized_content: str | None = None


def levenshtein_distance(a: str, b: str) -> int:
    """Edit distance between two strings."""
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, 1):
        current = [i]
        for j, char_b in enumerate(b, 1):
            cost = 0 if char_a == char_b else 1
            current.append(min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost))
        previous = current
    return previous[-1]


def string_similarity(a: str, b: str) -> float:
    """Similarity in [0, 1] as 1 - distance / longer length (case-insensitive)."""
    s1 = a.lower().strip()
    s2 = b.lower().strip()
    if s1 == s2:
        return 1.0
    if not s1 or not s2:
        return 0.0
    return 1.0 - levenshtein_distance(s1, s2) / max(len(s1), len(s2))


def normalize_homoglyphs(text: str) -> str:
    result = text.lower()
    for glyph, replacement in HOMOGLYPHS.items():
        result = result.replace(glyph, replacement)
    return result


def severity_for_pattern(pattern: str) -> Severity:
    """Grade a configured pattern by what it targets."""
    source = pattern.lower()
    if "owner" in source or "admin" in source or "system" in source:
        return Severity.CRITICAL
    if "ignore" in source or "override" in source or "instructions" in source:
        return Severity.HIGH
    if "grant" in source or "access" in source:
        return Severity.MEDIUM
    return Severity.LOW


def quick_injection_check(content: str) -> bool:
    """Fast check for the most common injection phrasings."""
    return any(p.search(content) for p in ImpersonationDetector.QUICK_PATTERNS)


class ImpersonationDetector:
    """Scores messages for impersonation and injection attempts."""

    # Prompt-injection phrasings checked in addition to the configured patterns
    INJECTION_PATTERNS: ClassVar[list[tuple[re.Pattern, Severity]]] = [
        (re.compile(r"(?i)disregard\s+(all\s+)?(prior|previous|above)\s+instructions"), Severity.HIGH),
        (re.compile(r"(?i)forget\s+(all\s+)?(your|previous)\s+instructions"), Severity.HIGH),
        (re.compile(r"(?i)reveal\s+(your\s+)?system\s+prompt"), Severity.HIGH),
        (re.compile(r"(?i)<\|im_start\|>\s*system"), Severity.CRITICAL),
        (re.compile(r"(?i)\bjailbreak\b"), Severity.MEDIUM),
        (re.compile(r"(?i)developer\s+mode\s+(enabled|on)"), Severity.MEDIUM),
    ]

    ROLE_CLAIM_PATTERNS: ClassVar[list[re.Pattern]] = [
        re.compile(r"(?i)\bi\s*(?:am|'m)\s+(?:the\s+|your\s+)?(owner|admin(?:istrator)?|developer|creator)\b"),
        re.compile(r"(?i)\bthis\s+is\s+(?:the\s+|your\s+)?(owner|admin(?:istrator)?|developer)\s+speaking\b"),
    ]

    QUICK_PATTERNS: ClassVar[list[re.Pattern]] = [
        re.compile(r"(?i)\[system\]"),
        re.compile(r"(?i)\[admin\]"),
        re.compile(r"(?i)ignore\s+(all\s+)?previous"),
        re.compile(r"(?i)you\s+are\s+(now\s+)?the\s+owner"),
    ]

    def __init__(self, config: ImpersonationConfig, protected_names: tuple[str, ...] = PROTECTED_NAMES):
        self.config = config
        self.protected_names = protected_names
        self._patterns = [
            (re.compile(p, re.IGNORECASE), severity_for_pattern(p)) for p in config.suspicious_patterns
        ]

    def _detect_patterns(self, content: str) -> list[ThreatDetail]:
        threats: list[ThreatDetail] = []
        for pattern, severity in self._patterns + self.INJECTION_PATTERNS:
            match = pattern.search(content)
            if match:
                threats.append(
                    ThreatDetail(
                        type="pattern",
                        description="Suspicious pattern detected",
                        matched=match.group(0),
                        severity=severity,
                    )
                )
        for pattern in self.ROLE_CLAIM_PATTERNS:
            match = pattern.search(content)
            if match:
                threats.append(
                    ThreatDetail(
                        type="role_claim",
                        description=f"Claims to be {match.group(1).lower()}",
                        matched=match.group(0),
                        severity=Severity.HIGH,
                    )
                )
        return threats

    def _detect_name_similarity(self, display_name: str, username: str) -> list[ThreatDetail]:
        threats: list[ThreatDetail] = []
        threshold = self.config.similarity_threshold

        for protected in self.protected_names:
            for label, name in (("Display name", display_name), ("Username", username)):
                similarity = string_similarity(name, protected)
                if similarity >= threshold:
                    threats.append(
                        ThreatDetail(
                            type="name_similarity",
                            description=f'{label} similar to protected name "{protected}"',
                            matched=name,
                            severity=Severity.CRITICAL if similarity >= 0.9 else Severity.HIGH,
                        )
                    )

        normalized = normalize_homoglyphs(display_name)
        if normalized != display_name.lower():
            for protected in self.protected_names:
                if string_similarity(normalized, protected) >= threshold:
                    threats.append(
                        ThreatDetail(
                            type="name_similarity",
                            description="Unicode homoglyph attack detected",
                            matched=display_name,
                            severity=Severity.CRITICAL,
                        )
                    )
                    break

        return threats

    def sanitize_content(self, content: str) -> str:
        """Mark suspicious spans and strip zero-width characters."""
        sanitized = content
        for pattern, _ in self._patterns:
            sanitized = pattern.sub(lambda m: f"[BLOCKED: {m.group(0)}]", sanitized)
        return _ZERO_WIDTH.sub("", sanitized)

    def detect(self, content: str, display_name: str = "", username: str = "") -> DetectionResult:
        """Score a message and its author's names.

        Args:
            content: Message text
            display_name: Author's display name
            username: Author's account name

        Returns:
            DetectionResult; threat details are for logs, never for users
        """
        if not self.config.enabled:
            return DetectionResult()

        threats = self._detect_patterns(content)
        threats.extend(self._detect_name_similarity(display_name, username))

        confidence = 0.0
        if threats:
            weights = [SEVERITY_WEIGHTS[t.severity] for t in threats]
            confidence = min(0.5 * max(weights) + 0.5 * (sum(weights) / len(weights)), 1.0)

        detected = bool(threats) and confidence >= DETECTION_THRESHOLD
        if detected:
            logger.warning(
                "Impersonation attempt detected for %s: %s",
                username or display_name,
                ", ".join(t.description for t in threats),
            )

        return DetectionResult(
            detected=detected,
            confidence=confidence,
            threats=threats,
            sanitized_content=self.sanitize_content(content) if detected else None,
        )

    def is_impersonating_role(self, display_name: str, username: str) -> bool:
        threshold = self.config.similarity_threshold
        return any(
            string_similarity(display_name, p) >= threshold or string_similarity(username, p) >= threshold
            for p in self.protected_names
        )
