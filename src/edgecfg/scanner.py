"""
Secret scanner for edgecfg.

Finds likely credentials in a piece of text using two independent passes:

- Pattern pass: every active (high confidence) detector regex is run over
  the whole text; each match is a hit labelled with the detector name.
- Entropy pass: the text is split into tokens on whitespace and
  ``:/.,&#'"=;``; a token whose Shannon entropy is strictly greater than
  the configured threshold is a hit labelled ``High Entropy of <value>``.

Scanning never raises and never modifies its input. Malformed custom
detectors are rejected when the configuration is loaded, not per call.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from typing import Any

from .config import DEFAULT_ENTROPY_THRESHOLD, SecretsMode
from .errors import ConfigError

HIGH = "high"
LOW = "low"

# Splits text into candidate tokens for the entropy pass
TOKEN_DELIMITERS = re.compile(r"[\s:/.,&#'\"=;]+")


@dataclass
class Detector:
    """A named pattern for a known secret format."""

    name: str
    pattern: re.Pattern[str]
    confidence: str = HIGH

    @property
    def active(self) -> bool:
        return self.confidence == HIGH


@dataclass
class Hit:
    detector_type: str
    secret: str


# Built-in catalog. Patterns with a "secret" group only report that part of
# the match, so that replacing the hit keeps the surrounding assignment.
DETECTORS: list[Detector] = [
    # AWS
    Detector("AWS Access Key ID", re.compile(r"\b((?:AKIA|ASIA)[0-9A-Z]{16})\b")),
    Detector(
        "AWS Secret Access Key",
        re.compile(
            r"(?i)aws[_\-]?secret[_\-]?(?:access[_\-]?)?key['\"]?\s*[:=]\s*['\"]?(?P<secret>[A-Za-z0-9/+=]{40})"
        ),
    ),
    # GitHub / GitLab
    Detector("GitHub Personal Access Token", re.compile(r"\bghp_[A-Za-z0-9]{36}\b")),
    Detector("GitHub OAuth Access Token", re.compile(r"\bgho_[A-Za-z0-9]{36}\b")),
    Detector("GitHub App Token", re.compile(r"\b(?:ghu|ghs)_[A-Za-z0-9]{36}\b")),
    Detector("GitHub Refresh Token", re.compile(r"\bghr_[A-Za-z0-9]{36}\b")),
    Detector("GitLab Personal Access Token", re.compile(r"\bglpat-[A-Za-z0-9\-_]{20,}\b")),
    # Slack
    Detector("Slack Token", re.compile(r"\bxox[baprs]-[0-9A-Za-z\-]{10,}\b")),
    Detector(
        "Slack Webhook",
        re.compile(r"https://hooks\.slack\.com/services/T[A-Z0-9]+/B[A-Z0-9]+/[A-Za-z0-9]+"),
    ),
    # Payment and messaging providers
    Detector("Stripe Secret Key", re.compile(r"\b(?:sk|rk)_live_[A-Za-z0-9]{24,}\b")),
    Detector("Stripe Test Key", re.compile(r"\bsk_test_[A-Za-z0-9]{24,}\b")),
    Detector("Twilio API Key", re.compile(r"\bSK[0-9a-fA-F]{32}\b")),
    Detector("SendGrid API Key", re.compile(r"\bSG\.[A-Za-z0-9\-_]{22,}\.[A-Za-z0-9\-_]{22,}\b")),
    Detector("Mailchimp API Key", re.compile(r"\b[a-f0-9]{32}-us[0-9]{1,2}\b")),
    # Google
    Detector("Google API Key", re.compile(r"\bAIza[0-9A-Za-z\-_]{35}\b")),
    Detector(
        "Google OAuth Client ID",
        re.compile(r"\b[0-9]+-[a-z0-9_]{32}\.apps\.googleusercontent\.com\b"),
    ),
    # Package registries
    Detector("npm Access Token", re.compile(r"\bnpm_[A-Za-z0-9]{36}\b")),
    Detector("PyPI Upload Token", re.compile(r"\bpypi-[A-Za-z0-9\-_]{50,}\b")),
    # Generic formats
    Detector(
        "Private Key",
        re.compile(
            r"-----BEGIN\s+(?:RSA\s+|DSA\s+|EC\s+|OPENSSH\s+)?PRIVATE\s+KEY-----[\s\S]*?"
            r"-----END\s+(?:RSA\s+|DSA\s+|EC\s+|OPENSSH\s+)?PRIVATE\s+KEY-----"
        ),
    ),
    Detector("JSON Web Token", re.compile(r"\beyJ[A-Za-z0-9\-_]+\.eyJ[A-Za-z0-9\-_]+\.[A-Za-z0-9\-_]+\b")),
    Detector(
        "Password in URL",
        re.compile(r"[a-z][a-z0-9+\-.]*://[^:/\s@]+:(?P<secret>[^@/\s]+)@"),
    ),
    # Too noisy to run by default, kept for custom catalogs built on top
    Detector(
        "Generic Secret Assignment",
        re.compile(
            r"(?i)(?:api[_\-]?key|secret|token|password|passwd|pwd)['\"]?\s*[:=]\s*['\"]?(?P<secret>[A-Za-z0-9\-_./+=]{16,})"
        ),
        confidence=LOW,
    ),
    Detector("Bearer Token", re.compile(r"(?i)bearer\s+(?P<secret>[A-Za-z0-9\-_./+=]{20,})"), confidence=LOW),
]


def shannon_entropy(s: str) -> float:
    """
    Calculate Shannon entropy of a string in bits per character.

    Uses the observed character frequencies of the string itself.
    Returns 0.0 for an empty string.
    """
    if not s:
        return 0.0

    freq: dict[str, int] = {}
    for char in s:
        freq[char] = freq.get(char, 0) + 1

    length = len(s)
    entropy = 0.0
    for count in freq.values():
        p = count / length
        entropy -= p * math.log2(p)

    return entropy


def tokenize(text: str) -> list[str]:
    """Split text into the tokens checked by the entropy pass."""
    return [token for token in TOKEN_DELIMITERS.split(text) if token]


def compile_detector(data: dict[str, Any]) -> Detector:
    """Build a detector from a config entry ``{name, regex, confidence}``."""
    if "regex" not in data:
        raise ConfigError(f"Secret detector {data.get('name', '?')!r} has no 'regex'")
    name = str(data.get("name", "custom"))
    try:
        pattern = re.compile(str(data["regex"]))
    except re.error as e:
        raise ConfigError(f"Invalid regex for secret detector {name!r}: {e}") from e
    return Detector(name=name, pattern=pattern, confidence=str(data.get("confidence", HIGH)).lower())


@dataclass
class SecretsConfig:
    """
    Settings for secret detection and redaction.

    Loaded from the ``secrets`` section of the project config file.
    """

    mode: SecretsMode = SecretsMode.WARN
    enabled: bool = True

    # Dictionary item keys that are never scanned
    ignore_keys: set[str] = field(default_factory=set)

    # Hit values that are known false positives
    ignore_values: set[str] = field(default_factory=set)

    entropy_threshold: float = DEFAULT_ENTROPY_THRESHOLD

    # Custom detectors, added after the built-in catalog
    detectors: list[Detector] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SecretsConfig:
        """Create SecretsConfig from a dictionary (e.g., from config file)."""
        config = cls()

        if "mode" in data:
            try:
                config.mode = SecretsMode(str(data["mode"]).lower())
            except ValueError as e:
                raise ConfigError(
                    f"Unknown secrets mode {data['mode']!r}, expected one of: "
                    + ", ".join(m.value for m in SecretsMode)
                ) from e

        if "enabled" in data:
            config.enabled = bool(data["enabled"])

        config.ignore_keys = {str(k) for k in data.get("ignore_keys") or []}
        config.ignore_values = {str(v) for v in data.get("ignore_values") or []}

        if "entropy_threshold" in data:
            try:
                config.entropy_threshold = float(data["entropy_threshold"])
            except (TypeError, ValueError) as e:
                raise ConfigError(f"Invalid entropy_threshold: {data['entropy_threshold']!r}") from e

        for detector_data in data.get("detectors") or []:
            if not isinstance(detector_data, dict):
                raise ConfigError(f"Secret detector must be a mapping, got: {detector_data!r}")
            config.detectors.append(compile_detector(detector_data))

        return config


class SecretScanner:
    """Runs the detector catalog and the entropy heuristic over text."""

    def __init__(self, config: SecretsConfig | None = None, detectors: list[Detector] | None = None):
        self.config = config or SecretsConfig()
        catalog = DETECTORS if detectors is None else detectors
        self.detectors = [d for d in [*catalog, *self.config.detectors] if d.active]

    def _match_patterns(self, text: str) -> list[Hit]:
        hits = []
        for detector in self.detectors:
            for match in detector.pattern.finditer(text):
                secret = match.group("secret") if "secret" in detector.pattern.groupindex else match.group(0)
                if secret:
                    hits.append(Hit(detector_type=detector.name, secret=secret))
        return hits

    def _match_entropy(self, text: str, covered: list[str]) -> list[Hit]:
        hits = []
        for token in tokenize(text):
            if any(token in secret for secret in covered):
                continue
            entropy = shannon_entropy(token)
            if entropy > self.config.entropy_threshold:
                hits.append(Hit(detector_type=f"High Entropy of {entropy:.2f}", secret=token))
        return hits

    def scan(self, text: str) -> list[Hit]:
        """Return the candidate secrets in text, pattern hits first."""
        if not text:
            return []

        hits = self._match_patterns(text)
        hits.extend(self._match_entropy(text, [h.secret for h in hits]))

        return [h for h in hits if h.secret not in self.config.ignore_values]


def create_scanner(config: SecretsConfig | None = None) -> SecretScanner:
    """Factory function to create a scanner instance."""
    return SecretScanner(config=config)
