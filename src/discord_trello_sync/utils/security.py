"""Secret redaction for log output.

Both platforms authenticate with long-lived credentials: Trello passes its
key and token as query parameters on every request URL, and Discord bot
tokens end up in connection errors. Anything that could carry them through
the logs passes through ``SecretRedactor`` first.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from collections.abc import Sequence

log = structlog.get_logger()


class SecurityError(Exception):
    """Base exception for security-related errors."""


class RedactionError(SecurityError):
    """Raised when secret redaction fails."""


class SecretRedactor:
    """Detects and redacts secrets from text.

    Fails closed: if a pattern fails to compile or execute, an exception is
    raised rather than returning text that may still contain a secret.

    Usage:
        redactor = SecretRedactor()
        safe_text = redactor.redact(potentially_sensitive_text)
    """

    DEFAULT_PATTERNS: tuple[tuple[str, str], ...] = (
        # Credentials in URL query strings (Trello sends key/token this way)
        (r"(?i)(?<=[?&])(key|token)=[^&\s\"']+", "Query string credential"),
        # Generic assignments
        (
            r"(?i)(api[_-]?key|secret|token|password|credential)\s*[=:]\s*[\"']?[\w-]{16,}",
            "Generic secret",
        ),
        # Trello
        (r"\bATTA[0-9a-fA-F]{60,}\b", "Trello API token"),
        # Discord
        (
            r"\b[MNO][a-zA-Z\d_-]{23,25}\.[a-zA-Z\d_-]{6}\.[a-zA-Z\d_-]{27,38}\b",
            "Discord bot token",
        ),
        (
            r"https://(?:ptb\.|canary\.)?discord(?:app)?\.com/api/webhooks/\d+/[\w-]+",
            "Discord webhook URL",
        ),
        # Private keys
        (
            r"-----BEGIN (?:RSA |EC |DSA |OPENSSH )?PRIVATE KEY-----",
            "Private key header",
        ),
    )

    def __init__(
        self,
        placeholder: str = "[REDACTED]",
        custom_patterns: Sequence[tuple[str, str]] | None = None,
    ) -> None:
        """Initialize the SecretRedactor.

        Args:
            placeholder: String to replace detected secrets with.
            custom_patterns: Additional (pattern, name) tuples to detect.

        Raises:
            RedactionError: If any pattern fails to compile.
        """
        self.placeholder = placeholder
        self._pattern_names: dict[re.Pattern[str], str] = {}

        all_patterns = list(self.DEFAULT_PATTERNS)
        if custom_patterns:
            all_patterns.extend(custom_patterns)

        # Compile all patterns, fail if any are invalid
        try:
            for pattern_str, name in all_patterns:
                compiled = re.compile(pattern_str)
                self._pattern_names[compiled] = name
        except re.error as e:
            msg = f"Failed to compile secret pattern '{pattern_str}': {e}"
            log.error("pattern_compilation_failed", pattern=pattern_str, error=str(e))
            raise RedactionError(msg) from e

    @property
    def patterns(self) -> list[re.Pattern[str]]:
        """Return the list of compiled patterns."""
        return list(self._pattern_names.keys())

    def redact(self, text: str) -> str:
        """Redact all secrets from the given text.

        Args:
            text: The text to scan and redact secrets from.

        Returns:
            The text with all detected secrets replaced with placeholder.

        Raises:
            RedactionError: If redaction fails for any reason.
        """
        if not text:
            return text

        try:
            result = text
            for pattern in self._pattern_names:
                result = pattern.sub(self.placeholder, result)
            return result
        except Exception as e:
            msg = f"Redaction failed: {e}"
            raise RedactionError(msg) from e

    def has_secrets(self, text: str) -> bool:
        """Check if text contains any secrets.

        Args:
            text: The text to check.

        Returns:
            True if any secrets are detected, False otherwise.
        """
        if not text:
            return False

        try:
            return any(pattern.search(text) for pattern in self._pattern_names)
        except Exception as e:
            msg = f"Secret check failed: {e}"
            raise RedactionError(msg) from e
