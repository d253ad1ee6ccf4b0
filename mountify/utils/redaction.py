"""Password scrubbing for anything that may reach a log line or a user."""

from typing import Iterable

REDACTION_MARKER = "***"


def redact_secrets(text: str, secrets: Iterable[str]) -> str:
    """Replace every literal occurrence of each secret with the marker.

    Plain substring replacement, so regex metacharacters in a password are
    matched literally. Empty secrets are skipped.
    """
    for secret in secrets:
        if secret:
            text = text.replace(secret, REDACTION_MARKER)
    return text


def sanitize_error(text: str, secret: str) -> str:
    """Redact ``secret`` and keep only the first non-empty line."""
    redacted = redact_secrets(text or "", [secret])
    for line in redacted.splitlines():
        if line.strip():
            return line.strip()
    return ""
