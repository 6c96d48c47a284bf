"""Human-readable output formatter for CLI commands."""

from typing import Optional

from jenkins_trace.crumb import Crumb


def format_crumb(crumb: Crumb, issuer_url: str) -> str:
    """Format a crumb as the header line Jenkins expects."""
    return "\n".join([
        f"Crumb issuer: {issuer_url}",
        f"{crumb.field}: {crumb.value}",
    ])


def format_error(message: str, hint: Optional[str] = None) -> str:
    """Format an error message.

    Args:
        message: Error message
        hint: Optional hint for fixing

    Returns:
        Formatted error string
    """
    lines = [f"\n\u274c Error: {message}"]
    if hint:
        lines.append(f"\U0001f4a1 Hint: {hint}")
    return "\n".join(lines)
