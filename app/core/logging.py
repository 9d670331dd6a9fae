"""
Logging utilities for the authorization server.

Provides a consistent logging format and keeps credential-bearing query
parameters out of access logs.
"""

import logging
import re
import sys

_SENSITIVE_QUERY = re.compile(
    r"(?P<name>\b(?:code|state|code_verifier|refresh_token|access_token)=)[^&\s\"]+"
)


class RedactCredentialsFilter(logging.Filter):
    """Mask authorization codes, state, and tokens in logged request lines."""

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.args, tuple):
            record.args = tuple(
                _SENSITIVE_QUERY.sub(r"\g<name>[redacted]", arg)
                if isinstance(arg, str)
                else arg
                for arg in record.args
            )
        if isinstance(record.msg, str):
            record.msg = _SENSITIVE_QUERY.sub(r"\g<name>[redacted]", record.msg)
        return True


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging with a sensible default format."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        stream=sys.stdout,
    )
    # httpx logs full upstream URLs at INFO.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").addFilter(RedactCredentialsFilter())


__all__ = ["RedactCredentialsFilter", "configure_logging"]
