"""
Cross-origin session check for silent single sign-on.

A relying party loads ``/session/check?origin=<its origin>`` in a hidden iframe;
the returned page posts ``{type, valid, user}`` to ``window.parent`` addressed to
that origin only.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Optional
from urllib.parse import urlsplit

from app.models.oauth import Session
from app.services.client_registry import ClientRegistry

MESSAGE_TYPE = "icssc-session-check"

_PAGE = """<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>Session check</title></head>
<body>
<script>
window.parent.postMessage({message}, {target_origin});
</script>
</body>
</html>
"""


def _script_json(value: Any) -> str:
    """JSON that cannot terminate the surrounding script element."""
    return (
        json.dumps(value, separators=(",", ":"))
        .replace("<", "\\u003c")
        .replace(">", "\\u003e")
        .replace("&", "\\u0026")
    )


class InvalidOriginError(Exception):
    """Raised when the probing origin is not a registered client origin."""


class SsoSessionCheck:
    def __init__(self, registry: ClientRegistry) -> None:
        self._registry = registry

    def validate_origin(self, origin: Optional[str]) -> str:
        """Return the exact origin (scheme://host[:port]) once it is registered."""
        if not origin or not self._registry.is_allowed_redirect(origin):
            raise InvalidOriginError(origin)
        parts = urlsplit(origin)
        host = parts.hostname or ""
        if ":" in host:
            host = f"[{host}]"
        if parts.port is not None:
            host = f"{host}:{parts.port}"
        return f"{parts.scheme.lower()}://{host}"

    @staticmethod
    def message(session: Optional[Session]) -> Dict[str, Any]:
        user = None
        if session is not None:
            user = {"id": session.user_id, "email": session.email, "name": session.name}
            if session.picture:
                user["picture"] = session.picture
        return {"type": MESSAGE_TYPE, "valid": session is not None, "user": user}

    def render(self, origin: Optional[str], session: Optional[Session]) -> tuple[str, str]:
        """Build the postMessage page; returns ``(html, target_origin)``."""
        target_origin = self.validate_origin(origin)
        html = _PAGE.format(
            message=_script_json(self.message(session)),
            target_origin=_script_json(target_origin),
        )
        return html, target_origin


__all__ = ["InvalidOriginError", "MESSAGE_TYPE", "SsoSessionCheck"]
