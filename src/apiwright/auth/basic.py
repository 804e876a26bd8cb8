"""HTTP Basic authentication (RFC 7617)."""

import base64

from apiwright.auth.base import AuthAgent, AuthContext


class BasicAuthAgent(AuthAgent):
    """Formats ``Basic base64(username:password)``.

    Stateless: the credentials never change, so ``invalidate`` does nothing.
    """

    def __init__(self, username: str | None = None, password: str | None = None):
        self.username = username
        self.password = password

    async def get_header(self, context: AuthContext | None = None) -> str | None:
        credentials = f"{self.username or ''}:{self.password or ''}"
        encoded = base64.b64encode(credentials.encode("utf-8")).decode("ascii")
        return f"Basic {encoded}"

    def invalidate(self) -> None:
        pass
