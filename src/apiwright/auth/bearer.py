from apiwright.auth.base import AuthAgent, AuthContext


class BearerAuthAgent(AuthAgent):
    """Attaches an externally supplied token as ``<prefix> <token>``.

    The token is fixed for the agent's lifetime; there is nothing to
    invalidate. Without a token no header is sent.
    """

    def __init__(self, token: str | None = None, prefix: str = "Bearer"):
        self.token = token
        self.prefix = prefix

    async def get_header(self, context: AuthContext | None = None) -> str | None:
        if not self.token:
            return None
        return f"{self.prefix} {self.token}"

    def invalidate(self) -> None:
        pass
