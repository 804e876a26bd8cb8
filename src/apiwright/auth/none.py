from apiwright.auth.base import AuthAgent, AuthContext


class NoAuthAgent(AuthAgent):
    """Sends requests without an ``Authorization`` header."""

    async def get_header(self, context: AuthContext | None = None) -> str | None:
        return None

    def invalidate(self) -> None:
        pass
