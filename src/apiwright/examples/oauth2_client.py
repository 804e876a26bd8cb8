"""
Call an OAuth2 protected API with the client credentials grant.

Set these environment variables (a .env file works too):
- APIWRIGHT_BASE_URL: API base URL, e.g. https://api.example.com/v1
- OAUTH2_TOKEN_URL: Token endpoint
- OAUTH2_CLIENT_ID / OAUTH2_CLIENT_SECRET: Client credentials

Usage: python -m apiwright.examples.oauth2_client users/me
"""

import asyncio
import json
import logging
import os
import sys

from dotenv import load_dotenv

from apiwright.auth.oauth2.agent import OAuth2Agent
from apiwright.auth.oauth2.models import OAuth2Params
from apiwright.request.config import RequestConfig
from apiwright.request.engine import Request
from apiwright.request.observers import LoggingRequestObserver


async def main(path: str) -> None:
    auth = OAuth2Agent(
        OAuth2Params(
            client_id=os.environ["OAUTH2_CLIENT_ID"],
            client_secret=os.environ["OAUTH2_CLIENT_SECRET"],
            token_url=os.environ["OAUTH2_TOKEN_URL"],
        )
    )
    config = RequestConfig.from_env(auth=auth, observer=LoggingRequestObserver())

    try:
        async with Request(config) as request:
            data = await request.get(path)
    finally:
        await auth.close()

    print(json.dumps(data, indent=2))


if __name__ == "__main__":
    load_dotenv()
    logging.basicConfig(level=logging.INFO)
    asyncio.run(main(sys.argv[1] if len(sys.argv) > 1 else ""))
