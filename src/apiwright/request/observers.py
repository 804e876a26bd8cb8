"""Retry and failure notification hooks for the request engine."""

import logging

from apiwright.request.spec import RequestDebugInfo

logger = logging.getLogger(__name__)


class RequestObserver:
    """Receives retry and give-up notifications from the request engine.

    Both hooks are invoked synchronously, before the retry sleep or before
    the error propagates. The defaults do nothing; subclass and override
    the hooks you need.
    """

    def on_retry(self, error: BaseException, info: RequestDebugInfo) -> None:
        pass

    def on_error(self, error: BaseException, info: RequestDebugInfo) -> None:
        pass


class LoggingRequestObserver(RequestObserver):
    """Reports retries as warnings and final failures as errors."""

    def __init__(self, log: logging.Logger | None = None):
        self.log = log or logger

    def on_retry(self, error: BaseException, info: RequestDebugInfo) -> None:
        self.log.warning(
            f"Retrying {info.method.upper()} {info.url} "
            f"(status={info.status}, reason={info.status_text}): {error}"
        )

    def on_error(self, error: BaseException, info: RequestDebugInfo) -> None:
        self.log.error(
            f"Request {info.method.upper()} {info.url} failed "
            f"(status={info.status}, reason={info.status_text}): {error}"
        )
