from tenacity import AsyncRetrying, stop_after_attempt, wait_exponential, retry_if_exception
import httpx
from typing import Callable, Any, Optional

from utils.logger import setup_logger
import config

logger = setup_logger(__name__)

RETRYABLE_STATUS = {429}


def status_code_of(exc: BaseException) -> Optional[int]:
    """HTTP status carried by an httpx or provider SDK exception, if any."""
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code
    code = getattr(exc, "status_code", None)
    return code if isinstance(code, int) else None


def is_retryable_error(exc: BaseException) -> bool:
    """5xx, 429, network errors, timeouts and empty completions retry; the rest fail fast."""
    if getattr(exc, "retryable", False):
        return True
    if isinstance(exc, (httpx.NetworkError, httpx.TimeoutException)):
        return True
    code = status_code_of(exc)
    if code is None:
        return False
    return code >= 500 or code in RETRYABLE_STATUS


class RetryHandler:
    def __init__(
        self,
        max_retries: int = config.MAX_RETRIES,
        base_delay: float = config.RETRY_BASE_DELAY,
        max_delay: float = config.RETRY_MAX_DELAY,
        should_retry: Callable[[BaseException], bool] = is_retryable_error
    ):
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.should_retry = should_retry

    def _log_retry(self, retry_state) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            f"Retry {retry_state.attempt_number}/{self.max_retries} after error: {exc}"
        )

    async def execute_with_retry(
        self,
        func: Callable,
        *args,
        **kwargs
    ) -> Any:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=self.base_delay, min=0, max=self.max_delay),
            retry=retry_if_exception(self.should_retry),
            before_sleep=self._log_retry,
            reraise=True,
        ):
            with attempt:
                return await func(*args, **kwargs)
