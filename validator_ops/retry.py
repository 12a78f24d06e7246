import logging
import time
from dataclasses import dataclass
from typing import Callable, Tuple, Type, TypeVar

log = logging.getLogger(__name__)

T = TypeVar('T')


@dataclass(frozen=True)
class RetryPolicy:
    """How many times a failing probe is retried and how long to wait in between.

    `max_attempts` counts retries, so a probe runs at most `max_attempts + 1` times.
    """
    max_attempts: int = 5
    wait_seconds: float = 0

    def __post_init__(self):
        if self.max_attempts < 0:
            raise ValueError(f'max_attempts must be >= 0, got {self.max_attempts}')
        if self.wait_seconds < 0:
            raise ValueError(f'wait_seconds must be >= 0, got {self.wait_seconds}')


def call_with_retry(probe: Callable[[], T],
                    policy: RetryPolicy,
                    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
                    sleep: Callable[[float], None] = time.sleep) -> T:
    """
    Call `probe` until it returns without raising.

    Waits `policy.wait_seconds` between calls. When the retries are used up
    the last exception is re-raised as is.
    """
    attempt = 0
    while True:
        try:
            return probe()
        except retry_on as e:
            if attempt >= policy.max_attempts:
                log.debug(f'Giving up after {attempt + 1} attempts: {e}')
                raise
            attempt += 1
            log.info(f'{e}. Wait {policy.wait_seconds:g}s.')
            sleep(policy.wait_seconds)
