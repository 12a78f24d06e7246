import logging
import time
from typing import Callable, Optional

from .errors import FundingTimeout

log = logging.getLogger(__name__)


def wait_for_increase(get_balance: Callable[[str], int],
                      address: str,
                      previous: int,
                      interval: float = 1,
                      timeout: Optional[float] = None,
                      sleep: Callable[[float], None] = time.sleep,
                      clock: Callable[[], float] = time.monotonic) -> int:
    """
    Poll the free balance of `address` until it is strictly greater than `previous`.

    Returns the new balance. Raises `FundingTimeout` once `timeout` seconds
    have passed without an increase; with `timeout=None` it waits forever.
    """
    if timeout is None:
        log.warning(f'Waiting for funds on {address} without a timeout')
    started = clock()
    while True:
        balance = get_balance(address)
        if balance > previous:
            return balance
        waited = clock() - started
        if timeout is not None and waited >= timeout:
            raise FundingTimeout(address, waited)
        log.info('please wait for transaction to finalize...')
        sleep(interval)
