import logging

import requests

from .errors import FaucetError

log = logging.getLogger(__name__)

FAUCET_TIMEOUT = 50


def request_assets(endpoint: str, address: str, network: str, timeout: float = FAUCET_TIMEOUT) -> dict:
    """Ask the faucet at `endpoint` to send test tokens to `address`."""
    log.info(f'Requesting assets for {address} on {network}')
    try:
        response = requests.post(
            endpoint,
            json={'destination': address, 'network': network},
            headers={'Accept': 'application/json'},
            timeout=timeout,
        )
    except requests.RequestException as e:
        log.error(f'Error requesting assets: {e}')
        raise FaucetError(f'Faucet request failed: {e}') from e

    if not 200 <= response.status_code < 300:
        log.error(f'Error requesting assets: {response.status_code} {response.text}')
        raise FaucetError(f'Faucet responded with {response.status_code}',
                          status_code=response.status_code, body=response.text)
    try:
        return response.json()
    except ValueError as e:
        raise FaucetError(f'Faucet returned a non-JSON body: {response.text[:200]}',
                          status_code=response.status_code, body=response.text) from e
