"""
Environment-sourced settings for the validator setup script.

Values are read from the process environment after loading a `.env`
file from the working directory (if present). Everything the chosen
mode needs must be set; all missing keys are reported together.
"""

import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Mapping, Optional

from dotenv import load_dotenv

from .errors import ConfigError
from .retry import RetryPolicy

DEFAULT_SYNC_MAX_ATTEMPTS = 100
DEFAULT_FUNDING_TIMEOUT = 600
DEFAULT_POLL_INTERVAL = 1
DEFAULT_ENDOWMENT = 1_000_000_000_000_000

# Keys needed by every run
COMMON_KEYS = ('PROVIDER', 'BOND_VALUE', 'REWARD_COMMISSION', 'RETRY_MAX_ATTEMPTS', 'WAIT_SECONDS')
# Keys needed when loading existing accounts
LOAD_KEYS = ('ROOT_ACCOUNT_MNEMONIC', 'STASH_ACCOUNT_MNEMONIC', 'CONTROLLER_ACCOUNT_MNEMONIC')
# Keys needed when generating fresh accounts funded by the faucet
FAUCET_KEYS = ('REQUEST_ASSETS_ENDPOINT', 'NETWORK')


@dataclass(frozen=True)
class Config:
    provider: str
    bond_value: int
    reward_commission: float
    retry: RetryPolicy
    sync_retry: RetryPolicy
    poll_interval: float
    funding_timeout: Optional[float]
    endowment_value: int
    root_mnemonic: Optional[str] = None
    stash_mnemonic: Optional[str] = None
    controller_mnemonic: Optional[str] = None
    faucet_url: Optional[str] = None
    network: Optional[str] = None
    stash_identity: str = 'Stash'
    controller_identity: str = 'Controller'

    @property
    def network_name(self) -> str:
        """Network name in the form the faucet expects, e.g. `qanet-1` -> `QANET_1`."""
        if not self.network:
            raise ConfigError('NETWORK is not set')
        return self.network.upper().replace('-', '_')

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, new_accounts: bool = False) -> 'Config':
        if environ is None:
            load_dotenv()
            environ = os.environ

        required = COMMON_KEYS + (FAUCET_KEYS if new_accounts else LOAD_KEYS)
        missing = [key for key in required if not environ.get(key, '').strip()]
        if missing:
            raise ConfigError(f"Missing required environment variables: {', '.join(missing)}")

        wait_seconds = _number(environ, 'WAIT_SECONDS', float)
        funding_timeout = _number(environ, 'FUNDING_TIMEOUT', float, DEFAULT_FUNDING_TIMEOUT)

        try:
            retry = RetryPolicy(_number(environ, 'RETRY_MAX_ATTEMPTS', int), wait_seconds)
            sync_retry = RetryPolicy(
                _number(environ, 'SYNC_MAX_ATTEMPTS', int, DEFAULT_SYNC_MAX_ATTEMPTS), wait_seconds)
        except ValueError as e:
            raise ConfigError(str(e)) from e

        commission = _number(environ, 'REWARD_COMMISSION', float)
        if not 0 <= commission <= 100:
            raise ConfigError(f'REWARD_COMMISSION must be a percentage between 0 and 100, got {commission}')

        bond_value = _number(environ, 'BOND_VALUE', int)
        if bond_value <= 0:
            raise ConfigError(f'BOND_VALUE must be positive, got {bond_value}')

        return cls(
            provider=environ['PROVIDER'].strip(),
            bond_value=bond_value,
            reward_commission=commission,
            retry=retry,
            sync_retry=sync_retry,
            poll_interval=_number(environ, 'POLL_INTERVAL', float, DEFAULT_POLL_INTERVAL),
            funding_timeout=funding_timeout or None,
            endowment_value=_number(environ, 'ENDOWMENT_VALUE', int, DEFAULT_ENDOWMENT),
            root_mnemonic=environ.get('ROOT_ACCOUNT_MNEMONIC'),
            stash_mnemonic=environ.get('STASH_ACCOUNT_MNEMONIC'),
            controller_mnemonic=environ.get('CONTROLLER_ACCOUNT_MNEMONIC'),
            faucet_url=environ.get('REQUEST_ASSETS_ENDPOINT'),
            network=environ.get('NETWORK'),
            stash_identity=environ.get('STASH_IDENTITY') or 'Stash',
            controller_identity=environ.get('CONTROLLER_IDENTITY') or 'Controller',
        )


def _number(environ, key, kind, default=None):
    raw = environ.get(key, '').strip()
    if not raw:
        if default is None:
            raise ConfigError(f'{key} is not set')
        return default
    if kind is int:
        # Balances are in the smallest unit and often written as 1e15;
        # float keeps only 53 bits of them
        try:
            value = Decimal(raw)
        except InvalidOperation as e:
            raise ConfigError(f'{key} must be a number, got {raw!r}') from e
        if not value.is_finite() or value != value.to_integral_value():
            raise ConfigError(f'{key} must be a whole number, got {raw!r}')
        return int(value)
    try:
        return kind(raw)
    except ValueError as e:
        raise ConfigError(f'{key} must be a number, got {raw!r}') from e
