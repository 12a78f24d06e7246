"""
Tokenomics emulation helper.

Wraps a chain connection with the handful of calls the emulation needs:
transfers, DDC data transactions, batches and balance/era lookups.

The config is a JSON file with a `network` section:

    {"network": {"url": "ws://127.0.0.1:9944", "decimals": 10, "era_time": 240}}

Usage:
    python3 -m validator_ops.tokenomics --config network.json \\
        --seed "<12 words>" --to <address> --amount 10
"""

import argparse
import json
import logging
import sys
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import List, Optional

from substrateinterface import Keypair
from substrateinterface.exceptions import SubstrateRequestException
from substrateinterface.utils.ss58 import ss58_encode

from .chain import ChainClient
from .errors import ConfigError, ValidatorOpsError
from .logs import configure_logging
from .tracker import SubmissionOutcome

log = logging.getLogger(__name__)

TREASURY_PALLET_ID = b'modlpy/trsry'
SI_PREFIXES = ['', 'k', 'M', 'G', 'T', 'P', 'E']


def pallet_account(pallet_id: bytes) -> bytes:
    """Account id of a pallet: its id right-padded with zero bytes to 32 bytes."""
    return pallet_id.ljust(32, b'\0')


def format_balance(amount: int, decimals: int, symbol: str = 'Unit') -> str:
    """Human-readable balance with an SI prefix, e.g. `1.2345 kUnit`."""
    value = Decimal(amount) / Decimal(10) ** decimals
    power = 0
    while abs(value) >= 1000 and power < len(SI_PREFIXES) - 1:
        value /= 1000
        power += 1
    return f'{value:.4f} {SI_PREFIXES[power]}{symbol}'


def load_config(path) -> dict:
    try:
        with open(path, 'r', encoding='utf-8') as f:
            config = json.load(f)
    except (OSError, ValueError) as e:
        raise ConfigError(f'Cannot read network config {path}: {e}') from e
    missing = [key for key in ('url', 'decimals') if key not in config.get('network', {})]
    if missing:
        raise ConfigError(f"Network config {path} is missing: {', '.join('network.' + k for k in missing)}")
    return config


class Network:
    def __init__(self, config: dict, client: Optional[ChainClient] = None):
        self.config = config
        self.client = client

    @property
    def decimals(self) -> int:
        return int(self.config['network']['decimals'])

    @property
    def symbol(self) -> str:
        return self.config['network'].get('token_symbol', 'Unit')

    def setup(self):
        log.info('About to initializing network')
        self.client = ChainClient.connect(self.config['network']['url'])

    def transfer(self, sender: Keypair, destination: str, value):
        """Build a transfer of `value` whole tokens; send it with `sign_and_send`."""
        amount = int(Decimal(str(value)) * 10 ** self.decimals)
        log.info(f'About to transfer {amount} native assets to {destination} from {sender.ss58_address}')
        return self.client.compose_call('Balances', 'transfer_keep_alive', {
            'dest': destination,
            'value': amount,
        })

    def free_balance(self, address) -> int:
        return self.client.free_balance(address)

    def get_balance(self, address: str) -> str:
        log.info(f'About to get balance for: {address}')
        return format_balance(self.free_balance(address), self.decimals, self.symbol)

    def existential_deposit(self) -> Decimal:
        log.info('About to get Existential Deposit')
        existential_deposit = self.client.constant('Balances', 'ExistentialDeposit')
        return Decimal(existential_deposit) / 10 ** self.decimals

    def send_ddc(self, sender: Keypair, destination: str, data: str):
        log.info(f'About to send ddc transaction from {sender.ss58_address} to {destination} as {data}')
        return self.client.compose_call('CereDdcModule', 'send_data', {
            'send_to': destination,
            'data': data,
        })

    def treasury_address(self) -> str:
        ss58_format = self.client.substrate.ss58_format
        # 0 is Polkadot's format, only a missing one falls back to generic Substrate
        return ss58_encode(pallet_account(TREASURY_PALLET_ID), 42 if ss58_format is None else ss58_format)

    def treasury_balance(self) -> str:
        return format_balance(self.free_balance(self.treasury_address()), self.decimals, self.symbol)

    def sign_and_send(self, call, sender: Keypair) -> SubmissionOutcome:
        log.info('Signing and sending transaction')
        nonce = self.client.account_nonce(sender.ss58_address)
        return self.client.submit(call, sender, nonce=nonce)

    def sign_and_send_batch(self, calls: List, sender: Keypair) -> SubmissionOutcome:
        log.info('Sending batch transaction')
        nonce = self.client.next_index(sender.ss58_address)
        log.info(f'nonce: {nonce}')
        batch = self.client.compose_call('Utility', 'batch', {'calls': calls})
        return self.client.submit(batch, sender, nonce=nonce)

    def era_time(self, now: Optional[datetime] = None) -> int:
        """Minutes left in the active era, given `network.era_time` minutes per era."""
        log.info('Calculating remaining ERA time')
        era = self.client.query('Staking', 'ActiveEra')
        if not era or era.get('start') is None:
            raise ValidatorOpsError('Staking has no active era')
        start = datetime.fromtimestamp(era['start'] / 1000, tz=timezone.utc)
        now = now or datetime.now(timezone.utc)
        elapsed = int((now - start).total_seconds() // 60)
        return int(self.config['network']['era_time']) - elapsed


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description='Transfer native tokens and report balances')
    parser.add_argument('--config', type=Path, required=True, help='Network config JSON file')
    parser.add_argument('--seed', type=str, required=True, help='Sender seed phrase')
    parser.add_argument('--to', type=str, required=True, help='Recipient SS58 address')
    parser.add_argument('--amount', type=str, required=True, help='Amount in whole tokens')
    parser.add_argument('--log-level', help='Logging level, defaults to $LOG_LEVEL or INFO')
    args = parser.parse_args(argv)

    try:
        configure_logging(args.log_level)
        network = Network(load_config(args.config))
        network.setup()
        with network.client:
            sender = Keypair.create_from_mnemonic(args.seed)
            outcome = network.sign_and_send(network.transfer(sender, args.to, args.amount), sender)
            block_hash = outcome.unwrap()
            print(f'Transfer included in block {block_hash}')
            print(f'Sender:    {sender.ss58_address} {network.get_balance(sender.ss58_address)}')
            print(f'Recipient: {args.to} {network.get_balance(args.to)}')
            print(f'Treasury:  {network.treasury_address()} {network.treasury_balance()}')
    except (ValidatorOpsError, SubstrateRequestException, ConnectionError) as e:
        log.error(f'❌ {type(e).__name__}: {e}')
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
