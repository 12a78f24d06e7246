"""
Validator setup

Takes a node from nothing to an active validator candidate:
1. Connects and waits for the node to finish syncing
2. Loads root/stash/controller accounts from their mnemonics and endows
   stash and controller from root (or, with --new-accounts, generates
   fresh stash/controller accounts and funds them from the faucet)
3. Rotates the node's session keys
4. Bonds BOND_VALUE from stash, with controller as the controller
5. Registers the session keys on-chain
6. Declares the validator with REWARD_COMMISSION percent commission

Every step must succeed before the next one starts; the first failure
aborts the run with exit status 1.

Usage:
    python3 -m validator_ops.validator [--new-accounts]
"""

import argparse
import logging
import sys
import time
from dataclasses import dataclass, replace
from typing import Callable, Optional

from substrateinterface import Keypair
from substrateinterface.exceptions import SubstrateRequestException

from .chain import ChainClient
from .config import Config
from .errors import BondValueError, ConfigError, ValidatorOpsError
from .faucet import request_assets
from .logs import configure_logging
from .poller import wait_for_increase
from .retry import call_with_retry

log = logging.getLogger(__name__)

MNEMONIC_WORDS_COUNT = 12
# Commission is configured in percent, the runtime stores Perbill
COMMISSION_MULTIPLIER = 10_000_000
EMPTY_PROOF = '0x'


@dataclass(frozen=True)
class ValidatorState:
    root: Optional[Keypair] = None
    stash: Optional[Keypair] = None
    controller: Optional[Keypair] = None
    root_balance: int = 0
    stash_balance: int = 0
    controller_balance: int = 0
    session_key: Optional[str] = None


def connect(config: Config, sleep: Callable[[float], None] = time.sleep) -> ChainClient:
    client = ChainClient.connect(config.provider)
    log.info('Check if syncing...')
    try:
        call_with_retry(client.ensure_synced, config.sync_retry, sleep=sleep)
    except BaseException:
        client.close()
        raise
    log.info('Sync is complete!')
    return client


def generate_account(kind: str) -> Keypair:
    mnemonic = Keypair.generate_mnemonic(MNEMONIC_WORDS_COUNT)
    keypair = Keypair.create_from_mnemonic(mnemonic)

    print('=' * 53)
    print(f'GENERATED {MNEMONIC_WORDS_COUNT}-WORD MNEMONIC SEED ({kind}):')
    print(mnemonic)
    print('=' * 53)

    return keypair


def create_accounts(client: ChainClient, config: Config, state: ValidatorState,
                    request: Callable[..., dict] = request_assets,
                    sleep: Callable[[float], None] = time.sleep) -> ValidatorState:
    """Generate stash and controller accounts and fund both from the faucet."""
    log.info('Creating Stash and Controller accounts')
    stash = generate_account('Stash')
    log.info(f'Stash account public key: {stash.ss58_address}')
    controller = generate_account('Controller')
    log.info(f'Controller account public key: {controller.ss58_address}')

    for kind, account in (('Stash', stash), ('Controller', controller)):
        response = request(config.faucet_url, account.ss58_address, config.network_name)
        log.info(f'{kind} assets transaction: {response}')

    def funded_balances():
        log.info('Requesting balance')
        stash_balance = client.free_balance(stash.ss58_address)
        controller_balance = client.free_balance(controller.ss58_address)
        if stash_balance <= 0:
            raise ValidatorOpsError('Stash balance should be above 0')
        return stash_balance, controller_balance

    stash_balance, controller_balance = call_with_retry(funded_balances, config.retry,
                                                        retry_on=(ValidatorOpsError,), sleep=sleep)
    log.info(f'Your Stash Account is {stash.ss58_address} and balance is {stash_balance}')
    log.info(f'Your Controller Account is {controller.ss58_address} and balance is {controller_balance}')
    return replace(state, stash=stash, controller=controller,
                   stash_balance=stash_balance, controller_balance=controller_balance)


def request_endowment(client: ChainClient, config: Config, root: Keypair, account: Keypair,
                      sleep: Callable[[float], None] = time.sleep) -> int:
    """Transfer the endowment from root to `account` and wait until it lands."""
    log.info(f'Requesting endowment for account {account.ss58_address}')
    old_balance = client.free_balance(account.ss58_address)
    call = client.compose_call('Balances', 'transfer_keep_alive', {
        'dest': account.ss58_address,
        'value': config.endowment_value,
    })
    extrinsic_hash = client.submit_nowait(call, root)
    log.info(f'Endowment sent with hash {extrinsic_hash}')
    return wait_for_increase(client.free_balance, account.ss58_address, old_balance,
                             interval=config.poll_interval, timeout=config.funding_timeout, sleep=sleep)


def set_identity(client: ChainClient, account: Keypair, name: str) -> str:
    log.info(f'Setting identity {name!r} for {account.ss58_address}')
    empty = {'None': None}
    call = client.compose_call('Identity', 'set_identity', {
        'info': {
            'additional': [],
            'display': {'Raw': name},
            'legal': empty,
            'web': empty,
            'riot': empty,
            'email': empty,
            'pgp_fingerprint': None,
            'image': empty,
            'twitter': empty,
        }
    })
    return client.submit(call, account).unwrap()


def derive_accounts(config: Config) -> ValidatorState:
    """Root, stash and controller keypairs from the configured mnemonics."""
    log.info('Loading your accounts')
    keypairs = {}
    for kind, mnemonic in (('ROOT', config.root_mnemonic),
                           ('STASH', config.stash_mnemonic),
                           ('CONTROLLER', config.controller_mnemonic)):
        try:
            keypairs[kind] = Keypair.create_from_mnemonic(mnemonic)
        except ValueError as e:
            raise ConfigError(f'{kind}_ACCOUNT_MNEMONIC is not a valid mnemonic: {e}') from e
    return ValidatorState(root=keypairs['ROOT'], stash=keypairs['STASH'], controller=keypairs['CONTROLLER'])


def load_accounts(client: ChainClient, config: Config, state: ValidatorState,
                  sleep: Callable[[float], None] = time.sleep) -> ValidatorState:
    """Endow stash and controller from root, deriving the keypairs first if `state` has none."""
    if state.root is None:
        state = derive_accounts(config)
    root, stash, controller = state.root, state.stash, state.controller

    request_endowment(client, config, root, stash, sleep=sleep)
    request_endowment(client, config, root, controller, sleep=sleep)
    set_identity(client, stash, config.stash_identity)
    set_identity(client, controller, config.controller_identity)

    state = replace(
        state,
        root_balance=client.free_balance(root.ss58_address),
        stash_balance=client.free_balance(stash.ss58_address),
        controller_balance=client.free_balance(controller.ss58_address),
    )
    log.info(f'Your Root Account is {root.ss58_address} and balance is {state.root_balance}')
    log.info(f'Your Stash Account is {stash.ss58_address} and balance is {state.stash_balance}')
    log.info(f'Your Controller Account is {controller.ss58_address} and balance is {state.controller_balance}')
    return state


def generate_session_key(client: ChainClient, state: ValidatorState) -> ValidatorState:
    log.info('Generating Session Key')
    session_key = client.rotate_keys()
    log.info(f'Session Key: {session_key}')
    return replace(state, session_key=session_key)


def add_validator(client: ChainClient, config: Config, state: ValidatorState) -> str:
    """Bond `config.bond_value` from the stash account."""
    log.info('Adding validator')
    log.info(f'Bond value is {config.bond_value}')
    if state.stash_balance <= config.bond_value:
        raise BondValueError(
            f'Bond value needs to be lesser than balance. '
            f'(Bond {config.bond_value} should be less than stash balance {state.stash_balance})')

    call = client.compose_call('Staking', 'bond', {
        'controller': state.controller.ss58_address,
        'value': config.bond_value,
        'payee': 'Staked',
    })
    return client.submit(call, state.stash).unwrap()


def set_session_key(client: ChainClient, state: ValidatorState) -> str:
    log.info('Setting session key')
    call = client.compose_call('Session', 'set_keys', {
        'keys': state.session_key,
        'proof': EMPTY_PROOF,
    })
    return client.submit(call, state.controller).unwrap()


def set_commission(client: ChainClient, config: Config, state: ValidatorState) -> str:
    log.info('Setting reward commission')
    commission = round(config.reward_commission * COMMISSION_MULTIPLIER)
    call = client.compose_call('Staking', 'validate', {
        'prefs': {'commission': commission, 'blocked': False},
    })
    return client.submit(call, state.controller).unwrap()


def run(client: ChainClient, config: Config, new_accounts: bool = False,
        request: Callable[..., dict] = request_assets,
        sleep: Callable[[float], None] = time.sleep,
        state: Optional[ValidatorState] = None) -> ValidatorState:
    state = state or ValidatorState()
    if new_accounts:
        state = create_accounts(client, config, state, request=request, sleep=sleep)
    else:
        state = load_accounts(client, config, state, sleep=sleep)
    state = generate_session_key(client, state)
    add_validator(client, config, state)
    set_session_key(client, state)
    set_commission(client, config, state)
    return state


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description='Bond a stash account and register it as a validator')
    parser.add_argument('--new-accounts', action='store_true',
                        help='Generate fresh stash/controller accounts and fund them from the faucet')
    parser.add_argument('--log-level', help='Logging level, defaults to $LOG_LEVEL or INFO')
    args = parser.parse_args(argv)

    try:
        configure_logging(args.log_level)
        config = Config.from_env(new_accounts=args.new_accounts)
        # Bad mnemonics fail here, before waiting for the node to sync
        state = ValidatorState() if args.new_accounts else derive_accounts(config)
        with connect(config) as client:
            run(client, config, new_accounts=args.new_accounts, state=state)
    except (ValidatorOpsError, SubstrateRequestException, ConnectionError) as e:
        log.error(f'❌ {type(e).__name__}: {e}')
        return 1

    print('Validator added successfully!')
    return 0


if __name__ == '__main__':
    sys.exit(main())
