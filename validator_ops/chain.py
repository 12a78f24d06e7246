"""
Thin wrapper around `SubstrateInterface` used by the scripts.

Every state-changing call goes through `ChainClient.submit`, which watches
the extrinsic with `author_submitAndWatchExtrinsic` and hands each status
to a `SubmissionTracker` until it resolves.
"""

import logging
from dataclasses import replace
from typing import Any, Optional, Tuple

from substrateinterface import ExtrinsicReceipt, Keypair, SubstrateInterface
from substrateinterface.exceptions import SubstrateRequestException

from .errors import NodeSyncing
from .tracker import ChainEvent, Status, StatusUpdate, SubmissionOutcome, SubmissionTracker

log = logging.getLogger(__name__)

TYPE_REGISTRY = {
    'types': {
        'ChainId': 'u8',
        'ResourceId': '[u8; 32]',
        'TokenId': 'U256',
    }
}

# Statuses whose payload is a block hash
_BLOCK_STATUSES = (Status.IN_BLOCK, Status.FINALIZED, Status.RETRACTED, Status.FINALITY_TIMEOUT)


def parse_status(message: dict) -> Optional[StatusUpdate]:
    """Translate one `author_extrinsicUpdate` notification into a `StatusUpdate`."""
    if 'params' not in message:
        return None
    result = message['params']['result']
    if isinstance(result, str):
        name, payload = result, None
    else:
        name, payload = next(iter(result.items()))
    try:
        status = Status.parse(name)
    except ValueError:
        log.warning(f'Ignoring unknown extrinsic status {name!r}')
        return None
    return StatusUpdate(status, block_hash=payload if status in _BLOCK_STATUSES else None)


class ChainClient:
    def __init__(self, substrate: SubstrateInterface):
        self.substrate = substrate

    @classmethod
    def connect(cls, url: str, type_registry: Optional[dict] = None) -> 'ChainClient':
        log.info(f'Connecting to blockchain: {url}')
        substrate = SubstrateInterface(url=url, type_registry=type_registry or TYPE_REGISTRY)
        log.info(f'Connected to: {substrate.chain}')
        return cls(substrate)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def close(self):
        self.substrate.close()

    @property
    def chain(self) -> str:
        return self.substrate.chain

    def ensure_synced(self):
        health = self.substrate.rpc_request('system_health', [])['result']
        if health['isSyncing']:
            raise NodeSyncing('Node is syncing')

    def free_balance(self, address: str) -> int:
        account_info = self.substrate.query('System', 'Account', [address])
        return account_info.value['data']['free']

    def account_nonce(self, address: str) -> int:
        account_info = self.substrate.query('System', 'Account', [address])
        return account_info.value['nonce']

    def next_index(self, address: str) -> int:
        """Next nonce for `address`, counting transactions still in the pool."""
        return self.substrate.rpc_request('system_accountNextIndex', [address])['result']

    def rotate_keys(self) -> str:
        return self.substrate.rpc_request('author_rotateKeys', [])['result']

    def constant(self, module: str, name: str) -> Any:
        return self.substrate.get_constant(module, name).value

    def query(self, module: str, storage: str, params=None) -> Any:
        return self.substrate.query(module, storage, params or []).value

    def compose_call(self, module: str, function: str, params: dict):
        return self.substrate.compose_call(call_module=module, call_function=function, call_params=params)

    def submit_nowait(self, call, keypair: Keypair) -> str:
        """Sign and send `call` without waiting for inclusion; returns the extrinsic hash."""
        extrinsic = self.substrate.create_signed_extrinsic(call=call, keypair=keypair)
        receipt = self.substrate.submit_extrinsic(extrinsic, wait_for_inclusion=False)
        return receipt.extrinsic_hash

    def submit(self, call, keypair: Keypair, nonce: Optional[int] = None) -> SubmissionOutcome:
        """Sign `call`, submit it and follow it until finalized or rejected."""
        extrinsic = self.substrate.create_signed_extrinsic(call=call, keypair=keypair, nonce=nonce)
        tracker = SubmissionTracker(extrinsic_hash=f'0x{extrinsic.extrinsic_hash.hex()}')

        def result_handler(message, update_nr, subscription_id):
            update = parse_status(message)
            if update is None:
                return None
            if update.status is Status.FINALIZED:
                self.substrate.rpc_request('author_unwatchExtrinsic', [subscription_id])
                return update
            outcome = tracker.update(update)
            if outcome is not None:
                self.substrate.rpc_request('author_unwatchExtrinsic', [subscription_id])
            return outcome

        try:
            result = self.substrate.rpc_request('author_submitAndWatchExtrinsic', [str(extrinsic.data)],
                                                result_handler=result_handler)
        except SubstrateRequestException as e:
            log.error(f'Transaction invalid: {e}')
            return tracker.update(StatusUpdate(Status.INVALID))

        if isinstance(result, SubmissionOutcome):
            return result
        events = self.extrinsic_events(tracker.extrinsic_hash, result.block_hash)
        return tracker.update(replace(result, events=events))

    def extrinsic_events(self, extrinsic_hash: str, block_hash: str) -> Tuple[ChainEvent, ...]:
        receipt = ExtrinsicReceipt(substrate=self.substrate, extrinsic_hash=extrinsic_hash, block_hash=block_hash)
        return tuple(ChainEvent(event.value['module_id'], event.value['event_id'])
                     for event in receipt.triggered_events)
