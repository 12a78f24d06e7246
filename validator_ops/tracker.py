"""
Turns the lifecycle of a submitted extrinsic into a single outcome.

The node reports a stream of statuses for every watched extrinsic:
ready, broadcast, inBlock, finalized (or invalid / dropped / usurped).
`SubmissionTracker` consumes that stream and resolves exactly once,
either with the finalized block hash or with a failure reason. An
extrinsic that is finalized but whose dispatch failed (for example
`staking.bond` with insufficient funds) still resolves as a failure.
"""

import enum
import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional, Tuple

from .errors import ExtrinsicFailed, SubmissionError, TransactionInvalid

log = logging.getLogger(__name__)

INVALID = 'transaction invalid'
DROPPED = 'transaction dropped'
USURPED = 'transaction usurped'
FAILED = 'extrinsic failed'


class Status(enum.Enum):
    IDLE = 'idle'
    FUTURE = 'future'
    READY = 'ready'
    BROADCAST = 'broadcast'
    IN_BLOCK = 'inBlock'
    RETRACTED = 'retracted'
    FINALITY_TIMEOUT = 'finalityTimeout'
    FINALIZED = 'finalized'
    USURPED = 'usurped'
    DROPPED = 'dropped'
    INVALID = 'invalid'

    @classmethod
    def parse(cls, name: str) -> 'Status':
        for status in cls:
            if status.value.lower() == name.lower():
                return status
        raise ValueError(f'Unknown extrinsic status {name!r}')


@dataclass(frozen=True)
class ChainEvent:
    module: str
    name: str

    @property
    def is_failure(self) -> bool:
        return self.module == 'System' and self.name == 'ExtrinsicFailed'


@dataclass(frozen=True)
class StatusUpdate:
    status: Status
    block_hash: Optional[str] = None
    events: Tuple[ChainEvent, ...] = ()


@dataclass(frozen=True)
class SubmissionOutcome:
    ok: bool
    block_hash: Optional[str] = None
    reason: Optional[str] = None
    extrinsic_hash: Optional[str] = None

    @classmethod
    def success(cls, block_hash: str, extrinsic_hash: Optional[str] = None) -> 'SubmissionOutcome':
        return cls(ok=True, block_hash=block_hash, extrinsic_hash=extrinsic_hash)

    @classmethod
    def failure(cls, reason: str, block_hash: Optional[str] = None,
                extrinsic_hash: Optional[str] = None) -> 'SubmissionOutcome':
        return cls(ok=False, block_hash=block_hash, reason=reason, extrinsic_hash=extrinsic_hash)

    def unwrap(self) -> str:
        """Return the finalized block hash or raise the matching `SubmissionError`."""
        if self.ok:
            return self.block_hash
        if self.reason == FAILED:
            raise ExtrinsicFailed(self.reason, block_hash=self.block_hash)
        if self.reason in (INVALID, DROPPED, USURPED):
            raise TransactionInvalid(self.reason, block_hash=self.block_hash)
        raise SubmissionError(self.reason, block_hash=self.block_hash)


# Terminal failure states and the reason each one resolves with
_REJECTED = {
    Status.INVALID: INVALID,
    Status.DROPPED: DROPPED,
    Status.USURPED: USURPED,
}


@dataclass
class SubmissionTracker:
    extrinsic_hash: Optional[str] = None
    state: Status = Status.IDLE
    outcome: Optional[SubmissionOutcome] = field(default=None, init=False)

    @property
    def resolved(self) -> bool:
        return self.outcome is not None

    def update(self, update: StatusUpdate) -> Optional[SubmissionOutcome]:
        """Feed one status update; returns the outcome when this update resolves it."""
        if self.resolved:
            log.debug(f'Ignoring {update.status.value} after resolution')
            return None

        self.state = update.status
        if update.status in _REJECTED:
            log.info(f'Transaction {update.status.value}')
            return self._resolve(SubmissionOutcome.failure(_REJECTED[update.status],
                                                           extrinsic_hash=self.extrinsic_hash))
        if update.status is Status.FINALIZED:
            return self._resolve(self._finalized(update))

        if update.status is Status.READY:
            log.info('Transaction is ready')
        elif update.status is Status.BROADCAST:
            log.info('Transaction has been broadcasted')
        elif update.status is Status.IN_BLOCK:
            log.info(f'Transaction is in block: {update.block_hash}')
        else:
            log.info(f'Transaction status: {update.status.value}')
        return None

    def track(self, updates: Iterable[StatusUpdate]) -> SubmissionOutcome:
        """Consume `updates` until the submission resolves; the rest of the stream is not read."""
        for update in updates:
            outcome = self.update(update)
            if outcome is not None:
                return outcome
        raise SubmissionError('status stream ended before resolution')

    def _finalized(self, update: StatusUpdate) -> SubmissionOutcome:
        log.info(f'Transaction has been included in blockHash {update.block_hash}')
        for event in update.events:
            log.debug(f'\t{event.module}.{event.name}')
            if event.is_failure:
                log.error('Transaction failed')
                return SubmissionOutcome.failure(FAILED, block_hash=update.block_hash,
                                                 extrinsic_hash=self.extrinsic_hash)
        log.info('Transaction succeeded')
        return SubmissionOutcome.success(update.block_hash, extrinsic_hash=self.extrinsic_hash)

    def _resolve(self, outcome: SubmissionOutcome) -> SubmissionOutcome:
        if self.outcome is not None:
            raise RuntimeError('submission resolved twice')
        self.outcome = outcome
        return outcome
