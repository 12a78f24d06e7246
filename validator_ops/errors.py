"""Exceptions raised by the validator and tokenomics scripts."""


class ValidatorOpsError(Exception):
    """Base class for every failure the scripts report."""


class ConfigError(ValidatorOpsError):
    pass


class NodeSyncing(ValidatorOpsError):
    pass


class FaucetError(ValidatorOpsError):
    def __init__(self, message, status_code=None, body=None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class FundingTimeout(ValidatorOpsError):
    def __init__(self, address: str, waited: float):
        super().__init__(f"Balance of {address} did not increase after {waited:.0f}s")
        self.address = address
        self.waited = waited


class BondValueError(ValidatorOpsError, ValueError):
    pass


class SubmissionError(ValidatorOpsError):
    """A state-changing extrinsic did not complete."""

    def __init__(self, reason: str, block_hash=None):
        super().__init__(reason)
        self.reason = reason
        self.block_hash = block_hash


class TransactionInvalid(SubmissionError):
    pass


class ExtrinsicFailed(SubmissionError):
    pass
