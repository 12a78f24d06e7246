import pytest

from validator_ops.config import Config
from validator_ops.tracker import SubmissionOutcome

ENV = {
    'PROVIDER': 'ws://127.0.0.1:9944',
    'ROOT_ACCOUNT_MNEMONIC': 'bottom drive obey lake curtain smoke basket hold race lonely fit walk',
    'STASH_ACCOUNT_MNEMONIC': 'letter advice cage absurd amount doctor acoustic avoid letter advice cage above',
    'CONTROLLER_ACCOUNT_MNEMONIC': 'legal winner thank year wave sausage worth useful legal winner thank yellow',
    'BOND_VALUE': '1000',
    'REWARD_COMMISSION': '5',
    'RETRY_MAX_ATTEMPTS': '3',
    'WAIT_SECONDS': '6',
    'REQUEST_ASSETS_ENDPOINT': 'https://faucet.example/api/request-assets',
    'NETWORK': 'qa-net',
}


class FakeClient:
    """Stands in for `ChainClient`; records every call composed and submitted."""

    def __init__(self, balances=None, outcome=None, endowment=10_000):
        self.balances = dict(balances or {})
        self.outcome = outcome or SubmissionOutcome.success('0xfinalized')
        self.endowment = endowment
        self.composed = []
        self.submitted = []
        self.sent = []
        self.closed = False

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def ensure_synced(self):
        pass

    def close(self):
        self.closed = True

    def free_balance(self, address):
        return self.balances.get(address, 0)

    def compose_call(self, module, function, params):
        call = (module, function, params)
        self.composed.append(call)
        return call

    def submit_nowait(self, call, keypair):
        self.sent.append((call, keypair.ss58_address))
        dest = call[2]['dest']
        self.balances[dest] = self.balances.get(dest, 0) + self.endowment
        return '0xextrinsic'

    def submit(self, call, keypair, nonce=None):
        self.submitted.append((call, keypair.ss58_address, nonce))
        return self.outcome

    def rotate_keys(self):
        return '0x' + 'ab' * 64

    def modules_called(self):
        return [(module, function) for module, function, _ in self.composed]


@pytest.fixture
def env():
    return dict(ENV)


@pytest.fixture
def config(env):
    return Config.from_env(env)
