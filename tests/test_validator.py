from dataclasses import replace

import pytest
from substrateinterface import Keypair

from conftest import ENV, FakeClient
from validator_ops import faucet, validator
from validator_ops.config import Config
from validator_ops.errors import (
    BondValueError,
    ConfigError,
    ExtrinsicFailed,
    FaucetError,
    NodeSyncing,
    ValidatorOpsError,
)
from validator_ops.tracker import SubmissionOutcome
from validator_ops.validator import ValidatorState, add_validator, run

STASH = Keypair.create_from_mnemonic(ENV['STASH_ACCOUNT_MNEMONIC'])
CONTROLLER = Keypair.create_from_mnemonic(ENV['CONTROLLER_ACCOUNT_MNEMONIC'])


class FakeResponse:
    status_code = 503
    text = 'Service Unavailable'


class SlowFaucetClient(FakeClient):
    """Balances stay empty for the first `delay` balance reads, then everyone has 5000."""

    def __init__(self, delay):
        super().__init__()
        self.delay = delay
        self.reads = 0

    def free_balance(self, address):
        self.reads += 1
        return 5000 if self.reads > self.delay else 0


def test_load_accounts_workflow(config):
    client = FakeClient(endowment=10_000)
    slept = []

    state = run(client, config, sleep=slept.append)

    assert client.modules_called() == [
        ('Balances', 'transfer_keep_alive'),
        ('Balances', 'transfer_keep_alive'),
        ('Identity', 'set_identity'),
        ('Identity', 'set_identity'),
        ('Staking', 'bond'),
        ('Session', 'set_keys'),
        ('Staking', 'validate'),
    ]
    signers = [signer for _, signer, _ in client.submitted]
    assert signers == [STASH.ss58_address, CONTROLLER.ss58_address,
                       STASH.ss58_address, CONTROLLER.ss58_address, CONTROLLER.ss58_address]

    _, _, bond = client.composed[4]
    assert bond == {'controller': CONTROLLER.ss58_address, 'value': 1000, 'payee': 'Staked'}
    _, _, set_keys = client.composed[5]
    assert set_keys == {'keys': state.session_key, 'proof': '0x'}
    _, _, validate = client.composed[6]
    assert validate == {'prefs': {'commission': 50_000_000, 'blocked': False}}

    assert state.stash_balance == 10_000
    assert slept == []


def test_identity_uses_configured_display_name(env):
    env['STASH_IDENTITY'] = 'validator-01'
    client = FakeClient()

    run(client, Config.from_env(env), sleep=lambda _: None)

    _, _, identity = client.composed[2]
    assert identity['info']['display'] == {'Raw': 'validator-01'}


def test_bond_above_balance_fails_before_any_submission(config):
    client = FakeClient()
    state = ValidatorState(stash=STASH, controller=CONTROLLER, stash_balance=1000)

    with pytest.raises(BondValueError, match='should be less than stash balance 1000'):
        add_validator(client, config, state)

    assert client.composed == []
    assert client.submitted == []


def test_workflow_stops_when_stash_cannot_cover_bond(config):
    client = FakeClient(endowment=500)

    with pytest.raises(BondValueError):
        run(client, config, sleep=lambda _: None)

    assert ('Staking', 'bond') not in client.modules_called()


def test_faucet_error_aborts_before_bonding(env, monkeypatch, capsys):
    monkeypatch.setattr(faucet.requests, 'post', lambda url, **kwargs: FakeResponse())
    client = FakeClient()

    with pytest.raises(FaucetError) as excinfo:
        run(client, Config.from_env(env, new_accounts=True), new_accounts=True, sleep=lambda _: None)

    assert excinfo.value.status_code == 503
    assert client.composed == []
    assert client.submitted == []
    assert 'GENERATED 12-WORD MNEMONIC SEED (Stash)' in capsys.readouterr().out


def test_new_accounts_wait_for_faucet_funds(env):
    requested = []

    def request(endpoint, address, network):
        requested.append((endpoint, address, network))
        return {'status': 'queued'}

    client = SlowFaucetClient(delay=4)
    slept = []

    state = run(client, Config.from_env(env, new_accounts=True), new_accounts=True,
                request=request, sleep=slept.append)

    assert [network for _, _, network in requested] == ['QA_NET', 'QA_NET']
    assert requested[0][1] == state.stash.ss58_address
    assert requested[1][1] == state.controller.ss58_address
    assert slept == [6, 6]
    assert state.stash_balance == 5000
    assert client.modules_called() == [('Staking', 'bond'), ('Session', 'set_keys'), ('Staking', 'validate')]


def test_new_accounts_give_up_when_stash_stays_empty(env):
    client = SlowFaucetClient(delay=1000)
    slept = []

    with pytest.raises(ValidatorOpsError, match='Stash balance should be above 0'):
        run(client, Config.from_env(env, new_accounts=True), new_accounts=True,
            request=lambda *args: {}, sleep=slept.append)

    assert len(slept) == 3
    assert client.composed == []


def test_rejected_extrinsic_aborts_workflow(config):
    client = FakeClient(outcome=SubmissionOutcome.failure('extrinsic failed', block_hash='0x09'))

    with pytest.raises(ExtrinsicFailed):
        run(client, config, sleep=lambda _: None)

    assert len(client.submitted) == 1
    assert ('Staking', 'bond') not in client.modules_called()


def test_connect_waits_for_sync(config, monkeypatch):
    client = FakeClient()
    checks = iter([NodeSyncing('Node is syncing'), NodeSyncing('Node is syncing'), None])

    def ensure_synced():
        error = next(checks)
        if error:
            raise error

    client.ensure_synced = ensure_synced
    monkeypatch.setattr(validator.ChainClient, 'connect', lambda url: client)
    slept = []

    assert validator.connect(config, sleep=slept.append) is client
    assert slept == [6, 6]


def test_connect_closes_client_when_node_keeps_syncing(env, monkeypatch):
    env['SYNC_MAX_ATTEMPTS'] = '1'
    client = FakeClient()

    def ensure_synced():
        raise NodeSyncing('Node is syncing')

    client.ensure_synced = ensure_synced
    monkeypatch.setattr(validator.ChainClient, 'connect', lambda url: client)

    with pytest.raises(NodeSyncing):
        validator.connect(Config.from_env(env), sleep=lambda _: None)
    assert client.closed


def test_main_success(config, monkeypatch, capsys):
    client = FakeClient()
    monkeypatch.setattr(validator.Config, 'from_env', lambda new_accounts: config)
    monkeypatch.setattr(validator, 'connect', lambda cfg: client)

    assert validator.main([]) == 0
    assert 'Validator added successfully!' in capsys.readouterr().out
    assert client.closed


def test_main_reports_failure(monkeypatch):
    def from_env(new_accounts):
        raise ConfigError('Missing required environment variables: PROVIDER')

    monkeypatch.setattr(validator.Config, 'from_env', from_env)

    assert validator.main(['--new-accounts']) == 1


def test_main_rejects_bad_mnemonic_before_connecting(config, monkeypatch):
    connected = []
    monkeypatch.setattr(validator.Config, 'from_env',
                        lambda new_accounts: replace(config, stash_mnemonic='not a real seed phrase'))
    monkeypatch.setattr(validator, 'connect', lambda cfg: connected.append(cfg))

    assert validator.main([]) == 1
    assert connected == []


def test_derive_accounts_names_the_bad_mnemonic(config):
    with pytest.raises(ConfigError, match='CONTROLLER_ACCOUNT_MNEMONIC'):
        validator.derive_accounts(replace(config, controller_mnemonic='abandon abandon'))


def test_main_reports_unknown_log_level(monkeypatch):
    monkeypatch.setattr(validator.Config, 'from_env', lambda new_accounts: pytest.fail('config loaded'))

    assert validator.main(['--log-level', 'chatty']) == 1
