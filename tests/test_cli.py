"""Tests for the update_adblock entry point and its exit codes."""
import pytest

import update_adblock
from adblock_sync.errors import ConfigError
from adblock_sync.reconciler import SyncReport, SyncState

from tests.fakes import ACCOUNT_ID, RULE_ID, FakeGateway

ENV = {"API_TOKEN": "token", "ACCOUNT_ID": "acct", "RULE_ID": "rule", "YEAR": "2026", "MONTH": "10"}


@pytest.fixture()
def env(monkeypatch):
    for name, value in ENV.items():
        monkeypatch.setenv(name, value)
    monkeypatch.delenv("CHUNK_SIZE", raising=False)


def _fake_sync(report):
    async def sync(settings):
        return report
    return sync


def test_exit_zero_when_done(env, monkeypatch):
    report = SyncReport(state=SyncState.DONE, domains=10, chunks=1)
    monkeypatch.setattr(update_adblock, "sync", _fake_sync(report))
    assert update_adblock.main([]) == 0


def test_exit_one_when_sync_fails(env, monkeypatch):
    report = SyncReport(state=SyncState.FAILED, failed_state=SyncState.CREATING,
                        error=RuntimeError("boom"), domains=10, chunks=1)
    monkeypatch.setattr(update_adblock, "sync", _fake_sync(report))
    assert update_adblock.main([]) == 1


def test_exit_one_on_bad_configuration(env, monkeypatch):
    monkeypatch.setenv("CHUNK_SIZE", "lots")
    assert update_adblock.main([]) == 1


def test_show_rules_failure_exits_one(env, monkeypatch):
    async def show_rules(settings):
        raise ConfigError("ACCOUNT_ID is not set")
    monkeypatch.setattr(update_adblock, "show_rules", show_rules)
    assert update_adblock.main(["--show-rules"]) == 1


def test_parse_args():
    args = update_adblock.parse_args(["--show-rules", "-v"])
    assert args.show_rules and args.verbose


@pytest.mark.asyncio
async def test_log_rules_shows_configured_rule_first(caplog):
    caplog.set_level("INFO")
    gateway = FakeGateway()
    await update_adblock.log_rules(gateway, RULE_ID)

    assert caplog.messages[0] == "🎯 Configured RULE_ID:"
    assert RULE_ID in caplog.messages[1]
    assert ("GET", f"accounts/{ACCOUNT_ID}/gateway/rules/{RULE_ID}") in gateway.calls


@pytest.mark.asyncio
async def test_log_rules_without_rule_id(caplog):
    caplog.set_level("INFO")
    gateway = FakeGateway()
    await update_adblock.log_rules(gateway)

    assert "RULE_ID is not set" in caplog.text
    assert all(not path.endswith(f"rules/{RULE_ID}") for _, path in gateway.calls)
