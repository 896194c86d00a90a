import queue
import threading
import time

import pytest

from solwatch.monitor import Monitor
from solwatch.solana import SolanaError, TokenAccountInfo


def make_account(owner="wallet1", mint="mintA", balance=5, address="acct1"):
    return TokenAccountInfo(address=address, owner=owner, mint=mint, balance=balance, decimals=6)


class FakeClient:
    def __init__(self, accounts=None):
        self.accounts = accounts or {}
        self.failing = set()
        self.callbacks = {}
        self.subscribed = threading.Event()
        self.finished = threading.Event()

    def get_token_accounts(self, wallet):
        if wallet in self.failing:
            raise SolanaError("failed to get token accounts: boom")
        return list(self.accounts.get(wallet, []))

    def subscribe_to_token_account_updates(self, wallet, callback, stop_event=None):
        self.callbacks[wallet] = callback
        self.subscribed.set()
        stop_event.wait()
        self.finished.set()


def wait_for(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def test_should_track_all_tokens_when_none_configured():
    monitor = Monitor(FakeClient(), ["wallet1"], [])
    assert monitor.should_track_token("anything") is True


def test_should_track_only_listed_tokens():
    monitor = Monitor(FakeClient(), ["wallet1"], ["mintA"])
    assert monitor.should_track_token("mintA") is True
    assert monitor.should_track_token("mintB") is False


def test_process_update_records_state_by_owner_and_mint():
    monitor = Monitor(FakeClient(), ["wallet1"])
    account = make_account()
    assert monitor.process_account_update(account) is True
    assert monitor.current_state() == {"wallet1:mintA": account}


def test_process_update_reports_only_balance_changes():
    monitor = Monitor(FakeClient(), ["wallet1"])
    assert monitor.process_account_update(make_account(balance=5)) is True
    assert monitor.process_account_update(make_account(balance=5)) is False
    assert monitor.process_account_update(make_account(balance=7)) is True
    assert monitor.current_state()["wallet1:mintA"].balance == 7


def test_handlers_receive_changed_accounts():
    monitor = Monitor(FakeClient(), ["wallet1"])
    received = queue.Queue()
    monitor.register_handler(received.put)
    account = make_account()
    monitor.process_account_update(account)
    assert received.get(timeout=2) is account


def test_handlers_not_called_when_balance_unchanged():
    monitor = Monitor(FakeClient(), ["wallet1"])
    monitor.process_account_update(make_account())
    called = threading.Event()
    monitor.register_handler(lambda account: called.set())
    monitor.process_account_update(make_account())
    assert called.wait(0.1) is False


def test_current_state_is_a_copy():
    monitor = Monitor(FakeClient(), ["wallet1"])
    monitor.process_account_update(make_account())
    snapshot = monitor.current_state()
    snapshot.clear()
    assert len(monitor.current_state()) == 1


def test_start_loads_initial_state_filtered_by_tokens():
    client = FakeClient(
        {"wallet1": [make_account(mint="mintA"), make_account(mint="mintB", address="acct2")]}
    )
    monitor = Monitor(client, ["wallet1"], ["mintA"])
    monitor.start()
    try:
        assert set(monitor.current_state()) == {"wallet1:mintA"}
    finally:
        monitor.stop()


def test_start_raises_when_initial_fetch_fails():
    client = FakeClient()
    client.failing.add("wallet1")
    monitor = Monitor(client, ["wallet1"])
    with pytest.raises(SolanaError):
        monitor.start()
    assert monitor.current_state() == {}


def test_poll_once_continues_after_failing_wallet():
    client = FakeClient({"wallet2": [make_account(owner="wallet2")]})
    client.failing.add("wallet1")
    monitor = Monitor(client, ["wallet1", "wallet2"])
    monitor.poll_once()
    assert set(monitor.current_state()) == {"wallet2:mintA"}


def test_subscription_updates_are_filtered_by_token():
    client = FakeClient()
    monitor = Monitor(client, ["wallet1"], ["mintA"])
    monitor.start()
    try:
        assert client.subscribed.wait(2)
        callback = client.callbacks["wallet1"]
        callback(make_account(mint="mintB"))
        callback(make_account(mint="mintA", balance=9))
        state = monitor.current_state()
        assert list(state) == ["wallet1:mintA"]
        assert state["wallet1:mintA"].balance == 9
    finally:
        monitor.stop()


def test_stop_ends_subscriptions():
    client = FakeClient()
    monitor = Monitor(client, ["wallet1"])
    monitor.start()
    assert client.subscribed.wait(2)
    monitor.stop()
    assert client.finished.wait(2)


def test_periodic_polling_picks_up_changes():
    client = FakeClient({"wallet1": [make_account(balance=1)]})
    monitor = Monitor(client, ["wallet1"], poll_interval=0.01)
    monitor.start()
    try:
        assert monitor.current_state()["wallet1:mintA"].balance == 1
        client.accounts["wallet1"] = [make_account(balance=2)]
        wait_for(lambda: monitor.current_state()["wallet1:mintA"].balance == 2)
        state = monitor.current_state()
        assert state["wallet1:mintA"].balance == 2
    finally:
        monitor.stop()