"""Tracking of SPL token balances for a set of wallets."""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Iterable

from solwatch.solana import SolanaError, TokenAccountInfo

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 30.0

BalanceChangeHandler = Callable[[TokenAccountInfo], None]


class Monitor:
    """Keeps the token balances of wallets current and reports changes to handlers.

    The client must provide ``get_token_accounts(wallet)`` and
    ``subscribe_to_token_account_updates(wallet, callback, stop_event=...)``.
    """

    def __init__(
        self,
        client: Any,
        wallets: Iterable[str],
        tokens: Iterable[str] | None = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        self._client = client
        self.wallets = list(wallets)
        self.tokens = list(tokens or [])
        self.poll_interval = poll_interval
        self._handlers: list[BalanceChangeHandler] = []
        self._state: dict[str, TokenAccountInfo] = {}
        self._lock = threading.Lock()
        self._stop = threading.Event()

    def register_handler(self, handler: BalanceChangeHandler) -> None:
        """Add a callable to be run, in its own thread, whenever a balance changes."""
        self._handlers.append(handler)

    def start(self) -> None:
        """Load the initial balances, then follow updates in background threads.

        Raises ``SolanaError`` if the initial balances cannot be fetched.
        """
        for wallet in self.wallets:
            self._track_accounts(self._client.get_token_accounts(wallet))

        for wallet in self.wallets:
            threading.Thread(
                target=self._subscribe,
                args=(wallet,),
                name=f"solwatch-subscribe-{wallet}",
                daemon=True,
            ).start()

        threading.Thread(target=self._poll_forever, name="solwatch-poll", daemon=True).start()

    def stop(self) -> None:
        """Signal every background thread to finish."""
        self._stop.set()

    def current_state(self) -> dict[str, TokenAccountInfo]:
        """Return a copy of the tracked accounts keyed by ``owner:mint``."""
        with self._lock:
            return dict(self._state)

    def should_track_token(self, mint: str) -> bool:
        """Return whether the mint is tracked; with no tokens configured, all are."""
        return not self.tokens or mint in self.tokens

    def process_account_update(self, account: TokenAccountInfo) -> bool:
        """Record an account and notify handlers if it is new or its balance changed.

        Returns whether the handlers were notified.
        """
        key = f"{account.owner}:{account.mint}"
        with self._lock:
            previous = self._state.get(key)
            changed = previous is None or previous.balance != account.balance
            self._state[key] = account

        if changed:
            logger.info(
                "Token balance changed wallet=%s mint=%s balance=%d",
                account.owner,
                account.mint,
                account.balance,
            )
            for handler in list(self._handlers):
                threading.Thread(target=handler, args=(account,), daemon=True).start()
        return changed

    def poll_once(self) -> None:
        """Fetch the balances of every wallet once, logging wallets that fail."""
        for wallet in self.wallets:
            try:
                accounts = self._client.get_token_accounts(wallet)
            except SolanaError as exc:
                logger.error("Failed to poll token accounts for %s: %s", wallet, exc)
                continue
            self._track_accounts(accounts)

    def _track_accounts(self, accounts: Iterable[TokenAccountInfo]) -> None:
        for account in accounts:
            if self.should_track_token(account.mint):
                self.process_account_update(account)

    def _on_subscription_update(self, account: TokenAccountInfo) -> None:
        if self.should_track_token(account.mint):
            self.process_account_update(account)

    def _subscribe(self, wallet: str) -> None:
        try:
            self._client.subscribe_to_token_account_updates(
                wallet, self._on_subscription_update, stop_event=self._stop
            )
        except SolanaError as exc:
            logger.error("Failed to subscribe to wallet updates for %s: %s", wallet, exc)

    def _poll_forever(self) -> None:
        while not self._stop.wait(self.poll_interval):
            self.poll_once()