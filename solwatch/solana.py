"""JSON-RPC and WebSocket access to SPL token accounts."""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Mapping

import requests
import websocket

logger = logging.getLogger(__name__)

TOKEN_PROGRAM_ID = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"
PUBLIC_KEY_LENGTH = 32

_BASE58_INDEX = {
    c: i for i, c in enumerate("123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz")
}


class SolanaError(Exception):
    """Raised when talking to a Solana node fails or returns bad data."""


@dataclass
class TokenAccountInfo:
    """State of one SPL token account."""

    address: str
    owner: str
    mint: str
    balance: int
    decimals: int
    program_id: str = ""
    last_updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


def decode_base58(text: str) -> bytes:
    """Decode a Bitcoin-alphabet base58 string."""
    number = 0
    for char in text:
        if char not in _BASE58_INDEX:
            raise ValueError(f"invalid base58 character {char!r}")
        number = number * 58 + _BASE58_INDEX[char]
    zeros = len(text) - len(text.lstrip("1"))
    return b"\x00" * zeros + (number.to_bytes((number.bit_length() + 7) // 8, "big") if number else b"")


def validate_public_key(address: str) -> bytes:
    """Return the raw bytes of a base58 public key, raising SolanaError if invalid."""
    try:
        raw = decode_base58(address) if address else b""
    except ValueError as exc:
        raise SolanaError(f"invalid wallet address: {exc}") from exc
    if len(raw) != PUBLIC_KEY_LENGTH:
        raise SolanaError(
            f"invalid wallet address: invalid length, expected {PUBLIC_KEY_LENGTH}, got {len(raw)}"
        )
    return raw


def _parse_token_amount(token_amount: Any) -> tuple[int, int]:
    if not isinstance(token_amount, dict):
        raise SolanaError("token amount is malformed")
    amount = token_amount.get("amount", "")
    if not isinstance(amount, str) or not amount.isascii() or not amount.isdigit() or int(amount) >= 2**64:
        raise SolanaError(f"invalid token amount: {amount}")
    decimals = token_amount.get("decimals", 0)
    if isinstance(decimals, bool) or not isinstance(decimals, int) or not 0 <= decimals <= 255:
        raise SolanaError(f"invalid token decimals: {decimals}")
    return int(amount), decimals


def parse_token_account_from_subscription(
    notification: Mapping[str, Any], wallet_address: str
) -> TokenAccountInfo | None:
    """Extract a token account owned by ``wallet_address`` from a program notification result.

    Returns None for accounts outside the token program or owned by other wallets.
    """
    value = notification.get("value") or {}
    account = value.get("account") or {}
    if account.get("owner") != TOKEN_PROGRAM_ID:
        return None

    data = account.get("data")
    parsed = data.get("parsed") or {} if isinstance(data, dict) else None
    info = parsed.get("info") or {} if isinstance(parsed, dict) else None
    if not isinstance(info, dict):
        raise SolanaError("token account data is not parsed JSON")
    if info.get("owner", "") != wallet_address:
        return None

    balance, decimals = _parse_token_amount(info.get("tokenAmount") or {})
    return TokenAccountInfo(
        address=str(value.get("pubkey", "")),
        owner=wallet_address,
        mint=str(info.get("mint", "")),
        balance=balance,
        decimals=decimals,
    )


class SolanaClient:
    """Client for a Solana node's JSON-RPC and WebSocket endpoints."""

    timeout: float = 30.0
    recv_timeout: float = 1.0

    def __init__(self, rpc_endpoint: str, ws_endpoint: str, connect: bool = True) -> None:
        self.rpc_endpoint = rpc_endpoint
        self.ws_endpoint = ws_endpoint
        self._session = requests.Session()
        self._sockets: set[Any] = set()
        self._lock = threading.Lock()
        self._closed = False
        self._request_id = 0
        if connect:
            self._open_socket()

    def _open_socket(self) -> Any:
        try:
            sock = websocket.create_connection(self.ws_endpoint, timeout=self.timeout)
        except (OSError, websocket.WebSocketException) as exc:
            raise SolanaError(f"failed to connect to WebSocket: {exc}") from exc
        with self._lock:
            self._sockets.add(sock)
        return sock

    def _release_socket(self, sock: Any) -> None:
        with self._lock:
            self._sockets.discard(sock)
        try:
            sock.close()
        except (OSError, websocket.WebSocketException):
            pass

    def _next_id(self) -> int:
        with self._lock:
            self._request_id += 1
            return self._request_id

    def close(self) -> None:
        """Close every WebSocket connection and the HTTP session."""
        with self._lock:
            self._closed = True
            sockets = list(self._sockets)
        for sock in sockets:
            self._release_socket(sock)
        self._session.close()

    def __enter__(self) -> SolanaClient:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def get_token_accounts(self, wallet_address: str) -> list[TokenAccountInfo]:
        """Fetch all SPL token accounts owned by a wallet."""
        validate_public_key(wallet_address)
        payload = {
            "jsonrpc": "2.0",
            "id": self._next_id(),
            "method": "getTokenAccountsByOwner",
            "params": [wallet_address, {"programId": TOKEN_PROGRAM_ID}, {"encoding": "jsonParsed"}],
        }
        try:
            response = self._session.post(self.rpc_endpoint, json=payload, timeout=self.timeout)
            response.raise_for_status()
            body = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise SolanaError(f"failed to get token accounts: {exc}") from exc
        if not isinstance(body, dict):
            raise SolanaError("failed to get token accounts: malformed response")
        if error := body.get("error"):
            message = error.get("message", error) if isinstance(error, dict) else error
            raise SolanaError(f"failed to get token accounts: {message}")

        result = body.get("result") or {}
        items = (result.get("value") or []) if isinstance(result, dict) else []
        now = datetime.now(timezone.utc)
        accounts = []
        for item in items:
            try:
                data = item["account"]["data"]
                info = data["parsed"]["info"]
                balance, decimals = _parse_token_amount(info["tokenAmount"])
                accounts.append(
                    TokenAccountInfo(
                        address=str(item["pubkey"]),
                        owner=wallet_address,
                        mint=str(info["mint"]),
                        balance=balance,
                        decimals=decimals,
                        program_id=str(data.get("program", "")),
                        last_updated_at=now,
                    )
                )
            except (KeyError, TypeError, AttributeError, SolanaError):
                pubkey = item.get("pubkey") if isinstance(item, dict) else item
                logger.warning("Failed to parse token account data for %s", pubkey)
        return accounts

    def subscribe_to_token_account_updates(
        self,
        wallet_address: str,
        callback: Callable[[TokenAccountInfo], None],
        stop_event: threading.Event | None = None,
    ) -> None:
        """Stream token program updates and pass the wallet's accounts to ``callback``.

        Blocks until ``stop_event`` is set or the client is closed.
        """
        validate_public_key(wallet_address)
        stop_event = stop_event or threading.Event()
        request_id = self._next_id()
        request = {
            "jsonrpc": "2.0",
            "id": request_id,
            "method": "programSubscribe",
            "params": [TOKEN_PROGRAM_ID, {"encoding": "jsonParsed", "commitment": "confirmed"}],
        }

        sock = self._open_socket()
        try:
            try:
                sock.send(json.dumps(request))
                sock.settimeout(self.recv_timeout)
            except (OSError, websocket.WebSocketException) as exc:
                raise SolanaError(f"failed to subscribe to program updates: {exc}") from exc

            subscription_id = None
            while not stop_event.is_set() and not self._closed:
                try:
                    message = json.loads(sock.recv())
                except websocket.WebSocketTimeoutException:
                    continue
                except ValueError:
                    logger.warning("Ignoring malformed WebSocket message")
                    continue
                except (OSError, websocket.WebSocketException) as exc:
                    if stop_event.is_set() or self._closed:
                        return
                    raise SolanaError(f"WebSocket connection lost: {exc}") from exc
                if not isinstance(message, dict):
                    continue

                if message.get("id") == request_id:
                    if message.get("error"):
                        raise SolanaError(f"failed to subscribe to program updates: {message['error']}")
                    subscription_id = message.get("result")
                    continue
                if message.get("method") != "programNotification":
                    continue
                params = message.get("params") or {}
                if subscription_id is not None and params.get("subscription") != subscription_id:
                    continue

                try:
                    account = parse_token_account_from_subscription(params.get("result") or {}, wallet_address)
                except (SolanaError, AttributeError, TypeError) as exc:
                    logger.warning("Failed to parse token account update: %s", exc)
                    continue
                if account is not None:
                    callback(account)
        finally:
            self._release_socket(sock)