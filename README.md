# solwatch

solwatch watches the SPL token accounts held by one or more Solana wallets
and logs each balance change. It combines two sources of updates:

- a live WebSocket subscription to the token program (`programSubscribe`,
  commitment `confirmed`), one connection per wallet, and
- a poll over JSON-RPC (`getTokenAccountsByOwner`) every 30 seconds, which
  catches anything the subscription missed.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Running

```
solwatch
solwatch --config path/to/config.json
```

`--config` names the JSON configuration file; it defaults to `config.json`
in the current directory. If that file is missing, solwatch first writes one
with placeholder values (`ExampleWallet1`, `ExampleTokenMint1`, ...). Edit
it, or set environment variables, then start again; placeholder wallets are
not valid addresses, so start-up fails until they are replaced.

solwatch loads the current balances of every wallet, then follows updates
until it receives SIGINT or SIGTERM. Each new account or changed balance is
logged as `Token balance updated` with its address, owner, mint, balance and
decimals. The command exits with status 1 if the configuration cannot be
read, the WebSocket endpoint cannot be reached, no wallets are configured,
or the initial balances cannot be fetched; otherwise with 0.

## Configuration

`config.json`:

```json
{
  "rpc_endpoint": "https://api.mainnet-beta.solana.com",
  "ws_endpoint": "wss://api.mainnet-beta.solana.com",
  "wallets": ["<wallet address>"],
  "tokens": ["<token mint address>"],
  "log_level": "info"
}
```

The endpoints shown are the defaults. If `tokens` is empty, every token
account in the wallet is tracked.

Environment variables that are set and non-empty take precedence over the
file. A `.env` file in the current directory is read as well.

| Variable              | Meaning                          |
|-----------------------|----------------------------------|
| `SOLANA_RPC_ENDPOINT` | JSON-RPC endpoint                |
| `SOLANA_WS_ENDPOINT`  | WebSocket endpoint               |
| `MONITOR_WALLETS`     | comma-separated wallet addresses |
| `MONITOR_TOKENS`      | comma-separated token mints      |
| `LOG_LEVEL`           | log level, see below             |

Accepted log levels are `panic`, `fatal`, `error`, `warn`, `warning`,
`info`, `debug` and `trace`, in any case; anything else means `info`.

## Library use

```python
from solwatch.config import load_config
from solwatch.solana import SolanaClient
from solwatch.monitor import Monitor

cfg = load_config()
with SolanaClient(cfg.rpc_endpoint, cfg.ws_endpoint) as client:
    monitor = Monitor(client, cfg.wallets, cfg.tokens)
    monitor.register_handler(lambda account: print(account.mint, account.balance))
    monitor.start()
    ...
    monitor.stop()
```

- `solwatch.config`: `Config` (with `to_dict()`), `load_config(path)` and
  `create_default_config_file(path)`, which returns whether it wrote a file.
- `solwatch.solana`: `SolanaClient` with `get_token_accounts(wallet)` and
  `subscribe_to_token_account_updates(wallet, callback, stop_event)`, which
  blocks until the event is set or the client is closed. Passing
  `connect=False` skips the connection check to the WebSocket endpoint at
  construction. Failures raise `SolanaError`. Also `TokenAccountInfo`,
  `parse_token_account_from_subscription`, `validate_public_key` and
  `decode_base58`.
- `solwatch.monitor`: `Monitor(client, wallets, tokens, poll_interval=30.0)`.
  `current_state()` returns a copy of the tracked accounts, keyed by
  `"<owner>:<mint>"`. `poll_once()` refreshes every wallet once on demand.
  `should_track_token(mint)` tells whether a mint is tracked.
  `process_account_update(account)` records an account and returns whether
  handlers were notified.

A handler runs, in a thread of its own, only when an account is seen for the
first time or when its balance has changed.

## What it does not do

solwatch only logs balance changes. It does not store history, send
notifications, call webhooks or publish to message queues; to do any of
that, register your own handler with `Monitor.register_handler`.