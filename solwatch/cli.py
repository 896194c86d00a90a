"""Command that watches the token balances of the configured wallets."""

from __future__ import annotations

import argparse
import logging
import signal
import threading
from typing import Sequence

from solwatch.config import DEFAULT_CONFIG_FILE, create_default_config_file, load_config
from solwatch.monitor import Monitor
from solwatch.solana import SolanaClient, SolanaError, TokenAccountInfo

logger = logging.getLogger(__name__)


def log_balance_update(account: TokenAccountInfo) -> None:
    """Log an updated token balance."""
    logger.info(
        "Token balance updated address=%s owner=%s mint=%s balance=%d decimals=%d",
        account.address,
        account.owner,
        account.mint,
        account.balance,
        account.decimals,
    )


def _wait_for_shutdown() -> None:
    stop = threading.Event()

    def request_stop(signum, frame):
        stop.set()

    signals = [signal.SIGINT, signal.SIGTERM]
    previous = {signum: signal.signal(signum, request_stop) for signum in signals}
    try:
        while not stop.wait(0.5):
            pass
    finally:
        for signum, handler in previous.items():
            signal.signal(signum, handler)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="solwatch", description="Watch SPL token balances of Solana wallets."
    )
    parser.add_argument(
        "--config",
        default=DEFAULT_CONFIG_FILE,
        help="path of the JSON configuration file (default: %(default)s)",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run the tracker until interrupted; return the exit status."""
    args = _build_parser().parse_args(argv)

    try:
        create_default_config_file(args.config)
    except OSError as exc:
        logger.critical("Failed to create default config file: %s", exc)
        return 1

    try:
        config = load_config(args.config)
    except (OSError, ValueError) as exc:
        logger.critical("Failed to load configuration: %s", exc)
        return 1

    try:
        client = SolanaClient(config.rpc_endpoint, config.ws_endpoint)
    except SolanaError as exc:
        logger.critical("Failed to initialize Solana client: %s", exc)
        return 1

    with client:
        if not config.wallets:
            logger.critical(
                "No wallets configured to monitor. Add wallets to config.json "
                "or set MONITOR_WALLETS environment variable."
            )
            return 1

        monitor = Monitor(client, config.wallets, config.tokens)
        monitor.register_handler(log_balance_update)

        try:
            monitor.start()
        except SolanaError as exc:
            logger.critical("Failed to start monitor: %s", exc)
            return 1

        logger.info(
            "Started monitoring token balances wallets=%s tokens=%s",
            config.wallets,
            config.tokens,
        )
        _wait_for_shutdown()

        logger.info("Shutting down...")
        monitor.stop()

    logger.info("Solana wallet tracker stopped")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())