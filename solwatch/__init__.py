"""Track SPL token balances of Solana wallets and report changes."""

__version__ = "0.1.0"
__all__ = ["__version__"]