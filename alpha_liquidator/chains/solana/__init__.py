"""Solana chain access."""
from .client import SolanaClient, associated_token_address
from .wallet import SolanaWallet, WalletSigner

__all__ = ["SolanaClient", "SolanaWallet", "WalletSigner", "associated_token_address"]
