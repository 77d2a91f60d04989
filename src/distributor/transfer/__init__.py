"""Token transfer collaborators — the only way value leaves a ledger."""

from distributor.transfer.rail import TokenTransfer
from distributor.transfer.vault import InsufficientBalance, TokenVault, VaultPayer
from distributor.transfer.web3_transfer import TransferError, Web3TokenTransfer

__all__ = [
    "TokenTransfer",
    "InsufficientBalance",
    "TokenVault",
    "VaultPayer",
    "TransferError",
    "Web3TokenTransfer",
]
