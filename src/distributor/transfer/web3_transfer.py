"""ERC-20 payouts on an Ethereum-compatible chain.

Sends `transfer(address,uint256)` from a funded signer key. Before
broadcasting, the call is simulated: a revert, or a token that returns
`false`, fails the payout without spending gas. Tokens that return no
data at all are accepted, as in common safe-transfer libraries. After
broadcasting, the transfer waits for one confirmation and fails on a
reverted receipt. If no receipt arrives the transaction may still be
mined, so the outcome is reported as TransferPending rather than a
failure.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from eth_abi import decode, encode
from eth_utils import keccak

from distributor.errors import DistributorError, TransferPending
from distributor.models.commitment import normalize_address, normalize_amount


TRANSFER_SELECTOR = keccak(text="transfer(address,uint256)")[:4]


class TransferError(DistributorError):
    """Raised when an on-chain token transfer does not go through."""


@dataclass(frozen=True)
class TransferReceipt:
    """A record of a confirmed token transfer."""
    token: str
    recipient: str
    amount: int
    tx_hash: str
    block_number: int
    chain_id: int
    timestamp_utc: str


def transfer_calldata(recipient: str, amount: int) -> bytes:
    """ABI calldata for transfer(recipient, amount)."""
    return TRANSFER_SELECTOR + encode(
        ["address", "uint256"],
        [normalize_address(recipient), normalize_amount(amount)],
    )


class Web3TokenTransfer:
    """TokenTransfer implementation that pays from a signer key.

    Args:
        rpc_url: Ethereum RPC endpoint URL.
        private_key: Hex-encoded private key for signing.
        chain_id: Network chain ID.
        gas: Gas limit per transfer.
        gas_price_gwei: Gas price in gwei.
        timeout: Seconds to wait for the receipt.
        web3: Optional preconfigured Web3 instance (overrides rpc_url).
    """

    def __init__(
        self,
        rpc_url: str,
        private_key: str,
        chain_id: int,
        gas: int = 100_000,
        gas_price_gwei: str = "2",
        timeout: int = 300,
        web3: Optional[Any] = None,
    ) -> None:
        from web3 import Web3, HTTPProvider
        from eth_account import Account

        self._w3 = web3 if web3 is not None else Web3(HTTPProvider(rpc_url))
        self._account = Account.from_key(private_key)
        self._chain_id = chain_id
        self._gas = gas
        self._gas_price_gwei = gas_price_gwei
        self._timeout = timeout
        self._receipts: list[TransferReceipt] = []
        self._unconfirmed: list[str] = []

    @property
    def sender(self) -> str:
        return self._account.address

    @property
    def receipts(self) -> list[TransferReceipt]:
        return list(self._receipts)

    @property
    def unconfirmed(self) -> list[str]:
        """Hashes of broadcast transactions whose receipt never arrived."""
        return list(self._unconfirmed)

    def transfer(self, token: str, recipient: str, amount: int) -> None:
        token = normalize_address(token)
        recipient = normalize_address(recipient)
        data = transfer_calldata(recipient, amount)

        try:
            returned = self._w3.eth.call(
                {"from": self._account.address, "to": token, "data": data}
            )
        except Exception as exc:
            raise TransferError(f"transfer of {amount} {token} to {recipient} reverts") from exc
        if returned and not decode(["bool"], bytes(returned))[0]:
            raise TransferError(f"token {token} returned false for transfer to {recipient}")

        tx = {
            "to": token,
            "value": 0,
            "gas": self._gas,
            "gasPrice": self._w3.to_wei(self._gas_price_gwei, "gwei"),
            "nonce": self._w3.eth.get_transaction_count(self._account.address),
            "chainId": self._chain_id,
            "data": data,
        }
        signed = self._account.sign_transaction(tx)
        try:
            tx_hash = self._w3.eth.send_raw_transaction(signed.raw_transaction)
        except Exception as exc:
            raise TransferError(f"node rejected transfer of {amount} {token} to {recipient}") from exc

        try:
            receipt = self._w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self._timeout)
        except Exception as exc:
            self._unconfirmed.append(tx_hash.hex())
            raise TransferPending(
                tx_hash.hex(),
                f"transfer tx {tx_hash.hex()} broadcast but not confirmed: {exc}",
            ) from exc
        if receipt.status != 1:
            raise TransferError(f"transfer tx {tx_hash.hex()} reverted")

        self._receipts.append(
            TransferReceipt(
                token=token,
                recipient=recipient,
                amount=amount,
                tx_hash=tx_hash.hex(),
                block_number=receipt.blockNumber,
                chain_id=self._chain_id,
                timestamp_utc=datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
            )
        )
