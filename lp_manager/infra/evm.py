"""
EVM transaction signing and execution using web3.py

Provides local signing for the custody account, thread-safe nonce
management, and a transactor that previews every state-changing call
with eth_call before broadcasting it so venue reverts surface as typed
exceptions instead of failed receipts.
"""

from __future__ import annotations

import logging
import os
import threading
from typing import Optional, Dict, Any, Tuple

from web3 import Web3, HTTPProvider
from web3.exceptions import TimeExhausted
from web3.middleware import ExtraDataToPOAMiddleware
from eth_account import Account
from eth_account.signers.local import LocalAccount

from ..errors import SignerError, RpcError, TransactionError
from ..config import EVMConfig, config as global_config
from .revert import classify_revert
from .tracing import get_correlation_id

logger = logging.getLogger(__name__)

# BSC mainnet and testnet (Proof of Staked Authority)
POA_CHAIN_IDS = (56, 97)


class NonceManager:
    """
    Thread-safe nonce manager for EVM transactions.

    Prevents nonce collisions when sending transactions back to back by
    tracking pending nonces locally under a lock and re-syncing with the
    chain when needed.
    """

    def __init__(self):
        self._lock = threading.Lock()
        # {address: next_nonce}
        self._pending_nonces: Dict[str, int] = {}
        # {address: set of pending nonces}
        self._in_flight: Dict[str, set] = {}

    def get_nonce(self, web3: "Web3", address: str) -> int:
        """
        Get the next available nonce for an address (thread-safe).

        Args:
            web3: Web3 instance
            address: Wallet address

        Returns:
            Next nonce to use
        """
        key = address.lower()

        with self._lock:
            # On-chain nonce includes pending mempool transactions
            chain_nonce = web3.eth.get_transaction_count(Web3.to_checksum_address(address), "pending")
            tracked_nonce = self._pending_nonces.get(key, chain_nonce)

            # Transactions may have been sent outside this manager
            next_nonce = max(chain_nonce, tracked_nonce)

            self._pending_nonces[key] = next_nonce + 1
            self._in_flight.setdefault(key, set()).add(next_nonce)

            logger.debug(
                f"NonceManager: address={key[:10]}... "
                f"chain={chain_nonce} tracked={tracked_nonce} assigned={next_nonce}"
            )

            return next_nonce

    def confirm_nonce(self, address: str, nonce: int) -> None:
        """Confirm a nonce was consumed by a broadcast transaction."""
        key = address.lower()

        with self._lock:
            if key in self._in_flight:
                self._in_flight[key].discard(nonce)

    def release_nonce(self, address: str, nonce: int) -> None:
        """
        Release a nonce that failed before broadcast so it can be reused.
        """
        key = address.lower()

        with self._lock:
            if key in self._in_flight:
                self._in_flight[key].discard(nonce)

            current_pending = self._pending_nonces.get(key, 0)
            if nonce == current_pending - 1:
                self._pending_nonces[key] = nonce
                logger.debug(f"NonceManager: released nonce {nonce} for {key[:10]}...")

    def reset(self, address: Optional[str] = None) -> None:
        """
        Reset nonce tracking, forcing re-sync with chain.

        Args:
            address: Address to reset. If None, resets all addresses.
        """
        with self._lock:
            if address:
                key = address.lower()
                self._pending_nonces.pop(key, None)
                self._in_flight.pop(key, None)
            else:
                self._pending_nonces.clear()
                self._in_flight.clear()


# Global nonce manager instance (shared across all EVMSigner instances)
_nonce_manager = NonceManager()


def get_nonce_manager() -> NonceManager:
    """Get the global nonce manager instance."""
    return _nonce_manager


class EVMSigner:
    """
    Local EVM signer for the custody account

    Usage:
        signer = EVMSigner.from_private_key("0x...")
        signer = EVMSigner.from_env()
        result = signer.sign_and_send(web3, tx_dict)
    """

    def __init__(self, account: "LocalAccount", nonce_manager: Optional[NonceManager] = None):
        self._account = account
        self._nonces = nonce_manager or _nonce_manager

    @property
    def address(self) -> str:
        """Get wallet address (checksummed)"""
        return self._account.address

    def sign_and_send(
        self,
        web3: "Web3",
        tx_dict: Dict[str, Any],
        wait_for_receipt: bool = True,
        timeout: int = 120,
    ) -> Dict[str, Any]:
        """
        Sign and send transaction with thread-safe nonce management.

        Args:
            web3: Web3 instance connected to RPC
            tx_dict: Transaction dictionary
            wait_for_receipt: Wait for transaction receipt
            timeout: Timeout in seconds for receipt

        Returns:
            Dict with status, tx_hash, and optionally receipt. Status is
            "unconfirmed" when the transaction was broadcast but its
            receipt could not be obtained; tx_hash is set in that case.
        """
        nonce = None
        nonce_from_manager = False
        tx_hash = None

        try:
            if "nonce" not in tx_dict:
                nonce = self._nonces.get_nonce(web3, self.address)
                tx_dict["nonce"] = nonce
                nonce_from_manager = True
            else:
                nonce = tx_dict["nonce"]

            if "chainId" not in tx_dict:
                tx_dict["chainId"] = web3.eth.chain_id

            signed = self._account.sign_transaction(tx_dict)
            tx_hash = web3.eth.send_raw_transaction(signed.raw_transaction)
            # Broadcast: the nonce is spent whatever happens next
            if nonce_from_manager:
                self._nonces.confirm_nonce(self.address, nonce)

            if wait_for_receipt:
                receipt = web3.eth.wait_for_transaction_receipt(tx_hash, timeout=timeout)
                return {
                    "status": "success" if receipt["status"] == 1 else "failed",
                    "tx_hash": tx_hash.hex(),
                    "block_number": receipt["blockNumber"],
                    "gas_used": receipt["gasUsed"],
                    "effective_gas_price": receipt.get("effectiveGasPrice", 0),
                    "receipt": receipt,
                }

            return {
                "status": "pending",
                "tx_hash": tx_hash.hex(),
            }

        except TimeExhausted as e:
            logger.error(f"Transaction {tx_hash.hex()} not confirmed within {timeout}s: {e}")
            return {
                "status": "unconfirmed",
                "error": str(e),
                "tx_hash": tx_hash.hex(),
            }

        except Exception as e:
            if tx_hash is not None:
                logger.error(f"Receipt for {tx_hash.hex()} unavailable: {e}")
                return {
                    "status": "unconfirmed",
                    "error": str(e),
                    "tx_hash": tx_hash.hex(),
                }

            error_str = str(e).lower()
            is_pre_send_error = any(keyword in error_str for keyword in [
                "nonce too low",
                "replacement transaction",
                "insufficient funds",
                "gas too low",
                "invalid sender",
            ])

            if nonce_from_manager and is_pre_send_error:
                self._nonces.release_nonce(self.address, nonce)

            logger.error(f"Transaction failed: {e}")
            return {
                "status": "failed",
                "error": str(e),
                "tx_hash": None,
            }

    @classmethod
    def from_private_key(cls, private_key: str) -> "EVMSigner":
        """
        Create signer from private key

        Args:
            private_key: Hex-encoded private key (with or without 0x prefix)
        """
        if not private_key.startswith("0x"):
            private_key = "0x" + private_key

        try:
            account = Account.from_key(private_key)
        except ValueError as e:
            raise SignerError.failed(f"invalid private key: {e}")
        return cls(account)

    @classmethod
    def from_env(cls, env_var: str = "EVM_PRIVATE_KEY") -> "EVMSigner":
        """
        Create signer from environment variable

        Raises:
            SignerError: If environment variable is not set
        """
        private_key = os.getenv(env_var, "")
        if not private_key:
            raise SignerError.not_configured()

        return cls.from_private_key(private_key)

    def __repr__(self) -> str:
        return f"EVMSigner(address={self.address})"


def create_web3(
    rpc_url: str,
    chain_id: Optional[int] = None,
    timeout: float = 30,
) -> "Web3":
    """
    Create Web3 instance for a chain

    Args:
        rpc_url: RPC endpoint URL
        chain_id: Chain ID (1 for ETH, 56 for BSC). If None, detected from RPC.
        timeout: Request timeout in seconds

    Returns:
        Configured Web3 instance

    Raises:
        RpcError: If the chain ID cannot be detected
    """
    provider = HTTPProvider(
        rpc_url,
        request_kwargs={"timeout": timeout},
    )

    web3 = Web3(provider)

    if chain_id is None:
        try:
            chain_id = web3.eth.chain_id
        except Exception as e:
            raise RpcError.connection_failed(rpc_url, e)

    if chain_id in POA_CHAIN_IDS:
        web3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)

    return web3


class EvmTransactor:
    """
    Previews, signs and broadcasts contract calls for the custody account

    Every state-changing call is first executed with eth_call from the
    custody address. A revert there is classified into a manager
    exception before anything is broadcast.
    """

    def __init__(
        self,
        web3: "Web3",
        signer: EVMSigner,
        evm_config: Optional[EVMConfig] = None,
        priority_fee_gwei: float = 0.1,
    ):
        self._web3 = web3
        self._signer = signer
        self._evm = evm_config or global_config.evm
        self._priority_fee_gwei = priority_fee_gwei
        self._chain_id: Optional[int] = None

    @property
    def web3(self) -> "Web3":
        return self._web3

    @property
    def address(self) -> str:
        return self._signer.address

    @property
    def evm_config(self) -> EVMConfig:
        return self._evm

    @property
    def chain_id(self) -> int:
        if self._chain_id is None:
            self._chain_id = self._web3.eth.chain_id
        return self._chain_id

    def preview(self, fn, description: str) -> Any:
        """Run a contract call with eth_call from the custody address"""
        try:
            return fn.call({"from": self.address})
        except Exception as e:
            error = classify_revert(e, description)
            logger.warning(f"{description} rejected in preview: {error}")
            raise error from e

    def execute(self, fn, gas: int, description: str, preview: bool = True) -> Tuple[Any, Dict[str, Any]]:
        """
        Preview then broadcast a contract call and wait for its receipt

        Args:
            fn: Bound contract function (contract.functions.x(...))
            gas: Explicit gas limit
            description: Human readable label for logs and errors
            preview: Skip when the caller already ran its own eth_call

        Returns:
            (preview return value, receipt)

        Raises:
            LpManagerError subclass for reverts, TransactionError for send failures
        """
        result_preview = self.preview(fn, description) if preview else None

        try:
            tx = fn.build_transaction({
                "from": self.address,
                "value": 0,
                "gas": gas,
                "chainId": self.chain_id,
            })
        except Exception as e:
            raise classify_revert(e, description) from e

        self._add_gas_price(tx)

        cid = get_correlation_id()
        prefix = f"[{cid}] " if cid else ""
        logger.info(f"{prefix}Sending {description}")

        result = self._signer.sign_and_send(
            self._web3, tx, wait_for_receipt=True, timeout=self._evm.receipt_timeout
        )
        if result["status"] == "unconfirmed":
            # May still be mined
            raise TransactionError.confirmation_failed(result["tx_hash"], f"{description}: {result.get('error')}")
        if result["status"] != "success":
            if result.get("tx_hash"):
                raise TransactionError.reverted(result["tx_hash"], description)
            raise TransactionError.send_failed(result.get("error", "unknown error"))

        logger.info(f"{prefix}{description} confirmed: {result['tx_hash']} (gas {result['gas_used']})")
        return result_preview, result["receipt"]

    def _add_gas_price(self, tx: Dict[str, Any]):
        """Add EIP-1559 gas price, or legacy gasPrice on chains without a base fee"""
        latest_block = self._web3.eth.get_block("latest")
        base_fee = latest_block.get("baseFeePerGas")
        if base_fee is None:
            tx.pop("maxFeePerGas", None)
            tx.pop("maxPriorityFeePerGas", None)
            tx["gasPrice"] = self._web3.eth.gas_price
            return
        max_priority_fee = self._web3.to_wei(self._priority_fee_gwei, "gwei")
        tx["maxFeePerGas"] = int(base_fee * 2) + max_priority_fee
        tx["maxPriorityFeePerGas"] = max_priority_fee
        # web3 v7 may have filled a legacy gasPrice
        tx.pop("gasPrice", None)
