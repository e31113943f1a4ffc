"""
Wallet - signs and sends transactions for the bidder.

The wallet holds a local eth-account key and asks a confirm callback before
signing anything; the callback plays the part of the browser wallet prompt
(the CLI wires it to click.confirm). Returning False from the callback is a
user decline, not a failure.

Each write is:
1. simulated with eth_call, so a revert surfaces its reason before the
   user is prompted;
2. confirmed by the user;
3. signed and sent;
4. awaited until a receipt exists. There is no deadline: the wait ends
   only when the network reports the transaction, and a failed lookup is
   retried on the next poll.

Any failure before the receipt wait (node errors included) is raised as
TransactionError, so callers see one error type per write.
"""

import asyncio
import inspect
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import AsyncWeb3
from web3.exceptions import ContractLogicError, TransactionNotFound

from dutchbid.core.config import ClientConfig
from dutchbid.core.errors import PreconditionError, TransactionError, UserDeclinedError
from dutchbid.core.models import TxReceipt
from dutchbid.utils.logger import get_logger

logger = get_logger("wallet")

ConfirmCallback = Callable[[str, Dict[str, Any]], Union[bool, Awaitable[bool]]]

REVERT_PREFIX = "execution reverted: "


def revert_reason(error: ContractLogicError) -> str:
    """Contract-supplied revert reason, without the node's prefix."""
    message = getattr(error, "message", None) or str(error)
    if message.startswith(REVERT_PREFIX):
        return message[len(REVERT_PREFIX):]
    return message


def _always_confirm(label: str, tx: Dict[str, Any]) -> bool:
    return True


class Wallet:
    """
    Transaction signer for one bidder account.

    Attributes:
        w3: AsyncWeb3 connection used for sending
        account: local signing account, None when no key is configured
        chain_id: chain the transactions are signed for
        gas_limit: fixed gas limit for every write
    """

    def __init__(
        self,
        w3: AsyncWeb3,
        account: Optional[LocalAccount],
        chain_id: int,
        gas_limit: int = 3_000_000,
        confirm: Optional[ConfirmCallback] = None,
        receipt_poll_interval: float = 1.0,
    ):
        self.w3 = w3
        self.account = account
        self.chain_id = chain_id
        self.gas_limit = gas_limit
        self.confirm = confirm or _always_confirm
        self.receipt_poll_interval = receipt_poll_interval

    @classmethod
    def from_config(
        cls,
        config: ClientConfig,
        w3: AsyncWeb3,
        confirm: Optional[ConfirmCallback] = None,
    ) -> "Wallet":
        account = None
        if config.private_key is not None:
            account = Account.from_key(config.private_key.get_secret_value())
        return cls(
            w3,
            account,
            chain_id=config.chain_id,
            gas_limit=config.gas_limit,
            confirm=confirm,
        )

    @property
    def is_connected(self) -> bool:
        return self.account is not None

    @property
    def address(self) -> Optional[str]:
        return self.account.address if self.account else None

    async def send(self, call, label: str) -> TxReceipt:
        """
        Simulate, confirm, sign and send a contract call; wait for its receipt.

        Args:
            call: bound contract function, e.g. contract.functions.cancelBid(0)
            label: human-readable action name shown in the prompt

        Raises:
            PreconditionError: no account configured
            UserDeclinedError: the confirm callback said no
            TransactionError: revert (with reason) or send failure
        """
        if self.account is None:
            raise PreconditionError("Wallet not connected")

        sender = self.account.address

        try:
            await call.call({"from": sender})
        except ContractLogicError as e:
            reason = revert_reason(e)
            logger.warning(f"{label} would revert: {reason}")
            raise TransactionError(reason) from e
        except Exception as e:
            logger.warning(f"{label} simulation failed: {e}")
            raise TransactionError(f"{label} simulation failed: {e}") from e

        try:
            nonce = await self.w3.eth.get_transaction_count(sender, "pending")
            tx = await call.build_transaction({
                "from": sender,
                "nonce": nonce,
                "gas": self.gas_limit,
                "chainId": self.chain_id,
            })
        except Exception as e:
            raise TransactionError(f"Could not build {label} transaction: {e}") from e

        approved = self.confirm(label, tx)
        if inspect.isawaitable(approved):
            approved = await approved
        if not approved:
            logger.info(f"{label} declined by user")
            raise UserDeclinedError(label)

        try:
            signed = self.account.sign_transaction(tx)
            raw_tx = getattr(signed, "raw_transaction", None) or signed.rawTransaction
            tx_hash = await self.w3.eth.send_raw_transaction(raw_tx)
        except Exception as e:
            raise TransactionError(f"{label} send failed: {e}") from e

        logger.info(f"{label} sent: {tx_hash.hex()}")
        receipt = await self.wait_for_receipt(tx_hash)

        if receipt.status != 1:
            logger.error(f"{label} reverted in block {receipt.block_number}")
            raise TransactionError("transaction reverted", tx_hash=receipt.tx_hash)

        logger.info(f"{label} confirmed in block {receipt.block_number}")
        return receipt

    async def wait_for_receipt(self, tx_hash) -> TxReceipt:
        """Poll for a receipt until the network reports one."""
        while True:
            try:
                receipt = await self.w3.eth.get_transaction_receipt(tx_hash)
            except TransactionNotFound:
                receipt = None
            except Exception as e:
                logger.warning(f"Receipt lookup for {tx_hash.hex()} failed, retrying: {e}")
                receipt = None

            if receipt is not None:
                return TxReceipt(
                    tx_hash=receipt["transactionHash"].hex(),
                    block_number=int(receipt["blockNumber"]),
                    status=int(receipt["status"]),
                    gas_used=int(receipt.get("gasUsed", 0)),
                )

            await asyncio.sleep(self.receipt_poll_interval)
