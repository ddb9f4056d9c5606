from typing import Optional

from web3 import Web3

from errors import ValidationError
from logger import setup_logger, mask_address

logger = setup_logger('wallet')


def to_checksum(address: str) -> str:
    try:
        return Web3.to_checksum_address(address)
    except (ValueError, TypeError):
        raise ValidationError(f"Invalid address: {address}")


class WalletProvider:
    """
    Native balance reads and transaction signing for one account.

    Without a private key the provider is read-only: balances can still be
    fetched for any address through the configured RPC endpoint.
    """

    def __init__(self, w3, private_key: Optional[str] = None, receipt_timeout: Optional[float] = None):
        self.w3 = w3
        self.receipt_timeout = receipt_timeout
        self._account = w3.eth.account.from_key(private_key) if private_key else None
        if self._account:
            logger.info(f"Signer loaded for {mask_address(self._account.address)}")

    @property
    def address(self) -> Optional[str]:
        return self._account.address if self._account else None

    @property
    def can_sign(self) -> bool:
        return self._account is not None

    async def get_balance(self, address: Optional[str] = None) -> str:
        """Native balance in wei, read straight from the chain"""
        address = address or self.address
        if not address:
            raise ValidationError("Wallet address is required")
        balance = await self.w3.eth.get_balance(to_checksum(address))
        return str(balance)

    async def transact(self, tx: dict):
        """Sign, send and wait for the receipt; no client-side timeout unless configured"""
        if not self.can_sign:
            raise ValidationError("Signer required to send transactions")

        if 'nonce' not in tx:
            tx['nonce'] = await self.w3.eth.get_transaction_count(self.address, 'pending')
        signed_tx = self._account.sign_transaction(tx)
        tx_hash = await self.w3.eth.send_raw_transaction(signed_tx.raw_transaction)
        logger.info(f"Transaction sent, hash: {Web3.to_hex(tx_hash)}")

        receipt = await self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.receipt_timeout)
        logger.info(f"Transaction confirmed in block {receipt.get('blockNumber')}")
        return receipt
