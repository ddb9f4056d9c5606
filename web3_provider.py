from web3 import AsyncWeb3, Web3

from config import Settings
from logger import setup_logger, mask_address
from tachi_abi import TACHI_FACTORY_ABI
from tachi_contract import TachiContract
from wallet import WalletProvider

# Initialize logger
logger = setup_logger('web3_provider')


def create_web3(rpc_url):
    return AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(rpc_url))


def get_contract(w3, contract_address, contract_abi=TACHI_FACTORY_ABI):
    """Get contract instance"""
    return w3.eth.contract(
        address=Web3.to_checksum_address(contract_address),
        abi=contract_abi
    )


class ContractSession:
    """
    Holds at most one read-only and one signer-bound contract facade.

    The signer-bound facade is rebuilt whenever the signing address changes,
    so a facade never outlives the wallet it was created for.
    """

    def __init__(self, settings: Settings, web3_factory=create_web3, contract_factory=get_contract):
        settings.require_chain()
        self.settings = settings
        self._web3_factory = web3_factory
        self._contract_factory = contract_factory
        self._w3 = None
        self._read_only = None
        self._read_wallet = None
        self._signer = None
        self._signer_address = None

    @property
    def w3(self):
        if self._w3 is None:
            self._w3 = self._web3_factory(self.settings.rpc_url)
        return self._w3

    async def check_connection(self) -> bool:
        connected = await self.w3.is_connected()
        if connected:
            logger.info(f"Connected to blockchain at {self.settings.rpc_url}")
        else:
            logger.error(f"Failed to connect to blockchain at {self.settings.rpc_url}")
        return connected

    @property
    def read_wallet(self) -> WalletProvider:
        if self._read_wallet is None:
            self._read_wallet = WalletProvider(self.w3)
        return self._read_wallet

    @property
    def read_only(self) -> TachiContract:
        if self._read_only is None:
            contract = self._contract_factory(self.w3, self.settings.contract_address)
            self._read_only = TachiContract(contract)
            logger.info(f"Read-only contract ready at {mask_address(self.settings.contract_address)}")
        return self._read_only

    def default_wallet(self):
        if not self.settings.private_key:
            return None
        return WalletProvider(self.w3, self.settings.private_key, self.settings.tx_receipt_timeout)

    def signer(self, wallet: WalletProvider) -> TachiContract:
        """Signer-bound facade for the wallet, recreated when the address changes"""
        address = (wallet.address or "").lower()
        if self._signer is None or address != self._signer_address:
            if self._signer is not None:
                logger.info(f"Signer changed from {mask_address(self._signer_address)} to {mask_address(address)}")
            contract = self._contract_factory(self.w3, self.settings.contract_address)
            self._signer = TachiContract(contract, wallet)
            self._signer_address = address
        return self._signer

    def reset(self):
        self._signer = None
        self._signer_address = None
