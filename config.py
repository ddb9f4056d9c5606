import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel

from errors import ConfigurationError
from logger import setup_logger, mask_address

logger = setup_logger('config')

# Load environment variables
load_dotenv()


class Settings(BaseModel):
    contract_address: Optional[str] = None
    rpc_url: Optional[str] = None
    private_key: Optional[str] = None
    database_url: str = "sqlite:///./tachi.db"
    # None waits for receipts indefinitely
    tx_receipt_timeout: Optional[float] = None

    def require_chain(self) -> None:
        """Raise ConfigurationError if the contract address or RPC endpoint is missing"""
        missing = []
        if not self.contract_address:
            missing.append("TACHI_CONTRACT_ADDRESS")
        if not self.rpc_url:
            missing.append("RPC_URL")
        if missing:
            raise ConfigurationError(f"Missing configuration: {', '.join(missing)}")


def load_settings() -> Settings:
    timeout = os.getenv("TX_RECEIPT_TIMEOUT")
    settings = Settings(
        contract_address=os.getenv("TACHI_CONTRACT_ADDRESS") or None,
        rpc_url=os.getenv("RPC_URL") or None,
        private_key=os.getenv("PRIVATE_KEY") or None,
        database_url=os.getenv("DATABASE_URL", "sqlite:///./tachi.db"),
        tx_receipt_timeout=float(timeout) if timeout else None,
    )

    # Log configuration (without exposing private key)
    logger.info(
        f"Configuration loaded: RPC_URL={settings.rpc_url}, "
        f"CONTRACT={mask_address(settings.contract_address)}, "
        f"SIGNER={'set' if settings.private_key else 'not set'}"
    )
    return settings
