# elections_relay/config.py
# Central place for settings and constants

import json
import os
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()

# EIP-712 signing domain used by the wallet frontend
DOMAIN_NAME = "ETH-Elections"
DOMAIN_VERSION = "1.0.0"

# Cache collections
VOTING_RESULTS_COLLECTION = "voting_results"
REGISTERED_VOTERS_COLLECTION = "registered_voters"


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_list(name: str, default: List[str]) -> List[str]:
    value = os.getenv(name)
    if not value:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseModel):
    # --- Ledger ---
    rpc_endpoint: str = "http://127.0.0.1:8545"
    private_key: Optional[str] = None
    contract_address: Optional[str] = None
    contract_artifact_path: str = "contracts/Elections.json"
    chain_id: Optional[int] = None

    # --- Cache ---
    mongo_uri: str = "mongodb://localhost:27017"
    mongo_db: str = "elections_cache"

    # --- Reconciliation ---
    reconcile_interval_seconds: float = Field(60.0, gt=0)
    reconcile_page_size: int = Field(100, gt=0)
    reconcile_start_offset: int = Field(0, ge=0)
    reconcile_max_pages: int = Field(1000, gt=0)

    # --- Relay ---
    tx_inclusion_timeout: float = Field(120.0, gt=0)
    tx_poll_interval: float = Field(0.5, gt=0)
    relay_verify_signatures: bool = False

    cors_origins: List[str] = ["http://localhost:3000", "http://localhost:5173"]

    @classmethod
    def from_env(cls) -> "Settings":
        chain_id = os.getenv("CHAIN_ID")
        return cls(
            rpc_endpoint=os.getenv("RPC_ENDPOINT", "http://127.0.0.1:8545"),
            private_key=os.getenv("PRIVATE_KEY"),
            contract_address=os.getenv("CONTRACT_ADDRESS") or _address_from_file(
                os.getenv("CONTRACT_ADDRESS_PATH", "contracts/contract-address.json")
            ),
            contract_artifact_path=os.getenv("CONTRACT_ARTIFACT_PATH", "contracts/Elections.json"),
            chain_id=int(chain_id) if chain_id else None,
            mongo_uri=os.getenv("MONGO_URI", "mongodb://localhost:27017"),
            mongo_db=os.getenv("MONGO_DB", "elections_cache"),
            reconcile_interval_seconds=float(os.getenv("RECONCILE_INTERVAL_SECONDS", "60")),
            reconcile_page_size=int(os.getenv("RECONCILE_PAGE_SIZE", "100")),
            reconcile_start_offset=int(os.getenv("RECONCILE_START_OFFSET", "0")),
            reconcile_max_pages=int(os.getenv("RECONCILE_MAX_PAGES", "1000")),
            tx_inclusion_timeout=float(os.getenv("TX_INCLUSION_TIMEOUT", "120")),
            tx_poll_interval=float(os.getenv("TX_POLL_INTERVAL", "0.5")),
            relay_verify_signatures=_env_bool("RELAY_VERIFY_SIGNATURES"),
            cors_origins=_env_list("CORS_ORIGINS", ["http://localhost:3000", "http://localhost:5173"]),
        )


def _address_from_file(path: str) -> Optional[str]:
    """Read the deployed address from the hardhat deploy script output, if present."""
    if not path or not os.path.exists(path):
        return None
    with open(path, "r") as f:
        return json.load(f).get("Elections")
