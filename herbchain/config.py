# herbchain/config.py
import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv

BUNDLED_ABI_PATH = Path(__file__).parent / "abi" / "HerbProvenance.json"


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    # --- Document store ---
    mongo_uri: str | None
    mongo_db: str

    # --- Ledger (EVM smart contract) ---
    rpc_url: str | None
    private_key: str | None
    contract_address: str | None
    contract_abi_path: Path

    # --- Report storage (IPFS) ---
    ipfs_upload_url: str | None
    ipfs_gateway_local: str
    ipfs_gateway_public: str
    ipfs_local_dev: bool

    # --- Generative AI ---
    gemini_api_key: str | None
    gemini_model: str

    # --- Server ---
    port: int
    log_level: str
    cors_origins: tuple[str, ...]


def load_settings() -> Settings:
    """Reads settings from the environment, after loading a local .env file."""
    load_dotenv()
    origins = os.getenv("CORS_ORIGINS", "*")
    return Settings(
        mongo_uri=os.getenv("MONGO_URI"),
        mongo_db=os.getenv("MONGO_DB", "herbchain_db"),
        rpc_url=os.getenv("ALCHEMY_RPC_URL"),
        private_key=os.getenv("PRIVATE_KEY"),
        contract_address=os.getenv("CONTRACT_ADDRESS"),
        contract_abi_path=Path(os.getenv("CONTRACT_ABI_PATH", str(BUNDLED_ABI_PATH))),
        ipfs_upload_url=os.getenv("IPFS_UPLOAD_URL"),
        ipfs_gateway_local=os.getenv("IPFS_GATEWAY_LOCAL", "http://127.0.0.1:8080/ipfs/"),
        ipfs_gateway_public=os.getenv("IPFS_GATEWAY_PUBLIC", "https://ipfs.io/ipfs/"),
        ipfs_local_dev=_env_flag("IPFS_LOCAL_DEV"),
        gemini_api_key=os.getenv("GEMINI_API_KEY"),
        gemini_model=os.getenv("GEMINI_MODEL", "gemini-2.5-flash"),
        port=int(os.getenv("PORT", "3000")),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        cors_origins=tuple(o.strip() for o in origins.split(",") if o.strip()),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()
