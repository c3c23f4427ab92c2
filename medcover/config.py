from dotenv import load_dotenv
import os

# Load .env into environment variables
load_dotenv()

SEPOLIA_CHAIN_ID = 11155111


def get_valid_api_keys() -> set[str]:
    keys = os.getenv("MY_API_KEYS", "")
    return {k.strip() for k in keys.split(",") if k.strip()}


def get_ledger_base_url() -> str:
    return os.getenv("LEDGER_BASE_URL", "http://localhost:8545/api").rstrip("/")


def get_contract_address() -> str:
    return os.getenv("CONTRACT_ADDRESS", "").strip()


def get_ledger_timeout() -> float:
    raw = os.getenv("LEDGER_TIMEOUT_SECONDS", "20")
    try:
        return float(raw)
    except ValueError:
        return 20.0


def get_database_url() -> str:
    return os.getenv("DATABASE_URL", "sqlite:///medcover.db")


def get_chain_id() -> int:
    raw = os.getenv("CHAIN_ID", str(SEPOLIA_CHAIN_ID))
    try:
        return int(raw)
    except ValueError:
        return SEPOLIA_CHAIN_ID


def is_dev_mode() -> bool:
    return os.environ.get("DEV_MODE") == "1"
