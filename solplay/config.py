from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings

DEVNET_RPC = "https://api.devnet.solana.com"
MAINNET_RPC = "https://api.mainnet-beta.solana.com"
DEFAULT_TOKEN_LIST_URL = (
    "https://raw.githubusercontent.com/solana-labs/token-list/main/src/tokens/solana.tokenlist.json"
)


class Settings(BaseSettings):
    rpc_url: str = DEVNET_RPC
    commitment: str = "confirmed"
    default_decimals: int = Field(9, ge=0, le=9)
    http_timeout: float = 10.0
    confirm_timeout_seconds: int = 300
    confirm_tick_seconds: float = 5.0
    send_max_attempts: int = 3
    token_list_url: Optional[str] = DEFAULT_TOKEN_LIST_URL

    class Config:
        env_prefix = "SOLPLAY_"
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
