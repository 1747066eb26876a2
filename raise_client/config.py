"""Client configuration"""
from functools import lru_cache

from pydantic_settings import BaseSettings

from raise_client.constants import MAX_DISTRIBUTION_BATCH, ProtocolTiming


class Settings(BaseSettings):
    """Client settings loaded from environment variables"""

    # Application
    app_name: str = "Raise Client"
    app_version: str = "0.1.0"
    debug: bool = False

    # Solana
    solana_cluster: str = "devnet"
    solana_rpc_url: str = "https://api.devnet.solana.com"
    commitment: str = "confirmed"
    rpc_timeout_seconds: float = 30.0

    # Program IDs (will be updated after deployment)
    program_id: str = "Fg6PaFpoGXkYsidMpWTK6W2BeZ7FEfcYkg476zPFsLnS"
    usdc_mint: str = "4zMMC9srt5Ri5X14GAgXhaHii3GnPAEERYPJgZJDncDU"

    # Program built with the dev feature (short deadlines and windows)
    dev_mode: bool = False

    # Transactions
    invest_compute_unit_limit: int = 400_000
    max_distribution_batch: int = MAX_DISTRIBUTION_BATCH

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    class Config:
        env_prefix = "RAISE_"
        env_file = ".env"
        env_file_encoding = "utf-8"

    @property
    def timing(self) -> ProtocolTiming:
        return ProtocolTiming.for_mode(self.dev_mode)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
