"""
Engine settings.

Loads configuration from environment variables (prefix ``TIPJAR_``) using
pydantic-settings.
"""

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .types import NetworkType

FINALITY_THRESHOLD = 6

NETWORKS = {
    "base": {
        "chain_id": 8453,
        "usdc": "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913",
        "rpc_url": "https://mainnet.base.org",
    },
    "base-sepolia": {
        "chain_id": 84532,
        "usdc": "0x036CbD53842c5426634e7929541eC2318f3dCF7e",
        "rpc_url": "https://sepolia.base.org",
    },
}


class Settings(BaseSettings):
    """Payment engine settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="TIPJAR_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    network: NetworkType = "base-sepolia"
    rpc_url: str | None = None

    # Gasless relay (x402); unset means direct transfers only
    relay_url: str | None = None
    relay_timeout: float = Field(default=30.0, gt=0)
    relay_max_value: int = Field(default=100_000, ge=0)  # 0.10 USDC

    # Tip recording endpoint (best effort)
    record_url: str | None = None

    private_key: SecretStr | None = None

    receipt_timeout: float = Field(default=120.0, gt=0)
    node_receipt_timeout: float = Field(default=110.0, gt=0)
    poll_interval: float = Field(default=2.0, gt=0)

    @field_validator("relay_url", "record_url", "rpc_url")
    @classmethod
    def empty_to_none(cls, v: str | None) -> str | None:
        if v is not None and not v.strip():
            return None
        return v

    @property
    def chain_id(self) -> int:
        return NETWORKS[self.network]["chain_id"]

    @property
    def token_address(self) -> str:
        return NETWORKS[self.network]["usdc"]

    @property
    def resolved_rpc_url(self) -> str:
        return self.rpc_url or NETWORKS[self.network]["rpc_url"]
