"""
X402 escrow configuration.

Every chain-facing value must be supplied explicitly; nothing here falls back
to a hardcoded contract address or RPC endpoint.
"""

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from x402_escrow.exceptions import ConfigurationError

DEFAULT_POLL_INTERVAL_SECONDS = 5.0
DEFAULT_MAX_MONITORED_PAYMENTS = 1000
DEFAULT_FACILITATOR_HOST = "0.0.0.0"
DEFAULT_FACILITATOR_PORT = 8403

SERVICE_NAME = "x402-facilitator"


class X402Config(BaseModel):
    """Chain configuration (all values must be provided - no defaults)"""

    rpc_url: str = Field(alias="rpcUrl")
    chain_id: int = Field(alias="chainId")
    token_address: str = Field(alias="tokenAddress")
    escrow_address: str = Field(alias="escrowAddress")

    class Config:
        populate_by_name = True
        frozen = True


class FacilitatorSettings(X402Config):
    """Facilitator service settings"""

    facilitator_private_key: str = Field(alias="facilitatorPrivateKey", repr=False)
    host: str = DEFAULT_FACILITATOR_HOST
    port: int = DEFAULT_FACILITATOR_PORT
    poll_interval_seconds: float = Field(DEFAULT_POLL_INTERVAL_SECONDS, gt=0)
    max_monitored_payments: int = Field(DEFAULT_MAX_MONITORED_PAYMENTS, gt=0)
    verify_signatures: bool = False
    log_level: str = "INFO"

    def chain_config(self) -> X402Config:
        """Return the chain-only part of the settings"""
        return X402Config(
            rpcUrl=self.rpc_url,
            chainId=self.chain_id,
            tokenAddress=self.token_address,
            escrowAddress=self.escrow_address,
        )

    @classmethod
    def from_env(cls, env_file: Optional[Path] = None) -> "FacilitatorSettings":
        """Load settings from environment variables (and an optional .env file).

        Raises:
            ConfigurationError: If a required variable is missing or malformed
        """
        load_dotenv(env_file)

        required = {
            "rpcUrl": "X402_RPC_URL",
            "chainId": "X402_CHAIN_ID",
            "tokenAddress": "X402_TOKEN_ADDRESS",
            "escrowAddress": "X402_ESCROW_ADDRESS",
            "facilitatorPrivateKey": "X402_FACILITATOR_PRIVATE_KEY",
        }
        optional = {
            "host": "X402_FACILITATOR_HOST",
            "port": "X402_FACILITATOR_PORT",
            "poll_interval_seconds": "X402_POLL_INTERVAL_SECONDS",
            "max_monitored_payments": "X402_MAX_MONITORED_PAYMENTS",
            "verify_signatures": "X402_VERIFY_SIGNATURES",
            "log_level": "X402_LOG_LEVEL",
        }

        missing = [env for env in required.values() if not os.getenv(env)]
        if missing:
            raise ConfigurationError(
                f"Missing required environment variables: {', '.join(missing)}"
            )

        values = {field: os.environ[env] for field, env in required.items()}
        for field, env in optional.items():
            value = os.getenv(env)
            if value:
                values[field] = value

        try:
            return cls(**values)
        except PydanticValidationError as e:
            raise ConfigurationError(f"Invalid facilitator configuration: {e}") from e
