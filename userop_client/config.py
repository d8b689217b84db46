"""
Configuration for the UserOperation client
"""

import os
from dataclasses import dataclass
from typing import Optional

from userop_client.errors import ConfigurationError

# Supported EntryPoint revisions
ENTRYPOINT_VERSION_07 = "0.7"
ENTRYPOINT_V07 = "0x0000000071727De22E5E9d8BAf0edAc6f37da032"

# Receipt polling defaults, used when unset or non-positive
DEFAULT_RECEIPT_POLLING_DELAY_SECONDS = 10
DEFAULT_RECEIPT_POLLING_RETRIES = 24

DEFAULT_REQUEST_TIMEOUT = 30

DEFAULT_PAYMASTER_RPC_METHOD = "pm_sponsorUserOperation"
DEFAULT_GAS_PRICE_RPC_METHOD = "pimlico_getUserOperationGasPrice"


def _int_from_env(name: str) -> Optional[int]:
    value = os.environ.get(name)
    if not value:
        return None
    try:
        return int(value, 0)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}") from e


@dataclass
class ClientConfig:
    """Configuration for a UserOperation client"""

    account_address: Optional[str] = None
    private_key: Optional[str] = None
    entry_point_version: str = ENTRYPOINT_VERSION_07
    rpc_url: Optional[str] = None
    paymaster_url: Optional[str] = None
    bundler_url: Optional[str] = None
    chain_id: Optional[int] = None
    receipt_polling_delay_seconds: int = 0
    receipt_polling_retries: int = 0
    request_timeout: int = DEFAULT_REQUEST_TIMEOUT
    paymaster_rpc_method: str = DEFAULT_PAYMASTER_RPC_METHOD
    gas_price_rpc_method: str = DEFAULT_GAS_PRICE_RPC_METHOD

    @classmethod
    def from_env(cls) -> "ClientConfig":
        """Build a configuration from environment variables"""
        return cls(
            account_address=os.environ.get('ACCOUNT_ADDRESS'),
            private_key=os.environ.get('ACCOUNT_PRIVATE_KEY'),
            entry_point_version=os.environ.get('ENTRYPOINT_VERSION', ENTRYPOINT_VERSION_07),
            rpc_url=os.environ.get('RPC_URL'),
            paymaster_url=os.environ.get('PAYMASTER_URL'),
            bundler_url=os.environ.get('BUNDLER_URL'),
            chain_id=_int_from_env('CHAIN_ID'),
            receipt_polling_delay_seconds=_int_from_env('RECEIPT_POLLING_DELAY_SECONDS') or 0,
            receipt_polling_retries=_int_from_env('RECEIPT_POLLING_RETRIES') or 0,
        )

    def validate(self) -> None:
        """Raise ConfigurationError unless every required parameter is present"""
        missing = [
            name for name in ("private_key", "rpc_url", "paymaster_url", "bundler_url", "chain_id")
            if getattr(self, name) is None or getattr(self, name) == ""
        ]
        if missing:
            raise ConfigurationError(f"missing required configuration: {', '.join(missing)}")
        if self.entry_point_version != ENTRYPOINT_VERSION_07:
            raise ConfigurationError(
                f"unsupported EntryPoint version {self.entry_point_version!r}, "
                f"only {ENTRYPOINT_VERSION_07!r} is supported"
            )

    @property
    def polling_delay(self) -> int:
        if self.receipt_polling_delay_seconds and self.receipt_polling_delay_seconds > 0:
            return self.receipt_polling_delay_seconds
        return DEFAULT_RECEIPT_POLLING_DELAY_SECONDS

    @property
    def polling_retries(self) -> int:
        if self.receipt_polling_retries and self.receipt_polling_retries > 0:
            return self.receipt_polling_retries
        return DEFAULT_RECEIPT_POLLING_RETRIES
