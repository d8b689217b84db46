"""
Private key signer for smart account UserOperation hashes
"""

import logging
from typing import Optional

from eth_account import Account
from eth_account.messages import encode_defunct
from hexbytes import HexBytes
from web3 import Web3

from userop_client.errors import ConfigurationError

logger = logging.getLogger(__name__)


class PrivateKeySigner:
    """Signs UserOperation hashes for a smart account owned by an EOA key"""

    def __init__(self, account_address: Optional[str], private_key: str):
        try:
            self._owner = Account.from_key(private_key)
        except (ValueError, TypeError) as e:
            raise ConfigurationError("invalid account private key") from e
        # Without an explicit smart account the owner signs for itself
        try:
            self.address = Web3.to_checksum_address(account_address or self._owner.address)
        except (ValueError, TypeError) as e:
            raise ConfigurationError(f"invalid account address {account_address!r}") from e

    @property
    def owner(self) -> str:
        return self._owner.address

    def get_address(self) -> str:
        return self.address

    def sign_user_operation_hash(self, user_operation_hash: bytes) -> HexBytes:
        """EIP-191 sign the 32-byte UserOperation hash"""
        message = encode_defunct(primitive=bytes(user_operation_hash))
        signed = self._owner.sign_message(message)
        logger.info(f"Signed UserOperation hash {HexBytes(user_operation_hash).hex()} with owner {self.owner}")
        return HexBytes(signed.signature)
