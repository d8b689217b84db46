"""
ERC-4337 UserOperation Client

Builds, paymaster-sponsors, signs and submits UserOperations against
EntryPoint v0.7 through a bundler, with optional receipt polling.
"""

# Main service
from userop_client.smart_account import UserOperationClient, create_user_operation_client

# Configuration
from userop_client.config import ClientConfig

# Individual components for advanced usage
from userop_client.bundler import BundlerClient
from userop_client.entrypoint import (
    EntryPoint,
    EntryPointV07,
    get_entry_point,
    hash_user_operation,
    pack_user_operation,
)
from userop_client.errors import (
    ConfigurationError,
    ConnectivityError,
    DecodingError,
    EncodingError,
    ReceiptNotAvailable,
    SignatureError,
    UserOperationError,
)
from userop_client.paymaster import PaymasterClient
from userop_client.rpc import NodeConnection, RpcClient
from userop_client.signer import PrivateKeySigner
from userop_client.user_operations import (
    ReceiptStatus,
    UserOperation,
    UserOperationReceipt,
    UserOperationResult,
    convert_user_operation_to_rpc_format,
    encode_execute_call_data,
)

__version__ = "1.0.0"

__all__ = [
    "UserOperationClient",
    "create_user_operation_client",
    "ClientConfig",
    "BundlerClient",
    "PaymasterClient",
    "EntryPoint",
    "EntryPointV07",
    "get_entry_point",
    "pack_user_operation",
    "hash_user_operation",
    "RpcClient",
    "NodeConnection",
    "PrivateKeySigner",
    "UserOperation",
    "UserOperationResult",
    "UserOperationReceipt",
    "ReceiptStatus",
    "convert_user_operation_to_rpc_format",
    "encode_execute_call_data",
    "UserOperationError",
    "ConfigurationError",
    "ConnectivityError",
    "EncodingError",
    "DecodingError",
    "ReceiptNotAvailable",
    "SignatureError",
]
