"""
EntryPoint packing, hashing and nonce lookup

The packed layout and the hash must match what the EntryPoint contract
computes on-chain byte for byte, otherwise the bundler rejects the signature.
"""

import logging
from typing import Callable, Dict, Type

import requests
from eth_abi import encode
from eth_abi.exceptions import DecodingError as AbiDecodingError
from eth_abi.exceptions import EncodingError as AbiEncodingError
from hexbytes import HexBytes
from web3 import Web3
from web3.exceptions import BadFunctionCallOutput, Web3Exception

from userop_client.config import ENTRYPOINT_V07, ENTRYPOINT_VERSION_07
from userop_client.errors import (
    ConfigurationError,
    ConnectivityError,
    DecodingError,
    EncodingError,
)
from userop_client.user_operations import UserOperation

logger = logging.getLogger(__name__)

PACKED_USER_OPERATION_TYPES = [
    'address',  # sender
    'uint256',  # nonce
    'bytes32',  # keccak(initCode)
    'bytes32',  # keccak(callData)
    'bytes32',  # accountGasLimits
    'uint256',  # preVerificationGas
    'bytes32',  # gasFees
    'bytes32',  # keccak(paymasterAndData)
]

USER_OPERATION_HASH_TYPES = ['bytes32', 'address', 'uint256']

GET_NONCE_ABI = [{
    "inputs": [{"name": "sender", "type": "address"}, {"name": "key", "type": "uint192"}],
    "name": "getNonce",
    "outputs": [{"name": "nonce", "type": "uint256"}],
    "stateMutability": "view",
    "type": "function"
}]

UINT128_MAX = 2**128 - 1
UINT192_MAX = 2**192 - 1

NonceKeyPolicy = Callable[[str], int]
PaymasterPacking = Callable[[UserOperation], bytes]


def left_pad_16(value: int, field_name: str) -> bytes:
    """Big-endian encode a 128-bit quantity, left padded to 16 bytes"""
    if value is None or value < 0 or value > UINT128_MAX:
        raise EncodingError(f"{field_name} does not fit in 128 bits: {value!r}")
    return value.to_bytes(16, "big")


def pack_uint128_pair(high: int, low: int, high_name: str, low_name: str) -> bytes:
    """Pack two 128-bit values into one 32-byte slot, high half first"""
    return left_pad_16(high, high_name) + left_pad_16(low, low_name)


# Paymaster packing policies

def no_paymaster_and_data(op: UserOperation) -> bytes:
    """Paymaster fields are left out of the hash: paymasterAndData is always empty"""
    return b""


def pack_paymaster_and_data(op: UserOperation) -> bytes:
    """paymaster || verificationGas(16) || postOpGas(16) || paymasterData"""
    if not op.paymaster:
        return b""
    return (
        bytes(HexBytes(op.paymaster))
        + left_pad_16(op.paymaster_verification_gas_limit, "paymaster_verification_gas_limit")
        + left_pad_16(op.paymaster_post_op_gas_limit, "paymaster_post_op_gas_limit")
        + bytes(op.paymaster_data)
    )


# Nonce key policies

def zero_nonce_key(account: str) -> int:
    return 0


def delimited_nonce_key(account: str) -> int:
    """Key built from a slice of the checksummed address wrapped in '>' and '<'"""
    partial_hex = Web3.to_checksum_address(account)[5:10]
    return int.from_bytes((">" + partial_hex + "<").encode("ascii"), "big")


def pack_user_operation(
    op: UserOperation,
    paymaster_packing: PaymasterPacking = no_paymaster_and_data
) -> bytes:
    """ABI encode the hash-covered fields of a UserOperation (EntryPoint v0.7 layout)"""
    if not op.sender:
        raise EncodingError("sender must be set before packing")
    if op.nonce is None:
        raise EncodingError("nonce must be set before packing")

    account_gas_limits = pack_uint128_pair(
        op.verification_gas_limit, op.call_gas_limit,
        "verification_gas_limit", "call_gas_limit"
    )
    gas_fees = pack_uint128_pair(
        op.max_priority_fee_per_gas, op.max_fee_per_gas,
        "max_priority_fee_per_gas", "max_fee_per_gas"
    )

    try:
        return encode(PACKED_USER_OPERATION_TYPES, [
            Web3.to_checksum_address(op.sender),
            op.nonce,
            Web3.keccak(op.init_code),
            Web3.keccak(bytes(op.call_data)),
            account_gas_limits,
            op.pre_verification_gas,
            gas_fees,
            Web3.keccak(paymaster_packing(op)),
        ])
    except (AbiEncodingError, ValueError, TypeError) as e:
        raise EncodingError(f"failed to pack user operation: {e}") from e


def hash_user_operation(
    op: UserOperation,
    entry_point_address: str,
    chain_id: int,
    paymaster_packing: PaymasterPacking = no_paymaster_and_data
) -> HexBytes:
    """keccak256(encode(keccak256(pack(op)), entryPoint, chainId))"""
    packed_op = pack_user_operation(op, paymaster_packing)
    try:
        encoded = encode(USER_OPERATION_HASH_TYPES, [
            Web3.keccak(packed_op),
            Web3.to_checksum_address(entry_point_address),
            chain_id,
        ])
    except (AbiEncodingError, ValueError, TypeError) as e:
        raise EncodingError(f"failed to pack user operation for hashing: {e}") from e
    return HexBytes(Web3.keccak(encoded))


class EntryPoint:
    """An EntryPoint revision reachable through a chain node"""

    version: str = None
    address: str = None

    def __init__(
        self,
        w3: Web3,
        chain_id: int,
        nonce_key: NonceKeyPolicy = zero_nonce_key,
        paymaster_packing: PaymasterPacking = no_paymaster_and_data
    ):
        self.w3 = w3
        self.chain_id = chain_id
        self.nonce_key = nonce_key
        self.paymaster_packing = paymaster_packing

    @property
    def packs_paymaster_data(self) -> bool:
        return self.paymaster_packing is not no_paymaster_and_data

    def get_address(self) -> str:
        return self.address

    def get_nonce(self, account: str) -> int:
        raise NotImplementedError

    def pack_user_operation(self, op: UserOperation) -> bytes:
        raise NotImplementedError

    def get_user_operation_hash(self, op: UserOperation) -> HexBytes:
        raise NotImplementedError


class EntryPointV07(EntryPoint):
    """EntryPoint v0.7 (PackedUserOperation)"""

    version = ENTRYPOINT_VERSION_07
    address = ENTRYPOINT_V07

    def get_nonce(self, account: str) -> int:
        """Get the current nonce for an account from the EntryPoint"""
        key = self.nonce_key(account)
        if not 0 <= key <= UINT192_MAX:
            raise EncodingError(f"nonce key does not fit in uint192: {key}", step="get_nonce")

        try:
            account = Web3.to_checksum_address(account)
        except (ValueError, TypeError) as e:
            raise EncodingError(f"invalid account address {account!r}", step="get_nonce") from e

        entry_point_contract = self.w3.eth.contract(
            address=Web3.to_checksum_address(self.address),
            abi=GET_NONCE_ABI
        )

        try:
            nonce = entry_point_contract.functions.getNonce(account, key).call()
        except (BadFunctionCallOutput, AbiDecodingError) as e:
            raise DecodingError(f"failed to decode getNonce result: {e}", step="get_nonce") from e
        except (requests.RequestException, Web3Exception, ValueError, OSError) as e:
            raise ConnectivityError(f"getNonce eth_call failed: {e}", step="get_nonce") from e

        logger.info(f"Current nonce for {account} (key {key}): {nonce}")
        return nonce

    def pack_user_operation(self, op: UserOperation) -> bytes:
        return pack_user_operation(op, self.paymaster_packing)

    def get_user_operation_hash(self, op: UserOperation) -> HexBytes:
        try:
            return hash_user_operation(op, self.address, self.chain_id, self.paymaster_packing)
        except EncodingError as e:
            raise EncodingError(e.message, step="get_user_operation_hash") from e


ENTRY_POINTS: Dict[str, Type[EntryPoint]] = {
    ENTRYPOINT_VERSION_07: EntryPointV07,
}


def get_entry_point(version: str, w3: Web3, chain_id: int, **kwargs) -> EntryPoint:
    """Select the EntryPoint implementation for a protocol revision"""
    try:
        entry_point_class = ENTRY_POINTS[version]
    except KeyError:
        raise ConfigurationError(
            f"unsupported EntryPoint version {version!r}, supported: {', '.join(sorted(ENTRY_POINTS))}"
        ) from None
    return entry_point_class(w3, chain_id, **kwargs)
