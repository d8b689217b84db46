"""
UserOperation data model and bundler format conversion for EntryPoint v0.7
"""

import enum
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from eth_abi import encode
from hexbytes import HexBytes
from web3 import Web3

from userop_client.errors import DecodingError


# Function selector for execute(address,uint256,bytes)
EXECUTE_SELECTOR = Web3.keccak(text="execute(address,uint256,bytes)")[:4]

# Placeholder signature for requests that simulate the operation before it is signed
DUMMY_SIGNATURE = HexBytes(
    "0xfffffffffffffffffffffffffffffff0000000000000000000000000000000007"
    "aaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaa1c"
)


def to_quantity(value: Union[str, int, None], field_name: str = "value") -> int:
    """Decode a JSON-RPC quantity (hex string or integer)"""
    if isinstance(value, bool):
        raise DecodingError(f"invalid quantity for {field_name}: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value, 16) if value.startswith(("0x", "0X")) else int(value)
        except ValueError as e:
            raise DecodingError(f"invalid quantity for {field_name}: {value!r}") from e
    raise DecodingError(f"missing quantity for {field_name}")


def to_data(value: Union[str, bytes, None], field_name: str = "value") -> HexBytes:
    """Decode a JSON-RPC byte string, treating null as empty"""
    if value is None:
        return HexBytes(b"")
    try:
        return HexBytes(value)
    except (ValueError, TypeError) as e:
        raise DecodingError(f"invalid bytes for {field_name}: {value!r}") from e


def _hex_data(value: bytes) -> str:
    return "0x" + bytes(value).hex()


@dataclass
class UserOperation:
    """An ERC-4337 UserOperation as accepted by EntryPoint v0.7 bundlers"""

    sender: Optional[str] = None
    nonce: Optional[int] = None
    call_data: bytes = b""
    call_gas_limit: int = 0
    verification_gas_limit: int = 0
    pre_verification_gas: int = 0
    max_fee_per_gas: int = 0
    max_priority_fee_per_gas: int = 0
    factory: Optional[str] = None
    factory_data: bytes = b""
    paymaster: Optional[str] = None
    paymaster_data: bytes = b""
    paymaster_verification_gas_limit: int = 0
    paymaster_post_op_gas_limit: int = 0
    signature: bytes = b""

    @property
    def init_code(self) -> bytes:
        if not self.factory:
            return b""
        return bytes(HexBytes(self.factory)) + bytes(self.factory_data)

    @property
    def is_signed(self) -> bool:
        return len(self.signature) > 0

    def to_rpc_dict(self, signature: Optional[bytes] = None) -> Dict[str, Any]:
        return convert_user_operation_to_rpc_format(self, signature)


def convert_user_operation_to_rpc_format(
    op: UserOperation,
    signature: Optional[bytes] = None
) -> Dict[str, Any]:
    """Convert a UserOperation to the bundler JSON format (EntryPoint v0.7)"""
    if signature is None:
        signature = op.signature

    rpc_dict = {
        "sender": op.sender,
        "nonce": hex(op.nonce or 0),
        "callData": _hex_data(op.call_data),
        "callGasLimit": hex(op.call_gas_limit),
        "verificationGasLimit": hex(op.verification_gas_limit),
        "preVerificationGas": hex(op.pre_verification_gas),
        "maxFeePerGas": hex(op.max_fee_per_gas),
        "maxPriorityFeePerGas": hex(op.max_priority_fee_per_gas),
        "signature": _hex_data(signature) if signature else "0x",
    }

    # Optional factory fields
    rpc_dict.update({
        "factory": op.factory,
        "factoryData": _hex_data(op.factory_data) if op.factory else None,
    })

    # Optional paymaster fields
    if op.paymaster:
        rpc_dict.update({
            "paymaster": op.paymaster,
            "paymasterVerificationGasLimit": hex(op.paymaster_verification_gas_limit),
            "paymasterPostOpGasLimit": hex(op.paymaster_post_op_gas_limit),
            "paymasterData": _hex_data(op.paymaster_data) if op.paymaster_data else "0x",
        })
    else:
        rpc_dict.update({
            "paymaster": None,
            "paymasterVerificationGasLimit": None,
            "paymasterPostOpGasLimit": None,
            "paymasterData": None,
        })

    return rpc_dict


def encode_execute_call_data(to_address: str, value: int, data: bytes = b"") -> bytes:
    """Encode an execute(address,uint256,bytes) call for the smart account"""
    encoded_params = encode(
        ['address', 'uint256', 'bytes'],
        [Web3.to_checksum_address(to_address), value, bytes(data)]
    )
    return bytes(EXECUTE_SELECTOR) + encoded_params


@dataclass
class GasPrice:
    max_fee_per_gas: int
    max_priority_fee_per_gas: int

    @classmethod
    def from_rpc(cls, tier: Dict[str, Any], name: str) -> "GasPrice":
        if not isinstance(tier, dict):
            raise DecodingError(f"gas price tier {name!r} is not an object")
        return cls(
            max_fee_per_gas=to_quantity(tier.get("maxFeePerGas"), f"{name}.maxFeePerGas"),
            max_priority_fee_per_gas=to_quantity(
                tier.get("maxPriorityFeePerGas"), f"{name}.maxPriorityFeePerGas"
            ),
        )


@dataclass
class GasPriceTiers:
    """Recommended fee tiers returned by the bundler"""

    standard: GasPrice
    slow: Optional[GasPrice] = None
    fast: Optional[GasPrice] = None

    @classmethod
    def from_rpc(cls, result: Any) -> "GasPriceTiers":
        if not isinstance(result, dict) or "standard" not in result:
            raise DecodingError(f"gas price response has no standard tier: {result!r}")
        return cls(
            standard=GasPrice.from_rpc(result["standard"], "standard"),
            slow=GasPrice.from_rpc(result["slow"], "slow") if result.get("slow") else None,
            fast=GasPrice.from_rpc(result["fast"], "fast") if result.get("fast") else None,
        )


@dataclass
class UserOperationGasEstimate:
    pre_verification_gas: int
    verification_gas_limit: int
    call_gas_limit: int

    @classmethod
    def from_rpc(cls, result: Any) -> "UserOperationGasEstimate":
        if not isinstance(result, dict):
            raise DecodingError(f"gas estimate response is not an object: {result!r}")
        return cls(
            pre_verification_gas=to_quantity(result.get("preVerificationGas"), "preVerificationGas"),
            verification_gas_limit=to_quantity(result.get("verificationGasLimit"), "verificationGasLimit"),
            call_gas_limit=to_quantity(result.get("callGasLimit"), "callGasLimit"),
        )


@dataclass
class SponsorUserOperationResponse:
    """Paymaster sponsorship: paymaster identity, its payload and the gas limits it signed over"""

    paymaster: Optional[str]
    paymaster_data: bytes
    pre_verification_gas: int
    verification_gas_limit: int
    call_gas_limit: int
    paymaster_verification_gas_limit: int = 0
    paymaster_post_op_gas_limit: int = 0

    @classmethod
    def from_rpc(cls, result: Any) -> "SponsorUserOperationResponse":
        if not isinstance(result, dict):
            raise DecodingError(f"sponsorship response is not an object: {result!r}")
        return cls(
            paymaster=result.get("paymaster"),
            paymaster_data=to_data(result.get("paymasterData"), "paymasterData"),
            pre_verification_gas=to_quantity(result.get("preVerificationGas"), "preVerificationGas"),
            verification_gas_limit=to_quantity(result.get("verificationGasLimit"), "verificationGasLimit"),
            call_gas_limit=to_quantity(result.get("callGasLimit"), "callGasLimit"),
            paymaster_verification_gas_limit=to_quantity(
                result.get("paymasterVerificationGasLimit", 0), "paymasterVerificationGasLimit"
            ),
            paymaster_post_op_gas_limit=to_quantity(
                result.get("paymasterPostOpGasLimit", 0), "paymasterPostOpGasLimit"
            ),
        )


@dataclass
class UserOperationReceipt:
    """Decoded eth_getUserOperationReceipt result"""

    user_operation_hash: str
    sender: Optional[str]
    nonce: int
    success: bool
    actual_gas_cost: int
    actual_gas_used: int
    paymaster: Optional[str] = None
    reason: Optional[str] = None
    logs: List[Dict[str, Any]] = field(default_factory=list)
    transaction_hash: Optional[str] = None
    block_number: Optional[int] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_rpc(cls, result: Any) -> "UserOperationReceipt":
        if not isinstance(result, dict):
            raise DecodingError(f"receipt response is not an object: {result!r}")
        receipt = result.get("receipt") or {}
        if not isinstance(receipt, dict):
            raise DecodingError(f"receipt.receipt is not an object: {receipt!r}")
        logs = result.get("logs") or []
        if not isinstance(logs, list):
            raise DecodingError(f"receipt.logs is not a list: {logs!r}")
        block_number = receipt.get("blockNumber")
        return cls(
            user_operation_hash=result.get("userOpHash"),
            sender=result.get("sender"),
            nonce=to_quantity(result.get("nonce", 0), "nonce"),
            success=bool(result.get("success")),
            actual_gas_cost=to_quantity(result.get("actualGasCost", 0), "actualGasCost"),
            actual_gas_used=to_quantity(result.get("actualGasUsed", 0), "actualGasUsed"),
            paymaster=result.get("paymaster"),
            reason=result.get("reason"),
            logs=logs,
            transaction_hash=receipt.get("transactionHash"),
            block_number=to_quantity(block_number, "blockNumber") if block_number is not None else None,
            raw=result,
        )


class ReceiptStatus(enum.Enum):
    DELIVERED = "delivered"
    NOT_YET_AVAILABLE = "not_yet_available"
    FAILED = "failed"
    NOT_REQUESTED = "not_requested"


@dataclass
class ReceiptPoll:
    """Outcome of bounded receipt polling"""

    status: ReceiptStatus
    receipt: Optional[UserOperationReceipt] = None
    error: Optional[Exception] = None
    attempts: int = 0

    @property
    def delivered(self) -> bool:
        return self.status is ReceiptStatus.DELIVERED


@dataclass
class UserOperationResult:
    """Submission outcome: the bundler handle plus a receipt when one was awaited and found"""

    user_operation_hash: str
    receipt: Optional[UserOperationReceipt] = None
    receipt_status: ReceiptStatus = ReceiptStatus.NOT_REQUESTED
