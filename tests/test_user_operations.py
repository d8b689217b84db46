import pytest
from eth_abi import decode

from userop_client.errors import DecodingError
from userop_client.user_operations import (
    EXECUTE_SELECTOR,
    UserOperation,
    convert_user_operation_to_rpc_format,
    encode_execute_call_data,
    to_quantity,
)

from .conftest import SENDER


def test_rpc_format_for_unsigned_operation():
    op = UserOperation(sender=SENDER, nonce=1, call_data=b"\xde\xad", call_gas_limit=30000)
    rpc_dict = convert_user_operation_to_rpc_format(op)

    assert rpc_dict["nonce"] == "0x1"
    assert rpc_dict["callData"] == "0xdead"
    assert rpc_dict["callGasLimit"] == hex(30000)
    assert rpc_dict["signature"] == "0x"
    assert rpc_dict["factory"] is None and rpc_dict["factoryData"] is None
    assert rpc_dict["paymaster"] is None and rpc_dict["paymasterData"] is None


def test_rpc_format_with_factory_and_paymaster():
    op = UserOperation(
        sender=SENDER,
        nonce=0,
        factory="0x" + "dd" * 20,
        factory_data=b"\x01",
        paymaster="0x" + "cc" * 20,
        paymaster_verification_gas_limit=5,
        signature=b"\x02",
    )
    rpc_dict = op.to_rpc_dict()

    assert rpc_dict["factoryData"] == "0x01"
    assert rpc_dict["paymasterVerificationGasLimit"] == "0x5"
    assert rpc_dict["paymasterPostOpGasLimit"] == "0x0"
    assert rpc_dict["paymasterData"] == "0x"
    assert rpc_dict["signature"] == "0x02"
    assert op.init_code == bytes.fromhex("dd" * 20) + b"\x01"


def test_encode_execute_call_data():
    call_data = encode_execute_call_data("0x" + "ee" * 20, 10**18, b"\x01\x02")

    assert call_data[:4] == EXECUTE_SELECTOR
    to_address, value, data = decode(['address', 'uint256', 'bytes'], call_data[4:])
    assert to_address.lower() == "0x" + "ee" * 20
    assert value == 10**18
    assert data == b"\x01\x02"


@pytest.mark.parametrize("value, expected", [("0x10", 16), ("21000", 21000), (7, 7)])
def test_to_quantity(value, expected):
    assert to_quantity(value) == expected


@pytest.mark.parametrize("value", [None, "0xzz", True, [1]])
def test_to_quantity_rejects_garbage(value):
    with pytest.raises(DecodingError):
        to_quantity(value)
