import pytest
from eth_abi import encode
from web3 import Web3
from web3.providers.base import BaseProvider

from userop_client.bundler import BundlerClient
from userop_client.entrypoint import EntryPointV07
from userop_client.paymaster import PaymasterClient
from userop_client.signer import PrivateKeySigner
from userop_client.smart_account import RpcClients, UserOperationClient

CHAIN_ID = 84532
SENDER = "0x" + "aa" * 20
OWNER_KEY = "0x" + "11" * 32
CALL_DATA = bytes.fromhex("deadbeef")


class FakeRpc:
    """Stands in for RpcClient: returns canned results per method and records calls"""

    def __init__(self, responses=None):
        self.responses = dict(responses or {})
        self.calls = []
        self.closed = False

    def call(self, method, params):
        self.calls.append((method, params))
        response = self.responses[method]
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(params)
        return response

    def methods(self):
        return [method for method, _ in self.calls]

    def close(self):
        self.closed = True


class FakeNodeProvider(BaseProvider):
    """Web3 provider answering JSON-RPC methods from canned results"""

    def __init__(self, responses):
        super().__init__()
        self.responses = dict(responses)
        self.calls = []

    def make_request(self, method, params):
        self.calls.append((method, params))
        response = self.responses[method]
        if isinstance(response, Exception):
            raise response
        if isinstance(response, dict) and "error" in response:
            return {"jsonrpc": "2.0", "id": len(self.calls), **response}
        return {"jsonrpc": "2.0", "id": len(self.calls), "result": response}

    def is_connected(self, show_traceback=False):
        return True


class FakeNode:
    """Stands in for NodeConnection: a Web3 instance over FakeNodeProvider"""

    def __init__(self, responses=None):
        self.provider = FakeNodeProvider({
            "eth_chainId": hex(CHAIN_ID),
            "eth_getCode": "0x",
            **(responses or {}),
        })
        self.w3 = Web3(self.provider)
        self.closed = False

    @property
    def responses(self):
        return self.provider.responses

    def methods(self):
        return [method for method, _ in self.provider.calls]

    def eth_calls(self):
        return [params for method, params in self.provider.calls if method == "eth_call"]

    def close(self):
        self.closed = True


def nonce_result(nonce: int) -> str:
    return "0x" + encode(['uint256'], [nonce]).hex()


GAS_PRICE_RESULT = {
    "slow": {"maxFeePerGas": hex(900), "maxPriorityFeePerGas": hex(90)},
    "standard": {"maxFeePerGas": hex(1000), "maxPriorityFeePerGas": hex(100)},
    "fast": {"maxFeePerGas": hex(1100), "maxPriorityFeePerGas": hex(110)},
}

SPONSOR_RESULT = {
    "paymaster": "0x" + "00" * 20,
    "paymasterData": "0x",
    "preVerificationGas": hex(21000),
    "verificationGasLimit": hex(50000),
    "callGasLimit": hex(30000),
    "paymasterVerificationGasLimit": hex(40000),
    "paymasterPostOpGasLimit": hex(10000),
}

USER_OPERATION_HASH = "0x" + "ab" * 32

RECEIPT_RESULT = {
    "userOpHash": USER_OPERATION_HASH,
    "sender": SENDER,
    "nonce": "0x0",
    "paymaster": "0x" + "00" * 20,
    "actualGasCost": hex(123456),
    "actualGasUsed": hex(4321),
    "success": True,
    "reason": "",
    "logs": [],
    "receipt": {"transactionHash": "0x" + "cd" * 32, "blockNumber": hex(77), "status": "0x1"},
}


@pytest.fixture
def node():
    return FakeNode({"eth_call": nonce_result(0)})


@pytest.fixture
def paymaster_rpc():
    return FakeRpc({"pm_sponsorUserOperation": SPONSOR_RESULT})


@pytest.fixture
def bundler_rpc():
    return FakeRpc({
        "pimlico_getUserOperationGasPrice": GAS_PRICE_RESULT,
        "eth_sendUserOperation": USER_OPERATION_HASH,
        "eth_getUserOperationReceipt": RECEIPT_RESULT,
    })


@pytest.fixture
def entry_point(node):
    return EntryPointV07(node.w3, CHAIN_ID)


@pytest.fixture
def sleeps(monkeypatch):
    recorded = []
    monkeypatch.setattr("userop_client.bundler.time.sleep", recorded.append)
    return recorded


@pytest.fixture
def client(node, paymaster_rpc, bundler_rpc, entry_point, sleeps):
    return UserOperationClient(
        signer=PrivateKeySigner(SENDER, OWNER_KEY),
        entry_point=entry_point,
        paymaster_client=PaymasterClient(paymaster_rpc, entry_point, CHAIN_ID),
        bundler_client=BundlerClient(bundler_rpc, entry_point, CHAIN_ID),
        rpc_clients=RpcClients(node, paymaster_rpc, bundler_rpc),
        receipt_polling_delay=10,
        receipt_polling_retries=3,
    )
