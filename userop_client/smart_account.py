"""
UserOperation client: builds, sponsors, signs and submits UserOperations
"""

import logging
from contextlib import ExitStack
from dataclasses import dataclass
from typing import Optional, Tuple

from hexbytes import HexBytes

from userop_client.bundler import BundlerClient
from userop_client.config import ClientConfig
from userop_client.entrypoint import EntryPoint, get_entry_point
from userop_client.errors import ReceiptNotAvailable, SignatureError
from userop_client.paymaster import PaymasterClient
from userop_client.rpc import NodeConnection, RpcClient
from userop_client.signer import PrivateKeySigner
from userop_client.user_operations import (
    ReceiptStatus,
    UserOperation,
    UserOperationReceipt,
    UserOperationResult,
)

logger = logging.getLogger(__name__)


@dataclass
class RpcClients:
    network: NodeConnection
    paymaster: RpcClient
    bundler: RpcClient

    def close(self) -> None:
        self.network.close()
        self.paymaster.close()
        self.bundler.close()


class UserOperationClient:
    """Main service for sponsored ERC-4337 UserOperations"""

    def __init__(
        self,
        signer,
        entry_point: EntryPoint,
        paymaster_client: PaymasterClient,
        bundler_client: BundlerClient,
        rpc_clients: RpcClients,
        receipt_polling_delay: int,
        receipt_polling_retries: int
    ):
        self.signer = signer
        self.entry_point = entry_point
        self.paymaster_client = paymaster_client
        self.bundler_client = bundler_client
        self.rpc_clients = rpc_clients
        self.chain_id = entry_point.chain_id
        self.receipt_polling_delay = receipt_polling_delay
        self.receipt_polling_retries = receipt_polling_retries

        logger.info(f"UserOperation client initialized for {signer.get_address()}")

    def get_user_operation_and_hash_to_sign(
        self,
        sender: str,
        call_data: bytes
    ) -> Tuple[UserOperation, HexBytes]:
        """Create a sponsored UserOperation for sender and return it with the hash to sign.

        The signature is left empty; set it on the returned operation and pass
        it to send_signed_user_operation. Any field changed after this call
        invalidates the hash.
        """
        user_operation = UserOperation()

        user_operation.sender = sender
        user_operation.nonce = self.entry_point.get_nonce(sender)
        user_operation.call_data = bytes(call_data)

        gas_prices = self.bundler_client.get_user_operation_gas_price()
        user_operation.max_fee_per_gas = gas_prices.standard.max_fee_per_gas
        user_operation.max_priority_fee_per_gas = gas_prices.standard.max_priority_fee_per_gas

        self._apply_sponsorship(user_operation)

        user_operation_hash = self.entry_point.get_user_operation_hash(user_operation)
        logger.info(f"UserOperation hash to sign: {user_operation_hash.hex()}")
        return user_operation, user_operation_hash

    def send_signed_user_operation(
        self,
        signed_user_operation: UserOperation,
        wait_for_receipt: bool = False
    ) -> UserOperationResult:
        """Send a pre-signed UserOperation, optionally waiting for its receipt.

        Receipt polling never raises: when no receipt arrives the result has
        no receipt and receipt_status says whether polling ran out or failed.
        """
        if not signed_user_operation.is_signed:
            raise SignatureError("UserOperation must be signed before it is sent", step="send_user_operation")

        user_operation_hash = self.bundler_client.send_user_operation(signed_user_operation)
        result = UserOperationResult(user_operation_hash=user_operation_hash)

        if wait_for_receipt:
            poll = self.bundler_client.poll_user_operation_receipt(
                user_operation_hash, self.receipt_polling_delay, self.receipt_polling_retries
            )
            result.receipt = poll.receipt
            result.receipt_status = poll.status

        return result

    def send_user_operation(self, call_data: bytes, wait_for_receipt: bool = False) -> UserOperationResult:
        """Build, sign and send a UserOperation from the client's own smart account"""
        user_operation, user_operation_hash = self.get_user_operation_and_hash_to_sign(
            self.signer.get_address(), call_data
        )
        user_operation.signature = bytes(self.signer.sign_user_operation_hash(user_operation_hash))
        return self.send_signed_user_operation(user_operation, wait_for_receipt)

    def get_user_operation_receipt(self, result: UserOperationResult) -> UserOperationReceipt:
        """Poll for the receipt of a previously sent UserOperation"""
        poll = self.bundler_client.poll_user_operation_receipt(
            result.user_operation_hash, self.receipt_polling_delay, self.receipt_polling_retries
        )
        result.receipt_status = poll.status
        if poll.status is ReceiptStatus.FAILED:
            raise poll.error
        if not poll.delivered:
            raise ReceiptNotAvailable(
                f"no receipt for {result.user_operation_hash} after {poll.attempts} attempts",
                step="get_user_operation_receipt"
            )
        result.receipt = poll.receipt
        return poll.receipt

    def get_smart_account_signer(self, address: str, private_key: str) -> PrivateKeySigner:
        return PrivateKeySigner(address, private_key)

    def _apply_sponsorship(self, user_operation: UserOperation) -> None:
        """Apply paymaster fields; the paymaster's gas limits replace any earlier values"""
        sponsorship = self.paymaster_client.sponsor_user_operation(user_operation)

        user_operation.paymaster = sponsorship.paymaster
        user_operation.paymaster_data = bytes(sponsorship.paymaster_data)
        user_operation.pre_verification_gas = sponsorship.pre_verification_gas
        user_operation.verification_gas_limit = sponsorship.verification_gas_limit
        user_operation.call_gas_limit = sponsorship.call_gas_limit
        if self.entry_point.packs_paymaster_data:
            user_operation.paymaster_verification_gas_limit = sponsorship.paymaster_verification_gas_limit
            user_operation.paymaster_post_op_gas_limit = sponsorship.paymaster_post_op_gas_limit

    def close(self) -> None:
        """Release the node, paymaster and bundler connections"""
        self.rpc_clients.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()


def create_user_operation_client(config: Optional[ClientConfig] = None, **entry_point_options) -> UserOperationClient:
    """Create a UserOperation client, from the environment when no config is given"""
    config = config or ClientConfig.from_env()
    config.validate()

    with ExitStack() as stack:
        node = stack.enter_context(NodeConnection(config.rpc_url, timeout=config.request_timeout))
        paymaster_rpc = stack.enter_context(RpcClient(config.paymaster_url, timeout=config.request_timeout))
        bundler_rpc = stack.enter_context(RpcClient(config.bundler_url, timeout=config.request_timeout))

        entry_point = get_entry_point(
            config.entry_point_version, node.w3, config.chain_id, **entry_point_options
        )
        paymaster_client = PaymasterClient(
            paymaster_rpc, entry_point, config.chain_id, rpc_method=config.paymaster_rpc_method
        )
        bundler_client = BundlerClient(
            bundler_rpc, entry_point, config.chain_id, gas_price_method=config.gas_price_rpc_method
        )
        signer = PrivateKeySigner(config.account_address, config.private_key)

        client = UserOperationClient(
            signer=signer,
            entry_point=entry_point,
            paymaster_client=paymaster_client,
            bundler_client=bundler_client,
            rpc_clients=RpcClients(node, paymaster_rpc, bundler_rpc),
            receipt_polling_delay=config.polling_delay,
            receipt_polling_retries=config.polling_retries,
        )
        # Construction succeeded: the client owns the connections from here on
        stack.pop_all()

    return client
