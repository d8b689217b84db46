"""
ERC-4337 bundler integration: gas prices, submission and receipts
"""

import logging
import time
from typing import Optional

from userop_client.config import DEFAULT_GAS_PRICE_RPC_METHOD
from userop_client.entrypoint import EntryPoint
from userop_client.errors import ConnectivityError, DecodingError
from userop_client.rpc import RpcClient, RpcError
from userop_client.user_operations import (
    DUMMY_SIGNATURE,
    GasPriceTiers,
    ReceiptPoll,
    ReceiptStatus,
    UserOperation,
    UserOperationGasEstimate,
    UserOperationReceipt,
)

logger = logging.getLogger(__name__)


class BundlerClient:
    """Client for interacting with ERC-4337 bundlers"""

    def __init__(
        self,
        rpc: RpcClient,
        entry_point: EntryPoint,
        chain_id: int,
        gas_price_method: str = DEFAULT_GAS_PRICE_RPC_METHOD
    ):
        self.rpc = rpc
        self.entry_point = entry_point
        self.chain_id = chain_id
        self.gas_price_method = gas_price_method

    def get_user_operation_gas_price(self) -> GasPriceTiers:
        """Get current gas price tiers from the bundler"""
        result = self._make_bundler_request(
            self.gas_price_method, [], step="get_user_operation_gas_price"
        )
        try:
            return GasPriceTiers.from_rpc(result)
        except DecodingError as e:
            raise DecodingError(e.message, step="get_user_operation_gas_price") from e

    def estimate_user_operation_gas(self, user_operation: UserOperation) -> UserOperationGasEstimate:
        """Estimate gas limits for a UserOperation"""
        user_op_dict = user_operation.to_rpc_dict(signature=DUMMY_SIGNATURE)
        result = self._make_bundler_request(
            "eth_estimateUserOperationGas",
            [user_op_dict, self.entry_point.get_address()],
            step="estimate_user_operation_gas"
        )
        try:
            return UserOperationGasEstimate.from_rpc(result)
        except DecodingError as e:
            raise DecodingError(e.message, step="estimate_user_operation_gas") from e

    def send_user_operation(self, signed_user_op: UserOperation) -> str:
        """Send a signed UserOperation to the bundler and return its hash"""
        logger.info("Sending UserOperation to bundler...")

        user_op_dict = signed_user_op.to_rpc_dict()
        logger.debug(f"Full UserOp to bundler: {user_op_dict}")
        result = self._make_bundler_request(
            "eth_sendUserOperation",
            [user_op_dict, self.entry_point.get_address()],
            step="send_user_operation"
        )

        if not isinstance(result, str):
            raise DecodingError(
                f"invalid eth_sendUserOperation result: {result!r}", step="send_user_operation"
            )
        logger.info(f"UserOperation sent successfully: {result}")
        return result

    def get_user_operation_receipt(self, user_operation_hash: str) -> Optional[UserOperationReceipt]:
        """Fetch the receipt once; None while the operation is still pending"""
        result = self._make_bundler_request(
            "eth_getUserOperationReceipt", [user_operation_hash], step="get_user_operation_receipt"
        )
        if result is None:
            return None
        try:
            return UserOperationReceipt.from_rpc(result)
        except DecodingError as e:
            raise DecodingError(e.message, step="get_user_operation_receipt") from e

    def poll_user_operation_receipt(
        self,
        user_operation_hash: str,
        delay_seconds: float,
        retries: int
    ) -> ReceiptPoll:
        """Poll for a receipt with a fixed delay, at most `retries` attempts"""
        for attempt in range(1, retries + 1):
            try:
                receipt = self.get_user_operation_receipt(user_operation_hash)
            except Exception as e:
                logger.warning(f"Receipt polling for {user_operation_hash} failed: {e}")
                return ReceiptPoll(ReceiptStatus.FAILED, error=e, attempts=attempt)

            if receipt is not None:
                logger.info(
                    f"Receipt for {user_operation_hash}: success={receipt.success}, "
                    f"txHash={receipt.transaction_hash}"
                )
                return ReceiptPoll(ReceiptStatus.DELIVERED, receipt=receipt, attempts=attempt)

            if attempt < retries:
                logger.info(f"Waiting for receipt ({attempt}/{retries})...")
                time.sleep(delay_seconds)

        logger.warning(f"No receipt for {user_operation_hash} after {retries} attempts")
        return ReceiptPoll(ReceiptStatus.NOT_YET_AVAILABLE, attempts=retries)

    def _make_bundler_request(self, method: str, params: list, step: str):
        try:
            return self.rpc.call(method, params)
        except RpcError as e:
            raise ConnectivityError(f"bundler request {method} failed: {e}", step=step) from e
