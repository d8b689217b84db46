"""
Paymaster sponsorship for UserOperations
"""

import logging

from userop_client.config import DEFAULT_PAYMASTER_RPC_METHOD
from userop_client.entrypoint import EntryPoint
from userop_client.errors import ConnectivityError, DecodingError
from userop_client.rpc import RpcClient, RpcError
from userop_client.user_operations import (
    DUMMY_SIGNATURE,
    SponsorUserOperationResponse,
    UserOperation,
)

logger = logging.getLogger(__name__)


class PaymasterClient:
    """Client for ERC-4337 paymasters exposing pm_sponsorUserOperation"""

    def __init__(
        self,
        rpc: RpcClient,
        entry_point: EntryPoint,
        chain_id: int,
        rpc_method: str = DEFAULT_PAYMASTER_RPC_METHOD
    ):
        self.rpc = rpc
        self.entry_point = entry_point
        self.chain_id = chain_id
        self.rpc_method = rpc_method

    def sponsor_user_operation(self, user_operation: UserOperation) -> SponsorUserOperationResponse:
        """Ask the paymaster to sponsor a UserOperation and return its paymaster fields and gas limits"""
        user_op_dict = user_operation.to_rpc_dict(signature=DUMMY_SIGNATURE)
        logger.info(f"Requesting sponsorship for {user_operation.sender} nonce {user_operation.nonce}")

        try:
            result = self.rpc.call(self.rpc_method, [user_op_dict, self.entry_point.get_address()])
        except RpcError as e:
            raise ConnectivityError(f"paymaster request failed: {e}", step="sponsor_user_operation") from e

        try:
            sponsorship = SponsorUserOperationResponse.from_rpc(result)
        except DecodingError as e:
            raise DecodingError(e.message, step="sponsor_user_operation") from e

        logger.info(f"Sponsored by paymaster {sponsorship.paymaster}")
        return sponsorship
