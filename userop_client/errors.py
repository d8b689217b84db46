"""
Error types raised by the UserOperation client
"""

from typing import Optional


class UserOperationError(Exception):
    """Base error, tagged with the pipeline step that failed"""

    def __init__(self, message: str, step: Optional[str] = None):
        self.step = step
        self.message = message
        super().__init__(f"{step}: {message}" if step else message)


class ConfigurationError(UserOperationError, ValueError):
    """Missing or unsupported construction parameters"""


class ConnectivityError(UserOperationError):
    """Transport or call failure talking to the node, paymaster or bundler"""


class EncodingError(UserOperationError):
    """A value could not be packed or ABI encoded"""


class DecodingError(UserOperationError):
    """A service returned a payload that could not be decoded"""


class ReceiptNotAvailable(UserOperationError):
    """No receipt was returned within the polling budget"""


class SignatureError(UserOperationError, ValueError):
    """A UserOperation is missing the signature it needs for submission"""
