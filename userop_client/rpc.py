"""
Minimal JSON-RPC transport over HTTP
"""

import itertools
import logging
from typing import Any, Dict, List, Optional

import requests
from web3 import Web3

logger = logging.getLogger(__name__)


class RpcError(Exception):
    """Raised when a JSON-RPC call fails at the transport or protocol level"""

    def __init__(self, message: str, code: Optional[int] = None, data: Any = None):
        super().__init__(message)
        self.code = code
        self.data = data


class RpcClient:
    """Posts JSON-RPC requests to a single endpoint over a pooled HTTP session"""

    def __init__(self, url: str, timeout: int = 30, headers: Optional[Dict[str, str]] = None):
        self.url = url
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update({'Content-Type': 'application/json'})
        if headers:
            self.session.headers.update(headers)
        self._ids = itertools.count(1)

    def call(self, method: str, params: List) -> Any:
        """Make a JSON-RPC request and return its result"""
        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params,
            "id": next(self._ids)
        }

        try:
            response = self.session.post(self.url, json=payload, timeout=self.timeout)
            response.raise_for_status()
            result = response.json()
        except requests.RequestException as e:
            logger.error(f"{method} request failed: {e}")
            raise RpcError(f"{method} request failed: {e}") from e
        except ValueError as e:
            logger.error(f"{method} returned a non-JSON response")
            raise RpcError(f"{method} returned a non-JSON response") from e

        if not isinstance(result, dict):
            raise RpcError(f"{method} returned an invalid JSON-RPC payload")

        if result.get('error') is not None:
            error = result['error']
            if not isinstance(error, dict):
                error = {'message': str(error)}
            logger.error(f"RPC error from {method}: {error.get('message', 'Unknown error')}")
            raise RpcError(
                error.get('message', 'Unknown error'),
                code=error.get('code'),
                data=error.get('data'),
            )

        return result.get('result')

    def close(self) -> None:
        self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()


class NodeConnection:
    """Web3 connection to a chain node over an HTTP session this object owns"""

    def __init__(self, url: str, timeout: int = 30):
        self.url = url
        self.session = requests.Session()
        self.w3 = Web3(Web3.HTTPProvider(url, request_kwargs={'timeout': timeout}, session=self.session))

    def close(self) -> None:
        self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()
