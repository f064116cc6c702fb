"""
ChainClient - read-only access to a chain RPC node.
"""
import logging
import os
import urllib.parse
from typing import Any, Dict, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..exceptions import AbiFetchError, ChainQueryError
from ..models import BlockInfo, ChainInfo
from ..serializer import Abi

logger = logging.getLogger(__name__)

INSECURE_ENV = "ESRLINK_INSECURE_RPC"


def validate_rpc_url(url: str, name: str = "chain_url") -> str:
    """
    Validate that a node URL is secure.

    Plain http is only accepted for loopback hosts, or anywhere when
    ``ESRLINK_INSECURE_RPC=1`` is set.

    Args:
        url: URL to validate
        name: Name used in error messages

    Returns:
        The URL without a trailing slash

    Raises:
        ValueError: If the URL is malformed or uses plain http
    """
    parsed = urllib.parse.urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValueError(f"Invalid {name} '{url}'")
    host = parsed.hostname or ""
    is_local = host in ("localhost", "127.0.0.1", "::1")
    if parsed.scheme != "https" and not is_local:
        if os.environ.get(INSECURE_ENV) != "1":
            raise ValueError(
                f"{name} must use https:// for security (got: {parsed.scheme}://). "
                f"Set {INSECURE_ENV}=1 to allow HTTP for development."
            )
    return url.rstrip("/")


class ChainClient:
    """
    Client for the ``/v1/chain`` RPC endpoints.

    Calls are blocking; the agent runs them in a worker thread.
    """

    def __init__(
        self,
        rpc_url: str,
        retry_count: int = 3,
        timeout: float = 10,
        session: Optional[requests.Session] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the ChainClient

        Args:
            rpc_url: Node URL (e.g., "https://eos.greymass.com")
            retry_count: Number of retries for failed connections and 5xx responses
            timeout: Timeout for HTTP requests in seconds
            session: Optional preconfigured requests session
            logger: Optional logger instance

        Raises:
            ValueError: If the URL doesn't use https (unless it's localhost)
        """
        self.rpc_url = validate_rpc_url(rpc_url)
        self.timeout = timeout
        self.logger = logger or logging.getLogger(__name__)

        if session is None:
            session = requests.Session()
            retries = Retry(
                total=retry_count,
                backoff_factor=0.5,
                status_forcelist=[500, 502, 503, 504],
                allowed_methods=["GET", "POST"],
                raise_on_status=False,
                connect=retry_count,
                read=retry_count,
                other=retry_count
            )
            session.mount("http://", HTTPAdapter(max_retries=retries))
            session.mount("https://", HTTPAdapter(max_retries=retries))
        self.session = session

    def _post(self, endpoint: str, body: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        url = f"{self.rpc_url}/v1/chain/{endpoint}"
        self.logger.debug(f"POST {url} {body or {}}")
        try:
            response = self.session.post(url, json=body or {}, timeout=self.timeout)
        except requests.RequestException as e:
            raise ChainQueryError(f"{endpoint} request failed: {e}") from e

        if response.status_code >= 400:
            detail = response.text[:200]
            raise ChainQueryError(f"{endpoint} returned HTTP {response.status_code}: {detail}")
        try:
            result = response.json()
        except ValueError as e:
            raise ChainQueryError(f"Invalid JSON from {endpoint}: {e}") from e
        if not isinstance(result, dict):
            raise ChainQueryError(f"Unexpected {endpoint} response: {result!r}")
        return result

    def get_info(self) -> ChainInfo:
        """
        Get chain metadata including the head block number.

        Raises:
            ChainQueryError: If the node cannot be queried
        """
        result = self._post("get_info")
        try:
            return ChainInfo.model_validate(result)
        except ValueError as e:
            raise ChainQueryError(f"Malformed get_info response: {e}") from e

    def get_block(self, block_num_or_id: Any) -> BlockInfo:
        """
        Get a block header by number or id.

        Raises:
            ChainQueryError: If the block cannot be fetched
        """
        result = self._post("get_block", {"block_num_or_id": block_num_or_id})
        try:
            return BlockInfo.model_validate(result)
        except ValueError as e:
            raise ChainQueryError(f"Malformed get_block response: {e}") from e

    def get_abi(self, account: str) -> Abi:
        """
        Get the current ABI of a contract account.

        Args:
            account: Contract account name

        Returns:
            Parsed Abi

        Raises:
            AbiFetchError: If the ABI cannot be fetched or the account has none
        """
        try:
            result = self._post("get_abi", {"account_name": account})
        except ChainQueryError as e:
            raise AbiFetchError(f"Failed to fetch ABI for '{account}': {e}") from e
        definition = result.get("abi")
        if not definition:
            raise AbiFetchError(f"Account '{account}' has no ABI")
        return Abi.from_dict(definition)
