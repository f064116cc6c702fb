"""
CallbackDispatcher - delivers signed callbacks to the requester.
"""
import logging
from typing import Mapping, Optional

import requests

from .exceptions import NetworkError
from .models import Callback

logger = logging.getLogger(__name__)

# Placeholders a callback URL template may contain, as {{name}}
CALLBACK_PARAMS = ("bn", "ex", "rbn", "req", "rid", "sa", "sig", "sp", "tx")


def substitute_url(template: str, payload: Mapping[str, str]) -> str:
    """
    Replace ``{{name}}`` placeholders with payload values.

    Only the known callback parameters are substituted; placeholders whose
    value is missing from the payload are left untouched.
    """
    url = template
    for name in CALLBACK_PARAMS:
        value = payload.get(name)
        if value is not None:
            url = url.replace("{{" + name + "}}", str(value))
    return url


class CallbackDispatcher:
    """
    Posts callback payloads. One attempt per callback, no retries.

    Args:
        session: Optional requests session
        timeout: Timeout for the POST in seconds
    """

    def __init__(self, session: Optional[requests.Session] = None, timeout: float = 10):
        self.session = session or requests.Session()
        self.timeout = timeout

    def deliver(self, callback: Callback) -> Optional[requests.Response]:
        """
        Substitute the URL template and POST the payload as JSON.

        Args:
            callback: Callback built by the signer

        Returns:
            The HTTP response, or None when the request has no callback URL

        Raises:
            NetworkError: On transport failure or a non-2xx response
        """
        if not callback.url:
            logger.info("Request has no callback URL, skipping delivery")
            return None

        url = substitute_url(callback.url, callback.payload)
        logger.debug(f"Delivering callback to {url}")
        try:
            response = self.session.post(url, json=callback.payload, timeout=self.timeout)
        except requests.RequestException as e:
            raise NetworkError(f"Callback delivery failed: {e}") from e

        if not 200 <= response.status_code < 300:
            raise NetworkError(
                f"Callback returned HTTP {response.status_code}",
                status_code=response.status_code
            )
        logger.info(f"Callback delivered ({response.status_code})")
        return response
