"""
Client for Firebase callable HTTPS functions.

Implements the callable protocol: ``POST {"data": ...}`` with the user's ID
token as a bearer token; the function's return value comes back under
``"result"`` and failures under ``"error"``.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

logger = logging.getLogger(__name__)


class CloudFunctionError(Exception):
    """A callable function failed or could not be reached."""

    def __init__(self, name: str, message: str, status: Optional[str] = None):
        self.name = name
        self.status = status
        super().__init__(f"{name}: {message}")


class CloudFunctionsClient:
    """
    Calls HTTPS callable functions in one project/region.
    """

    def __init__(
        self,
        project_id: str,
        region: str = "us-central1",
        token_provider: Optional[Callable[[], Awaitable[Optional[str]]]] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
    ):
        """
        Initialize CloudFunctionsClient.

        Args:
            project_id: Firebase project ID
            region: Functions region
            token_provider: Async callable returning the current ID token
            http_client: Shared HTTP client; a short-lived client is used per call if omitted
            timeout: Request timeout in seconds
        """
        self._base_url = f"https://{region}-{project_id}.cloudfunctions.net"
        self._token_provider = token_provider
        self._http_client = http_client
        self._timeout = timeout

    def function_url(self, name: str) -> str:
        return f"{self._base_url}/{name}"

    async def call(self, name: str, data: Dict[str, Any]) -> Any:
        """
        Invoke a callable function.

        Args:
            name: Function name
            data: Payload sent under ``"data"``

        Returns:
            The function's ``result`` value

        Raises:
            CloudFunctionError: On transport failure, non-2xx status or an error body
        """
        headers = {"Content-Type": "application/json"}
        if self._token_provider is not None:
            token = await self._token_provider()
            if token:
                headers["Authorization"] = f"Bearer {token}"

        url = self.function_url(name)
        try:
            if self._http_client is not None:
                response = await self._http_client.post(url, json={"data": data}, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.post(url, json={"data": data}, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"Cloud function {name} unreachable: {e}")
            raise CloudFunctionError(name, str(e))

        try:
            body = response.json()
        except ValueError:
            body = {}

        if response.status_code >= 400 or "error" in body:
            error = body.get("error") or {}
            message = error.get("message") or f"HTTP {response.status_code}"
            logger.error(f"Cloud function {name} failed: {message}")
            raise CloudFunctionError(name, message, status=error.get("status"))

        return body.get("result")
