"""
CircleCI API client.

This module provides an async HTTP client for the CircleCI v1.1 API: build
details and the log output of a build action.
"""

import json

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from cdb.circleci.config import CircleCIConfig
from cdb.circleci.models import BuildInfo
from cdb.utils.logger import get_logger

logger = get_logger(__name__)


class CircleCIError(Exception):
    """Base class for CircleCI client errors."""


class AuthenticationError(CircleCIError):
    """The API rejected the token."""


class NetworkError(CircleCIError):
    """The API could not be reached."""


class ApiError(CircleCIError):
    """The API answered with an error status or an unreadable body."""

    def __init__(self, status: int, message: str) -> None:
        self.status = status
        self.message = message
        super().__init__(f"CircleCI API returned error {status}: {message}")


class LogFetchError(CircleCIError):
    """The log output of an action could not be fetched."""


class CircleClient:
    """
    Async client for the CircleCI v1.1 API.

    Transport errors are retried with exponential backoff; HTTP error
    statuses are not.

    Example:
        >>> async with CircleClient(CircleCIConfig.from_env()) as client:
        ...     build = await client.get_build("myorg", "myrepo", 12345)
        ...     logs = await client.get_logs(build.failed_actions[0].output_url)
    """

    def __init__(self, config: CircleCIConfig) -> None:
        """
        Initialize CircleCI client.

        Args:
            config: Token, API base URL and timeout
        """
        self.config = config
        self.api_base = config.api_base
        self.client = httpx.AsyncClient(
            timeout=httpx.Timeout(config.timeout),
            follow_redirects=True,
            headers={"Circle-Token": config.token, "Accept": "application/json"},
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()

    async def __aenter__(self) -> "CircleClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, *args: object) -> None:
        """Async context manager exit."""
        await self.close()

    @retry(
        retry=retry_if_exception_type((httpx.TransportError, httpx.TimeoutException)),
        wait=wait_exponential(multiplier=1, min=2, max=16),
        stop=stop_after_attempt(4),
        reraise=True,
    )
    async def _get(self, url: str) -> httpx.Response:
        return await self.client.get(url)

    async def _request(self, url: str) -> httpx.Response:
        try:
            return await self._get(url)
        except httpx.TransportError as e:
            logger.error(
                f"CircleCI request failed: {e}",
                extra={"context": {"url": url, "error": str(e)}},
            )
            raise NetworkError(f"Failed to connect to CircleCI API: {e}") from e

    async def get_build(self, org: str, project: str, build_num: int) -> BuildInfo:
        """
        Fetch build details.

        Args:
            org: GitHub organization
            project: Repository name
            build_num: Build number

        Returns:
            Parsed BuildInfo

        Raises:
            AuthenticationError: On 401/403
            ApiError: On any other error status or an unparseable body
            NetworkError: If the API is unreachable after all retries
        """
        url = f"{self.api_base}/project/github/{org}/{project}/{build_num}"
        logger.debug(f"Fetching build: {url}", extra={"context": {"build_num": build_num}})

        response = await self._request(url)
        self._check_status(response)

        try:
            build = BuildInfo.from_json(response.json())
        except (json.JSONDecodeError, ValueError, TypeError, AttributeError) as e:
            raise ApiError(response.status_code, f"Failed to parse CircleCI response: {e}") from e

        logger.info(
            f"Fetched build {build.build_num}: {build.status}",
            extra={
                "context": {
                    "build_num": build.build_num,
                    "status": build.status,
                    "failed_actions": len(build.failed_actions),
                }
            },
        )
        return build

    async def get_logs(self, output_url: str) -> str:
        """
        Fetch the log output of an action.

        The output endpoint returns a JSON array of ``{"message": ...}``
        objects whose messages are concatenated; any other body is returned
        as-is.

        Raises:
            LogFetchError: On an error status
            NetworkError: If the endpoint is unreachable after all retries
        """
        response = await self._request(output_url)
        if response.status_code >= 400:
            logger.error(
                f"Log fetch failed: HTTP {response.status_code}",
                extra={"context": {"url": output_url, "status": response.status_code}},
            )
            raise LogFetchError(f"Failed to fetch logs: HTTP {response.status_code}")

        return join_log_messages(response.text)

    @staticmethod
    def _check_status(response: httpx.Response) -> None:
        if response.status_code in (401, 403):
            raise AuthenticationError(
                "CircleCI rejected the API token\n  help: check the CIRCLECI_TOKEN environment variable"
            )
        if response.status_code >= 400:
            text = response.text[:500] or "<no response body>"
            logger.error(
                f"CircleCI HTTP error: {response.status_code}",
                extra={"context": {"status": response.status_code, "response_text": text}},
            )
            raise ApiError(response.status_code, text)


def join_log_messages(body: str) -> str:
    """Concatenate the ``message`` fields of a log output array; other bodies pass through."""
    try:
        data = json.loads(body)
    except json.JSONDecodeError:
        return body

    if not isinstance(data, list):
        return body

    return "".join(
        item["message"]
        for item in data
        if isinstance(item, dict) and isinstance(item.get("message"), str)
    )
