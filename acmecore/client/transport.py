import asyncio
import json
import logging
import ssl
import typing
from dataclasses import dataclass, field

import acme.messages
import josepy
from aiohttp import ClientSession, ClientError, ClientTimeout
from multidict import CIMultiDict

from acmecore.client.exceptions import (
    AcmeServerError,
    ProtocolViolation,
    TransportError,
)
from acmecore.util import parse_link
from acmecore.version import __version__

logger = logging.getLogger(__name__)


@dataclass
class Response:
    """A fully read HTTP response.

    Header lookups are case-insensitive.
    """

    url: str
    status: int
    headers: CIMultiDict = field(default_factory=CIMultiDict)
    body: bytes = b""

    @property
    def success(self) -> bool:
        return 200 <= self.status < 300

    @property
    def nonce(self) -> typing.Optional[str]:
        return self.headers.get("Replay-Nonce")

    @property
    def location(self) -> typing.Optional[str]:
        return self.headers.get("Location")

    @property
    def link(self) -> typing.Optional[str]:
        """All *Link* headers joined into a single header value."""
        if links := self.headers.getall("Link", []):
            return ", ".join(links)
        return None

    @property
    def links(self) -> typing.Dict[str, str]:
        return parse_link(self.link)

    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    def json(self):
        return json.loads(self.body)


def parse_problem(response: Response) -> typing.Optional[acme.messages.Error]:
    """Parses the problem document a CA sends along with an error status, if there is one."""
    try:
        body = response.json()
        if not isinstance(body, dict):
            return None
        return acme.messages.Error.from_json(body)
    except (ValueError, TypeError, AttributeError, josepy.errors.DeserializationError):
        return None


def parse_body(response: Response):
    """Returns the decoded body of a successful response.

    Bodies that look like a JSON object are decoded, anything else is returned as raw bytes.

    :param response: The response to parse.
    :raises:

        * :class:`~acmecore.client.exceptions.AcmeServerError` If the response was not successful.
        * :class:`~acmecore.client.exceptions.ProtocolViolation` If the body is empty or not valid JSON.

    :return: The decoded JSON object or the raw body.
    """
    if not response.success:
        raise AcmeServerError(response.status, response.url, parse_problem(response))

    if not response.body:
        raise ProtocolViolation(f"Missing response body: {response.url}")

    if response.body[:1] == b"{":
        try:
            return response.json()
        except ValueError as e:
            raise ProtocolViolation(
                f"Failed to parse body: {response.url}\n{response.text()}"
            ) from e

    return response.body


class HttpTransport:
    """Thin wrapper around :class:`aiohttp.ClientSession` that reads responses completely.

    Network failures are raised as :class:`~acmecore.client.exceptions.TransportError`,
    HTTP error statuses are returned to the caller.
    """

    def __init__(
        self,
        *,
        server_cert: str = None,
        timeout: float = 30.0,
        session: ClientSession = None,
    ):
        """Creates an :class:`HttpTransport` instance.

        :param server_cert: Path of an additional CA certificate to add to the SSL context
        :param timeout: Timeout of a single request in seconds
        :param session: An existing session to use instead of creating one
        """
        self._ssl_context = ssl.create_default_context()

        if server_cert:
            self._ssl_context.load_verify_locations(cafile=server_cert)

        self._session = session
        self._timeout = timeout

    @property
    def session(self) -> ClientSession:
        if self._session is None:
            self._session = ClientSession(
                headers={"User-Agent": f"acmecore Client {__version__}"}
            )
        return self._session

    async def close(self):
        """Closes the transport's session.

        The transport may not be used for requests anymore after it has been closed.
        """
        if self._session is not None:
            await self._session.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def head(self, url: str) -> Response:
        return await self._request("HEAD", url)

    async def get(self, url: str) -> Response:
        return await self._request("GET", url)

    async def post(self, url: str, data: bytes, headers: dict = None) -> Response:
        return await self._request("POST", url, data=data, headers=headers)

    async def _request(self, method: str, url: str, **kwargs) -> Response:
        logger.debug("%s %s", method, url)
        try:
            async with self.session.request(
                method,
                url,
                ssl=self._ssl_context,
                timeout=ClientTimeout(total=self._timeout),
                **kwargs,
            ) as resp:
                response = Response(
                    url=url,
                    status=resp.status,
                    headers=CIMultiDict(resp.headers),
                    body=await resp.read(),
                )
        except (ClientError, asyncio.TimeoutError) as e:
            raise TransportError(url, f"{method} {url} failed: {e!r}") from e

        logger.debug("Status: %d", response.status)
        return response
