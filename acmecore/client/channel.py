import collections
import json
import logging
import typing

import josepy
from acme import jws

from acmecore.client.exceptions import NonceUnavailable
from acmecore.client.transport import HttpTransport, Response
from acmecore.models import KeyPair

logger = logging.getLogger(__name__)


class SignedRequestChannel:
    """Sends JWS signed POST requests on behalf of a single key pair.

    The channel keeps a FIFO queue of replay nonces. Every nonce is consumed by exactly one request,
    and every response that carries a *Replay-Nonce* header replenishes the queue, no matter whether
    the request succeeded.
    """

    def __init__(
        self,
        transport: HttpTransport,
        key_pair: KeyPair,
        logger: logging.Logger = logger,
    ):
        """Creates a :class:`SignedRequestChannel` instance.

        :param transport: The transport used to talk to the CA.
        :param key_pair: The key pair that signs every request.
        :param logger: The logger to report to.
        """
        self._transport = transport
        self._key_pair = key_pair
        self._log = logger
        self._nonces: typing.Deque[str] = collections.deque()

    @property
    def key_pair(self) -> KeyPair:
        return self._key_pair

    @property
    def nonces(self) -> typing.Tuple[str, ...]:
        """The currently queued nonces, oldest first."""
        return tuple(self._nonces)

    def _store_nonce(self, response: Response) -> bool:
        if nonce := response.nonce:
            self._log.debug("Storing nonce: %s", nonce)
            self._nonces.append(nonce)
            return True
        return False

    async def fetch_nonce(self, url: str) -> None:
        """Fetches a fresh nonce with a HEAD request to the given URL.

        :param url: The URL to probe.
        :raises: :class:`~acmecore.client.exceptions.NonceUnavailable` If the CA did not return a nonce.
        """
        resp = await self._transport.head(url)
        if not self._store_nonce(resp):
            raise NonceUnavailable(f"Failed to get nonce for request: {url}")

    def _wrap_in_jws(self, payload: bytes, nonce: str, url: str) -> bytes:
        return (
            jws.JWS.sign(
                payload,
                key=self._key_pair.jwk,
                alg=self._key_pair.alg,
                nonce=josepy.decode_b64jose(nonce),
                url=url,
            )
            .json_dumps(indent=2)
            .encode()
        )

    async def post(
        self,
        url: str,
        obj: typing.Union[josepy.JSONDeSerializable, dict],
    ) -> Response:
        """Signs the given payload and POSTs it to the given URL.

        A nonce is fetched first if none is queued.
        Transport errors are propagated, the request is never retried.

        :param url: The URL to POST to.
        :param obj: The payload.
        :raises:

            * :class:`~acmecore.client.exceptions.NonceUnavailable` If no nonce could be obtained.
            * :class:`~acmecore.client.exceptions.TransportError` If the CA could not be reached.

        :return: The CA's response, whatever its status.
        """
        if not self._nonces:
            await self.fetch_nonce(url)

        self._log.debug("Posting to: %s", url)

        nonce = self._nonces.popleft()
        self._log.debug("Using nonce: %s", nonce)

        if isinstance(obj, josepy.JSONDeSerializable):
            payload = obj.json_dumps(indent=2)
        else:
            payload = json.dumps(obj, indent=2)
        self._log.debug("Payload: %s", payload)

        resp = await self._transport.post(
            url,
            self._wrap_in_jws(payload.encode(), nonce, url),
            headers={"Content-Type": "application/jose+json"},
        )

        self._log.debug("Status: %d", resp.status)
        self._store_nonce(resp)
        return resp
