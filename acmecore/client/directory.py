import logging
import typing

import josepy

from acmecore.client.exceptions import ProtocolViolation
from acmecore.client.transport import HttpTransport, parse_body

logger = logging.getLogger(__name__)

KNOWN_ENDPOINTS = ("new-authz", "new-cert", "new-reg", "revoke-cert", "key-change")


class Directory(josepy.JSONObjectWithFields):
    """The CA's discovery document listing the URLs of its resources."""

    new_authz: str = josepy.Field("new-authz", omitempty=True)
    new_cert: str = josepy.Field("new-cert", omitempty=True)
    new_reg: str = josepy.Field("new-reg", omitempty=True)
    revoke_cert: str = josepy.Field("revoke-cert", omitempty=True)
    key_change: str = josepy.Field("key-change", omitempty=True)

    @property
    def missing(self) -> typing.List[str]:
        jobj = self.to_partial_json()
        return [name for name in KNOWN_ENDPOINTS if not jobj.get(name)]

    def require(self, name: str) -> str:
        """Returns the URL of the given resource.

        :param name: The resource's name in the discovery document, e.g. *new-reg*.
        :raises: :class:`~acmecore.client.exceptions.ProtocolViolation` If the CA does not offer the resource.
        """
        if url := self.to_partial_json().get(name):
            return url
        raise ProtocolViolation(f"CA does not offer the '{name}' resource")


async def fetch_directory(
    transport: HttpTransport, url: str, logger: logging.Logger = logger
) -> Directory:
    """Fetches and parses the CA's discovery document.

    Resources missing from the document are only reported, operations that need them fail later.

    :param transport: The transport used to talk to the CA.
    :param url: The URL of the discovery document.
    :param logger: The logger to report to.
    :raises:

        * :class:`~acmecore.client.exceptions.AcmeServerError` If the CA answered with an error status.
        * :class:`~acmecore.client.exceptions.ProtocolViolation` If the document is not a JSON object.

    :return: The parsed directory.
    """
    resp = await transport.get(url)
    body = parse_body(resp)
    if not isinstance(body, dict):
        raise ProtocolViolation(f"Expected a JSON object from {url}\nResponse text: {resp.text()}")

    try:
        directory = Directory.from_json(body)
    except josepy.errors.DeserializationError as e:
        raise ProtocolViolation(
            f"{e}\nResponse text: {resp.text()}\nRequest url: {url}"
        ) from e

    if missing := directory.missing:
        logger.warning(
            "CA does not have these known urls:\n%s",
            "\n".join(f"  {name}" for name in missing),
        )

    return directory
