import logging
import typing

from cryptography import x509

from acmecore.client.channel import SignedRequestChannel
from acmecore.client.exceptions import RevocationFailed
from acmecore.client.transport import HttpTransport, parse_problem
from acmecore.models import KeyPair, KeyPairInput, KeyRole
from acmecore.models.messages import Revocation
from acmecore.util import cert_to_der

logger = logging.getLogger(__name__)


class CertificateRevoker:
    """Asks the CA to revoke a certificate.

    The request may be signed with the account key or with the certificate's own key.
    """

    def __init__(self, transport: HttpTransport, logger: logging.Logger = logger):
        self._transport = transport
        self._log = logger

    async def revoke(
        self,
        cert: typing.Union[str, bytes, x509.Certificate],
        key: KeyPairInput,
        revoke_cert_url: str,
        role: KeyRole = KeyRole.ACCOUNT,
    ) -> bool:
        """Revokes the given certificate.

        :param cert: The certificate to revoke, PEM or DER encoded.
        :param key: The account key or the certificate's key.
        :param revoke_cert_url: The CA's *revoke-cert* URL.
        :param role: Which of the two keys *key* is.
        :raises: :class:`~acmecore.client.exceptions.RevocationFailed` If the CA did not revoke the certificate.
        :return: *True* if the revocation succeeded.
        """
        channel = SignedRequestChannel(self._transport, KeyPair.load(key, role), self._log)

        resp = await channel.post(
            revoke_cert_url, Revocation(certificate=cert_to_der(cert))
        )
        self._log.debug("%d: %s", resp.status, resp.text())

        if not resp.success:
            raise RevocationFailed(resp.status, resp.url, parse_problem(resp))

        self._log.info("Revoked certificate via %s", revoke_cert_url)
        return True
