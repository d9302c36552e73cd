import logging
import typing

from acmecore.client.authorization import AuthorizationOrchestrator
from acmecore.client.challenge_solver import ChallengeSolver
from acmecore.client.channel import SignedRequestChannel
from acmecore.client.exceptions import (
    CertificateMismatch,
    MissingIssuerLink,
    ProtocolViolation,
)
from acmecore.client.transport import HttpTransport, Response, parse_body
from acmecore.models import (
    ChallengeType,
    IssuanceState,
    IssuedCertificate,
    KeyPair,
    KeyPairInput,
    KeyRole,
)
from acmecore.models.messages import NewCertificate
from acmecore.util import cert_to_pem, generate_csr

logger = logging.getLogger(__name__)


class CertificateIssuer:
    """Obtains a certificate for a set of domains.

    Every domain is authorized in turn before the CSR is submitted. The issued certificate is fetched a
    second time to confirm it, and its issuer certificate is downloaded via the *up* link.
    """

    def __init__(
        self,
        transport: HttpTransport,
        *,
        poll_interval: float = AuthorizationOrchestrator.POLL_INTERVAL,
        authorization_timeout: typing.Optional[float] = None,
        logger: logging.Logger = logger,
    ):
        """Creates a :class:`CertificateIssuer` instance.

        :param transport: The transport used to talk to the CA.
        :param poll_interval: The delay in seconds between polling an authorization.
        :param authorization_timeout: The time in seconds a single domain may take to be authorized,
            *None* to wait indefinitely.
        :param logger: The logger to report to.
        """
        self._transport = transport
        self._poll_interval = poll_interval
        self._authorization_timeout = authorization_timeout
        self._log = logger

    async def issue(
        self,
        domains: typing.List[str],
        domain_key: KeyPairInput,
        account_key: KeyPairInput,
        new_authz_url: str,
        new_cert_url: str,
        solver: ChallengeSolver,
        challenge_type: typing.Union[ChallengeType, str] = ChallengeType.HTTP_01,
    ) -> IssuedCertificate:
        """Authorizes all domains and obtains a certificate for them.

        :param domains: The domains to include in the certificate, authorized in this order.
        :param domain_key: The certificate's key pair.
        :param account_key: The registered account's key pair.
        :param new_authz_url: The CA's *new-authz* URL.
        :param new_cert_url: The CA's *new-cert* URL, superseded by the links of the authorizations.
        :param solver: Provisions the challenge responses.
        :param challenge_type: The type of challenge to answer.
        :raises:

            * :class:`ValueError` If no domains were given, the challenge type is unknown, the solver
              does not support it or a key could not be parsed.
            * :class:`~acmecore.client.exceptions.AcmeClientException` If any step of the protocol failed.

        :return: The PEM encoded certificate, issuer certificate and domain key.
        """
        try:
            challenge_type = ChallengeType(challenge_type)
        except ValueError:
            raise ValueError(f"Unsupported challenge type: '{challenge_type}'")

        if not solver.supports(challenge_type):
            raise ValueError(
                f"{type(solver).__name__} cannot answer {challenge_type.value} challenges"
            )

        if not domains:
            raise ValueError("Must provide at least one domain")

        domain_key = KeyPair.load(domain_key, KeyRole.DOMAIN)
        channel = SignedRequestChannel(
            self._transport, KeyPair.load(account_key, KeyRole.ACCOUNT), self._log
        )
        orchestrator = AuthorizationOrchestrator(
            channel,
            self._transport,
            solver,
            challenge_type,
            poll_interval=self._poll_interval,
            timeout=self._authorization_timeout,
            logger=self._log,
        )

        state = IssuanceState.start(domains, new_cert_url)
        while state.remaining_domains:
            domain, state = state.next_domain()
            state = state.authorized(await orchestrator.authorize(domain, new_authz_url))

        state = await self._create_certificate(channel, domain_key, state)

        return IssuedCertificate(
            cert=cert_to_pem(state.certificate),
            chain=state.chain_pem,
            privkey=domain_key.private_key_pem(),
        )

    async def _create_certificate(
        self, channel: SignedRequestChannel, domain_key: KeyPair, state: IssuanceState
    ) -> IssuanceState:
        csr = generate_csr(domain_key.private_key, list(state.validated_domains))

        self._log.debug("Creating new certificate: %s", state.new_cert_url)
        try:
            resp = await channel.post(
                state.new_cert_url,
                NewCertificate(
                    csr=csr, authorizations=state.valid_authorization_urls
                ),
            )
            certificate = self._parse_certificate(resp)
        except Exception:
            self._log.debug("Failed to create new certificate")
            raise

        links = resp.links
        if "up" not in links:
            raise MissingIssuerLink("CA failed to return the 'ca-cert' url")

        if not (cert_url := resp.location):
            raise ProtocolViolation("CA failed to return the certificate url")

        await self._verify_certificate(cert_url, certificate)
        return state.issued(certificate, await self._download_issuer_cert(links["up"]))

    async def _verify_certificate(self, cert_url: str, certificate: bytes) -> None:
        self._log.debug("Fetching certificate: %s", cert_url)
        try:
            fetched = self._parse_certificate(await self._transport.get(cert_url))
            if fetched != certificate:
                raise CertificateMismatch(cert_url)
        except Exception:
            self._log.debug("Failed to verify certificate")
            raise

        self._log.debug("Successfully verified certificate")

    async def _download_issuer_cert(self, issuer_url: str) -> str:
        self._log.debug("Fetching issuer certificate: %s", issuer_url)
        try:
            chain_pem = cert_to_pem(
                self._parse_certificate(await self._transport.get(issuer_url))
            )
        except Exception:
            self._log.debug("Failed to fetch issuer certificate")
            raise

        self._log.debug("Successfully fetched issuer certificate")
        return chain_pem

    @staticmethod
    def _parse_certificate(resp: Response) -> bytes:
        body = parse_body(resp)
        if not isinstance(body, bytes):
            raise ProtocolViolation(f"Expected a DER encoded certificate from {resp.url}")
        return body
