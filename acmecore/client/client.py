import logging
import typing
from pathlib import Path

from cryptography import x509
from pydantic_settings import BaseSettings, SettingsConfigDict

from acmecore.client.challenge_solver import ChallengeSolver
from acmecore.client.directory import KNOWN_ENDPOINTS, Directory, fetch_directory
from acmecore.client.issuer import CertificateIssuer
from acmecore.client.registrar import AccountRegistrar, AgreeToTerms
from acmecore.client.revoker import CertificateRevoker
from acmecore.client.transport import HttpTransport
from acmecore.models import ChallengeType, IssuedCertificate, KeyPairInput, KeyRole
from acmecore.models.challenge import DEFAULT_CHALLENGE_PREFIX

logger = logging.getLogger(__name__)

STAGING_DIRECTORY = "https://acme-staging.api.letsencrypt.org/directory"
PRODUCTION_DIRECTORY = "https://acme-v01.api.letsencrypt.org/directory"


class AcmeClient:
    """ACME client that registers accounts, obtains and revokes certificates."""

    KNOWN_ENDPOINTS = KNOWN_ENDPOINTS
    CHALLENGE_TYPES = tuple(typ.value for typ in ChallengeType)
    STAGING_DIRECTORY = STAGING_DIRECTORY
    PRODUCTION_DIRECTORY = PRODUCTION_DIRECTORY
    CHALLENGE_PREFIX = DEFAULT_CHALLENGE_PREFIX

    class Config(BaseSettings):
        model_config = SettingsConfigDict(env_prefix="ACMECORE_", extra="forbid")

        directory: typing.Optional[str] = None
        """The CA's discovery URL, overrides :attr:`staging`."""
        staging: bool = False
        """Whether to use the staging instead of the production CA if no directory is given."""
        challenge_type: ChallengeType = ChallengeType.HTTP_01
        """The type of challenge to answer."""
        rsa_key_size: int = 2048
        """The size of newly generated RSA keys."""
        poll_interval: float = 1.0
        """The delay in seconds between polling an authorization."""
        authorization_timeout: typing.Optional[float] = 300.0
        """The time in seconds a single domain may take to be authorized, *None* to wait indefinitely."""
        request_timeout: float = 30.0
        """The timeout of a single HTTP request in seconds."""
        email: typing.Optional[str] = None
        """The contact email used on registration."""
        private_key: typing.Optional[str] = None
        """Path of the account key. Must be a PEM-encoded RSA or EC key file."""
        server_cert: typing.Optional[str] = None
        """Path of a CA certificate to trust in addition to the system's."""

    def __init__(
        self,
        cfg: Config = None,
        *,
        transport: HttpTransport = None,
        logger: logging.Logger = logger,
    ):
        """Creates an :class:`AcmeClient` instance.

        :param cfg: The client's configuration.
        :param transport: The transport to use, one is created from the configuration if omitted.
        :param logger: The logger every component reports to.
        """
        self.config = cfg or self.Config()
        self._transport = transport or HttpTransport(
            server_cert=self.config.server_cert, timeout=self.config.request_timeout
        )
        self._log = logger
        self._directory: typing.Optional[Directory] = None

    @property
    def directory_url(self) -> str:
        if self.config.directory:
            return self.config.directory
        return STAGING_DIRECTORY if self.config.staging else PRODUCTION_DIRECTORY

    async def close(self):
        """Closes the client's transport.

        The client may not be used for requests anymore after it has been closed.
        """
        await self._transport.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    def _account_key(self, account_key: typing.Optional[KeyPairInput]) -> KeyPairInput:
        if account_key is not None:
            return account_key
        if self.config.private_key:
            return Path(self.config.private_key)
        raise ValueError("No account key given and none configured")

    async def directory_get(self) -> Directory:
        """Fetches the CA's discovery document.

        The document is only fetched on the first call.

        :raises: :class:`~acmecore.client.exceptions.ProtocolViolation` If the document is malformed.
        :return: The CA's directory.
        """
        if self._directory is None:
            self._directory = await fetch_directory(
                self._transport, self.directory_url, self._log
            )
        return self._directory

    async def account_register(
        self,
        agree_to_terms: AgreeToTerms,
        email: str = None,
        account_key: KeyPairInput = None,
    ) -> typing.Union[dict, bytes, None]:
        """Registers an account with the CA.

        :param agree_to_terms: Called with the URL of the terms of service if the CA asks to agree to them.
        :param email: The contact email, defaults to the configured one.
        :param account_key: The account key, defaults to the configured one.
        :raises: :class:`~acmecore.client.exceptions.AcmeClientException` If the registration failed.
        :return: The CA's response to the agreement, *None* if there were no terms to agree to.
        """
        if not (email := email or self.config.email):
            raise ValueError("No contact email given and none configured")

        directory = await self.directory_get()
        return await AccountRegistrar(self._transport, self._log).register(
            self._account_key(account_key),
            email,
            directory.require("new-reg"),
            agree_to_terms,
        )

    async def certificate_get(
        self,
        domains: typing.List[str],
        domain_key: KeyPairInput,
        solver: ChallengeSolver,
        account_key: KeyPairInput = None,
        challenge_type: typing.Union[ChallengeType, str] = None,
    ) -> IssuedCertificate:
        """Authorizes the given domains and obtains a certificate for them.

        :param domains: The domains to include in the certificate.
        :param domain_key: The certificate's key.
        :param solver: Provisions the challenge responses.
        :param account_key: The account key, defaults to the configured one.
        :param challenge_type: The type of challenge to answer, defaults to the configured one.
        :raises: :class:`~acmecore.client.exceptions.AcmeClientException` If the issuance failed.
        :return: The PEM encoded certificate, issuer certificate and domain key.
        """
        directory = await self.directory_get()
        issuer = CertificateIssuer(
            self._transport,
            poll_interval=self.config.poll_interval,
            authorization_timeout=self.config.authorization_timeout,
            logger=self._log,
        )
        return await issuer.issue(
            domains,
            domain_key,
            self._account_key(account_key),
            directory.require("new-authz"),
            directory.require("new-cert"),
            solver,
            challenge_type or self.config.challenge_type,
        )

    async def certificate_revoke(
        self,
        cert: typing.Union[str, bytes, x509.Certificate],
        key: KeyPairInput = None,
        role: KeyRole = KeyRole.ACCOUNT,
    ) -> bool:
        """Revokes the given certificate.

        :param cert: The certificate to revoke.
        :param key: The account key or the certificate's key, defaults to the configured account key.
        :param role: Which of the two keys *key* is.
        :raises: :class:`~acmecore.client.exceptions.RevocationFailed` If the revocation did not succeed.
        :return: *True* if the revocation succeeded.
        """
        directory = await self.directory_get()
        return await CertificateRevoker(self._transport, self._log).revoke(
            cert,
            self._account_key(key) if role == KeyRole.ACCOUNT else key,
            directory.require("revoke-cert"),
            role,
        )
