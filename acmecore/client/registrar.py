import inspect
import logging
import typing

from acmecore.client.channel import SignedRequestChannel
from acmecore.client.exceptions import (
    AcmeServerError,
    MissingLinkRelation,
    ProtocolViolation,
    TermsAcknowledgementFailed,
    TermsFetchFailed,
    TermsNotAccepted,
)
from acmecore.client.transport import HttpTransport, parse_problem
from acmecore.models import KeyPair, KeyPairInput, KeyRole
from acmecore.models.messages import NewRegistration, RegistrationAgreement

logger = logging.getLogger(__name__)

AgreeToTerms = typing.Callable[[str], typing.Union[bool, typing.Awaitable[bool]]]
"""Called with the URL of the CA's terms of service, returns whether the caller agrees to them."""


class AccountRegistrar:
    """Registers an account key with the CA and agrees to the CA's terms of service if asked to."""

    def __init__(self, transport: HttpTransport, logger: logging.Logger = logger):
        self._transport = transport
        self._log = logger

    async def register(
        self,
        account_key: KeyPairInput,
        email: str,
        new_reg_url: str,
        agree_to_terms: AgreeToTerms,
    ) -> typing.Union[dict, bytes, None]:
        """Registers a new account.

        :param account_key: The account's key pair.
        :param email: The contact email.
        :param new_reg_url: The CA's *new-reg* URL.
        :param agree_to_terms: Decides whether to agree to the terms of service, only called if the
            CA links to them.
        :raises:

            * :class:`~acmecore.client.exceptions.AcmeServerError` If the CA rejected the registration.
            * :class:`~acmecore.client.exceptions.ProtocolViolation` If the CA's response lacks the
              registration URL or the *next* link.
            * :class:`~acmecore.client.exceptions.TermsNotAccepted` If the terms were declined.
            * :class:`~acmecore.client.exceptions.TermsFetchFailed` If the terms could not be fetched.
            * :class:`~acmecore.client.exceptions.TermsAcknowledgementFailed` If the CA rejected the agreement.

        :return: The CA's response to the agreement, or *None* if no terms had to be agreed to.
        """
        channel = SignedRequestChannel(
            self._transport, KeyPair.load(account_key, KeyRole.ACCOUNT), self._log
        )

        try:
            resp = await channel.post(new_reg_url, NewRegistration.from_email(email))
            if not resp.success:
                raise AcmeServerError(resp.status, resp.url, parse_problem(resp))

            links = resp.links
            if "next" not in links:
                raise MissingLinkRelation(
                    "next", "CA failed to return the new authorization url"
                )

            if not (registration_url := resp.location):
                raise ProtocolViolation("CA failed to return the registration url")

            if "terms-of-service" not in links:
                return None

            return await self._agree_to_terms(
                channel, registration_url, links["terms-of-service"], agree_to_terms
            )
        except Exception:
            self._log.debug("Registration request failed")
            raise

    async def _agree_to_terms(
        self,
        channel: SignedRequestChannel,
        registration_url: str,
        terms_url: str,
        agree_to_terms: AgreeToTerms,
    ):
        agree = agree_to_terms(terms_url)
        if inspect.isawaitable(agree):
            agree = await agree

        if not agree:
            raise TermsNotAccepted(terms_url)

        self._log.info("The 'Terms of Use' were agreed to: %s", terms_url)

        resp = await self._transport.get(terms_url)
        if not resp.success or not resp.body:
            raise TermsFetchFailed(f"Failed to fetch the agreement: {terms_url}")

        self._log.info("Posting agreement to: %s", registration_url)
        resp = await channel.post(
            registration_url, RegistrationAgreement(agreement=terms_url)
        )
        if not resp.success:
            raise TermsAcknowledgementFailed(
                f"Failed to POST agreement back to server: {resp.status}"
            )

        if resp.body[:1] == b"{":
            return resp.json()
        return resp.body
