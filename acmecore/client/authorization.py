import asyncio
import json
import logging
import typing

import josepy

from acmecore.client.challenge_solver import ChallengeSolver
from acmecore.client.channel import SignedRequestChannel
from acmecore.client.exceptions import (
    AuthorizationInvalid,
    AuthorizationTimeout,
    MissingLinkRelation,
    ProtocolViolation,
    UnexpectedAuthorizationState,
    UnsupportedChallenge,
)
from acmecore.client.transport import HttpTransport, Response, parse_body
from acmecore.models import (
    AuthorizationResult,
    AuthorizationState,
    AuthorizationStatus,
    ChallengeType,
)
from acmecore.models.messages import (
    Authorization,
    ChallengeResponse,
    NewAuthorization,
)

logger = logging.getLogger(__name__)


class AuthorizationOrchestrator:
    """Drives the authorization of one domain at a time.

    For each domain a new authorization is requested, the challenge of the configured type is provisioned
    via the :class:`~acmecore.client.challenge_solver.ChallengeSolver`, the CA is asked to validate it and
    the authorization is polled until it is either *valid* or has failed.
    """

    POLL_INTERVAL = 1.0
    """The delay in seconds between polling attempts."""

    def __init__(
        self,
        channel: SignedRequestChannel,
        transport: HttpTransport,
        solver: ChallengeSolver,
        challenge_type: typing.Union[ChallengeType, str] = ChallengeType.HTTP_01,
        *,
        poll_interval: float = POLL_INTERVAL,
        timeout: typing.Optional[float] = None,
        logger: logging.Logger = logger,
    ):
        """Creates an :class:`AuthorizationOrchestrator` instance.

        :param channel: The channel bound to the account key.
        :param transport: The transport used for unsigned requests.
        :param solver: Provisions and removes the challenge responses.
        :param challenge_type: The type of challenge to answer.
        :param poll_interval: The delay in seconds between polling attempts.
        :param timeout: The time in seconds a single domain may take to be authorized,
            *None* to wait indefinitely.
        :param logger: The logger to report to.
        """
        self._channel = channel
        self._transport = transport
        self._solver = solver
        self._challenge_type = ChallengeType(challenge_type)
        self._poll_interval = poll_interval
        self._timeout = timeout
        self._log = logger

    async def authorize(self, domain: str, new_authz_url: str) -> AuthorizationResult:
        """Authorizes the account key for the given domain.

        The solver's cleanup is run exactly once after provisioning was started, regardless of the outcome.

        :param domain: The domain to authorize.
        :param new_authz_url: The CA's *new-authz* URL.
        :raises:

            * :class:`~acmecore.client.exceptions.UnsupportedChallenge` If the CA did not offer the configured
              challenge type.
            * :class:`~acmecore.client.exceptions.AuthorizationInvalid` If the CA could not validate the challenge.
            * :class:`~acmecore.client.exceptions.UnexpectedAuthorizationState` If the authorization ended up
              in an unknown state.
            * :class:`~acmecore.client.exceptions.AuthorizationTimeout` If the authorization did not complete in time.

        :return: The valid authorization's URL and the certificate submission URL.
        """
        resp = await self._channel.post(new_authz_url, NewAuthorization.for_domain(domain))
        state, next_cert_url = self._ready_to_validate(domain, resp)

        loop = asyncio.get_running_loop()
        deadline = None if self._timeout is None else loop.time() + self._timeout

        try:
            await self._with_deadline(
                self._solver.set_challenge(
                    domain, state.challenge.token, state.key_authorization
                ),
                deadline,
                domain,
            )
            authorization, body = await self._with_deadline(
                self._validate(state), deadline, domain
            )
        finally:
            await self._remove_challenge(state)

        state.status = authorization.state
        if state.status == AuthorizationStatus.VALID:
            self._log.info("Validated domain: %s", domain)
            return AuthorizationResult(domain, state.authorization_url, next_cert_url)

        if state.status == AuthorizationStatus.INVALID:
            raise AuthorizationInvalid(
                authorization, self._challenges_state(authorization, body)
            )

        raise UnexpectedAuthorizationState(authorization)

    def _ready_to_validate(
        self, domain: str, resp: Response
    ) -> typing.Tuple[AuthorizationState, str]:
        authorization, _ = self._parse_authorization(resp)

        links = resp.links
        if "next" not in links:
            raise MissingLinkRelation(
                "next", "CA failed to return url for fetching new certificate"
            )

        if not (authorization_url := resp.location):
            raise ProtocolViolation("CA failed to return the authorization url")

        challenges = authorization.challenges_of_type(self._challenge_type.value)
        if not challenges:
            raise UnsupportedChallenge(self._challenge_type.value)

        challenge = challenges[0]
        return (
            AuthorizationState(
                domain=domain,
                authorization_url=authorization_url,
                challenge=challenge,
                key_authorization=self._channel.key_pair.key_authorization(
                    challenge.token
                ),
            ),
            links["next"],
        )

    async def _validate(
        self, state: AuthorizationState
    ) -> typing.Tuple[Authorization, dict]:
        resp = await self._channel.post(
            state.challenge.uri,
            ChallengeResponse(key_authorization=state.key_authorization),
        )
        authorization, body = self._parse_authorization(resp)

        while authorization.state == AuthorizationStatus.PENDING:
            await asyncio.sleep(self._poll_interval)
            self._log.debug("Polling authorization %s", state.authorization_url)
            resp = await self._transport.get(state.authorization_url)
            authorization, body = self._parse_authorization(resp)

        return authorization, body

    async def _remove_challenge(self, state: AuthorizationState) -> None:
        try:
            await self._solver.remove_challenge(state.domain, state.challenge.token)
        except Exception:
            self._log.warning(
                "Removing the challenge for %s failed", state.domain, exc_info=True
            )

    async def _with_deadline(self, coro, deadline: typing.Optional[float], domain: str):
        if deadline is None:
            return await coro

        loop = asyncio.get_running_loop()
        try:
            return await asyncio.wait_for(coro, max(deadline - loop.time(), 0))
        except asyncio.TimeoutError:
            # the awaited call may time out on its own, e.g. a solver's socket
            if loop.time() < deadline:
                raise
            raise AuthorizationTimeout(domain, self._timeout)

    @staticmethod
    def _parse_authorization(resp: Response) -> typing.Tuple[Authorization, dict]:
        body = parse_body(resp)
        if not isinstance(body, dict):
            raise ProtocolViolation(f"Expected a JSON object from {resp.url}")

        try:
            return Authorization.from_json(body), body
        except josepy.errors.DeserializationError as e:
            raise ProtocolViolation(f"Malformed authorization from {resp.url}: {e}") from e

    @staticmethod
    def _challenges_state(authorization: Authorization, body: dict) -> str:
        challenges_state = "\n".join(
            f" - {challenge.uri} [{challenge.status}]"
            for challenge in authorization.challenges
        )
        return (
            (challenges_state + "\n" if challenges_state else "")
            + json.dumps(body, indent=2)
        )
