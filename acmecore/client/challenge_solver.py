import abc
import inspect
import logging
import typing

from pydantic_settings import BaseSettings

from acmecore.models import ChallengeType
from acmecore.plugin_base import PluginRegistry

logger = logging.getLogger(__name__)


class ChallengeSolver(abc.ABC):
    """An abstract base class for challenge solvers.

    A challenge solver provisions the resource the CA checks during validation, e.g. an HTTP
    token file or a DNS record, and removes it again afterwards.
    All challenge solver implementations must implement the methods :meth:`set_challenge` and
    :meth:`remove_challenge`.
    Implementations that should be available from config files must also be registered with the plugin
    registry via :meth:`~acmecore.plugin_base.PluginRegistry.register_plugin`.
    """

    SUPPORTED_CHALLENGES: typing.Iterable[ChallengeType]
    """The types of challenges that the challenge solver implementation supports."""

    class Config(BaseSettings, extra="forbid"):
        type: typing.Literal["none"] = "none"

    def __init__(self, cfg: Config = None):
        pass

    def supports(self, challenge_type: typing.Union[ChallengeType, str]) -> bool:
        return ChallengeType(challenge_type) in self.SUPPORTED_CHALLENGES

    @abc.abstractmethod
    async def set_challenge(self, domain: str, token: str, key_authorization: str):
        """Provisions the response to a challenge.

        This method should not return before the CA is able to check the provisioned resource.

        :param domain: The domain that is being authorized.
        :param token: The challenge's token.
        :param key_authorization: The key authorization to provision.
        :raises: Any exception if provisioning failed, it is passed on to the caller.
        """
        pass

    @abc.abstractmethod
    async def remove_challenge(self, domain: str, token: str):
        """Removes the resource that was provisioned for a challenge.

        Called once the challenge reached a final state, also if provisioning failed.
        This method should not assume that the challenge was successfully provisioned.
        Errors are logged and otherwise ignored.

        :param domain: The domain that was being authorized.
        :param token: The challenge's token.
        """
        pass


@PluginRegistry.register_plugin("dummy")
class DummySolver(ChallengeSolver):
    """Dummy challenge solver that does not actually provision anything."""

    SUPPORTED_CHALLENGES = frozenset(ChallengeType)

    class Config(ChallengeSolver.Config):
        type: typing.Literal["dummy"] = "dummy"

    async def set_challenge(self, domain: str, token: str, key_authorization: str) -> None:
        logger.debug("(not) setting challenge %s for %s: %s", token, domain, key_authorization)

    async def remove_challenge(self, domain: str, token: str) -> None:
        logger.debug("(not) removing challenge %s for %s", token, domain)


class CallbackSolver(ChallengeSolver):
    """Adapts a pair of caller-supplied functions to the :class:`ChallengeSolver` interface.

    The functions may be coroutine functions or plain functions.
    """

    def __init__(
        self,
        set_challenge: typing.Callable[[str, str, str], typing.Any],
        remove_challenge: typing.Callable[[str, str], typing.Any],
        supported_challenges: typing.Iterable[ChallengeType] = frozenset(ChallengeType),
    ):
        super().__init__()
        self._set_challenge = set_challenge
        self._remove_challenge = remove_challenge
        self.SUPPORTED_CHALLENGES = frozenset(
            ChallengeType(typ) for typ in supported_challenges
        )

    async def set_challenge(self, domain: str, token: str, key_authorization: str):
        result = self._set_challenge(domain, token, key_authorization)
        if inspect.isawaitable(result):
            await result

    async def remove_challenge(self, domain: str, token: str):
        result = self._remove_challenge(domain, token)
        if inspect.isawaitable(result):
            await result
