"""This module contains an http-01 challenge solver that writes the key authorization into a web server's
document root.
"""

import logging
import typing
from pathlib import Path

from acmecore.client.challenge_solver import ChallengeSolver
from acmecore.models import ChallengeType
from acmecore.models.challenge import DEFAULT_CHALLENGE_PREFIX
from acmecore.plugin_base import PluginRegistry

logger = logging.getLogger(__name__)


@PluginRegistry.register_plugin("webroot")
class WebrootSolver(ChallengeSolver):
    """Serves http-01 challenges from a directory that a web server exposes for the domain."""

    SUPPORTED_CHALLENGES = frozenset([ChallengeType.HTTP_01])

    class Config(ChallengeSolver.Config):
        type: typing.Literal["webroot"] = "webroot"
        webroot: Path
        """The document root of the web server."""
        challenge_prefix: str = DEFAULT_CHALLENGE_PREFIX
        """The path below the document root the CA requests the token from."""

    def __init__(self, cfg: Config):
        super().__init__(cfg)
        self.challenge_directory = cfg.webroot / cfg.challenge_prefix.strip("/")

    def _path_of(self, token: str) -> Path:
        if "/" in token or token in (".", ".."):
            raise ValueError(f"Refusing to use token {token!r} as a file name")
        return self.challenge_directory / token

    async def set_challenge(self, domain: str, token: str, key_authorization: str) -> None:
        path = self._path_of(token)
        logger.debug("Writing challenge for %s to %s", domain, path)

        self.challenge_directory.mkdir(parents=True, exist_ok=True)
        path.write_text(key_authorization)

    async def remove_challenge(self, domain: str, token: str) -> None:
        path = self._path_of(token)
        logger.debug("Removing challenge for %s at %s", domain, path)

        path.unlink(missing_ok=True)
