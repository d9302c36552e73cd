import enum
import typing
from dataclasses import dataclass

if typing.TYPE_CHECKING:
    from acmecore.models.messages import ChallengeBody


class AuthorizationStatus(str, enum.Enum):
    # subclassing str simplifies json serialization using json.dumps
    PENDING = "pending"
    VALID = "valid"
    INVALID = "invalid"
    UNEXPECTED = "unexpected"
    """Any status the client does not know how to handle."""

    @classmethod
    def _missing_(cls, value):
        return cls.UNEXPECTED


@dataclass
class AuthorizationState:
    """Tracks the authorization of a single domain while its challenge is being answered."""

    domain: str
    authorization_url: str
    challenge: "ChallengeBody"
    key_authorization: str
    status: AuthorizationStatus = AuthorizationStatus.PENDING


@dataclass(frozen=True)
class AuthorizationResult:
    """The outcome of a successful domain authorization."""

    domain: str
    authorization_url: str
    """The URL of the now valid authorization."""
    next_cert_url: str
    """The certificate submission URL the CA linked to from the new authorization."""
