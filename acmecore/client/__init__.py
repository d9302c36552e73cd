from .client import AcmeClient
from .challenge_solver import CallbackSolver, ChallengeSolver, DummySolver
from .exceptions import (
    AcmeClientException,
    AcmeServerError,
    AuthorizationInvalid,
    AuthorizationTimeout,
    CertificateMismatch,
    MissingIssuerLink,
    MissingLinkRelation,
    NonceUnavailable,
    ProtocolViolation,
    RevocationFailed,
    TermsAcknowledgementFailed,
    TermsFetchFailed,
    TermsNotAccepted,
    TransportError,
    UnexpectedAuthorizationState,
    UnsupportedChallenge,
)

__all__ = [
    "AcmeClient",
    "CallbackSolver",
    "ChallengeSolver",
    "DummySolver",
    "AcmeClientException",
    "AcmeServerError",
    "AuthorizationInvalid",
    "AuthorizationTimeout",
    "CertificateMismatch",
    "MissingIssuerLink",
    "MissingLinkRelation",
    "NonceUnavailable",
    "ProtocolViolation",
    "RevocationFailed",
    "TermsAcknowledgementFailed",
    "TermsFetchFailed",
    "TermsNotAccepted",
    "TransportError",
    "UnexpectedAuthorizationState",
    "UnsupportedChallenge",
]
