from .authorization import AuthorizationResult, AuthorizationState, AuthorizationStatus
from .certificate import IssuanceState, IssuedCertificate
from .challenge import ChallengeType
from .key import KeyPair, KeyPairInput, KeyRole

__all__ = [
    "AuthorizationResult",
    "AuthorizationState",
    "AuthorizationStatus",
    "ChallengeType",
    "IssuanceState",
    "IssuedCertificate",
    "KeyPair",
    "KeyPairInput",
    "KeyRole",
]
