"""Message types exchanged with an ACME CA.

Request payloads carry the *resource* field that tells the CA which kind of resource is requested.
"""

import typing

import josepy

from acmecore.models.authorization import AuthorizationStatus


class Identifier(josepy.JSONObjectWithFields):
    """The identifier an authorization is requested for."""

    typ: str = josepy.Field("type", default="dns")
    value: str = josepy.Field("value")


class NewRegistration(josepy.JSONObjectWithFields):
    """Message type for account registration requests."""

    resource: str = josepy.Field("resource", default="new-reg")
    contact: typing.Tuple[str, ...] = josepy.Field("contact", omitempty=True, default=())

    @classmethod
    def from_email(cls, email: str) -> "NewRegistration":
        return cls(contact=(f"mailto:{email}",))


class RegistrationAgreement(josepy.JSONObjectWithFields):
    """Message type that acknowledges the CA's terms of service."""

    resource: str = josepy.Field("resource", default="reg")
    agreement: str = josepy.Field("agreement")
    """The URL of the agreed-to terms of service."""


class NewAuthorization(josepy.JSONObjectWithFields):
    """Message type for new authorization requests."""

    resource: str = josepy.Field("resource", default="new-authz")
    identifier: Identifier = josepy.Field("identifier", decoder=Identifier.from_json)

    @classmethod
    def for_domain(cls, domain: str) -> "NewAuthorization":
        return cls(identifier=Identifier(typ="dns", value=domain))


class ChallengeResponse(josepy.JSONObjectWithFields):
    """Message type that tells the CA a challenge is ready to be validated."""

    resource: str = josepy.Field("resource", default="challenge")
    key_authorization: str = josepy.Field("keyAuthorization")


class NewCertificate(josepy.JSONObjectWithFields):
    """Message type for certificate requests."""

    resource: str = josepy.Field("resource", default="new-cert")
    csr: bytes = josepy.Field(
        "csr", encoder=josepy.encode_b64jose, decoder=josepy.decode_b64jose
    )
    """The DER encoded certificate signing request."""
    authorizations: typing.Tuple[str, ...] = josepy.Field("authorizations", default=())
    """The URLs of the valid authorizations, in the order the domains were validated."""


class Revocation(josepy.JSONObjectWithFields):
    """Message type for certificate revocation requests."""

    resource: str = josepy.Field("resource", default="revoke-cert")
    certificate: bytes = josepy.Field(
        "certificate", encoder=josepy.encode_b64jose, decoder=josepy.decode_b64jose
    )
    """The DER encoded certificate to be revoked."""


class ChallengeBody(josepy.JSONObjectWithFields):
    """A challenge as offered by the CA inside an authorization."""

    typ: str = josepy.Field("type")
    token: str = josepy.Field("token", omitempty=True)
    uri: str = josepy.Field("uri", omitempty=True)
    status: str = josepy.Field("status", omitempty=True)
    error: typing.Mapping = josepy.Field("error", omitempty=True)


def _decode_challenges(value):
    return tuple(ChallengeBody.from_json(challenge) for challenge in value)


class Authorization(josepy.JSONObjectWithFields):
    """The CA's authorization resource, also returned when a challenge is posted."""

    identifier: Identifier = josepy.Field(
        "identifier", decoder=Identifier.from_json, omitempty=True
    )
    status: str = josepy.Field("status", omitempty=True)
    challenges: typing.Tuple[ChallengeBody, ...] = josepy.Field(
        "challenges", decoder=_decode_challenges, omitempty=True, default=()
    )
    expires: str = josepy.Field("expires", omitempty=True)

    @property
    def state(self) -> AuthorizationStatus:
        return AuthorizationStatus(self.status)

    def challenges_of_type(self, typ: str) -> typing.List[ChallengeBody]:
        return [challenge for challenge in self.challenges if challenge.typ == typ]
