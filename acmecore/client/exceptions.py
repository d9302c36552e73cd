import typing

import acme.messages


class AcmeClientException(Exception):
    """General ACME client exception."""

    pass


class TransportError(AcmeClientException):
    """Raised if the CA could not be reached or the connection failed."""

    def __init__(self, url: str, *args):
        super().__init__(*args)
        self.url = url


class ProtocolViolation(AcmeClientException):
    """Raised if a CA response lacks a header or field the protocol requires."""

    pass


class MissingLinkRelation(ProtocolViolation):
    """Raised if a CA response does not link to an expected follow-up resource."""

    def __init__(self, relation: str, *args):
        super().__init__(*args)
        self.relation = relation


class MissingIssuerLink(MissingLinkRelation):
    """Raised if the issued certificate does not link to its issuer certificate."""

    def __init__(self, *args):
        super().__init__("up", *args)


class AcmeServerError(AcmeClientException):
    """Raised if the CA answered with an unsuccessful status code."""

    def __init__(
        self,
        status: int,
        url: str,
        problem: typing.Optional[acme.messages.Error] = None,
        *args,
    ):
        super().__init__(*args)
        self.status = status
        self.url = url
        self.problem = problem
        """The problem document the CA sent along, if it could be parsed."""

    @property
    def detail(self) -> typing.Optional[str]:
        return self.problem.detail if self.problem else None

    def __str__(self):
        msg = f"Request failed with status code: {self.status} ({self.url})"
        if self.problem:
            msg += f": {self.problem}"
        return msg


class NonceUnavailable(AcmeClientException):
    """Raised if the CA did not hand out a replay nonce."""

    pass


class UnsupportedChallenge(AcmeClientException):
    """Raised if the CA did not offer a challenge of the configured type."""

    def __init__(self, challenge_type: str, *args):
        super().__init__(*args)
        self.challenge_type = challenge_type

    def __str__(self):
        return f"Server didn't offer any challenge we can handle: {self.challenge_type}"


class AuthorizationInvalid(AcmeClientException):
    """Raised if the CA was unable to validate the provisioned challenge."""

    def __init__(self, authorization, detail: str, *args):
        super().__init__(*args)
        self.authorization = authorization
        """The :class:`~acmecore.models.messages.Authorization` the CA declared invalid."""
        self.detail = detail
        """The status of each challenge followed by the response the CA sent, as it was received."""

    def __str__(self):
        return f"The CA was unable to validate the challenge you provisioned.\n{self.detail}"


class UnexpectedAuthorizationState(AcmeClientException):
    """Raised if the CA returned an authorization in a state the client cannot handle."""

    def __init__(self, authorization, *args):
        super().__init__(*args)
        self.authorization = authorization

    def __str__(self):
        return (
            "CA returned an authorization in an unexpected state: "
            f"{self.authorization.json_dumps(indent=2)}"
        )


class AuthorizationTimeout(AcmeClientException):
    """Raised if an authorization did not reach a final state in time."""

    def __init__(self, domain: str, timeout: float, *args):
        super().__init__(*args)
        self.domain = domain
        self.timeout = timeout

    def __str__(self):
        return f"Authorization of {self.domain} did not complete within {self.timeout} seconds"


class TermsNotAccepted(AcmeClientException):
    """Raised if the caller declined the CA's terms of service."""

    def __init__(self, terms_url: str, *args):
        super().__init__(*args)
        self.terms_url = terms_url

    def __str__(self):
        return f"You must agree to the 'Terms of Use' at: {self.terms_url}"


class TermsFetchFailed(AcmeClientException):
    """Raised if the terms of service document could not be fetched."""

    pass


class TermsAcknowledgementFailed(AcmeClientException):
    """Raised if the CA rejected the agreement to its terms of service."""

    pass


class CertificateMismatch(AcmeClientException):
    """Raised if the certificate fetched for confirmation differs from the issued one."""

    def __init__(self, url: str, *args):
        super().__init__(*args)
        self.url = url

    def __str__(self):
        return f"Fetched certificate did not match: {self.url}"


class RevocationFailed(AcmeServerError):
    """Raised if the CA refused to revoke a certificate."""

    pass
