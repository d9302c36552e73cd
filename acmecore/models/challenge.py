import enum


class ChallengeType(str, enum.Enum):
    """The challenge types the client knows how to answer.

    Subclassing :class:`str` simplifies json serialization using :func:`json.dumps`.
    """

    HTTP_01 = "http-01"
    """The key authorization is served at :code:`http://<domain>/.well-known/acme-challenge/<token>`."""
    TLS_SNI_01 = "tls-sni-01"
    """The key authorization is presented in a self-signed certificate selected via SNI."""
    DNS_01 = "dns-01"
    """A digest of the key authorization is published in a TXT record at :code:`_acme-challenge.<domain>`."""


DEFAULT_CHALLENGE_PREFIX = "/.well-known/acme-challenge/"
"""The path below which the CA requests http-01 challenge responses."""
