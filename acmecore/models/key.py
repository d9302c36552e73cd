import enum
import typing
from dataclasses import dataclass
from pathlib import Path

import josepy
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa, ec


class KeyRole(str, enum.Enum):
    # subclassing str simplifies json serialization using json.dumps
    ACCOUNT = "account"
    DOMAIN = "domain"


KeyPairInput = typing.Union[
    str,
    bytes,
    Path,
    rsa.RSAPrivateKey,
    ec.EllipticCurvePrivateKey,
    josepy.jwk.JWK,
    "KeyPair",
]
"""The key representations accepted at the client's boundary.

Strings and bytes are parsed as PEM (or DER for bytes), paths are read from disk.
"""

EC_ALGORITHMS = {
    256: josepy.jwa.ES256,
    384: josepy.jwa.ES384,
    521: josepy.jwa.ES512,
}


@dataclass(frozen=True)
class KeyPair:
    """An asymmetric key pair tagged with the role it plays in the protocol.

    Instances are never mutated; components only borrow them for signing and CSR generation.
    """

    private_key: typing.Union[rsa.RSAPrivateKey, ec.EllipticCurvePrivateKey]
    """The underlying :mod:`cryptography` private key."""
    jwk: josepy.jwk.JWK
    """The JSON web key wrapping :attr:`private_key`."""
    alg: josepy.jwa.JWASignature
    """The JWS signature algorithm matching the key type and size."""
    role: KeyRole = KeyRole.ACCOUNT

    @classmethod
    def load(cls, source: KeyPairInput, role: KeyRole = KeyRole.ACCOUNT) -> "KeyPair":
        """Normalizes any supported key representation to a :class:`KeyPair`.

        :param source: The key as PEM string, PEM or DER bytes, path to a PEM file,
            :mod:`cryptography` private key, :class:`josepy.jwk.JWK` or :class:`KeyPair`.
        :param role: The role of the key.
        :raises: :class:`ValueError` If the key cannot be parsed or is of an unsupported type.
        :return: The key pair.
        """
        if isinstance(source, KeyPair):
            return source if source.role == role else cls.from_private_key(source.private_key, role)

        try:
            if isinstance(source, josepy.jwk.JWK):
                private_key = source.key._wrapped
            elif isinstance(source, (rsa.RSAPrivateKey, ec.EllipticCurvePrivateKey)):
                private_key = source
            else:
                if isinstance(source, Path):
                    source = source.read_bytes()
                elif isinstance(source, str):
                    source = source.encode()

                if b"-----BEGIN" in source:
                    private_key = serialization.load_pem_private_key(source, password=None)
                else:
                    private_key = serialization.load_der_private_key(source, password=None)
        except (ValueError, TypeError, AttributeError) as e:
            raise ValueError(f"Failed to parse private key. {e}") from e

        return cls.from_private_key(private_key, role)

    @classmethod
    def from_private_key(cls, private_key, role: KeyRole = KeyRole.ACCOUNT) -> "KeyPair":
        if isinstance(private_key, rsa.RSAPrivateKey):
            return cls(private_key, josepy.jwk.JWKRSA(key=private_key), josepy.jwa.RS256, role)
        elif isinstance(private_key, ec.EllipticCurvePrivateKey):
            try:
                alg = EC_ALGORITHMS[private_key.curve.key_size]
            except KeyError:
                raise ValueError(
                    f"Failed to parse private key. Unsupported curve {private_key.curve.name}"
                )
            return cls(private_key, josepy.jwk.JWKEC(key=private_key), alg, role)

        raise ValueError(
            f"Failed to parse private key. Unsupported key type {type(private_key).__name__}"
        )

    def thumbprint(self) -> str:
        """The base64url encoded SHA-256 JWK thumbprint of the public key.

        `RFC 7638 <https://tools.ietf.org/html/rfc7638>`_
        """
        return josepy.encode_b64jose(self.jwk.thumbprint())

    def key_authorization(self, token: str) -> str:
        return f"{token}.{self.thumbprint()}"

    def private_key_pem(self) -> str:
        return self.private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.TraditionalOpenSSL,
            encryption_algorithm=serialization.NoEncryption(),
        ).decode()
