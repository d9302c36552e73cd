import base64
import re
import typing
from pathlib import Path

from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa, ec
from cryptography.x509 import NameOID

KEY_FILE_MODE = 0o600

EC_CURVES = {256: ec.SECP256R1, 384: ec.SECP384R1, 521: ec.SECP521R1}

PEM_LINE_LENGTH = 64

CN_MAX_LENGTH = 64
"""The upper bound RFC 5280 puts on a common name."""

_LINK_PARAM_RE = re.compile(r'(.+?) *= *"(.+)"')


def parse_link(value: typing.Optional[str]) -> typing.Dict[str, str]:
    """Parses the value of a *Link* header into a mapping of relation names to URLs.

    Entries without a *rel* parameter are dropped. If several entries share the same relation,
    the last one wins.
    Malformed input never raises, an empty mapping is returned instead.

    :param value: The header value, e.g. :code:`<https://ca/new-cert>;rel="next"`.
    :return: Mapping from relation name to URL.
    """
    if not isinstance(value, str):
        return {}

    links = {}
    for entry in value.split(","):
        parts = entry.strip().split(";")
        url = parts[0].strip().replace("<", "").replace(">", "")
        params = {}
        for part in parts[1:]:
            if m := _LINK_PARAM_RE.match(part.strip()):
                params[m.group(1)] = m.group(2)

        if "rel" in params:
            links[params["rel"]] = url

    return links


def to_standard_b64(data: str) -> str:
    """Converts (possibly unpadded) URL-safe base64 to the standard alphabet with padding."""
    b64 = data.replace("-", "+").replace("_", "/").replace("=", "")
    return b64 + "=" * (-len(b64) % 4)


def cert_to_pem(cert: typing.Union[bytes, str]) -> str:
    """Wraps a DER encoded certificate into a PEM block.

    The body uses the standard base64 alphabet, is split into lines of 64 characters and
    CRLF line endings are used throughout.

    :param cert: The DER bytes or their (URL-safe or standard) base64 encoding.
    :return: The PEM encoded certificate.
    """
    if isinstance(cert, bytes):
        cert = base64.b64encode(cert).decode()

    b64 = to_standard_b64(cert)
    lines = [b64[i : i + PEM_LINE_LENGTH] for i in range(0, len(b64), PEM_LINE_LENGTH)]
    return (
        "-----BEGIN CERTIFICATE-----\r\n"
        + "\r\n".join(lines)
        + "\r\n-----END CERTIFICATE-----\r\n"
    )


def cert_to_der(
    cert: typing.Union[str, bytes, x509.Certificate],
) -> bytes:
    """Returns the DER encoding of a certificate given as PEM, DER or :class:`cryptography.x509.Certificate`."""
    if isinstance(cert, x509.Certificate):
        return cert.public_bytes(serialization.Encoding.DER)

    if isinstance(cert, str):
        cert = cert.encode()

    if b"-----BEGIN" in cert:
        return x509.load_pem_x509_certificate(cert).public_bytes(
            serialization.Encoding.DER
        )

    return cert


def generate_csr(
    private_key: typing.Union[rsa.RSAPrivateKey, ec.EllipticCurvePrivateKey],
    names: typing.List[str],
    CN: str = None,
) -> bytes:
    """Generates a certificate signing request.

    :param private_key: The private key to sign the CSR with.
    :param names: The requested names in the CSR.
    :param CN: The requested common name, defaults to the first name. Names longer than
        :data:`CN_MAX_LENGTH` cannot be a common name, the subject is left empty instead.
    :return: The DER encoded CSR.
    """
    CN = CN or names[0]
    subject = (
        [x509.NameAttribute(NameOID.COMMON_NAME, CN)]
        if len(CN) <= CN_MAX_LENGTH
        else []
    )

    csr = (
        x509.CertificateSigningRequestBuilder()
        .subject_name(x509.Name(subject))
        .add_extension(
            x509.SubjectAlternativeName([x509.DNSName(name) for name in names]),
            critical=False,
        )
        .sign(private_key, hashes.SHA256())
    )

    return csr.public_bytes(serialization.Encoding.DER)


def save_key(path: Path, private_key) -> None:
    """Stores a private key as unencrypted PEM that only the owner may read."""
    path.touch(KEY_FILE_MODE, exist_ok=True)
    path.chmod(KEY_FILE_MODE)
    path.write_bytes(
        private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.TraditionalOpenSSL,
            encryption_algorithm=serialization.NoEncryption(),
        )
    )


def generate_rsa_key(path: Path, key_size: int = 2048) -> rsa.RSAPrivateKey:
    """Generates an RSA key and stores it at *path*, see :func:`save_key`."""
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=key_size)
    save_key(path, private_key)
    return private_key


def generate_ec_key(path: Path, key_size: int = 256) -> ec.EllipticCurvePrivateKey:
    """Generates an EC key on the NIST curve of the given size and stores it at *path*.

    :param path: Where to store the key.
    :param key_size: One of 256, 384 or 521.
    :raises: :class:`ValueError` If there is no curve of the given size.
    :return: The generated private key.
    """
    if key_size not in EC_CURVES:
        raise ValueError(f"Unsupported EC key size: {key_size}")

    private_key = ec.generate_private_key(EC_CURVES[key_size]())
    save_key(path, private_key)
    return private_key
