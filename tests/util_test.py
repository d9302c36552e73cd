import base64

import josepy
import pytest
from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.x509 import NameOID

from acmecore.models import KeyPair, KeyRole
from acmecore.util import (
    cert_to_der,
    cert_to_pem,
    generate_csr,
    generate_ec_key,
    generate_rsa_key,
    parse_link,
    to_standard_b64,
)


@pytest.mark.parametrize(
    "value, expected",
    [
        ('<https://ca/acme/new-cert>;rel="next"', {"next": "https://ca/acme/new-cert"}),
        (
            '<https://ca/acme/new-authz>;rel="next", <https://ca/terms>;rel="terms-of-service"',
            {"next": "https://ca/acme/new-authz", "terms-of-service": "https://ca/terms"},
        ),
        ('<https://ca/issuer> ; rel = "up"', {"up": "https://ca/issuer"}),
        ('<https://ca/a>;rel="up", <https://ca/b>;rel="up"', {"up": "https://ca/b"}),
        ('<https://ca/a>;title="no relation"', {}),
        ("<https://ca/a>", {}),
        ("", {}),
        (None, {}),
        (42, {}),
        (["<https://ca/a>;rel=\"next\""], {}),
    ],
)
def test_parse_link(value, expected):
    assert parse_link(value) == expected


def test_to_standard_b64():
    data = bytes([0xFB, 0xFF, 0xBF, 0x00])
    assert to_standard_b64(josepy.encode_b64jose(data)) == base64.b64encode(data).decode()


@pytest.mark.parametrize("length", [1, 2, 3, 48, 49, 300])
def test_cert_to_pem(length):
    der = bytes(i % 256 for i in range(length))
    pem = cert_to_pem(der)

    assert pem.startswith("-----BEGIN CERTIFICATE-----\r\n")
    assert pem.endswith("\r\n-----END CERTIFICATE-----\r\n")

    body = pem.split("\r\n")[1:-2]
    assert all(len(line) == 64 for line in body[:-1])
    assert 0 < len(body[-1]) <= 64
    assert base64.b64decode("".join(body)) == der

    # URL-safe unpadded input yields the same block
    assert cert_to_pem(josepy.encode_b64jose(der)) == pem


def test_cert_to_der(self_signed):
    der = self_signed.public_bytes(serialization.Encoding.DER)
    pem = self_signed.public_bytes(serialization.Encoding.PEM)

    assert cert_to_der(self_signed) == der
    assert cert_to_der(pem) == der
    assert cert_to_der(pem.decode()) == der
    assert cert_to_der(der) == der
    assert cert_to_der(cert_to_pem(der)) == der


def test_generate_csr(domain_key):
    csr = x509.load_der_x509_csr(
        generate_csr(domain_key.private_key, ["example.org", "www.example.org"])
    )

    assert csr.is_signature_valid
    assert csr.subject.get_attributes_for_oid(NameOID.COMMON_NAME)[0].value == "example.org"
    san = csr.extensions.get_extension_for_class(x509.SubjectAlternativeName)
    assert san.value.get_values_for_type(x509.DNSName) == ["example.org", "www.example.org"]


def test_generate_csr_long_name(domain_key):
    long_name = "a" * 63 + ".example.org"
    csr = x509.load_der_x509_csr(
        generate_csr(domain_key.private_key, [long_name, "example.org"])
    )

    assert csr.is_signature_valid
    assert len(csr.subject) == 0
    san = csr.extensions.get_extension_for_class(x509.SubjectAlternativeName)
    assert san.value.get_values_for_type(x509.DNSName) == [long_name, "example.org"]


def test_generate_keys(tmp_path):
    rsa_key = generate_rsa_key(tmp_path / "rsa.key")
    ec_key = generate_ec_key(tmp_path / "ec.key", 384)

    assert rsa_key.key_size == 2048
    assert ec_key.curve.key_size == 384
    assert (tmp_path / "rsa.key").stat().st_mode & 0o777 == 0o600
    assert KeyPair.load(tmp_path / "ec.key").alg == josepy.jwa.ES384


def test_key_pair_load(tmp_path, account_key):
    pem = account_key.private_key_pem()
    (tmp_path / "account.key").write_text(pem)
    der = account_key.private_key.private_bytes(
        serialization.Encoding.DER,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    )

    for source in (
        pem,
        pem.encode(),
        der,
        tmp_path / "account.key",
        account_key.private_key,
        account_key.jwk,
        account_key,
    ):
        key_pair = KeyPair.load(source)
        assert key_pair.thumbprint() == account_key.thumbprint()
        assert key_pair.alg == josepy.jwa.ES256

    assert KeyPair.load(account_key, KeyRole.DOMAIN).role == KeyRole.DOMAIN


def test_key_pair_load_invalid():
    with pytest.raises(ValueError, match="Failed to parse private key"):
        KeyPair.load("not a key")

    with pytest.raises(ValueError, match="Failed to parse private key"):
        KeyPair.load(b"\x00\x01\x02")


def test_key_authorization(account_key):
    thumbprint = josepy.encode_b64jose(account_key.jwk.thumbprint())

    assert account_key.thumbprint() == thumbprint
    assert account_key.key_authorization("token") == f"token.{thumbprint}"
