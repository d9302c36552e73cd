import datetime

import pytest
import pytest_asyncio
from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.x509 import NameOID

from acmecore.client import AcmeClient
from acmecore.client.transport import HttpTransport
from acmecore.models import KeyPair, KeyRole
from .services import FakeCA, RecordingSolver


@pytest.fixture(scope="session")
def account_key() -> KeyPair:
    return KeyPair.from_private_key(ec.generate_private_key(ec.SECP256R1()))


@pytest.fixture(scope="session")
def domain_key() -> KeyPair:
    return KeyPair.from_private_key(
        rsa.generate_private_key(public_exponent=65537, key_size=2048), KeyRole.DOMAIN
    )


@pytest.fixture(scope="session")
def self_signed(domain_key) -> x509.Certificate:
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "example.org")])
    now = datetime.datetime.now(datetime.timezone.utc)
    return (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(domain_key.private_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now)
        .not_valid_after(now + datetime.timedelta(days=1))
        .sign(domain_key.private_key, hashes.SHA256())
    )


@pytest_asyncio.fixture
async def ca(unused_tcp_port_factory):
    s = FakeCA("127.0.0.1", unused_tcp_port_factory())
    await s.run()
    yield s
    await s.stop()


@pytest_asyncio.fixture
async def transport():
    async with HttpTransport(timeout=5.0) as t:
        yield t


@pytest_asyncio.fixture
async def client(ca):
    cfg = AcmeClient.Config(
        directory=ca.directory,
        email="admin@example.org",
        poll_interval=0.01,
        authorization_timeout=5.0,
        request_timeout=5.0,
    )
    async with AcmeClient(cfg) as c:
        yield c


@pytest.fixture
def solver():
    return RecordingSolver()
