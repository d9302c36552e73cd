import pytest
from cryptography import x509

from acmecore.client import (
    AuthorizationInvalid,
    AuthorizationTimeout,
    CertificateMismatch,
    MissingIssuerLink,
    UnexpectedAuthorizationState,
    UnsupportedChallenge,
)
from acmecore.models import AuthorizationResult, IssuanceState
from acmecore.plugins.webroot_solver import WebrootSolver
from acmecore.util import cert_to_pem
from .services import ISSUER_CERT, LEAF_CERT, RecordingSolver

DOMAINS = ["example.org", "www.example.org"]


@pytest.mark.asyncio
async def test_issue(ca, client, solver, account_key, domain_key):
    issued = await client.certificate_get(DOMAINS, domain_key, solver, account_key=account_key)

    assert issued.cert == cert_to_pem(LEAF_CERT)
    assert issued.chain == issued.ca == cert_to_pem(ISSUER_CERT)
    assert issued.privkey == issued.key == domain_key.private_key_pem()

    assert ca.paths_posted() == [
        "/acme/new-authz",
        "/acme/challenge/1/http-01",
        "/acme/new-authz",
        "/acme/challenge/2/http-01",
        "/acme/new-cert",
    ]
    assert [p["identifier"]["value"] for p in ca.payloads_for("/acme/new-authz")] == DOMAINS

    (new_cert,) = ca.payloads_for("/acme/new-cert")
    assert new_cert["resource"] == "new-cert"
    assert new_cert["authorizations"] == [ca.url("/acme/authz/1"), ca.url("/acme/authz/2")]

    (csr,) = ca.csrs
    san = csr.extensions.get_extension_for_class(x509.SubjectAlternativeName)
    assert san.value.get_values_for_type(x509.DNSName) == DOMAINS
    assert csr.public_key().public_numbers() == domain_key.private_key.public_key().public_numbers()

    for id_, authz in ca.authorizations.items():
        assert authz["key_authorization"] == account_key.key_authorization(authz["token"])

    assert solver.set_calls == DOMAINS
    assert solver.remove_calls == DOMAINS
    assert solver.provisioned == {}


@pytest.mark.asyncio
async def test_issue_polls_pending(ca, client, solver, account_key, domain_key):
    ca.authz_statuses["example.org"] = ["pending", "pending", "valid"]

    await client.certificate_get(["example.org"], domain_key, solver, account_key=account_key)

    assert ca.polls[1] == 3
    assert solver.remove_calls == ["example.org"]


@pytest.mark.asyncio
async def test_issue_challenge_type(ca, client, solver, account_key, domain_key):
    await client.certificate_get(
        ["example.org"], domain_key, solver, account_key=account_key, challenge_type="dns-01"
    )

    assert "/acme/challenge/1/dns-01" in ca.paths_posted()


@pytest.mark.asyncio
async def test_issue_long_domain(ca, client, solver, account_key, domain_key):
    domain = "a" * 63 + ".example.org"

    issued = await client.certificate_get([domain], domain_key, solver, account_key=account_key)

    assert issued.cert == cert_to_pem(LEAF_CERT)
    (csr,) = ca.csrs
    assert len(csr.subject) == 0
    san = csr.extensions.get_extension_for_class(x509.SubjectAlternativeName)
    assert san.value.get_values_for_type(x509.DNSName) == [domain]


@pytest.mark.asyncio
async def test_issue_valid_without_polling(ca, client, solver, account_key, domain_key):
    ca.challenge_status = "valid"

    issued = await client.certificate_get(["example.org"], domain_key, solver, account_key=account_key)

    assert issued.cert == cert_to_pem(LEAF_CERT)
    assert ca.polls[1] == 0
    assert solver.remove_calls == ["example.org"]


@pytest.mark.asyncio
async def test_issue_challenge_invalid(ca, client, solver, account_key, domain_key):
    ca.challenge_status = "invalid"
    ca.challenge_error = {
        "type": "urn:acme:error:unauthorized",
        "detail": "Invalid response from http://example.org/.well-known/acme-challenge/x: 404",
    }

    with pytest.raises(AuthorizationInvalid) as e:
        await client.certificate_get(["example.org"], domain_key, solver, account_key=account_key)

    assert "Invalid response from http://example.org/.well-known/acme-challenge/x: 404" in str(e.value)
    assert "urn:acme:error:unauthorized" in str(e.value)
    assert "validationRecord" in str(e.value)
    assert ca.polls[1] == 0
    assert solver.remove_calls == ["example.org"]


@pytest.mark.asyncio
async def test_issue_invalid(ca, client, solver, account_key, domain_key):
    ca.authz_statuses["www.example.org"] = ["invalid"]

    with pytest.raises(AuthorizationInvalid) as e:
        await client.certificate_get(DOMAINS, domain_key, solver, account_key=account_key)

    assert f" - {ca.url('/acme/challenge/2/http-01')} [invalid]" in str(e.value)
    assert e.value.authorization.identifier.value == "www.example.org"
    assert solver.remove_calls == DOMAINS
    assert "/acme/new-cert" not in ca.paths_posted()


@pytest.mark.asyncio
async def test_issue_unexpected_state(ca, client, solver, account_key, domain_key):
    ca.authz_statuses["example.org"] = ["revoked"]

    with pytest.raises(UnexpectedAuthorizationState) as e:
        await client.certificate_get(["example.org"], domain_key, solver, account_key=account_key)

    assert e.value.authorization.status == "revoked"
    assert solver.remove_calls == ["example.org"]


@pytest.mark.asyncio
async def test_issue_timeout(ca, client, solver, account_key, domain_key):
    ca.authz_statuses["example.org"] = ["pending"]
    client.config.authorization_timeout = 0.2

    with pytest.raises(AuthorizationTimeout) as e:
        await client.certificate_get(["example.org"], domain_key, solver, account_key=account_key)

    assert e.value.domain == "example.org"
    assert solver.remove_calls == ["example.org"]


@pytest.mark.asyncio
async def test_issue_unsupported_challenge(ca, client, solver, account_key, domain_key):
    ca.challenge_types = ["dns-01"]

    with pytest.raises(UnsupportedChallenge) as e:
        await client.certificate_get(["example.org"], domain_key, solver, account_key=account_key)

    assert e.value.challenge_type == "http-01"
    assert solver.set_calls == []


@pytest.mark.asyncio
async def test_issue_set_challenge_fails(ca, client, account_key, domain_key):
    solver = RecordingSolver(fail_on_set=True)

    with pytest.raises(RuntimeError, match="could not provision example.org"):
        await client.certificate_get(DOMAINS, domain_key, solver, account_key=account_key)

    assert solver.remove_calls == ["example.org"]
    assert ca.paths_posted() == ["/acme/new-authz"]


@pytest.mark.asyncio
async def test_issue_solver_timeout_is_not_authorization_timeout(ca, client, account_key, domain_key):
    solver = RecordingSolver(fail_on_set=True, set_error=TimeoutError)

    with pytest.raises(TimeoutError, match="could not provision example.org") as e:
        await client.certificate_get(["example.org"], domain_key, solver, account_key=account_key)

    assert not isinstance(e.value, AuthorizationTimeout)
    assert solver.remove_calls == ["example.org"]


@pytest.mark.asyncio
async def test_issue_remove_challenge_fails(ca, client, account_key, domain_key, caplog):
    solver = RecordingSolver(fail_on_remove=True)

    issued = await client.certificate_get(["example.org"], domain_key, solver, account_key=account_key)

    assert issued.cert == cert_to_pem(LEAF_CERT)
    assert "Removing the challenge for example.org failed" in caplog.text


@pytest.mark.asyncio
async def test_issue_certificate_mismatch(ca, client, solver, account_key, domain_key):
    ca.mismatch = True

    with pytest.raises(CertificateMismatch) as e:
        await client.certificate_get(["example.org"], domain_key, solver, account_key=account_key)

    assert e.value.url == ca.url("/acme/cert/1")


@pytest.mark.asyncio
async def test_issue_missing_issuer_link(ca, client, solver, account_key, domain_key):
    ca.omit_links = {"up"}

    with pytest.raises(MissingIssuerLink) as e:
        await client.certificate_get(["example.org"], domain_key, solver, account_key=account_key)

    assert e.value.relation == "up"


@pytest.mark.asyncio
async def test_issue_invalid_arguments(ca, client, solver, account_key, domain_key, tmp_path):
    with pytest.raises(ValueError, match="Must provide at least one domain"):
        await client.certificate_get([], domain_key, solver, account_key=account_key)

    with pytest.raises(ValueError, match="Unsupported challenge type"):
        await client.certificate_get(
            ["example.org"], domain_key, solver, account_key=account_key, challenge_type="tls-alpn-01"
        )

    with pytest.raises(ValueError, match="WebrootSolver cannot answer dns-01 challenges"):
        await client.certificate_get(
            ["example.org"],
            domain_key,
            WebrootSolver(WebrootSolver.Config(webroot=tmp_path)),
            account_key=account_key,
            challenge_type="dns-01",
        )

    assert ca.requests == []


def test_issuance_state():
    state = IssuanceState.start(DOMAINS, "https://ca/acme/new-cert")

    domain, state = state.next_domain()
    assert domain == "example.org"
    assert state.remaining_domains == ("www.example.org",)

    authorized = state.authorized(
        AuthorizationResult(domain, "https://ca/acme/authz/1", "https://ca/acme/new-cert/1")
    )
    assert authorized.validated_domains == ("example.org",)
    assert authorized.valid_authorization_urls == ("https://ca/acme/authz/1",)
    assert authorized.new_cert_url == "https://ca/acme/new-cert/1"
    # earlier states are left untouched
    assert state.validated_domains == ()
