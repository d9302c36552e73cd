import dataclasses
import typing
from dataclasses import dataclass

from acmecore.models.authorization import AuthorizationResult


@dataclass(frozen=True)
class IssuanceState:
    """Accumulates the results of the domain loop of a single issuance run.

    The state is never mutated in place. Every transition returns a new instance so that
    the validated domains and their authorization URLs always grow together.
    """

    remaining_domains: typing.Tuple[str, ...]
    new_cert_url: str
    validated_domains: typing.Tuple[str, ...] = ()
    valid_authorization_urls: typing.Tuple[str, ...] = ()
    certificate: typing.Optional[bytes] = None
    chain_pem: typing.Optional[str] = None

    @classmethod
    def start(cls, domains: typing.Iterable[str], new_cert_url: str) -> "IssuanceState":
        return cls(remaining_domains=tuple(domains), new_cert_url=new_cert_url)

    def next_domain(self) -> typing.Tuple[str, "IssuanceState"]:
        """Dequeues the next domain to authorize."""
        domain, *rest = self.remaining_domains
        return domain, dataclasses.replace(self, remaining_domains=tuple(rest))

    def authorized(self, result: AuthorizationResult) -> "IssuanceState":
        return dataclasses.replace(
            self,
            validated_domains=self.validated_domains + (result.domain,),
            valid_authorization_urls=self.valid_authorization_urls
            + (result.authorization_url,),
            new_cert_url=result.next_cert_url,
        )

    def issued(self, certificate: bytes, chain_pem: str) -> "IssuanceState":
        return dataclasses.replace(self, certificate=certificate, chain_pem=chain_pem)


@dataclass(frozen=True)
class IssuedCertificate:
    """The PEM encoded result of an issuance run."""

    cert: str
    """The leaf certificate."""
    chain: str
    """The issuer certificate."""
    privkey: str
    """The domain private key."""

    @property
    def key(self) -> str:
        return self.privkey

    @property
    def ca(self) -> str:
        return self.chain
