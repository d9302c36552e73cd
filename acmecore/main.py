import asyncio
import logging
import logging.config
from pathlib import Path
from typing import Any

import click
import yaml
from pydantic import Field
from pydantic_settings import BaseSettings

from acmecore.client import AcmeClient, ChallengeSolver, DummySolver
from acmecore.models import KeyRole
from acmecore.plugin_base import PluginRegistry
from acmecore.plugins.webroot_solver import WebrootSolver
from acmecore.util import generate_rsa_key, generate_ec_key

logger = logging.getLogger(__name__)

PluginRegistry.load_plugins(r"plugins")
challenge_solver_registry = PluginRegistry.get_registry(ChallengeSolver)


class Config(BaseSettings, extra="forbid"):
    client: AcmeClient.Config = Field(default_factory=AcmeClient.Config)
    challenge_solver: DummySolver.Config | WebrootSolver.Config = Field(
        default_factory=DummySolver.Config, discriminator="type"
    )
    logging: Any = None


def load_config(config_file: str) -> Config:
    with open(config_file) as stream:
        config = yaml.safe_load(stream)

    return Config.model_validate(config or {})


def _setup(config_file: str) -> Config:
    config = load_config(config_file) if config_file else Config()
    if config.logging:
        logging.config.dictConfig(config.logging)
    return config


async def _run(config: Config, action):
    async with AcmeClient(config.client) as client:
        return await action(client)


config_file_option = click.option(
    "--config-file", envvar="APP_CONFIG_FILE", type=click.Path(exists=True)
)


@click.group()
@click.pass_context
def main(ctx):
    pass


@main.command()
def plugins():
    """Lists the available challenge solvers and their respective config strings."""
    mapping = challenge_solver_registry.config_mapping()
    click.echo(
        f"Challenge solvers: {', '.join([f'{cls.__name__} ({config_name})' for config_name, cls in mapping.items()])}"
    )


@main.command()
@click.argument("key-file", type=click.Path())
@click.option(
    "--key-type",
    "-k",
    type=click.Choice(["rsa", "ec"], case_sensitive=False),
    default="rsa",
    show_default=True,
)
@click.option("--key-size", type=click.INT, help="Defaults to 2048 for RSA and 256 for EC keys.")
def generate_key(key_file, key_type, key_size):
    """Generates an account or domain key."""
    click.echo(f"Generating key of type {key_type} at {key_file}.")
    key_file = Path(key_file)
    if key_type == "rsa":
        generate_rsa_key(key_file, key_size or 2048)
    else:
        generate_ec_key(key_file, key_size or 256)


@main.command()
@config_file_option
def directory(config_file):
    """Shows the CA's resource URLs."""
    config = _setup(config_file)

    async def action(client: AcmeClient):
        return await client.directory_get()

    directory_ = asyncio.run(_run(config, action))
    for name, url in directory_.to_partial_json().items():
        click.echo(f"{name}: {url}")


@main.command()
@config_file_option
@click.option("--email", "-m", type=click.STRING)
@click.option("--agree-tos", is_flag=True, help="Agree to the CA's terms of service without asking.")
def register(config_file, email, agree_tos):
    """Registers the configured account key with the CA."""
    config = _setup(config_file)

    def agree_to_terms(terms_url: str) -> bool:
        return agree_tos or click.confirm(f"Do you agree to the terms of service at {terms_url}?")

    async def action(client: AcmeClient):
        return await client.account_register(agree_to_terms, email=email)

    result = asyncio.run(_run(config, action))
    click.echo("Registered." if result is None else f"Registered, agreement: {result}")


@main.command()
@config_file_option
@click.argument("domains", nargs=-1, required=True)
@click.option(
    "--domain-key",
    type=click.Path(),
    required=True,
    help="Generated as an RSA key of the configured size if it does not exist.",
)
def issue(config_file, domains, domain_key):
    """Obtains a certificate for the given domains and prints it along with its issuer certificate."""
    config = _setup(config_file)
    domain_key = Path(domain_key)
    if not domain_key.exists():
        logger.info("Generating domain key at %s", domain_key)
        generate_rsa_key(domain_key, config.client.rsa_key_size)
    solver = challenge_solver_registry.create(config.challenge_solver)

    async def action(client: AcmeClient):
        return await client.certificate_get(list(domains), domain_key, solver)

    issued = asyncio.run(_run(config, action))
    click.echo(issued.cert, nl=False)
    click.echo(issued.chain, nl=False)


@main.command()
@config_file_option
@click.argument("cert-file", type=click.Path(exists=True))
@click.option(
    "--key",
    type=click.Path(exists=True),
    help="Sign the request with the certificate's key instead of the account key.",
)
def revoke(config_file, cert_file, key):
    """Revokes a PEM encoded certificate."""
    config = _setup(config_file)
    cert = Path(cert_file).read_bytes()

    async def action(client: AcmeClient):
        if key:
            return await client.certificate_revoke(cert, Path(key), KeyRole.DOMAIN)
        return await client.certificate_revoke(cert)

    asyncio.run(_run(config, action))
    click.echo("Revoked.")


if __name__ == "__main__":
    main()
