import copy
import logging
import logging.config

import click
import httpx

import imagegen.oci
from imagegen.dns import resolve_all
from imagegen.oci.builder import INDEX_IMAGE_COUNT
from imagegen.oci.client import Client
from imagegen.oci.errors import ImagegenError
from imagegen.oci.options import Options

LOGGING_CONFIG = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "default": {
            "format": "%(asctime)s %(levelname)s %(message)s",
        },
    },
    "handlers": {
        "default": {
            "formatter": "default",
            "class": "logging.StreamHandler",
            "stream": "ext://sys.stderr",
        },
    },
    "loggers": {
        "imagegen": {"handlers": ["default"], "level": "INFO", "propagate": False},
        # Keep library chatter out of the test report
        "httpx": {"handlers": ["default"], "level": "WARNING", "propagate": False},
        "httpcore": {"handlers": ["default"], "level": "WARNING", "propagate": False},
    },
}


def configure_logging(trace: bool = False):
    """Set up logging for the process, once at startup"""
    config = copy.deepcopy(LOGGING_CONFIG)
    if trace:
        config["loggers"]["imagegen"]["level"] = "DEBUG"
    logging.config.dictConfig(config)


@click.group()
@click.option("--trace", help="Print trace logs with secrets", is_flag=True)
@click.version_option(package_name="imagegen")
def cli(trace: bool):
    configure_logging(trace)


class OCI:
    def __init__(
        self,
        login_server: str,
        username: str | None = None,
        password: str | None = None,
        data_endpoint: str | None = None,
        insecure: bool = False,
        basic_auth: bool = False,
        repository: str | None = None,
    ):
        self.options = Options(
            login_server=login_server,
            username=username or "",
            password=password or "",
            data_endpoint=data_endpoint,
            insecure=insecure,
            basic_auth_mode=basic_auth,
            repository=repository,
        )
        resolve_all(self.options)
        self.client = Client.from_options(self.options)


def registry_options(func):
    """Arguments and options shared by all commands"""
    options = [
        click.argument("login_server"),
        click.option("--insecure", help="Enable remote access over HTTP", is_flag=True),
        click.option(
            "-u", "--username", help="Login username", envvar="IMAGEGEN_USERNAME"
        ),
        click.option(
            "-p", "--password", help="Login password", envvar="IMAGEGEN_PASSWORD"
        ),
        click.option(
            "-d", "--dataendpoint", "data_endpoint", help="Endpoint for data download"
        ),
        click.option(
            "--basicauth",
            "basic_auth",
            help="Use basic auth mode for data operations",
            is_flag=True,
        ),
        click.option(
            "-r",
            "--repository",
            help="Repository to push to, generated when not set",
            envvar="IMAGEGEN_REPOSITORY",
        ),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def connect(**kwargs) -> OCI:
    try:
        return OCI(**kwargs)
    except ImagegenError as e:
        raise click.ClickException(str(e)) from e


@cli.command("create-oci-index")
@registry_options
@click.option(
    "--count",
    help="Number of images in the index",
    type=int,
    default=INDEX_IMAGE_COUNT,
)
@click.option(
    "--media-type/--no-media-type",
    help="Set mediaType in the index document",
    default=False,
)
def create_oci_index(count: int, media_type: bool, **kwargs):
    """Push a set of images and an OCI index over them."""
    obj = connect(**kwargs)
    with obj.client as client:
        try:
            descriptor = imagegen.oci.generate_oci_index(
                client, obj.options, has_media_type=media_type, count=count
            )
        except (ImagegenError, httpx.HTTPError) as e:
            raise click.ClickException(str(e)) from e
    click.echo(descriptor.digest)


@cli.command("create-oci-artifacts-test")
@registry_options
def create_oci_artifacts_test(**kwargs):
    """Push OCI artifact variations and check the registry's verdict on each."""
    obj = connect(**kwargs)
    with obj.client as client:
        try:
            results = imagegen.oci.generate_oci_artifacts(client, obj.options)
        except (ImagegenError, httpx.HTTPError) as e:
            raise click.ClickException(str(e)) from e

    for result in results:
        status = "PASS" if result.outcome.passed else "FAIL"
        click.echo(f"{status} {result.title} ({result.outcome.value})")
    failed = [result for result in results if not result.outcome.passed]
    if failed:
        raise click.ClickException(f"{len(failed)} of {len(results)} cases failed")


if __name__ == "__main__":
    cli()
