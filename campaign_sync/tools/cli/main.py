"""
Entry point of `campaign-sync` CLI.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

import dotenv
from click.exceptions import BadParameter, MissingParameter
from pydantic import ValidationError
from rich.table import Table
from typer import Argument, Context, Exit, Option

from ...core import (
    ConfigurationError,
    LogonError,
    QueryError,
    SchemaRegistry,
    Session,
    UnknownSchemaError,
)
from ..config import Config, InstanceConfig, SyncSettings
from ..download import download as download_schema
from ..upload import upload_from_list
from ._utils import MainTyper, console, get_root_context, logger, lookup_param

dotenv.load_dotenv()

app = MainTyper(
    "campaign-sync",
    help="Synchronize Campaign code records with the local filesystem",
)


@app.callback()
def main(
    ctx: Context,
    host: str
    | None = Option(
        None,
        help="Campaign host, e.g. https://campaign.example.com",
        envvar="CAMPAIGN_HOST",
    ),
    username: str
    | None = Option(
        None,
        help="Operator login",
        envvar="CAMPAIGN_USERNAME",
    ),
    password: str
    | None = Option(
        None,
        help="Operator password",
        envvar="CAMPAIGN_PASSWORD",
    ),
    instance_name: str
    | None = Option(
        None,
        "--instance",
        help="Instance name as configured in .yaml",
        envvar="CAMPAIGN_INSTANCE",
    ),
    config_file: Path = Option(
        "campaign-sync.yaml",
        help=".yaml file containing instance info, used with --instance or when it sets a default instance",
        envvar="CAMPAIGN_SYNC_CONFIG_FILE",
        dir_okay=False,
    ),
    verbose: bool = Option(
        False,
        "-v",
        "--verbose",
        help="Log debug messages",
    ),
):
    if verbose:
        logger.setLevel(logging.DEBUG)

    if instance_name:
        root_context = RootContext.from_config(
            ctx=ctx, instance_name=instance_name, config_file=config_file
        )
    elif host or username or password:
        missing = [
            name
            for name, value in [
                ("host", host),
                ("username", username),
                ("password", password),
            ]
            if not value
        ]
        if missing:
            raise MissingParameter(
                message="--host, --username and --password must be provided together",
                ctx=ctx,
                param_hint=missing,
                param_type="option",
            )

        try:
            instance = InstanceConfig(
                host=host, username=username, password=password
            )
        except ValidationError as e:
            raise BadParameter(
                str(e), ctx=ctx, param=lookup_param(ctx, "host")
            )

        root_context = RootContext(ctx=ctx, instance=instance, from_file=False)
    elif config_file.is_file():
        root_context = RootContext.from_config(
            ctx=ctx, instance_name=None, config_file=config_file
        )
    else:
        root_context = RootContext(ctx=ctx, instance=None, from_file=False)

    ctx.obj = root_context


@app.command()
def download(
    ctx: Context,
    schema: str = Argument(
        help="Schema of records to download, e.g. xtk:jst",
    ),
    output_dir: Path = Argument(
        help="Destination folder, created if it doesn't exist",
        file_okay=False,
    ),
    condition: list[str]
    | None = Option(
        None,
        "-c",
        "--condition",
        help="Query condition, e.g. \"@namespace = 'cus'\"; may be repeated",
    ),
    schema_subdir: bool = Option(
        False,
        "--schema-subdir",
        help="Place files in a subfolder named after the schema",
    ),
):
    """
    Download records of a schema to files
    """

    root_context = get_root_context(ctx)

    settings = SyncSettings(
        schema_id=schema,
        output_dir=output_dir,
        conditions=condition or [],
        schema_subdirectory=schema_subdir,
    )
    assert settings.schema_id and settings.output_dir

    # validate schema before connecting
    try:
        root_context.registry.lookup(settings.schema_id)
    except UnknownSchemaError as e:
        raise BadParameter(str(e), ctx=ctx, param=lookup_param(ctx, "schema"))

    session = root_context.create_session()

    try:
        stats = download_schema(
            session,
            root_context.registry,
            settings.schema_id,
            settings.output_dir,
            conditions=settings.conditions,
            schema_subdirectory=settings.schema_subdirectory,
            logger=logger,
        )
    except QueryError as e:
        logger.error(f"Query failed: {e}")
        raise Exit(code=1)

    logger.debug(f"Downloaded {stats.file_count} {stats.schema_id} records")


@app.command()
def upload(
    ctx: Context,
    upload_list: Path = Argument(
        help="File listing paths, folders or glob patterns to upload, one per line",
        dir_okay=False,
    ),
    dry_run: bool = Option(
        False,
        "--dry-run",
        help="Only log which files would be uploaded, without connecting",
    ),
):
    """
    Upload files named in an upload list
    """

    root_context = get_root_context(ctx)

    settings = SyncSettings(upload_list=upload_list, dry_run=dry_run)
    assert settings.upload_list

    if not settings.upload_list.is_file():
        raise BadParameter(
            f"File {settings.upload_list} not found.",
            ctx=ctx,
            param=lookup_param(ctx, "upload_list"),
        )

    session = None if settings.dry_run else root_context.create_session()

    stats = upload_from_list(
        session,
        root_context.registry,
        settings.upload_list,
        dry_run=settings.dry_run,
        logger=logger,
    )

    if not settings.dry_run and stats.failures:
        logger.warning(
            f"{len(stats.failures)} of {stats.attempted} files failed to upload"
        )


@app.command()
def schemas(ctx: Context):
    """
    List schemas which can be synchronized
    """

    root_context = get_root_context(ctx)

    table = Table("Schema", "File type", "Code location", "Key")
    for descriptor in root_context.registry.values():
        table.add_row(
            descriptor.schema_id,
            descriptor.file_type.extension,
            descriptor.code_locator,
            descriptor.persist_key,
        )

    console.print(table)


@app.command()
def check(ctx: Context):
    """
    Check connection to Campaign
    """
    root_context = get_root_context(ctx)
    session = root_context.create_session()
    logger.info(f"Logged on to Campaign host '{session.host}'")


def run():
    app()


@dataclass(kw_only=True)
class RootContext:
    ctx: Context
    instance: InstanceConfig | None
    from_file: bool
    registry: SchemaRegistry = field(default_factory=SchemaRegistry.default)

    @classmethod
    def from_config(
        cls,
        *,
        ctx: Context,
        instance_name: str | None,
        config_file: Path,
    ) -> RootContext:
        # ensure config file exists
        if not config_file.is_file():
            raise BadParameter(
                message=f"file does not exist: {config_file}",
                ctx=ctx,
                param=lookup_param(ctx, "config_file"),
            )

        # get config from file
        try:
            config = Config.load_yaml(config_file)
        except (ValueError, ValidationError, ConfigurationError) as e:
            raise BadParameter(
                f"failed to load config file '{config_file}': {e}",
                ctx=ctx,
                param=lookup_param(ctx, "config_file"),
            )

        # get instance from config
        instance = config.get_instance(instance_name)
        if instance_name and not instance:
            raise BadParameter(
                f"instance '{instance_name}' not found in '{config_file}'",
                ctx=ctx,
                param=lookup_param(ctx, "instance_name"),
            )

        return RootContext(ctx=ctx, instance=instance, from_file=True)

    def create_session(self) -> Session:
        if self.instance is None:
            raise MissingParameter(
                message="either --host/--username/--password or --instance must be provided",
                ctx=self.ctx,
                param_hint=["host", "instance"],
                param_type="option",
            )

        try:
            return self.instance.create_session(logger=logger)
        except LogonError:
            # would have already logged error
            raise Exit(code=1)


if __name__ == "__main__":
    app()
