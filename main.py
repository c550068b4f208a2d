#!/usr/bin/env python3
"""azure-appservice-deploy: build step for Azure App Service and ARM templates."""
import os
import sys

import click
from loguru import logger

from appservice import __version__
from appservice.arm import (
    POLL_INTERVAL,
    OP_SUCCESS,
    deploy,
    monitor,
    resource_client,
    validate_and_add_field_value,
    verify_configuration,
)
from appservice.build_log import BuildLog
from appservice.commands import CommandState
from appservice.context import DeploymentContext, is_docker_publish
from appservice.credentials import CredentialStore
from appservice.exceptions import AppServiceDeployError
from appservice.schemas import DockerBuildInfo
from appservice.webapp import WebApp


def _split_param(raw: str):
    name, sep, value = raw.partition("=")
    if not sep or not name.strip():
        raise click.BadParameter(f"expected NAME=VALUE, got {raw!r}")
    return name.strip(), value


@click.group()
@click.version_option(version=__version__)
@click.option("--credentials-mode", type=click.Choice(["local", "default"]), default="local",
              show_default=True, help="Service principal from env/.env, or DefaultAzureCredential")
@click.option("--credentials-id", envvar="AZURE_CREDENTIALS_ID", default=None,
              help="Prefix selecting the <ID>_AZURE_* variables")
@click.pass_context
def cli(ctx, credentials_mode, credentials_id):
    """Deploy build artifacts to Azure App Service and provision ARM templates."""
    ctx.ensure_object(dict)
    ctx.obj["store"] = CredentialStore(mode=credentials_mode)
    ctx.obj["credentials_id"] = credentials_id


@cli.command()
@click.option("--resource-group", "-g", required=True)
@click.option("--app-name", "-n", required=True)
@click.option("--files", "file_path", default="**/*", show_default=True,
              help="Comma separated glob patterns, relative to the source directory")
@click.option("--workspace", default=".", show_default=True, type=click.Path(file_okay=False))
@click.option("--source-dir", default="")
@click.option("--target-dir", default="")
@click.option("--slot", default=None, help="Deploy to this deployment slot")
@click.option("--publish-type", default=None, help="'docker' to build and deploy an image")
@click.option("--docker-image", default=None, help="Image repository, registry host included")
@click.option("--docker-tag", envvar="BUILD_NUMBER", default="latest", show_default=True)
@click.option("--dockerfile", default="**/Dockerfile", show_default=True)
@click.option("--registry-url", default="")
@click.option("--registry-username", envvar="DOCKER_REGISTRY_USERNAME", default=None)
@click.option("--registry-password", envvar="DOCKER_REGISTRY_PASSWORD", default=None)
@click.option("--delete-temp-image/--keep-temp-image", default=False, show_default=True)
@click.option("--build-id", envvar="BUILD_NUMBER", default="0")
@click.pass_context
def webapp(ctx, resource_group, app_name, file_path, workspace, source_dir, target_dir, slot,
           publish_type, docker_image, docker_tag, dockerfile, registry_url, registry_username,
           registry_password, delete_temp_image, build_id):
    """Deploy to a web app via FTP, Git or Docker."""
    store = ctx.obj["store"]
    credentials_id = ctx.obj["credentials_id"]
    build_log = BuildLog(app_name)

    context = DeploymentContext(file_path=file_path, workspace=workspace, build_id=build_id,
                                build_log=build_log)
    context.publish_type = publish_type
    context.source_directory = source_dir
    context.target_directory = target_dir
    context.slot_name = slot
    context.delete_temp_image = delete_temp_image
    context.azure_credentials_id = credentials_id

    if is_docker_publish(publish_type):
        if not docker_image:
            logger.error("--docker-image is required when --publish-type is docker")
            sys.exit(1)
        context.docker_build_info = DockerBuildInfo(
            docker_image=docker_image,
            docker_image_tag=docker_tag,
            dockerfile=dockerfile,
            registry_url=registry_url,
            registry_username=registry_username,
            registry_password=registry_password,
        )

    try:
        app = WebApp.from_credentials(
            store.get_credential(credentials_id),
            store.subscription_id(credentials_id),
            resource_group,
            app_name,
        )
        context.configure(app)
    except AppServiceDeployError as e:
        logger.error(f"Deployment aborted: {e}")
        sys.exit(1)

    state = context.execute_commands()
    if state is not CommandState.SUCCESS:
        logger.critical(f"Deployment Failed: {state.value}")
        sys.exit(1)
    logger.success(f"Deployed {app_name} successfully!")


@cli.command()
@click.option("--resource-group", "-g", required=True)
@click.option("--template", "template_name", default="webapp.json", show_default=True,
              help="Embedded template name")
@click.option("--param", "params", multiple=True, help="String parameter NAME=VALUE")
@click.option("--int-param", "int_params", multiple=True, help="Integer parameter NAME=VALUE")
@click.option("--require", "required", multiple=True, help="Parameter that must have a value")
@click.option("--interval", envvar="ARM_POLL_INTERVAL", type=float, default=POLL_INTERVAL,
              show_default=True, help="Seconds between operation polls")
@click.option("--wait/--no-wait", default=True, show_default=True)
@click.pass_context
def arm(ctx, resource_group, template_name, params, int_params, required, interval, wait):
    """Provision an embedded ARM template and wait for it to complete."""
    store = ctx.obj["store"]
    credentials_id = ctx.obj["credentials_id"]
    build_log = BuildLog(resource_group)

    values = [("string", *_split_param(p)) for p in params]
    values += [("int", *_split_param(p)) for p in int_params]
    given = {name for _, name, _ in values}
    values += [("string", name, "") for name in required if name not in given]

    def configure_template(template):
        for type_, name, value in values:
            message = f"{name} is required." if name in required else None
            validate_and_add_field_value(type_, value, name, message, template)

    try:
        client = resource_client(store.get_credential(credentials_id), store.subscription_id(credentials_id))
        deployment_name = deploy(client, resource_group, template_name, configure_template)
    except AppServiceDeployError as e:
        logger.error(f"Deployment aborted: {e}")
        sys.exit(1)

    click.echo(deployment_name)
    if not wait:
        return
    if not monitor(client, resource_group, deployment_name, build_log, interval=interval):
        logger.critical(f"Deployment {deployment_name} failed")
        sys.exit(1)


@cli.command()
@click.option("--timeout", type=int, default=30, show_default=True)
@click.pass_context
def verify(ctx, timeout):
    """Check the configured credentials can reach the subscription."""
    store = ctx.obj["store"]
    credentials_id = ctx.obj["credentials_id"]
    try:
        result = verify_configuration(store.get_credential(credentials_id),
                                      store.subscription_id(credentials_id), timeout=timeout)
    except AppServiceDeployError as e:
        result = f"Failure: {e}"
    click.echo(result)
    if result != OP_SUCCESS:
        sys.exit(1)


def main():
    logger.remove()
    logger.add(sys.stderr, level=os.getenv("LOG_LEVEL", "INFO"))
    cli(obj={})


if __name__ == "__main__":
    main()
