# appservice/commands.py
"""Deployment steps run by a DeploymentContext.

Each command reads what it needs from the context, does one unit of work and
reports a CommandState. Exceptions escaping a command's work are logged to the
build log and reported as HAS_ERROR so the chain can follow its failure branch.
"""
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING

from loguru import logger

from .files import collect_files
from .metrics import COMMAND_COUNTER

if TYPE_CHECKING:  # pragma: no cover
    from .context import DeploymentContext


class CommandState(str, Enum):
    UNKNOWN = "Unknown"
    RUNNING = "Running"
    SUCCESS = "Success"
    HAS_ERROR = "HasError"

    @property
    def is_final(self) -> bool:
        return self is not CommandState.RUNNING


class CommandKind(str, Enum):
    DOCKER_BUILD = "docker-build"
    DOCKER_PUSH = "docker-push"
    DOCKER_DEPLOY = "docker-deploy"
    DOCKER_REMOVE_IMAGE = "docker-remove-image"
    FTP_DEPLOY = "ftp-deploy"
    GIT_DEPLOY = "git-deploy"


class Command:
    kind: CommandKind

    def run(self, context: "DeploymentContext") -> CommandState:
        try:
            state = self.execute(context)
        except Exception as e:
            logger.opt(exception=e).debug(f"{self.kind.value} raised")
            context.build_log.log_error(f"{self.kind.value} failed: {e}")
            state = CommandState.HAS_ERROR
        COMMAND_COUNTER.labels(command=self.kind.value, result=state.value).inc()
        return state

    def execute(self, context: "DeploymentContext") -> CommandState:
        raise NotImplementedError


def _require_build_info(context: "DeploymentContext"):
    if context.docker_build_info is None:
        raise ValueError("Docker build info is not configured")
    return context.docker_build_info


class DockerBuildCommand(Command):
    kind = CommandKind.DOCKER_BUILD

    def execute(self, context):
        info = _require_build_info(context)
        dockerfiles = collect_files(context.source_path, info.dockerfile)
        if not dockerfiles:
            context.build_log.log_error(f"No Dockerfile matching {info.dockerfile} under {context.source_path}")
            return CommandState.HAS_ERROR

        dockerfile, _ = dockerfiles[0]
        context.build_log.log_status(f"Building image {info.image_reference} from {dockerfile}")
        info.image_id = context.docker_engine.build_image(
            str(dockerfile.parent), info.image_reference, dockerfile=dockerfile.name
        )
        context.build_log.log_status(f"Built image {info.image_id}")
        return CommandState.SUCCESS


class DockerPushCommand(Command):
    kind = CommandKind.DOCKER_PUSH

    def execute(self, context):
        info = _require_build_info(context)
        context.build_log.log_status(f"Pushing {info.image_reference} to {info.registry_server_url}")
        context.docker_engine.push_image(info.docker_image, info.docker_image_tag, info.auth_config())
        context.build_log.log_status(f"Pushed {info.image_reference}")
        return CommandState.SUCCESS


class DockerDeployCommand(Command):
    kind = CommandKind.DOCKER_DEPLOY

    def execute(self, context):
        info = _require_build_info(context)
        context.build_log.log_status(f"Deploying {info.image_reference} to {context.target_name}")
        context.web_app.update_docker_image(info, context.slot_name)
        context.build_log.log_status(f"Deployed {info.image_reference} to {context.target_name}")
        return CommandState.SUCCESS


class DockerRemoveImageCommand(Command):
    kind = CommandKind.DOCKER_REMOVE_IMAGE

    def execute(self, context):
        info = _require_build_info(context)
        context.build_log.log_status(f"Removing temporary image {info.image_reference}")
        context.docker_engine.remove_image(info.image_reference)
        return CommandState.SUCCESS


class FTPDeployCommand(Command):
    kind = CommandKind.FTP_DEPLOY

    def execute(self, context):
        files = collect_files(context.source_path, context.file_path)
        if not files:
            context.build_log.log_error(f"No files matching {context.file_path} under {context.source_path}")
            return CommandState.HAS_ERROR

        if not context.target_directory:
            # Tomcat only picks up war files from webapps
            files = [
                (local, f"webapps/{PurePosixPath(rel).name}" if rel.lower().endswith(".war") else rel)
                for local, rel in files
            ]

        context.build_log.log_status(f"Uploading {len(files)} file(s) to {context.target_name} via FTP")
        uploaded = context.ftp_factory(context.publishing_profile).upload(files, context.target_directory)
        context.build_log.log_status(f"Uploaded {uploaded} file(s)")
        return CommandState.SUCCESS


class GitDeployCommand(Command):
    kind = CommandKind.GIT_DEPLOY

    def execute(self, context):
        files = collect_files(context.source_path, context.file_path)
        if not files:
            context.build_log.log_error(f"No files matching {context.file_path} under {context.source_path}")
            return CommandState.HAS_ERROR

        git_manager = context.git_manager
        checkout = context.web_app.name
        try:
            repo = git_manager.clone_repository(context.publishing_profile, checkout)
            copied = git_manager.copy_files(repo, files, context.target_directory)
            context.build_log.log_status(f"Copied {copied} file(s) into {Path(repo.working_tree_dir).name}")
            if git_manager.commit_and_push(repo, f"Deploy build {context.build_id}"):
                commit = git_manager.get_commit_hash(repo, short=True)
                context.build_log.log_status(f"Pushed {commit} to {context.target_name}")
            else:
                context.build_log.log_status("Nothing changed, skipping push")
        finally:
            git_manager.delete_repository(checkout)
            git_manager.cleanup()
        return CommandState.SUCCESS
