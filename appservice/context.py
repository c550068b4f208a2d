# appservice/context.py
"""Per-build deployment state and the command chain that runs on it.

``configure`` resolves the publishing profile and picks one of three chains:

    docker:    build -> push -> deploy [-> remove temp image]
    java app:  ftp deploy
    otherwise: git deploy

A driver then asks ``next_command`` for the step to run and reports its result
with ``advance``; ``execute_commands`` is that loop.
"""
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

from loguru import logger

from .build_log import BuildLog
from .commands import (
    Command,
    CommandKind,
    CommandState,
    DockerBuildCommand,
    DockerDeployCommand,
    DockerPushCommand,
    DockerRemoveImageCommand,
    FTPDeployCommand,
    GitDeployCommand,
)
from .exceptions import AppServiceDeployError, CloudOperationError
from .ftp_manager import FTPManager
from .metrics import DEPLOYMENT_COUNTER
from .schemas import DockerBuildInfo, PublishingProfile

PUBLISH_TYPE_DOCKER = "docker"


@dataclass
class TransitionInfo:
    command: Command
    on_success: Optional[CommandKind] = None
    on_failure: Optional[CommandKind] = None


def is_docker_publish(publish_type: Optional[str]) -> bool:
    return bool(publish_type and publish_type.strip().lower() == PUBLISH_TYPE_DOCKER)


def build_transitions(
    publish_type: Optional[str],
    delete_temp_image: bool,
    is_java: Callable[[], bool],
) -> Tuple[CommandKind, Dict[CommandKind, TransitionInfo]]:
    """Return the start command and transition graph for a build.

    ``is_java`` is only called when the publish type is not docker.
    """
    if is_docker_publish(publish_type):
        commands = {
            CommandKind.DOCKER_BUILD: TransitionInfo(DockerBuildCommand(), CommandKind.DOCKER_PUSH),
            CommandKind.DOCKER_PUSH: TransitionInfo(DockerPushCommand(), CommandKind.DOCKER_DEPLOY),
        }
        if delete_temp_image:
            commands[CommandKind.DOCKER_DEPLOY] = TransitionInfo(
                DockerDeployCommand(), CommandKind.DOCKER_REMOVE_IMAGE
            )
            commands[CommandKind.DOCKER_REMOVE_IMAGE] = TransitionInfo(DockerRemoveImageCommand())
        else:
            commands[CommandKind.DOCKER_DEPLOY] = TransitionInfo(DockerDeployCommand())
        return CommandKind.DOCKER_BUILD, commands

    if is_java():
        # FTP is the recommended way to deploy Java apps
        return CommandKind.FTP_DEPLOY, {CommandKind.FTP_DEPLOY: TransitionInfo(FTPDeployCommand())}

    return CommandKind.GIT_DEPLOY, {CommandKind.GIT_DEPLOY: TransitionInfo(GitDeployCommand())}


class DeploymentContext:
    def __init__(
        self,
        file_path: str = "",
        workspace: str = ".",
        build_id: str = "0",
        build_log: Optional[BuildLog] = None,
    ):
        self.file_path = file_path
        self.workspace = workspace
        self.build_id = build_id
        self.build_log = build_log or BuildLog()

        self.publish_type: Optional[str] = None
        self.docker_build_info: Optional[DockerBuildInfo] = None
        self._source_directory = ""
        self._target_directory = ""
        self.slot_name: Optional[str] = None
        self.delete_temp_image = False
        self.azure_credentials_id: Optional[str] = None

        self.publishing_profile: Optional[PublishingProfile] = None
        self.web_app = None

        self.commands: Dict[CommandKind, TransitionInfo] = {}
        self.start_command: Optional[CommandKind] = None
        self.current_command: Optional[CommandKind] = None
        self.command_state = CommandState.UNKNOWN
        self.completed: List[CommandKind] = []

        self._docker_engine = None
        self._git_manager = None
        self.ftp_factory: Callable = FTPManager

    @property
    def source_directory(self) -> str:
        return self._source_directory

    @source_directory.setter
    def source_directory(self, value: Optional[str]):
        self._source_directory = value or ""

    @property
    def target_directory(self) -> str:
        return self._target_directory

    @target_directory.setter
    def target_directory(self, value: Optional[str]):
        self._target_directory = value or ""

    @property
    def source_path(self) -> str:
        return str(Path(self.workspace) / self.source_directory)

    @property
    def target_name(self) -> str:
        name = getattr(self.web_app, "name", "web app")
        return f"{name}/{self.slot_name}" if self.slot_name else str(name)

    # Collaborators are created on first use so tests can swap them in.
    @property
    def docker_engine(self):
        if self._docker_engine is None:
            from .engine import DockerEngine

            self._docker_engine = DockerEngine()
        return self._docker_engine

    @docker_engine.setter
    def docker_engine(self, value):
        self._docker_engine = value

    @property
    def git_manager(self):
        if self._git_manager is None:
            from .git_manager import GitManager

            self._git_manager = GitManager()
        return self._git_manager

    @git_manager.setter
    def git_manager(self, value):
        self._git_manager = value

    def configure(self, app) -> None:
        """Resolve the publishing profile of ``app`` and build the command chain.

        Raises SlotNotFoundError when ``slot_name`` names a slot the app does
        not have, and CloudOperationError for any other lookup failure.
        """
        try:
            if self.slot_name and self.slot_name.strip():
                profile = app.get_publishing_profile(self.slot_name.strip())
            else:
                profile = app.get_publishing_profile()
            start, commands = build_transitions(self.publish_type, self.delete_temp_image, app.is_java)
        except AppServiceDeployError:
            raise
        except Exception as e:
            raise CloudOperationError(f"Failed to configure deployment to {app}", e) from e

        self.publishing_profile = profile
        self.web_app = app
        self.commands = commands
        self.start_command = start
        self.current_command = start
        self.completed = []
        self.command_state = CommandState.RUNNING
        logger.info(f"Deployment to {self.target_name} starts with {start.value}")

    def next_command(self) -> Optional[TransitionInfo]:
        if self.command_state is not CommandState.RUNNING or self.current_command is None:
            return None
        return self.commands[self.current_command]

    def advance(self, state: CommandState) -> Optional[TransitionInfo]:
        """Record the current command's result and move along the graph."""
        if self.current_command is None:
            raise RuntimeError("No command is running")

        transition = self.commands[self.current_command]
        self.completed.append(self.current_command)
        following = transition.on_success if state is CommandState.SUCCESS else transition.on_failure

        if following is None:
            self.current_command = None
            self.command_state = state if state.is_final else CommandState.UNKNOWN
            return None
        if following in self.completed:
            raise RuntimeError(f"Command {following.value} has already run")

        self.current_command = following
        return self.commands[following]

    def execute_commands(self) -> CommandState:
        if self.command_state is not CommandState.RUNNING:
            raise RuntimeError("Deployment context is not configured")

        DEPLOYMENT_COUNTER.labels(publish_type=self.publish_type or "default").inc()
        transition = self.next_command()
        while transition is not None:
            logger.debug(f"Running {transition.command.kind.value}")
            state = transition.command.run(self)
            transition = self.advance(state)

        if self.command_state is CommandState.SUCCESS:
            self.build_log.log_status(f"Deployment to {self.target_name} succeeded")
        else:
            self.build_log.log_error(
                f"Deployment to {self.target_name} finished with state {self.command_state.value}"
            )
        return self.command_state
