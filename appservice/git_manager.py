# appservice/git_manager.py
import shutil
import tempfile
from pathlib import Path
from typing import Iterable, Optional, Tuple
from urllib.parse import quote, urlparse, urlunparse

import git
from loguru import logger

from .schemas import PublishingProfile

DEFAULT_BRANCH = "master"


def authenticated_url(repo_url: str, username: str, password: str) -> str:
    """Embed credentials in an https git url. Publishing user names start
    with '$', so both parts are percent-encoded."""
    parsed = urlparse(repo_url)
    netloc = f"{quote(username, safe='')}:{quote(password, safe='')}@{parsed.hostname}"
    if parsed.port:
        netloc = f"{netloc}:{parsed.port}"
    return urlunparse(parsed._replace(netloc=netloc))


class GitManager:
    def __init__(self, base_path: Optional[str] = None):
        self._owns_base_path = base_path is None
        if base_path is None:
            base_path = tempfile.mkdtemp(prefix="azure-appservice-deploy-")
        self.base_path = str(base_path).rstrip("/")
        Path(self.base_path).mkdir(parents=True, exist_ok=True)

    def get_repository_path(self, app_name: str) -> str:
        return f"{self.base_path}/{app_name}"

    def clone_repository(self, profile: PublishingProfile, app_name: str) -> git.Repo:
        dest = self.get_repository_path(app_name)
        if Path(dest).exists():
            shutil.rmtree(dest)
        url = authenticated_url(profile.git_url, profile.git_username, profile.git_password)
        logger.info(f"Cloning {profile.git_url}")
        return git.Repo.clone_from(url, dest)

    def copy_files(self, repo: git.Repo, files: Iterable[Tuple[Path, str]], target_directory: str = "") -> int:
        root = Path(repo.working_tree_dir)
        if target_directory:
            root = root / target_directory.strip("/")
        count = 0
        for local, relative in files:
            dest = root / relative
            dest.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(local, dest)
            count += 1
        return count

    def commit_and_push(self, repo: git.Repo, message: str, branch: str = DEFAULT_BRANCH) -> bool:
        """Commit every change in the working tree and push it.

        Returns False when there was nothing to commit.
        """
        repo.git.add(A=True)
        if not repo.is_dirty(index=True, working_tree=True, untracked_files=True):
            logger.info("No changes to deploy")
            return False

        with repo.config_writer() as cw:
            cw.set_value("user", "name", "Azure App Service Deployer")
            cw.set_value("user", "email", "appservice-deploy@localhost")
        repo.index.commit(message)

        # Let any GitCommandError propagate to the caller
        repo.remotes.origin.push(refspec=f"HEAD:{branch}").raise_if_error()
        return True

    def get_commit_hash(self, repo: git.Repo, short: bool = False) -> str:
        hexsha = repo.head.commit.hexsha
        return hexsha[:7] if short else hexsha

    def delete_repository(self, app_name: str):
        dest = self.get_repository_path(app_name)
        p = Path(dest)
        if p.exists():
            shutil.rmtree(dest)

    def cleanup(self):
        """Remove the base directory if this manager created it."""
        if self._owns_base_path:
            shutil.rmtree(self.base_path, ignore_errors=True)
