# tests/conftest.py
import sys
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from appservice.build_log import BuildLog  # noqa: E402
from appservice.schemas import DockerBuildInfo, PublishingProfile  # noqa: E402


# ---------------------------------------------------------------------------
# Patch docker for all tests
# ---------------------------------------------------------------------------
@pytest.fixture(autouse=True)
def patch_docker():
    """
    Prevent docker.from_env() from contacting the host.
    """
    fake_client = MagicMock()
    fake_client.containers = MagicMock()
    fake_client.images = MagicMock()

    with patch("docker.from_env", return_value=fake_client):
        yield fake_client


@pytest.fixture
def profile():
    return PublishingProfile(
        ftp_url="ftp://waws-prod.ftp.azurewebsites.windows.net/site/wwwroot",
        ftp_username="myapp\\$myapp",
        ftp_password="ftp-secret",
        git_url="https://myapp.scm.azurewebsites.net:443/myapp.git",
        git_username="$myapp",
        git_password="git-secret",
    )


@pytest.fixture
def build_info():
    return DockerBuildInfo(
        docker_image="myregistry.azurecr.io/myapp",
        docker_image_tag="42",
        registry_url="myregistry.azurecr.io",
        registry_username="registry-user",
        registry_password="registry-pass",
    )


@pytest.fixture
def build_log():
    return BuildLog("test")


@pytest.fixture
def web_app(profile):
    """A target web app double with a default profile and no Java runtime."""
    app = MagicMock()
    app.name = "myapp"
    app.get_publishing_profile.return_value = profile
    app.is_java.return_value = False
    return app
