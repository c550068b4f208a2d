from typing import Any, Optional

from pydantic import BaseModel, Field

DOCKER_HUB_URL = "https://index.docker.io"


class DockerBuildInfo(BaseModel):
    docker_image: str = Field(..., description="Image repository, registry host included")
    docker_image_tag: str = "latest"
    dockerfile: str = "**/Dockerfile"
    registry_url: str = ""
    registry_username: Optional[str] = None
    registry_password: Optional[str] = None
    image_id: Optional[str] = None

    @property
    def image_reference(self) -> str:
        return f"{self.docker_image}:{self.docker_image_tag}"

    @property
    def registry_server_url(self) -> str:
        url = self.registry_url.strip().rstrip("/")
        if not url:
            return DOCKER_HUB_URL
        if "://" not in url:
            url = f"https://{url}"
        return url

    def auth_config(self) -> Optional[dict]:
        if not self.registry_username:
            return None
        return {
            "username": self.registry_username,
            "password": self.registry_password or "",
            "serveraddress": self.registry_server_url,
        }


class PublishingProfile(BaseModel):
    ftp_url: str
    ftp_username: str
    ftp_password: str
    git_url: str
    git_username: str
    git_password: str


class DeploymentOperation(BaseModel):
    resource_name: str
    resource_type: str
    provisioning_state: str

    @classmethod
    def from_sdk(cls, operation: Any) -> "DeploymentOperation":
        props = getattr(operation, "properties", None)
        # the deployment's own bookkeeping operation has no target resource
        target = getattr(props, "target_resource", None)
        return cls(
            resource_name=getattr(target, "resource_name", None) or "",
            resource_type=getattr(target, "resource_type", None) or "",
            provisioning_state=getattr(props, "provisioning_state", None) or "",
        )
