# appservice/engine.py
from typing import Any, Optional

from docker.errors import APIError
from loguru import logger


class DockerEngine:
    def __init__(self, client: Optional[Any] = None):
        self._client = client

    def _ensure_client(self):
        if self._client is None:
            import docker

            self._client = docker.from_env()
        return self._client

    @property
    def client(self):
        return self._ensure_client()

    @client.setter
    def client(self, value):
        self._client = value

    def build_image(self, path: str, tag: str, dockerfile: Optional[str] = None) -> str:
        """Build ``path`` and tag the result; returns the image id."""
        client = self.client
        kwargs = {"path": path, "tag": tag, "rm": True}
        if dockerfile:
            kwargs["dockerfile"] = dockerfile
        image, build_logs = client.images.build(**kwargs)
        for chunk in build_logs or []:
            line = chunk.get("stream", "").strip() if isinstance(chunk, dict) else ""
            if line:
                logger.debug(line)
        return getattr(image, "id", None) or tag

    def push_image(self, repository: str, tag: str, auth_config: Optional[dict] = None):
        client = self.client
        kwargs = {"tag": tag, "stream": True, "decode": True}
        if auth_config:
            kwargs["auth_config"] = auth_config
        # the daemon reports push failures inside the stream, not as an HTTP error
        for chunk in client.images.push(repository, **kwargs):
            if not isinstance(chunk, dict):
                continue
            if "error" in chunk:
                raise APIError(chunk.get("error"))
            if chunk.get("status") and chunk.get("id") is None:
                logger.debug(chunk["status"])

    def remove_image(self, reference: str, force: bool = True):
        client = self.client
        client.images.remove(image=reference, force=force)
