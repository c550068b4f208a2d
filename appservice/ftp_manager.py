# appservice/ftp_manager.py
import ftplib
import posixpath
from contextlib import contextmanager
from pathlib import Path
from typing import Iterable, Optional, Set, Tuple
from urllib.parse import urlparse

from loguru import logger

from .files import join_remote
from .schemas import PublishingProfile


class FTPManager:
    def __init__(self, profile: PublishingProfile, use_tls: bool = True, timeout: int = 60):
        parsed = urlparse(profile.ftp_url)
        if not parsed.hostname:
            raise ValueError(f"Invalid FTP url: {profile.ftp_url}")
        self.host = parsed.hostname
        self.port = parsed.port or 21
        self.root = parsed.path or "/"
        self.username = profile.ftp_username
        self.password = profile.ftp_password
        self.use_tls = use_tls
        self.timeout = timeout
        self._created: Set[str] = set()

    @contextmanager
    def connect(self):
        ftp = ftplib.FTP_TLS(timeout=self.timeout) if self.use_tls else ftplib.FTP(timeout=self.timeout)
        ftp.connect(self.host, self.port)
        try:
            ftp.login(self.username, self.password)
            if self.use_tls:
                ftp.prot_p()
            ftp.set_pasv(True)
            yield ftp
        finally:
            try:
                ftp.quit()
            except ftplib.all_errors:
                ftp.close()

    def remote_path(self, *parts: str) -> str:
        return "/" + join_remote(self.root, *parts)

    def ensure_directory(self, ftp, path: str):
        current = ""
        for segment in [s for s in path.split("/") if s]:
            current = f"{current}/{segment}"
            if current in self._created:
                continue
            try:
                ftp.mkd(current)
            except ftplib.error_perm as e:
                # 550: already exists
                if not str(e).startswith("550"):
                    raise
            self._created.add(current)

    def upload_file(self, ftp, local: Path, remote: str):
        self.ensure_directory(ftp, posixpath.dirname(remote))
        with open(local, "rb") as fh:
            ftp.storbinary(f"STOR {remote}", fh)

    def upload(self, files: Iterable[Tuple[Path, str]], target_directory: Optional[str] = None) -> int:
        count = 0
        with self.connect() as ftp:
            for local, relative in files:
                remote = self.remote_path(target_directory or "", relative)
                logger.info(f"Uploading {relative} to {remote}")
                self.upload_file(ftp, local, remote)
                count += 1
        return count
