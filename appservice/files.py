"""Selection of build artifacts to deploy."""
from pathlib import Path
from typing import List, Tuple


def split_patterns(file_path: str) -> List[str]:
    return [p.strip() for p in (file_path or "").split(",") if p.strip()]


def collect_files(source_dir: str, file_path: str) -> List[Tuple[Path, str]]:
    """Return ``(absolute path, path relative to source_dir)`` for every file
    matching one of the comma separated glob patterns in ``file_path``.
    """
    base = Path(source_dir or ".").resolve()
    if not base.is_dir():
        raise FileNotFoundError(f"Source directory {base} does not exist")

    found = {}
    for pattern in split_patterns(file_path):
        for match in base.glob(pattern):
            if match.is_file():
                found[match] = match.relative_to(base).as_posix()
    return sorted(found.items(), key=lambda item: item[1])


def join_remote(*parts: str) -> str:
    """Join remote path segments with '/', ignoring empty ones."""
    cleaned = [p.strip("/") for p in parts if p and p.strip("/")]
    return "/".join(cleaned)
