"""源码拉取实现 - 归档下载解压 / Git 克隆更新

职责:
- 归档下载到 distfiles/（已存在即复用），解压到包的 srcdir
- Git 仓库 clone / 更新

支持的归档: .tar.gz .tgz .tar.bz2 .tbz .tbz2 .tar.xz .txz .tar .zip .rar
（rar 依赖外部 unrar 命令）

解压时先落到临时目录：归档只有一个顶层目录时把该目录作为 srcdir，
否则把全部内容作为 srcdir。
"""

from __future__ import annotations

import logging
import shutil
import tarfile
import urllib.error
import urllib.request
import zipfile
from pathlib import Path
from urllib.parse import urlparse

from srcbuild.core.exceptions import (
    FetchError,
    UnsupportedArchiveFormatError,
    UnsupportedProtocolError,
)
from srcbuild.utils.shell import run_cmd

logger = logging.getLogger(__name__)

# 后缀 → 解压方式，长后缀在前
_ARCHIVE_SUFFIXES: tuple[tuple[str, str], ...] = (
    (".tar.gz", "tar"),
    (".tgz", "tar"),
    (".tar.bz2", "tar"),
    (".tbz2", "tar"),
    (".tbz", "tar"),
    (".tar.xz", "tar"),
    (".txz", "tar"),
    (".tar", "tar"),
    (".zip", "zip"),
    (".rar", "rar"),
)

_GIT_TRANSPORTS = frozenset(("git", "http", "https", "ftp", "ftps", "ssh", "file"))


def archive_format(filename: str) -> str:
    """按文件名后缀判断解压方式

    Raises:
        UnsupportedArchiveFormatError: 无法识别的后缀
    """
    lower = filename.lower()
    for suffix, fmt in _ARCHIVE_SUFFIXES:
        if lower.endswith(suffix):
            return fmt
    raise UnsupportedArchiveFormatError(f"不支持的归档格式: {filename}")


def git_remote(url: str) -> str:
    """把 git+<transport>://... 还原为 git 可识别的远程地址

    Raises:
        UnsupportedProtocolError: 传输协议不受支持
    """
    remote = url[len("git+"):] if url.lower().startswith("git+") else url
    transport = remote.split(":", 1)[0].lower() if ":" in remote else ""
    if transport not in _GIT_TRANSPORTS:
        raise UnsupportedProtocolError(f"不支持的 git 传输协议 '{transport}': {url}")
    return remote


class SourceFetcher:
    """Fetcher 协议的默认实现"""

    def __init__(self, distfiles: str | Path, git: str = "git") -> None:
        self.distfiles = Path(distfiles)
        self.git = git

    # ---- 归档 ----

    def download_archive(self, url: str, dest_dir: Path) -> None:
        dest_dir = Path(dest_dir)
        filename = Path(urlparse(url).path).name
        if not filename:
            raise FetchError(f"无法从地址中确定文件名: {url}")
        fmt = archive_format(filename)
        archive = self._download(url, filename)
        self.extract(archive, dest_dir, fmt=fmt)

    def _download(self, url: str, filename: str) -> Path:
        self.distfiles.mkdir(parents=True, exist_ok=True)
        local = self.distfiles / filename
        if local.is_file():
            logger.info("归档已存在，直接使用: %s", local)
            return local

        partial = local.with_name(local.name + ".part")
        logger.info("下载: %s -> %s", url, local)
        try:
            urllib.request.urlretrieve(url, str(partial))  # nosec B310
        except (OSError, urllib.error.URLError) as e:
            partial.unlink(missing_ok=True)
            raise FetchError(f"下载失败 {url}: {e}") from e
        partial.replace(local)
        return local

    def extract(self, archive: Path, dest_dir: Path, *, fmt: str = "") -> None:
        """解压归档到 dest_dir（dest_dir 必须不存在）"""
        fmt = fmt or archive_format(archive.name)
        staging = dest_dir.parent / f".{dest_dir.name}.extract"
        if staging.exists():
            shutil.rmtree(staging)
        staging.mkdir(parents=True)
        logger.info("解压 %s -> %s", archive, dest_dir)

        try:
            if fmt == "tar":
                with tarfile.open(archive) as tf:
                    tf.extractall(path=str(staging), filter="data")  # noqa: S202
            elif fmt == "zip":
                with zipfile.ZipFile(archive) as zf:
                    zf.extractall(path=str(staging))
            else:
                run_cmd(
                    ["unrar", "x", "-o+", str(archive), f"{staging}/"],
                    label="unrar 解压",
                )
            entries = list(staging.iterdir())
            if len(entries) == 1 and entries[0].is_dir():
                entries[0].rename(dest_dir)
            else:
                staging.rename(dest_dir)
        except (tarfile.TarError, zipfile.BadZipFile) as e:
            raise FetchError(f"解压失败 {archive}: {e}") from e
        finally:
            if staging.exists():
                shutil.rmtree(staging)

    # ---- Git ----

    def clone_repo(self, url: str, dest_dir: Path) -> None:
        remote = git_remote(url)
        logger.info("克隆仓库: %s -> %s", remote, dest_dir)
        run_cmd([self.git, "clone", remote, str(dest_dir)], label="git clone")

    def update_repo(self, dest_dir: Path) -> None:
        logger.info("更新仓库: %s", dest_dir)
        run_cmd([self.git, "pull", "--ff-only"], cwd=dest_dir, label="git pull")
