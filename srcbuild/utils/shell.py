"""Shell 命令执行工具，统一子进程调用

配方中的 configure/build/install 文本是多行 shell 脚本，通过 CommandRunner
协议交给外部 shell 执行；拉取源码等固定命令走 run_cmd。
"""

from __future__ import annotations

import logging
import shlex
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from srcbuild.core.exceptions import ExecutionError

logger = logging.getLogger(__name__)


# =========================================================================
# 命令执行结果
# =========================================================================

@dataclass
class CommandResult:
    """命令执行结果（与 subprocess 解耦）"""

    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def success(self) -> bool:
        return self.returncode == 0


# =========================================================================
# 命令执行器协议
# =========================================================================

class CommandRunner(Protocol):
    """命令执行器协议，抽象构建脚本的执行

    实现此协议即可替换底层执行方式（本地 shell、远程主机等）。
    测试时注入记录型实现，无需 patch subprocess。
    """

    def run(
        self,
        command: str,
        *,
        cwd: str | Path = ".",
        env: dict[str, str] | None = None,
    ) -> CommandResult:
        """执行一段 shell 脚本并返回结果"""
        ...


# =========================================================================
# 默认实现: 本地 Shell 执行器
# =========================================================================

class LocalRunner:
    """本地 /bin/sh 执行器（默认实现）

    脚本以 ``sh -e -c`` 执行，任一行失败即终止。默认直接透传输出到终端，
    capture_output=True 时收集 stdout/stderr 供调用方检查。
    """

    def __init__(self, shell: str = "/bin/sh", capture_output: bool = False) -> None:
        self.shell = shell
        self.capture_output = capture_output

    def run(
        self,
        command: str,
        *,
        cwd: str | Path = ".",
        env: dict[str, str] | None = None,
    ) -> CommandResult:
        logger.info("执行 (cwd=%s):\n%s", cwd, command.rstrip())
        r = subprocess.run(
            [self.shell, "-e", "-c", command],
            cwd=str(cwd), env=env, check=False,
            capture_output=self.capture_output, text=True,
        )
        return CommandResult(
            returncode=r.returncode,
            stdout=r.stdout or "",
            stderr=r.stderr or "",
        )


# =========================================================================
# 便捷函数
# =========================================================================

def run_cmd(
    cmd: str | list[str], *, cwd: str | Path = ".",
    env: dict[str, str] | None = None,
    label: str = "cmd",
) -> subprocess.CompletedProcess[str]:
    """执行单条命令（不经 shell），失败抛 ExecutionError

    Args:
        cmd: 命令字符串或参数列表
        cwd: 工作目录
        env: 环境变量（不传则继承当前进程）
        label: 日志标签
    """
    args = shlex.split(cmd) if isinstance(cmd, str) else cmd
    logger.info("  %s: %s (cwd=%s)", label, " ".join(args), cwd)
    r = subprocess.run(
        args, capture_output=True, text=True,
        cwd=str(cwd), env=env, check=False,
    )
    if r.returncode != 0:
        raise ExecutionError(f"{label}失败 (rc={r.returncode}): {r.stderr[:500]}")
    return r
