"""默认命令生成

autoconfigure/autobuild/autoinstall 打开时，在用户命令之后追加的标准命令。
生成的文本仍包含 ${SRCDIR} 等占位符，由加载器统一替换。
"""

from __future__ import annotations

from pathlib import Path

from srcbuild.core.toolenv import ToolEnv


def default_configure(env: ToolEnv, configure_flags: str = "") -> str:
    """autotools 风格配置：缺少 configure 脚本时先 autoreconf，再在编译目录中执行"""
    # configure_flags 常写成 YAML 多行块，按行拼接成一行参数
    args = " ".join(line.strip() for line in configure_flags.splitlines() if line.strip())
    return (
        "test -x ${SRCDIR}/configure || autoreconf -fi ${SRCDIR}\n"
        + env.shell_prefix()
        + f"${{SRCDIR}}/configure {args}".rstrip()
        + "\n"
    )


def default_build(env: ToolEnv) -> str:
    return env.shell_prefix() + f"{env.make} -j{env.jobs}\n"


def default_install(env: ToolEnv, install_root: Path) -> str:
    return f"{env.make} DESTDIR={install_root}/ install\n"


def append_command(user: str, generated: str) -> str:
    """用户命令在前、默认命令在后，拼成同一阶段的脚本"""
    if not user:
        return generated
    if not user.endswith("\n"):
        user += "\n"
    return user + generated
