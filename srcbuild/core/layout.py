"""工作区目录布局

所有路径由基准目录一次性推导，替代散落的全局路径常量:

  <base>/pkg/<配方>.yml        配方目录
  <base>/src/<metaname>[/<name>] 源码目录
  <base>/obj/<metaname>[/<name>] 编译目录
  <base>/distfiles/             归档下载缓存
  <base>/root/<项目名>/          项目安装根目录
  <base>/configuration.yml      全局工具链配置
  <base>/project.yml            项目选择文件
  <base>/rootdirs.lst           安装根目录骨架（可选）
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

RECIPE_SUFFIX = ".yml"


@dataclass(frozen=True)
class Layout:
    """工作区路径集合"""

    base_dir: Path
    recipe_dir: Path
    src_root: Path
    obj_root: Path
    distfiles: Path
    install_base: Path
    config_file: Path
    project_file: Path
    rootdirs_file: Path

    @classmethod
    def from_base(
        cls,
        base_dir: str | Path,
        *,
        config_file: str | Path | None = None,
        project_file: str | Path | None = None,
    ) -> Layout:
        base = Path(base_dir).resolve()
        return cls(
            base_dir=base,
            recipe_dir=base / "pkg",
            src_root=base / "src",
            obj_root=base / "obj",
            distfiles=base / "distfiles",
            install_base=base / "root",
            config_file=Path(config_file) if config_file else base / "configuration.yml",
            project_file=Path(project_file) if project_file else base / "project.yml",
            rootdirs_file=base / "rootdirs.lst",
        )

    def recipe_path(self, identifier: str) -> Path:
        return self.recipe_dir / f"{identifier}{RECIPE_SUFFIX}"

    def discover_recipes(self) -> list[str]:
        """列出配方目录下全部配方标识（文件名去掉扩展名），按名称排序"""
        if not self.recipe_dir.is_dir():
            return []
        return sorted(
            p.stem for p in self.recipe_dir.iterdir()
            if p.is_file() and p.suffix == RECIPE_SUFFIX and not p.name.startswith(".")
        )

    def install_root(self, project_name: str) -> Path:
        return self.install_base / project_name

    def package_dirs(self, name: str, metaname: str) -> tuple[Path, Path]:
        """计算 (srcdir, objdir)，带版本的包多一层以完整名命名的子目录"""
        if name != metaname:
            return self.src_root / metaname / name, self.obj_root / metaname / name
        return self.src_root / metaname, self.obj_root / metaname
