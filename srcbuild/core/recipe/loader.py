"""配方加载器

职责:
- 按 schema 解析 pkg/<标识>.yml（字段名大小写不敏感，未知字段忽略）
- 校验必填字段与字段类型，失败时不登记任何部分结果
- 追加 autoconfigure/autobuild/autoinstall 默认命令
- 对源码地址、全部命令文本和导出/安装映射做变量替换

配方示例:

    source: https://example.org/libevent-${PKGVER}.tar.gz
    builddep:
      - zlib
    exportdep:
      - openssl
    configure_flags: |
      --disable-static
    export:
      ${SRCDIR}/include/event.h: /usr/include/event.h
    install:
      ${OBJDIR}/tool: /usr/bin/tool
    cflags: -O2
    jobs: 4
"""

from __future__ import annotations

import logging
from pathlib import Path
from types import MappingProxyType
from typing import Any, Iterable, Mapping

import yaml

from srcbuild.core.config import Config
from srcbuild.core.exceptions import ConfigError, MissingFieldError
from srcbuild.core.layout import Layout
from srcbuild.core.recipe.commands import (
    append_command,
    default_build,
    default_configure,
    default_install,
)
from srcbuild.core.recipe.models import Recipe, split_name
from srcbuild.core.schema import FieldKind, FieldSpec, parse_fields
from srcbuild.core.toolenv import ToolOverrides, merge_toolenv
from srcbuild.core.variables import RecipeVariables, expand, expand_map
from srcbuild.utils.yaml_io import load_yaml

logger = logging.getLogger(__name__)

RECIPE_FIELDS: dict[str, FieldSpec] = {
    "source": FieldSpec("source", FieldKind.STR),
    "exportdep": FieldSpec("export_deps", FieldKind.STR_LIST),
    "builddep": FieldSpec("build_deps", FieldKind.STR_LIST),
    "autoconfigure": FieldSpec("autoconfigure", FieldKind.BOOL),
    "autobuild": FieldSpec("autobuild", FieldKind.BOOL),
    "autoinstall": FieldSpec("autoinstall", FieldKind.BOOL),
    "bsdstyle": FieldSpec("bsdstyle", FieldKind.BOOL),
    "configure": FieldSpec("configure", FieldKind.STR),
    "configure_flags": FieldSpec("configure_flags", FieldKind.STR),
    "build": FieldSpec("build", FieldKind.STR),
    "export": FieldSpec("export", FieldKind.STR_MAP),
    "install": FieldSpec("install", FieldKind.STR_MAP),
    "install_cmd": FieldSpec("install_cmd", FieldKind.STR),
    "make": FieldSpec("make", FieldKind.STR),
    "cc": FieldSpec("cc", FieldKind.STR),
    "cpp": FieldSpec("cpp", FieldKind.STR),
    "cxx": FieldSpec("cxx", FieldKind.STR),
    "c++": FieldSpec("cxx", FieldKind.STR),
    "cflags": FieldSpec("cflags", FieldKind.STR),
    "cppflags": FieldSpec("cppflags", FieldKind.STR),
    "cxxflags": FieldSpec("cxxflags", FieldKind.STR),
    "ldflags": FieldSpec("ldflags", FieldKind.STR),
    "jobs": FieldSpec("jobs", FieldKind.INT),
}

MANDATORY_FIELDS = ("source",)

_OVERRIDE_ATTRS = (
    "make", "cc", "cpp", "cxx", "cflags", "cppflags", "cxxflags", "ldflags", "jobs",
)


class RecipeLoader:
    """配方加载器 - 依赖已定稿的全局配置与项目安装根目录"""

    def __init__(self, layout: Layout, config: Config, install_root: Path) -> None:
        self.layout = layout
        self.config = config
        self.install_root = Path(install_root)

    def load(self, identifier: str) -> Recipe:
        """从配方目录加载单个配方"""
        path = self.layout.recipe_path(identifier)
        if not path.is_file():
            raise ConfigError(f"配方文件不存在: {path}")
        try:
            data = load_yaml(path)
        except yaml.YAMLError as e:
            raise ConfigError(f"配方文件格式错误: {path}: {e}") from e
        return self.parse(identifier, data)

    def load_many(self, identifiers: Iterable[str]) -> dict[str, Recipe]:
        """按给定顺序加载多个配方，任一失败则整体失败"""
        recipes: dict[str, Recipe] = {}
        for identifier in identifiers:
            recipes[identifier] = self.load(identifier)
        logger.info("已加载 %d 个配方", len(recipes))
        return recipes

    def parse(self, identifier: str, data: Mapping[str, Any]) -> Recipe:
        """把原始键值解析为 Recipe"""
        present = {str(k).lower() for k, v in data.items() if v is not None}
        for required in MANDATORY_FIELDS:
            if required not in present:
                raise MissingFieldError(
                    f"包 '{identifier}' 缺少必填字段 '{required}'", field=required,
                )

        values, unknown = parse_fields(data, RECIPE_FIELDS, context=f"包 '{identifier}'")
        if unknown:
            logger.debug("包 %s 忽略未识别字段: %s", identifier, ", ".join(unknown))
        if not values["source"].strip():
            raise MissingFieldError(
                f"包 '{identifier}' 的 source 不能为空", field="source",
            )

        metaname, version = split_name(identifier)
        srcdir, objdir = self.layout.package_dirs(identifier, metaname)
        overrides = ToolOverrides(**{
            k: values.pop(k) for k in _OVERRIDE_ATTRS if k in values
        })

        bsdstyle = values.get("bsdstyle", False)
        autoconfigure = values.get("autoconfigure", True) and not bsdstyle
        autobuild = values.get("autobuild", True)
        autoinstall = values.get("autoinstall", True)

        env = merge_toolenv(self.config, overrides)
        configure = values.get("configure", "")
        if autoconfigure:
            configure = append_command(
                configure, default_configure(env, values.get("configure_flags", "")),
            )
        build = values.get("build", "")
        if autobuild:
            build = append_command(build, default_build(env))
        install_cmd = values.get("install_cmd", "")
        install_command = install_cmd
        if autoinstall:
            install_command = append_command(
                install_cmd, default_install(env, self.install_root),
            )

        variables = RecipeVariables.of(
            srcdir=srcdir, objdir=objdir, rootdir=self.install_root,
            pkgname=metaname, pkgver=version,
        )
        return Recipe(
            name=identifier,
            metaname=metaname,
            version=version,
            source=expand(values["source"], variables),
            srcdir=srcdir,
            objdir=objdir,
            configure=expand(configure, variables),
            configure_flags=expand(values.get("configure_flags", ""), variables),
            build=expand(build, variables),
            install_cmd=expand(install_cmd, variables),
            install_command=expand(install_command, variables),
            export=MappingProxyType(expand_map(values.get("export", {}), variables)),
            install=MappingProxyType(expand_map(values.get("install", {}), variables)),
            export_deps=values.get("export_deps", ()),
            build_deps=values.get("build_deps", ()),
            autoconfigure=autoconfigure,
            autobuild=autobuild,
            autoinstall=autoinstall,
            bsdstyle=bsdstyle,
            overrides=overrides,
        )
