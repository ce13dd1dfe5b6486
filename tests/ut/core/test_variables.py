"""变量替换测试"""

from __future__ import annotations

from srcbuild.core.variables import RecipeVariables, expand, expand_map

VARS = RecipeVariables.of(
    srcdir="/b/src/libevent/libevent-2.0.21-stable",
    objdir="/b/obj/libevent/libevent-2.0.21-stable",
    rootdir="/b/root/default",
    pkgname="libevent",
    pkgver="2.0.21-stable",
)


class TestExpand:
    def test_all_placeholders(self) -> None:
        text = "${SRCDIR} ${OBJDIR} ${ROOTDIR} ${PKGNAME} ${PKGVER}"
        assert expand(text, VARS) == (
            "/b/src/libevent/libevent-2.0.21-stable "
            "/b/obj/libevent/libevent-2.0.21-stable "
            "/b/root/default libevent 2.0.21-stable"
        )

    def test_repeated_placeholder(self) -> None:
        assert expand("${PKGNAME}-${PKGNAME}", VARS) == "libevent-libevent"

    def test_unknown_placeholder_kept(self) -> None:
        assert expand("${PREFIX}/${PKGNAME}", VARS) == "${PREFIX}/libevent"

    def test_non_string_passthrough(self) -> None:
        assert expand(3, VARS) == 3
        assert expand(None, VARS) is None

    def test_no_recursion(self) -> None:
        tricky = RecipeVariables.of(
            srcdir="${OBJDIR}", objdir="/obj", rootdir="/r", pkgname="p", pkgver="",
        )
        assert expand("${SRCDIR}", tricky) == "${OBJDIR}"

    def test_empty_version(self) -> None:
        plain = RecipeVariables.of(srcdir="/s", objdir="/o", rootdir="/r", pkgname="zlib", pkgver="")
        assert expand("zlib-${PKGVER}.tar.gz", plain) == "zlib-.tar.gz"


class TestExpandMap:
    def test_keys_and_values(self) -> None:
        result = expand_map({"${OBJDIR}/tool": "/usr/bin/${PKGNAME}"}, VARS)
        assert result == {
            "/b/obj/libevent/libevent-2.0.21-stable/tool": "/usr/bin/libevent",
        }
