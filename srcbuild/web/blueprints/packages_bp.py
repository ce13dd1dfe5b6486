"""包与目标 API Blueprint

每个请求按应用配置构造新的 Workspace，读取最新的配方与项目文件。
GET 查询使用只读工作区，不在磁盘上创建安装根目录。
执行请求经应用级锁串行化，同一时间只有一次构建在跑。
"""

from __future__ import annotations

import logging

from flask import Blueprint, Response, current_app, request

from srcbuild.core.exceptions import SrcBuildError, StageExecutionError, UnknownTargetError
from srcbuild.services.workspace import Workspace
from srcbuild.web.responses import bad_request, not_found, ok

logger = logging.getLogger(__name__)

packages_bp = Blueprint("packages", __name__, url_prefix="/api")


def _workspace(**kwargs: object) -> Workspace:
    settings = dict(current_app.config["SRCBUILD_WORKSPACE"])
    settings.update(kwargs)
    return Workspace(**settings)  # type: ignore[arg-type]


@packages_bp.route("/packages", methods=["GET"])
def list_packages() -> tuple[Response, int] | Response:
    try:
        ws = _workspace(read_only=True)
        recipes = ws.recipes
    except SrcBuildError as e:
        return bad_request(str(e), code=e.code)
    return ok({
        "project": ws.project.name,
        "packages": [r.summary() for r in recipes.values()],
    })


@packages_bp.route("/packages/<name>", methods=["GET"])
def get_package(name: str) -> tuple[Response, int] | Response:
    try:
        ws = _workspace(read_only=True)
        recipe = ws.recipes.get(name)
        if recipe is None:
            return not_found("包")
        names = ws.graph.targets_for(name)
    except SrcBuildError as e:
        return bad_request(str(e), code=e.code)
    return ok({"package": recipe.summary(), "targets": names})


@packages_bp.route("/targets", methods=["GET"])
def list_targets() -> tuple[Response, int] | Response:
    try:
        graph = _workspace(read_only=True).graph
    except SrcBuildError as e:
        return bad_request(str(e), code=e.code)
    return ok({"targets": [
        {
            "name": t.name,
            "kind": t.kind,
            "nodes": [graph.node(k).label for k in t.nodes],
        }
        for t in graph.targets.values()
    ]})


@packages_bp.route("/plan/<target>", methods=["GET"])
def plan(target: str) -> tuple[Response, int] | Response:
    try:
        nodes = _workspace(read_only=True).graph.plan(target)
    except UnknownTargetError:
        return not_found("目标")
    except SrcBuildError as e:
        return bad_request(str(e), code=e.code)
    return ok({"target": target, "plan": [n.label for n in nodes]})


@packages_bp.route("/targets/<target>/run", methods=["POST"])
def run(target: str) -> tuple[Response, int] | Response:
    body = request.get_json(silent=True) or {}
    parallel = body.get("parallel", 1)
    if not isinstance(parallel, int) or isinstance(parallel, bool) or parallel < 1:
        return bad_request("parallel 必须是正整数")

    with current_app.extensions["srcbuild_run_lock"]:
        try:
            report = _workspace(max_workers=parallel).run(target)
        except UnknownTargetError:
            return not_found("目标")
        except StageExecutionError as e:
            report_data = e.report.to_dict() if e.report is not None else None
            return bad_request(str(e), code=e.code, report=report_data)
        except SrcBuildError as e:
            return bad_request(str(e), code=e.code)
    logger.info("Web 触发执行完成: %s", target)
    return ok(report.to_dict())
