"""轻量级 Web 看板（基于 Flask）

提供：已选包列表、目标列表、执行计划预览、手动触发目标执行。

启动方式: srcbuild dashboard --port 8888
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

logger = logging.getLogger(__name__)


def create_app(
    base_dir: str | Path = ".",
    config_file: str | Path | None = None,
    project_file: str | Path | None = None,
    **workspace_kwargs: Any,
) -> Flask:
    """创建看板应用

    workspace_kwargs 透传给 Workspace（如 runner / fetcher），便于测试注入。
    """
    from srcbuild.web.blueprints.packages_bp import packages_bp

    flask_app = Flask(__name__)
    flask_app.config["SRCBUILD_WORKSPACE"] = {
        "base_dir": base_dir,
        "config_file": config_file,
        "project_file": project_file,
        **workspace_kwargs,
    }
    flask_app.extensions["srcbuild_run_lock"] = threading.Lock()

    @flask_app.errorhandler(HTTPException)
    def handle_http_exception(exc):  # type: ignore[no-untyped-def]
        """将所有 HTTP 异常统一返回 JSON"""
        return jsonify(error=exc.description), exc.code

    @flask_app.errorhandler(Exception)
    def handle_generic_exception(exc):  # type: ignore[no-untyped-def]  # noqa: ARG001
        """捕获未处理异常，返回 500 JSON"""
        logger.exception("未处理的异常")
        return jsonify(error="服务器内部错误"), 500

    @flask_app.route("/api/health")
    def health():  # type: ignore[no-untyped-def]
        from srcbuild import __version__
        return jsonify(status="ok", version=__version__)

    flask_app.register_blueprint(packages_bp)
    return flask_app


app = create_app()


def run_server(
    flask_app: Flask | None = None, port: int = 8888,
    debug: bool = False, host: str = "127.0.0.1",
) -> None:
    logger.info("srcbuild 看板已启动: http://%s:%d", host, port)
    (flask_app or app).run(host=host, port=port, debug=debug)
