"""Web API 端点测试"""

from __future__ import annotations

import pytest

from srcbuild.web.app import create_app


@pytest.fixture()
def client(bsys, fake_runner, fake_fetcher):
    """以临时工作区创建 Flask 测试客户端"""
    app = create_app(bsys.base, runner=fake_runner, fetcher=fake_fetcher)
    app.config["TESTING"] = True
    with app.test_client() as c:
        yield c


class TestGlobalErrorHandlers:
    def test_404_returns_json(self, client) -> None:
        resp = client.get("/api/nonexistent")
        assert resp.status_code == 404
        assert "error" in resp.get_json()

    def test_405_returns_json(self, client) -> None:
        resp = client.delete("/api/packages")
        assert resp.status_code == 405
        assert "error" in resp.get_json()

    def test_health(self, client) -> None:
        assert client.get("/api/health").get_json()["status"] == "ok"


class TestPackages:
    def test_list(self, bsys, client) -> None:
        bsys.recipe("zlib-1.2.8")
        bsys.recipe("app", builddep=["zlib"])
        data = client.get("/api/packages").get_json()
        assert data["project"] == "default"
        assert [p["name"] for p in data["packages"]] == ["app", "zlib-1.2.8"]
        assert data["packages"][1]["version"] == "1.2.8"

    def test_get(self, bsys, client) -> None:
        bsys.recipe("zlib-1.2.8")
        data = client.get("/api/packages/zlib-1.2.8").get_json()
        assert data["package"]["metaname"] == "zlib"
        assert "zlib_install" in data["targets"]

    def test_get_missing(self, bsys, client) -> None:
        bsys.recipe("zlib")
        assert client.get("/api/packages/ghost").status_code == 404

    def test_config_error_is_400(self, bsys, client) -> None:
        bsys.recipe("app", builddep=["ghost"])
        resp = client.get("/api/packages/app")
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "UNRESOLVED_DEPENDENCY"


class TestTargetsAndPlan:
    def test_targets(self, bsys, client) -> None:
        bsys.recipe("zlib")
        targets = {t["name"]: t for t in client.get("/api/targets").get_json()["targets"]}
        assert targets["zlib_build"]["nodes"] == ["zlib_build"]
        assert targets["default"]["kind"] == "rollup"

    def test_plan(self, bsys, client) -> None:
        bsys.recipe("zlib")
        data = client.get("/api/plan/zlib_configure").get_json()
        assert data["plan"] == ["zlib_fetch", "zlib_configure"]

    def test_plan_unknown(self, bsys, client) -> None:
        bsys.recipe("zlib")
        assert client.get("/api/plan/nope").status_code == 404

    def test_queries_do_not_create_install_root(self, bsys, client) -> None:
        bsys.recipe("zlib")
        for url in ("/api/packages", "/api/packages/zlib", "/api/targets", "/api/plan/zlib"):
            assert client.get(url).status_code == 200
        assert not (bsys.base / "root").exists()
        client.post("/api/targets/zlib_fetch/run")
        assert (bsys.base / "root" / "default").is_dir()


class TestRun:
    def test_run_success(self, bsys, client, fake_fetcher) -> None:
        bsys.recipe("zlib")
        resp = client.post("/api/targets/zlib/run", json={"parallel": 2})
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["success"] is True
        assert data["summary"]["done"] == 4
        assert fake_fetcher.ops() == ["download"]

    def test_run_failure_returns_report(self, bsys, client, fake_runner) -> None:
        bsys.recipe("zlib", build="./broken-build")
        fake_runner.fail_on.add("broken-build")
        resp = client.post("/api/targets/zlib/run")
        assert resp.status_code == 400
        data = resp.get_json()
        assert data["code"] == "STAGE_EXECUTION_ERROR"
        assert data["report"]["summary"]["failed"] == 1

    def test_run_unknown_target(self, bsys, client) -> None:
        bsys.recipe("zlib")
        assert client.post("/api/targets/nope/run").status_code == 404

    @pytest.mark.parametrize("parallel", [0, "2", True])
    def test_invalid_parallel(self, bsys, client, parallel) -> None:
        bsys.recipe("zlib")
        resp = client.post("/api/targets/zlib/run", json={"parallel": parallel})
        assert resp.status_code == 400

    def test_fresh_workspace_per_request(self, bsys, client, fake_runner) -> None:
        bsys.recipe("zlib")
        client.post("/api/targets/zlib_build/run")
        before = len(fake_runner.calls)
        client.post("/api/targets/zlib_build/run")
        # 第二次请求 fetch/configure 已完成，只重跑 build
        assert len(fake_runner.calls) == before + 1
