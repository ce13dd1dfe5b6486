"""统一异常体系

所有业务异常继承 SrcBuildError。CLI 层据此输出友好提示并以非零码退出，
Web 层据此映射 HTTP 状态码。

分层:
  - 配置期错误（ConfigError 及子类）: 配方/项目/全局配置加载、阶段图构建时抛出，
    任何阶段执行之前即中止
  - 拉取分派错误（FetchError 及子类）: 源码地址无法归类
  - 执行期错误（ExecutionError 及子类）: 外部命令返回失败
"""

from __future__ import annotations

from typing import Any


class SrcBuildError(Exception):
    """框架基础异常"""

    code: str = "UNKNOWN"

    def __init__(self, message: str) -> None:
        super().__init__(message)


# =========================================================================
# 配置期错误
# =========================================================================

class ConfigError(SrcBuildError):
    """配置文件缺失或内容无效"""

    code = "CONFIG_ERROR"


class SchemaTypeError(ConfigError, TypeError):
    """字段类型与声明不符"""

    code = "SCHEMA_TYPE_ERROR"


class MissingFieldError(ConfigError):
    """缺少必填字段（如配方的 source）"""

    code = "MISSING_FIELD"

    def __init__(self, message: str, field: str = "") -> None:
        super().__init__(message)
        self.field = field


class NameValidationError(ConfigError, ValueError):
    """项目名包含非法字符"""

    code = "NAME_VALIDATION_ERROR"


class UnresolvedDependencyError(ConfigError):
    """依赖引用了未知配方"""

    code = "UNRESOLVED_DEPENDENCY"

    def __init__(self, message: str, package: str = "", dependency: str = "") -> None:
        super().__init__(message)
        self.package = package
        self.dependency = dependency


class DependencyCycleError(ConfigError):
    """阶段图存在环"""

    code = "DEPENDENCY_CYCLE"


class UnknownTargetError(SrcBuildError):
    """请求的目标不存在"""

    code = "UNKNOWN_TARGET"


# =========================================================================
# 拉取分派错误
# =========================================================================

class FetchError(SrcBuildError):
    """源码拉取失败"""

    code = "FETCH_ERROR"


class UnsupportedProtocolError(FetchError):
    """源码地址协议为空或无法识别"""

    code = "UNSUPPORTED_PROTOCOL"


class UnsupportedArchiveFormatError(FetchError):
    """不支持的归档格式"""

    code = "UNSUPPORTED_ARCHIVE_FORMAT"


# =========================================================================
# 执行期错误
# =========================================================================

class ExecutionError(SrcBuildError):
    """外部命令执行失败"""

    code = "EXECUTION_ERROR"


class StageExecutionError(ExecutionError):
    """某个包的某个阶段执行失败

    report 在执行器汇总运行结果后回填，便于调用方查看已完成/已取消的阶段。
    """

    code = "STAGE_EXECUTION_ERROR"

    def __init__(self, message: str, package: str = "", stage: str = "") -> None:
        super().__init__(message)
        self.package = package
        self.stage = stage
        self.report: Any = None
