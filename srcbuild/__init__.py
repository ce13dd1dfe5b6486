"""srcbuild - 基于源码的包构建编排器

从 pkg/ 目录中的声明式配方出发，完成拉取源码、配置、编译、导出、安装，
并按包间依赖关系驱动各阶段执行，已完成的工作自动跳过。
"""

__version__ = "0.1.0"
