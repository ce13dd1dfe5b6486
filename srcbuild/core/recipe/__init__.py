"""配方模块

拆分说明:
- models.py: Recipe 数据类与包名/版本拆分
- commands.py: autoconfigure/autobuild/autoinstall 默认命令
- loader.py: schema 解析、默认命令补全、变量替换
"""

from srcbuild.core.recipe.loader import RecipeLoader
from srcbuild.core.recipe.models import Recipe, split_name

__all__ = [
    "Recipe",
    "RecipeLoader",
    "split_name",
]
