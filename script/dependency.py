import dataclasses
import os
import typing
from collections.abc import Callable, Iterable, Mapping

from errors import UnresolvedDependency

# 按注册顺序排列的构建依赖
dependency_list: typing.Final[tuple[str, ...]] = ("gmp", "mpfr", "libmpc")

# gcc的configure中对应的--with-*选项名
configure_name_list: typing.Final[dict[str, str]] = {"gmp": "gmp", "mpfr": "mpfr", "libmpc": "mpc"}

# 依赖查询接口：返回安装前缀，未找到返回None
registry = Callable[[str], str | None]


@dataclasses.dataclass(frozen=True)
class dependency:
    name: str  # 依赖名
    resolved_prefix: str  # 安装前缀

    @property
    def option(self) -> str:
        return f"--with-{configure_name_list.get(self.name, self.name)}={self.resolved_prefix}"


class prefix_registry:
    """在<root>/opt/<name>中查找已安装的依赖，允许通过overrides显式指定前缀"""

    root: str  # 包管理器安装根目录
    overrides: dict[str, str]  # 显式指定的依赖前缀

    def __init__(self, root: str, overrides: Mapping[str, str] | None = None) -> None:
        self.root = os.path.abspath(root)
        self.overrides = dict(overrides or {})

    def __call__(self, name: str) -> str | None:
        prefix = self.overrides.get(name, os.path.join(self.root, "opt", name))
        return prefix if os.path.isdir(prefix) else None


def parse_overrides(items: Iterable[str]) -> dict[str, str]:
    """解析NAME=PATH形式的依赖前缀

    Args:
        items (Iterable[str]): 用户输入的依赖前缀列表

    Returns:
        dict[str, str]: {依赖名:前缀}
    """
    overrides: dict[str, str] = {}
    for item in items:
        name, sep, prefix = item.partition("=")
        assert sep and name in dependency_list, f'Invalid dependency prefix "{item}", should be one of {"|".join(dependency_list)}=PATH.'
        overrides[name] = os.path.abspath(prefix)
    return overrides


def resolve_dependencies(lookup: registry, names: Iterable[str] = dependency_list) -> list[dependency]:
    """解析所有依赖的安装前缀，任一依赖缺失即失败

    Args:
        lookup (registry): 依赖查询接口
        names (Iterable[str], optional): 依赖名列表. 默认为dependency_list.

    Raises:
        UnresolvedDependency: 依赖未安装或前缀不存在

    Returns:
        list[dependency]: 按注册顺序排列的依赖
    """
    result: list[dependency] = []
    for name in names:
        prefix = lookup(name)
        if prefix is None or not os.path.isdir(prefix):
            raise UnresolvedDependency(name, prefix)
        result.append(dependency(name, prefix))
    return result


def get_dependency_options(dependencies: Iterable[dependency]) -> list[str]:
    return [dep.option for dep in dependencies]


assert __name__ != "__main__", "Import this file instead of running it directly."
