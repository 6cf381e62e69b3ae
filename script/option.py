import enum
import typing
from collections.abc import Iterable

from errors import InvalidOptionCombination, UnrecognizedOption


class option(enum.StrEnum):
    """可识别的构建选项，均为只有存在与否的布尔开关"""

    cxx = "enable-cxx"
    fortran = "enable-fortran"
    java = "enable-java"
    objc = "enable-objc"
    objcxx = "enable-objcxx"
    all_languages = "enable-all-languages"
    nls = "enable-nls"
    profiled_build = "enable-profiled-build"
    multilib = "enable-multilib"

    @property
    def description(self) -> str:
        return option_description[self]


option_description: typing.Final[dict[option, str]] = {
    option.cxx: "Build the g++ compiler",
    option.fortran: "Build the gfortran compiler",
    option.java: "Build the gcj compiler",
    option.objc: "Enable Objective-C language support",
    option.objcxx: "Enable Objective-C++ language support",
    option.all_languages: "Enable all compilers and languages, except Ada",
    option.nls: "Build with native language support",
    option.profiled_build: "Make use of profile guided optimization when bootstrapping GCC",
    option.multilib: "Build with multilib support",
}


class language(enum.StrEnum):
    """gcc前端语言，定义顺序即--enable-languages中的规范顺序"""

    c = "c"
    cxx = "c++"
    fortran = "fortran"
    java = "java"
    objc = "objc"
    objcxx = "obj-c++"


class build_strategy(enum.StrEnum):
    """自举方式，值为对应的make目标"""

    bootstrap = "bootstrap"
    profiled = "profiledbootstrap"


# 除Ada外的所有语言，Ada需要已有的gnat来自举
all_language_list: typing.Final[tuple[language, ...]] = tuple(language)

# 互斥的选项对，目前所有组合均合法
incompatible_option_list: typing.Final[tuple[tuple[option, option], ...]] = ()


class option_set:
    """不可变的选项集合"""

    _options: frozenset[option]

    def __init__(self, options: Iterable[option] = ()) -> None:
        self._options = frozenset(options)
        for first, second in incompatible_option_list:
            if first in self._options and second in self._options:
                raise InvalidOptionCombination(first, second)

    @classmethod
    def parse(cls, names: Iterable[str]) -> "option_set":
        """从选项名列表构造选项集合，允许带有--前缀

        Args:
            names (Iterable[str]): 选项名列表

        Raises:
            UnrecognizedOption: 存在无法识别的选项

        Returns:
            option_set: 选项集合
        """
        options: list[option] = []
        for name in names:
            try:
                options.append(option(name.removeprefix("--")))
            except ValueError:
                raise UnrecognizedOption(name) from None
        return cls(options)

    def __contains__(self, item: object) -> bool:
        return item in self._options

    def __iter__(self):
        # 按定义顺序遍历，保证结果与输入顺序无关
        return (item for item in option if item in self._options)

    def __len__(self) -> int:
        return len(self._options)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, option_set) and self._options == other._options

    def __hash__(self) -> int:
        return hash(self._options)

    def __repr__(self) -> str:
        return f"option_set({[str(item) for item in self]})"


class evaluation:
    """选项求值结果"""

    languages: tuple[language, ...]  # 要构建的语言，c总在首位
    feature_args: tuple[str, ...]  # nls和multilib相关的配置选项
    strategy: build_strategy  # 自举方式

    def __init__(self, languages: tuple[language, ...], feature_args: tuple[str, ...], strategy: build_strategy) -> None:
        self.languages = languages
        self.feature_args = feature_args
        self.strategy = strategy


def evaluate(options: option_set) -> evaluation:
    """根据选项集合计算语言列表、特性选项和自举方式，无副作用

    Args:
        options (option_set): 选项集合

    Returns:
        evaluation: 求值结果
    """
    selected: set[language] = {language.c}
    nls = False
    multilib = False
    profiled = False
    all_languages = False
    for item in options:
        match item:
            case option.cxx:
                selected.add(language.cxx)
            case option.fortran:
                selected.add(language.fortran)
            case option.java:
                selected.add(language.java)
            case option.objc:
                selected.add(language.objc)
            case option.objcxx:
                selected.add(language.objcxx)
            case option.all_languages:
                all_languages = True
            case option.nls:
                nls = True
            case option.profiled_build:
                profiled = True
            case option.multilib:
                multilib = True
            case _:
                typing.assert_never(item)

    if all_languages:
        languages = all_language_list
    else:
        languages = tuple(lang for lang in language if lang in selected)

    feature_args: list[str] = []
    # 注意极性：未指定enable-nls时才禁用nls，指定时保持gcc默认
    if not nls:
        feature_args.append("--disable-nls")
    feature_args.append("--enable-multilib" if multilib else "--disable-multilib")

    strategy = build_strategy.profiled if profiled else build_strategy.bootstrap
    return evaluation(languages, tuple(feature_args), strategy)


assert __name__ != "__main__", "Import this file instead of running it directly."
