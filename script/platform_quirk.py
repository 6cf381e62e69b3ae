import dataclasses
import os
import platform
import re
import sys
import types
import typing
from collections.abc import Iterator, Mapping

import packaging.version as version

import common
from errors import KnownToolchainIncompatibility, SysrootUnavailable

# 接受-m64的架构，aarch64和riscv64等架构的gcc没有-m64选项
m64_arch_list: typing.Final[tuple[str, ...]] = ("x86_64", "amd64", "ppc64", "ppc64le", "s390x", "sparc64")

# 系统头文件目录，其中存在stdio.h时认为命令行开发工具已安装
system_header_dir: typing.Final[str] = "/usr/include"

# 强制64位时需要追加-m64的环境变量
m64_variable_list: typing.Final[tuple[str, ...]] = ("CFLAGS", "CXXFLAGS", "LDFLAGS")

# 该构建与libstdc++的调试迭代器检查不兼容
# https://trac.macports.org/ticket/27237
glibcxx_debug_flag_list: typing.Final[tuple[str, ...]] = ("-U_GLIBCXX_DEBUG", "-U_GLIBCXX_DEBUG_PEDANTIC")


class build_environment:
    """不可变的构建环境变量，所有修改均返回新对象"""

    _variables: Mapping[str, str]

    def __init__(self, variables: Mapping[str, str] | None = None) -> None:
        self._variables = types.MappingProxyType(dict(variables or {}))

    @classmethod
    def from_os(cls) -> "build_environment":
        return cls(os.environ)

    def __getitem__(self, name: str) -> str:
        return self._variables[name]

    def __contains__(self, name: object) -> bool:
        return name in self._variables

    def __iter__(self) -> Iterator[str]:
        return iter(self._variables)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, build_environment) and dict(self._variables) == dict(other._variables)

    def get(self, name: str, default: str | None = None) -> str | None:
        return self._variables.get(name, default)

    def as_dict(self) -> dict[str, str]:
        return dict(self._variables)

    def set(self, name: str, value: str) -> "build_environment":
        return build_environment({**self._variables, name: value})

    def delete(self, name: str) -> "build_environment":
        return build_environment({key: value for key, value in self._variables.items() if key != name})

    def append(self, name: str, *flags: str) -> "build_environment":
        """向空格分隔的标志变量追加标志，已存在的标志不会重复追加

        Args:
            name (str): 环境变量名
            flags (tuple[str, ...]): 要追加的标志，每项可包含多个以空格分隔的标志
        """
        tokens = self._variables.get(name, "").split()
        for flag in (token for item in flags for token in item.split()):
            if flag not in tokens:
                tokens.append(flag)
        return self.set(name, " ".join(tokens))


class host_info:
    """宿主平台信息"""

    prefer_64_bit: bool  # 宿主是否倾向于64位构建且编译器接受-m64
    clt_installed: bool  # 是否存在完整的命令行工具头文件
    sdk_path: str | None  # SDK所在路径，仅在缺少命令行工具时需要
    compiler: str  # 宿主主编译器名称
    compiler_build: str | None  # 宿主编译器的构建号

    def __init__(
        self,
        prefer_64_bit: bool = True,
        clt_installed: bool = True,
        sdk_path: str | None = None,
        compiler: str = "gcc",
        compiler_build: str | None = None,
    ) -> None:
        self.prefer_64_bit = prefer_64_bit
        self.clt_installed = clt_installed
        self.sdk_path = sdk_path
        self.compiler = compiler
        self.compiler_build = compiler_build


def get_sdk_path() -> str | None:
    """获取SDK路径

    Returns:
        str | None: SDK路径，获取失败返回None
    """
    result = common.run_command("xcrun --show-sdk-path", ignore_error=True, capture=True, echo=False)
    if result and result.stdout.strip():
        return result.stdout.strip()
    return None


def parse_compiler_version(output: str) -> tuple[str, str | None]:
    """从cc --version的输出中解析编译器名称和构建号

    Args:
        output (str): cc --version的输出

    Returns:
        tuple[str, str | None]: (编译器名称, 构建号)
    """
    if "clang" not in output.lower():
        return "gcc", None
    found = re.search(r"clang-(\d+(?:\.\d+)*)", output)
    return "clang", found.group(1) if found else None


def detect_host(cc: str | None = None) -> host_info:
    """检测宿主平台信息

    Args:
        cc (str | None, optional): 宿主主编译器. 默认为$CC或cc.

    Returns:
        host_info: 宿主平台信息
    """
    prefer_64_bit = sys.maxsize > 2**32 and platform.machine().lower() in m64_arch_list
    clt_installed = os.path.exists(os.path.join(system_header_dir, "stdio.h"))
    sdk_path = None if clt_installed else get_sdk_path()
    cc = cc or os.environ.get("CC", "cc")
    result = common.run_command(f"{cc} --version", ignore_error=True, capture=True, echo=False)
    compiler, build = parse_compiler_version(result.stdout if result else "")
    return host_info(prefer_64_bit, clt_installed, sdk_path, compiler, build)


@dataclasses.dataclass(frozen=True)
class platform_quirks:
    force_64bit: bool
    strip_forced_linker: bool
    extra_compile_flags: tuple[str, ...]
    needs_explicit_sysroot: bool
    sysroot_path: str | None
    native_header_dir: str | None


def detect_quirks(host: host_info) -> platform_quirks:
    needs_explicit_sysroot = not host.clt_installed
    return platform_quirks(
        force_64bit=host.prefer_64_bit,
        # 强制使用特定链接器会导致gcc构建失败
        strip_forced_linker=True,
        extra_compile_flags=glibcxx_debug_flag_list,
        needs_explicit_sysroot=needs_explicit_sysroot,
        sysroot_path=host.sdk_path if needs_explicit_sysroot else None,
        native_header_dir=system_header_dir if needs_explicit_sysroot else None,
    )


def apply_quirks(quirks: platform_quirks, env: build_environment) -> build_environment:
    """将平台修正应用到构建环境上

    Args:
        quirks (platform_quirks): 平台修正
        env (build_environment): 原构建环境

    Returns:
        build_environment: 修正后的构建环境
    """
    if quirks.force_64bit:
        for name in m64_variable_list:
            env = env.append(name, "-m64")
    if quirks.strip_forced_linker:
        env = env.delete("LD")
    return env.append("CXXFLAGS", *quirks.extra_compile_flags)


def get_quirk_options(quirks: platform_quirks) -> list[str]:
    """获取平台相关的配置选项，仅有Xcode而无命令行工具时需要指定sysroot

    Raises:
        SysrootUnavailable: 需要sysroot但无法获取SDK路径
    """
    if not quirks.needs_explicit_sysroot:
        return []
    if not quirks.sysroot_path:
        raise SysrootUnavailable(
            "The command line tools headers are missing and the SDK path cannot be found.",
            {"native header dir": quirks.native_header_dir or ""},
        )
    return [f"--with-native-system-header-dir={quirks.native_header_dir}", f"--with-sysroot={quirks.sysroot_path}"]


class toolchain_failure:
    """已知无法构建gcc的宿主编译器，构建号不低于build时触发"""

    compiler: str
    build: str
    cause: str
    references: tuple[str, ...]

    def __init__(self, compiler: str, build: str, cause: str, references: tuple[str, ...]) -> None:
        self.compiler = compiler
        self.build = build
        self.cause = cause
        self.references = references

    def matches(self, host: host_info) -> bool:
        if host.compiler != self.compiler or host.compiler_build is None:
            return False
        return version.Version(host.compiler_build) >= version.Version(self.build)


toolchain_failure_list: typing.Final[tuple[toolchain_failure, ...]] = (
    toolchain_failure(
        "clang",
        "421",
        "We have had many different clang failure reports. Unfortunately, nobody seems to be interested in investigating "
        "and fixing them. If you have any knowledge to share or can provide a fix, please open an issue.",
        (
            "https://github.com/Homebrew/homebrew-dupes/issues/20",
            "https://github.com/Homebrew/homebrew-dupes/issues/49",
            "https://github.com/Homebrew/homebrew-dupes/pull/66",
            "https://github.com/Homebrew/homebrew-dupes/issues/68",
        ),
    ),
)


def check_toolchain(host: host_info) -> KnownToolchainIncompatibility | None:
    """检查宿主编译器是否已知无法构建gcc，不会尝试切换编译器

    Returns:
        KnownToolchainIncompatibility | None: 匹配到的不兼容信息，由调用者决定提示或中止
    """
    for failure in toolchain_failure_list:
        if failure.matches(host):
            return KnownToolchainIncompatibility(failure.compiler, host.compiler_build or failure.build, failure.cause, failure.references)
    return None


assert __name__ != "__main__", "Import this file instead of running it directly."
