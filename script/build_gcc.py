#!/usr/bin/env python3
# -*- coding: utf-8 -*-
import os
import sys
import math
import argparse
import psutil
import common
import dependency
import gcc_formula
import option
from errors import FormulaError, SourceTreeMissing


class configure(common.basic_configure):
    options: list[str]  # 启用的构建选项
    prefix_dir: str  # 安装根目录所在目录
    gcc_version: str  # gcc版本号
    registry: str  # 依赖所在的包管理器根目录
    dependency_prefix: list[str]  # 显式指定的依赖前缀，NAME=PATH
    jobs: int  # 并发数
    check: bool  # 是否运行测试套件
    strict_toolchain: bool  # 宿主编译器已知不兼容时是否中止

    def __init__(
        self,
        options: list[str] | None = None,
        home: str = os.path.expanduser("~"),
        prefix_dir: str = os.path.expanduser("~"),
        gcc_version: str = gcc_formula.gcc_version,
        registry: str = os.environ.get("HOMEBREW_PREFIX", "/usr/local"),
        dependency_prefix: list[str] | None = None,
        jobs: int = math.floor((psutil.cpu_count() or 1) * 1.5),
        check: bool = False,
        strict_toolchain: bool = False,
    ) -> None:
        super().__init__(home)
        self.options = list(options or [])
        self.prefix_dir = os.path.abspath(prefix_dir)
        self.gcc_version = gcc_version
        self.registry = registry
        self.dependency_prefix = list(dependency_prefix or [])
        self.jobs = jobs
        self.check = check
        self.strict_toolchain = strict_toolchain

    @property
    def source_dir(self) -> str:
        return os.path.join(self.home, "gcc")

    @property
    def prefix(self) -> str:
        return os.path.join(self.prefix_dir, f"gcc-{self.gcc_version}")

    def check_config(self) -> None:
        if not os.path.isdir(self.source_dir):
            raise SourceTreeMissing(self.source_dir)
        assert self.jobs > 0, f"Invalid jobs: {self.jobs}."
        gcc_formula.get_program_suffix(self.gcc_version)
        option.option_set.parse(self.options)
        dependency.parse_overrides(self.dependency_prefix)


def build_specific_gcc(config: configure) -> gcc_formula.gcc_pipeline:
    """按配置构建gcc

    Args:
        config (configure): 构建配置
    """
    lookup = dependency.prefix_registry(config.registry, dependency.parse_overrides(config.dependency_prefix))
    return gcc_formula.brew(
        option.option_set.parse(config.options),
        config.source_dir,
        config.prefix,
        lookup,
        version=config.gcc_version,
        jobs=config.jobs,
        run_check=config.check,
        strict_toolchain=config.strict_toolchain,
    )


def get_parser() -> argparse.ArgumentParser:
    default_config = configure()

    parser = argparse.ArgumentParser(
        description="Build the gcc compiler collection from source.", formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    configure.add_argument(parser)
    for item in option.option:
        parser.add_argument(f"--{item}", dest="options", action="append_const", const=str(item), help=item.description)
    parser.add_argument("--prefix-dir", type=str, help="The dir contains the installation prefix.", default=default_config.prefix_dir)
    parser.add_argument("--gcc-version", type=str, help="The version of the gcc source tree.", default=default_config.gcc_version)
    parser.add_argument("--registry", type=str, help="The root dir of installed dependencies.", default=default_config.registry)
    parser.add_argument(
        "--dependency",
        dest="dependency_prefix",
        action="append",
        help="Specify the prefix of a dependency explicitly, e.g. gmp=/opt/gmp.",
    )
    parser.add_argument(
        "--jobs",
        type=int,
        help="Number of concurrent jobs at build time. Use 1.5 times of cpu cores by default.",
        default=default_config.jobs,
    )
    parser.add_argument(
        "--check",
        action=argparse.BooleanOptionalAction,
        help="Run the test suite after bootstrapping. Requires deja-gnu and autogen.",
        default=default_config.check,
    )
    parser.add_argument(
        "--strict-toolchain",
        action=argparse.BooleanOptionalAction,
        help="Abort instead of warning when the host compiler is known to fail.",
        default=default_config.strict_toolchain,
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = get_parser().parse_args(argv)

    current_config = configure.parse_args(args)
    try:
        current_config.load_config(args)
        current_config.check_config()
        build_specific_gcc(current_config)
        current_config.save_config(args)
    except FormulaError as e:
        print(f"[gcc-formula] Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
