import dataclasses
import enum
import os
import re
import shlex
import shutil
import typing
from collections.abc import Callable, Iterable

import common
import dependency
import ecj
import fetch
import option
import platform_quirk
from errors import BuildFailed, CommandFailed, ConfigureFailed, InstallFailed, PhaseFailed, SourceTreeMissing, VersionParseError

gcc_version: typing.Final[str] = "4.7.2"

# 与选项无关的固定配置
fixed_option_list: typing.Final[tuple[str, ...]] = (
    "--with-system-zlib",
    "--enable-stage1-checking",
    "--enable-plugin",
    "--enable-lto",
)

# 运行测试套件所需的工具，分别来自deja-gnu和autogen
test_tool_list: typing.Final[tuple[str, ...]] = ("runtest", "autogen")


def get_program_suffix(version: str) -> str:
    """从版本号中提取<major>.<minor>，如4.7.2提取为4.7

    Raises:
        VersionParseError: 版本号中不存在<major>.<minor>
    """
    found = re.search(r"\d+\.\d+", version)
    if not found:
        raise VersionParseError(version)
    return found.group(0)


@dataclasses.dataclass(frozen=True)
class build_config:
    gcc_prefix: str  # 沙盒化的lib、libexec和include所在目录
    share_dir: str  # 安装后share目录
    bin_dir: str  # 安装后可执行文件所在目录
    program_suffix: str  # 可执行文件后缀，不含前导-
    dependency_args: tuple[str, ...]
    feature_args: tuple[str, ...]
    quirk_args: tuple[str, ...]
    languages: tuple[option.language, ...]
    strategy: option.build_strategy

    def configure_args(self) -> list[str]:
        """获取传递给configure的完整选项列表"""
        return [
            f"--enable-languages={','.join(self.languages)}",
            # 除share和bin外全部沙盒化，参见gcc FAQ中"How to install multiple versions of GCC"一节
            f"--prefix={self.gcc_prefix}",
            f"--datarootdir={self.share_dir}",
            f"--bindir={self.bin_dir}",
            f"--program-suffix=-{self.program_suffix}",
            *self.dependency_args,
            *fixed_option_list,
            *self.feature_args,
            *self.quirk_args,
        ]


def make_build_config(
    prefix: str,
    version: str,
    result: option.evaluation,
    dependencies: Iterable[dependency.dependency],
    quirk_args: Iterable[str] = (),
) -> build_config:
    """根据选项求值结果、依赖和平台修正生成构建配置

    Args:
        prefix (str): 安装根目录
        version (str): gcc版本号
        result (option.evaluation): 选项求值结果
        dependencies (Iterable[dependency.dependency]): 已解析的依赖
        quirk_args (Iterable[str], optional): 平台相关配置选项. 默认为空.
    """
    return build_config(
        gcc_prefix=os.path.join(prefix, "gcc"),
        share_dir=os.path.join(prefix, "share"),
        bin_dir=os.path.join(prefix, "bin"),
        program_suffix=get_program_suffix(version),
        dependency_args=tuple(dependency.get_dependency_options(dependencies)),
        feature_args=result.feature_args,
        quirk_args=tuple(quirk_args),
        languages=result.languages,
        strategy=result.strategy,
    )


class pipeline_state(enum.StrEnum):
    unconfigured = "unconfigured"
    configured = "configured"
    built = "built"
    installed = "installed"


class plan_step(enum.StrEnum):
    stage_ecj = "stage-ecj"
    configure = "configure"
    build = "build"
    check = "check"
    install = "install"


def get_execution_plan(config: build_config, run_check: bool = False) -> list[plan_step]:
    """生成执行计划，stage-ecj仅在构建java时存在，check仅在显式要求时存在"""
    plan: list[plan_step] = []
    if option.language.java in config.languages:
        plan.append(plan_step.stage_ecj)
    plan += [plan_step.configure, plan_step.build]
    if run_check:
        plan.append(plan_step.check)
    plan.append(plan_step.install)
    return plan


class gcc_pipeline:
    """在独立的build目录中依次完成configure、自举和安装"""

    config: build_config  # 构建配置
    source_dir: str  # gcc源码树
    build_dir: str  # 独立构建目录
    env: platform_quirk.build_environment  # 传递给外部命令的环境变量
    jobs: int | None  # make并发数，为None时不传递-j
    run_check: bool  # 是否运行测试套件
    fetch_fn: ecj.fetcher  # 下载ecj所用的函数
    runner: Callable[..., typing.Any]  # 运行外部命令所用的函数
    state: pipeline_state  # 流水线状态
    plan: list[plan_step]  # 执行计划

    def __init__(
        self,
        config: build_config,
        source_dir: str,
        env: platform_quirk.build_environment,
        jobs: int | None = None,
        run_check: bool = False,
        fetch_fn: ecj.fetcher = fetch.fetch,
        runner: Callable[..., typing.Any] = common.run_command,
    ) -> None:
        if not os.path.isdir(source_dir):
            raise SourceTreeMissing(source_dir)
        if jobs is not None and jobs < 1:
            raise ValueError(f"Invalid jobs: {jobs}.")
        self.config = config
        self.source_dir = os.path.abspath(source_dir)
        self.build_dir = os.path.join(self.source_dir, "build")
        self.env = env
        self.jobs = jobs
        self.run_check = run_check
        self.fetch_fn = fetch_fn
        self.runner = runner
        self.state = pipeline_state.unconfigured
        self.plan = get_execution_plan(config, run_check)

    def _run(self, command: str, error_type: type[PhaseFailed], ignore_error: bool = False) -> typing.Any:
        try:
            return self.runner(command, ignore_error=ignore_error, cwd=self.build_dir, env=self.env.as_dict())
        except CommandFailed as e:
            raise error_type(self.state, e.command, e.returncode) from e

    def _expect(self, state: pipeline_state) -> None:
        assert self.state == state, f'The pipeline is in state "{self.state}", expect "{state}".'

    def stage_ecj(self) -> None:
        """将ecj.jar放入源码树顶层"""
        self._expect(pipeline_state.unconfigured)
        ecj.stage_ecj(ecj.ecj_artifact(self.config.languages, self.source_dir), self.fetch_fn)

    def enter_build_dir(self) -> None:
        """创建全新的构建目录，已存在的同名目录会被删除"""
        common.mkdir(self.build_dir)

    def configure(self) -> None:
        self._expect(pipeline_state.unconfigured)
        self.enter_build_dir()
        self._run(shlex.join(["../configure", *self.config.configure_args()]), ConfigureFailed)
        self.state = pipeline_state.configured

    def make(self) -> None:
        """自举编译，profiledbootstrap耗时更长且更容易出错，失败后不会回退到普通自举"""
        self._expect(pipeline_state.configured)
        jobs = f" -j {self.jobs}" if self.jobs else ""
        self._run(f"make {self.config.strategy}{jobs}", BuildFailed)
        self.state = pipeline_state.built

    def check(self) -> None:
        """运行gcc测试套件，测试失败仅作提示"""
        self._expect(pipeline_state.built)
        missing = [tool for tool in test_tool_list if shutil.which(tool, path=self.env.get("PATH")) is None]
        if missing:
            common.log(f"Skip the test suite because {', '.join(missing)} cannot be found.")
            return
        jobs = f" -j {self.jobs}" if self.jobs else ""
        if self._run(f"make -k check{jobs}", BuildFailed, ignore_error=True) is None and not common.command_dry_run.get():
            common.log("The test suite reported failures.")

    def install(self) -> None:
        self._expect(pipeline_state.built)
        self._run("make install", InstallFailed)
        self.state = pipeline_state.installed

    def run(self) -> None:
        """按执行计划运行，任一阶段失败即停止，构建目录保留以便检查"""
        for step in self.plan:
            match step:
                case plan_step.stage_ecj:
                    self.stage_ecj()
                case plan_step.configure:
                    self.configure()
                case plan_step.build:
                    self.make()
                case plan_step.check:
                    self.check()
                case plan_step.install:
                    self.install()
                case _:
                    typing.assert_never(step)


def brew(
    options: option.option_set,
    source_dir: str,
    prefix: str,
    lookup: dependency.registry,
    host: platform_quirk.host_info | None = None,
    version: str = gcc_version,
    jobs: int | None = None,
    run_check: bool = False,
    strict_toolchain: bool = False,
    env: platform_quirk.build_environment | None = None,
    fetch_fn: ecj.fetcher = fetch.fetch,
    runner: Callable[..., typing.Any] = common.run_command,
) -> gcc_pipeline:
    """完成一次gcc构建

    Args:
        options (option.option_set): 构建选项
        source_dir (str): gcc源码树
        prefix (str): 安装根目录
        lookup (dependency.registry): 依赖查询接口
        host (platform_quirk.host_info | None, optional): 宿主平台信息. 默认自动检测.
        version (str, optional): gcc版本号. 默认为gcc_version.
        jobs (int | None, optional): make并发数. 默认不指定.
        run_check (bool, optional): 是否运行测试套件. 默认不运行.
        strict_toolchain (bool, optional): 宿主编译器已知不兼容时是否中止. 默认仅提示.
        env (platform_quirk.build_environment | None, optional): 基础环境变量. 默认为当前进程环境.
        fetch_fn (ecj.fetcher, optional): 下载函数. 默认为fetch.fetch.
        runner (Callable[..., typing.Any], optional): 运行外部命令所用的函数. 默认为common.run_command.

    Returns:
        gcc_pipeline: 执行完成的流水线
    """
    result = option.evaluate(options)
    # 在启动任何外部进程前解析依赖并检查源码树
    dependencies = dependency.resolve_dependencies(lookup)
    if not os.path.isdir(source_dir):
        raise SourceTreeMissing(source_dir)

    host = host or platform_quirk.detect_host()
    incompatibility = platform_quirk.check_toolchain(host)
    if incompatibility:
        if strict_toolchain:
            raise incompatibility
        common.log(f"Warning: {incompatibility}")
    quirks = platform_quirk.detect_quirks(host)
    build_env = platform_quirk.apply_quirks(quirks, env or platform_quirk.build_environment.from_os())

    config = make_build_config(prefix, version, result, dependencies, platform_quirk.get_quirk_options(quirks))
    pipeline = gcc_pipeline(config, source_dir, build_env, jobs, run_check, fetch_fn, runner)
    pipeline.run()
    return pipeline


assert __name__ != "__main__", "Import this file instead of running it directly."
