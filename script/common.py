import functools
import os
import shutil
import json
import argparse
import inspect
import subprocess
from collections.abc import Callable, Mapping
from typing import ParamSpec, TypeVar

from errors import CommandFailed, ConfigFileError


class command_dry_run:
    """全局dry-run开关，由--dry-run设置"""

    _enabled: bool = False

    @classmethod
    def get(cls) -> bool:
        return cls._enabled

    @classmethod
    def set(cls, enabled: bool) -> None:
        cls._enabled = enabled


P = ParamSpec("P")
R = TypeVar("R")


def _support_dry_run(echo_fn: Callable[..., str | None] | None = None) -> Callable[[Callable[P, R]], Callable[P, R | None]]:
    """为有副作用的函数添加dry-run支持，显式传入的dry_run优先于全局开关

    Args:
        echo_fn (Callable[..., str | None] | None, optional): 按参数名从被装饰函数取参，返回要回显的文本，返回None时不回显. 默认不回显.
    """

    def decorator(fn: Callable[P, R]) -> Callable[P, R | None]:
        signature = inspect.signature(fn)
        echo_params = list(inspect.signature(echo_fn).parameters) if echo_fn else []
        assert all(name in signature.parameters for name in echo_params), f"Every param of echo_fn should be a param of {fn.__name__}."

        @functools.wraps(fn)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R | None:
            bound = signature.bind(*args, **kwargs)
            bound.apply_defaults()
            if echo_fn:
                echo = echo_fn(*(bound.arguments[name] for name in echo_params))
                if echo is not None:
                    print(echo)
            dry_run: bool | None = bound.arguments.get("dry_run")
            if command_dry_run.get() if dry_run is None else dry_run:
                return None
            return fn(*bound.args, **bound.kwargs)

        return wrapper

    return decorator


def log(message: str) -> None:
    """输出带项目前缀的提示信息"""
    print(f"[gcc-formula] {message}")


@_support_dry_run(lambda command, cwd, echo: f"[gcc-formula] Run command: {command}" + (f" (in {cwd})" if cwd else "") if echo else None)
def run_command(
    command: str,
    ignore_error: bool = False,
    capture: bool = False,
    echo: bool = True,
    cwd: str | None = None,
    env: Mapping[str, str] | None = None,
    dry_run: bool | None = None,
) -> subprocess.CompletedProcess[str] | None:
    """运行指定命令, 若不忽略错误, 则在命令执行出错时抛出CommandFailed, 反之打印错误码

    Args:
        command (str): 要运行的命令
        ignore_error (bool, optional): 是否忽略错误. 默认不忽略错误.
        capture (bool, optional): 是否捕获命令输出，默认为不捕获.
        echo (bool, optional): 是否回显信息，设置为False将不回显任何信息，包括错误提示，默认为回显.
        cwd (str | None, optional): 运行命令的工作目录，默认为当前目录.
        env (Mapping[str, str] | None, optional): 传递给命令的完整环境变量，默认继承当前进程环境.
        dry_run (bool | None, optional): 是否只回显命令而不执行，默认为None.

    Raises:
        CommandFailed: 命令执行失败且ignore_error为False时抛出异常

    Returns:
        None | subprocess.CompletedProcess[str]: 在命令正常执行结束后返回执行结果，否则返回None
    """

    if capture:
        pipe = subprocess.PIPE  # capture为True，不论是否回显都需要捕获输出
    elif echo:
        pipe = None  # 回显而不捕获输出则正常输出
    else:
        pipe = subprocess.DEVNULL  # 不回显又不捕获输出则丢弃输出
    try:
        result = subprocess.run(
            command, stdout=pipe, stderr=pipe, shell=True, check=True, text=True, cwd=cwd, env=dict(env) if env is not None else None
        )
    except subprocess.CalledProcessError as e:
        if not ignore_error:
            raise CommandFailed(command, e.returncode) from e
        elif echo:
            print(f'Command "{command}" failed with errno={e.returncode}, but it is ignored.')
        return None
    return result


@_support_dry_run(lambda path: f"[gcc-formula] Create directory {path}.")
def mkdir(path: str, remove_if_exist=True, dry_run: bool | None = None) -> None:
    """创建目录

    Args:
        path (str): 要创建的目录
        remove_if_exist (bool, optional): 是否先删除已存在的同名目录. 默认先删除已存在的同名目录.
        dry_run (bool | None, optional): 是否只回显命令而不执行，默认为None.
    """
    if remove_if_exist and os.path.exists(path):
        shutil.rmtree(path)
    os.makedirs(path, exist_ok=True)


@_support_dry_run(lambda src, dst: f"[gcc-formula] Move {src} -> {dst}.")
def move(src: str, dst: str, dry_run: bool | None = None) -> None:
    """移动并重命名文件，目标已存在时覆盖

    Args:
        src (str): 源路径
        dst (str): 目标路径
        dry_run (bool | None, optional): 是否只回显命令而不执行，默认为None.
    """
    if os.path.exists(dst):
        os.remove(dst)
    shutil.move(src, dst)


class basic_configure:
    """可导出为json的命令行配置，子类__init__的参数名须与argparse的dest一致"""

    home: str  # gcc源码树所在目录

    def __init__(self, home: str = os.path.expanduser("~")) -> None:
        self.home = os.path.abspath(home)

    @staticmethod
    def add_argument(parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--home", type=str, help="The directory containing the gcc source tree.", default=os.path.expanduser("~"))
        parser.add_argument("--export", dest="export_file", type=str, help="Write the effective settings to a json file.")
        parser.add_argument("--import", dest="import_file", type=str, help="Read settings from a json file written by --export.")
        parser.add_argument(
            "--dry-run",
            action=argparse.BooleanOptionalAction,
            help="Print the commands without running them.",
            default=False,
        )

    @classmethod
    def parse_args(cls, args: argparse.Namespace):
        command_dry_run.set(args.dry_run)
        names = list(inspect.signature(cls.__init__).parameters)[1:]
        return cls(**{name: getattr(args, name) for name in names})

    def save_config(self, args: argparse.Namespace) -> None:
        """若指定了--export，将配置写入json文件

        Raises:
            ConfigFileError: 写入失败
        """
        if not args.export_file:
            return
        try:
            with open(args.export_file, "w") as file:
                json.dump(vars(self), file, indent=4)
        except OSError as e:
            raise ConfigFileError(args.export_file, str(e)) from e
        log(f'Settings have been written to file "{args.export_file}"')

    def load_config(self, args: argparse.Namespace) -> None:
        """若指定了--import，用文件中的值填充仍为默认值的配置项，命令行显式给出的值优先

        Raises:
            ConfigFileError: 文件无法读取或不是json对象
        """
        if not args.import_file:
            return
        try:
            with open(args.import_file) as file:
                imported = json.load(file)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigFileError(args.import_file, str(e)) from e
        if not isinstance(imported, dict):
            raise ConfigFileError(args.import_file, "the top level should be an object")

        defaults = vars(type(self)())
        for key, value in imported.items():
            if key not in defaults:
                log(f'Ignore unknown setting "{key}" in "{args.import_file}".')
            elif getattr(self, key) == defaults[key]:
                setattr(self, key, value)


assert __name__ != "__main__", "Import this file instead of running it directly."
