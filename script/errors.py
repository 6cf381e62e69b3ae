"""gcc-formula的错误类型，所有错误均立即抛给调用者，不做自动重试"""

from collections.abc import Mapping, Sequence


class FormulaError(Exception):
    """所有编排错误的基类，携带可选的上下文信息"""

    context: dict[str, str]

    def __init__(self, message: str, context: Mapping[str, str] | None = None) -> None:
        super().__init__(message)
        self.context = dict(context or {})

    def __str__(self) -> str:
        parts = [super().__str__()]
        for key, value in self.context.items():
            if value:
                parts.append(f"  {key}: {value}")
        return "\n".join(parts)


class UnrecognizedOption(FormulaError):
    def __init__(self, name: str) -> None:
        super().__init__(f'Unrecognized option "{name}".', {"option": name})
        self.name = name


class InvalidOptionCombination(FormulaError):
    def __init__(self, first: str, second: str) -> None:
        super().__init__(f'Option "{first}" cannot be used together with "{second}".', {"options": f"{first}, {second}"})


class UnresolvedDependency(FormulaError):
    def __init__(self, name: str, prefix: str | None = None) -> None:
        super().__init__(f'Cannot resolve the installed prefix of dependency "{name}".', {"dependency": name, "prefix": prefix or ""})
        self.name = name


class VersionParseError(FormulaError):
    def __init__(self, version: str) -> None:
        super().__init__(f'Cannot extract "<major>.<minor>" from version "{version}".', {"version": version})
        self.version = version


class SourceTreeMissing(FormulaError):
    def __init__(self, path: str) -> None:
        super().__init__(f'The gcc source tree "{path}" does not exist.', {"source dir": path})
        self.path = path


class SysrootUnavailable(FormulaError):
    pass


class KnownToolchainIncompatibility(FormulaError):
    """已知存在问题的宿主编译器，仅作提示，是否中止由使用者决定"""

    compiler: str
    build: str
    cause: str
    references: tuple[str, ...]

    def __init__(self, compiler: str, build: str, cause: str, references: Sequence[str]) -> None:
        super().__init__(
            f"GCC is known to fail to build with {compiler} build {build}.",
            {"cause": cause, "references": ", ".join(references)},
        )
        self.compiler = compiler
        self.build = build
        self.cause = cause
        self.references = tuple(references)


class FetchFailed(FormulaError):
    def __init__(self, identifier: str, reason: str) -> None:
        super().__init__(f'Fetch "{identifier}" failed: {reason}', {"identifier": identifier})
        self.identifier = identifier


class AuxiliaryArtifactUnavailable(FormulaError):
    pass


class AuxiliaryStagingFailed(FormulaError):
    pass


class ConfigFileError(FormulaError):
    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f'Cannot use settings file "{path}": {reason}', {"file": path})
        self.path = path


class CommandFailed(FormulaError):
    """外部命令返回非零值"""

    def __init__(self, command: str, returncode: int) -> None:
        super().__init__(f'Command "{command}" failed with errno={returncode}.', {"command": command})
        self.command = command
        self.returncode = returncode


class PhaseFailed(FormulaError):
    """构建流水线某一阶段失败，state为流水线停止时所处的状态"""

    phase: str = ""

    def __init__(self, state: str, command: str, returncode: int) -> None:
        super().__init__(
            f"The {self.phase} phase failed with errno={returncode}.",
            {"phase": self.phase, "state": state, "command": command, "returncode": str(returncode)},
        )
        self.state = state
        self.command = command
        self.returncode = returncode


class ConfigureFailed(PhaseFailed):
    phase = "configure"


class BuildFailed(PhaseFailed):
    phase = "build"


class InstallFailed(PhaseFailed):
    phase = "install"


__all__ = [
    "AuxiliaryArtifactUnavailable",
    "AuxiliaryStagingFailed",
    "BuildFailed",
    "CommandFailed",
    "ConfigFileError",
    "ConfigureFailed",
    "FetchFailed",
    "FormulaError",
    "InstallFailed",
    "InvalidOptionCombination",
    "KnownToolchainIncompatibility",
    "PhaseFailed",
    "SourceTreeMissing",
    "SysrootUnavailable",
    "UnrecognizedOption",
    "UnresolvedDependency",
    "VersionParseError",
]
