import stat
from pathlib import Path

import pytest

import common
from conftest import FakeRunner
from dependency import prefix_registry
from errors import BuildFailed, ConfigureFailed, InstallFailed, KnownToolchainIncompatibility, SourceTreeMissing, UnresolvedDependency, VersionParseError
from fetch import resource
from gcc_formula import brew, get_execution_plan, get_program_suffix, make_build_config, pipeline_state, plan_step
from option import evaluate, option_set
from platform_quirk import build_environment, host_info


@pytest.mark.parametrize(("version", "suffix"), [("4.7.2", "4.7"), ("4.7", "4.7"), ("10.2.0", "10.2")])
def test_program_suffix(version: str, suffix: str) -> None:
    assert get_program_suffix(version) == suffix


@pytest.mark.parametrize("version", ["10", "", "trunk"])
def test_program_suffix_requires_major_minor(version: str) -> None:
    with pytest.raises(VersionParseError):
        get_program_suffix(version)


def _fetch_into(events: list[str]):
    def fake_fetch(item: resource, dest_dir: str) -> str:
        events.append("fetch")
        path = Path(dest_dir) / item.name
        path.write_bytes(b"jar")
        return str(path)

    return fake_fetch


def _brew(source_dir: Path, tmp_path: Path, registry, host, runner, names=(), **kwargs):
    kwargs.setdefault("env", build_environment({"PATH": str(tmp_path / "no-tools"), "LD": "ld.bfd"}))
    return brew(option_set.parse(names), str(source_dir), str(tmp_path / "Cellar" / "gcc" / "4.7.2"), registry, host, runner=runner, **kwargs)


def test_default_build_runs_three_phases(
    source_dir: Path, tmp_path: Path, registry: prefix_registry, registry_root: Path, host: host_info, runner: FakeRunner
) -> None:
    pipeline = _brew(source_dir, tmp_path, registry, host, runner)

    assert pipeline.state == pipeline_state.installed
    assert len(runner.commands) == 3
    configure, build, install = runner.commands
    prefix = tmp_path / "Cellar" / "gcc" / "4.7.2"
    assert configure.split() == [
        "../configure",
        "--enable-languages=c",
        f"--prefix={prefix / 'gcc'}",
        f"--datarootdir={prefix / 'share'}",
        f"--bindir={prefix / 'bin'}",
        "--program-suffix=-4.7",
        f"--with-gmp={registry_root / 'opt' / 'gmp'}",
        f"--with-mpfr={registry_root / 'opt' / 'mpfr'}",
        f"--with-mpc={registry_root / 'opt' / 'libmpc'}",
        "--with-system-zlib",
        "--enable-stage1-checking",
        "--enable-plugin",
        "--enable-lto",
        "--disable-nls",
        "--disable-multilib",
    ]
    assert build == "make bootstrap"
    assert install == "make install"
    for call in runner.calls:
        assert call["cwd"] == str(source_dir / "build")
        assert "LD" not in call["env"]
        assert "-U_GLIBCXX_DEBUG" in call["env"]["CXXFLAGS"].split()


def test_profiled_build_never_runs_plain_bootstrap(
    source_dir: Path, tmp_path: Path, registry: prefix_registry, host: host_info, runner: FakeRunner
) -> None:
    _brew(source_dir, tmp_path, registry, host, runner, ["enable-profiled-build"], jobs=4)

    assert "make profiledbootstrap -j 4" in runner.commands
    assert not any(command.startswith("make bootstrap") for command in runner.commands)


@pytest.mark.parametrize("names", [["enable-java"], ["enable-all-languages"]])
def test_java_stages_ecj_once_before_configure(
    source_dir: Path, tmp_path: Path, registry: prefix_registry, host: host_info, names: list[str]
) -> None:
    events: list[str] = []
    runner = FakeRunner(events=events)

    _brew(source_dir, tmp_path, registry, host, runner, names, fetch_fn=_fetch_into(events))

    assert events.count("fetch") == 1
    assert events[0] == "fetch"
    assert events[1].startswith("../configure")
    assert (source_dir / "ecj.jar").exists()


def test_no_java_never_stages_ecj(source_dir: Path, tmp_path: Path, registry: prefix_registry, host: host_info) -> None:
    events: list[str] = []
    runner = FakeRunner(events=events)

    _brew(source_dir, tmp_path, registry, host, runner, ["enable-cxx", "enable-objc"], fetch_fn=_fetch_into(events))

    assert "fetch" not in events
    assert not (source_dir / "ecj.jar").exists()
    assert "--enable-languages=c,c++,objc" in runner.commands[0].split()


def test_unresolved_dependency_spawns_nothing(
    source_dir: Path, tmp_path: Path, registry_root: Path, registry: prefix_registry, runner: FakeRunner
) -> None:
    (registry_root / "opt" / "mpfr").rmdir()

    with pytest.raises(UnresolvedDependency):
        # host=None would run host detection, so resolution must fail before that point
        _brew(source_dir, tmp_path, registry, None, runner)

    assert runner.commands == []
    assert not (source_dir / "build").exists()


def test_missing_source_tree_spawns_nothing(tmp_path: Path, registry: prefix_registry, runner: FakeRunner) -> None:
    with pytest.raises(SourceTreeMissing) as excinfo:
        _brew(tmp_path / "missing", tmp_path, registry, None, runner)

    assert excinfo.value.path == str(tmp_path / "missing")
    assert runner.commands == []


def test_configure_failure_halts_pipeline(source_dir: Path, tmp_path: Path, registry: prefix_registry, host: host_info) -> None:
    runner = FakeRunner(fail_on="../configure", returncode=77)

    with pytest.raises(ConfigureFailed) as excinfo:
        _brew(source_dir, tmp_path, registry, host, runner)

    assert excinfo.value.state == pipeline_state.unconfigured
    assert excinfo.value.returncode == 77
    assert len(runner.commands) == 1
    assert (source_dir / "build").is_dir()


def test_build_failure_has_no_fallback(source_dir: Path, tmp_path: Path, registry: prefix_registry, host: host_info) -> None:
    runner = FakeRunner(fail_on="make profiledbootstrap")

    with pytest.raises(BuildFailed) as excinfo:
        _brew(source_dir, tmp_path, registry, host, runner, ["enable-profiled-build"])

    assert excinfo.value.state == pipeline_state.configured
    assert runner.commands[1:] == ["make profiledbootstrap"]


def test_install_failure(source_dir: Path, tmp_path: Path, registry: prefix_registry, host: host_info) -> None:
    runner = FakeRunner(fail_on="make install")

    with pytest.raises(InstallFailed) as excinfo:
        _brew(source_dir, tmp_path, registry, host, runner)

    assert excinfo.value.state == pipeline_state.built
    assert excinfo.value.phase == "install"


def test_build_dir_is_recreated(source_dir: Path, tmp_path: Path, registry: prefix_registry, host: host_info, runner: FakeRunner) -> None:
    stale = source_dir / "build" / "config.status"
    stale.parent.mkdir()
    stale.write_text("stale", encoding="utf-8")

    _brew(source_dir, tmp_path, registry, host, runner)

    assert (source_dir / "build").is_dir()
    assert not stale.exists()


def test_sysroot_arguments_without_command_line_tools(
    source_dir: Path, tmp_path: Path, registry: prefix_registry, runner: FakeRunner
) -> None:
    host = host_info(clt_installed=False, sdk_path="/Developer/SDKs/MacOSX10.8.sdk")

    _brew(source_dir, tmp_path, registry, host, runner)

    arguments = runner.commands[0].split()
    assert arguments[-2:] == ["--with-native-system-header-dir=/usr/include", "--with-sysroot=/Developer/SDKs/MacOSX10.8.sdk"]


def test_known_bad_toolchain_is_advisory_by_default(
    source_dir: Path, tmp_path: Path, registry: prefix_registry, runner: FakeRunner, capsys: pytest.CaptureFixture[str]
) -> None:
    host = host_info(compiler="clang", compiler_build="421.11.66")

    pipeline = _brew(source_dir, tmp_path, registry, host, runner)

    assert pipeline.state == pipeline_state.installed
    assert "Warning: GCC is known to fail to build with clang" in capsys.readouterr().out


def test_known_bad_toolchain_is_fatal_when_strict(source_dir: Path, tmp_path: Path, registry: prefix_registry, runner: FakeRunner) -> None:
    host = host_info(compiler="clang", compiler_build="421.11.66")

    with pytest.raises(KnownToolchainIncompatibility):
        _brew(source_dir, tmp_path, registry, host, runner, strict_toolchain=True)

    assert runner.commands == []


def test_check_runs_between_build_and_install_when_tools_exist(
    source_dir: Path, tmp_path: Path, registry: prefix_registry, host: host_info, runner: FakeRunner
) -> None:
    bin_dir = tmp_path / "tools"
    bin_dir.mkdir()
    for tool in ("runtest", "autogen"):
        path = bin_dir / tool
        path.write_text("#!/bin/sh\n", encoding="utf-8")
        path.chmod(path.stat().st_mode | stat.S_IXUSR)

    _brew(source_dir, tmp_path, registry, host, runner, run_check=True, env=build_environment({"PATH": str(bin_dir)}))

    assert runner.commands[1:] == ["make bootstrap", "make -k check", "make install"]
    assert runner.calls[2]["ignore_error"] is True


def test_check_is_skipped_without_tools(source_dir: Path, tmp_path: Path, registry: prefix_registry, host: host_info, runner: FakeRunner) -> None:
    _brew(source_dir, tmp_path, registry, host, runner, run_check=True)

    assert runner.commands[1:] == ["make bootstrap", "make install"]


def test_execution_plan_edges() -> None:
    def plan(names: list[str], run_check: bool = False) -> list[plan_step]:
        config = make_build_config("/prefix", "4.7.2", evaluate(option_set.parse(names)), [])
        return get_execution_plan(config, run_check)

    assert plan([]) == [plan_step.configure, plan_step.build, plan_step.install]
    assert plan(["enable-java"])[0] == plan_step.stage_ecj
    assert plan(["enable-cxx"], run_check=True) == [plan_step.configure, plan_step.build, plan_step.check, plan_step.install]


def test_dry_run_spawns_nothing(
    source_dir: Path, tmp_path: Path, registry: prefix_registry, host: host_info, capsys: pytest.CaptureFixture[str]
) -> None:
    common.command_dry_run.set(True)

    pipeline = _brew(source_dir, tmp_path, registry, host, common.run_command)

    assert pipeline.state == pipeline_state.installed
    assert not (source_dir / "build").exists()
    output = capsys.readouterr().out
    assert "[gcc-formula] Run command: ../configure --enable-languages=c" in output
    assert "[gcc-formula] Run command: make install" in output
