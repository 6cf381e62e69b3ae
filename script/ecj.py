import dataclasses
import os
import typing
from collections.abc import Callable, Iterable

import common
import fetch
from errors import AuxiliaryArtifactUnavailable, AuxiliaryStagingFailed, FetchFailed
from option import language

# ecj(Eclipse Java Compiler)是gcj能够解析Java源码所必需的
ecj_version: typing.Final[str] = "4.5"
ecj_resource = fetch.resource(
    f"ecj-{ecj_version}.jar",
    [
        f"ftp://sourceware.org/pub/java/ecj-{ecj_version}.jar",
        f"http://mirrors.kernel.org/sources.redhat.com/java/ecj-{ecj_version}.jar",
    ],
    "58c1d79c64c8cd718550f32a932ccfde8d1e6449",
)

# 只有名为ecj.jar且位于源码树顶层时才会被gcc自动打包进安装目录，不能使用ecj-<version>.jar
ecj_filename: typing.Final[str] = "ecj.jar"

fetcher = Callable[[fetch.resource, str], str]


@dataclasses.dataclass(frozen=True)
class auxiliary_artifact:
    required: bool  # 是否需要暂存
    source_archive: str  # 下载的资源名
    destination_dir: str  # 源码树根目录
    destination_filename: str = ecj_filename

    @property
    def destination_path(self) -> str:
        return os.path.join(self.destination_dir, self.destination_filename)


def ecj_artifact(languages: Iterable[language], source_dir: str) -> auxiliary_artifact:
    return auxiliary_artifact(language.java in languages, ecj_resource.name, source_dir)


def stage_ecj(artifact: auxiliary_artifact, fetch_fn: fetcher = fetch.fetch) -> str:
    """下载ecj并以ecj.jar为名放入源码树顶层，必须在configure之前完成

    Args:
        artifact (auxiliary_artifact): 要暂存的辅助构件
        fetch_fn (fetcher, optional): 下载函数. 默认为fetch.fetch.

    Raises:
        AuxiliaryArtifactUnavailable: 下载失败
        AuxiliaryStagingFailed: 源码树不存在或移动失败

    Returns:
        str: 暂存后的路径
    """
    assert artifact.required, "Staging ecj is only needed when building java."
    if not os.path.isdir(artifact.destination_dir):
        raise AuxiliaryStagingFailed(f'The source tree "{artifact.destination_dir}" does not exist.', {"artifact": artifact.source_archive})
    try:
        archive = fetch_fn(ecj_resource, artifact.destination_dir)
    except FetchFailed as e:
        raise AuxiliaryArtifactUnavailable(f"Cannot fetch {artifact.source_archive}.", {"reason": str(e)}) from e
    try:
        common.move(archive, artifact.destination_path)
    except OSError as e:
        raise AuxiliaryStagingFailed(
            f"Cannot move {archive} to {artifact.destination_path}.", {"artifact": artifact.source_archive, "reason": str(e)}
        ) from e
    return artifact.destination_path


assert __name__ != "__main__", "Import this file instead of running it directly."
