import hashlib
import os

import common
from errors import CommandFailed, FetchFailed


class resource:
    """带校验和的下载资源"""

    name: str  # 下载后文件名
    url_list: list[str]  # 下载地址，首项为主地址，其余为镜像
    sha1: str  # 期望的sha1校验和

    def __init__(self, name: str, url_list: list[str], sha1: str) -> None:
        self.name = name
        self.url_list = url_list
        self.sha1 = sha1


def get_sha1(path: str) -> str:
    digest = hashlib.sha1()
    with open(path, "rb") as file:
        for chunk in iter(lambda: file.read(1 << 20), b""):
            digest.update(chunk)
    return digest.hexdigest()


def fetch(item: resource, dest_dir: str, try_times: int = 5) -> str:
    """下载资源并校验，已存在且校验通过的文件不会重复下载，主地址失败时依次尝试镜像

    Args:
        item (resource): 要下载的资源
        dest_dir (str): 保存目录
        try_times (int, optional): 每个地址的网络重试次数. 默认为5.

    Raises:
        FetchFailed: 所有地址均下载失败或校验和不匹配

    Returns:
        str: 下载后文件路径
    """
    path = os.path.join(dest_dir, item.name)
    if os.path.exists(path) and get_sha1(path) == item.sha1:
        common.log(f"Resource {item.name} exists, skip download.")
        return path

    for url in item.url_list:
        try:
            common.run_command(f"wget {url} -c -t {try_times} -O {path}")
            break
        except CommandFailed:
            if os.path.exists(path):
                os.remove(path)
            common.log(f"Download {item.name} from {url} failed, trying next mirror.")
    else:
        raise FetchFailed(item.name, "all urls failed")

    if common.command_dry_run.get():
        return path
    checksum = get_sha1(path)
    if checksum != item.sha1:
        os.remove(path)
        raise FetchFailed(item.name, f"sha1 mismatch, expected {item.sha1} but got {checksum}")
    return path


assert __name__ != "__main__", "Import this file instead of running it directly."
