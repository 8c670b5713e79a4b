import enum
import ftplib
import typing
import urllib.parse
from collections.abc import Callable
from pathlib import Path

import requests

from . import common, disk_usage
from .request import installation_request
from .workspace import workspace

# 探测镜像时单次网络请求的超时时间(秒)，超时视为镜像不可用
probe_timeout = 30


class archive_format(enum.Enum):
    """受支持的源码包格式，定义顺序即尝试顺序

    Attributes:
        xz : tar.xz，体积最小
        bz2: tar.bz2
        gz : tar.gz，较老的版本只有此格式
    """

    xz = ("tar.xz", "J")
    bz2 = ("tar.bz2", "j")
    gz = ("tar.gz", "z")

    @property
    def suffix(self) -> str:
        return self.value[0]

    @property
    def tar_flag(self) -> str:
        """tar使用的解压缩选项"""

        return self.value[1]

    @staticmethod
    def from_path(path: Path) -> "archive_format":
        """根据文件后缀确定源码包格式

        Args:
            path (Path): 源码包路径

        Raises:
            common.fatal_error: 不支持的后缀

        Returns:
            archive_format: 源码包格式
        """

        for format in archive_format:
            if path.name.endswith(f".{format.suffix}"):
                return format
        raise common.fatal_error(f'Unknown archive format: "{path.name}".')


class archive_candidate(typing.NamedTuple):
    """一个可能存在的源码包"""

    url: str
    format: archive_format

    @property
    def file_name(self) -> str:
        return self.url.rsplit("/", 1)[-1]


def get_archive_url(mirror: str, version: str, format: archive_format) -> str:
    return f"{mirror}/gcc-{version}/gcc-{version}.{format.suffix}"


def get_archive_candidates(request: installation_request) -> list[archive_candidate]:
    """按尝试顺序生成所有候选源码包

    Args:
        request (installation_request): 安装请求

    Returns:
        list[archive_candidate]: 候选源码包列表
    """

    return [archive_candidate(get_archive_url(request.mirror, request.version, format), format) for format in archive_format]


class probe_result(typing.NamedTuple):
    """一次存在性检查的结果，reason为请求本身失败的原因"""

    exist: bool
    reason: str | None = None


def _check_http(url: str) -> probe_result:
    """通过HEAD请求检查http(s)资源是否存在"""

    try:
        response = requests.head(url, allow_redirects=True, timeout=probe_timeout)
    except requests.RequestException as e:
        return probe_result(False, f"Request {url} failed: {e}")
    return probe_result(response.status_code == 200)


def _check_ftp(url: str) -> probe_result:
    """通过SIZE命令检查ftp资源是否存在"""

    split_url = urllib.parse.urlsplit(url)
    try:
        with ftplib.FTP(timeout=probe_timeout) as ftp:
            ftp.connect(split_url.hostname or "", split_url.port or ftplib.FTP_PORT)
            ftp.login()
            # 部分服务器只在二进制模式下支持SIZE
            ftp.voidcmd("TYPE I")
            ftp.size(split_url.path)
    except ftplib.error_perm:
        # 550: 文件不存在
        return probe_result(False)
    except ftplib.all_errors as e:
        return probe_result(False, f"Request {url} failed: {e}")
    return probe_result(True)


# url协议->存在性检查函数，不在表中的协议总是视为不可用
url_validator_list: typing.Final[dict[str, Callable[[str], probe_result]]] = {
    "http": _check_http,
    "https": _check_http,
    "ftp": _check_ftp,
}


def check_url(url: str) -> bool:
    """检查url指向的资源是否存在

    Args:
        url (str): 要检查的url

    Returns:
        bool: 资源是否存在
    """

    common.installer_print(common.installer_info(f"Checking {url} ... "), end="")
    validator = url_validator_list.get(urllib.parse.urlsplit(url).scheme)
    result = validator(url) if validator else probe_result(False)
    if result.exist:
        common.installer_print(common.installer_success("yes", common.message_type.none))
    else:
        common.installer_print(common.color.error.wrapper("no"))
    # 原因在结果之后单独成行
    if result.reason:
        common.installer_print(common.installer_warning(result.reason))
    return result.exist


def select_archive(candidates: list[archive_candidate]) -> archive_candidate:
    """按顺序检查候选源码包，返回第一个存在的源码包

    Args:
        candidates (list[archive_candidate]): 候选源码包列表

    Raises:
        common.fatal_error: 所有候选源码包都不存在

    Returns:
        archive_candidate: 选中的源码包
    """

    for candidate in candidates:
        if check_url(candidate.url):
            return candidate
    raise common.fatal_error(f"No archive found in: {', '.join(candidate.url for candidate in candidates)}.")


def download_archive(candidate: archive_candidate, ws: workspace) -> Path:
    """下载源码包到工作区的archive目录，下载失败不会尝试其他候选源码包

    Args:
        candidate (archive_candidate): 选中的源码包
        ws (workspace): 工作区

    Returns:
        Path: 下载后的源码包路径
    """

    archive = ws.archive_dir / candidate.file_name
    common.run_command(["wget", *common.command_quiet.get_option(), "-c", "-O", str(archive), candidate.url])
    return archive


def extract_archive(archive: Path, ws: workspace) -> None:
    """将源码包解压到src目录，去掉最外层目录

    Args:
        archive (Path): 源码包路径
        ws (workspace): 工作区
    """

    format = archive_format.from_path(archive)
    common.run_command(["tar", f"-x{format.tar_flag}f", str(archive), "-C", str(ws.src_dir), "--strip-components=1"])


def get_repo_ref(version: str) -> str:
    """将仓库路径形式的版本号转化为git的分支或标签名

    Args:
        version (str): trunk、tags/<tag>、branches/<branch>或直接的分支/标签名

    Returns:
        str: git引用名
    """

    match version.split("/", 1):
        case ["trunk"]:
            return "master"
        case ["tags" | "branches", ref] if ref:
            return ref
        case _:
            return version


def checkout(request: installation_request, ws: workspace) -> None:
    """从git仓库签出源代码到src目录

    Args:
        request (installation_request): 安装请求
        ws (workspace): 工作区
    """

    common.run_command(
        [
            "git",
            "clone",
            *common.command_quiet.get_option(),
            *request.clone_type.get_clone_option(),
            "--branch",
            get_repo_ref(request.version),
            request.git_remote.get_url(),
            str(ws.src_dir),
        ]
    )


def download_prerequisites(src_dir: Path) -> None:
    """使用gcc自带的脚本下载gmp、mpfr、mpc和isl"""

    with common.chdir_guard(src_dir):
        common.run_command(["./contrib/download_prerequisites"], echo=not common.command_quiet.get())


def check_source_tree(src_dir: Path) -> None:
    """确认源代码树存在且非空

    Raises:
        common.fatal_error: 源代码树不存在或为空
    """

    if common.command_dry_run.get():
        return
    if not src_dir.is_dir() or not any(src_dir.iterdir()):
        raise common.fatal_error(f'The source tree "{src_dir}" is empty.')


def acquire(request: installation_request, ws: workspace) -> Path:
    """获取指定版本的gcc源代码树

    Args:
        request (installation_request): 安装请求
        ws (workspace): 工作区

    Returns:
        Path: 源代码树所在目录
    """

    if request.from_repo:
        checkout(request, ws)
    else:
        candidate = select_archive(get_archive_candidates(request))
        archive = download_archive(candidate, ws)
        extract_archive(archive, ws)
    check_source_tree(ws.src_dir)
    download_prerequisites(ws.src_dir)
    common.installer_print(common.installer_success(f"Prepare gcc {request.version} sources successfully."))
    disk_usage.report("SRC", ws.src_dir)
    return ws.src_dir


__all__ = [
    "archive_format",
    "archive_candidate",
    "get_archive_candidates",
    "probe_result",
    "url_validator_list",
    "check_url",
    "select_archive",
    "download_archive",
    "extract_archive",
    "get_repo_ref",
    "checkout",
    "download_prerequisites",
    "check_source_tree",
    "acquire",
]
