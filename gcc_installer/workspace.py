import enum
import getpass
import os
import re
import socket
import typing
from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path

from . import common
from .request import installation_request

# 工作区中创建的文件对组用户和其他用户可读可执行
workspace_umask = 0o022
# gcc的configure无法处理含有冒号或空白字符的路径
_unsafe_char = re.compile(r"[^A-Za-z0-9_-]")


class run_outcome(enum.StrEnum):
    """流水线的结束方式

    Attributes:
        installed: 完成构建和安装
        prepared : 仅准备源代码(-x)
    """

    installed = "installed"
    prepared = "prepared"


# 各结束方式是否需要删除工作区，失败时不会到达此表，工作区总是保留
cleanup_policy: typing.Final[dict[run_outcome, bool]] = {
    run_outcome.installed: True,
    run_outcome.prepared: False,
}


class workspace:
    """一次流水线独占的临时目录树"""

    root: Path  # 工作区根目录
    src_dir: Path  # 源代码目录
    build_dir: Path  # 构建目录
    archive_dir: Path  # 源码包下载目录
    outcome: run_outcome | None  # 流水线的结束方式，未结束时为None

    def __init__(self, root: Path) -> None:
        self.root = root
        self.src_dir = root / "src"
        self.build_dir = root / "build"
        self.archive_dir = root / "archive"
        self.outcome = None

    def sub_dir_list(self) -> list[Path]:
        return [self.src_dir, self.build_dir, self.archive_dir]

    def need_cleanup(self) -> bool:
        return self.outcome is not None and cleanup_policy[self.outcome]


def _safe_name(name: str) -> str:
    return _unsafe_char.sub("_", name) or "unknown"


def _get_user() -> str:
    try:
        return getpass.getuser()
    except (OSError, KeyError):
        # 容器中可能没有当前uid对应的用户
        return str(os.getuid())


def get_workspace_root(tmp_root: Path, pid: int | None = None) -> Path:
    """根据用户名、主机名和进程号生成工作区根目录

    Args:
        tmp_root (Path): 临时目录根路径
        pid (int | None, optional): 进程号. 默认为当前进程号.

    Returns:
        Path: 工作区根目录
    """

    user = _safe_name(_get_user())
    host = _safe_name(socket.gethostname().split(".", 1)[0])
    return tmp_root / f"gcc-{user}-{host}-{pid or os.getpid()}"


def create_workspace(request: installation_request) -> workspace:
    """创建工作区及其src、build和archive子目录

    Args:
        request (installation_request): 安装请求

    Raises:
        common.fatal_error: 工作区已存在或创建失败时抛出异常

    Returns:
        workspace: 新建的工作区
    """

    os.umask(workspace_umask)
    ws = workspace(get_workspace_root(request.tmp_root))
    if ws.root.exists():
        raise common.fatal_error(f'The workspace "{ws.root}" already exists.')
    common.mkdir(ws.root)
    for dir in ws.sub_dir_list():
        common.mkdir(dir)
    return ws


def teardown(ws: workspace) -> None:
    """删除整个工作区

    Args:
        ws (workspace): 要删除的工作区
    """

    common.remove(ws.root)


@contextmanager
def workspace_scope(request: installation_request) -> Generator[workspace, None, None]:
    """创建工作区，并只在记录的结束方式要求时删除它
    with块内抛出异常时直接向外传播，工作区保留以便排查

    Args:
        request (installation_request): 安装请求
    """

    ws = create_workspace(request)
    yield ws
    if ws.need_cleanup():
        teardown(ws)
    else:
        common.installer_print(common.installer_note(f"Workspace {ws.root} is kept."))


__all__ = ["run_outcome", "cleanup_policy", "workspace", "get_workspace_root", "create_workspace", "teardown", "workspace_scope"]
