import argparse
import enum
import typing
from pathlib import Path

import packaging.version as version

from . import common

# 以逗号分隔的启用语言列表，传递给configure的--enable-languages
languages_environ = "GCC_INSTALL_LANGUAGES"
# 为1时使用install-strip安装
strip_environ = "GCC_INSTALL_STRIP"
# 下载源码包使用的镜像
default_mirror = "https://ftp.gnu.org/gnu/gcc"


class abi_mode(enum.StrEnum):
    """libstdc++的默认abi

    Attributes:
        default: 使用gcc5引入的新abi
        legacy : 兼容gcc4的旧abi
    """

    default = "new_abi"
    legacy = "old_abi"


class git_clone_type(enum.StrEnum):
    """git克隆类型

    Attributes:
        partial: 使用部分克隆，仅克隆提交树，然后签出最新提交。在一些较老的git服务器上不受支持。
        shallow: 使用浅克隆，仅克隆最新的提交，速度最快。
        full: 使用完全克隆，克隆完整的git仓库，消耗较多流量和时间。
    """

    partial = "partial"
    shallow = "shallow"
    full = "full"

    def get_clone_option(self) -> list[str]:
        match (self):
            case git_clone_type.partial:
                return ["--filter=blob:none"]
            case git_clone_type.shallow:
                return ["--depth=1"]
            case git_clone_type.full:
                return []


class git_url:
    remote: str
    path: str
    protocol: str

    def __init__(self, remote: str, path: str, protocol: str = "https") -> None:
        """配置一个git仓库的远程源

        Args:
            remote (str): 托管平台名称
            path (str): git仓库在托管平台下的路径
            protocol (str, optional): 使用的网络协议. 默认为https.
        """

        self.remote = remote
        self.path = path
        self.protocol = protocol

    def get_url(self) -> str:
        return f"{self.protocol}://{self.remote}/{self.path}"


class git_prefer_remote(enum.StrEnum):
    """gcc的git远程仓库

    Attributes:
        native: 使用gcc的原git仓库
        github: 使用GitHub上的镜像仓库
    """

    native = "native"
    github = "github"

    def get_url(self) -> str:
        return gcc_git_url_list[self].get_url()


gcc_git_url_list: typing.Final[dict[git_prefer_remote, git_url]] = {
    git_prefer_remote.native: git_url("gcc.gnu.org", "git/gcc.git", "git"),
    git_prefer_remote.github: git_url("github.com", "gcc-mirror/gcc.git"),
}


class installation_request(typing.NamedTuple):
    """一次安装的全部输入，在整个流水线中保持不变"""

    version: str
    install_dir: Path
    from_repo: bool
    jobs: int
    download_only: bool
    abi: abi_mode
    patches: tuple[Path, ...]
    tmp_root: Path
    languages: tuple[str, ...]
    strip: bool
    mirror: str
    git_remote: git_prefer_remote
    clone_type: git_clone_type


def check_release_version(version_string: str) -> bool:
    """检查源码包模式下的版本号是否是合法的发布版本号

    Args:
        version_string (str): 用户输入的版本号

    Returns:
        bool: 是否合法
    """

    try:
        release = version.Version(version_string)
    except version.InvalidVersion:
        return False
    return not release.is_devrelease and not release.local


class configure(common.basic_configure):
    """gcc安装配置"""

    version: str
    install_dir: Path | None
    from_repo: bool
    jobs: int
    download_only: bool
    abi: abi_mode
    patches: list[Path]
    languages: list[str]
    strip: bool
    mirror: str
    git_remote: git_prefer_remote
    clone_type: git_clone_type

    _origin_install_dir: str
    _origin_patches: list[str]

    def __init__(
        self,
        version: str = "",
        install_dir: str = "",
        from_repo: bool = False,
        jobs: int = 4,
        download_only: bool = False,
        abi: str = abi_mode.default,
        patches: list[str] | None = None,
        languages: list[str] | None = None,
        strip: bool | None = None,
        mirror: str = default_mirror,
        remote: str = git_prefer_remote.native,
        clone_type: str = git_clone_type.shallow,
        base_path: Path | None = None,
    ) -> None:
        """设置gcc安装配置，可默认构造以提供默认配置

        Args:
            version (str, optional): 发布版本号，仓库模式下为tag/branch/trunk路径.
            install_dir (str, optional): 安装路径.
            from_repo (bool, optional): 是否从git仓库签出源代码. 默认从源码包安装.
            jobs (int, optional): 编译时的并发数. 默认为4.
            download_only (bool, optional): 是否只准备源代码而不构建. 默认为完整安装.
            abi (str, optional): libstdc++的默认abi. 默认为新abi.
            patches (list[str] | None, optional): 按顺序应用的补丁列表. 默认不应用补丁.
            languages (list[str] | None, optional): 启用的语言列表. 默认读取环境变量GCC_INSTALL_LANGUAGES.
            strip (bool | None, optional): 是否使用install-strip安装. 默认读取环境变量GCC_INSTALL_STRIP.
            mirror (str, optional): 源码包镜像地址.
            remote (str, optional): 仓库模式下使用的git源. 默认为gcc原仓库.
            clone_type (str, optional): git克隆类型. 默认为浅克隆.
            base_path (Path | None, optional): 将相对路径转化为绝对路径时使用的基路径. 默认为当前工作目录.
        """

        super().__init__()
        base_path = base_path or Path.cwd()
        self.version = version
        self._origin_install_dir = install_dir
        self.register_encode_name_map("install_dir", "_origin_install_dir")
        self.install_dir = common.resolve_path(install_dir, base_path) if install_dir else None
        self.from_repo = from_repo
        self.jobs = jobs
        self.download_only = download_only
        self.abi = abi_mode(abi)
        self._origin_patches = [*(patches or [])]
        self.register_encode_name_map("patches", "_origin_patches")
        self.patches = [common.resolve_path(patch, base_path) for patch in self._origin_patches]
        self.languages = common.get_environ_list(languages_environ) if languages is None else [*languages]
        self.strip = common.get_environ_flag(strip_environ) if strip is None else strip
        self.mirror = mirror.rstrip("/")
        self.git_remote = git_prefer_remote(remote)
        self.register_encode_name_map("remote", "git_remote")
        self.clone_type = git_clone_type(clone_type)

    @classmethod
    def add_argument(cls, parser: argparse.ArgumentParser) -> None:
        """添加gcc安装相关选项

        Args:
            parser (argparse.ArgumentParser): 命令行解析器
        """

        super().add_argument(parser)
        default_config = configure(languages=[], strip=False)
        action = parser.add_argument(
            "-d", dest="install_dir", type=common.absolute_path, required=True, help="The directory to install gcc to."
        )
        setattr(action, "completer", common.dir_completer)
        parser.add_argument(
            "-v",
            dest="version",
            type=str,
            required=True,
            help="The gcc version to install. A release version like 8.2.0 in archive mode, "
            "or a repository path like trunk, tags/<tag> or branches/<branch> in repository mode.",
        )
        parser.add_argument(
            "-o",
            dest="abi",
            type=str,
            choices=[mode.value for mode in abi_mode],
            help="The default C++ ABI of libstdc++.",
            default=default_config.abi,
        )
        parser.add_argument(
            "-r", dest="from_repo", action="store_true", help="Check out the sources from the git repository instead of an archive."
        )
        parser.add_argument(
            "-j", dest="jobs", type=common.positive_int, help="Number of concurrent jobs at build time.", default=default_config.jobs
        )
        parser.add_argument(
            "-x", dest="download_only", action="store_true", help="Only download and prepare the sources, keep the workspace."
        )
        action = parser.add_argument(
            "-p",
            dest="patches",
            type=common.absolute_path,
            action="append",
            help="A patch to apply to the sources. May be given multiple times, patches are applied in order.",
        )
        setattr(action, "completer", common.files_completer([".patch", ".diff"]))
        parser.add_argument("--mirror", type=str, help="The mirror to download gcc archives from.", default=default_config.mirror)
        parser.add_argument(
            "--remote",
            type=str,
            choices=[remote.value for remote in git_prefer_remote],
            help="The git remote to check out from in repository mode.",
            default=default_config.git_remote,
        )
        parser.add_argument(
            "--clone-type",
            dest="clone_type",
            type=str,
            choices=[clone_type.value for clone_type in git_clone_type],
            help="How to clone the git repository in repository mode.",
            default=default_config.clone_type,
        )

    def check(self) -> None:
        """检查各个参数是否合法

        Raises:
            common.usage_error: 参数不合法时抛出异常
        """

        if not self.version:
            raise common.usage_error("The version is empty.")
        if not self.install_dir:
            raise common.usage_error("The install directory is empty.")
        if not self.from_repo and not check_release_version(self.version):
            raise common.usage_error(f'Invalid release version: "{self.version}".')
        if self.jobs <= 0:
            raise common.usage_error(f"Invalid jobs: {self.jobs}.")

    def get_request(self) -> installation_request:
        """根据当前配置生成不可变的安装请求

        Returns:
            installation_request: 安装请求
        """

        self.check()
        assert self.install_dir
        return installation_request(
            version=self.version,
            install_dir=self.install_dir,
            from_repo=self.from_repo,
            jobs=self.jobs,
            download_only=self.download_only,
            abi=self.abi,
            patches=tuple(self.patches),
            tmp_root=self.tmp_root,
            languages=tuple(self.languages),
            strip=self.strip,
            mirror=self.mirror,
            git_remote=self.git_remote,
            clone_type=self.clone_type,
        )


__all__ = [
    "abi_mode",
    "git_clone_type",
    "git_prefer_remote",
    "installation_request",
    "check_release_version",
    "configure",
]
