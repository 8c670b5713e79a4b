from . import common
from .request import abi_mode, installation_request
from .workspace import workspace

# 总是启用的配置选项
basic_option = ("--enable-threads=posix", "--enable-tls", "--disable-multilib")
# 使用旧abi时添加的选项
legacy_abi_option = "--with-default-libstdcxx-abi=gcc4-compatible"


def get_configure_options(request: installation_request) -> list[str]:
    """根据安装请求生成configure选项

    Args:
        request (installation_request): 安装请求

    Returns:
        list[str]: configure选项
    """

    option_list = [f"--prefix={request.install_dir}"]
    if request.abi == abi_mode.legacy:
        option_list.append(legacy_abi_option)
    option_list += basic_option
    if request.languages:
        option_list.append(f"--enable-languages={','.join(request.languages)}")
    return option_list


class environment:
    """gcc构建环境，所有命令都在工作区的build目录下运行"""

    ws: workspace
    request: installation_request

    def __init__(self, ws: workspace, request: installation_request) -> None:
        self.ws = ws
        self.request = request

    def enter_build_dir(self) -> None:
        common.chdir(self.ws.build_dir)

    def configure(self) -> None:
        """以相对路径调用src下的configure"""

        self.enter_build_dir()
        common.run_command(["../src/configure", *common.command_quiet.get_option(), *get_configure_options(self.request)])

    def make(self) -> None:
        self.enter_build_dir()
        common.run_command(["make", *common.command_quiet.get_option(), "-j", str(self.request.jobs)])

    def install(self) -> None:
        """安装到prefix，设置了GCC_INSTALL_STRIP时使用install-strip"""

        self.enter_build_dir()
        target = "install-strip" if self.request.strip else "install"
        common.run_command(["make", *common.command_quiet.get_option(), target])

    def build(self) -> None:
        """依次进行配置、编译和安装，任一步失败则不再进行后续步骤"""

        with common.chdir_guard(self.ws.root):
            self.configure()
            self.make()
            self.install()
        common.installer_print(common.installer_success(f"Install gcc {self.request.version} -> {self.request.install_dir} successfully."))


def build(ws: workspace, request: installation_request) -> None:
    environment(ws, request).build()


__all__ = ["basic_option", "legacy_abi_option", "get_configure_options", "environment", "build"]
