import argparse
import enum
import functools
import inspect
import json
import os
import shutil
import subprocess
import tempfile
import typing
from collections.abc import Callable, Generator
from contextlib import contextmanager
from pathlib import Path
from typing import ParamSpec, Self, TypeVar

import colorama

# 覆盖临时目录根路径的环境变量
tmp_root_environ = "GCC_INSTALL_TMPDIR"


class message_type(enum.IntEnum):
    """消息前缀

    Attributes:
        installer         : [gcc-installer]
        installer_internal: [gcc-installer internal]，用于内部断言
        none              : 无前缀
    """

    installer = enum.auto()
    installer_internal = enum.auto()
    none = enum.auto()


class color(enum.StrEnum):
    """终端配色"""

    warning = colorama.Fore.MAGENTA
    error = colorama.Fore.RED
    success = colorama.Fore.GREEN
    note = colorama.Fore.LIGHTBLUE_EX
    reset = colorama.Fore.RESET
    installer = f"{colorama.Fore.CYAN}[gcc-installer]{reset}"
    installer_internal = f"{colorama.Fore.CYAN}[gcc-installer internal]{reset}"

    def wrapper(self, string: str) -> str:
        return f"{self}{string}{color.reset}"

    @staticmethod
    def get_prefix(message_prefix: message_type) -> str:
        match (message_prefix):
            case message_type.installer:
                return color.installer + " "
            case message_type.installer_internal:
                return color.installer_internal + " "
            case message_type.none:
                return ""


class message_level(enum.StrEnum):
    """消息级别，定义顺序即状态计数的输出顺序"""

    error = "error"
    warning = "warning"
    note = "note"
    info = "info"
    success = "success"

    def paint(self, string: str) -> str:
        """按级别着色，info保持默认配色"""

        match (self):
            case message_level.info:
                return string
            case _:
                return color[self.value].wrapper(string)


class status_counter:
    """各级别消息的数量，程序结束时输出一行汇总"""

    __counter: typing.ClassVar[dict[message_level, int]] = dict.fromkeys(message_level, 0)
    __quiet: bool = False

    @classmethod
    def add(cls, level: message_level) -> None:
        cls.__counter[level] += 1

    @classmethod
    def set_quiet(cls, quiet: bool) -> None:
        cls.__quiet = quiet

    @classmethod
    def show_status(cls) -> None:
        if not cls.__quiet:
            print(color.installer, *(level.paint(f"{level}: {count}") for level, count in cls.__counter.items()))


def _make_message(level: message_level, string: str, message_prefix: message_type) -> str:
    """生成带前缀和颜色的消息，并计入状态计数

    Args:
        level (message_level): 消息级别
        string (str): 消息内容
        message_prefix (message_type): 前缀类型

    Returns:
        str: 可以直接打印的消息
    """

    status_counter.add(level)
    return f"{color.get_prefix(message_prefix)}{level.paint(string)}"


def installer_warning(string: str, message_prefix: message_type = message_type.installer) -> str:
    return _make_message(message_level.warning, string, message_prefix)


def installer_error(string: str, message_prefix: message_type = message_type.installer) -> str:
    return _make_message(message_level.error, string, message_prefix)


def installer_success(string: str, message_prefix: message_type = message_type.installer) -> str:
    return _make_message(message_level.success, string, message_prefix)


def installer_note(string: str, message_prefix: message_type = message_type.installer) -> str:
    return _make_message(message_level.note, string, message_prefix)


def installer_info(string: str, message_prefix: message_type = message_type.installer) -> str:
    return _make_message(message_level.info, string, message_prefix)


class fatal_error(RuntimeError):
    """流水线中任一外部操作失败时抛出，消息中包含失败的操作"""


class usage_error(ValueError):
    """命令行或环境变量输入不合法"""


class _global_switch:
    """进程级的布尔开关，由命令行选项在解析时设置"""

    _value: bool = False

    @classmethod
    def get(cls) -> bool:
        return cls._value

    @classmethod
    def set(cls, value: bool) -> None:
        cls._value = value


class command_dry_run(_global_switch):
    """只回显命令和文件系统操作，不实际执行"""


class command_quiet(_global_switch):
    """为wget、git、patch、make等命令添加--quiet"""

    @classmethod
    def get_option(cls) -> list[str]:
        return ["--quiet"] if cls.get() else []


class installer_quiet(_global_switch):
    """不输出gcc-installer自身的提示信息"""


def installer_print(*values: object, sep: str | None = " ", end: str | None = "\n") -> None:
    if not installer_quiet.get():
        print(*values, sep=sep, end=end)


def need_dry_run(dry_run: bool | None) -> bool:
    """显式传入的dry_run优先，为None时使用全局状态"""

    return command_dry_run.get() if dry_run is None else dry_run


P = ParamSpec("P")
R = TypeVar("R")


def support_dry_run(echo_fn: Callable[..., str | None] | None = None) -> Callable[[Callable[P, R]], Callable[P, R | None]]:
    """装饰会修改外部状态的函数：先回显，再根据dry_run参数和全局状态决定是否执行
    被装饰函数没有dry_run参数时只使用全局状态

    Args:
        echo_fn (Callable[..., str | None] | None, optional): 生成回显内容的函数，返回None时不回显.
            其参数按名字从被装饰函数的实参中取得. 默认不回显.
    """

    def decorator(fn: Callable[P, R]) -> Callable[P, R | None]:
        signature = inspect.signature(fn)
        echo_param_list = [*inspect.signature(echo_fn).parameters] if echo_fn else []
        for key in echo_param_list:
            assert key in signature.parameters, installer_error(
                f"The param {key} of {echo_fn} is not a param of {fn.__name__}.", message_type.installer_internal
            )

        @functools.wraps(fn)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R | None:
            bound_args = signature.bind(*args, **kwargs)
            bound_args.apply_defaults()
            if echo_fn and (echo := echo_fn(*(bound_args.arguments[key] for key in echo_param_list))) is not None:
                installer_print(echo)
            if need_dry_run(bound_args.arguments.get("dry_run")):
                return None
            return fn(*bound_args.args, **bound_args.kwargs)

        return wrapper

    return decorator


def _run_command_echo(command: str | list[str], echo: bool) -> str | None:
    if isinstance(command, list):
        command = " ".join(command)
    return installer_info(f"Run command: {command}") if echo else None


@support_dry_run(_run_command_echo)
def run_command(
    command: str | list[str],
    ignore_error: bool = False,
    capture: bool = False,
    echo: bool = True,
    dry_run: bool | None = None,
) -> subprocess.CompletedProcess[str] | None:
    """运行外部命令

    Args:
        command (str | list[str]): 要运行的命令，str在shell内运行，list[str]直接运行
        ignore_error (bool, optional): 失败时只警告而不抛出异常. 默认为False.
        capture (bool, optional): 捕获标准输出和标准错误. 默认为False.
        echo (bool, optional): 回显命令和命令的标准输出. 标准错误总是保留，以便失败时查看原因. 默认为True.
        dry_run (bool | None, optional): 只回显而不执行. 默认使用全局状态.

    Raises:
        fatal_error: 命令无法运行或返回非零状态，且ignore_error为False

    Returns:
        subprocess.CompletedProcess[str] | None: 执行结果，忽略的失败和dry run返回None
    """

    if capture:
        stdout = stderr = subprocess.PIPE
    else:
        stdout, stderr = (None if echo else subprocess.DEVNULL), None
    command_str = command if isinstance(command, str) else " ".join(command)
    try:
        return subprocess.run(command, stdout=stdout, stderr=stderr, shell=isinstance(command, str), check=True, text=True)
    except (subprocess.CalledProcessError, OSError) as e:
        if isinstance(e, subprocess.CalledProcessError):
            reason = f"failed with errno={e.returncode}"
        else:
            # 可执行文件不存在等情况
            reason = f"cannot be run: {e}"
        if not ignore_error:
            raise fatal_error(f'Command "{command_str}" {reason}.')
        if echo:
            installer_print(installer_warning(f'Command "{command_str}" {reason}, but it is ignored.'))
        return None


def _mkdir_echo(path: Path) -> str:
    return installer_info(f"Create directory {path}.")


@support_dry_run(_mkdir_echo)
def mkdir(path: Path, dry_run: bool | None = None) -> None:
    """创建目录及其父目录

    Raises:
        fatal_error: 创建失败
    """

    try:
        os.makedirs(path, exist_ok=True)
    except OSError as e:
        raise fatal_error(f'Create directory "{path}" failed: {e}')


def _remove_echo(path: Path) -> str:
    return installer_info(f"Remove {path}.")


@support_dry_run(_remove_echo)
def remove(path: Path, dry_run: bool | None = None) -> None:
    """删除文件或整个目录树

    Raises:
        fatal_error: 删除失败
    """

    try:
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
        else:
            os.remove(path)
    except OSError as e:
        raise fatal_error(f'Remove "{path}" failed: {e}')


def _chdir_echo(path: Path) -> str:
    return installer_info(f"Enter directory {path}.")


@support_dry_run(_chdir_echo)
def chdir(path: Path, dry_run: bool | None = None) -> Path:
    """进入path，返回之前的工作目录"""

    cwd = Path.cwd()
    os.chdir(path)
    return cwd


@contextmanager
def chdir_guard(path: Path, dry_run: bool | None = None) -> Generator[None, None, None]:
    """在with块内以path为工作目录，离开时无论是否发生异常都恢复原工作目录"""

    cwd = chdir(path, dry_run) or Path.cwd()
    try:
        yield
    finally:
        chdir(cwd, dry_run)


def get_environ_list(key: str) -> list[str]:
    """读取以逗号分隔的环境变量，忽略空项，未设置时为空表"""

    return [item.strip() for item in os.environ.get(key, "").split(",") if item.strip()]


def get_environ_flag(key: str) -> bool:
    """读取取值为0/1的环境变量

    Args:
        key (str): 环境变量名称

    Raises:
        usage_error: 取值不是0或1

    Returns:
        bool: 是否为1，未设置或为空时视为0
    """

    value = os.environ.get(key, "").strip()
    match (value):
        case "" | "0":
            return False
        case "1":
            return True
        case _:
            raise usage_error(f'Invalid value of environment variable {key}: "{value}". Expected 0 or 1.')


def get_default_tmp_root() -> str:
    return os.environ.get(tmp_root_environ) or tempfile.gettempdir()


def resolve_path(path: str | Path, base_path: Path) -> Path:
    """相对路径基于base_path转化为绝对路径"""

    return (base_path / path).resolve()


def absolute_path(path: str) -> str:
    """argparse类型转换：基于当前工作目录的绝对路径"""

    return str(resolve_path(path, Path.cwd()))


def positive_int(value: str) -> int:
    """argparse类型转换：正整数

    Raises:
        argparse.ArgumentTypeError: 输入不是正整数
    """

    try:
        result = int(value)
    except ValueError:
        result = 0
    if result <= 0:
        raise argparse.ArgumentTypeError(f'invalid positive int value: "{value}"')
    return result


def _path_complete(prefix: str, need_file: bool, allowed_suffix: list[str]) -> list[str]:
    """列出已输入部分路径所在目录下的候选项，只展开~和环境变量，不经过shell

    Args:
        prefix (str): 已输入的部分路径
        need_file (bool): 是否列出文件，为False时只列出目录
        allowed_suffix (list[str]): 接受的文件后缀，为空表示接受所有文件

    Returns:
        list[str]: 候选路径，目录以/结尾
    """

    head, sep, name = prefix.rpartition("/")
    dir_prefix = head + sep
    directory = Path(os.path.expandvars(os.path.expanduser(dir_prefix or ".")))
    if not directory.is_dir():
        return []

    result: list[str] = []
    for path in directory.iterdir():
        if not path.name.startswith(name):
            continue
        # 没有明确输入.时不显示隐藏项目
        if path.name.startswith(".") and not name.startswith("."):
            continue
        if path.is_dir():
            result.append(f"{dir_prefix}{path.name}/")
        elif need_file and (not allowed_suffix or path.suffix in allowed_suffix):
            result.append(f"{dir_prefix}{path.name}")
    return sorted(result)


class files_completer:
    """argcomplete使用的文件补全器"""

    def __init__(self, allowed_suffix: str | list[str] | None = None) -> None:
        if isinstance(allowed_suffix, str):
            allowed_suffix = [allowed_suffix]
        self.allowed_suffix = allowed_suffix or []

    def __call__(self, prefix: str, **_: typing.Any) -> list[str]:
        return _path_complete(prefix, True, self.allowed_suffix)


def dir_completer(prefix: str, **_: typing.Any) -> list[str]:
    return _path_complete(prefix, False, [])


class basic_configure:
    """可从命令行和json文件构造的配置基类
    子类的构造函数参数即配置项，参数名与命令行选项的dest相同

    Attributes:
        encode_name_map: 导出时使用的构造函数参数名->成员名映射表，用于导出用户输入的原始值
    """

    tmp_root: Path
    _origin_tmp_root: str
    _args: argparse.Namespace

    encode_name_map: dict[str, str] = {}

    @classmethod
    def _get_class_chain(cls) -> list[type["basic_configure"]]:
        """从cls到basic_configure的各级配置类，子类在前"""

        return [current_cls for current_cls in cls.__mro__ if issubclass(current_cls, basic_configure)]

    @staticmethod
    def _get_init_params(current_cls: type["basic_configure"]) -> list[inspect.Parameter]:
        return [*inspect.signature(current_cls.__init__).parameters.values()][1:]

    @classmethod
    def _get_default_param_list(cls) -> dict[str, typing.Any]:
        return {
            param.name: param.default for current_cls in reversed(cls._get_class_chain()) for param in cls._get_init_params(current_cls)
        }

    def register_encode_name_map(self, param_name: str, attribute_name: str) -> None:
        """导出param_name时改为读取attribute_name，需要在属性赋值之后注册"""

        assert param_name in self._get_default_param_list(), installer_error(
            f"The param {param_name} is not a param of the __init__ function.", message_type.installer_internal
        )
        assert hasattr(self, attribute_name), installer_error(
            f"The attribute {attribute_name} is not an attribute of self.", message_type.installer_internal
        )
        type(self).encode_name_map[param_name] = attribute_name

    def __init__(self, tmp_root: str | None = None, base_path: Path | None = None) -> None:
        """
        Args:
            tmp_root (str | None, optional): 存放工作区的临时目录根路径. 默认为环境变量GCC_INSTALL_TMPDIR，未设置则为系统临时目录.
            base_path (Path | None, optional): tmp_root为相对路径时使用的基路径. 默认为当前工作目录.
        """

        self._origin_tmp_root = tmp_root or get_default_tmp_root()
        self.register_encode_name_map("tmp_root", "_origin_tmp_root")
        self.tmp_root = resolve_path(self._origin_tmp_root, base_path or Path.cwd())

    @classmethod
    def add_argument(cls, parser: argparse.ArgumentParser) -> None:
        """添加--tmp-root、--export、--import、--dry-run和--quiet选项"""

        action = parser.add_argument(
            "--tmp-root",
            dest="tmp_root",
            type=absolute_path,
            help=f"The directory to create the workspace in. Defaults to ${tmp_root_environ} or the system temporary directory. "
            "A relative tmp-root in an imported file is relative to the directory of that file.",
        )
        setattr(action, "completer", dir_completer)
        action = parser.add_argument("--export", dest="export_file", type=str, help="Export settings to a json file.")
        setattr(action, "completer", files_completer(".json"))
        action = parser.add_argument(
            "--import",
            dest="import_file",
            type=str,
            help="Import settings from a json file. Options given on the command line override imported ones.",
        )
        setattr(action, "completer", files_completer(".json"))
        parser.add_argument(
            "--dry-run",
            dest="dry_run",
            action=argparse.BooleanOptionalAction,
            help="Print the commands without running them.",
            default=False,
        )
        parser.add_argument(
            "-q",
            "--quiet",
            action="count",
            help="Increase quiet level (-q, -qq, -qqq). "
            'Level 1 passes "--quiet" to wget, git, patch, configure and make. '
            "Level 2 hides the messages of gcc-installer. "
            "Level 3 also hides the final status line.",
            default=0,
        )

    @staticmethod
    def load_config(args: argparse.Namespace) -> dict[str, typing.Any]:
        """读取--import指定的json文件，文件中的相对路径基于文件所在目录

        Raises:
            fatal_error: 文件无法读取或不是json对象
        """

        if not (import_file := args.import_file):
            return {}
        file_path = Path(import_file)
        try:
            with file_path.open() as file:
                import_config_list = json.load(file)
            if not isinstance(import_config_list, dict):
                raise ValueError("The configure file must begin with a object.")
        except (OSError, ValueError) as e:
            raise fatal_error(f'Import file "{file_path}" failed: {e}')
        result = typing.cast(dict[str, typing.Any], import_config_list)
        result["base_path"] = file_path.parent.resolve()
        return result

    @classmethod
    def decode(cls, input_list: dict[str, typing.Any]) -> Self:
        """按各级构造函数的参数名从input_list中取值并构造对象
        子类先构造，基类后构造，因为子类的构造函数会以默认参数调用基类的构造函数
        """

        result: Self = cls.__new__(cls)
        for current_cls in cls._get_class_chain():
            param_list = {param.name: input_list[param.name] for param in cls._get_init_params(current_cls) if param.name in input_list}
            current_cls.__init__(result, **param_list)
        return result

    @classmethod
    def parse_args(cls, args: argparse.Namespace) -> Self:
        """设置全局开关，合并配置文件和命令行选项后构造对象
        只有与默认值不同的命令行选项才会覆盖配置文件中的值
        """

        for key, value in (("tmp_root", None), ("dry_run", False), ("quiet", 0), ("import_file", None), ("export_file", None)):
            if not hasattr(args, key):
                setattr(args, key, value)
        command_dry_run.set(args.dry_run)
        command_quiet.set(args.quiet >= 1)
        installer_quiet.set(args.quiet >= 2)
        status_counter.set_quiet(args.quiet >= 3)

        default_list = cls._get_default_param_list()
        result_list = cls.load_config(args)
        for key, value in vars(args).items():
            if key in default_list and value != default_list[key]:
                result_list[key] = value
        result = cls.decode(result_list)
        result._args = args
        return result

    def encode(self) -> dict[str, typing.Any]:
        """将各构造函数参数对应的成员转化为可以写入json的字典，没有对应成员的参数不导出"""

        output_list: dict[str, typing.Any] = {}
        for current_cls in self._get_class_chain():
            for param in self._get_init_params(current_cls):
                key = param.name
                mapped_key = self.encode_name_map.get(key, key)
                match (value := getattr(self, mapped_key, None)):
                    case None:
                        assert mapped_key == key, installer_error(
                            f"The encode_name_map maps the param {key} to a noexist attribute.", message_type.installer_internal
                        )
                    case set() | tuple() | list():
                        output_list[key] = [str(item) if isinstance(item, Path) else item for item in value]
                    case Path():
                        output_list[key] = str(value)
                    case _:
                        output_list[key] = value
        return output_list

    def _save_config_echo(self) -> str | None:
        return installer_info(f"Save settings -> {file}.") if (file := self._args.export_file) else None

    @support_dry_run(_save_config_echo)
    def save_config(self) -> None:
        """将配置以json格式写入--export指定的文件

        Raises:
            fatal_error: 写入失败
        """

        if export_file := self._args.export_file:
            file_path = Path(export_file)
            try:
                file_path.write_text(json.dumps(self.encode(), indent=4))
            except OSError as e:
                raise fatal_error(f'Export settings to file "{file_path}" failed: {e}')


assert __name__ != "__main__", "Import this file instead of running it directly."
