import subprocess
import types
import typing
from collections.abc import Callable
from pathlib import Path

import py
import pytest

from gcc_installer import common, request, source
from gcc_installer.request import abi_mode, git_clone_type, git_prefer_remote, installation_request


class command_recorder:
    """替代common.run_command，记录收到的命令并模拟执行结果"""

    command_list: list[list[str]]
    cwd_list: list[Path]
    fail_rule_list: list[Callable[[list[str]], bool]]
    du_output: str
    simulate: bool

    def __init__(self) -> None:
        self.command_list = []
        self.cwd_list = []
        self.fail_rule_list = []
        self.du_output = "1024\t."
        self.simulate = True

    def fail_when(self, rule: Callable[[list[str]], bool]) -> None:
        """使满足rule的命令执行失败"""

        self.fail_rule_list.append(rule)

    def program_list(self) -> list[str]:
        return [command[0] for command in self.command_list]

    def find(self, program: str) -> list[list[str]]:
        return [command for command in self.command_list if command[0] == program]

    def _simulate(self, command: list[str]) -> None:
        """模拟会产生源代码树的命令"""

        match command:
            case ["tar", *_]:
                src_dir = Path(command[command.index("-C") + 1])
                (src_dir / "configure").touch()
            case ["git", "clone", *_, dest]:
                Path(dest).mkdir(parents=True, exist_ok=True)
                (Path(dest) / "configure").touch()
            case _:
                pass

    def __call__(
        self,
        command: str | list[str],
        ignore_error: bool = False,
        capture: typing.Any = False,
        echo: bool = True,
        dry_run: bool | None = None,
    ) -> subprocess.CompletedProcess[str] | None:
        if common.need_dry_run(dry_run):
            return None
        command = command.split() if isinstance(command, str) else [*command]
        self.command_list.append(command)
        self.cwd_list.append(Path.cwd())
        if any(rule(command) for rule in self.fail_rule_list):
            if ignore_error:
                return None
            raise common.fatal_error(f'Command "{" ".join(command)}" failed with errno=1.')
        if self.simulate:
            self._simulate(command)
        stdout = self.du_output if command[0] == "du" else ""
        return subprocess.CompletedProcess(command, 0, stdout, "")


class fake_head:
    """替代requests.head，按url返回预设的状态码"""

    status_list: dict[str, int]
    url_list: list[str]

    def __init__(self) -> None:
        self.status_list = {}
        self.url_list = []

    def __call__(self, url: str, **_: typing.Any) -> types.SimpleNamespace:
        self.url_list.append(url)
        return types.SimpleNamespace(status_code=self.status_list.get(url, 404))


@pytest.fixture(autouse=True)
def reset_global_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    """每个测试前恢复全局状态并清除相关环境变量"""

    common.command_dry_run.set(False)
    common.command_quiet.set(False)
    common.installer_quiet.set(False)
    common.status_counter.set_quiet(False)
    for key in (common.tmp_root_environ, request.languages_environ, request.strip_environ):
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def recorder(monkeypatch: pytest.MonkeyPatch) -> command_recorder:
    result = command_recorder()
    monkeypatch.setattr(common, "run_command", result)
    return result


@pytest.fixture
def http(monkeypatch: pytest.MonkeyPatch) -> fake_head:
    result = fake_head()
    monkeypatch.setattr(source.requests, "head", result)
    return result


@pytest.fixture
def make_request(tmpdir: py.path.LocalPath) -> Callable[..., installation_request]:
    """生成以tmpdir为临时目录根路径的安装请求"""

    def factory(**kwargs: typing.Any) -> installation_request:
        field_list: dict[str, typing.Any] = {
            "version": "8.2.0",
            "install_dir": Path(tmpdir) / "prefix",
            "from_repo": False,
            "jobs": 4,
            "download_only": False,
            "abi": abi_mode.default,
            "patches": (),
            "tmp_root": Path(tmpdir),
            "languages": (),
            "strip": False,
            "mirror": request.default_mirror,
            "git_remote": git_prefer_remote.native,
            "clone_type": git_clone_type.shallow,
        }
        field_list.update(kwargs)
        return installation_request(**field_list)

    return factory
