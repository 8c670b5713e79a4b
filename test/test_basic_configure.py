from typing import TypeAlias
import argparse
import json
import pathlib
import tempfile

import py
import pytest

from gcc_installer.common import command_dry_run, fatal_error, usage_error
from gcc_installer.request import (
    abi_mode,
    configure,
    default_mirror,
    git_clone_type,
    git_prefer_remote,
    languages_environ,
    strip_environ,
)

Path: TypeAlias = py.path.LocalPath


def test_default_construct() -> None:
    """测试configure是否可以正常默认构造"""

    config = configure()
    assert config.jobs == 4
    assert config.abi == abi_mode.default
    assert config.patches == []
    assert config.languages == [] and config.strip == False
    assert config.tmp_root == pathlib.Path(tempfile.gettempdir()).resolve()


class test_basic_configure:
    parser: argparse.ArgumentParser

    @classmethod
    def setup_class(cls) -> None:
        cls.parser = argparse.ArgumentParser()
        configure.add_argument(cls.parser)

    def parse(self, tmpdir: Path, *argv: str) -> configure:
        args = self.parser.parse_args(["-d", str(tmpdir / "prefix"), "-v", "8.2.0", *argv])
        return configure.parse_args(args)

    def test_common_args(self) -> None:
        """测试公共选项是否添加到解析器中，针对basic_configure.add_argument"""

        arg_list = {action.dest for action in self.parser._actions}
        assert {"tmp_root", "import_file", "export_file", "dry_run", "quiet"} < arg_list
        assert {"install_dir", "version", "abi", "from_repo", "jobs", "download_only", "patches"} < arg_list

    def test_missing_required(self) -> None:
        """测试缺少-d或-v时argparse以状态码2退出"""

        for argv in (["-v", "8.2.0"], ["-d", "/opt/gcc"], []):
            with pytest.raises(SystemExit) as e:
                self.parser.parse_args(argv)
            assert e.value.code == 2

    def test_invalid_jobs(self) -> None:
        for jobs in ("0", "-1", "four"):
            with pytest.raises(SystemExit) as e:
                self.parser.parse_args(["-d", "/opt/gcc", "-v", "8.2.0", "-j", jobs])
            assert e.value.code == 2

    def test_default_config(self, tmpdir: Path) -> None:
        """测试只传递必需参数时得到默认配置"""

        config = self.parse(tmpdir)
        request = config.get_request()
        assert request.version == "8.2.0"
        assert request.install_dir == pathlib.Path(tmpdir / "prefix")
        assert request.jobs == 4
        assert not request.from_repo and not request.download_only
        assert request.abi == abi_mode.default
        assert request.patches == ()
        assert request.mirror == default_mirror
        assert request.git_remote == git_prefer_remote.native
        assert request.clone_type == git_clone_type.shallow

    def test_all_options(self, tmpdir: Path) -> None:
        """测试各个选项能否正常解析"""

        config = self.parse(
            tmpdir,
            "-o",
            "old_abi",
            "-r",
            "-j",
            "16",
            "-x",
            "-p",
            "b.patch",
            "-p",
            "a.patch",
            "--remote",
            "github",
            "--clone-type",
            "full",
            "--tmp-root",
            str(tmpdir),
        )
        request = config.get_request()
        assert request.abi == abi_mode.legacy
        assert request.from_repo and request.download_only
        assert request.jobs == 16
        # 补丁保持输入顺序并转化为绝对路径
        assert request.patches == (pathlib.Path.cwd() / "b.patch", pathlib.Path.cwd() / "a.patch")
        assert request.git_remote == git_prefer_remote.github
        assert request.clone_type == git_clone_type.full
        assert request.tmp_root == pathlib.Path(tmpdir)

    def test_relative_install_dir(self, tmpdir: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """测试安装路径被转化为绝对路径"""

        monkeypatch.chdir(tmpdir)
        args = self.parser.parse_args(["-d", "prefix", "-v", "8.2.0"])
        assert configure.parse_args(args).get_request().install_dir == pathlib.Path(tmpdir) / "prefix"

    def test_environ(self, tmpdir: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """测试从环境变量读取语言列表、strip选项和临时目录"""

        monkeypatch.setenv(languages_environ, "c,c++,,fortran")
        monkeypatch.setenv(strip_environ, "1")
        monkeypatch.setenv("GCC_INSTALL_TMPDIR", str(tmpdir))
        request = self.parse(tmpdir).get_request()
        assert request.languages == ("c", "c++", "fortran")
        assert request.strip
        assert request.tmp_root == pathlib.Path(tmpdir)

        # 命令行选项优先于环境变量
        other_root = tmpdir / "other"
        request = self.parse(tmpdir, "--tmp-root", str(other_root)).get_request()
        assert request.tmp_root == pathlib.Path(other_root)

    def test_invalid_strip_environ(self, tmpdir: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv(strip_environ, "yes")
        with pytest.raises(usage_error):
            self.parse(tmpdir)

    def test_version_check(self, tmpdir: Path) -> None:
        """测试源码包模式要求发布版本号，仓库模式接受任意路径"""

        args = self.parser.parse_args(["-d", str(tmpdir), "-v", "trunk"])
        with pytest.raises(usage_error):
            configure.parse_args(args).get_request()
        request = configure.parse_args(self.parser.parse_args(["-d", str(tmpdir), "-v", "trunk", "-r"])).get_request()
        assert request.version == "trunk"

    def test_import(self, tmpdir: Path) -> None:
        """测试从文件导入配置信息，命令行中的选项优先

        Args:
            tmpdir (Path): 临时文件路径
        """

        tmpfile = pathlib.Path(tmpdir) / "test.json"
        test_json = {"jobs": 8, "patches": ["fix.patch"], "tmp_root": "workspaces", "mirror": "ftp://example.org/gcc", "abi": "old_abi"}
        with open(tmpfile, "w") as file:
            json.dump(test_json, file)

        config = self.parse(tmpdir, "--import", str(tmpfile), "-o", "new_abi", "-j", "2")
        request = config.get_request()
        # 配置文件中的相对路径基于配置文件所在目录
        assert request.patches == (pathlib.Path(tmpdir) / "fix.patch",)
        assert request.tmp_root == pathlib.Path(tmpdir) / "workspaces"
        assert request.mirror == "ftp://example.org/gcc"
        assert request.jobs == 2
        # 与默认值相同的命令行选项无法覆盖导入的配置
        assert request.abi == abi_mode.legacy

    def test_export(self, tmpdir: Path) -> None:
        """测试导出配置信息到文件

        Args:
            tmpdir (Path): 临时文件路径
        """

        tmpfile = pathlib.Path(tmpdir) / "test.json"
        patch = str(tmpdir / "fix.patch")
        config = self.parse(tmpdir, "-p", patch, "--export", str(tmpfile))
        config.save_config()

        gt = {
            "version": "8.2.0",
            "install_dir": str(tmpdir / "prefix"),
            "from_repo": False,
            "jobs": 4,
            "download_only": False,
            "abi": "new_abi",
            "patches": [patch],
            "languages": [],
            "strip": False,
            "mirror": default_mirror,
            "remote": "native",
            "clone_type": "shallow",
            "tmp_root": tempfile.gettempdir(),
        }
        with tmpfile.open() as file:
            export_config = json.load(file)
        assert export_config == gt

    def test_dry_run(self, tmpdir: Path) -> None:
        """测试全局的dry_run状态是否正常设置"""

        _ = self.parse(tmpdir, "--dry-run")
        assert command_dry_run.get() == True
        _ = self.parse(tmpdir, "--no-dry-run")
        assert command_dry_run.get() == False

    def test_import_noexist_file(self, tmpdir: Path) -> None:
        """测试打开一个不存在的配置文件

        Args:
            tmpdir (Path): 临时文件目录
        """

        with pytest.raises(fatal_error):
            self.parse(tmpdir, "--import", str(tmpdir / "test.json"))

    def test_export_unwritable_file(self, tmpdir: Path) -> None:
        """测试写入一个不可写的配置文件"""

        config = self.parse(tmpdir, "--export", str(tmpdir / "noexist" / "test.json"))
        with pytest.raises(fatal_error):
            config.save_config()
