from collections.abc import Sequence
from pathlib import Path

from . import common


def apply_patch(src_dir: Path, patch: Path) -> None:
    """在源代码树中应用单个补丁，补丁中的路径去掉第一级目录

    Args:
        src_dir (Path): 源代码树
        patch (Path): 补丁文件

    Raises:
        common.fatal_error: 补丁应用失败时抛出异常
    """

    # 进入src前先转为绝对路径
    patch = patch.resolve()
    with common.chdir_guard(src_dir):
        try:
            # --batch: 不匹配时直接失败，不在终端上询问要修改的文件
            common.run_command(["patch", "--batch", *common.command_quiet.get_option(), "-p1", "-i", str(patch)])
        except common.fatal_error as e:
            raise common.fatal_error(f'Apply patch "{patch}" failed: {e}')


def apply_patches(src_dir: Path, patches: Sequence[Path]) -> None:
    """按给定顺序应用所有补丁，遇到第一个失败的补丁即停止

    Args:
        src_dir (Path): 源代码树
        patches (Sequence[Path]): 补丁文件列表
    """

    for patch in patches:
        apply_patch(src_dir, patch)
    if patches:
        common.installer_print(common.installer_success(f"Apply {len(patches)} patch(es) successfully."))


__all__ = ["apply_patch", "apply_patches"]
