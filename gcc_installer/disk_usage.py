import typing
from pathlib import Path

from . import common


class usage_report(typing.NamedTuple):
    """一次磁盘占用测量的结果，测量失败时kilobytes为None"""

    label: str
    kilobytes: int | None


def _parse_du_output(output: str) -> int | None:
    """从du -sk的输出中获取KB数

    Args:
        output (str): du的标准输出

    Returns:
        int | None: 占用的KB数，解析失败返回None
    """

    fields = output.split()
    if not fields:
        return None
    try:
        return int(fields[0])
    except ValueError:
        return None


def report(label: str, directory: Path) -> usage_report:
    """测量并输出目录的磁盘占用，测量失败只产生警告，不会中断流水线

    Args:
        label (str): 输出时使用的标签，如SRC
        directory (Path): 要测量的目录

    Returns:
        usage_report: 测量结果
    """

    if common.command_dry_run.get():
        return usage_report(label, None)

    result = common.run_command(["du", "-sk", str(directory)], ignore_error=True, capture=True, echo=False)
    kilobytes = _parse_du_output(result.stdout) if result else None
    if kilobytes is None:
        common.installer_print(common.installer_warning(f"Cannot get the disk usage of {directory}."))
    else:
        print(f"{label} DISK USAGE {kilobytes}")
    return usage_report(label, kilobytes)


__all__ = ["usage_report", "report"]
