#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# PYTHON_ARGCOMPLETE_OK

import argparse
import sys

import argcomplete

from . import build, common, disk_usage, patch, source
from .request import *
from .workspace import run_outcome, workspace, workspace_scope


def run_pipeline(request: installation_request, ws: workspace) -> run_outcome:
    """依次获取源代码、应用补丁、构建和安装，任一步失败则抛出异常并跳过后续步骤

    Args:
        request (installation_request): 安装请求
        ws (workspace): 本次运行独占的工作区

    Returns:
        run_outcome: 流水线的结束方式
    """

    src_dir = source.acquire(request, ws)
    patch.apply_patches(src_dir, request.patches)
    if request.download_only:
        common.installer_print(common.installer_note(f"Download only, sources are kept in {src_dir}."))
        return run_outcome.prepared

    build.build(ws, request)
    for label, dir in (("TMP", ws.root), ("SRC", ws.src_dir), ("BUILD", ws.build_dir)):
        disk_usage.report(label, dir)
    return run_outcome.installed


def install(request: installation_request) -> run_outcome:
    """在新的工作区中运行流水线，只有完整安装成功后才删除工作区

    Args:
        request (installation_request): 安装请求

    Returns:
        run_outcome: 流水线的结束方式
    """

    with workspace_scope(request) as ws:
        ws.outcome = run_pipeline(request, ws)
    return ws.outcome


__all__ = ["run_pipeline", "install", "main"]


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Download, patch, build and install gcc from source in a disposable workspace.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    configure.add_argument(parser)

    argcomplete.autocomplete(parser)
    errno = 0
    try:
        args = parser.parse_args(argv)
        current_config = configure.parse_args(args)
        request = current_config.get_request()
        current_config.save_config()
        install(request)
    except common.usage_error as e:
        parser.error(str(e))
    except Exception as e:
        # 供脚本匹配的错误行，不着色
        print("ERROR:", str(e).replace("\n", " "), file=sys.stderr)
        common.status_counter.add(common.message_level.error)
        errno = 1
    finally:
        common.status_counter.show_status()
    return errno
