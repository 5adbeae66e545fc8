#!/usr/bin/env python3
"""
一键启动脚本 - 启动前端服务并打开浏览器
"""
import argparse
import subprocess
import sys
import threading
import time
import webbrowser
from pathlib import Path


def check_dependencies():
    """检查依赖是否安装"""
    try:
        import fastapi
        import uvicorn
        import aiohttp
        import pydantic
        print("✅ 所有依赖已安装")
        return True
    except ImportError as e:
        print(f"❌ 缺少依赖: {e}")
        print("请运行: pip install -e .")
        return False


def main():
    parser = argparse.ArgumentParser(description="BVTC (bilibili-video-to-cloudnet)")
    parser.add_argument("--no-browser", action="store_true", help="不自动打开浏览器")
    args = parser.parse_args()

    print("🎵 BVTC (bilibili-video-to-cloudnet)")
    print("=" * 50)

    # 检查是否在正确目录
    if not Path("backend").exists():
        print("❌ 请在项目根目录运行此脚本")
        return

    if not check_dependencies():
        return

    sys.path.insert(0, str(Path("backend").resolve()))
    from bvtc.config import PORT

    print("🔄 按 Ctrl+C 停止服务")
    print("-" * 50)

    try:
        if not args.no_browser:
            # 延迟打开浏览器
            def open_browser():
                time.sleep(2)
                webbrowser.open(f'http://localhost:{PORT}')

            threading.Thread(target=open_browser, daemon=True).start()

        subprocess.run([sys.executable, str(Path("backend") / "start_server.py")])
    except KeyboardInterrupt:
        print("\n👋 服务已停止")


if __name__ == "__main__":
    main()
