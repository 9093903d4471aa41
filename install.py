#!/usr/bin/env python3
"""Install script for finn-bot.

Usage:
    python install.py          # Production install
    python install.py --dev    # Development install (includes test tools)
"""

import os
import platform
import shutil
import subprocess
import sys

MIN_PYTHON = (3, 11)


def main() -> None:
    if sys.version_info < MIN_PYTHON:
        sys.exit(
            f"Error: Python {MIN_PYTHON[0]}.{MIN_PYTHON[1]}+ is required. "
            f"You have {sys.version_info.major}.{sys.version_info.minor}."
        )

    dev = "--dev" in sys.argv
    project_dir = os.path.dirname(os.path.abspath(__file__))
    venv_dir = os.path.join(project_dir, ".venv")
    is_windows = platform.system() == "Windows"
    pip = os.path.join(venv_dir, "Scripts" if is_windows else "bin", "pip")

    if not os.path.isdir(venv_dir):
        print("Creating virtual environment...")
        subprocess.check_call([sys.executable, "-m", "venv", venv_dir])

    target = ".[dev]" if dev else "."
    print(f"Installing finn-bot ({'development' if dev else 'production'})...")
    subprocess.check_call([pip, "install", "-e", target] if dev else [pip, "install", target], cwd=project_dir)

    # Database and the model catalog cache live here
    os.makedirs(os.path.join(project_dir, "data"), exist_ok=True)

    for src, dst in [("config.example.yaml", "config.yaml"), (".env.example", ".env")]:
        src_path = os.path.join(project_dir, src)
        dst_path = os.path.join(project_dir, dst)
        if os.path.exists(dst_path):
            print(f"{dst} already exists, skipping.")
        elif os.path.exists(src_path):
            shutil.copy(src_path, dst_path)
            print(f"Created {dst} from {src}")

    activate_cmd = r".\.venv\Scripts\activate" if is_windows else "source .venv/bin/activate"
    print()
    print("Next steps:")
    print("  1. Edit .env - set ANTHROPIC_API_KEY and OPENROUTER_API_KEY")
    print(f"  2. Activate the virtual environment: {activate_cmd}")
    print("  3. Check config:   python -m finn_bot config-check")
    print("  4. Start chatting: python -m finn_bot chat")


if __name__ == "__main__":
    main()
