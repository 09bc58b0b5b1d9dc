import os
import sys
import subprocess
import venv
from pathlib import Path

# Project root (where run_nebula.py lives)
ROOT_DIR = Path(__file__).resolve().parent
VENV_DIR = ROOT_DIR / ".venv"

BASE_PACKAGES = [
    "numpy",
    "PyQt6",
]

# 3D rendering backend for the glyph sphere
VISUAL_PACKAGES = [
    "vispy",
]


def ensure_venv() -> Path:
    """Create .venv if needed and return the venv python executable."""
    if not VENV_DIR.exists():
        print("[nebula] Creating local virtual environment (.venv)...")
        venv.create(VENV_DIR, with_pip=True)

    if os.name == "nt":
        python_path = VENV_DIR / "Scripts" / "python.exe"
    else:
        python_path = VENV_DIR / "bin" / "python"

    if not python_path.exists():
        raise RuntimeError(f"Python in venv not found: {python_path}")

    return python_path


def run_pip(venv_python: Path, args: list[str]) -> None:
    """Run pip inside the venv, raise if it fails."""
    cmd = [str(venv_python), "-m", "pip"] + args
    print("[nebula] Running:", " ".join(cmd))
    subprocess.check_call(cmd)


def install_requirements(venv_python: Path) -> None:
    print("[nebula] Updating dependencies in venv...")
    run_pip(venv_python, ["install", "--upgrade", "pip"])
    run_pip(venv_python, ["install", "--upgrade", *BASE_PACKAGES])

    try:
        run_pip(venv_python, ["install", "--upgrade", *VISUAL_PACKAGES])
    except subprocess.CalledProcessError as e:
        print("[nebula] WARNING: Could not install visualization packages:", e)
        print("[nebula] The sphere will be replaced by an explanatory label.")


def main():
    venv_python = ensure_venv()
    install_requirements(venv_python)

    # Make nebula_app importable from the subprocess without installing it
    env = os.environ.copy()
    old_pythonpath = env.get("PYTHONPATH", "")
    env["PYTHONPATH"] = str(ROOT_DIR) + (os.pathsep + old_pythonpath if old_pythonpath else "")

    cmd = [str(venv_python), "-m", "nebula_app", *sys.argv[1:]]
    sys.exit(subprocess.call(cmd, env=env))


if __name__ == "__main__":
    main()
