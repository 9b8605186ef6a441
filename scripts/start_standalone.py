import os
import subprocess
import sys
from pathlib import Path


def _env_default(name: str, value: str) -> None:
    current = os.environ.get(name)
    if current is None or current.strip() == "":
        os.environ[name] = value


def _prepare_environment() -> None:
    _env_default("APP_PORT", "3000")
    _env_default("DATA_DIR", "/data")
    _env_default("AUTO_CREATE_TEACHER", "true")
    _env_default("BOOTSTRAP_TEACHER_LOGIN", "admin")
    _env_default("BOOTSTRAP_TEACHER_PASSWORD", "admin123")
    _env_default("TIMEZONE", "Asia/Shanghai")
    _env_default("SEED_DEMO_DATA", "false")


def _ensure_storage_paths() -> None:
    data_dir = Path(os.environ["DATA_DIR"])
    (data_dir / "backups").mkdir(parents=True, exist_ok=True)


def _run(cmd: list[str]) -> None:
    print(">", " ".join(cmd), flush=True)
    subprocess.run(cmd, check=True)


def main() -> None:
    _prepare_environment()
    _ensure_storage_paths()

    print("Starting standalone class points backend with:", flush=True)
    print(f"  DATA_DIR={os.environ['DATA_DIR']}", flush=True)
    print(f"  TIMEZONE={os.environ['TIMEZONE']}", flush=True)

    _run(
        [
            sys.executable,
            "scripts/seed_teacher.py",
            "--login",
            os.environ["BOOTSTRAP_TEACHER_LOGIN"],
            "--password",
            os.environ["BOOTSTRAP_TEACHER_PASSWORD"],
        ]
    )
    if os.environ["SEED_DEMO_DATA"].strip().lower() in {"1", "true", "yes", "on"}:
        _run([sys.executable, "scripts/seed_demo_data.py"])

    os.execvp(
        "uvicorn",
        [
            "uvicorn",
            "classpoints.main:app",
            "--host",
            "0.0.0.0",
            "--port",
            os.environ["APP_PORT"],
        ],
    )


if __name__ == "__main__":
    main()
