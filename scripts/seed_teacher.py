import argparse
from pathlib import Path
import sys

if __package__ is None or __package__ == "":
    sys.path.append(str(Path(__file__).resolve().parents[1]))

from classpoints.core.config import get_settings
from classpoints.services.container import ServiceContainer


def parse_args() -> argparse.Namespace:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Create or update a teacher account.")
    parser.add_argument("--login", default=settings.bootstrap_teacher_login)
    parser.add_argument("--password", default=settings.bootstrap_teacher_password)
    parser.add_argument("--name", default=settings.bootstrap_teacher_name)
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    services = ServiceContainer(get_settings())
    action = services.accounts.ensure_teacher(args.login, args.password, args.name, reset_password=True)
    print(f"Teacher {args.login} {action}.")


if __name__ == "__main__":
    main()
