from __future__ import annotations

from pathlib import Path
import argparse
import sys

if __package__ is None or __package__ == "":
    sys.path.append(str(Path(__file__).resolve().parents[1]))

from classpoints.core.config import get_settings
from classpoints.core.exceptions import DuplicateStudent, ProductNameExists
from classpoints.services.container import ServiceContainer


DEMO_STUDENTS = [
    ("2024001", "张小明", "花儿起舞"),
    ("2024002", "李小红", "花儿起舞"),
    ("2024003", "王小刚", "花儿起舞"),
    ("2024004", "赵小丽", "花儿起舞"),
    ("2024005", "陈小华", "花儿起舞"),
]

DEMO_PRODUCTS = [
    ("Notebook", 20, 30, "A5 ruled notebook"),
    ("Gel pen set", 15, 50, "Six colours"),
    ("Sticker pack", 5, 100, "Assorted stickers"),
    ("Storybook", 80, 10, "Picture book of the month"),
    ("Front-row seat for a day", 120, 2, "Choose your seat for one school day"),
]

DEMO_AWARDS = [
    ("2024001", 50, "homework completed"),
    ("2024002", 35, "helped a classmate"),
    ("2024003", 60, "class presentation"),
    ("2024004", 20, "tidy desk"),
    ("2024005", 45, "reading challenge"),
]


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Seed demo students, products and points.")
    parser.add_argument("--skip-points", action="store_true", help="do not write demo ledger records")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    settings = get_settings()
    services = ServiceContainer(settings)

    created_students = 0
    for student_id, name, class_name in DEMO_STUDENTS:
        try:
            services.students.create(student_id, name, class_name, publish=False)
        except DuplicateStudent:
            continue
        created_students += 1

    created_products = 0
    for name, price, stock, description in DEMO_PRODUCTS:
        try:
            services.products.create(name, price, stock, description)
        except ProductNameExists:
            continue
        created_products += 1

    awarded = 0
    if not args.skip_points and created_students:
        for student_id, points, reason in DEMO_AWARDS:
            services.ledger.add_points(student_id, points, reason, settings.bootstrap_teacher_login)
            awarded += 1

    print(
        f"Seeded {created_students} students, {created_products} products and {awarded} point records "
        f"into {settings.data_path}."
    )


if __name__ == "__main__":
    main()
