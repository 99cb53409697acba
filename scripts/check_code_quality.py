#!/usr/bin/env python3
"""Проверка кода: тесты, форматирование, линтер. С --fix форматирует."""
import argparse
import subprocess
import sys

TARGETS = "payment_service/ tests/ alembic/ check_db.py init_wallet.py"


def run_command(command: str, description: str) -> bool:
    """Запускает команду и возвращает True при успехе."""
    print(f"\n{description}...")
    result = subprocess.run(command, shell=True)
    if result.returncode != 0:
        print(f"  {description} не пройдена")
        return False
    print(f"  {description} пройдена")
    return True


def main():
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--fix", action="store_true", help="исправить форматирование"
    )
    args = parser.parse_args()

    if args.fix:
        checks = [
            (f"isort {TARGETS}", "Сортировка импортов"),
            (f"black {TARGETS}", "Форматирование Black"),
        ]
    else:
        checks = [
            ("python -m pytest tests/ -v", "Запуск тестов"),
            (f"black --check {TARGETS}", "Проверка форматирования Black"),
            (f"isort --check-only {TARGETS}", "Проверка сортировки импортов"),
            (f"flake8 {TARGETS} --count", "Линтинг Flake8"),
        ]

    failed = [desc for cmd, desc in checks if not run_command(cmd, desc)]
    if failed:
        print(f"\nНе пройдено: {', '.join(failed)}")
        return 1
    print("\nВсе проверки пройдены!")
    return 0


if __name__ == "__main__":
    sys.exit(main())
