"""Code quality commands."""

import subprocess
import sys

TARGETS = ["invoice_notifier/", "cli/", "tests/"]


def main() -> None:
    """Run ruff linter."""
    sys.exit(
        subprocess.run(
            [sys.executable, "-m", "ruff", "check", *TARGETS],
            check=False,
        ).returncode
    )


def format_code() -> None:
    """Run ruff formatter."""
    sys.exit(
        subprocess.run(
            [sys.executable, "-m", "ruff", "format", *TARGETS],
            check=False,
        ).returncode
    )
