"""Diagnostic tool for verifying the confurl installation and transport."""

import sys
from importlib import import_module
from typing import Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .transport.engine import detect_features


def check_dependency(
    module_name: str, package_name: Optional[str] = None, optional: bool = False
) -> tuple[bool, str]:
    """
    Check if a Python module is importable.

    Args:
        module_name: Name of the module to import
        package_name: Display name of the package (defaults to module_name)
        optional: Whether this is an optional dependency

    Returns:
        Tuple of (success: bool, message: str)
    """
    display_name = package_name or module_name

    try:
        import_module(module_name)
        return True, f"[OK] {display_name}"
    except ImportError:
        if optional:
            return False, f"[WARN] {display_name} (optional - not installed)"
        return False, f"[MISSING] {display_name}"


def check_transport() -> list[tuple[bool, str]]:
    """Report which URL schemes the transport can serve."""
    features = detect_features()
    results = [(True, f"[OK] Transport {features.version}")]

    if features.ssl:
        results.append((True, "[OK] SSL/TLS support (https://, ftps://)"))
    else:
        results.append((False, "[WARN] No SSL/TLS support - https:// and ftps:// disabled"))

    if features.zlib:
        results.append((True, "[OK] zlib support (gzip, deflate)"))
    else:
        results.append((False, "[WARN] No zlib support - compressed responses not requested"))

    return results


def run_doctor(console: Optional[Console] = None) -> int:
    """
    Run diagnostic checks and display results.

    Returns:
        Exit code (0 if all core dependencies OK, 1 if any core dependency missing)
    """
    console = console or Console()
    console.print("Running confurl diagnostics...\n")

    core_checks = [
        ("requests", "requests"),
        ("pydantic", "pydantic"),
        ("rich", "rich"),
    ]
    optional_checks = [
        ("yaml", "pyyaml", True),
    ]

    core_results = [check_dependency(mod, pkg) for mod, pkg in core_checks]
    optional_results = [check_dependency(mod, pkg, opt) for mod, pkg, opt in optional_checks]

    all_checks = {
        "Core Dependencies": core_results,
        "Optional Dependencies": optional_results,
        "Transport": check_transport(),
    }

    for category, results in all_checks.items():
        table = Table(title=category, show_header=False, box=None)
        table.add_column("Status", style="bold")

        for success, message in results:
            style = "green" if success else ("yellow" if "[WARN]" in message else "red")
            table.add_row(escape(message), style=style)

        console.print(table)
        console.print()

    if any(not success for success, _ in core_results):
        console.print("\nWARNING: Some core dependencies are missing!")
        console.print("\nRecommended fix: pip install --upgrade --force-reinstall confurl")
        return 1

    console.print("\nAll core dependencies installed correctly!")
    if any(not success for success, _ in optional_results):
        console.print("\nOptional features available:")
        console.print("  - YAML config support: pip install confurl[yaml]")

    return 0


if __name__ == "__main__":
    sys.exit(run_doctor())
