"""
Import-boundary enforcement.

1. Kernel boundary    -- inspection_kernel/** may not import
                         inspection_services, inspection_config or
                         inspection_api.
2. Domain purity      -- inspection_kernel/domain/** may not import the
                         ORM, models, selectors, services or I/O libraries.
3. Services boundary  -- inspection_services/** may not import
                         inspection_api or web frameworks.
4. Config entrypoint  -- outside inspection_config, only the package root
                         and its schema module are imported.

All scanning is done via AST -- these tests are read-only.
"""

import ast
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _python_files(package: str) -> list[Path]:
    """Return all .py files under *package*, sorted for deterministic order."""
    return sorted((ROOT / package).rglob("*.py"))


def _extract_imports(filepath: Path) -> list[tuple[int, str]]:
    """Return (line_number, module_string) for every import in *filepath*."""
    tree = ast.parse(filepath.read_text(), filename=str(filepath))
    results: list[tuple[int, str]] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                results.append((node.lineno, alias.name))
        elif isinstance(node, ast.ImportFrom):
            if node.module and node.level == 0:
                results.append((node.lineno, node.module))
    return results


def _matches_any(module: str, prefixes: tuple[str, ...]) -> bool:
    """True if *module* equals or is a child of any prefix."""
    for prefix in prefixes:
        if module == prefix or module.startswith(f"{prefix}."):
            return True
    return False


def _violations(package: str, forbidden: tuple[str, ...]) -> list[str]:
    found = []
    for path in _python_files(package):
        for lineno, module in _extract_imports(path):
            if _matches_any(module, forbidden):
                found.append(f"{path.relative_to(ROOT)}:{lineno} imports {module}")
    return found


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestKernelBoundary:
    def test_packages_exist(self):
        for package in (
            "inspection_kernel",
            "inspection_services",
            "inspection_config",
            "inspection_api",
        ):
            assert _python_files(package), f"{package} has no modules"

    def test_kernel_never_imports_outer_layers(self):
        violations = _violations(
            "inspection_kernel",
            ("inspection_services", "inspection_config", "inspection_api"),
        )
        assert violations == [], "\n".join(violations)


class TestDomainPurity:
    FORBIDDEN = (
        "sqlalchemy",
        "inspection_kernel.db",
        "inspection_kernel.models",
        "inspection_kernel.selectors",
        "inspection_kernel.services",
        "httpx",
        "boto3",
        "reportlab",
        "fastapi",
        "os",
        "requests",
    )

    def test_domain_has_no_io(self):
        violations = _violations("inspection_kernel/domain", self.FORBIDDEN)
        assert violations == [], "\n".join(violations)


class TestServicesBoundary:
    def test_services_never_import_api(self):
        violations = _violations(
            "inspection_services", ("inspection_api", "fastapi", "starlette"),
        )
        assert violations == [], "\n".join(violations)


class TestConfigEntrypoint:
    ALLOWED = {"inspection_config", "inspection_config.schema"}

    def test_only_public_config_modules_imported(self):
        violations = []
        for package in ("inspection_services", "inspection_api"):
            for path in _python_files(package):
                for lineno, module in _extract_imports(path):
                    if _matches_any(module, ("inspection_config",)) and module not in self.ALLOWED:
                        violations.append(f"{path.relative_to(ROOT)}:{lineno} imports {module}")
        assert violations == [], "\n".join(violations)
