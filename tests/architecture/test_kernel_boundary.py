"""
Kernel Boundary & Invariants Contract.

Tests that enforce the package layering:

1. agromed_kernel/** may NOT import agromed_engines, agromed_services or
   agromed_config. The kernel never depends upward.

2. agromed_engines/** is pure: no SQLAlchemy, no persistence packages,
   no services, no config loader.

3. agromed_config/** may not import agromed_services.

4. The kernel invariants declaration is complete and non-empty.

These tests read source code via AST -- they cannot break anything.
"""

import ast
from pathlib import Path

from agromed_kernel.invariants import (
    ALL_KERNEL_INVARIANTS,
    FORBIDDEN_ENGINE_IMPORTS,
    FORBIDDEN_KERNEL_IMPORTS,
    KernelInvariant,
)

ROOT = Path(__file__).resolve().parents[2]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _python_files(package: str) -> list[Path]:
    return sorted((ROOT / package).rglob("*.py"))


def _extract_imports(filepath: Path) -> list[tuple[int, str]]:
    """Extract (line_number, module_string) for all imports in a file."""
    tree = ast.parse(filepath.read_text(encoding="utf-8"), filename=str(filepath))

    results: list[tuple[int, str]] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                results.append((node.lineno, alias.name))
        elif isinstance(node, ast.ImportFrom):
            if node.module and node.level == 0:
                results.append((node.lineno, node.module))
    return results


def _violations(package: str, forbidden: tuple[str, ...]) -> list[str]:
    found: list[str] = []
    for filepath in _python_files(package):
        for lineno, module in _extract_imports(filepath):
            for prefix in forbidden:
                if module == prefix or module.startswith(f"{prefix}."):
                    found.append(
                        f"  {filepath.relative_to(ROOT)}:{lineno} imports '{module}'"
                    )
    return found


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------

class TestKernelNoUpwardDependencies:

    def test_packages_exist(self):
        for package in ("agromed_kernel", "agromed_engines", "agromed_config", "agromed_services"):
            assert _python_files(package), f"{package} has no modules"

    def test_kernel_does_not_import_forbidden_packages(self):
        violations = _violations("agromed_kernel", FORBIDDEN_KERNEL_IMPORTS)
        assert not violations, (
            "Kernel boundary violation -- agromed_kernel/** must not import "
            "upward packages:\n" + "\n".join(violations)
        )


class TestEnginePurity:

    def test_engines_import_domain_only(self):
        violations = _violations("agromed_engines", FORBIDDEN_ENGINE_IMPORTS)
        assert not violations, (
            "Engine purity violation -- agromed_engines/** may import kernel "
            "domain types only:\n" + "\n".join(violations)
        )


class TestConfigLayer:

    def test_config_does_not_import_services(self):
        violations = _violations("agromed_config", ("agromed_services",))
        assert not violations, "\n".join(violations)


class TestInvariantsDeclaration:

    def test_invariants_declared(self):
        assert len(ALL_KERNEL_INVARIANTS) == len(KernelInvariant) >= 6

    def test_invariant_values_are_unique_snake_case(self):
        values = [invariant.value for invariant in KernelInvariant]
        assert len(values) == len(set(values))
        assert all(v == v.lower() and " " not in v for v in values)
