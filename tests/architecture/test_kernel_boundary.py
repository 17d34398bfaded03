"""
Kernel boundary and invariants contract.

1. liquidity_kernel/** may NOT import liquidity_services or liquidity_config.
   The kernel never depends upward.

2. liquidity_engines/** stays pure: no ORM, no kernel persistence or
   services, no configuration or facade.

3. liquidity_kernel/domain/** imports no ORM at runtime; model types are
   allowed under TYPE_CHECKING only.

4. The kernel invariants declaration is complete and non-empty.

These tests read source code via AST and never import the checked modules.
"""

import ast
from pathlib import Path

from liquidity_kernel.invariants import (
    ALL_KERNEL_INVARIANTS,
    FORBIDDEN_KERNEL_IMPORTS,
    KernelInvariant,
)

ROOT = Path(__file__).resolve().parents[2]


def _python_files(package: str) -> list[Path]:
    return sorted((ROOT / package).rglob("*.py"))


def _is_type_checking_block(node: ast.AST) -> bool:
    if not isinstance(node, ast.If):
        return False
    test = node.test
    return (isinstance(test, ast.Name) and test.id == "TYPE_CHECKING") or (
        isinstance(test, ast.Attribute) and test.attr == "TYPE_CHECKING"
    )


def _runtime_imports(filepath: Path) -> list[tuple[int, str]]:
    """(line, module) for every import outside ``if TYPE_CHECKING:`` blocks."""
    tree = ast.parse(filepath.read_text(), filename=str(filepath))
    results: list[tuple[int, str]] = []

    def visit(node: ast.AST) -> None:
        if _is_type_checking_block(node):
            return
        if isinstance(node, ast.Import):
            results.extend((node.lineno, alias.name) for alias in node.names)
        elif isinstance(node, ast.ImportFrom) and node.module and node.level == 0:
            results.append((node.lineno, node.module))
        for child in ast.iter_child_nodes(node):
            visit(child)

    visit(tree)
    return results


def _violations(package: str, forbidden: tuple[str, ...]) -> list[str]:
    found: list[str] = []
    for filepath in _python_files(package):
        for lineno, module in _runtime_imports(filepath):
            for prefix in forbidden:
                if module == prefix or module.startswith(f"{prefix}."):
                    found.append(f"  {filepath.relative_to(ROOT)}:{lineno} imports '{module}'")
    return found


class TestKernelNoUpwardDependencies:

    def test_kernel_does_not_import_forbidden_packages(self):
        violations = _violations("liquidity_kernel", FORBIDDEN_KERNEL_IMPORTS)

        assert not violations, (
            "Kernel boundary violation: liquidity_kernel/** must not import "
            "upward packages:\n" + "\n".join(violations)
        )

    def test_kernel_files_were_scanned(self):
        assert len(_python_files("liquidity_kernel")) > 10


class TestEnginePurity:
    """Engines compute; they never touch persistence or services."""

    FORBIDDEN_MODULES = (
        "sqlalchemy",
        "liquidity_kernel.db",
        "liquidity_kernel.models",
        "liquidity_kernel.selectors",
        "liquidity_kernel.services",
        "liquidity_config",
        "liquidity_services",
    )

    def test_engines_import_no_state(self):
        violations = _violations("liquidity_engines", self.FORBIDDEN_MODULES)

        assert not violations, (
            "Engine purity violation: liquidity_engines/** must stay free of "
            "persistence and services:\n" + "\n".join(violations)
        )


class TestKernelDomainPurity:
    """liquidity_kernel/domain/** must not import ORM or DB packages at runtime."""

    FORBIDDEN_MODULES = (
        "sqlalchemy",
        "psycopg2",
        "sqlite3",
        "liquidity_kernel.db",
        "liquidity_kernel.models",
        "liquidity_kernel.services",
    )

    def test_domain_no_orm_imports(self):
        violations = _violations("liquidity_kernel/domain", self.FORBIDDEN_MODULES)

        assert not violations, (
            "Domain purity violation: liquidity_kernel/domain/** must not "
            "import ORM/DB packages at runtime:\n" + "\n".join(violations)
        )

    def test_type_checking_imports_are_ignored(self, tmp_path):
        sample = tmp_path / "sample.py"
        sample.write_text(
            "from typing import TYPE_CHECKING\n"
            "if TYPE_CHECKING:\n"
            "    from sqlalchemy.orm import Session\n"
            "import sqlalchemy\n"
        )

        assert _runtime_imports(sample) == [(1, "typing"), (4, "sqlalchemy")]


class TestKernelInvariantsDeclaration:

    def test_invariants_declared(self):
        assert len(ALL_KERNEL_INVARIANTS) == len(KernelInvariant)
        assert KernelInvariant.WATERFALL_PRECEDENCE in ALL_KERNEL_INVARIANTS
        assert KernelInvariant.ATOMIC_CALLS in ALL_KERNEL_INVARIANTS

    def test_every_invariant_documented(self):
        source = (ROOT / "liquidity_kernel" / "invariants.py").read_text()
        tree = ast.parse(source)
        enum_class = next(
            node
            for node in tree.body
            if isinstance(node, ast.ClassDef) and node.name == "KernelInvariant"
        )
        body = enum_class.body
        undocumented = []
        for index, node in enumerate(body):
            if isinstance(node, ast.Assign):
                following = body[index + 1] if index + 1 < len(body) else None
                is_doc = isinstance(following, ast.Expr) and isinstance(
                    getattr(following, "value", None), ast.Constant
                )
                if not is_doc:
                    undocumented.append(node.targets[0].id)

        assert not undocumented, f"Invariants without a description: {undocumented}"

    def test_forbidden_imports_cover_upper_layers(self):
        assert set(FORBIDDEN_KERNEL_IMPORTS) == {"liquidity_services", "liquidity_config"}
