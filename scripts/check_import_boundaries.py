#!/usr/bin/env python3
"""Layering checker: core/ stays free of integrations/ and surfaces/ imports,
and integrations/ never reaches up into surfaces/."""

import ast
import sys
from pathlib import Path
from typing import Iterable, Set

PACKAGE = "unified_chat"

# layer -> import prefixes it must not use
FORBIDDEN = {
    "core": ("integrations", "surfaces"),
    "integrations": ("surfaces",),
}


def find_imports(file_path: Path) -> Set[str]:
    """Return imported module names, ignoring TYPE_CHECKING-only imports."""
    imports = set()
    tree = ast.parse(file_path.read_text(encoding="utf-8"), filename=str(file_path))

    type_checking_blocks = set()
    for node in ast.walk(tree):
        if isinstance(node, ast.If):
            if isinstance(node.test, ast.Name) and node.test.id == "TYPE_CHECKING":
                for sub_node in ast.walk(node):
                    if isinstance(sub_node, (ast.ImportFrom, ast.Import)):
                        type_checking_blocks.add(sub_node)

    for node in ast.walk(tree):
        if node in type_checking_blocks:
            continue
        if isinstance(node, ast.ImportFrom):
            module = node.module or ""
            if node.level == 0 and module.startswith(f"{PACKAGE}."):
                module = module[len(PACKAGE) + 1 :]
            imports.add(module)
        elif isinstance(node, ast.Import):
            for alias in node.names:
                name = alias.name
                if name.startswith(f"{PACKAGE}."):
                    name = name[len(PACKAGE) + 1 :]
                imports.add(name)

    return imports


def _is_forbidden(module: str, prefixes: Iterable[str]) -> bool:
    return any(
        module == prefix or module.startswith(f"{prefix}.") for prefix in prefixes
    )


def check_boundaries(root_dir: Path) -> list[tuple[str, str]]:
    """Return ``(file, import)`` pairs that cross a layer boundary."""
    violations = []
    package_dir = root_dir / "src" / PACKAGE

    for layer, prefixes in FORBIDDEN.items():
        layer_dir = package_dir / layer
        if not layer_dir.exists():
            continue
        for py_file in sorted(layer_dir.rglob("*.py")):
            for imp in sorted(find_imports(py_file)):
                if _is_forbidden(imp, prefixes):
                    violations.append((str(py_file.relative_to(root_dir)), imp))

    return violations


def main():
    root_dir = Path(__file__).parent.parent
    violations = check_boundaries(root_dir)

    if violations:
        print("Import boundary violations detected:")
        for file_path, imp in violations:
            print(f"  {file_path} imports {imp}")
        print("\ncore/ must not import integrations/ or surfaces/;")
        print("integrations/ must not import surfaces/")
        sys.exit(1)
    else:
        print("Import boundary check passed")
        sys.exit(0)


if __name__ == "__main__":
    main()
