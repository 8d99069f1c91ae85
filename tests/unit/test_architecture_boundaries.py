import ast
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[2]


def _imports(package_dir: Path):
    for py_file in package_dir.rglob("*.py"):
        source = py_file.read_text(encoding="utf-8")
        tree = ast.parse(source, filename=str(py_file))
        rel_path = py_file.relative_to(REPO_ROOT)

        for node in ast.walk(tree):
            if isinstance(node, ast.Import):
                for alias in node.names:
                    yield rel_path, node.lineno, alias.name
            elif isinstance(node, ast.ImportFrom):
                yield rel_path, node.lineno, node.module or ""


def _violations(layer: str, forbidden):
    found = []
    for rel_path, lineno, name in _imports(REPO_ROOT / "squeeze" / layer):
        for prefix in forbidden:
            if name == prefix or name.startswith(prefix + "."):
                found.append(f"{rel_path}:{lineno} imports {name}")
    return found


def test_pipeline_layer_does_not_import_ui_layer():
    """Pipeline layer must not import from UI layer directly."""
    violations = _violations("pipeline", ["squeeze.ui"])
    assert not violations, "Pipeline layer must not import UI layer:\n" + "\n".join(violations)


def test_domain_layer_is_self_contained():
    violations = _violations("domain", ["squeeze.pipeline", "squeeze.infrastructure", "squeeze.ui", "squeeze.config"])
    assert not violations, "Domain layer must not import outer layers:\n" + "\n".join(violations)


def test_only_dispatcher_calls_engines():
    """Engines are reached through the dispatcher; the registry and bridge never import them."""
    violations = []
    for name in ("registry.py", "progress.py"):
        path = REPO_ROOT / "squeeze" / "pipeline" / name
        tree = ast.parse(path.read_text(encoding="utf-8"))
        for node in ast.walk(tree):
            if isinstance(node, ast.ImportFrom) and (node.module or "").startswith("squeeze.infrastructure.") \
                    and node.module != "squeeze.infrastructure.event_bus":
                violations.append(f"{name}:{node.lineno} imports {node.module}")
    assert not violations, "\n".join(violations)
