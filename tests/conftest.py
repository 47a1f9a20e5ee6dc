from pathlib import Path

import pytest

from kubeforge.core.models import Project


def write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


@pytest.fixture
def project_dir(tmp_path):
    base = tmp_path / "project"
    base.mkdir()
    return base


@pytest.fixture
def make_project(project_dir):
    def _make(**overrides):
        values = dict(
            base_dir=project_dir,
            build_dir=project_dir / "target",
            output_dir=project_dir / "target" / "classes",
        )
        values.update(overrides)
        return Project(**values)
    return _make


@pytest.fixture
def resource_dir(project_dir):
    return project_dir / "src" / "main" / "jkube"
