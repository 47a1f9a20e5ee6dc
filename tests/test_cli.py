import logging

import pytest
from rich.console import Console

from kubeforge.cli.config import build_project, build_settings, load_config_file
from kubeforge.cli.logging_setup import setup_logging
from kubeforge.cli.main import EXIT_CONFIG, EXIT_OK, EXIT_PIPELINE, EXIT_VALIDATION, KubeForgeCLI
from kubeforge.core.errors import ConfigError
from kubeforge.core.models import PackagingKind, ResourceFileType

from conftest import write


@pytest.fixture(autouse=True)
def restore_logging():
    """The CLI reconfigures the kubeforge logger; put it back for other tests."""
    root = logging.getLogger("kubeforge")
    saved = (list(root.handlers), root.level, root.propagate)
    yield
    root.handlers[:] = saved[0]
    root.setLevel(saved[1])
    root.propagate = saved[2]


def _cli(*argv):
    console = Console(record=True, width=200)
    code = KubeForgeCLI(console=console).run(list(argv))
    return code, console.export_text()


def _aggregate(project_dir, classifier="kubernetes"):
    return project_dir / "target" / "classes" / "META-INF" / "jkube" / f"{classifier}.yaml"


def test_resource_command_writes_bundle(project_dir):
    code, output = _cli("resource", str(project_dir), "--image", "acme/app:latest")
    assert code == EXIT_OK
    assert _aggregate(project_dir).is_file()
    assert "success-written" in output
    assert "deployment-app.yaml" in output


def test_config_file_drives_the_run(project_dir):
    write(project_dir / "kubeforge.yaml", (
        "project:\n"
        "  groupId: org.acme\n"
        "  artifactId: shop\n"
        "  version: 2.0\n"
        "images:\n"
        "  - name: '%g/%a:%l'\n"
        "    build:\n"
        "      ports: [8080]\n"
        "enricher:\n"
        "  config:\n"
        "    default-controller:\n"
        "      replicas: 2\n"
    ))
    code, _ = _cli("resource", str(project_dir))
    assert code == EXIT_OK
    text = _aggregate(project_dir).read_text()
    assert "image: acme/shop:2.0" in text
    assert "replicas: 2" in text
    assert "kind: Service" in text


def test_unknown_config_key_is_a_config_error(project_dir):
    write(project_dir / "kubeforge.yaml", "imgaes: []\n")
    code, output = _cli("resource", str(project_dir))
    assert code == EXIT_CONFIG
    assert "imgaes" in output


def test_failed_validation_exit_code(project_dir):
    write(project_dir / "src" / "main" / "jkube" / "configmap.yaml", "data: {a: b}\n")
    code, output = _cli("resource", str(project_dir), "--fail-on-validation-error")
    assert code == EXIT_VALIDATION
    assert "metadata.name" in output
    assert not _aggregate(project_dir).exists()


def test_broken_generator_option_exits_with_pipeline_error(project_dir):
    write(project_dir / "kubeforge.yaml", (
        "generator:\n"
        "  config:\n"
        "    dockerfile:\n"
        "      dockerfile: 5\n"
    ))
    code, output = _cli("resource", str(project_dir), "--image", "acme/app")
    assert code == EXIT_PIPELINE
    assert "dockerfile" in output


def test_skip_flag(project_dir):
    code, _ = _cli("resource", str(project_dir), "--image", "acme/app", "--skip")
    assert code == EXIT_OK
    assert not (project_dir / "target").exists()


def test_openshift_platform_with_namespace(project_dir):
    code, _ = _cli("resource", str(project_dir), "--platform", "openshift",
                   "--namespace", "team", "--image", "app:latest")
    assert code == EXIT_OK
    assert "image: team/app:latest" in _aggregate(project_dir, "openshift").read_text()


def test_validate_command(project_dir):
    assert _cli("resource", str(project_dir), "--image", "acme/app")[0] == EXIT_OK
    bundle = _aggregate(project_dir).with_suffix("")
    assert _cli("validate", str(bundle))[0] == EXIT_OK
    assert _cli("validate", str(project_dir / "missing"))[0] == EXIT_CONFIG


def test_no_command_prints_help(capsys):
    assert KubeForgeCLI().run([]) == EXIT_OK
    assert "resource" in capsys.readouterr().out


# --- Configuration layer ---

def test_flags_override_file_values(project_dir):
    raw = {"resourceFileType": "yaml", "targetDir": "out", "failOnValidationError": True}
    settings = build_settings(project_dir, raw, {"resource_file_type": "json", "fail_on_validation_error": None})
    assert settings.resource_file_type == ResourceFileType.json
    assert settings.target_dir == project_dir / "out"
    assert settings.fail_on_validation_error is True


def test_settings_reject_bad_values(project_dir):
    with pytest.raises(ConfigError):
        build_settings(project_dir, {"skipResource": "yes"})
    with pytest.raises(ConfigError):
        build_settings(project_dir, {"resourceFileType": "toml"})


def test_project_section(project_dir):
    raw = {
        "project": {"packaging": "aggregate", "artifactId": "app", "classpath": ["lib/a.jar"]},
        "properties": {"kubeforge.image.user": "team"},
    }
    project = build_project(project_dir, raw, {"extra": "1"})
    assert project.packaging == PackagingKind.AGGREGATE
    assert project.build_dir == project_dir.resolve() / "target"
    assert project.output_dir == project_dir.resolve() / "target" / "classes"
    assert project.compile_classpath == (project_dir.resolve() / "lib" / "a.jar",)
    assert project.properties == {"kubeforge.image.user": "team", "extra": "1"}


def test_explicit_config_must_exist(project_dir):
    assert load_config_file(None, project_dir) == {}
    with pytest.raises(ConfigError):
        load_config_file(project_dir / "nope.yaml", project_dir)


def test_logging_setup_closes_replaced_handlers(tmp_path):
    logger = setup_logging(log_file=tmp_path / "first.log")
    [first] = [h for h in logger.handlers if isinstance(h, logging.FileHandler)]
    logger.info("hello")

    setup_logging(log_file=tmp_path / "second.log")
    assert first not in logger.handlers
    assert first.stream is None
    assert "hello" in (tmp_path / "first.log").read_text()
