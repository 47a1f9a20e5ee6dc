import pytest

from kubeforge.core.errors import ValidationFailed
from kubeforge.core.models import ResourceClassifier
from kubeforge.validator.validator import ResourceValidator

from conftest import write

DEPLOYMENT = """\
apiVersion: apps/v1
kind: Deployment
metadata:
  name: web
spec:
  replicas: 2
  selector:
    matchLabels: {app: web}
  template:
    metadata:
      labels: {app: web}
    spec:
      containers:
        - name: web
          image: acme/web:1.0
"""


def _validator(directory, **kwargs):
    return ResourceValidator(directory, ResourceClassifier.KUBERNETES, **kwargs)


def test_valid_bundle_passes(tmp_path):
    write(tmp_path / "deployment-web.yaml", DEPLOYMENT)
    write(tmp_path / "configmap-web.json", '{"apiVersion": "v1", "kind": "ConfigMap", "metadata": {"name": "web"}}')
    assert _validator(tmp_path).validate() == 2


def test_every_violation_is_reported(tmp_path):
    write(tmp_path / "configmap-unnamed.yaml", "apiVersion: v1\nkind: ConfigMap\nmetadata: {labels: {a: b}}\n")
    write(tmp_path / "service-bad.yaml", (
        "apiVersion: v1\nkind: Service\nmetadata: {name: Bad_Name}\n"
        "spec:\n  ports:\n    - port: '80'\n    - port: 0\n"
    ))
    with pytest.raises(ValidationFailed) as exc:
        _validator(tmp_path).validate()

    details = "\n".join(exc.value.details)
    assert "configmap-unnamed.yaml: metadata.name is required" in details
    assert "'Bad_Name' is not a valid DNS-1123 subdomain" in details
    assert "spec.ports[0].port' must be of type integer" in details
    assert "spec.ports[1].port' must be >= 1" in details


def test_missing_required_spec_fields(tmp_path):
    write(tmp_path / "deployment-web.yaml", "apiVersion: apps/v1\nkind: Deployment\nmetadata: {name: web}\nspec: {}\n")
    with pytest.raises(ValidationFailed) as exc:
        _validator(tmp_path).validate()
    assert any("spec.selector" in d for d in exc.value.details)
    assert any("spec.template" in d for d in exc.value.details)


def test_unknown_kind_only_gets_identity_checks(tmp_path, caplog):
    write(tmp_path / "widget-a.yaml", "apiVersion: example.com/v1\nkind: Widget\nmetadata: {name: a}\nsize: x\n")
    with caplog.at_level("INFO", logger="kubeforge.validator"):
        assert _validator(tmp_path).validate() == 1
    assert "No schema for example.com/v1/Widget" in caplog.text


def test_generate_name_satisfies_identity(tmp_path):
    write(tmp_path / "job-x.yaml", "apiVersion: v1\nkind: ConfigMap\nmetadata: {generateName: job-}\n")
    assert _validator(tmp_path).validate() == 1


def test_strict_mode_flags_unknown_fields(tmp_path):
    write(tmp_path / "configmap-a.yaml", "apiVersion: v1\nkind: ConfigMap\nmetadata: {name: a}\ndatta: {}\n")
    assert _validator(tmp_path).validate() == 1
    with pytest.raises(ValidationFailed, match="unknown field 'datta'"):
        _validator(tmp_path, strict=True).validate()


def test_unreadable_files_are_violations(tmp_path):
    write(tmp_path / "broken.yaml", "kind: [unclosed\n")
    write(tmp_path / "README.md", "ignored")
    with pytest.raises(ValidationFailed, match="broken.yaml: unreadable"):
        _validator(tmp_path).validate()


def test_custom_catalog(tmp_path):
    write(tmp_path / "configmap-a.yaml", "apiVersion: v1\nkind: ConfigMap\nmetadata: {name: a}\n")
    catalog = {"v1/ConfigMap": {"required": ["data"], "fields": {}}}
    with pytest.raises(ValidationFailed, match="field 'data' is required"):
        _validator(tmp_path, catalog=catalog).validate()
