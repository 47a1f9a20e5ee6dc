import pytest

from kubeforge.core import cluster, interop
from kubeforge.core.errors import ConfigError, PipelineCancelled, UnknownProcessor
from kubeforge.core.models import (
    CancelToken,
    ImageConfiguration,
    MappingConfig,
    ProcessorConfig,
    ResourceList,
)
from kubeforge.core.registry import ProcessorRegistry, load_reference

from conftest import write


# --- Models ---

def test_active_processors_honour_excludes_and_order():
    config = ProcessorConfig(includes=["b", "a", "b", "c"], excludes=["c"])
    assert config.active(["a", "b", "c"]) == ["b", "a"]
    assert ProcessorConfig(excludes=["a"]).active(["a", "b"]) == ["b"]


def test_image_configuration_from_dict():
    image = ImageConfiguration.from_dict({
        "name": "acme/app", "alias": "main",
        "build": {"contextDir": "docker", "from": "base:1", "ports": [8080], "labels": {"a": 1}},
    })
    assert image.build.context_dir == "docker"
    assert image.build.from_image == "base:1"
    assert image.build.ports == ["8080"]
    assert image.build.labels == {"a": "1"}

    clone = image.copy(name="other")
    clone.build.ports.append("9090")
    assert image.name == "acme/app"
    assert image.build.ports == ["8080"]


def test_mapping_config_accepts_comma_list():
    mapping = MappingConfig.from_dict({"kind": "Widget", "filenameTypes": "widget, wd"})
    assert mapping.filename_types == ("widget", "wd")


def test_resource_list_lookup_and_freeze():
    resources = ResourceList()
    resources.add({"apiVersion": "v1", "kind": "Service", "metadata": {"name": "b"}})
    cm = resources.add({"apiVersion": "v1", "kind": "ConfigMap", "metadata": {"name": "a"}})
    assert resources.find("ConfigMap", "a") is cm
    assert resources.find("ConfigMap", "b") is None

    dropped = resources.retain(lambda o: o["kind"] != "Service")
    assert [d["kind"] for d in dropped] == ["Service"]

    resources.freeze()
    for mutate in (lambda: resources.add({}), lambda: resources.remove(cm), resources.sort):
        with pytest.raises(RuntimeError):
            mutate()


def test_cancel_token():
    token = CancelToken()
    token.check("idle")
    token.cancel()
    assert token.cancelled
    with pytest.raises(PipelineCancelled, match="writing"):
        token.check("writing")


# --- Registry ---

def test_registry_order_and_duplicates():
    registry = ProcessorRegistry("enricher", [("a", dict), ("b", list)])
    assert registry.available() == ("a", "b")
    assert "a" in registry
    with pytest.raises(ConfigError):
        registry.register("a", set)


def test_unknown_processor_suggests_close_ids():
    registry = ProcessorRegistry("enricher", [("default-service", dict), ("name", dict)])
    with pytest.raises(UnknownProcessor, match="default-service") as exc:
        registry.get("default-servce")
    assert exc.value.kind == "enricher"


def test_copy_is_independent():
    registry = ProcessorRegistry("generator", [("a", dict)])
    clone = registry.copy()
    clone.register("b", dict)
    assert registry.available() == ("a",)


def test_created_processor_carries_registered_id():
    class Labeller:
        name = "labels"

        def __init__(self, context):
            self.context = context

    registry = ProcessorRegistry("enricher", [("team-labels", Labeller)])
    processor = registry.create("team-labels", None)
    assert processor.name == "team-labels"
    assert Labeller.name == "labels"


@pytest.mark.parametrize("reference", ["no-colon", "kubeforge.missing:thing", "kubeforge.core.models:Nope"])
def test_bad_references(reference):
    with pytest.raises(ConfigError):
        load_reference(reference)


def test_manifest_must_map_ids():
    registry = ProcessorRegistry("generator")
    with pytest.raises(ConfigError):
        registry.load_manifest({"generators": ["a"]})
    registry.load_manifest({"generators": {"labels": "kubeforge.images.generators:OciLabelsGenerator"}})
    assert registry.available() == ("labels",)


# --- Dekorate handshake ---

def test_dekorate_detection(tmp_path):
    assert interop.uses_dekorate([tmp_path / "dekorate-spring-2.0.jar"])
    assert interop.uses_dekorate([tmp_path / "io.dekorate.core"])
    assert not interop.uses_dekorate([tmp_path / "spring-core.jar"])


def test_dekorate_export_modes():
    delegated, merged = {}, {}
    interop.export_dekorate_dirs(False, delegated)
    interop.export_dekorate_dirs(True, merged)
    assert delegated == {interop.DEKORATE_OUTPUT_DIR: interop.DEFAULT_RESOURCE_LOCATION}
    assert set(merged) == {interop.DEKORATE_INPUT_DIR, interop.DEKORATE_OUTPUT_DIR}


# --- Cluster context ---

def test_namespace_from_kubeconfig(tmp_path):
    config = write(tmp_path / "config", (
        "current-context: dev\n"
        "contexts:\n"
        "  - name: prod\n"
        "    context: {namespace: prod-ns}\n"
        "  - name: dev\n"
        "    context: {namespace: dev-ns}\n"
    ))
    assert cluster.current_namespace(config) == "dev-ns"


def test_namespace_defaults(tmp_path, monkeypatch):
    monkeypatch.setenv("KUBECONFIG", str(tmp_path / "absent"))
    assert cluster.current_namespace() == "default"
    config = write(tmp_path / "config", "current-context: x\ncontexts: []\n")
    assert cluster.current_namespace(config) == "default"
