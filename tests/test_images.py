import os
import time
from datetime import datetime, timezone

import pytest

from kubeforge.core.errors import ConfigError, DuplicateImage, UnknownImageSyntax
from kubeforge.core.models import BuildConfiguration, ImageConfiguration, ProcessorConfig, RuntimeMode
from kubeforge.core.timestamp import BUILD_TIMESTAMP_FILE, format_tag, format_timestamp, get_build_timestamp
from kubeforge.images.handlers import PropertiesHandler, expand_image
from kubeforge.images.name import ImageName, format_image_name
from kubeforge.images.resolver import ImageResolver

STAMP = datetime(2026, 1, 16, 10, 20, 30, 123000, tzinfo=timezone.utc)


# --- Image names ---

def test_parse_user_repository_tag():
    name = ImageName.parse("acme/app:1.0")
    assert (name.registry, name.user, name.repository, name.tag) == (None, "acme", "app", "1.0")
    assert name.full_name() == "acme/app:1.0"


def test_parse_registry_with_port_and_digest():
    name = ImageName.parse("registry.example.com:5000/team/app@sha256:abc")
    assert name.registry == "registry.example.com:5000"
    assert name.user == "team"
    assert name.repository == "app"
    assert name.tag is None
    assert name.digest == "sha256:abc"


def test_parse_bare_and_localhost_names():
    assert ImageName.parse("nginx").tag_or_latest == "latest"
    local = ImageName.parse("localhost/app")
    assert (local.registry, local.user, local.repository) == ("localhost", None, "app")


def test_parse_rejects_empty_name():
    with pytest.raises(ConfigError):
        ImageName.parse("  ")


def test_placeholders_expand_from_project(make_project):
    project = make_project(group_id="org.acme", artifact_id="My-App", version="1.0-SNAPSHOT")
    assert format_image_name("%g/%a:%l", project, STAMP) == "acme/my-app:latest"
    assert format_image_name("%g/%a:%v", project, STAMP) == "acme/my-app:1.0-SNAPSHOT"

    released = make_project(group_id="org.acme", artifact_id="app", version="2.1")
    assert format_image_name("%a:%l", released, STAMP) == "app:2.1"
    assert format_image_name("%a:%t", released, STAMP) == "app:260116-102030-0123"


def test_user_property_wins_for_group_placeholder(make_project):
    project = make_project(group_id="org.acme", artifact_id="app",
                           properties={"kubeforge.image.user": "team"})
    assert format_image_name("%g/%a", project, STAMP) == "team/app"


def test_group_placeholder_needs_a_user(make_project):
    with pytest.raises(ConfigError, match="%g"):
        format_image_name("%g/app", make_project(), STAMP)


# --- Build timestamp ---

def test_timestamp_formats():
    assert format_timestamp(STAMP) == "2026-01-16T10:20:30.123Z"
    assert format_tag(STAMP) == "260116-102030-0123"


def test_timestamp_is_shared_within_invocation(tmp_path):
    started = time.time() - 60
    first = get_build_timestamp(tmp_path, started)
    second = get_build_timestamp(tmp_path, started)
    assert first == second
    assert (tmp_path / BUILD_TIMESTAMP_FILE).is_file()
    assert first.microsecond % 1000 == 0


def test_stale_timestamp_cache_is_replaced(tmp_path):
    cache = tmp_path / BUILD_TIMESTAMP_FILE
    cache.parent.mkdir(parents=True)
    cache.write_text("1000")
    old = time.time() - 3600
    os.utime(cache, (old, old))

    stamp = get_build_timestamp(tmp_path, started_at=time.time() - 5)
    assert stamp.year >= 2026
    assert cache.read_text() != "1000"


# --- Handlers ---

def test_properties_handler_builds_image(make_project):
    project = make_project(properties={
        "kubeforge.container-image.name": "acme/web:1",
        "kubeforge.container-image.ports": "8080, 9090/udp",
        "kubeforge.container-image.labels.team": "payments",
        "kubeforge.container-image.args.MODE": "prod",
    })
    image = ImageConfiguration(name="", external={"type": PropertiesHandler.type},
                               build=BuildConfiguration(labels={"tier": "web"}))
    [resolved] = expand_image(image, project)
    assert resolved.name == "acme/web:1"
    assert resolved.build.ports == ["8080", "9090/udp"]
    assert resolved.build.labels == {"tier": "web", "team": "payments"}
    assert resolved.build.args == {"MODE": "prod"}


def test_properties_handler_custom_prefix(make_project):
    project = make_project(properties={"img.name": "acme/other"})
    image = ImageConfiguration(name="", external={"type": "properties", "prefix": "img"})
    assert expand_image(image, project)[0].name == "acme/other"


def test_unknown_external_type(make_project):
    image = ImageConfiguration(name="x", external={"type": "compose"})
    with pytest.raises(UnknownImageSyntax):
        expand_image(image, make_project())


# --- Resolver ---

def _resolver(project, **kwargs):
    kwargs.setdefault("namespace_lookup", lambda: "cluster-ns")
    return ImageResolver(project, ProcessorConfig(), **kwargs)


def test_resolve_expands_and_stamps(make_project):
    project = make_project(group_id="org.acme", artifact_id="app", version="1.0")
    images = _resolver(project).resolve([ImageConfiguration(name="%g/%a:%l")])

    assert isinstance(images, tuple)
    assert [i.name for i in images] == ["acme/app:1.0"]
    assert images[0].build_timestamp.endswith("Z")


def test_resolve_does_not_touch_caller_images(make_project):
    original = ImageConfiguration(name="%a", alias="main")
    _resolver(make_project(artifact_id="app")).resolve([original])
    assert original.name == "%a"
    assert original.build_timestamp is None


def test_kubernetes_mode_keeps_names_without_user(make_project):
    images = _resolver(make_project()).resolve([ImageConfiguration(name="app:1.0")])
    assert images[0].name == "app:1.0"


def test_openshift_mode_inserts_namespace(make_project):
    resolver = _resolver(make_project(), runtime_mode=RuntimeMode.OPENSHIFT)
    images = resolver.resolve([
        ImageConfiguration(name="app:1.0"),
        ImageConfiguration(name="acme/other:1.0"),
    ])
    assert [i.name for i in images] == ["cluster-ns/app:1.0", "acme/other:1.0"]


def test_openshift_mode_prefers_explicit_namespace(make_project):
    resolver = _resolver(make_project(), runtime_mode=RuntimeMode.OPENSHIFT, namespace="team",
                         namespace_lookup=lambda: pytest.fail("cluster must not be queried"))
    assert resolver.resolve([ImageConfiguration(name="app")])[0].name == "team/app"


def test_registry_property_is_applied(make_project):
    project = make_project(properties={"kubeforge.image.registry": "quay.io"})
    images = _resolver(project).resolve([
        ImageConfiguration(name="acme/app"),
        ImageConfiguration(name="ghcr.io/acme/tool"),
        ImageConfiguration(name="acme/own", registry="docker.io"),
    ])
    assert [i.registry for i in images] == ["quay.io", "ghcr.io", "docker.io"]


def test_duplicate_names_after_expansion(make_project):
    project = make_project(artifact_id="app")
    with pytest.raises(DuplicateImage):
        _resolver(project).resolve([ImageConfiguration(name="%a"), ImageConfiguration(name="app")])
