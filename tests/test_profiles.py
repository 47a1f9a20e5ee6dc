import copy

import pytest

from kubeforge.core.errors import ConfigError, ProfileNotFound
from kubeforge.core.models import ProcessorConfig, Profile
from kubeforge.profiles.store import ENRICHER, GENERATOR, ProfileStore, deep_merge

from conftest import write


def test_empty_name_selects_builtin_default():
    profile = ProfileStore().load_profile(None)
    assert profile.name == "default"
    assert profile.enricher.includes[0] == "default-controller"
    assert profile.generator.includes == ["dockerfile", "oci-labels"]


def test_project_profile_shadows_builtin(tmp_path):
    write(tmp_path / "profiles.yaml", (
        "- name: default\n"
        "  enricher:\n"
        "    includes: [name]\n"
    ))
    profile = ProfileStore().load_profile("default", [tmp_path])
    assert profile.enricher.includes == ["name"]


def test_highest_order_wins_within_one_file(tmp_path):
    write(tmp_path / "profiles.yml", (
        "- name: custom\n"
        "  order: 1\n"
        "  enricher: {includes: [low]}\n"
        "- name: custom\n"
        "  order: 10\n"
        "  enricher: {includes: [high]}\n"
    ))
    assert ProfileStore().load_profile("custom", [tmp_path]).enricher.includes == ["high"]


def test_first_search_directory_wins(tmp_path):
    first, second = tmp_path / "first", tmp_path / "second"
    write(first / "profiles.yaml", "- name: p\n  enricher: {includes: [a]}\n")
    write(second / "profiles.yaml", "- name: p\n  enricher: {includes: [b]}\n")
    assert ProfileStore().load_profile("p", [first, second]).enricher.includes == ["a"]


def test_missing_profile_is_reported(tmp_path):
    with pytest.raises(ProfileNotFound) as exc:
        ProfileStore().load_profile("nope", [tmp_path])
    assert exc.value.name == "nope"


def test_extends_blends_parent_configuration():
    profile = ProfileStore().load_profile("openshift")
    assert profile.enricher.includes == ProfileStore().load_profile("default").enricher.includes
    assert profile.enricher.config["openshift-route"] == {"tlsTermination": "edge"}
    assert profile.enricher.config["default-controller"] == {"replicas": 1}


def test_extends_cycle_is_rejected(tmp_path):
    write(tmp_path / "profiles.yaml", (
        "- name: a\n  extends: b\n"
        "- name: b\n  extends: a\n"
    ))
    with pytest.raises(ConfigError, match="cycle"):
        ProfileStore().load_profile("a", [tmp_path])


def test_malformed_profile_file(tmp_path):
    write(tmp_path / "profiles.yaml", "name: not-a-list\n")
    with pytest.raises(ConfigError):
        ProfileStore().load_profile("whatever", [tmp_path])


def test_user_includes_replace_and_excludes_combine():
    profile = Profile(
        name="p",
        enricher=ProcessorConfig(includes=["a", "b", "c"], excludes=["c"]),
    )
    blended = ProfileStore().blend(profile, ProcessorConfig(includes=["b", "a"], excludes=["x"]), ENRICHER)
    assert blended.includes == ["b", "a"]
    assert blended.excludes == ["c", "x"]


def test_user_config_deep_merges_over_profile():
    profile = Profile(
        name="p",
        generator=ProcessorConfig(config={"g": {"a": 1, "nested": {"p": 1, "q": 2}}}),
    )
    user = ProcessorConfig(config={"g": {"nested": {"q": 3}}, "h": {"z": True}})
    blended = ProfileStore().blend(profile, user, GENERATOR)
    assert blended.config == {"g": {"a": 1, "nested": {"p": 1, "q": 3}}, "h": {"z": True}}


def test_blend_leaves_inputs_untouched():
    profile = Profile(name="p", enricher=ProcessorConfig(includes=["a"], config={"a": {"k": [1]}}))
    user = ProcessorConfig(config={"a": {"k": [2]}})
    before = (copy.deepcopy(profile), copy.deepcopy(user))

    blended = ProfileStore().blend(profile, user, ENRICHER)
    blended.config["a"]["k"].append(3)

    assert (profile, user) == before


def test_empty_user_config_returns_profile_copy():
    profile = Profile(name="p", enricher=ProcessorConfig(includes=["a"]))
    blended = ProfileStore().blend(profile, ProcessorConfig(), ENRICHER)
    assert blended == profile.enricher
    assert blended is not profile.enricher


def test_blend_unknown_kind():
    with pytest.raises(ConfigError):
        ProfileStore().blend(Profile(name="p"), None, "watcher")


def test_deep_merge_replaces_lists_and_scalars():
    assert deep_merge({"a": [1, 2], "b": {"c": 1}}, {"a": [3], "b": {"d": 2}}) == {
        "a": [3], "b": {"c": 1, "d": 2},
    }
