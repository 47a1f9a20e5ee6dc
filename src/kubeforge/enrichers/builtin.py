#!/usr/bin/env python3
"""
KUBEFORGE BUILT-IN ENRICHERS
----------------------------
The default enrichers shipped with KubeForge, in the order they appear in
the built-in manifest. Every enricher only fills what is missing, so a
second pass over its own output changes nothing.

Author: KubeForge Team
Date: 2026-01-16
"""

import re
from typing import Any, Dict, List, Optional

from kubeforge.core.models import ImageConfiguration, PlatformMode, ResourceList
from kubeforge.core.registry import ProcessorRegistry
from kubeforge.enrichers.chain import Enricher
from kubeforge.images.name import ImageName
from kubeforge.resource.mappings import WORKLOAD_KINDS, DEFAULT_API_VERSIONS

WELL_KNOWN_PORT_NAMES = {80: "http", 8080: "http", 443: "https", 8443: "https", 8778: "jolokia", 9779: "prometheus"}

_INVALID_NAME_CHARS = re.compile(r"[^a-z0-9.\-]+")


# --- Shared helpers ---

def image_resource_name(image: ImageConfiguration) -> str:
    return sanitize_name(ImageName.parse(image.name).simple_name)


def sanitize_name(value: str, max_length: int = 63) -> str:
    name = _INVALID_NAME_CHARS.sub("-", value.lower())
    name = re.sub(r"-{2,}", "-", name)
    return name[:max_length].strip("-.")


def parse_port(raw: Any) -> Optional[Dict[str, Any]]:
    """'8080', '8080/udp' or 8080 -> {'port': 8080, 'protocol': 'TCP'}"""
    text = str(raw).strip()
    if not text:
        return None
    number, _, protocol = text.partition("/")
    try:
        port = int(number)
    except ValueError:
        return None
    return {"port": port, "protocol": (protocol or "tcp").upper()}


def image_ports(image: ImageConfiguration) -> List[Dict[str, Any]]:
    if image.build is None:
        return []
    return [p for p in (parse_port(raw) for raw in image.build.ports) if p]


def pod_spec(obj: Dict[str, Any], create: bool = False) -> Optional[Dict[str, Any]]:
    """spec.template.spec of a workload (or spec of a Pod)."""
    if obj.get("kind") == "Pod":
        return obj.setdefault("spec", {}) if create else obj.get("spec")
    spec = obj.get("spec")
    if spec is None:
        if not create:
            return None
        spec = obj["spec"] = {}
    template = spec.get("template")
    if template is None:
        if not create:
            return None
        template = spec["template"] = {}
    inner = template.get("spec")
    if inner is None and create:
        inner = template["spec"] = {}
    return inner


def labels_of(obj: Dict[str, Any]) -> Dict[str, Any]:
    metadata = obj.setdefault("metadata", {})
    labels = metadata.get("labels")
    if labels is None:
        labels = metadata["labels"] = {}
    return labels


# --- CREATE phase ---

class DefaultControllerEnricher(Enricher):
    """Creates a Deployment for each image that has no workload of the same name."""
    name = "default-controller"

    def create(self, platform: PlatformMode, resources: ResourceList):
        for image in self.context.images:
            name = self.option("name") or image_resource_name(image)
            if any(resources.find(kind, name) for kind in WORKLOAD_KINDS):
                continue

            container: Dict[str, Any] = {"name": name, "image": image.name}
            ports = image_ports(image)
            if ports:
                container["ports"] = [
                    {"containerPort": p["port"], "protocol": p["protocol"]} for p in ports
                ]

            resources.add({
                "apiVersion": DEFAULT_API_VERSIONS["Deployment"],
                "kind": "Deployment",
                "metadata": {"name": name},
                "spec": {
                    "replicas": int(self.option("replicas", 1)),
                    "selector": {"matchLabels": {"app": name}},
                    "template": {
                        "metadata": {"labels": {"app": name}},
                        "spec": {"containers": [container]},
                    },
                },
            })
            self.log.info(f"{self.name}: added Deployment '{name}' for image {image.name}")


class DefaultServiceEnricher(Enricher):
    """Creates a Service from the ports exposed by each image."""
    name = "default-service"

    def create(self, platform: PlatformMode, resources: ResourceList):
        for image in self.context.images:
            name = image_resource_name(image)
            if resources.find("Service", name):
                continue
            ports = image_ports(image)
            headless = bool(self.option("headless", False))
            if not ports and not headless:
                continue

            spec: Dict[str, Any] = {"selector": {"app": name}}
            if ports:
                spec["type"] = self.option("type", "ClusterIP")
                spec["ports"] = [self._service_port(p) for p in ports]
            else:
                spec["clusterIP"] = "None"

            resources.add({
                "apiVersion": "v1",
                "kind": "Service",
                "metadata": {"name": name},
                "spec": spec,
            })
            self.log.info(f"{self.name}: added Service '{name}'")

    @staticmethod
    def _service_port(port: Dict[str, Any]) -> Dict[str, Any]:
        entry: Dict[str, Any] = {}
        known = WELL_KNOWN_PORT_NAMES.get(port["port"])
        if known:
            entry["name"] = known
        entry.update({"port": port["port"], "targetPort": port["port"], "protocol": port["protocol"]})
        return entry


class OpenShiftRouteEnricher(Enricher):
    """Exposes every Service with ports through a Route on OpenShift."""
    name = "openshift-route"

    def create(self, platform: PlatformMode, resources: ResourceList):
        if platform != PlatformMode.openshift:
            return
        for service in resources.of_kind("Service"):
            name = (service.get("metadata") or {}).get("name")
            ports = (service.get("spec") or {}).get("ports") or []
            if not name or not ports or resources.find("Route", name):
                continue

            spec: Dict[str, Any] = {
                "to": {"kind": "Service", "name": name},
                "port": {"targetPort": ports[0].get("targetPort", ports[0].get("port"))},
            }
            termination = self.option("tlsTermination")
            if termination:
                spec["tls"] = {"termination": termination, "insecureEdgeTerminationPolicy": "Redirect"}

            resources.add({
                "apiVersion": DEFAULT_API_VERSIONS["Route"],
                "kind": "Route",
                "metadata": {"name": name},
                "spec": spec,
            })


# --- ENRICH phase ---

class ContainerImageEnricher(Enricher):
    """Fills containers without an image from the resolved images."""
    name = "container-image"

    def _image_for(self, workload_name: str) -> Optional[ImageConfiguration]:
        images = self.context.images
        for image in images:
            if image_resource_name(image) == workload_name or image.alias == workload_name:
                return image
        return images[0] if len(images) == 1 else None

    def enrich(self, platform: PlatformMode, resources: ResourceList):
        for workload in resources.of_kind(*WORKLOAD_KINDS):
            name = (workload.get("metadata") or {}).get("name") or ""
            image = self._image_for(name)
            if image is None:
                continue

            spec = pod_spec(workload, create=True)
            containers = spec.get("containers")
            if not containers:
                containers = spec["containers"] = [{"name": name or image_resource_name(image)}]

            for container in containers:
                if not container.get("image"):
                    container["image"] = image.name
                if not container.get("name"):
                    container["name"] = image_resource_name(image)
                ports = image_ports(image)
                if ports and "ports" not in container:
                    container["ports"] = [
                        {"containerPort": p["port"], "protocol": p["protocol"]} for p in ports
                    ]


class ProjectLabelEnricher(Enricher):
    """
    Adds the app / group / version / provider labels to every resource,
    to pod templates, and to workload and Service selectors that are missing.
    """
    name = "project-label"

    def _group(self) -> Optional[str]:
        project = self.context.project
        if project.group_id:
            return project.group_id.split(".")[-1]
        for image in self.context.images:
            user = ImageName.parse(image.name).user
            if user:
                return user
        return None

    def _labels_for(self, obj: Dict[str, Any]) -> Dict[str, str]:
        project = self.context.project
        labels = {}
        app = project.artifact_id or (obj.get("metadata") or {}).get("name")
        if app:
            labels["app"] = sanitize_name(app)
        group = self._group()
        if group:
            labels["group"] = sanitize_name(group)
        provider = self.option("provider", "kubeforge")
        if provider:
            labels["provider"] = str(provider)
        if project.version:
            labels["version"] = str(project.version)
        return labels

    def enrich(self, platform: PlatformMode, resources: ResourceList):
        for obj in resources:
            project_labels = self._labels_for(obj)
            selector_labels = {k: v for k, v in project_labels.items() if k != "version"}
            labels = labels_of(obj)
            for key, value in project_labels.items():
                labels.setdefault(key, value)

            kind = obj.get("kind")
            if kind in WORKLOAD_KINDS:
                spec = obj.setdefault("spec", {})
                template = spec.setdefault("template", {})
                template_labels = labels_of(template)
                for key, value in project_labels.items():
                    template_labels.setdefault(key, value)
                if kind != "DeploymentConfig" and not spec.get("selector"):
                    # Selector must match the pod template, which may carry its own values
                    match = {k: template_labels[k] for k in selector_labels}
                    spec["selector"] = {"matchLabels": match}
            elif kind == "Service":
                spec = obj.setdefault("spec", {})
                if not spec.get("selector"):
                    spec["selector"] = dict(selector_labels)


class ImagePullPolicyEnricher(Enricher):
    """Always pull mutable 'latest' tags, otherwise reuse the node cache."""
    name = "image-pull-policy"

    def enrich(self, platform: PlatformMode, resources: ResourceList):
        forced = self.option("policy")
        for workload in resources.of_kind("Pod", *WORKLOAD_KINDS):
            spec = pod_spec(workload)
            for container in (spec or {}).get("containers") or []:
                if container.get("imagePullPolicy") or not container.get("image"):
                    continue
                if forced:
                    container["imagePullPolicy"] = forced
                    continue
                tag = ImageName.parse(container["image"]).tag_or_latest
                container["imagePullPolicy"] = "Always" if tag == "latest" else "IfNotPresent"


class DefaultMetadataEnricher(Enricher):
    """Merges configured labels and annotations into every resource."""
    name = "default-metadata"

    def enrich(self, platform: PlatformMode, resources: ResourceList):
        labels = self.option("labels") or {}
        annotations = self.option("annotations") or {}
        if not labels and not annotations:
            return
        for obj in resources:
            metadata = obj.setdefault("metadata", {})
            if labels:
                target = labels_of(obj)
                for key, value in labels.items():
                    target.setdefault(str(key), str(value))
            if annotations:
                target = metadata.get("annotations")
                if target is None:
                    target = metadata["annotations"] = {}
                for key, value in annotations.items():
                    target.setdefault(str(key), str(value))


# --- VISIT phase ---

class NameEnricher(Enricher):
    """Applies the DNS-1123 naming policy to every metadata.name."""
    name = "name"

    def visit(self, platform: PlatformMode, resources: ResourceList):
        max_length = int(self.option("maxLength", 63))
        for obj in resources:
            metadata = obj.get("metadata") or {}
            current = metadata.get("name")
            if not current:
                continue
            fixed = sanitize_name(str(current), max_length)
            if fixed and fixed != current:
                self.log.info(f"{self.name}: renamed {obj.get('kind')} '{current}' to '{fixed}'")
                metadata["name"] = fixed


BUILTIN_ENRICHERS = (
    DefaultControllerEnricher,
    DefaultServiceEnricher,
    OpenShiftRouteEnricher,
    ContainerImageEnricher,
    ProjectLabelEnricher,
    ImagePullPolicyEnricher,
    DefaultMetadataEnricher,
    NameEnricher,
)


def default_enricher_registry() -> ProcessorRegistry:
    return ProcessorRegistry("enricher", [(cls.name, cls) for cls in BUILTIN_ENRICHERS])
