#!/usr/bin/env python3
"""
KUBEFORGE KIND MAPPINGS
-----------------------
The kind <-> filename type table used both to recognise fragment files
(``deployment-app.yaml``, ``cm-settings.yml``) and to name output files,
plus the default apiVersion of each kind and the platform-exclusive kinds.

Author: KubeForge Team
Date: 2026-01-16
"""

import re
from typing import Dict, Iterable, List, Optional, Tuple

from kubeforge.core.models import MappingConfig, ResourceClassifier

# kind -> filename types; the first type is used when naming output files
DEFAULT_KIND_FILENAME_TYPES: Dict[str, Tuple[str, ...]] = {
    "BuildConfig": ("buildconfig", "bc"),
    "ClusterRole": ("clusterrole", "cr"),
    "ClusterRoleBinding": ("clusterrolebinding", "crb"),
    "ConfigMap": ("configmap", "cm"),
    "CronJob": ("cronjob", "cj"),
    "CustomResourceDefinition": ("customresourcedefinition", "crd"),
    "DaemonSet": ("daemonset", "ds"),
    "Deployment": ("deployment", "deploy"),
    "DeploymentConfig": ("deploymentconfig", "dc"),
    "HorizontalPodAutoscaler": ("horizontalpodautoscaler", "hpa"),
    "ImageStream": ("imagestream", "is"),
    "ImageStreamTag": ("imagestreamtag", "istag"),
    "Ingress": ("ingress", "ing"),
    "Job": ("job",),
    "LimitRange": ("limitrange", "lr"),
    "Namespace": ("namespace", "ns"),
    "NetworkPolicy": ("networkpolicy", "np"),
    "PersistentVolume": ("persistentvolume", "pv"),
    "PersistentVolumeClaim": ("persistentvolumeclaim", "pvc"),
    "Pod": ("pod",),
    "PodDisruptionBudget": ("poddisruptionbudget", "pdb"),
    "Project": ("project",),
    "ReplicaSet": ("replicaset", "rs"),
    "ReplicationController": ("replicationcontroller", "rc"),
    "ResourceQuota": ("resourcequota", "quota"),
    "Role": ("role",),
    "RoleBinding": ("rolebinding", "rb"),
    "Route": ("route",),
    "Secret": ("secret",),
    "Service": ("service", "svc"),
    "ServiceAccount": ("serviceaccount", "sa"),
    "StatefulSet": ("statefulset", "sts"),
    "StorageClass": ("storageclass", "sc"),
    "Template": ("template",),
}

DEFAULT_API_VERSIONS: Dict[str, str] = {
    "BuildConfig": "build.openshift.io/v1",
    "ClusterRole": "rbac.authorization.k8s.io/v1",
    "ClusterRoleBinding": "rbac.authorization.k8s.io/v1",
    "CronJob": "batch/v1",
    "CustomResourceDefinition": "apiextensions.k8s.io/v1",
    "DaemonSet": "apps/v1",
    "Deployment": "apps/v1",
    "DeploymentConfig": "apps.openshift.io/v1",
    "HorizontalPodAutoscaler": "autoscaling/v2",
    "ImageStream": "image.openshift.io/v1",
    "ImageStreamTag": "image.openshift.io/v1",
    "Ingress": "networking.k8s.io/v1",
    "Job": "batch/v1",
    "NetworkPolicy": "networking.k8s.io/v1",
    "PodDisruptionBudget": "policy/v1",
    "Project": "project.openshift.io/v1",
    "ReplicaSet": "apps/v1",
    "Role": "rbac.authorization.k8s.io/v1",
    "RoleBinding": "rbac.authorization.k8s.io/v1",
    "Route": "route.openshift.io/v1",
    "StatefulSet": "apps/v1",
    "StorageClass": "storage.k8s.io/v1",
    "Template": "template.openshift.io/v1",
}

# Kinds that only make sense on one platform; dropped from the other's bundle
OPENSHIFT_ONLY_KINDS = frozenset({
    "BuildConfig", "DeploymentConfig", "ImageStream", "ImageStreamTag",
    "Project", "ProjectRequest", "Route", "SecurityContextConstraints", "Template",
})
KUBERNETES_ONLY_KINDS = frozenset({"Ingress"})

WORKLOAD_KINDS = ("Deployment", "DeploymentConfig", "StatefulSet", "DaemonSet", "ReplicaSet", "Job")

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


class KindFilenameMapper:
    """Kind <-> filename type lookups, extended by user MappingConfigs."""

    def __init__(self, mappings: Iterable[MappingConfig] = ()):
        self.kind_to_types: Dict[str, List[str]] = {k: list(v) for k, v in DEFAULT_KIND_FILENAME_TYPES.items()}
        self.api_versions: Dict[str, str] = dict(DEFAULT_API_VERSIONS)
        for mapping in mappings or ():
            self.add(mapping)

    def add(self, mapping: MappingConfig):
        types = [t.lower() for t in mapping.filename_types if t]
        # Another kind may already claim one of these types; user mapping wins
        for kind, existing in self.kind_to_types.items():
            if kind != mapping.kind:
                self.kind_to_types[kind] = [t for t in existing if t not in types]
        current = self.kind_to_types.get(mapping.kind, [])
        self.kind_to_types[mapping.kind] = types + [t for t in current if t not in types]
        if mapping.api_version:
            self.api_versions[mapping.kind] = mapping.api_version

    def kind_for_type(self, filename_type: str) -> Optional[str]:
        lowered = filename_type.lower()
        for kind, types in self.kind_to_types.items():
            if lowered in types:
                return kind
        return None

    def type_for_kind(self, kind: str) -> str:
        types = self.kind_to_types.get(kind)
        return types[0] if types else kind.lower()

    def api_version_for(self, kind: str) -> str:
        return self.api_versions.get(kind, "v1")

    def output_filename(self, kind: str, name: str, extension: str) -> str:
        stem = sanitize_filename(f"{self.type_for_kind(kind)}-{name or 'unnamed'}")
        return f"{stem}.{extension}"


def sanitize_filename(value: str) -> str:
    return _NON_ALNUM.sub("-", value.lower()).strip("-")


def excluded_kinds(classifier: ResourceClassifier) -> frozenset:
    if classifier == ResourceClassifier.KUBERNETES:
        return OPENSHIFT_ONLY_KINDS
    return KUBERNETES_ONLY_KINDS
