"""Admission webhooks, validating admission policies and certificate signing requests."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from kubestatelogs.collector.handler import BaseHandler, InformerHandler
from kubestatelogs.collector.serializer import json_field
from kubestatelogs.collector.utils import (
    collect_conditions,
    extract_field,
    get_condition_status,
    get_int,
    get_path,
    optional_int,
    string_map,
)

_CSR_CONDITIONS = ("Approved", "Denied", "Failed")


def webhooks(obj: Mapping[str, Any]) -> list[dict[str, Any]]:
    """Flatten each webhook; the CA bundle is reduced to a presence flag."""
    result = []
    for hook in obj.get("webhooks") or []:
        client = hook.get("clientConfig") or {}
        service = client.get("service")
        result.append(
            {
                "name": hook.get("name", ""),
                "url": client.get("url", ""),
                "service": (
                    {
                        "namespace": service.get("namespace", ""),
                        "name": service.get("name", ""),
                        "path": service.get("path", ""),
                        "port": service.get("port"),
                    }
                    if isinstance(service, Mapping)
                    else None
                ),
                "hasCABundle": bool(client.get("caBundle")),
                "rules": [
                    {
                        "operations": list(rule.get("operations") or []),
                        "apiGroups": list(rule.get("apiGroups") or []),
                        "apiVersions": list(rule.get("apiVersions") or []),
                        "resources": list(rule.get("resources") or []),
                        "scope": rule.get("scope", ""),
                    }
                    for rule in hook.get("rules") or []
                ],
                "failurePolicy": hook.get("failurePolicy", ""),
                "matchPolicy": hook.get("matchPolicy", ""),
                "namespaceSelector": string_map(extract_field(hook, "namespaceSelector.matchLabels")),
                "objectSelector": string_map(extract_field(hook, "objectSelector.matchLabels")),
                "sideEffects": hook.get("sideEffects", ""),
                "timeoutSeconds": hook.get("timeoutSeconds"),
                "admissionReviewVersions": list(hook.get("admissionReviewVersions") or []),
                "reinvocationPolicy": hook.get("reinvocationPolicy", ""),
            }
        )
    return result


@dataclass
class WebhookConfigurationData:
    webhook_count: int = json_field("webhookCount", default=0)
    webhooks: list[dict[str, Any]] = json_field("webhooks", default_factory=list)


class MutatingWebhookConfigurationHandler(BaseHandler):
    resource_type = "mutatingwebhookconfiguration"
    cluster_scoped = True

    def build_data(self, obj: Mapping[str, Any]) -> WebhookConfigurationData:
        hooks = webhooks(obj)
        return WebhookConfigurationData(webhook_count=len(hooks), webhooks=hooks)


class ValidatingWebhookConfigurationHandler(MutatingWebhookConfigurationHandler):
    resource_type = "validatingwebhookconfiguration"


@dataclass
class CertificateSigningRequestData:
    status: str = json_field("status", default="")
    signer_name: str = json_field("signerName", default="")
    expiration_seconds: int | None = json_field("expirationSeconds", default=None)
    usages: list[str] = json_field("usages", default_factory=list)
    username: str = json_field("username", default="")
    condition_approved: bool | None = json_field("conditionApproved", default=None)
    condition_denied: bool | None = json_field("conditionDenied", default=None)
    condition_failed: bool | None = json_field("conditionFailed", default=None)
    conditions: dict[str, bool | None] = json_field("conditions", default_factory=dict)
    certificate_issued: bool = json_field("certificateIssued", default=False)


class CertificateSigningRequestHandler(BaseHandler):
    resource_type = "certificatesigningrequest"
    cluster_scoped = True

    def build_data(self, obj: Mapping[str, Any]) -> CertificateSigningRequestData:
        conditions = get_path(obj, "status.conditions", [])
        first = conditions[0] if conditions and isinstance(conditions[0], Mapping) else {}
        return CertificateSigningRequestData(
            status=str(first.get("type") or ""),
            signer_name=get_path(obj, "spec.signerName", ""),
            expiration_seconds=optional_int(obj, "spec.expirationSeconds"),
            usages=list(get_path(obj, "spec.usages", [])),
            username=get_path(obj, "spec.username", ""),
            condition_approved=get_condition_status(conditions, "Approved"),
            condition_denied=get_condition_status(conditions, "Denied"),
            condition_failed=get_condition_status(conditions, "Failed"),
            conditions=collect_conditions(conditions, exclude=_CSR_CONDITIONS),
            certificate_issued=bool(extract_field(obj, "status.certificate")),
        )


def _names(items: Any, key: str) -> list[str]:
    """The *key* value of each mapping in a list, skipping entries without one."""
    if not isinstance(items, list):
        return []
    return [str(item[key]) for item in items if isinstance(item, Mapping) and item.get(key)]


def resource_rules(match: Any) -> list[str]:
    """``group/resource`` for every resource rule of a match block (core group is empty)."""
    rules = extract_field(match, "resourceRules") if isinstance(match, Mapping) else None
    result: list[str] = []
    for rule in rules if isinstance(rules, list) else []:
        if not isinstance(rule, Mapping):
            continue
        for group in rule.get("apiGroups") or [""]:
            for resource in rule.get("resources") or []:
                result.append(f"{group}/{resource}")
    return result


@dataclass
class ValidatingAdmissionPolicyData:
    failure_policy: str = json_field("failurePolicy", default="")
    match_constraints: list[str] = json_field("matchConstraints", default_factory=list)
    validations: list[str] = json_field("validations", default_factory=list)
    audit_annotations: list[str] = json_field("auditAnnotations", default_factory=list)
    match_conditions: list[str] = json_field("matchConditions", default_factory=list)
    variables: list[str] = json_field("variables", default_factory=list)
    param_kind: str = json_field("paramKind", default="")
    observed_generation: int = json_field("observedGeneration", default=0)
    type_checking: str = json_field("typeChecking", default="")
    expression_warnings: list[str] = json_field("expressionWarnings", default_factory=list)
    conditions: dict[str, bool | None] = json_field("conditions", default_factory=dict)


class ValidatingAdmissionPolicyHandler(BaseHandler):
    resource_type = "validatingadmissionpolicy"
    cluster_scoped = True

    def build_data(self, obj: Mapping[str, Any]) -> ValidatingAdmissionPolicyData:
        warnings = _names(extract_field(obj, "status.typeChecking.expressionWarnings"), "warning")
        type_checking = ""
        if extract_field(obj, "status.typeChecking") is not None:
            type_checking = "Warning" if warnings else "Passed"
        return ValidatingAdmissionPolicyData(
            failure_policy=get_path(obj, "spec.failurePolicy", ""),
            match_constraints=resource_rules(extract_field(obj, "spec.matchConstraints")),
            validations=_names(extract_field(obj, "spec.validations"), "expression"),
            audit_annotations=_names(extract_field(obj, "spec.auditAnnotations"), "key"),
            match_conditions=_names(extract_field(obj, "spec.matchConditions"), "name"),
            variables=_names(extract_field(obj, "spec.variables"), "name"),
            param_kind=get_path(obj, "spec.paramKind.kind", ""),
            observed_generation=get_int(obj, "status.observedGeneration"),
            type_checking=type_checking,
            expression_warnings=warnings,
            conditions=collect_conditions(extract_field(obj, "status.conditions")),
        )


@dataclass
class ValidatingAdmissionPolicyBindingData:
    policy_name: str = json_field("policyName", default="")
    param_ref: str = json_field("paramRef", default="")
    match_resources: list[str] = json_field("matchResources", default_factory=list)
    validation_actions: list[str] = json_field("validationActions", default_factory=list)
    observed_generation: int = json_field("observedGeneration", default=0)


class ValidatingAdmissionPolicyBindingHandler(BaseHandler):
    resource_type = "validatingadmissionpolicybinding"
    cluster_scoped = True

    def build_data(self, obj: Mapping[str, Any]) -> ValidatingAdmissionPolicyBindingData:
        actions = extract_field(obj, "spec.validationActions")
        return ValidatingAdmissionPolicyBindingData(
            policy_name=get_path(obj, "spec.policyName", ""),
            param_ref=get_path(obj, "spec.paramRef.name", ""),
            match_resources=resource_rules(extract_field(obj, "spec.matchResources")),
            validation_actions=[str(a) for a in actions] if isinstance(actions, list) else [],
            observed_generation=get_int(obj, "status.observedGeneration"),
        )


HANDLERS: tuple[type[InformerHandler], ...] = (
    MutatingWebhookConfigurationHandler,
    ValidatingWebhookConfigurationHandler,
    CertificateSigningRequestHandler,
    ValidatingAdmissionPolicyHandler,
    ValidatingAdmissionPolicyBindingHandler,
)
