"""Classification of kubectl read failures."""

from __future__ import annotations

import re

_FORBIDDEN_PATTERN = re.compile(
    r'User\s+"(?P<user>[^"]+)"\s+cannot\s+(?P<verb>[a-z]+)\s+resource\s+"(?P<resource>[^"]+)"\s+'
    r'in\s+API\s+group\s+"(?P<api_group>[^"]*)"\s+'
    r'(?:(?:in\s+the\s+namespace\s+"(?P<namespace>[^"]+)")|(?:at\s+the\s+cluster\s+scope))',
    re.IGNORECASE,
)


def classify_kubectl_failure(stderr: str | None, *, rc: int | None = None) -> str:
    """Map a failed read to `not_found`, `rbac_denied`, `kubectl_missing`, `timeout` or `read_failed`."""
    if rc == 127:
        return "kubectl_missing"
    if rc == 124:
        return "timeout"
    text = (stderr or "").strip()
    lower = text.lower()
    if "(forbidden)" in text or "forbidden" in lower:
        return "rbac_denied"
    if "(notfound)" in lower or "not found" in lower:
        # A missing CRD means the kind is not installed, not that an object is absent.
        if "the server doesn't have a resource type" in lower:
            return "read_failed"
        return "not_found"
    return "read_failed"


def parse_forbidden(text: str | None) -> dict | None:
    """Turn a Forbidden message into the Role rule that would allow the read."""
    if not isinstance(text, str) or not text.strip():
        return None
    match = _FORBIDDEN_PATTERN.search(text)
    if not match:
        return None

    namespace = match.group("namespace")
    verb = match.group("verb").lower()
    resource = match.group("resource")
    api_group = match.group("api_group")
    user = match.group("user")
    if namespace:
        scope = "namespaced"
        where = f'a Role in namespace "{namespace}" bound with a RoleBinding'
    else:
        scope = "cluster"
        where = "a ClusterRole bound with a ClusterRoleBinding"
    return {
        "user": user,
        "verb": verb,
        "resource": resource,
        "api_group": api_group,
        "namespace": namespace,
        "scope": scope,
        "suggested_rule": {
            "apiGroups": [api_group],
            "resources": [resource],
            "verbs": sorted({verb, "get", "list"}),
        },
        "hint": f'the gate only reads; grant "{user}" get/list on {resource} via {where}',
    }
