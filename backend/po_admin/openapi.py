"""Minimal deterministic OpenAPI spec for the PO console.

Lifecycle metadata is read from the StatusTransitionModel the app runs with:
- ``x-transitions`` on the PurchaseOrder schema: legal table, status -> [targets]
- ``x-transition-capabilities``: permission code gating each target status
- ``x-required-permissions`` on every PO operation
"""
from typing import Any, Dict, List, Optional

from .constants.permissions import Permission, POStatus, Role
from .utils.fsm import PO_TRANSITIONS, StatusTransitionModel

__all__ = ["build_openapi_spec"]

VIEW_CODES = [Permission.VIEW_ALL_PO.value, Permission.VIEW_OWN_PO.value]

ERROR_SCHEMA = {
    "type": "object",
    "properties": {
        "error": {
            "type": "object",
            "properties": {
                "status": {"type": "integer"},
                "title": {"type": "string"},
                "detail": {"type": "string"},
            },
        }
    },
    "required": ["error"],
}


def _ref(name: str) -> Dict[str, str]:
    return {"$ref": f"#/components/schemas/{name}"}


def _json(schema: Dict[str, Any], description: str = "OK") -> Dict[str, Any]:
    return {"description": description, "content": {"application/json": {"schema": schema}}}


def _po_id_param() -> List[Dict[str, Any]]:
    return [{"name": "po_id", "in": "path", "required": True, "schema": {"type": "string"}}]


def _op(summary: str, response: Dict[str, Any], perms: Optional[List[str]] = None, **extra) -> Dict[str, Any]:
    od: Dict[str, Any] = {
        "summary": summary,
        "responses": {
            "200": response,
            "401": {"$ref": "#/components/responses/Unauthorized"},
            "403": {"$ref": "#/components/responses/Forbidden"},
        },
    }
    if perms:
        od["x-required-permissions"] = perms
    od.update(extra)
    return od


def build_openapi_spec(model: Optional[StatusTransitionModel] = None) -> Dict[str, Any]:
    model = model or PO_TRANSITIONS
    statuses = [s.value for s in POStatus]

    po_schema: Dict[str, Any] = {
        "type": "object",
        "properties": {
            "id": {"type": "string"},
            "poNumber": {"type": "string"},
            "status": {"type": "string", "enum": statuses},
            "totalAmount": {"oneOf": [{"type": "number"}, {"type": "string", "enum": ["***"]}]},
        },
        "required": ["id", "poNumber", "status"],
        "x-transitions": model.as_graph(),
        "x-transition-capabilities": {
            s.value: (model.capabilities[s].value if model.capabilities.get(s) else None) for s in POStatus
        },
    }

    components: Dict[str, Any] = {
        "schemas": {
            "PurchaseOrder": po_schema,
            "PurchaseOrderDetail": {
                "type": "object",
                "properties": {
                    "data": _ref("PurchaseOrder"),
                    "capabilities": {"type": "object", "additionalProperties": {"type": "boolean"}},
                    "allowed_transitions": {"type": "array", "items": {"type": "string", "enum": statuses}},
                    "timeline": {"type": "array", "items": _ref("TimelineStep")},
                    "total_consistent": {"type": "boolean"},
                },
            },
            "TimelineStep": {
                "type": "object",
                "properties": {
                    "status": {"type": "string", "enum": statuses},
                    "marker": {"type": "string", "enum": ["completed", "current", "upcoming", "skipped", "cancelled"]},
                    "timestamp": {"type": "string", "nullable": True},
                },
            },
            "AuditLogState": {
                "type": "object",
                "properties": {
                    "state": {"type": "string", "enum": ["loading", "error", "ready"]},
                    "entries": {"type": "array", "items": {"type": "object"}},
                    "skipped": {"type": "integer"},
                    "empty": {"type": "boolean"},
                    "message": {"type": "string"},
                },
                "required": ["state"],
            },
            "Pagination": {
                "type": "object",
                "properties": {
                    "total": {"type": "integer"},
                    "limit": {"type": "integer"},
                    "offset": {"type": "integer"},
                    "returned": {"type": "integer"},
                },
                "required": ["total", "limit", "offset", "returned"],
            },
            "Error": ERROR_SCHEMA,
        },
        "responses": {
            "NotFound": {"description": "Not Found"},
            "BadRequest": {"description": "Bad Request"},
            "Unauthorized": {"description": "Missing or invalid token"},
            "Forbidden": {"description": "Missing permission"},
        },
        "securitySchemes": {"BearerAuth": {"type": "http", "scheme": "bearer", "bearerFormat": "JWT"}},
        "parameters": {
            "LimitParam": {"name": "limit", "in": "query", "schema": {"type": "integer", "default": 50}},
            "OffsetParam": {"name": "offset", "in": "query", "schema": {"type": "integer", "default": 0}},
        },
    }

    detail = _json(_ref("PurchaseOrderDetail"))
    paths: Dict[str, Any] = {
        "/session/capabilities": {"get": _op("Capabilities of the current session", _json({"type": "object"}))},
        "/session/menu": {"get": _op("Menu visible to the current role", _json({"type": "object"}))},
        "/session/route-access": {"get": _op("Route access check", _json({"type": "object"}),
                                             parameters=[{"name": "path", "in": "query", "required": True, "schema": {"type": "string"}}])},
        "/po/purchase-orders": {
            "get": _op(
                "List purchase orders",
                _json({"type": "object", "properties": {"data": {"type": "array", "items": _ref("PurchaseOrder")},
                                                        "pagination": _ref("Pagination")}}),
                VIEW_CODES,
                parameters=[
                    {"$ref": "#/components/parameters/LimitParam"},
                    {"$ref": "#/components/parameters/OffsetParam"},
                    {"name": "status", "in": "query", "schema": {"type": "string", "enum": statuses}},
                    {"name": "search", "in": "query", "schema": {"type": "string"}},
                    {"name": "sort", "in": "query", "schema": {"type": "string"}},
                ],
            )
        },
        "/po/purchase-orders/{po_id}": {"get": _op("Get purchase order", detail, VIEW_CODES, parameters=_po_id_param())},
        "/po/purchase-orders/{po_id}/audit-log": {
            "get": _op("Audit log, oldest first", _json(_ref("AuditLogState")), VIEW_CODES, parameters=_po_id_param())
        },
        "/po/purchase-orders/{po_id}/transitions": {
            "post": _op("Request a status transition", detail, VIEW_CODES, parameters=_po_id_param(),
                        requestBody={"required": True, "content": {"application/json": {"schema": {
                            "type": "object", "properties": {"to": {"type": "string", "enum": statuses}}, "required": ["to"]}}}})
        },
        "/po/purchase-orders/{po_id}/send-email": {
            "post": _op("Send (or resend) the PO to its vendor", detail, [Permission.SEND_PO_EMAIL.value], parameters=_po_id_param())
        },
        "/po/purchase-orders/{po_id}/acknowledge": {
            "post": _op("Record vendor acknowledgement", detail, [Permission.ACKNOWLEDGE_PO.value], parameters=_po_id_param())
        },
    }

    # Add operationIds & tags
    tag_desc: Dict[str, str] = {}
    for path, ops in paths.items():
        tag = path.split("/")[1].capitalize()
        for method, od in ops.items():
            rid = path.strip("/").replace("/", "_").replace("{", "").replace("}", "").replace("-", "_")
            od["operationId"] = f"{method}_{rid}"
            od["tags"] = [tag]
        tag_desc[tag] = f"{tag} endpoints"

    return {
        "openapi": "3.0.3",
        "info": {"title": "PO Console API", "version": "0.1.0", "x-roles": [r.value for r in Role]},
        "paths": paths,
        "components": components,
        "security": [{"BearerAuth": []}],
        "tags": [{"name": n, "description": d} for n, d in sorted(tag_desc.items())],
    }
