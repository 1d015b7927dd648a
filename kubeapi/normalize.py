#
# Copyright (c) 2021 Incisive Technology Ltd
#
# Permission is hereby granted, free of charge, to any person obtaining a copy
# of this software and associated documentation files (the "Software"), to deal
# in the Software without restriction, including without limitation the rights
# to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
# copies of the Software, and to permit persons to whom the Software is
# furnished to do so, subject to the following conditions:
#
# The above copyright notice and this permission notice shall be included in all
# copies or substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
# IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
# FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
# AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
# LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
# OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
# SOFTWARE.
"""
This module repairs the Kubernetes OpenAPI document before any actions are made from it

The swagger that Kubernetes serves is not entirely consistent with itself or with
what its own API server does. Each function here takes care of one of those
problems, and normalize() runs all of them in the order they need to happen:

1. only the paths for the requested API groups are kept
2. operations with a description but no summary get the description as summary
3. a route for listing the resources of an arbitrary group/version is added
4. x-kubernetes-action values are mapped onto the verbs they actually mean
5. consumes of */* is replaced with application/json
6. watch endpoints are removed
7. each PATCH operation is replaced by one operation per patch strategy

Filtering must come before the route is added (the added route isn't subject
to filtering) and before patches are expanded (only kept paths are expanded).
Every function is pure and returns a new SchemaDocument.
"""
from dataclasses import replace
from typing import Any, Dict, List, Optional, Sequence, Union
from kubeapi.naming import default_api_groups, core_group
from kubeapi.schema import (SchemaDocument, PathItem, Operation, Parameter,
                            OpResponse, parse_document)


root_paths = ("/api/", "/apis/")


def _selector_prefixes(selector: str) -> List[str]:
    prefixes = [f"/apis/{selector}", f"/api/{selector}", f"/{selector}", selector]
    if selector == core_group:
        # the legacy group has no name in its paths
        prefixes.append("/api/v")
    return prefixes


def matches_selector(path: str, selector: str) -> bool:
    """
    Returns True if the path belongs to the API group (or path prefix) named by selector

    A selector matches when the path starts with /apis/<selector>,
    /api/<selector>, /<selector>, or with the selector itself. The selector may
    carry a version ('apps/v1') to narrow things down further.
    """
    return any(path.startswith(p) for p in _selector_prefixes(selector))


def filter_paths(doc: SchemaDocument,
                 apis: Optional[Sequence[str]] = None) -> SchemaDocument:
    """
    Keep only the root listing paths and the paths that match one of the selectors

    The resulting paths are ordered with the root paths first, followed by the
    paths for each selector in the order the selectors are given. This order is
    the discovery order that later decides ties between actions.

    :param doc: SchemaDocument to filter
    :param apis: optional sequence of API group selectors; if None then the
        default Kubernetes API groups are used
    :return: new SchemaDocument with only the selected paths
    """
    if apis is None:
        apis = default_api_groups
    kept: Dict[str, PathItem] = {}
    for root in root_paths:
        if root in doc.paths:
            kept[root] = doc.paths[root]
    for selector in apis:
        for path, item in doc.paths.items():
            if path not in kept and matches_selector(path, selector):
                kept[path] = item
    return replace(doc, paths=kept)


def _map_operations(doc: SchemaDocument, op_fn) -> SchemaDocument:
    paths = {}
    for path, item in doc.paths.items():
        ops = {key: op_fn(op) for key, op in item.operations.items()}
        paths[path] = replace(item, operations=ops)
    return replace(doc, paths=paths)


def add_summaries(doc: SchemaDocument) -> SchemaDocument:
    def backfill(op: Operation) -> Operation:
        if not op.summary and op.description:
            return replace(op, summary=op.description)
        return op
    return _map_operations(doc, backfill)


arbitrary_api_resources_route = PathItem(
    path="/apis/{api}/{version}/",
    operations={
        'get': Operation(
            operation_id="getArbitraryAPIResources",
            method="GET",
            summary="get available resources for arbitrary api",
            description="get available resources for arbitrary api",
            consumes=("application/json",
                      "application/yaml",
                      "application/vnd.kubernetes.protobuf"),
            produces=("application/json",
                      "application/yaml",
                      "application/vnd.kubernetes.protobuf"),
            responses=(OpResponse(code="200", description="OK",
                                  schema={"$ref": "#/definitions/io.k8s.apimachinery."
                                                  "pkg.apis.meta.v1.APIResourceList"}),
                       OpResponse(code="401", description="Unauthorized")),
            schemes=("https",))},
    parameters=(Parameter(name="api", location="path", required=True,
                          type="string", description="name of the API group"),
                Parameter(name="version", location="path", required=True,
                          type="string", description="version of the API group")))


def add_routes(doc: SchemaDocument, routes: Sequence[PathItem],
               definitions: Optional[Dict[str, Any]] = None) -> SchemaDocument:
    """
    Returns a document with extra path items (and definitions) merged in

    Routes replace any existing path item with the same path.
    """
    paths = dict(doc.paths)
    for route in routes:
        paths[route.path] = route
    new_defs = dict(doc.definitions)
    new_defs.update(definitions or {})
    return replace(doc, paths=paths, definitions=new_defs)


# x-kubernetes-action values that don't say what they mean; see
# https://kubernetes.io/docs/reference/access-authn-authz/authorization/#determine-the-request-verb
k8s_action_fixes = {"post": "create",
                    "put": "update",
                    "watchlist": "watch"}


def fix_k8s_actions(doc: SchemaDocument) -> SchemaDocument:
    def fix(op: Operation) -> Operation:
        if op.k8s_action in k8s_action_fixes:
            return replace(op, k8s_action=k8s_action_fixes[op.k8s_action])
        return op
    return _map_operations(doc, fix)


def fix_consumes(doc: SchemaDocument) -> SchemaDocument:
    # with */* there's no way to pick an encoder for the body
    def fix(op: Operation) -> Operation:
        if op.consumes == ("*/*",):
            return replace(op, consumes=("application/json",))
        return op
    return _map_operations(doc, fix)


def remove_watch_endpoints(doc: SchemaDocument) -> SchemaDocument:
    """
    Drops every path containing '/watch'

    Watch endpoints are long-lived streams which don't fit one request/one
    response; see https://github.com/kubernetes/kubernetes/issues/50857
    """
    paths = {path: item for path, item in doc.paths.items()
             if "/watch" not in path}
    return replace(doc, paths=paths)


rfc6902_json_schema = {
    "type": "array",
    "items": {"type": "object",
              "required": ["op", "path", "value"],
              "properties": {"op": {"type": "string",
                                    "enum": ["add", "remove", "replace",
                                             "move", "test"]},
                             "path": {"type": "string"},
                             "value": {}}}}


class PatchVariant(object):
    """
    One of the ways Kubernetes can apply a partial update
    """
    def __init__(self, action: str, content_type: str, suffix: str,
                 summary: str, fixed_schema: Optional[dict] = None):
        self.action = action
        self.content_type = content_type
        self.suffix = suffix
        self.summary = summary
        self.fixed_schema = fixed_schema

    def body_schema(self, update_schema: Optional[dict]) -> Optional[dict]:
        return self.fixed_schema if self.fixed_schema is not None else update_schema

    def make_operation(self, op: Operation, update_schema: Optional[dict]) -> Operation:
        schema = self.body_schema(update_schema)
        params = tuple(p.with_schema(schema) if p.name == "body" else p
                       for p in op.parameters)
        kind = op.gvk.kind if op.gvk else ""
        return replace(op,
                       operation_id=f"{op.operation_id}{self.suffix}",
                       consumes=(self.content_type,),
                       summary=self.summary % kind,
                       parameters=params,
                       k8s_action=self.action)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.action} {self.content_type}>"


patch_variants = (
    PatchVariant("patch/json", "application/json-patch+json", "JsonPatch",
                 "update the specified %s using RFC6902",
                 fixed_schema=rfc6902_json_schema),
    PatchVariant("patch/strategic", "application/strategic-merge-patch+json",
                 "StrategicMerge", "update the specified %s using a smart strategy"),
    PatchVariant("patch/json-merge", "application/merge-patch+json", "JsonMerge",
                 "update the specified %s using RFC7286"),
    PatchVariant("apply/server", "application/apply-patch+yaml", "ApplyServerSide",
                 "create or update the specified %s using server side apply"),
)


def find_update_body_schema(item: PathItem) -> Optional[dict]:
    """
    Returns the body schema of the PUT/POST operation on the same path tagged 'update'
    """
    for verb in ("put", "post"):
        op = item.operations.get(verb)
        if op is None or op.k8s_action != "update":
            continue
        body = op.body_parameter()
        if body is not None:
            return body.schema
    return None


def add_patch_routes(doc: SchemaDocument) -> SchemaDocument:
    paths = {}
    for path, item in doc.paths.items():
        if "patch" not in item.operations:
            paths[path] = item
            continue
        update_schema = find_update_body_schema(item)
        ops = {}
        for key, op in item.operations.items():
            if key != "patch":
                ops[key] = op
                continue
            for variant in patch_variants:
                ops[variant.action] = variant.make_operation(op, update_schema)
        paths[path] = replace(item, operations=ops)
    return replace(doc, paths=paths)


def normalize(raw: Union[SchemaDocument, Dict[str, Any]],
              apis: Optional[Sequence[str]] = None) -> SchemaDocument:
    """
    Run the whole repair pipeline over a Kubernetes OpenAPI document

    :param raw: either the decoded JSON document or an already parsed
        SchemaDocument
    :param apis: optional sequence of API group selectors to keep; defaults to
        the built-in Kubernetes API groups
    :return: a new, normalized SchemaDocument
    """
    doc = raw if isinstance(raw, SchemaDocument) else parse_document(raw)
    doc = filter_paths(doc, apis)
    doc = add_summaries(doc)
    doc = add_routes(doc, [arbitrary_api_resources_route])
    doc = fix_k8s_actions(doc)
    doc = fix_consumes(doc)
    doc = remove_watch_endpoints(doc)
    doc = add_patch_routes(doc)
    return doc
