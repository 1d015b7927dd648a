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
Runtime extension of a client with the resources of further API groups

Custom resources don't appear in the OpenAPI document Kubernetes serves for
its built-in groups, so a client doesn't start out with actions for them.
extend_client() asks the cluster what resources a group version serves, and for
each one the client can't act on yet it makes the same set of operations
Kubernetes serves for built-in resources:

- on the collection path: create, list and deletecollection
- on the item path: get, update, delete and the patch variants

The paths follow the usual layout::

    /apis/<group>/<version>[/namespaces/{namespace}]/<plural>[/{name}]

Body schemas are taken from the group version's CustomResourceDefinition when
the client can list CRDs; otherwise bodies are described as plain objects.
"""
import logging
from typing import Any, Dict, List, Optional, Tuple
from kubeapi.actions import make_actions
from kubeapi.errors import ActionNotFoundError
from kubeapi.naming import group_to_pascal
from kubeapi.normalize import add_patch_routes, add_routes
from kubeapi.schema import (SchemaDocument, PathItem, Operation, Parameter,
                            OpResponse, GroupVersionKind)


logger = logging.getLogger("kubeapi.crd")


resources_action_id = "GetArbitraryAPIResources"
list_crds_action_id = "ListApiextensionsV1CustomResourceDefinition"

_consumes = ("application/json", "application/yaml")
_produces = ("application/json", "application/yaml")
_patch_consumes = ("application/json-patch+json", "application/merge-patch+json",
                   "application/strategic-merge-patch+json",
                   "application/apply-patch+yaml")
_object_schema = {"type": "object"}


def definition_name(group: str, version: str, kind: str) -> str:
    """
    Name a custom resource's schema the way Kubernetes names its own definitions

    ('tekton.dev', 'v1alpha1', 'Task') -> 'dev.tekton.v1alpha1.Task'
    """
    reversed_group = ".".join(reversed(group.split(".")))
    return f"{reversed_group}.{version}.{kind}"


def crd_schemas(crds: List[Dict[str, Any]], group: str, version: str) -> Dict[str, dict]:
    """
    Pull the openAPIV3Schema for a group version out of a list of CRDs

    :param crds: list of CustomResourceDefinition dicts
    :return: dict of kind -> schema, only for CRDs that have one for the version
    """
    schemas = {}
    for crd in crds:
        spec = crd.get("spec") or {}
        if spec.get("group") != group:
            continue
        kind = (spec.get("names") or {}).get("kind")
        for crd_version in spec.get("versions") or []:
            if crd_version.get("name") != version:
                continue
            schema = (crd_version.get("schema") or {}).get("openAPIV3Schema")
            if kind and schema:
                schemas[kind] = schema
    return schemas


def _body_param(schema: dict, required: bool = True) -> Parameter:
    return Parameter(name="body", location="body", required=required, schema=schema)


_pretty = Parameter(name="pretty", location="query", type="string",
                    description="If 'true', then the output is pretty printed.")
_dry_run = Parameter(name="dryRun", location="query", type="string",
                     description="When present, indicates that modifications "
                                 "should not be persisted.")
_field_manager = Parameter(name="fieldManager", location="query", type="string",
                           description="a name associated with the actor or entity "
                                       "that is making these changes")
_force = Parameter(name="force", location="query", type="boolean",
                   description="Force is going to \"force\" Apply requests.")
_list_params = (
    Parameter(name="labelSelector", location="query", type="string",
              description="A selector to restrict the list of returned objects "
                          "by their labels."),
    Parameter(name="fieldSelector", location="query", type="string",
              description="A selector to restrict the list of returned objects "
                          "by their fields."),
    Parameter(name="limit", location="query", type="integer",
              description="limit is a maximum number of responses to return for "
                          "a list call."),
    Parameter(name="continue", location="query", type="string",
              description="The continue option should be set when retrieving "
                          "more results from the server."),
)


def _responses(schema: dict, *codes: str) -> Tuple[OpResponse, ...]:
    return (tuple(OpResponse(code=code, description="OK" if code == "200" else "Created",
                             schema=schema) for code in codes) +
            (OpResponse(code="401", description="Unauthorized"),))


def resource_path_items(group: str, version: str, resource: Dict[str, Any],
                        schema: Optional[dict] = None) -> List[PathItem]:
    """
    Make the collection and item path items for one resource from an APIResourceList

    :param group: str; API group
    :param version: str; API version
    :param resource: dict; an entry from APIResourceList.resources
    :param schema: optional body schema for the resource; usually a $ref
    :return: list of two PathItems: the collection and the item path
    """
    kind = resource["kind"]
    plural = resource["name"]
    namespaced = bool(resource.get("namespaced", False))
    gvk = GroupVersionKind(group=group, version=version, kind=kind)
    body_schema = schema or _object_schema
    list_schema = {"type": "object",
                   "properties": {"items": {"type": "array", "items": body_schema}}}

    base = f"/apis/{group}/{version}"
    scope = "Namespaced" if namespaced else ""
    path_params: Tuple[Parameter, ...] = ()
    if namespaced:
        base = f"{base}/namespaces/{{namespace}}"
        path_params = (Parameter(name="namespace", location="path", required=True,
                                 type="string",
                                 description="object name and auth scope, such as "
                                             "for teams and projects"),)
    id_tail = f"{group_to_pascal(group)}{version.capitalize()}{scope}{kind}"
    where = " in a namespace" if namespaced else ""

    def op(verb: str, method: str, action: str, summary: str,
           params: Tuple[Parameter, ...], responses: Tuple[OpResponse, ...],
           consumes: Tuple[str, ...] = _consumes) -> Operation:
        return Operation(operation_id=f"{verb}{id_tail}",
                         method=method,
                         summary=summary,
                         description=summary,
                         consumes=consumes,
                         produces=_produces,
                         parameters=params,
                         responses=responses,
                         k8s_action=action,
                         gvk=gvk,
                         schemes=("https",))

    collection = PathItem(
        path=f"{base}/{plural}",
        operations={
            "post": op("create", "POST", "create", f"create a {kind}{where}",
                       (_body_param(body_schema), _dry_run, _field_manager),
                       _responses(body_schema, "200", "201")),
            "get": op("list", "GET", "list", f"list or watch objects of kind {kind}",
                      _list_params, _responses(list_schema, "200")),
            "delete": op("deleteCollection", "DELETE", "deletecollection",
                         f"delete collection of {kind}",
                         _list_params + (_dry_run,), _responses(_object_schema, "200")),
        },
        parameters=path_params + (_pretty,))

    name_param = Parameter(name="name", location="path", required=True, type="string",
                           description=f"name of the {kind}")
    item = PathItem(
        path=f"{base}/{plural}/{{name}}",
        operations={
            "get": op("read", "GET", "get", f"read the specified {kind}",
                      (), _responses(body_schema, "200")),
            "put": op("replace", "PUT", "update", f"replace the specified {kind}",
                      (_body_param(body_schema), _dry_run, _field_manager),
                      _responses(body_schema, "200", "201")),
            "delete": op("delete", "DELETE", "delete", f"delete a {kind}",
                         (_dry_run,), _responses(_object_schema, "200")),
            "patch": op("patch", "PATCH", "patch", f"partially update the specified {kind}",
                        (_body_param(_object_schema), _dry_run, _field_manager, _force),
                        _responses(body_schema, "200", "201"),
                        consumes=_patch_consumes),
        },
        parameters=(name_param,) + path_params + (_pretty,))
    return [collection, item]


def crd_document(group: str, version: str, resources: List[Dict[str, Any]],
                 schemas: Optional[Dict[str, dict]] = None) -> SchemaDocument:
    """
    Build a normalized document fragment for resources of one group version

    :param group: str; API group
    :param version: str; API version
    :param resources: list of APIResourceList resource entries to build paths for;
        subresource entries (names with a '/') are skipped
    :param schemas: optional dict of kind -> openAPIV3Schema
    :return: SchemaDocument holding just the new paths and definitions, with
        patch operations already expanded
    """
    schemas = schemas or {}
    paths: Dict[str, PathItem] = {}
    definitions: Dict[str, dict] = {}
    for resource in resources:
        if "/" in resource.get("name", "/"):
            continue
        kind = resource["kind"]
        ref = None
        if kind in schemas:
            def_name = definition_name(group, version, kind)
            definitions[def_name] = schemas[kind]
            ref = {"$ref": f"#/definitions/{def_name}"}
        for item in resource_path_items(group, version, resource, ref):
            paths[item.path] = item
    return add_patch_routes(SchemaDocument(paths=paths, definitions=definitions))


def extend_client(client, api: str, version: str):
    """
    Returns a new client that also has actions for the resources of api/version

    :param client: the Client to extend; it isn't modified
    :param api: str; API group, e.g. 'tekton.dev'
    :param version: str; version of the group, e.g. 'v1alpha1'
    :return: a new Client whose registry holds everything the old one did plus
        actions for each resource that wasn't already there
    :raises ActionNotFoundError: if the client can't list a group's resources
    :raises RequestError: if Kubernetes answers a lookup with an error status
    """
    log = client.logger
    resources_action = client.registry.get(resources_action_id)
    if resources_action is None:
        raise ActionNotFoundError({"id": resources_action_id})
    resource_list = client.invoke_action(resources_action,
                                         {"api": api, "version": version}) or {}

    schemas = {}
    list_crds = client.registry.get(list_crds_action_id)
    if list_crds is None:
        log.debug("%s isn't available; custom resource schemas won't be used",
                  list_crds_action_id)
    else:
        crd_list = client.invoke_action(list_crds) or {}
        schemas = crd_schemas(crd_list.get("items") or [], api, version)

    existing = {(action.group, action.version, action.kind)
                for action in client.registry}
    new_resources = [res for res in resource_list.get("resources") or []
                     if "/" not in res.get("name", "/") and
                     (api, version, res.get("kind")) not in existing]
    fragment = crd_document(api, version, new_resources, schemas)
    new_actions = make_actions(fragment)
    log.info("Extending client with %d actions for %d resources of %s/%s",
             len(new_actions), len(new_resources), api, version)
    registry = client.registry.extended(new_actions)
    document = add_routes(client.document, list(fragment.paths.values()),
                          fragment.definitions)
    return client.extended(registry, document)
