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
Typed model of the parts of an OpenAPI v2 (Swagger) document that kubeapi uses

The raw JSON from Kubernetes (or from the bundled copy) is converted into these
classes right away by parse_document(); all normalization and registry building
works off of these values rather than the raw nested dicts. The classes are
frozen; anything that changes a document makes a new one with
dataclasses.replace().

Schemas (parameter body schemas, response schemas, definitions) are kept as the
plain dicts found in the document since kubeapi passes them through untouched.
"""
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional, Tuple
from kubeapi.naming import full_swagger_name


http_verbs = ('get', 'put', 'post', 'delete', 'options', 'head', 'patch')


@dataclass(frozen=True)
class Parameter:
    name: str
    location: str
    required: bool = False
    description: str = ''
    type: Optional[str] = None
    schema: Optional[Dict[str, Any]] = None

    def is_body(self) -> bool:
        return self.location == 'body'

    def with_schema(self, schema: Optional[Dict[str, Any]]) -> 'Parameter':
        return replace(self, schema=schema)

    def as_dict(self) -> Dict[str, Any]:
        d = {'name': self.name,
             'in': self.location,
             'required': self.required,
             'description': self.description}
        if self.type is not None:
            d['type'] = self.type
        if self.is_body():
            d['schema'] = self.schema
        return d


@dataclass(frozen=True)
class OpResponse:
    code: str
    description: str = ''
    schema: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class GroupVersionKind:
    group: str
    version: str
    kind: str


@dataclass(frozen=True)
class Operation:
    """
    A single operation from a path item; one HTTP verb on one path template
    """
    operation_id: str
    method: str
    summary: Optional[str] = None
    description: Optional[str] = None
    consumes: Tuple[str, ...] = ()
    produces: Tuple[str, ...] = ()
    parameters: Tuple[Parameter, ...] = ()
    responses: Tuple[OpResponse, ...] = ()
    k8s_action: Optional[str] = None
    gvk: Optional[GroupVersionKind] = None
    schemes: Tuple[str, ...] = ()

    def body_parameter(self) -> Optional[Parameter]:
        for p in self.parameters:
            if p.is_body():
                return p
        return None


@dataclass(frozen=True)
class PathItem:
    """
    All the operations on one path template

    operations maps an operation key to an Operation. For operations read from
    a document the key is the lower case HTTP verb; operations synthesized by
    kubeapi (the patch variants) use their action tag as the key instead, so one
    path item can hold several PATCH operations.
    """
    path: str
    operations: Dict[str, Operation] = field(default_factory=dict)
    parameters: Tuple[Parameter, ...] = ()

    def effective_parameters(self, op: Operation) -> Tuple[Parameter, ...]:
        """
        Returns the path-level parameters merged with an operation's own; an
        operation parameter replaces a path-level one with the same name and
        location
        """
        own = {(p.name, p.location) for p in op.parameters}
        inherited = tuple(p for p in self.parameters
                          if (p.name, p.location) not in own)
        return inherited + op.parameters


@dataclass(frozen=True)
class SchemaDocument:
    paths: Dict[str, PathItem] = field(default_factory=dict)
    definitions: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    info: Dict[str, Any] = field(default_factory=dict)

    def resolve(self, schema: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        """
        Follows a top-level '$ref' into the definitions of this document

        :param schema: a schema dict, possibly just {'$ref': '#/definitions/...'}
        :return: the referenced definition if there is one, otherwise the schema
            as supplied
        """
        if not schema or '$ref' not in schema:
            return schema
        return self.definitions.get(full_swagger_name(schema['$ref']), schema)


def parse_parameter(raw: Dict[str, Any],
                    shared: Optional[Dict[str, Any]] = None) -> Parameter:
    """
    Create a Parameter from its raw form, resolving a '$ref' to the document's
    shared parameters section if needed

    :raises ValueError: if the parameter is a reference that can't be resolved
    """
    if '$ref' in raw:
        ref_name = full_swagger_name(raw['$ref'])
        target = (shared or {}).get(ref_name)
        if target is None:
            raise ValueError(f"Can't resolve parameter reference {raw['$ref']}")
        raw = target
    location = raw.get('in', 'query')
    return Parameter(name=raw['name'],
                     location=location,
                     required=bool(raw.get('required', location == 'path')),
                     description=raw.get('description', ''),
                     type=raw.get('type'),
                     schema=raw.get('schema'))


def parse_operation(verb: str, raw: Dict[str, Any],
                    shared: Optional[Dict[str, Any]] = None) -> Operation:
    gvk = raw.get('x-kubernetes-group-version-kind')
    if gvk is not None:
        gvk = GroupVersionKind(group=gvk.get('group', ''),
                               version=gvk.get('version', ''),
                               kind=gvk['kind'])
    responses = tuple(OpResponse(code=str(code),
                                 description=details.get('description', ''),
                                 schema=details.get('schema'))
                      for code, details in (raw.get('responses') or {}).items())
    return Operation(operation_id=raw.get('operationId', ''),
                     method=verb.upper(),
                     summary=raw.get('summary'),
                     description=raw.get('description'),
                     consumes=tuple(raw.get('consumes') or ()),
                     produces=tuple(raw.get('produces') or ()),
                     parameters=tuple(parse_parameter(p, shared)
                                      for p in raw.get('parameters') or ()),
                     responses=responses,
                     k8s_action=raw.get('x-kubernetes-action'),
                     gvk=gvk,
                     schemes=tuple(raw.get('schemes') or ()))


def parse_path_item(path: str, raw: Dict[str, Any],
                    shared: Optional[Dict[str, Any]] = None) -> PathItem:
    operations = {}
    for key, details in raw.items():
        # skips 'parameters' as well as any vendor extensions
        if key.lower() not in http_verbs:
            continue
        operations[key.lower()] = parse_operation(key, details, shared)
    parameters = tuple(parse_parameter(p, shared)
                       for p in raw.get('parameters') or ())
    return PathItem(path=path, operations=operations, parameters=parameters)


def parse_document(raw: Dict[str, Any]) -> SchemaDocument:
    """
    Convert a decoded OpenAPI v2 document into a SchemaDocument

    :param raw: dict; the JSON-decoded document as served from /openapi/v2
    :return: a new SchemaDocument. Path order is preserved.
    :raises TypeError: if raw isn't a dict
    """
    if not isinstance(raw, dict):
        raise TypeError(f"Expected the OpenAPI document as a dict, got a "
                        f"{type(raw).__name__}")
    shared = raw.get('parameters') or {}
    paths = {path: parse_path_item(path, item, shared)
             for path, item in (raw.get('paths') or {}).items()}
    return SchemaDocument(paths=paths,
                          definitions=dict(raw.get('definitions') or {}),
                          info=dict(raw.get('info') or {}))
