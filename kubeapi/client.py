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
The kubeapi client and its public operations

connect() builds a Client: it fetches (or falls back to the bundled) OpenAPI
document, normalizes it, builds the action registry and assembles the
interceptor chain. Clients are immutable; extend() returns a new one.

Typical use::

    from kubeapi import connect, invoke

    client = connect("https://10.0.0.1:6443", token="...", ca_cert="/path/ca.crt")
    pod = invoke(client, "Pod", "get", {"namespace": "default", "name": "web-0"})

Request parameters are given in a dict keyed by the names Kubernetes declares
them with (fieldManager) or by their snake_case equivalents (field_manager).
"""
import logging
from typing import Any, Dict, List, Optional, Tuple, Union
from kubeapi.actions import Action, ActionRegistry, ActionVerb
from kubeapi.auth import AuthInterceptor
from kubeapi.config import ClientConfig
from kubeapi.crd import extend_client
from kubeapi.errors import ActionNotFoundError
from kubeapi.interceptors import (InterceptorChain, Request, ResponseInterceptor,
                                  EncodeInterceptor, DecodeInterceptor,
                                  TransportInterceptor)
from kubeapi.normalize import normalize
from kubeapi.schema import SchemaDocument
from kubeapi.swagger import fetch_errors, load_schema


default_logger_name = "kubeapi.client"


# actions used to discover which API versions a cluster serves
discovery_actions = {"/apis": "GetAPIVersions",
                     "/api": "GetCoreAPIVersions"}


def build_chain(config: ClientConfig) -> InterceptorChain:
    """
    Assemble the interceptor chain for a client configuration
    """
    stages = [ResponseInterceptor(),
              AuthInterceptor(config.auth)]
    stages.extend(config.interceptors)
    stages.extend([EncodeInterceptor(), DecodeInterceptor()])
    transport = config.transport if config.transport is not None else TransportInterceptor()
    return InterceptorChain(stages, transport)


def make_request(host: str, action: Action, params: Optional[Dict[str, Any]] = None) -> Request:
    return Request(method=action.method, host=host, path=action.path,
                   action=action, params=dict(params or {}))


class Client(object):
    """
    A connection to one Kubernetes cluster

    :ivar host: str; base URL of the API server
    :ivar registry: ActionRegistry of everything that can be invoked
    :ivar chain: InterceptorChain requests are sent through
    :ivar document: the normalized SchemaDocument the registry was built from
    :ivar api_versions: dict with the responses from /api and /apis, keyed by
        those paths; empty if discovery was disabled or the cluster couldn't
        be reached
    :ivar config: the ClientConfig the client was made from
    """
    def __init__(self, host: str, registry: ActionRegistry, chain: InterceptorChain,
                 document: SchemaDocument, api_versions: Optional[Dict[str, Any]] = None,
                 config: Optional[ClientConfig] = None,
                 logger: Optional[logging.Logger] = None):
        self.host = host
        self.registry = registry
        self.chain = chain
        self.document = document
        self.api_versions = dict(api_versions or {})
        self.config = config
        self.logger = logger or logging.getLogger(default_logger_name)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.host} actions={len(self.registry)}>"

    def extended(self, registry: ActionRegistry, document: SchemaDocument) -> 'Client':
        """
        Returns a copy of this client with a different registry and document
        """
        return self.__class__(self.host, registry, self.chain, document,
                              api_versions=self.api_versions, config=self.config,
                              logger=self.logger)

    def find_action(self, kind: str, action: Union[ActionVerb, str],
                    version: Optional[str] = None) -> Action:
        """
        Resolve a kind and action to exactly one Action

        :raises ActionNotFoundError: if nothing matches
        """
        search = {"kind": kind,
                  "action": action.value if isinstance(action, ActionVerb) else action,
                  "version": version}
        try:
            verb = ActionVerb.coerce(action)
        except ValueError:
            raise ActionNotFoundError(search)
        found = self.registry.find(kind, verb, version)
        if found is None:
            raise ActionNotFoundError(search)
        return found

    def invoke_action(self, action: Action, params: Optional[Dict[str, Any]] = None) -> Any:
        self.logger.debug("Invoking %s", action.identifier)
        response = self.chain.execute(make_request(self.host, action, params))
        return response.body

    def invoke(self, kind: str, action: Union[ActionVerb, str],
               request: Optional[Dict[str, Any]] = None,
               version: Optional[str] = None) -> Any:
        return self.invoke_action(self.find_action(kind, action, version), request)

    def request(self, kind: str, action: Union[ActionVerb, str],
                request: Optional[Dict[str, Any]] = None,
                version: Optional[str] = None) -> Request:
        found = self.find_action(kind, action, version)
        return self.chain.prepare(make_request(self.host, found, request))

    def explore(self, kind: Optional[str] = None) -> List[Tuple[str, List[Tuple[str, str]]]]:
        return [(k, [(verb.value, summary) for verb, summary in entries])
                for k, entries in self.registry.directory(kind)]

    def info(self, kind: str, action: Union[ActionVerb, str],
             version: Optional[str] = None) -> Dict[str, Any]:
        found = self.find_action(kind, action, version)
        parameters = []
        for param in found.parameters:
            d = param.as_dict()
            if param.is_body():
                d["schema"] = self.document.resolve(param.schema)
            parameters.append(d)
        responses = {r.code: {"description": r.description,
                              "schema": self.document.resolve(r.schema)}
                     for r in found.operation.responses}
        return {"id": found.identifier,
                "kind": found.kind,
                "action": found.verb.value,
                "group": found.group,
                "version": found.version,
                "method": found.method,
                "path": found.path,
                "summary": found.summary,
                "description": found.operation.description or "",
                "consumes": list(found.consumes),
                "produces": list(found.produces),
                "parameters": parameters,
                "responses": responses}

    def extend(self, api: str, version: str) -> 'Client':
        return extend_client(self, api, version)


def discover_versions(chain: InterceptorChain, host: str, registry: ActionRegistry,
                      log: Optional[logging.Logger] = None) -> Dict[str, Any]:
    """
    Ask the cluster which API versions it serves under /apis and /api

    A lookup that fails is logged and left out of the result, so a cluster
    that can't be reached gives an empty dict rather than an error.
    """
    log = log or logging.getLogger(default_logger_name)
    versions = {}
    for path, identifier in discovery_actions.items():
        action = registry.get(identifier)
        if action is None:
            continue
        try:
            versions[path] = chain.execute(make_request(host, action)).body
        except fetch_errors as e:
            log.warning("Couldn't discover the API versions under %s: %s", path, e)
    return versions


def connect(host: str, **options) -> Client:
    """
    Create a Client for a Kubernetes cluster

    :param host: str; base URL of the API server, e.g. https://10.0.0.1:6443
    :param options: keyword options:

        - token: str; bearer token
        - token_fn: callable returning a bearer token; called for every request
        - basic_auth: dict with 'username' and 'password'
        - client_cert, client_key: str; paths to a client certificate and its key
        - client_certificate_data, client_key_data: str; the same as base64 PEM
        - ca_cert: str; path to the CA certificate for the server
        - certificate_authority_data: str; the same as base64 PEM
        - insecure: bool; if True the server's certificate isn't checked
        - interceptors: list of extra interceptors, run after authentication
        - apis: list of API groups to build actions for; defaults to the
          built-in Kubernetes groups
        - openapi: dict; {'discovery': 'disabled'} uses the bundled schema
          without contacting the cluster
        - transport: an interceptor to use in place of the HTTP transport
        - logger: logging.Logger to use instead of the 'kubeapi.client' logger

    :return: a new Client
    :raises TypeError: for unknown options or options of the wrong type
    :raises ValueError: for options with unusable values
    """
    config = ClientConfig.from_options(host, **options)
    log = config.logger or logging.getLogger(default_logger_name)
    chain = build_chain(config)
    raw, source = load_schema(chain, config.host, config.discovery, log)
    document = normalize(raw, config.apis)
    registry = ActionRegistry.build(document)
    log.info("Built %d actions for %s from the %s schema", len(registry),
             config.host, source)
    api_versions = {}
    if config.discovery:
        api_versions = discover_versions(chain, config.host, registry, log)
    return Client(config.host, registry, chain, document, api_versions=api_versions,
                  config=config, logger=log)


def invoke(client: Client, kind: str, action: Union[ActionVerb, str],
           request: Optional[Dict[str, Any]] = None,
           version: Optional[str] = None) -> Any:
    """
    Perform an action on a kind

    :param client: Client to use
    :param kind: str; the kind to act on, e.g. 'Deployment' or 'Pod/status'
    :param action: ActionVerb or str such as 'get', 'list', 'patch/json'
    :param request: optional dict of parameter values
    :param version: optional str; if supplied, the action for exactly this API
        version is used instead of the preferred one
    :return: the decoded response body
    :raises ActionNotFoundError: if there's no such action
    :raises ValueError: if a required parameter is missing
    :raises RequestError: if Kubernetes answers with an error status
    """
    return client.invoke(kind, action, request, version)


def request(client: Client, kind: str, action: Union[ActionVerb, str],
            request: Optional[Dict[str, Any]] = None,
            version: Optional[str] = None) -> Request:
    """
    Returns the Request that invoke() would send, without sending it

    The Request has been through every interceptor except the transport, so it
    carries the method, URL, query, headers and body that would go out.
    """
    return client.request(kind, action, request, version)


def explore(client: Client, kind: Optional[str] = None) -> List[Tuple[str, List[Tuple[str, str]]]]:
    """
    List the kinds a client can act on and the actions for each

    :param client: Client to explore
    :param kind: optional str; only list this kind
    :return: list of (kind, [(action, summary), ...]) sorted by kind
    """
    return client.explore(kind)


def info(client: Client, kind: str, action: Union[ActionVerb, str],
         version: Optional[str] = None) -> Dict[str, Any]:
    """
    Describe an action: its route, parameters and responses

    :return: dict with the keys id, kind, action, group, version, method, path,
        summary, description, consumes, produces, parameters and responses.
        Body and response schemas that refer to a definition are resolved.
    :raises ActionNotFoundError: if there's no such action
    """
    return client.info(kind, action, version)


def extend(client: Client, api: str, version: str) -> Client:
    """
    Returns a new Client that can also act on the resources of an API group version

    This is how actions are made available for custom resources; the
    resources the cluster serves for the group version are looked up and
    actions are built for any that the client doesn't already have.

    :param client: Client to extend; it isn't changed
    :param api: str; API group, e.g. 'tekton.dev'
    :param version: str; version of the group, e.g. 'v1alpha1'
    :return: a new Client
    """
    return client.extend(api, version)
