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
The interceptor chain every call to Kubernetes passes through

An interceptor is any object with two methods:

- handle_request(request) returns either a (possibly new) Request, which is
  handed to the next interceptor, or a Response, which ends the request phase
- handle_response(response) returns a (possibly new) Response, or raises

InterceptorChain.execute() calls handle_request() on each interceptor in order
until one of them returns a Response (normally the last one, the transport),
then calls handle_response() on the interceptors that ran, in reverse order.

A client's chain is laid out like this::

    ResponseInterceptor    raises RequestError for status >= 400
    AuthInterceptor        credentials and TLS settings
    <caller's interceptors>
    EncodeInterceptor      turns an action plus parameters into method, URL,
                           query, headers and body
    DecodeInterceptor      decodes JSON/YAML response bodies
    TransportInterceptor   sends the request with the kubernetes REST client

so caller supplied interceptors see requests before they are encoded and
responses after they are decoded, and errors are only raised once everything
else has seen the response.
"""
import json
import logging
import threading
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union
from urllib.parse import quote, urlencode
from kubernetes.client.configuration import Configuration
from kubernetes.client.rest import RESTClientObject
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError
from kubeapi.actions import Action
from kubeapi.errors import KubeApiError, RequestError
from kubeapi.naming import camel_to_pep8, path_parameter_names


logger = logging.getLogger("kubeapi.interceptors")


@dataclass(frozen=True)
class TlsSettings:
    """
    How the server's certificate is checked and which client certificate is presented
    """
    verify: bool = True
    ca_cert: Optional[str] = None
    cert_file: Optional[str] = None
    key_file: Optional[str] = None


@dataclass
class Request:
    """
    An outbound call to Kubernetes as it moves through the interceptor chain

    :ivar method: str; HTTP method
    :ivar host: str; base URL of the API server
    :ivar path: str; the path; a template until EncodeInterceptor fills it in
    :ivar action: the Action being invoked, or None for plain requests such as
        fetching the OpenAPI document
    :ivar params: dict of the parameter values the caller supplied
    :ivar query: list of (name, value) query parameters
    :ivar headers: dict of HTTP headers
    :ivar body: the body to send; a Python object for JSON content types
    :ivar tls: TlsSettings for the connection
    """
    method: str
    host: str
    path: str
    action: Optional[Action] = None
    params: Dict[str, Any] = field(default_factory=dict)
    query: List[Tuple[str, str]] = field(default_factory=list)
    headers: Dict[str, str] = field(default_factory=dict)
    body: Any = None
    tls: TlsSettings = field(default_factory=TlsSettings)

    @property
    def url(self) -> str:
        url = f"{self.host}{self.path}"
        if self.query:
            url = f"{url}?{urlencode(self.query)}"
        return url

    def description(self) -> Dict[str, Any]:
        return {"method": self.method,
                "path": self.path,
                "url": self.url,
                "params": dict(self.params)}

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.method} {self.url}>"


@dataclass
class Response:
    """
    :ivar status: int; HTTP status code
    :ivar headers: dict of response headers
    :ivar body: the body; bytes or str off the wire, decoded once it has been
        through DecodeInterceptor
    :ivar request: the Request this is the response to
    """
    status: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: Any = None
    request: Optional[Request] = None

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        lname = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lname:
                return value
        return default

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.status}>"


class Interceptor(object):
    """
    Base class for interceptors; both methods pass their argument through unchanged

    Subclassing this isn't required, any object with the two methods will do.
    """
    def handle_request(self, request: Request) -> Union[Request, Response]:
        return request

    def handle_response(self, response: Response) -> Response:
        return response


class InterceptorChain(object):
    """
    An ordered list of interceptors ending with the one that performs the transport
    """
    def __init__(self, stages: Sequence[Any], transport: Any):
        self.stages: Tuple[Any, ...] = tuple(stages)
        self.transport = transport

    @property
    def interceptors(self) -> Tuple[Any, ...]:
        return self.stages + (self.transport,)

    def execute(self, request: Request) -> Response:
        """
        Send a request through the whole chain

        :param request: Request to send
        :return: the Response as left by the first interceptor's handle_response()
        :raises KubeApiError: if no interceptor produced a response
        """
        executed = []
        response = None
        for icpt in self.interceptors:
            executed.append(icpt)
            result = icpt.handle_request(request)
            if isinstance(result, Response):
                response = result
                break
            request = result
        if response is None:
            raise KubeApiError(f"No interceptor produced a response for {request!r}")
        for icpt in reversed(executed):
            response = icpt.handle_response(response)
        return response

    def prepare(self, request: Request) -> Request:
        """
        Run the request phase of every stage except the transport

        Nothing is sent; the request is returned as it would have been handed
        to the transport. If a stage answers with a Response itself, the
        request as it stood at that point is returned.
        """
        for icpt in self.stages:
            result = icpt.handle_request(request)
            if isinstance(result, Response):
                break
            request = result
        return request


class ResponseInterceptor(Interceptor):
    """
    Turns error statuses into RequestError exceptions
    """
    def handle_response(self, response: Response) -> Response:
        if response.status >= 400:
            req = response.request
            raise RequestError(response.status, response.body,
                               req.description() if req is not None else {})
        return response


def lookup_param(params: Dict[str, Any], name: str) -> Tuple[bool, Any]:
    """
    Find the value supplied for a declared parameter

    Values may be supplied under the name the parameter is declared with
    (fieldManager) or its snake_case form (field_manager).

    :return: tuple of (found, value)
    """
    if name in params:
        return True, params[name]
    pep8_name = camel_to_pep8(name)
    if pep8_name in params:
        return True, params[pep8_name]
    return False, None


def _query_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _query_items(name: str, value: Any) -> List[Tuple[str, str]]:
    if isinstance(value, (list, tuple)):
        return [(name, _query_value(v)) for v in value]
    return [(name, _query_value(value))]


def choose_accept(produces: Sequence[str]) -> str:
    if not produces or "application/json" in produces:
        return "application/json"
    return produces[0]


_yaml_content_types = ("application/yaml", "application/apply-patch+yaml")


class EncodeInterceptor(Interceptor):
    """
    Shapes a request for an action into what goes over the wire

    Path parameters are filled into the path template, query and header
    parameters are collected, and the body parameter becomes the body. The
    Content-Type is the first type the action consumes. String bodies for
    YAML content types are parsed so the transport can serialize them like
    any other body.

    Parameters the action doesn't declare are ignored.
    """
    def __init__(self):
        self.yaml = YAML(typ="safe")

    def handle_request(self, request: Request) -> Request:
        action = request.action
        if action is None:
            return request
        path = action.path
        query = list(request.query)
        headers = dict(request.headers)
        body = request.body
        for param in action.parameters:
            found, value = lookup_param(request.params, param.name)
            if not found or value is None:
                if param.required:
                    raise ValueError(f"{action.identifier} requires the "
                                     f"'{param.name}' parameter")
                continue
            if param.location == "path":
                path = path.replace("{%s}" % param.name, quote(str(value), safe=""))
            elif param.location == "query":
                query.extend(_query_items(param.name, value))
            elif param.location == "header":
                headers[param.name] = str(value)
            elif param.location == "body":
                body = value
        unfilled = path_parameter_names(path)
        if unfilled:
            raise ValueError(f"{action.identifier} has no value for path "
                             f"parameter(s) {', '.join(unfilled)}")
        content_type = action.consumes[0] if action.consumes else "application/json"
        if body is not None:
            headers["Content-Type"] = content_type
            if isinstance(body, str) and content_type in _yaml_content_types:
                body = self.yaml.load(body)
        headers.setdefault("Accept", choose_accept(action.produces))
        return replace(request, method=action.method, path=path, query=query,
                       headers=headers, body=body)


class DecodeInterceptor(Interceptor):
    """
    Decodes response bodies according to their Content-Type

    JSON and YAML bodies become Python objects, anything else becomes text.
    Empty bodies become None. Error responses whose bodies don't parse as their
    Content-Type claims keep the raw text, so ResponseInterceptor can still
    report them.
    """
    def __init__(self):
        self.yaml = YAML(typ="safe")

    def decode(self, content_type: str, body: Any) -> Any:
        if isinstance(body, bytes):
            body = body.decode("utf-8", errors="replace")
        if not isinstance(body, str):
            return body
        if not body.strip():
            return None
        media_type = content_type.split(";")[0].strip().lower()
        if media_type.endswith("json"):
            return json.loads(body)
        if media_type.endswith("yaml"):
            return self.yaml.load(body)
        return body

    def handle_response(self, response: Response) -> Response:
        content_type = response.header("Content-Type", "")
        try:
            body = self.decode(content_type, response.body)
        except (ValueError, YAMLError):
            # error pages from proxies often claim a type they aren't
            if response.status < 400:
                raise
            body = response.body
            if isinstance(body, bytes):
                body = body.decode("utf-8", errors="replace")
        return replace(response, body=body)


def _response_headers(resp: Any) -> Dict[str, str]:
    headers = getattr(resp, "headers", None)
    return dict(headers) if headers is not None else {}


def encode_body(body: Any) -> Optional[bytes]:
    """
    Serialize a request body for the wire

    str and bytes bodies are taken to be serialized already; anything else is
    sent as JSON, which also serves the YAML content types since JSON is YAML.
    """
    if body is None:
        return None
    if isinstance(body, bytes):
        return body
    if isinstance(body, str):
        return body.encode("utf-8")
    return json.dumps(body).encode("utf-8")


class TransportInterceptor(Interceptor):
    """
    Sends requests over the connection pool of the kubernetes client's REST layer

    RESTClientObject turns a Configuration's TLS and proxy settings into a
    urllib3 pool manager; requests go straight to that pool manager with the
    query already in the URL and the body already serialized, so nothing
    depends on how a given kubernetes release shapes RESTClientObject.request().
    One RESTClientObject is kept for each distinct TlsSettings seen. Error
    statuses come back as Response objects like any other; failures that never
    got an HTTP status (urllib3 errors) are raised.
    """
    def __init__(self):
        self._clients: Dict[TlsSettings, RESTClientObject] = {}
        self._lock = threading.Lock()

    def rest_client(self, tls: TlsSettings) -> RESTClientObject:
        with self._lock:
            client = self._clients.get(tls)
            if client is None:
                config = Configuration()
                config.verify_ssl = tls.verify
                config.ssl_ca_cert = tls.ca_cert
                config.cert_file = tls.cert_file
                config.key_file = tls.key_file
                client = RESTClientObject(config)
                self._clients[tls] = client
            return client

    def handle_request(self, request: Request) -> Response:
        pool = self.rest_client(request.tls).pool_manager
        logger.debug("%s %s", request.method, request.url)
        resp = pool.request(request.method.upper(), request.url,
                            body=encode_body(request.body),
                            headers=dict(request.headers),
                            preload_content=True)
        return Response(status=resp.status, headers=_response_headers(resp),
                        body=resp.data, request=request)
