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
Exceptions raised by kubeapi

Only SchemaFetchError is ever handled inside the library (a client falls back
to its bundled schema when the live one can't be had); everything else is
raised straight through to the caller.
"""
from typing import Any, Dict, Optional


class KubeApiError(Exception):
    pass


class SchemaFetchError(KubeApiError):
    """
    Raised when the OpenAPI document can't be fetched from, or parsed after
    fetching from, a live cluster
    """
    def __init__(self, url: str, cause: Optional[BaseException] = None):
        self.url = url
        self.cause = cause
        super(SchemaFetchError, self).__init__(f"Unable to fetch the OpenAPI schema "
                                               f"from {url}: {cause!r}")


class ActionNotFoundError(KubeApiError):
    """
    Raised when a (kind, action, version) search doesn't resolve to any
    registered action. The search criteria are available in the 'search'
    attribute.
    """
    def __init__(self, search: Dict[str, Any]):
        self.search = dict(search)
        super(ActionNotFoundError, self).__init__(f"Could not find action: {self.search}")


class RequestError(KubeApiError):
    """
    Raised when Kubernetes answers a request with a status code of 400 or higher

    :ivar status: int; the HTTP status code
    :ivar body: the response body, decoded if it was JSON or YAML
    :ivar request: dict describing the request that failed; has the keys
        'method', 'path', 'url' and 'params'
    """
    def __init__(self, status: int, body: Any, request: Dict[str, Any]):
        self.status = status
        self.body = body
        self.request = request
        reason = None
        if isinstance(body, dict):
            reason = body.get("message") or body.get("reason")
        msg = (f"Kubernetes returned error {status} for {request.get('method')} "
               f"{request.get('path')}")
        if reason:
            msg = f"{msg}: {reason}"
        super(RequestError, self).__init__(msg)


__all__ = ["KubeApiError", "SchemaFetchError", "ActionNotFoundError", "RequestError"]
