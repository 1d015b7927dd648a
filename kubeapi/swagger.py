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
Where a client's OpenAPI document comes from

Normally the document is fetched from the cluster itself at /openapi/v2. When
that isn't possible (or discovery has been turned off) the copy bundled with
kubeapi in kubeapi/resources/swagger.json is used instead.
"""
import json
import logging
from importlib import resources
from typing import Any, Dict, Optional, Tuple
from kubernetes.client.exceptions import ApiException
from ruamel.yaml.error import YAMLError
from urllib3.exceptions import HTTPError
from kubeapi.errors import KubeApiError, SchemaFetchError
from kubeapi.interceptors import InterceptorChain, Request


logger = logging.getLogger("kubeapi.swagger")

openapi_path = "/openapi/v2"

bundled_resource = "swagger.json"

LIVE = "live"
BUNDLED = "bundled"

# what a request to an unreachable or misbehaving cluster can fail with;
# anything else is a bug and propagates
fetch_errors = (KubeApiError, ApiException, HTTPError, OSError, ValueError, YAMLError)


def read_bundled_schema() -> Dict[str, Any]:
    """
    Returns the decoded OpenAPI document shipped with kubeapi
    """
    text = resources.files("kubeapi").joinpath("resources").joinpath(
        bundled_resource).read_text(encoding="utf-8")
    return json.loads(text)


def fetch_schema(chain: InterceptorChain, host: str) -> Dict[str, Any]:
    """
    Fetch the OpenAPI document from a cluster

    :param chain: the InterceptorChain to send the request through, so that the
        request is authenticated the same way as any other
    :param host: str; base URL of the API server
    :return: the decoded document
    :raises SchemaFetchError: if the document can't be fetched or isn't a
        JSON object
    """
    request = Request(method="GET", host=host, path=openapi_path,
                      headers={"Accept": "application/json"})
    try:
        response = chain.execute(request)
    except fetch_errors as e:
        raise SchemaFetchError(request.url, e) from e
    if not isinstance(response.body, dict):
        raise SchemaFetchError(request.url,
                               TypeError(f"Expected a JSON object, got a "
                                         f"{type(response.body).__name__}"))
    return response.body


def load_schema(chain: InterceptorChain, host: str, discovery: bool = True,
                log: Optional[logging.Logger] = None) -> Tuple[Dict[str, Any], str]:
    """
    Get the OpenAPI document for a client, falling back to the bundled one

    :param chain: InterceptorChain for fetching the live document
    :param host: str; base URL of the API server
    :param discovery: bool; if False the live document isn't fetched at all
    :param log: optional Logger; defaults to this module's logger
    :return: tuple of (document, source), where source is LIVE or BUNDLED
    """
    log = log or logger
    if discovery:
        try:
            raw = fetch_schema(chain, host)
            log.info("Using the OpenAPI schema served by %s", host)
            return raw, LIVE
        except SchemaFetchError as e:
            log.warning("%s; using the bundled schema instead", e)
    else:
        log.info("OpenAPI discovery disabled; using the bundled schema")
    return read_bundled_schema(), BUNDLED
