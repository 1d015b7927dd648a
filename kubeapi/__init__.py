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
from kubeapi.actions import Action, ActionKey, ActionRegistry, ActionVerb, preferred_action
from kubeapi.client import Client, connect, invoke, request, explore, info, extend
from kubeapi.config import AuthConfig, AuthMechanism, ClientConfig
from kubeapi.errors import KubeApiError, SchemaFetchError, ActionNotFoundError, RequestError
from kubeapi.interceptors import Interceptor, Request, Response
from kubeapi.normalize import normalize
from kubeapi.schema import SchemaDocument, parse_document


__version__ = "0.1.0"

__all__ = ["Action", "ActionKey", "ActionRegistry", "ActionVerb", "preferred_action",
           "Client", "connect", "invoke", "request", "explore", "info", "extend",
           "AuthConfig", "AuthMechanism", "ClientConfig",
           "KubeApiError", "SchemaFetchError", "ActionNotFoundError", "RequestError",
           "Interceptor", "Request", "Response", "normalize", "SchemaDocument",
           "parse_document"]
