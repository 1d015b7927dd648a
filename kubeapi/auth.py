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
Authentication for requests made through the interceptor chain

Only one way of authenticating is used for a request, picked in this order:
static bearer token, token function, basic auth, client certificate. The
certificate authority and the 'insecure' setting only affect how the server's
certificate is checked, so they apply whichever of those is in use.

Certificates and keys supplied inline (base64 PEM, as found in kubeconfig
files) are written to temporary files that only the current user can read,
since the TLS layer only loads certificates from files. The files are removed
when the interpreter exits.
"""
import atexit
import base64
import binascii
import logging
import os
import tempfile
from dataclasses import replace
from typing import Dict, Optional
from urllib3.util import make_headers
from kubeapi.config import AuthConfig, AuthMechanism
from kubeapi.interceptors import Interceptor, Request, TlsSettings


logger = logging.getLogger("kubeapi.auth")


_temp_files: Dict[bytes, str] = {}


def _cleanup_temp_files():
    for path in _temp_files.values():
        try:
            os.remove(path)
        except OSError:
            logger.debug("Couldn't remove temporary file %s", path)
    _temp_files.clear()


atexit.register(_cleanup_temp_files)


def write_temp_file(b64_data: str, what: str) -> str:
    """
    Decode base64 data and write it to a private temporary file

    The same data always maps to the same file for the life of the process.

    :param b64_data: str; base64 encoded content
    :param what: str; what the data is, for error messages
    :return: the path of the file
    :raises ValueError: if the data isn't valid base64
    """
    try:
        content = base64.b64decode(b64_data, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"The {what} isn't valid base64 data: {e}")
    path = _temp_files.get(content)
    if path is None:
        fd, path = tempfile.mkstemp(prefix="kubeapi-", suffix=".pem")
        with os.fdopen(fd, "wb") as f:
            f.write(content)
        _temp_files[content] = path
    return path


def _file_or_data(path: Optional[str], data: Optional[str], what: str) -> Optional[str]:
    if path:
        return path
    if data:
        return write_temp_file(data, what)
    return None


class AuthInterceptor(Interceptor):
    """
    Adds credentials and TLS settings to each request

    :param config: AuthConfig holding the credentials to use
    """
    def __init__(self, config: AuthConfig):
        self.config = config
        self.mechanism = config.mechanism
        cert_file = key_file = None
        if self.mechanism is AuthMechanism.CLIENT_CERT:
            cert_file = _file_or_data(config.client_cert, config.client_certificate_data,
                                      "client certificate")
            key_file = _file_or_data(config.client_key, config.client_key_data,
                                     "client key")
        ca_cert = _file_or_data(config.ca_cert, config.certificate_authority_data,
                                "certificate authority data")
        self.tls = TlsSettings(verify=not config.insecure,
                               ca_cert=ca_cert,
                               cert_file=cert_file,
                               key_file=key_file)
        self._basic_header = None
        if self.mechanism is AuthMechanism.BASIC:
            headers = make_headers(basic_auth=f"{config.username}:{config.password}")
            self._basic_header = headers["authorization"]

    def authorization(self) -> Optional[str]:
        """
        Returns the value for the Authorization header, or None if there shouldn't be one
        """
        if self.mechanism is AuthMechanism.TOKEN:
            return f"Bearer {self.config.token}"
        if self.mechanism is AuthMechanism.TOKEN_FN:
            return f"Bearer {self.config.token_fn()}"
        if self.mechanism is AuthMechanism.BASIC:
            return self._basic_header
        return None

    def handle_request(self, request: Request) -> Request:
        headers = dict(request.headers)
        value = self.authorization()
        if value is not None:
            headers["Authorization"] = value
        return replace(request, headers=headers, tls=self.tls)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} mechanism={self.mechanism.value}>"
