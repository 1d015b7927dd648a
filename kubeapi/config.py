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
Client configuration

connect() hands its keyword options to ClientConfig.from_options(), which
checks them and turns them into the frozen AuthConfig/ClientConfig values the
rest of the library works from. Secrets never show up in a repr().
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Optional, Sequence, Tuple


def disp_secret_string(value: Optional[str]) -> str:
    return "SET" if value is not None else "UNSET"


def disp_secret_blob(value: Optional[str]) -> Optional[str]:
    return "[%s bytes]" % len(value) if value is not None else None


class AuthMechanism(Enum):
    TOKEN = "token"
    TOKEN_FN = "token_fn"
    BASIC = "basic"
    CLIENT_CERT = "client_cert"
    NONE = "none"


@dataclass(frozen=True)
class AuthConfig:
    """
    Everything needed to authenticate to an API server and to check its certificate

    More than one way of authenticating may be configured; mechanism tells
    which one is used. Certificates and keys can be given as file paths or as
    base64-encoded PEM data (the *_data fields), just like in a kubeconfig file.
    """
    token: Optional[str] = None
    token_fn: Optional[Callable[[], str]] = None
    username: Optional[str] = None
    password: Optional[str] = None
    client_cert: Optional[str] = None
    client_key: Optional[str] = None
    client_certificate_data: Optional[str] = None
    client_key_data: Optional[str] = None
    ca_cert: Optional[str] = None
    certificate_authority_data: Optional[str] = None
    insecure: bool = False

    def has_client_cert(self) -> bool:
        return (bool(self.client_cert or self.client_certificate_data) and
                bool(self.client_key or self.client_key_data))

    def has_ca(self) -> bool:
        return bool(self.ca_cert or self.certificate_authority_data)

    @property
    def mechanism(self) -> AuthMechanism:
        if self.token is not None:
            return AuthMechanism.TOKEN
        if self.token_fn is not None:
            return AuthMechanism.TOKEN_FN
        if self.username is not None:
            return AuthMechanism.BASIC
        if self.has_client_cert():
            return AuthMechanism.CLIENT_CERT
        return AuthMechanism.NONE

    def __repr__(self) -> str:
        return ("<%s mechanism=%s, token=%s, token_fn=%s, username=%r, password=%s, "
                "client_cert=%r, client_key=%r, client_certificate_data=%s, "
                "client_key_data=%s, ca_cert=%r, certificate_authority_data=%s, "
                "insecure=%r>") % (
            self.__class__.__name__,
            self.mechanism.value,
            disp_secret_string(self.token),
            "SET" if self.token_fn is not None else "UNSET",
            self.username,
            disp_secret_string(self.password),
            self.client_cert,
            self.client_key,
            disp_secret_blob(self.client_certificate_data),
            disp_secret_blob(self.client_key_data),
            self.ca_cert,
            disp_secret_blob(self.certificate_authority_data),
            self.insecure,
        )


known_options = frozenset(["token", "token_fn", "basic_auth", "client_cert",
                           "client_key", "ca_cert", "certificate_authority_data",
                           "client_certificate_data", "client_key_data", "insecure",
                           "interceptors", "apis", "openapi", "transport", "logger"])


def _optional_str(options: Dict[str, Any], name: str) -> Optional[str]:
    value = options.get(name)
    if value is not None and not isinstance(value, str):
        raise TypeError(f"The {name} option must be a str, not a {type(value).__name__}")
    return value


def _is_interceptor(obj: Any) -> bool:
    return (callable(getattr(obj, "handle_request", None)) and
            callable(getattr(obj, "handle_response", None)))


@dataclass(frozen=True)
class ClientConfig:
    """
    The validated options a Client is built from

    :ivar host: str; base URL of the API server, without a trailing '/'
    :ivar auth: AuthConfig
    :ivar apis: optional tuple of API group selectors; None means the default groups
    :ivar discovery: bool; False if the OpenAPI document must not be fetched
        from the server (the bundled one is used instead)
    :ivar interceptors: tuple of caller supplied interceptors
    :ivar transport: optional interceptor that replaces the HTTP transport
    :ivar logger: optional logging.Logger to log to
    """
    host: str
    auth: AuthConfig = field(default_factory=AuthConfig)
    apis: Optional[Tuple[str, ...]] = None
    discovery: bool = True
    interceptors: Tuple[Any, ...] = ()
    transport: Any = None
    logger: Optional[logging.Logger] = None

    @classmethod
    def from_options(cls, host: str, **options) -> 'ClientConfig':
        """
        Checks connect()'s options and builds a ClientConfig from them

        :param host: str; base URL of the API server, e.g. https://10.0.0.1:6443
        :param options: the keyword options that connect() accepts
        :return: a new ClientConfig
        :raises TypeError: for unknown options or options of the wrong type
        :raises ValueError: for options with unusable values
        """
        if not isinstance(host, str):
            raise TypeError(f"host must be a str, not a {type(host).__name__}")
        if not host:
            raise ValueError("host must not be empty")
        unknown = sorted(set(options) - known_options)
        if unknown:
            raise TypeError(f"Unknown option(s): {', '.join(unknown)}")

        token = _optional_str(options, "token")
        token_fn = options.get("token_fn")
        if token_fn is not None and not callable(token_fn):
            raise TypeError("The token_fn option must be callable")

        username = password = None
        basic_auth = options.get("basic_auth")
        if basic_auth is not None:
            if not isinstance(basic_auth, dict):
                raise TypeError("The basic_auth option must be a dict with the keys "
                                "'username' and 'password'")
            if "username" not in basic_auth or "password" not in basic_auth:
                raise ValueError("The basic_auth option needs both 'username' "
                                 "and 'password'")
            username = str(basic_auth["username"])
            password = str(basic_auth["password"])

        auth = AuthConfig(token=token,
                          token_fn=token_fn,
                          username=username,
                          password=password,
                          client_cert=_optional_str(options, "client_cert"),
                          client_key=_optional_str(options, "client_key"),
                          client_certificate_data=_optional_str(options,
                                                                "client_certificate_data"),
                          client_key_data=_optional_str(options, "client_key_data"),
                          ca_cert=_optional_str(options, "ca_cert"),
                          certificate_authority_data=_optional_str(
                              options, "certificate_authority_data"),
                          insecure=bool(options.get("insecure", False)))
        has_cert = bool(auth.client_cert or auth.client_certificate_data)
        has_key = bool(auth.client_key or auth.client_key_data)
        if has_cert != has_key:
            raise ValueError("A client certificate and a client key must be "
                             "supplied together")

        apis = options.get("apis")
        if apis is not None:
            if isinstance(apis, str) or not isinstance(apis, Sequence):
                raise TypeError("The apis option must be a list of API group names")
            apis = tuple(apis)

        discovery = True
        openapi = options.get("openapi")
        if openapi is not None:
            if not isinstance(openapi, dict):
                raise TypeError("The openapi option must be a dict")
            setting = openapi.get("discovery", "enabled")
            if setting not in ("enabled", "disabled"):
                raise ValueError(f"openapi discovery must be 'enabled' or 'disabled', "
                                 f"not {setting!r}")
            discovery = setting == "enabled"

        interceptors = tuple(options.get("interceptors") or ())
        for icpt in interceptors:
            if not _is_interceptor(icpt):
                raise TypeError(f"{icpt!r} is not an interceptor; it needs "
                                f"handle_request() and handle_response() methods")
        transport = options.get("transport")
        if transport is not None and not _is_interceptor(transport):
            raise TypeError(f"{transport!r} is not an interceptor")

        logger = options.get("logger")
        if logger is not None and not isinstance(logger, logging.Logger):
            raise TypeError("The logger option must be a logging.Logger")

        return cls(host=host.rstrip("/"),
                   auth=auth,
                   apis=apis,
                   discovery=discovery,
                   interceptors=interceptors,
                   transport=transport,
                   logger=logger)
