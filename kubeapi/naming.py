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
import re
from typing import List, Optional, Tuple


# the API groups a client is built for unless told otherwise. No versions are
# given so that whatever versions the cluster serves are all picked up.
default_api_groups: List[str] = [
    "admissionregistration.k8s.io",
    "apiextensions.k8s.io",
    "apiregistration.k8s.io",
    "apps",
    "authentication.k8s.io",
    "authorization.k8s.io",
    "autoscaling",
    "batch",
    "certificates.k8s.io",
    "coordination.k8s.io",
    "core",
    "discovery.k8s.io",
    "events.k8s.io",
    "flowcontrol.apiserver.k8s.io",
    "internal.apiserver.k8s.io",
    "networking.k8s.io",
    "node.k8s.io",
    "policy",
    "rbac.authorization.k8s.io",
    "resource.k8s.io",
    "scheduling.k8s.io",
    "storage.k8s.io",
]


# the name used for the legacy group served under /api
core_group = "core"


def full_swagger_name(sname: str) -> str:
    """
    takes any full swagger name, either def or ref, and only returns the name part
    :param sname: string containing a swagger name for some object
    :return: a return with just the name, no other bits
    """
    base_parts = sname.split("/")
    return base_parts[-1]


def get_path_version(path: str) -> Optional[str]:
    """
    Returns the first element of a path that looks like an API version

    :param path: a path template such as /apis/apps/v1/namespaces/{namespace}/...
    :return: string version ('v1', 'v2beta1', ...) or None if the path has none
    """
    version = None
    for part in path.split('/'):
        if _version_rx.match(part):
            version = part
            break
    return version


def get_path_group(path: str) -> str:
    """
    Returns the API group a path belongs to

    Paths under /api are the core group; paths under /apis/<group> belong to
    <group>. Anything else (/version, /logs, templated groups) gives ''.
    """
    parts = [p for p in path.split('/') if p]
    if parts and parts[0] == 'api':
        return core_group
    if len(parts) >= 2 and parts[0] == 'apis' and not parts[1].startswith('{'):
        return parts[1]
    return ''


_path_param_rx = re.compile(r'{(?P<pname>[^}]+)}')


def path_parameter_names(path: str) -> List[str]:
    """
    Returns the names of the templated parameters in a path, in order of appearance
    """
    return [m.group('pname') for m in _path_param_rx.finditer(path)]


def camel_to_pep8(name: str) -> str:
    """
    Converts a camelcase identifier name a PEP8 param name using underscores
    :param name: string; a possibly camel-cased name
    :return: a PEP8 equivalent with the upper case leter mapped to '_<lower>'

    NOTE: will turn strings like 'FQDN' to '_f_q_d_n'; probably not what you want.
    """
    letters = [a if a.islower() else f"_{a.lower()}"
               for a in name]
    result = ''.join(letters)
    # names that start with an uppercase letter come out as '_<lower>'; put
    # those back the way they were
    if result[0] == "_":
        result = result[1].upper() + result[2:]
    return (result.replace("a_p_i", "api").replace('_i_d', '_id').
            replace('d_n_s', 'dns').replace('t_l_s', 'tls'))


def pascal_case(name: str) -> str:
    """
    Upper-cases the first letter of an operationId: readCoreV1NamespacedPod
    becomes ReadCoreV1NamespacedPod
    """
    return name[:1].upper() + name[1:] if name else name


def group_to_pascal(group: str) -> str:
    """
    Turns an API group name into the form Kubernetes uses inside operationIds

    'tekton.dev' -> 'TektonDev', 'apiextensions.k8s.io' -> 'Apiextensions',
    'core' -> 'Core'
    """
    group = group.replace(".k8s.io", "")
    words = re.split(r'[.\-_]', group)
    return "".join(w.capitalize() for w in words if w)


_verb_prefixes = ('deleteCollection', 'create', 'read', 'replace', 'patch',
                  'delete', 'list', 'watch', 'connect', 'get', 'log')


def strip_verb_prefix(op_id: str) -> str:
    """
    Removes the leading verb from an operationId

    'getCoreAPIVersions' -> 'CoreAPIVersions'. If no known verb prefix is found
    the id is returned PascalCased.
    """
    for prefix in _verb_prefixes:
        if op_id.startswith(prefix) and len(op_id) > len(prefix) and \
                op_id[len(prefix)].isupper():
            return op_id[len(prefix):]
    return pascal_case(op_id)


_version_rx = re.compile(r'^v(?P<major>\d+)((?P<stage>alpha|beta)(?P<minor>\d+))?$')


def version_priority(version: Optional[str]) -> Tuple[int, int, int]:
    """
    Returns a sort key that orders Kubernetes API versions by preference

    GA versions rank above beta versions, which rank above alpha versions; within
    a stability class a larger major version wins, and then a larger qualifier
    number (v2beta2 > v2beta1). Strings that don't follow the vNalphaM/vNbetaM
    convention rank below every conforming version.

    :param version: a version string such as 'v1', 'v1beta1', 'v2alpha1'
    :return: tuple of ints; bigger is more preferred
    """
    match = _version_rx.match(version or "")
    if match is None:
        return -1, 0, 0
    stage = match.group('stage')
    stability = 2 if stage is None else (1 if stage == 'beta' else 0)
    minor = int(match.group('minor')) if match.group('minor') else 0
    return stability, int(match.group('major')), minor
