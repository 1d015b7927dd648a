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
The action registry: every callable operation, indexed by kind and action verb

An Action is the registry's view of one Operation from a normalized
SchemaDocument. Actions are indexed by ActionKey (kind, verb); when several
API versions (or groups) expose the same kind and verb, preferred_action()
picks which one a caller gets when no version is asked for.

Registries are never modified once built; extended() returns a new one.
"""
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, Iterator, List, NamedTuple, Optional, Tuple, Union
from kubeapi.naming import (get_path_group, get_path_version, pascal_case,
                            strip_verb_prefix, version_priority)
from kubeapi.schema import SchemaDocument, PathItem, Operation, Parameter


logger = logging.getLogger("kubeapi.actions")


class ActionVerb(Enum):
    CREATE = "create"
    UPDATE = "update"
    PATCH_JSON = "patch/json"
    PATCH_STRATEGIC = "patch/strategic"
    PATCH_MERGE = "patch/json-merge"
    APPLY = "apply/server"
    LIST = "list"
    GET = "get"
    DELETE = "delete"
    DELETE_COLLECTION = "deletecollection"
    WATCH = "watch"
    CONNECT = "connect"

    @classmethod
    def coerce(cls, value: Union['ActionVerb', str]) -> 'ActionVerb':
        """
        Turns a verb given as a string into an ActionVerb

        Accepts the tag values ('get', 'patch/json', 'apply/server', ...), the
        member names in any case ('PATCH_JSON', 'delete_collection'), and the
        short forms 'patch-json', 'patch-strategic', 'patch-merge' and 'apply'.

        :raises ValueError: if the value doesn't name a verb
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.lower())
            except ValueError:
                pass
            name = value.upper().replace("-", "_").replace("/", "_")
            if name in cls.__members__:
                return cls.__members__[name]
            alias = _verb_aliases.get(value.lower())
            if alias is not None:
                return alias
        raise ValueError(f"{value!r} is not a known action")


_verb_aliases = {"patch-json": ActionVerb.PATCH_JSON,
                 "patch-strategic": ActionVerb.PATCH_STRATEGIC,
                 "patch-merge": ActionVerb.PATCH_MERGE,
                 "patch/merge": ActionVerb.PATCH_MERGE,
                 "apply": ActionVerb.APPLY}


# used for operations that carry no x-kubernetes-action
_method_verbs = {"GET": ActionVerb.GET,
                 "HEAD": ActionVerb.GET,
                 "OPTIONS": ActionVerb.GET,
                 "POST": ActionVerb.CREATE,
                 "PUT": ActionVerb.UPDATE,
                 "PATCH": ActionVerb.PATCH_STRATEGIC,
                 "DELETE": ActionVerb.DELETE}


class ActionKey(NamedTuple):
    kind: str
    verb: ActionVerb


@dataclass(frozen=True)
class Action:
    """
    One callable operation: a verb on a kind at a specific version

    :ivar identifier: str; the PascalCased operationId, unique in a registry
    :ivar kind: str; the kind acted on. Subresources are named Parent/sub,
        for instance 'Pod/status' or 'Deployment/scale'
    :ivar verb: ActionVerb
    :ivar group: str; API group of the route ('core' for /api, '' if unknown)
    :ivar version: str; API version of the route, '' if it has none
    :ivar method: str; HTTP method
    :ivar path: str; path template, e.g. /api/v1/namespaces/{namespace}/pods/{name}
    :ivar summary: str
    :ivar operation: the Operation the action was made from
    :ivar parameters: tuple of Parameters; the path-level parameters merged
        with the operation's own
    """
    identifier: str
    kind: str
    verb: ActionVerb
    group: str
    version: str
    method: str
    path: str
    summary: str
    operation: Operation
    parameters: Tuple[Parameter, ...] = ()

    @property
    def key(self) -> ActionKey:
        return ActionKey(self.kind, self.verb)

    @property
    def consumes(self) -> Tuple[str, ...]:
        return self.operation.consumes

    @property
    def produces(self) -> Tuple[str, ...]:
        return self.operation.produces

    def __repr__(self) -> str:
        return (f"<{self.__class__.__name__} {self.identifier} {self.kind} "
                f"{self.verb.value} {self.version} {self.method} {self.path}>")


def preferred_action(candidates: Iterable[Action]) -> Optional[Action]:
    """
    Pick the action whose version Kubernetes would prefer

    GA versions win over beta, beta over alpha; then the larger major version,
    then the larger qualifier number. Equal versions go to the candidate that
    was discovered first, so the answer is the same on every call.

    :param candidates: the actions for one (kind, verb), in discovery order
    :return: the preferred action, or None if there are no candidates
    """
    best = None
    best_priority = None
    for action in candidates:
        priority = version_priority(action.version)
        if best is None or priority > best_priority:
            best = action
            best_priority = priority
    return best


_subresource_rx = re.compile(r'^(?P<parent>.*/{name})/(?P<sub>[^{}/]+)(/.*)?$')


def _item_kinds(doc: SchemaDocument) -> Dict[str, str]:
    kinds = {}
    for path, item in doc.paths.items():
        for op in item.operations.values():
            if op.gvk is not None:
                kinds[path] = op.gvk.kind
                break
    return kinds


def action_kind(path: str, op: Operation, item_kinds: Dict[str, str]) -> str:
    """
    Work out the kind an operation acts on

    The x-kubernetes-group-version-kind tag names the kind, except that for
    subresources (.../{name}/status, .../{name}/scale) the kind of the owning
    item path is used, qualified with the subresource name. Operations with no
    tag at all are named after their operationId minus the verb.
    """
    match = _subresource_rx.match(path)
    if match is not None:
        parent_kind = item_kinds.get(match.group('parent'))
        if parent_kind is not None:
            return f"{parent_kind}/{match.group('sub')}"
    if op.gvk is not None:
        return op.gvk.kind
    return strip_verb_prefix(op.operation_id)


def action_verb(op: Operation) -> ActionVerb:
    if op.k8s_action is not None:
        try:
            return ActionVerb(op.k8s_action)
        except ValueError:
            logger.debug("Unknown x-kubernetes-action %r on %s; using the HTTP method",
                         op.k8s_action, op.operation_id)
    return _method_verbs.get(op.method, ActionVerb.GET)


def make_action(item: PathItem, op: Operation, item_kinds: Dict[str, str]) -> Action:
    version = get_path_version(item.path) or (op.gvk.version if op.gvk else "")
    return Action(identifier=pascal_case(op.operation_id),
                  kind=action_kind(item.path, op, item_kinds),
                  verb=action_verb(op),
                  group=get_path_group(item.path),
                  version=version,
                  method=op.method,
                  path=item.path,
                  summary=op.summary or op.description or "",
                  operation=op,
                  parameters=item.effective_parameters(op))


def make_actions(doc: SchemaDocument) -> List[Action]:
    """
    Turn every operation in a (normalized) document into an Action, in document order
    """
    item_kinds = _item_kinds(doc)
    return [make_action(item, op, item_kinds)
            for item in doc.paths.values()
            for op in item.operations.values()]


class ActionRegistry(object):
    """
    An immutable, ordered collection of Actions indexed by (kind, verb)

    The order actions are supplied in is their discovery order; it follows the
    order of the API group selectors the schema was normalized with, and it's
    what breaks ties between actions of equally preferred versions.

    If more than one action has the same kind, verb and version, the first
    one discovered is the one find() returns; the others can still be reached
    with get() using their identifier.
    """
    def __init__(self, actions: Iterable[Action] = ()):
        self._actions: Tuple[Action, ...] = tuple(actions)
        self._index: Dict[ActionKey, List[Action]] = {}
        self._by_id: Dict[str, Action] = {}
        for action in self._actions:
            self._index.setdefault(action.key, []).append(action)
            if action.identifier in self._by_id:
                logger.debug("Duplicate action identifier %s; keeping the first",
                             action.identifier)
            else:
                self._by_id[action.identifier] = action

    @classmethod
    def build(cls, doc: SchemaDocument) -> 'ActionRegistry':
        """
        Create a registry holding one Action per operation in the document

        :param doc: a normalized SchemaDocument
        :return: new ActionRegistry
        """
        return cls(make_actions(doc))

    def __len__(self) -> int:
        return len(self._actions)

    def __iter__(self) -> Iterator[Action]:
        return iter(self._actions)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} actions={len(self._actions)}>"

    @property
    def actions(self) -> Tuple[Action, ...]:
        return self._actions

    def kinds(self) -> List[str]:
        return sorted({action.kind for action in self._actions})

    def get(self, identifier: str) -> Optional[Action]:
        return self._by_id.get(pascal_case(identifier))

    def candidates(self, kind: str, verb: Union[ActionVerb, str]) -> List[Action]:
        return list(self._index.get(ActionKey(kind, ActionVerb.coerce(verb)), ()))

    def find(self, kind: str, verb: Union[ActionVerb, str],
             version: Optional[str] = None) -> Optional[Action]:
        """
        Look up the action for a kind and verb

        :param kind: str; the kind, e.g. 'Deployment'
        :param verb: ActionVerb or a string that ActionVerb.coerce() accepts
        :param version: optional str; if supplied only an action with exactly
            this version is returned, otherwise the preferred version is used
        :return: an Action or None
        :raises ValueError: if verb doesn't name an action verb
        """
        candidates = self.candidates(kind, verb)
        if version is None:
            return preferred_action(candidates)
        for action in candidates:
            if action.version == version:
                return action
        return None

    def directory(self, kind: Optional[str] = None) -> List[Tuple[str, List[Tuple[ActionVerb, str]]]]:
        """
        Lists what can be done to each kind, using only the preferred version of each action

        :param kind: optional str; if supplied only this kind is listed
        :return: list of (kind, [(verb, summary), ...]) tuples sorted by kind;
            the entries for a kind are in discovery order
        """
        preferred = {id(preferred_action(actions))
                     for key, actions in self._index.items()
                     if kind is None or key.kind == kind}
        listing: Dict[str, List[Tuple[ActionVerb, str]]] = {}
        for action in self._actions:
            if id(action) in preferred:
                listing.setdefault(action.kind, []).append((action.verb, action.summary))
        return sorted(listing.items(), key=lambda entry: entry[0])

    def extended(self, actions: Iterable[Action]) -> 'ActionRegistry':
        """
        Returns a new registry with the given actions added after this one's

        This registry is left as it was.
        """
        return self.__class__(self._actions + tuple(actions))
