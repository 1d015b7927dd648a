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
from kubeapi.normalize import (normalize, filter_paths, add_summaries, fix_k8s_actions,
                               fix_consumes, remove_watch_endpoints, add_patch_routes,
                               matches_selector, rfc6902_json_schema, patch_variants)
from kubeapi.schema import parse_document
from kubeapi.swagger import read_bundled_schema


pod_item = "/api/v1/namespaces/{namespace}/pods/{name}"


def small_raw():
    return {
        "paths": {
            "/version/": {"get": {"operationId": "getCodeVersion"}},
            "/apis/batch/v1/jobs": {"get": {"operationId": "listBatchV1JobForAllNamespaces",
                                            "x-kubernetes-action": "list"}},
            "/apis/": {"get": {"operationId": "getAPIVersions"}},
            "/apis/apps/v1/deployments": {"get": {"operationId": "listAppsV1DeploymentForAllNamespaces",
                                                  "x-kubernetes-action": "list"}},
            "/api/v1/pods": {"get": {"operationId": "listCoreV1PodForAllNamespaces",
                                     "x-kubernetes-action": "list"}},
            "/api/": {"get": {"operationId": "getCoreAPIVersions"}},
        }
    }


def test01():
    """
    Check that filtering keeps the root paths first, then follows selector order
    """
    doc = filter_paths(parse_document(small_raw()), ["batch", "apps"])
    assert list(doc.paths) == ["/api/", "/apis/", "/apis/batch/v1/jobs",
                               "/apis/apps/v1/deployments"], f"Got {list(doc.paths)}"


def test02():
    """
    Check that the core selector picks up the legacy /api/v1 paths
    """
    doc = filter_paths(parse_document(small_raw()), ["core"])
    assert "/api/v1/pods" in doc.paths
    assert "/apis/apps/v1/deployments" not in doc.paths


def test03():
    """
    Check selector matching on the different prefix forms
    """
    assert matches_selector("/apis/apps/v1/deployments", "apps")
    assert matches_selector("/apis/apps/v1/deployments", "apps/v1")
    assert matches_selector("/version/", "version")
    assert matches_selector("/apis/apps/v1/deployments", "/apis/apps")
    assert not matches_selector("/apis/batch/v1/jobs", "apps")


def test04():
    """
    Check that the default selectors drop paths outside the built-in groups
    """
    doc = normalize(read_bundled_schema())
    for path in ("/version/", "/logs/", "/logs/{logpath}"):
        assert path not in doc.paths, f"{path} wasn't filtered out"
    assert "/api/v1/namespaces/{namespace}/pods" in doc.paths


def test05():
    """
    Check that descriptions are copied into missing summaries
    """
    doc = add_summaries(parse_document(read_bundled_schema()))
    op = doc.paths["/api/v1/namespaces/{namespace}/pods"].operations["get"]
    assert op.summary == "list or watch objects of kind Pod"


def test06():
    """
    Check that the route for arbitrary API resources is added
    """
    doc = normalize(read_bundled_schema(), ["apps"])
    item = doc.paths["/apis/{api}/{version}/"]
    op = item.operations["get"]
    assert op.operation_id == "getArbitraryAPIResources"
    assert [p.name for p in item.parameters] == ["api", "version"]
    assert op.responses[0].schema["$ref"].endswith("APIResourceList")


def test07():
    """
    Check that post, put and watchlist actions are repaired
    """
    doc = fix_k8s_actions(parse_document(read_bundled_schema()))
    actions = {op.k8s_action for item in doc.paths.values()
               for op in item.operations.values()}
    assert not actions & {"post", "put", "watchlist"}, f"Got {actions}"
    assert {"create", "update", "watch"} <= actions


def test08():
    """
    Check that a consumes of */* becomes application/json
    """
    doc = fix_consumes(parse_document(read_bundled_schema()))
    item = doc.paths[pod_item]
    assert item.operations["get"].consumes == ("application/json",)
    # the patch types are left alone
    assert len(item.operations["patch"].consumes) == 4


def test09():
    """
    Check that watch endpoints are removed
    """
    doc = remove_watch_endpoints(parse_document(read_bundled_schema()))
    assert not [p for p in doc.paths if "/watch" in p]
    assert pod_item in doc.paths


def test10():
    """
    Check that a PATCH is replaced with the four patch variants
    """
    doc = normalize(read_bundled_schema())
    ops = doc.paths[pod_item].operations
    assert "patch" not in ops
    for variant in patch_variants:
        op = ops[variant.action]
        assert op.method == "PATCH"
        assert op.consumes == (variant.content_type,)
        assert op.k8s_action == variant.action
        assert op.operation_id == f"patchCoreV1NamespacedPod{variant.suffix}"
    assert ops["patch/json"].summary == "update the specified Pod using RFC6902"


def test11():
    """
    Check the body schemas of the patch variants
    """
    doc = normalize(read_bundled_schema())
    ops = doc.paths[pod_item].operations
    pod_ref = {"$ref": "#/definitions/io.k8s.api.core.v1.Pod"}
    assert ops["patch/json"].body_parameter().schema == rfc6902_json_schema
    for action in ("patch/strategic", "patch/json-merge", "apply/server"):
        assert ops[action].body_parameter().schema == pod_ref, \
            f"{action} has {ops[action].body_parameter().schema}"


def test12():
    """
    Check that a PATCH with no update sibling gets no body schema
    """
    raw = {"paths": {"/apis/apps/v1/things/{name}": {
        "patch": {"operationId": "patchThing",
                  "x-kubernetes-action": "patch",
                  "x-kubernetes-group-version-kind": {"group": "apps", "version": "v1",
                                                      "kind": "Thing"},
                  "parameters": [{"name": "body", "in": "body", "required": True,
                                  "schema": {"type": "object"}}]}}}}
    doc = add_patch_routes(parse_document(raw))
    ops = doc.paths["/apis/apps/v1/things/{name}"].operations
    assert ops["patch/strategic"].body_parameter().schema is None
    assert ops["patch/json"].body_parameter().schema == rfc6902_json_schema
    assert ops["apply/server"].summary == \
        "create or update the specified Thing using server side apply"


def test13():
    """
    Check that normalizing is deterministic and takes parsed documents too
    """
    raw = read_bundled_schema()
    first = normalize(raw)
    second = normalize(parse_document(raw))
    assert first == second
    assert list(first.paths) == list(second.paths)
    # the input is left as it was
    assert "/api/v1/watch/namespaces/{namespace}/pods" in raw["paths"]


if __name__ == "__main__":
    the_tests = {k: v for k, v in globals().items()
                 if k.startswith('test') and callable(v)}
    for k, v in the_tests.items():
        try:
            v()
        except Exception as e:
            print(f'{k} failed with {str(e)}, {e.__class__}')
            raise
