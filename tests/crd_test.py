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
import pytest
from kubeapi import connect, extend, invoke, info, Client, RequestError
from kubeapi.crd import crd_document, crd_schemas, definition_name
from fakes import FakeTransport


host = "https://10.0.0.1:6443"

tekton_resources = {
    "kind": "APIResourceList",
    "apiVersion": "v1",
    "groupVersion": "tekton.dev/v1alpha1",
    "resources": [
        {"name": "tasks", "singularName": "task", "namespaced": True, "kind": "Task",
         "verbs": ["delete", "deletecollection", "get", "list", "patch", "create",
                   "update", "watch"]},
        {"name": "tasks/status", "singularName": "", "namespaced": True, "kind": "Task",
         "verbs": ["get", "patch", "update"]},
        {"name": "clustertasks", "singularName": "clustertask", "namespaced": False,
         "kind": "ClusterTask",
         "verbs": ["delete", "deletecollection", "get", "list", "patch", "create",
                   "update", "watch"]},
    ]
}

task_schema = {"type": "object",
               "properties": {"spec": {"type": "object",
                                       "properties": {"steps": {"type": "array",
                                                                "items": {"type": "object"}}}}}}

crd_list = {
    "kind": "CustomResourceDefinitionList",
    "apiVersion": "apiextensions.k8s.io/v1",
    "items": [
        {"metadata": {"name": "tasks.tekton.dev"},
         "spec": {"group": "tekton.dev",
                  "names": {"kind": "Task", "plural": "tasks"},
                  "scope": "Namespaced",
                  "versions": [{"name": "v1alpha1", "served": True, "storage": False,
                                "schema": {"openAPIV3Schema": task_schema}},
                               {"name": "v1beta1", "served": True, "storage": True,
                                "schema": {"openAPIV3Schema": {"type": "object"}}}]}},
        {"metadata": {"name": "widgets.example.com"},
         "spec": {"group": "example.com",
                  "names": {"kind": "Widget", "plural": "widgets"},
                  "versions": [{"name": "v1alpha1",
                                "schema": {"openAPIV3Schema": {"type": "object"}}}]}},
    ]
}

tekton_path = "/apis/tekton.dev/v1alpha1/"
crd_list_path = "/apis/apiextensions.k8s.io/v1/customresourcedefinitions"


def tekton_transport() -> FakeTransport:
    return FakeTransport({("GET", tekton_path): (200, tekton_resources),
                          ("GET", crd_list_path): (200, crd_list)})


def offline(transport, **options) -> Client:
    return connect(host, openapi={"discovery": "disabled"}, transport=transport, **options)


def test01():
    """
    Check that extending adds actions and leaves the original client alone
    """
    transport = tekton_transport()
    client = offline(transport)
    before = len(client.registry)
    extended = extend(client, "tekton.dev", "v1alpha1")
    assert extended is not client
    assert len(client.registry) == before, "the original registry changed"
    # 10 actions each for Task and ClusterTask
    assert len(extended.registry) == before + 20, \
        f"{len(extended.registry) - before} actions were added"
    assert client.registry.find("Task", "get") is None
    assert "/apis/tekton.dev/v1alpha1/namespaces/{namespace}/tasks" not in client.document.paths


def test02():
    """
    Check the routes made for a namespaced custom resource
    """
    extended = extend(offline(tekton_transport()), "tekton.dev", "v1alpha1")
    reg = extended.registry
    get = reg.find("Task", "get")
    assert get.path == "/apis/tekton.dev/v1alpha1/namespaces/{namespace}/tasks/{name}"
    assert get.identifier == "ReadTektonDevV1alpha1NamespacedTask"
    assert get.group == "tekton.dev" and get.version == "v1alpha1"
    create = reg.find("Task", "create")
    assert create.method == "POST"
    assert create.path == "/apis/tekton.dev/v1alpha1/namespaces/{namespace}/tasks"
    assert reg.find("Task", "deletecollection").method == "DELETE"
    for verb in ("list", "update", "delete", "patch/json", "patch/strategic",
                 "patch/json-merge", "apply/server"):
        assert reg.find("Task", verb) is not None, f"No Task {verb}"
    assert reg.find("Task/status", "get") is None, "the status subresource wasn't skipped"


def test03():
    """
    Check the routes made for a cluster scoped custom resource
    """
    extended = extend(offline(tekton_transport()), "tekton.dev", "v1alpha1")
    get = extended.registry.find("ClusterTask", "get")
    assert get.path == "/apis/tekton.dev/v1alpha1/clustertasks/{name}"
    assert get.identifier == "ReadTektonDevV1alpha1ClusterTask"


def test04():
    """
    Check that body schemas come from the CRD
    """
    extended = extend(offline(tekton_transport()), "tekton.dev", "v1alpha1")
    details = info(extended, "Task", "create")
    body = [p for p in details["parameters"] if p["in"] == "body"][0]
    assert body["schema"] == task_schema
    merge = info(extended, "Task", "patch/json-merge")
    body = [p for p in merge["parameters"] if p["in"] == "body"][0]
    assert body["schema"] == task_schema
    cluster = info(extended, "ClusterTask", "create")
    body = [p for p in cluster["parameters"] if p["in"] == "body"][0]
    assert body["schema"] == {"type": "object"}


def test05():
    """
    Check invoking an action on a custom resource
    """
    transport = tekton_transport()
    task = {"apiVersion": "tekton.dev/v1alpha1", "kind": "Task",
            "metadata": {"name": "build"}}
    transport.responses[("POST", "/apis/tekton.dev/v1alpha1/namespaces/ci/tasks")] = \
        (201, task)
    extended = extend(offline(transport), "tekton.dev", "v1alpha1")
    result = invoke(extended, "Task", "create", {"namespace": "ci", "body": task})
    assert result == task
    assert transport.requests[-1].headers["Content-Type"] == "application/json"


def test06():
    """
    Check that resources the client already has aren't added again
    """
    apps_resources = {"groupVersion": "apps/v1",
                      "resources": [{"name": "deployments", "namespaced": True,
                                     "kind": "Deployment", "verbs": ["get"]},
                                    {"name": "deployments/scale", "namespaced": True,
                                     "kind": "Scale", "verbs": ["get"]}]}
    transport = FakeTransport({("GET", "/apis/apps/v1/"): (200, apps_resources),
                               ("GET", crd_list_path): (200, {"items": []})})
    client = offline(transport)
    extended = extend(client, "apps", "v1")
    assert len(extended.registry) == len(client.registry)


def test07():
    """
    Check that CRDs aren't listed when the client can't list them
    """
    transport = tekton_transport()
    client = offline(transport, apis=["core"])
    extended = extend(client, "tekton.dev", "v1alpha1")
    assert [r.path for r in transport.requests] == [tekton_path]
    details = info(extended, "Task", "update")
    body = [p for p in details["parameters"] if p["in"] == "body"][0]
    assert body["schema"] == {"type": "object"}


def test08():
    """
    Check that a group version the cluster doesn't serve is an error
    """
    client = offline(FakeTransport())
    with pytest.raises(RequestError) as excinfo:
        extend(client, "nope.example.com", "v1")
    assert excinfo.value.status == 404


def test09():
    """
    Check picking schemas out of CRDs by group and version
    """
    schemas = crd_schemas(crd_list["items"], "tekton.dev", "v1alpha1")
    assert schemas == {"Task": task_schema}
    assert crd_schemas(crd_list["items"], "tekton.dev", "v1") == {}
    assert list(crd_schemas(crd_list["items"], "example.com", "v1alpha1")) == ["Widget"]


def test10():
    """
    Check the document fragment built for a resource list
    """
    doc = crd_document("tekton.dev", "v1alpha1", tekton_resources["resources"],
                       {"Task": task_schema})
    assert list(doc.paths) == [
        "/apis/tekton.dev/v1alpha1/namespaces/{namespace}/tasks",
        "/apis/tekton.dev/v1alpha1/namespaces/{namespace}/tasks/{name}",
        "/apis/tekton.dev/v1alpha1/clustertasks",
        "/apis/tekton.dev/v1alpha1/clustertasks/{name}"]
    name = definition_name("tekton.dev", "v1alpha1", "Task")
    assert name == "dev.tekton.v1alpha1.Task"
    assert doc.definitions == {name: task_schema}
    item = doc.paths["/apis/tekton.dev/v1alpha1/namespaces/{namespace}/tasks/{name}"]
    assert "patch" not in item.operations
    assert item.operations["patch/json"].operation_id == \
        "patchTektonDevV1alpha1NamespacedTaskJsonPatch"


def test11():
    """
    Check that extending twice keeps everything from the first extension
    """
    transport = tekton_transport()
    widgets = {"groupVersion": "example.com/v1alpha1",
               "resources": [{"name": "widgets", "namespaced": True, "kind": "Widget",
                              "verbs": ["get"]}]}
    transport.responses[("GET", "/apis/example.com/v1alpha1/")] = (200, widgets)
    once = extend(offline(transport), "tekton.dev", "v1alpha1")
    twice = extend(once, "example.com", "v1alpha1")
    assert twice.registry.find("Task", "get") is not None
    assert twice.registry.find("Widget", "get").path == \
        "/apis/example.com/v1alpha1/namespaces/{namespace}/widgets/{name}"
    assert once.registry.find("Widget", "get") is None


if __name__ == "__main__":
    the_tests = {k: v for k, v in globals().items()
                 if k.startswith('test') and callable(v)}
    for k, v in the_tests.items():
        try:
            v()
        except Exception as e:
            print(f'{k} failed with {str(e)}, {e.__class__}')
            raise
