import yaml
from werkzeug.wrappers import Request

from flyteapi.info import index, v1, v1_swagger


def make_request(path="/", headers=None):
    return Request.from_values(path=path, base_url="http://example.com", headers=headers)


def test_index_links():
    resp = index(make_request("/"))
    assert resp.status_code == 200
    assert resp.get_data(as_text=True) == (
        '{"links":[{"href":"http://example.com/","rel":"self"},'
        '{"href":"http://example.com/swagger#/info","rel":"help"},'
        '{"href":"http://example.com/v1","rel":"http://example.com/swagger#!/info/v1"}]}'
    )


def test_v1_links():
    resp = v1(make_request("/v1"))
    assert resp.status_code == 200
    assert resp.get_data(as_text=True) == (
        '{"links":[{"href":"http://example.com/v1","rel":"self"},'
        '{"href":"http://example.com/","rel":"up"},'
        '{"href":"http://example.com/swagger#!/info/v1","rel":"help"},'
        '{"href":"http://example.com/health","rel":"http://example.com/swagger#!/info/health"},'
        '{"href":"http://example.com/v1/packs","rel":"http://example.com/swagger#!/pack/listPacks"},'
        '{"href":"http://example.com/v1/flows","rel":"http://example.com/swagger#!/flow/listFlows"},'
        '{"href":"http://example.com/v1/datastore","rel":"http://example.com/swagger#!/datastore/listDatastoreItems"},'
        '{"href":"http://example.com/v1/audit/flows","rel":"http://example.com/swagger#!/flowAudit/findFlows"},'
        '{"href":"http://example.com/v1/swagger","rel":"http://example.com/swagger"}]}'
    )


def test_index_as_yaml():
    resp = index(make_request("/", headers={"Accept": "application/x-yaml"}))
    body = yaml.safe_load(resp.get_data(as_text=True))
    assert body["links"][0] == {"href": "http://example.com/", "rel": "self"}


def test_swagger_returns_500_when_file_cannot_be_read(tmp_path):
    resp = v1_swagger(make_request("/v1/swagger"), tmp_path / "missing.yml")
    assert resp.status_code == 500


def test_swagger_serves_file(tmp_path):
    swagger = tmp_path / "v1.yml"
    swagger.write_text("swagger: '2.0'\n", encoding="utf-8")
    resp = v1_swagger(make_request("/v1/swagger"), swagger)
    assert resp.status_code == 200
    assert resp.headers["Content-Type"] == "application/vnd.yaml; charset=utf-8"
    assert resp.get_data(as_text=True) == "swagger: '2.0'\n"