"""Tests for the service model."""

from edgecfg.model import Dictionary, ServiceConfig, Snippet


class TestServiceConfig:
    """Tests for ServiceConfig conversion."""

    def test_unknown_fields_kept(self):
        data = {"name": "svc", "version": 2, "http3": [{"id": "x"}], "locked": False}
        service = ServiceConfig.from_dict(data)

        assert service.extra == {"http3": [{"id": "x"}], "locked": False}
        assert service.to_dict()["http3"] == [{"id": "x"}]

    def test_unsupported_features(self):
        service = ServiceConfig.from_dict(
            {"gzips": [{"name": "g"}], "healthchecks": [], "products": {"a": True}, "locked": True}
        )
        assert service.unsupported_features() == ["gzips"]

    def test_logging_endpoints(self):
        service = ServiceConfig.from_dict({"splunks": [{"name": "s", "token": "t"}], "syslogs": [{"name": "x"}]})

        assert service.logging_endpoints == {"splunks": [{"name": "s", "token": "t"}]}
        assert "syslogs" in service.extra

    def test_version_string(self):
        assert ServiceConfig.from_dict({"version": "12"}).version == 12

    def test_domains_as_strings(self):
        service = ServiceConfig.from_dict({"domains": ["www.example.com"]})
        assert service.domains[0].name == "www.example.com"
        assert service.domains[0].comment == ""

    def test_without_resources(self):
        service = ServiceConfig(name="svc", dictionaries=[Dictionary(name="cfg")])
        data = service.without_resources()

        assert data["name"] == "svc"
        assert "dictionaries" not in data
        assert "domains" not in data

    def test_snippet_priority_round_trip(self):
        snippet = Snippet.from_dict({"name": "s", "type": "recv", "priority": "20", "content": "x;"})

        assert snippet.priority == 20
        assert snippet.to_dict()["priority"] == "20"

    def test_snippets_grouped_stable(self):
        service = ServiceConfig(
            snippets=[
                Snippet(name="a", type="recv", priority=30),
                Snippet(name="x", type="deliver", priority=1),
                Snippet(name="b", type="recv", priority=10),
                Snippet(name="c", type="recv", priority=10),
                Snippet(name="d", type="recv", priority=20),
            ]
        )
        groups = service.snippets_by_execution_point()

        assert list(groups) == ["recv", "deliver"]
        assert [s.name for s in groups["recv"]] == ["b", "c", "d", "a"]

    def test_copy_is_deep(self):
        service = ServiceConfig(dictionaries=[Dictionary(name="cfg")])
        clone = service.copy()
        clone.dictionaries[0].name = "changed"

        assert service.dictionaries[0].name == "cfg"
