"""Tests for assembling a service from the remote API."""

import json
import tempfile
from pathlib import Path

import pytest

from edgecfg.errors import FatalUserError
from edgecfg.fetcher import assemble_service, load_service_json
from edgecfg.reporting import quiet_reporter


def version_data(number):
    return {
        "number": number,
        "service_id": "svc1",
        "comment": "",
        "deployed": True,
        "staging": False,
        "testing": False,
        "deleted_at": None,
        "backends": [{"name": "origin", "address": "origin.example.com"}],
        "domains": [{"name": "www.example.com", "comment": ""}],
        "acls": [{"id": "acl1", "name": "blocklist"}],
        "dictionaries": [
            {"id": "d1", "name": "cfg", "write_only": False},
            {"id": "d2", "name": "secrets", "write_only": True},
        ],
        "snippets": [{"id": "s1", "name": "route", "type": "recv", "priority": "10", "content": "set x;"}],
        "vcls": [],
    }


class FakeClient:
    """In-memory stand-in for the remote API."""

    def __init__(self, service_type="vcl", extra=None):
        self.service_type = service_type
        self.extra = extra or {}
        self.calls = []

    def fetch_service_detail(self, service_id, version=None):
        self.calls.append(("detail", service_id, version))
        latest = version_data(7)
        latest.update(self.extra)
        return {
            "id": service_id,
            "name": "my-service",
            "type": self.service_type,
            "version": latest,
            "active_version": version_data(6),
            "versions": [{"number": 6}, {"number": 7}],
        }

    def list_acl_entries(self, service_id, acl_id):
        self.calls.append(("acl_entries", acl_id))
        return [{"ip": "192.0.2.0", "subnet": 24, "negated": "0", "comment": ""}]

    def list_dictionary_items(self, service_id, dictionary_id):
        self.calls.append(("dictionary_items", dictionary_id))
        return [{"item_key": "a", "item_value": "1"}]

    def get_dictionary_info(self, service_id, version, dictionary_id):
        self.calls.append(("dictionary_info", version, dictionary_id))
        return {"last_updated": "2024-01-01 10:00:00", "item_count": 4, "digest": "abc"}

    def enabled_products(self, service_id):
        return {"image_optimizer": False}


class TestAssembleService:
    """Tests for assemble_service()."""

    def test_latest_version(self):
        client = FakeClient()
        service = assemble_service(client, "svc1", reporter=quiet_reporter())

        assert service.version == 7
        assert service.name == "my-service"
        assert service.type == "vcl"
        assert service.acls[0].entries[0].ip == "192.0.2.0"
        assert service.products == {"image_optimizer": False}
        assert client.calls[0] == ("detail", "svc1", None)

    def test_dictionaries(self):
        client = FakeClient()
        service = assemble_service(client, "svc1", reporter=quiet_reporter())

        cfg, secrets = service.dictionaries
        assert [(i.key, i.value) for i in cfg.items] == [("a", "1")]
        assert secrets.items == []
        assert secrets.info.item_count == 4
        assert secrets.info.digest == "abc"
        assert ("dictionary_items", "d2") not in client.calls
        assert ("dictionary_info", 7, "d2") in client.calls

    def test_noisy_fields_removed(self):
        data = assemble_service(FakeClient(), "svc1", reporter=quiet_reporter()).to_dict()

        for key in ("number", "deployed", "staging", "testing", "deleted_at"):
            assert key not in data

    def test_active_version(self):
        client = FakeClient()
        service = assemble_service(client, "svc1", "active", reporter=quiet_reporter())

        assert service.version == 6
        assert client.calls[0] == ("detail", "svc1", None)

    def test_explicit_version(self):
        client = FakeClient()
        assemble_service(client, "svc1", "7", reporter=quiet_reporter())

        assert client.calls[0] == ("detail", "svc1", 7)

    def test_non_vcl_service_warns(self):
        reporter = quiet_reporter()
        assemble_service(FakeClient(service_type="wasm"), "svc1", reporter=reporter)

        assert len(reporter.warnings_matching("wasm")) == 1

    def test_unsupported_features_warned(self):
        reporter = quiet_reporter()
        service = assemble_service(FakeClient(extra={"gzips": [{"name": "default"}]}), "svc1", reporter=reporter)

        assert len(reporter.warnings_matching("gzips")) == 1
        assert service.extra["gzips"] == [{"name": "default"}]

    def test_snippet_priority_parsed(self):
        service = assemble_service(FakeClient(), "svc1", reporter=quiet_reporter())
        assert service.snippets[0].priority == 10


class TestLoadServiceJson:
    """Tests for loading JSON dumps."""

    def test_load(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "dump.json"
            path.write_text(json.dumps({"name": "svc", "version": "3", "domains": ["www.example.com"]}))

            service = load_service_json(path)

            assert service.name == "svc"
            assert service.version == 3
            assert service.domains[0].name == "www.example.com"

    def test_missing_file(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            with pytest.raises(FatalUserError):
                load_service_json(Path(tmpdir) / "nope.json")

    def test_invalid_json(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "dump.json"
            path.write_text("{not json")

            with pytest.raises(FatalUserError, match="Invalid JSON"):
                load_service_json(path)
