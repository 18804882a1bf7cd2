"""Tests for the snippet codec."""

from edgecfg.config import DIVIDER
from edgecfg.model import Dictionary, ServiceConfig, Snippet
from edgecfg.reporting import quiet_reporter
from edgecfg.snippets import (
    INIT_FILE,
    decode_execution_point,
    decode_snippets,
    encode_execution_point,
    encode_snippets,
    needs_sub,
)


def summary(snippets):
    return [(s.name, s.type, s.priority, s.content) for s in snippets]


class TestEncode:
    """Tests for rendering snippets files."""

    def test_no_snippets_no_files(self):
        assert encode_snippets(ServiceConfig(), quiet_reporter()) == {}

    def test_init_file_always_written(self):
        service = ServiceConfig(
            backends=[{"name": "origin"}],
            dictionaries=[Dictionary(name="cfg")],
            snippets=[Snippet(name="s", type="recv", content="set x;")],
        )
        files = encode_snippets(service, quiet_reporter())

        assert set(files) == {INIT_FILE, "recv.vcl"}
        init = files[INIT_FILE]
        assert init.startswith("# Context for IDEs. Automatically generated.\n")
        assert "backend F_origin {}" in init
        assert "table cfg {}" in init

    def test_wrapped_execution_point(self):
        text = encode_execution_point("recv", [Snippet(name="s", type="recv", priority=5, content="set x;")])
        lines = text.split("\n")

        assert lines[0] == 'include "init.vcl";'
        assert "sub vcl_recv {" in lines
        assert "  #FASTLY recv" in lines
        assert "  # name: s" in lines
        assert "  # priority: 5" in lines
        assert "  set x;" in lines
        assert text.endswith("}\n")

    def test_unwrapped_execution_point(self):
        text = encode_execution_point("none", [Snippet(name="s", type="none", content="set x;")])

        assert "sub vcl_" not in text
        assert "# name: s\n" in text
        assert "\nset x;\n" in text

    def test_ordered_by_priority_stable(self):
        service = ServiceConfig(
            snippets=[
                Snippet(name="a", type="recv", priority=30, content="a;"),
                Snippet(name="b", type="recv", priority=10, content="b;"),
                Snippet(name="c", type="recv", priority=10, content="c;"),
                Snippet(name="d", type="recv", priority=20, content="d;"),
            ]
        )
        files = encode_snippets(service, quiet_reporter())
        text = files["recv.vcl"]

        positions = [text.index(f"# name: {name}\n") for name in "bcda"]
        assert positions == sorted(positions)

        decoded = decode_execution_point("recv", text)
        assert [(s.name, s.priority) for s in decoded] == [("b", 10), ("c", 10), ("d", 20), ("a", 30)]

    def test_divider_in_content_warns(self):
        reporter = quiet_reporter()
        service = ServiceConfig(snippets=[Snippet(name="bad", type="recv", content=f"x;\n{DIVIDER}\ny;")])
        encode_snippets(service, reporter)

        assert len(reporter.warnings_matching("bad")) == 1

    def test_needs_sub(self):
        assert needs_sub("recv")
        assert needs_sub("deliver")
        assert not needs_sub("init")
        assert not needs_sub("none")


class TestDecode:
    """Tests for parsing snippets files."""

    def test_prio_alias(self):
        text = f"{DIVIDER}\n# name: x\n# prio: 7\n{DIVIDER}\n\nset y;\n\n{DIVIDER}\n"
        snippets = decode_execution_point("none", text)

        assert summary(snippets) == [("x", "none", 7, "set y;")]

    def test_unterminated_body_at_end(self):
        text = f"{DIVIDER}\n# name: x\n# priority: 5\n{DIVIDER}\n\nset foo;"
        assert summary(decode_execution_point("init", text)) == [("x", "init", 5, "set foo;")]

    def test_trailer_discarded(self):
        text = encode_execution_point("recv", [Snippet(name="s", type="recv", content="set x;")])
        snippets = decode_execution_point("recv", text)

        assert len(snippets) == 1
        assert "}" not in snippets[0].content

    def test_snippet_without_name_skipped(self):
        reporter = quiet_reporter()
        text = f"{DIVIDER}\n# priority: 5\n{DIVIDER}\nset x;\n{DIVIDER}\n"

        assert decode_execution_point("none", text, reporter) == []
        assert len(reporter.warnings) == 1

    def test_invalid_priority_defaults(self):
        reporter = quiet_reporter()
        text = f"{DIVIDER}\n# name: x\n# priority: high\n{DIVIDER}\nset x;\n{DIVIDER}\n"

        snippets = decode_execution_point("none", text, reporter)
        assert snippets[0].priority == 100
        assert len(reporter.warnings_matching("invalid priority")) == 1

    def test_dynamic_is_static(self):
        text = f"{DIVIDER}\n# name: x\n# priority: 1\n{DIVIDER}\nset x;\n{DIVIDER}\n"
        assert decode_execution_point("none", text)[0].dynamic == "0"

    def test_init_file_without_snippets(self):
        service = ServiceConfig(snippets=[Snippet(name="s", type="recv", content="set x;")])
        files = encode_snippets(service, quiet_reporter())

        assert decode_execution_point("init", files[INIT_FILE]) == []


class TestRoundTrip:
    """Snippets survive encode/decode."""

    def test_round_trip_all_execution_points(self):
        service = ServiceConfig(
            snippets=[
                Snippet(name="globals", type="init", priority=1, content="table t {\n  \"k\": \"v\",\n}"),
                Snippet(
                    name="route",
                    type="recv",
                    priority=20,
                    content='if (req.url ~ "^/api") {\n  set req.backend = F_api;\n}\n\n# done',
                ),
                Snippet(name="first", type="recv", priority=10, content="set req.http.X-A = \"1\";"),
                Snippet(name="headers", type="deliver", priority=100, content="unset resp.http.Server;"),
                Snippet(name="helper", type="none", priority=50, content="sub helper {\n  return;\n}"),
            ]
        )
        files = encode_snippets(service, quiet_reporter())
        decoded = decode_snippets(files)

        expected = service.snippets_by_execution_point()
        actual = ServiceConfig(snippets=decoded).snippets_by_execution_point()

        assert set(actual) == set(expected)
        for execution_point, snippets in expected.items():
            assert summary(actual[execution_point]) == summary(snippets)
