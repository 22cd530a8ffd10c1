from cssrebase.composer import ColumnShifter, Edit, Granularity, compose
from cssrebase.scanner import scan
from cssrebase.sourcemap import Mapping, SourceMap
from cssrebase.tracer import Tracer

TEXT = "a{b:url(x.png);c:d}\nz{}"


def edits(text, *replacements):
    return [Edit(t, r) for t, r in zip(scan(text), replacements)]


def test_shifter():
    (edit,) = edits(TEXT, "/abs/x.png")
    shifter = ColumnShifter([edit])
    assert edit.delta == 5
    assert shifter.shift(0, 2) == 2
    assert shifter.shift(0, 8) == 8
    assert shifter.shift(0, 10) == 10
    assert shifter.shift(0, 13) == 18
    assert shifter.shift(0, 15) == 20
    assert shifter.shift(1, 1) == 1


def test_shifter_accumulates_and_clamps():
    text = "a{b:url(long-name.png) url(y.png)}"
    shifter = ColumnShifter(edits(text, "s.png", "/abs/y.png"))
    # long-name.png -> s.png shrinks by 8; y.png -> /abs/y.png grows by 5.
    assert shifter.shift(0, 22) == 14
    assert shifter.shift(0, 27) == 19
    assert shifter.shift(0, 32) == 29
    # Inside the first payload, past its new length.
    assert shifter.shift(0, 18) == 13


def test_identity_when_no_incoming_map():
    source_map = compose(TEXT, edits(TEXT, "/abs/x.png"), Tracer(None, "/s/a.css"))
    assert source_map.sources == ["/s/a.css"]
    assert source_map.mappings == [
        Mapping(0, 0, 0, 0, 0),
        Mapping(0, 4, 0, 0, 4),
        Mapping(1, 0, 0, 1, 0),
    ]


def test_start_and_end_granularity():
    source_map = compose(
        TEXT,
        edits(TEXT, "/abs/x.png"),
        Tracer(None, "/s/a.css"),
        Granularity.START_AND_END,
    )
    assert Mapping(0, 19, 0, 0, 14) in source_map.mappings
    assert len(source_map.mappings) == 4


def test_chains_incoming_map():
    incoming = SourceMap(
        sources=["a.scss"],
        mappings=[Mapping(0, 0, 0, 5, 2), Mapping(0, 15, 0, 5, 10), Mapping(1, 0, 0, 8, 0)],
        sources_content=["..."],
    )
    source_map = compose(TEXT, edits(TEXT, "/abs/x.png"), Tracer(incoming, "/s/a.css"))
    assert source_map.sources == ["a.scss"]
    assert source_map.sources_content == ["..."]
    assert source_map.mappings == [
        Mapping(0, 0, 0, 5, 2),
        Mapping(0, 4, 0, 5, 2),
        Mapping(0, 20, 0, 5, 10),
        Mapping(1, 0, 0, 8, 0),
    ]


def test_unmapped_anchor_adds_document_source():
    incoming = SourceMap(sources=["a.scss"], mappings=[Mapping(1, 0, 0, 8, 0)])
    source_map = compose(TEXT, edits(TEXT, "x.png"), Tracer(incoming, "/s/a.css"))
    assert source_map.sources == ["a.scss", "/s/a.css"]
    assert Mapping(0, 4, 1, 0, 4) in source_map.mappings


def test_anchor_round_trips():
    text = "a{\n  b: url(~images/img.jpg);\n  c: url(x.png) url(y.png);\n}"
    incoming = SourceMap(
        sources=["one.scss", "two.scss"],
        mappings=[
            Mapping(0, 0, 0, 0, 0),
            Mapping(1, 2, 0, 3, 4),
            Mapping(2, 2, 1, 7, 2),
            Mapping(2, 16, 1, 7, 30),
        ],
    )
    changes = edits(text, "/very/long/absolute/images/img.jpg", "x.png", "0123.png")
    before = Tracer(incoming, "/s/a.css")
    outgoing = compose(text, changes, before, Granularity.START_AND_END)
    after = Tracer(outgoing, "/s/a.css")
    shifter = ColumnShifter(changes)
    for edit in changes:
        line, column = edit.token.line, edit.token.column
        expected = before.trace(line, column)
        traced = after.trace(line, shifter.shift(line, column))
        assert (traced.source, traced.line, traced.column) == (
            expected.source,
            expected.line,
            expected.column,
        )
