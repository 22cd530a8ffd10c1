from cssrebase.sourcemap import Mapping, SourceMap
from cssrebase.tracer import Tracer

SOURCES = ["feature/index.scss", "index.scss"]


def tracer(*mappings):
    return Tracer(SourceMap(sources=SOURCES, mappings=mappings), "/build/out.css")


def origin(traced):
    return (traced.source, traced.line, traced.column, traced.mapped)


def test_without_map_is_identity():
    traced = Tracer(None, "/build/out.css").trace(4, 7)
    assert origin(traced) == ("/build/out.css", 4, 7, True)


def test_nearest_preceding_on_same_line():
    t = tracer(Mapping(0, 0, 0, 0, 0), Mapping(1, 2, 0, 1, 2), Mapping(1, 30, 0, 1, 40))
    assert origin(t.trace(1, 10)) == ("feature/index.scss", 1, 2, True)
    assert origin(t.trace(1, 30)) == ("feature/index.scss", 1, 40, True)


def test_looks_back_across_lines():
    t = tracer(Mapping(0, 0, 0, 0, 0), Mapping(1, 2, 0, 1, 2), Mapping(3, 0, 1, 1, 0))
    assert origin(t.trace(2, 5)) == ("feature/index.scss", 1, 2, True)


def test_detects_transition_between_sources():
    t = tracer(
        Mapping(0, 0, 0, 0, 0),
        Mapping(1, 2, 0, 1, 2),
        Mapping(3, 0, 1, 1, 0),
        Mapping(4, 2, 1, 2, 2),
    )
    assert t.trace(1, 20).source == "feature/index.scss"
    assert t.trace(3, 0).source == "index.scss"
    assert origin(t.trace(4, 9)) == ("index.scss", 2, 2, True)


def test_later_duplicate_wins():
    t = tracer(Mapping(0, 0, 0, 0, 0), Mapping(0, 0, 1, 5, 5))
    assert origin(t.trace(0, 3)) == ("index.scss", 5, 5, True)


def test_before_first_mapping_falls_back():
    t = tracer(Mapping(2, 4, 0, 0, 0))
    assert origin(t.trace(0, 1)) == ("/build/out.css", 0, 1, False)


def test_sourceless_mapping_falls_back():
    t = tracer(Mapping(0, 0, 0, 0, 0), Mapping(0, 3))
    assert origin(t.trace(0, 5)) == ("/build/out.css", 0, 5, False)
    assert origin(t.trace(0, 2)) == ("feature/index.scss", 0, 0, True)
