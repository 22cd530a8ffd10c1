import json

import pytest

from cssrebase.errors import MalformedSourceMap
from cssrebase.sourcemap import Mapping, SourceMap, vlq_decode, vlq_encode


def raw_map(mappings, sources=("a.scss",), **extra):
    data = {"version": 3, "sources": list(sources), "names": [], "mappings": mappings}
    data.update(extra)
    return data


def test_vlq():
    assert vlq_encode(0) == "A"
    assert vlq_encode(1) == "C"
    assert vlq_encode(-1) == "D"
    assert vlq_encode(16) == "gB"
    assert vlq_encode(0, 0, 1, 0) == "AACA"
    assert vlq_decode("gB") == [16]
    assert vlq_decode("AACA") == [0, 0, 1, 0]
    assert vlq_decode(vlq_encode(-1234, 98765)) == [-1234, 98765]


def test_parse():
    source_map = SourceMap.from_json(json.dumps(raw_map("AAAA;AACA")))
    assert source_map.sources == ["a.scss"]
    assert source_map.mappings == [Mapping(0, 0, 0, 0, 0), Mapping(1, 0, 0, 1, 0)]


def test_encode():
    source_map = SourceMap(
        sources=["a.scss"],
        mappings=[
            Mapping(2, 2, 0, 3, 1),
            Mapping(0, 0, 0, 0, 0),
            Mapping(0, 5, 0, 0, 7),
        ],
    )
    assert source_map.to_dict()["mappings"] == "AAAA,KAAO;;EAGN"
    assert SourceMap.from_json(source_map.to_dict()) == source_map


def test_keeps_optional_fields():
    data = raw_map(
        "AAAAA",
        sourceRoot="/src/",
        file="out.css",
        sourcesContent=[".a{}"],
        names=["a"],
    )
    source_map = SourceMap.from_json(data)
    assert source_map.mappings == [Mapping(0, 0, 0, 0, 0, 0)]
    assert source_map.to_dict() == data


def test_generated_only_segments():
    source_map = SourceMap.from_json(raw_map("AAAA,E"))
    assert source_map.mappings == [Mapping(0, 0, 0, 0, 0), Mapping(0, 2)]
    assert source_map.to_dict()["mappings"] == "AAAA,E"


@pytest.mark.parametrize(
    "data",
    [
        "not json",
        [],
        raw_map("AAAA", version=2),
        {"version": 3, "mappings": "AAAA"},
        raw_map(["AAAA"]),
        raw_map("ACAA"),
        raw_map("A!AA"),
        raw_map("AA"),
        raw_map("AAAg"),
        raw_map("AADA"),
        raw_map("AAAAC"),
        {"version": 3, "sections": []},
    ],
)
def test_malformed(data):
    with pytest.raises(MalformedSourceMap):
        SourceMap.from_json(data)


def test_identity():
    source_map = SourceMap.identity("/src/a.css", "a{}\nb{}\n")
    assert source_map.sources == ["/src/a.css"]
    assert [m.generated for m in source_map.mappings] == [(0, 0), (1, 0), (2, 0)]
    assert all(m.generated_line == m.original_line for m in source_map.mappings)


def test_concat():
    first = SourceMap(sources=["a.css"], mappings=[Mapping(0, 0, 0, 0, 0)])
    second = SourceMap(
        sources=["b.css"],
        source_root="lib",
        mappings=[Mapping(0, 0, 0, 0, 0), Mapping(1, 2, 0, 1, 2)],
    )
    combined = SourceMap.concat([(2, first), (1, None), (2, second)], file="all.css")
    assert combined.file == "all.css"
    assert combined.sources == ["a.css", "lib/b.css"]
    assert combined.mappings == [
        Mapping(0, 0, 0, 0, 0),
        Mapping(3, 0, 1, 0, 0),
        Mapping(4, 2, 1, 1, 2),
    ]
