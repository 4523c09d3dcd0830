from __future__ import annotations

from spanscope.parsing.ir import DiagnosticKind, SpanKind
from spanscope.parsing.structure import extract_spans, owned_tokens
from spanscope.parsing.tokenizer import tokenize

from tests._fixtures.spans import by_name


def _spans(source: str, language: str = "c-like"):
    return extract_spans(list(tokenize(source, language, "t.c")), "t.c", language)


def test_metrics_fixture_spans(fixture_bytes) -> None:
    result = _spans(fixture_bytes("metrics_edge_cases.c").decode("utf-8"))
    names = [s.name for s in result.spans]

    assert names == [
        "empty_function",
        "high_complexity",
        "OuterStruct",
        "InnerStruct",
        "DeepStruct",
        "use_macro",
        "this_is_a_very_long_function_name_that_might_cause_issues_with_formatting_or_display_in_some_tools",
        "one_liner",
        "whitespace",
        "main",
    ]
    assert result.diagnostics == ()


def test_nested_structs_record_parent_and_depth(fixture_bytes) -> None:
    spans = _spans(fixture_bytes("metrics_edge_cases.c").decode("utf-8")).spans
    outer = by_name(spans, "OuterStruct")
    inner = by_name(spans, "InnerStruct")
    deep = by_name(spans, "DeepStruct")

    assert (outer.kind, outer.depth, outer.parent_id) == (SpanKind.STRUCT, 0, None)
    assert (inner.kind, inner.depth, inner.parent_id) == (SpanKind.NESTED_TYPE, 1, outer.id)
    assert (deep.kind, deep.depth, deep.parent_id) == (SpanKind.NESTED_TYPE, 2, inner.id)
    assert inner.keyword == "struct"


def test_containment_and_sibling_invariants(fixture_bytes) -> None:
    for name in ("metrics_edge_cases.c", "unicode_and_unusual.cpp", "docs_edge_cases.cpp"):
        spans = _spans(fixture_bytes(name).decode("utf-8")).spans
        index = {s.id: s for s in spans}
        for span in spans:
            if span.parent_id is not None:
                parent = index[span.parent_id]
                assert parent.contains(span)
                assert span.depth == parent.depth + 1
        for a in spans:
            for b in spans:
                if a.id < b.id and a.parent_id == b.parent_id:
                    assert a.end <= b.start or b.end <= a.start


def test_unicode_and_class_members(fixture_bytes) -> None:
    spans = _spans(fixture_bytes("unicode_and_unusual.cpp").decode("utf-8")).spans
    names = [s.name for s in spans]

    assert "打印消息" in names
    assert names.count("DataProcessor") == 2  # class and constructor
    cls = next(s for s in spans if s.name == "DataProcessor" and s.kind is SpanKind.CLASS)
    ctor = next(s for s in spans if s.name == "DataProcessor" and s.kind is SpanKind.FUNCTION)
    assert ctor.parent_id == cls.id
    assert by_name(spans, "process").parent_id == cls.id
    assert by_name(spans, "getResults").parent_id == cls.id
    assert by_name(spans, "NestedTemplate").kind is SpanKind.NESTED_TYPE
    assert by_name(spans, "convert").depth == 2
    # the multi-line STRANGE_MACRO definition opens nothing
    assert "STRANGE_MACRO" not in names
    assert "calculate" in names and "mixedIndentation" in names


def test_one_line_body_and_prototype() -> None:
    spans = _spans("int proto(int x);\nint one_liner(int x) { return x * 3; }\n").spans
    assert [s.name for s in spans] == ["one_liner"]
    assert spans[0].start_line == spans[0].end_line == 2


def test_control_flow_and_initializers_are_not_spans() -> None:
    source = (
        "void f(int n) {\n"
        "    int a[] = {1, 2};\n"
        "    for (int i = 0; i < n; i++) { if (i) { } else { } }\n"
        "    while (n--) { }\n"
        "    do { } while (0);\n"
        "    switch (n) { case 1: break; }\n"
        "    FOREACH(item) { }\n"
        "}\n"
    )
    spans = _spans(source).spans
    assert [s.name for s in spans] == ["f"]


def test_lambdas_and_qualified_methods() -> None:
    source = (
        "int Widget::size() const {\n"
        "    auto twice = [](int v) { return v * 2; };\n"
        "    return twice(n_);\n"
        "}\n"
        "Widget::Widget(int n) : n_(n), m_(0) { }\n"
        "bool operator==(const Widget& a, const Widget& b) { return a.n_ == b.n_; }\n"
    )
    spans = _spans(source).spans
    size = by_name(spans, "size")
    lam = by_name(spans, "<lambda>")

    assert size.qualified_name == "Widget::size"
    assert lam.parent_id == size.id and lam.kind is SpanKind.FUNCTION
    assert by_name(spans, "Widget").qualified_name == "Widget::Widget"
    assert by_name(spans, "operator==").kind is SpanKind.FUNCTION


def test_blocks_and_type_kinds() -> None:
    source = (
        'extern "C" {\n'
        "int c_api(void) { return 0; }\n"
        "}\n"
        "namespace outer::inner {\n"
        "enum class Color { Red, Green };\n"
        "union Value { int i; float f; };\n"
        "class Shape : public Base { };\n"
        "}\n"
        "struct Point p = { 1, 2 };\n"
    )
    spans = _spans(source).spans
    block = spans[0]
    ns = by_name(spans, "outer::inner")

    assert (block.kind, block.name) == (SpanKind.BLOCK, 'extern "C"')
    assert by_name(spans, "c_api").parent_id == block.id
    assert ns.kind is SpanKind.BLOCK
    assert by_name(spans, "Color").kind is SpanKind.ENUM
    assert by_name(spans, "Value").kind is SpanKind.UNION
    assert by_name(spans, "Shape").kind is SpanKind.CLASS
    assert by_name(spans, "Color").depth == 1
    assert "Point" not in [s.name for s in spans]


def test_stray_closing_brace_is_reported_and_skipped() -> None:
    result = _spans("}\nint after(void) { return 1; }\n")
    assert [d.kind for d in result.diagnostics] == [DiagnosticKind.BRACE_MISMATCH]
    assert result.diagnostics[0].offset == 0
    assert [s.name for s in result.spans] == ["after"]


def test_unclosed_scope_drops_span_and_reparents_children() -> None:
    source = "namespace a {\nint f(void) { return 0; }\n"
    result = _spans(source)
    assert [d.kind for d in result.diagnostics] == [DiagnosticKind.BRACE_MISMATCH]
    assert result.diagnostics[0].offset == len(source)
    f = by_name(result.spans, "f")
    assert (f.parent_id, f.depth) == (None, 0)


def test_generic_language_functions() -> None:
    spans = _spans("func add(a, b) {\n  return a + b\n}\n", "unknown").spans
    assert [s.name for s in spans] == ["add"]


def test_owned_tokens_exclude_nested_spans() -> None:
    source = "void outer() { struct In { int q; }; int x; }"
    tokens = list(tokenize(source))
    spans = extract_spans(tokens).spans
    outer = by_name(spans, "outer")
    inner = by_name(spans, "In")

    owned = [t.text for t in owned_tokens(tokens, outer, [inner], body_only=True)]
    assert owned == ["{", ";", "int", "x", ";", "}"]


def test_brace_initialized_members_stay_inside_the_constructor(run_file) -> None:
    source = (
        "class Foo {\n"
        "public:\n"
        "    Foo(int x) : a(x), b{x} { if (x > 0) { a = 1; } }\n"
        "    Foo() : a{}, b(0) {}\n"
        "    int a; int b;\n"
        "};\n"
    )
    report = run_file(source)
    cls, full, empty = report.spans
    data = source.encode("utf-8")

    assert [s.kind for s in report.spans] == [SpanKind.CLASS, SpanKind.FUNCTION, SpanKind.FUNCTION]
    assert data[full.start:full.end].decode() == "Foo(int x) : a(x), b{x} { if (x > 0) { a = 1; } }"
    assert data[empty.start:empty.end].decode() == "Foo() : a{}, b(0) {}"
    assert full.parent_id == empty.parent_id == cls.id
    scores = {c.span_id: c.cyclomatic for c in report.complexity}
    assert (scores[cls.id], scores[full.id], scores[empty.id]) == (1, 2, 1)


def test_kr_parameter_declarations() -> None:
    source = "int add(a, b)\n    int a;\n    int b;\n{\n    return a + b;\n}\nint f(void);\nint g(void) { return 0; }\n"
    spans = _spans(source).spans

    assert [s.name for s in spans] == ["add", "g"]
    assert spans[0].start == 0
    assert spans[0].start_line == 1


def test_macro_invocation_line_is_not_part_of_the_header() -> None:
    source = "DECLARE_THING(x)\nvoid make(void) { }\nREGISTER(make) {\n}\n"
    spans = _spans(source).spans

    assert [s.name for s in spans] == ["make", "REGISTER"]
    assert spans[0].start == source.index("void")


def test_stray_backtick_does_not_hide_later_spans() -> None:
    spans = _spans("int a() { return 1; }\n#define Q `\nint b() { return 2; }\n").spans
    assert [s.name for s in spans] == ["a", "b"]
