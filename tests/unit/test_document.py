from src.pipeline.document import (
    LINE_HEIGHT_PX,
    MIN_VIEWPORT_PX,
    ManualMutationSource,
    MutationBatch,
    StaticDocument,
)


HTML = """
<html><head><title>Profile</title><script>var x = 1;</script></head>
<body>
  <header><a href="/feed">Home</a></header>
  <main>
    <section id="about-card" data-section="summary">
      <p class="intro">Hello   there,
        friend</p>
      <div><span class="deep">Nested</span></div>
    </section>
  </main>
</body></html>
"""


def test_queries_and_text_normalization():
    doc = StaticDocument(HTML, url="https://www.linkedin.com/in/jane-doe/")
    node = doc.query_first("p.intro")
    assert doc.text(node) == "Hello there, friend"
    assert len(doc.query_all("span, p")) == 2
    assert doc.query_first("p.missing") is None
    assert doc.text(None) == ""


def test_invalid_selector_behaves_as_no_match():
    doc = StaticDocument(HTML)
    assert doc.query_first("p[[[") is None
    assert doc.query_all("p[[[") == []


def test_scoped_query_and_attr():
    doc = StaticDocument(HTML)
    section = doc.query_first("section")
    assert doc.attr(section, "data-section") == "summary"
    assert doc.attr(section, "missing") is None
    assert doc.text(doc.query_first(".deep", root=section)) == "Nested"


def test_closest_walks_up_including_self():
    doc = StaticDocument(HTML)
    span = doc.query_first(".deep")
    section = doc.closest(span, "section")
    assert doc.attr(section, "id") == "about-card"
    assert doc.closest(section, "section").mem_id == section.mem_id
    assert doc.closest(doc.query_first("header a"), "section") is None


def test_layout_stacks_leaf_text_in_document_order():
    doc = StaticDocument(HTML)
    frags = doc.text_fragments()
    assert [f.text for f in frags] == ["Home", "Hello there, friend", "Nested"]
    assert [f.top for f in frags] == [0, LINE_HEIGHT_PX, 2 * LINE_HEIGHT_PX]
    assert doc.vertical_offset(doc.query_first(".deep")) == 2 * LINE_HEIGHT_PX


def test_inline_formatting_stays_in_one_fragment():
    doc = StaticDocument(
        "<html><body><p class='bio'>First line<br>second <b>bold</b> part</p><div><span>Block</span></div></body></html>"
    )
    frags = doc.text_fragments()
    assert [f.text for f in frags] == ["First line second bold part", "Block"]
    assert doc.vertical_offset(doc.query_first("p.bio b")) == 0


def test_viewport_has_a_floor():
    doc = StaticDocument("<html><body><p>short</p></body></html>")
    assert doc.viewport_height() == MIN_VIEWPORT_PX


def test_long_text_takes_several_lines():
    long_text = "word " * 40  # 200 chars -> 3 lines of 80
    doc = StaticDocument(f"<html><body><p>{long_text}</p><p>after</p></body></html>")
    frags = doc.text_fragments()
    assert frags[1].text == "after"
    assert frags[1].top == 3 * LINE_HEIGHT_PX


def test_manual_mutation_source_delivers_until_cancelled():
    source = ManualMutationSource()
    seen = []
    sub = source.subscribe(seen.append)
    source.emit(MutationBatch(added_nodes=2))
    assert source.subscriber_count == 1
    sub.cancel()
    sub.cancel()
    source.emit(MutationBatch(added_nodes=5))
    assert [b.added_nodes for b in seen] == [2]
    assert source.subscriber_count == 0
    assert sub.active is False
