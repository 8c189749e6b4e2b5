import pytest

from scp_mcp_server.scp.models import SearchDocument, SearchParams
from scp_mcp_server.scp.search_engine import (
    ScpSearchEngine,
    clamp_limit,
    make_snippet,
    parse_date,
    tokenize,
)


def make_doc(doc_id, title="Untitled", text="", **kwargs):
    return SearchDocument(
        id=f"items:{doc_id}",
        link=doc_id,
        title=title,
        url=f"https://scp-wiki.wikidot.com/{doc_id}",
        page_id=doc_id,
        text=text,
        **kwargs,
    )


@pytest.fixture
def engine():
    engine = ScpSearchEngine()
    engine.add(make_doc("scp-173", title="SCP-173", text="The statue moves.", rating=5000,
                        tags=["euclid", "scp"], series="series-1",
                        created_at="2008-07-25T20:49:00"))
    engine.add(make_doc("statue-garden", title="The Statue Garden", text="A garden.",
                        rating=10, tags=["tale"], created_at="2015-03-01"))
    engine.add(make_doc("scp-096", title="SCP-096", text="The shy guy screams.",
                        rating=3000, tags=["euclid", "scp"], series="series-1",
                        created_at="2012-01-01T00:00:00Z"))
    engine.add(make_doc("undated", title="Undated", text="No date here.",
                        rating=20, created_at="sometime in 2010"))
    return engine


def links(response):
    return [r.link for r in response.results]


def test_tokenize():
    assert tokenize("SCP-173: The Statue!") == ["scp", "173", "the", "statue"]


# ---------------------------------------------------------------------
# Ranking
# ---------------------------------------------------------------------

def test_title_match_outranks_body_match(engine):
    response = engine.search(SearchParams(query="statue"))
    assert links(response) == ["statue-garden", "scp-173"]


def test_query_without_matches(engine):
    assert engine.search(SearchParams(query="keter")).results == []


def test_empty_query_returns_all_documents(engine):
    response = engine.search(SearchParams(query="   "))
    assert len(response.results) == 4


def test_re_adding_an_id_replaces_the_document(engine):
    engine.add(make_doc("scp-096", title="SCP-096", text="Now about a statue."))
    assert len(engine) == 4
    assert "scp-096" in links(engine.search(SearchParams(query="statue")))
    assert engine.search(SearchParams(query="shy")).results == []


def test_empty_engine():
    assert ScpSearchEngine().search(SearchParams(query="statue")).results == []


# ---------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------

def test_tags_require_every_tag_case_insensitively(engine):
    response = engine.search(SearchParams(tags=["EUCLID", " scp ", ""]))
    assert sorted(links(response)) == ["scp-096", "scp-173"]


def test_series_filter(engine):
    response = engine.search(SearchParams(query="the", series="series-1"))
    assert sorted(links(response)) == ["scp-096", "scp-173"]


def test_rating_bounds_are_inclusive(engine):
    response = engine.search(SearchParams(rating_min=10, rating_max=3000))
    assert sorted(links(response)) == ["scp-096", "statue-garden", "undated"]


def test_date_filters_fail_open(engine):
    response = engine.search(SearchParams(created_at_from="2011-01-01"))
    # The undated document has an unparseable date and is never excluded
    assert sorted(links(response)) == ["scp-096", "statue-garden", "undated"]

    response = engine.search(
        SearchParams(created_at_from="2008-01-01", created_at_to="2013-01-01")
    )
    assert sorted(links(response)) == ["scp-096", "scp-173", "undated"]


def test_unparseable_filter_date_is_ignored(engine):
    response = engine.search(SearchParams(created_at_from="last tuesday"))
    assert len(response.results) == 4


def test_parse_date():
    assert parse_date("2012-01-01T00:00:00Z") == parse_date("2012-01-01T00:00:00")
    assert parse_date("") is None
    assert parse_date("garbage") is None


# ---------------------------------------------------------------------
# Sorting and Limits
# ---------------------------------------------------------------------

def test_sort_by_rating(engine):
    response = engine.search(SearchParams(sort="rating"))
    assert links(response) == ["scp-173", "scp-096", "undated", "statue-garden"]


def test_sort_by_created_at(engine):
    response = engine.search(SearchParams(sort="created_at", tags=["euclid"]))
    assert links(response) == ["scp-096", "scp-173"]


@pytest.mark.parametrize(
    "limit, expected",
    [(None, 20), (0, 1), (-5, 1), (3.7, 3), (50, 50), (500, 50), (float("nan"), 20)],
)
def test_clamp_limit(limit, expected):
    assert clamp_limit(limit) == expected


def test_limit_truncates_results():
    engine = ScpSearchEngine()
    for i in range(60):
        engine.add(make_doc(f"doc-{i}", title=f"Doc {i}", text="common words"))

    assert len(engine.search(SearchParams(query="common")).results) == 20
    assert len(engine.search(SearchParams(query="common", limit=100)).results) == 50
    assert len(engine.search(SearchParams(query="common", limit=0)).results) == 1


# ---------------------------------------------------------------------
# Snippets
# ---------------------------------------------------------------------

def test_snippet_without_query_is_a_prefix():
    snippet = make_snippet("x" * 201, "", rank=1)
    assert snippet == "x" * 200 + "…"
    assert len(snippet) == 201


def test_short_text_snippet_has_no_ellipsis():
    assert make_snippet("  short\n\n text  ", "", rank=1) == "short text"
    assert make_snippet("", "statue", rank=1) == ""


def test_snippet_centers_on_first_match():
    text = "a" * 100 + " statue " + "b" * 300
    snippet = make_snippet(text, "Statue", rank=1)
    assert snippet.startswith("…")
    assert snippet.endswith("…")
    assert "statue" in snippet
    assert snippet == "…" + text[21:221] + "…"


def test_snippet_fallback_window_depends_on_rank():
    text = "z" * 500
    assert make_snippet(text, "statue", rank=1) == "…" + "z" * 200 + "…"
    assert make_snippet(text, "statue", rank=2) == make_snippet(text, "statue", rank=1)

    numbered = "".join(str(i % 10) for i in range(500))
    first = make_snippet(numbered, "statue", rank=1)
    second = make_snippet(numbered, "statue", rank=2)
    assert first == "…" + numbered[40:240] + "…"
    assert second == "…" + numbered[80:280] + "…"


def test_snippet_fallback_is_clamped_to_text_end():
    text = "".join(str(i % 10) for i in range(250))
    assert make_snippet(text, "statue", rank=10) == "…" + text[50:250]


def test_search_result_snippets(engine):
    response = engine.search(SearchParams(query="shy"))
    assert response.results[0].snippet == "The shy guy screams."


def test_body_match_ranks_first_regardless_of_rating():
    engine = ScpSearchEngine()
    engine.add(make_doc("popular", title="Popular", text="A famous keter.", rating=9000))
    engine.add(make_doc("obscure", title="Obscure", text="A small statue.", rating=-5))
    engine.add(make_doc("middling", title="Middling", text="A small keter.", rating=100))

    response = engine.search(SearchParams(query="statue"))
    assert links(response)[0] == "obscure"


def test_tag_series_and_limit_combined():
    engine = ScpSearchEngine()
    for i in range(5):
        even = i % 2 == 0
        engine.add(make_doc(
            f"doc-{i}",
            title=f"Doc {i}",
            text="filler",
            tags=["even"] if even else ["odd"],
            series="series-1" if even else "series-2",
        ))

    response = engine.search(SearchParams(tags=["even"], series="series-1", limit=2))
    assert len(response.results) == 2
    for result in response.results:
        assert "even" in result.tags
        assert result.series == "series-1"


def test_empty_query_snippet_of_long_body():
    engine = ScpSearchEngine()
    engine.add(make_doc("long", title="Long", text="y" * 210))
    snippet = engine.search(SearchParams()).results[0].snippet
    assert len(snippet) == 201
    assert snippet.endswith("…")


def test_term_frequency_survives_rebuilds():
    engine = ScpSearchEngine()
    engine.add(make_doc("once", title="Once", text="statue garden wall"))
    engine.add(make_doc("thrice", title="Thrice", text="statue statue statue"))
    assert links(engine.search(SearchParams(query="statue"))) == ["thrice", "once"]

    # Adding after a search forces the scorers to be rebuilt from stored counts
    engine.add(make_doc("never", title="Never", text="garden wall only"))
    assert links(engine.search(SearchParams(query="statue"))) == ["thrice", "once"]
    assert links(engine.search(SearchParams(query="only"))) == ["never"]
