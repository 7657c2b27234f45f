"""
Full-text search against a throwaway PostgreSQL container.
"""

import pytest

pytestmark = pytest.mark.integration

SEARCH_URL = "/api/v1/search"


@pytest.fixture
def catalog(live):
    def author(first, last):
        return live.post("/api/v1/authors", json={"first_name": first, "last_name": last}).json()["id"]

    def book(title, isbn, description, author_ids):
        response = live.post(
            "/api/v1/books",
            json={"title": title, "isbn": isbn, "description": description, "author_ids": author_ids},
        )
        assert response.status_code == 201, response.text

    bloch = author("Joshua", "Bloch")
    goetz = author("Brian", "Goetz")
    martin = author("Robert", "Martin")
    fowler = author("Martin", "Fowler")

    book("Effective Java", "9780134685991", "Best practices for the Java platform", [bloch])
    book("Java Concurrency in Practice", "9780321349606", "Threads, locks and executors", [goetz, bloch])
    book("Clean Code", "9780132350884", "A handbook of agile software craftsmanship and refactoring", [martin])
    book("Refactoring", "9780134757599", "Improving the design of existing code", [fowler])
    return live


def _search(client, q, **params):
    response = client.get(SEARCH_URL, params={"q": q, **params})
    assert response.status_code == 200, response.text
    return response.json()


def test_search_by_title(catalog):
    body = _search(catalog, "effective java")
    assert body["content"][0]["title"] == "Effective Java"


def test_search_by_author_name(catalog):
    titles = {r["title"] for r in _search(catalog, "bloch")["content"]}
    assert titles == {"Effective Java", "Java Concurrency in Practice"}


def test_multi_term_query_requires_all_terms(catalog):
    titles = [r["title"] for r in _search(catalog, "java concurrency")["content"]]
    assert titles == ["Java Concurrency in Practice"]


def test_multi_author_book_appears_once_with_all_authors(catalog):
    results = _search(catalog, "concurrency")["content"]
    assert len(results) == 1
    assert {a["last_name"] for a in results[0]["authors"]} == {"Goetz", "Bloch"}


def test_title_match_ranks_above_description_match(catalog):
    titles = [r["title"] for r in _search(catalog, "refactoring")["content"]]
    assert titles == ["Refactoring", "Clean Code"]


def test_no_results(catalog):
    body = _search(catalog, "kubernetes")
    assert body["content"] == []
    assert body["total_elements"] == 0


def test_stop_words_only(catalog):
    assert _search(catalog, "the and of")["content"] == []


def test_blank_query_is_rejected(catalog):
    response = catalog.get(SEARCH_URL, params={"q": "  "})
    assert response.status_code == 400


def test_search_pagination(catalog):
    body = _search(catalog, "java", size=1, page=1)
    assert body["total_elements"] == 2
    assert len(body["content"]) == 1
    assert body["last"] is True
