"""Unit tests for blog/store.py -- posts, tags, comments, and listing filters.

Covers:
- slugify() normalisation and the blog-<ms> fallback
- unique slugs via numeric suffixes; slugs fixed after creation
- default excerpt
- list_posts() filters: author, status, search, tags, pagination
- published tag cloud
- comments ordering and delete cascade
"""

import re

import pytest

from blog.models import Comment, Post
from blog.store import BlogStore, make_excerpt, slugify
from core.database import Database

CONTENT = "A reasonably long body of text for a post."


@pytest.fixture
def store():
    db = Database("sqlite:///:memory:")
    yield BlogStore(db)
    db.dispose()


def _post(store: BlogStore, title: str, author_id: int = 1, **kwargs) -> int:
    return store.create_post(Post(title=title, content=kwargs.pop("content", CONTENT), author_id=author_id, **kwargs))


class TestSlugs:
    @pytest.mark.parametrize(
        "title, expected",
        [
            ("Hello World", "hello-world"),
            ("  Python 3.12: What's New?  ", "python-3-12-what-s-new"),
            ("--Already--Hyphenated--", "already-hyphenated"),
            ("MiXeD   Case", "mixed-case"),
            ("Caf\u00e9 Cr\u00e8me", "cafe-creme"),
        ],
    )
    def test_slugify(self, title: str, expected: str) -> None:
        assert slugify(title) == expected

    def test_unusable_title_falls_back(self) -> None:
        assert re.fullmatch(r"blog-\d+", slugify("!!!"))

    def test_collisions_get_suffixes(self, store: BlogStore) -> None:
        slugs = [store.get_post(_post(store, "Same Title")).slug for _ in range(3)]
        assert slugs == ["same-title", "same-title-2", "same-title-3"]

    def test_slug_survives_title_change(self, store: BlogStore) -> None:
        pid = _post(store, "Original Title")
        store.update_post(pid, title="Renamed Title")
        post = store.get_post(pid)
        assert post.title == "Renamed Title"
        assert post.slug == "original-title"

    def test_lookup_by_id_or_slug(self, store: BlogStore) -> None:
        pid = _post(store, "Findable Post")
        assert store.find_post(str(pid)).id == pid
        assert store.find_post("findable-post").id == pid
        assert store.find_post("missing") is None

    def test_numeric_slug_still_reachable(self, store: BlogStore) -> None:
        pid = _post(store, "2024")
        assert store.find_post("2024").id == pid


class TestExcerpt:
    def test_default_excerpt(self, store: BlogStore) -> None:
        body = "x" * 400
        pid = _post(store, "Long Post", content=body)
        assert store.get_post(pid).excerpt == "x" * 150 + "..."
        assert make_excerpt(body) == "x" * 150 + "..."

    def test_supplied_excerpt_kept(self, store: BlogStore) -> None:
        pid = _post(store, "Custom Excerpt", excerpt="My summary")
        assert store.get_post(pid).excerpt == "My summary"


class TestTags:
    def test_tags_roundtrip_in_order_without_duplicates(self, store: BlogStore) -> None:
        pid = _post(store, "Tagged", tags=["python", "web", "python"])
        assert store.get_post(pid).tags == ["python", "web"]

    def test_update_replaces_tags(self, store: BlogStore) -> None:
        pid = _post(store, "Retag Me", tags=["old"])
        store.update_post(pid, tags=["new", "fresh"])
        assert store.get_post(pid).tags == ["new", "fresh"]

    def test_tag_cloud_only_counts_published(self, store: BlogStore) -> None:
        _post(store, "Pub One", status="published", tags=["python", "web"])
        _post(store, "Pub Two", status="published", tags=["python", "api"])
        _post(store, "Draft", status="draft", tags=["secret"])
        assert store.list_published_tags() == ["api", "python", "web"]


class TestListing:
    @pytest.fixture
    def seeded(self, store: BlogStore) -> BlogStore:
        _post(store, "First Python Post", author_id=1, status="published", tags=["python"])
        _post(store, "Second Draft", author_id=1, status="draft", tags=["misc"])
        _post(store, "Third About Rust", author_id=2, status="published", tags=["rust"])
        _post(store, "Fourth Post", author_id=2, status="published", content="Mentions PYTHON in the body.")
        return store

    def test_newest_first(self, seeded: BlogStore) -> None:
        titles = [p.title for p in seeded.list_posts().posts]
        assert titles == ["Fourth Post", "Third About Rust", "Second Draft", "First Python Post"]

    def test_drafts_included_without_status_filter(self, seeded: BlogStore) -> None:
        assert seeded.list_posts().total == 4
        assert seeded.list_posts(status="published").total == 3
        assert [p.title for p in seeded.list_posts(status="draft").posts] == ["Second Draft"]

    def test_author_filter(self, seeded: BlogStore) -> None:
        assert {p.author_id for p in seeded.list_posts(author_id=2).posts} == {2}

    def test_search_is_case_insensitive_over_title_and_content(self, seeded: BlogStore) -> None:
        titles = {p.title for p in seeded.list_posts(search="python").posts}
        assert titles == {"First Python Post", "Fourth Post"}

    def test_search_treats_wildcards_literally(self, seeded: BlogStore) -> None:
        assert seeded.list_posts(search="%").total == 0

    def test_search_folds_non_ascii_case(self, store: BlogStore) -> None:
        _post(store, "Émile Über Alles", content="Größe und Ärger im Straßenverkehr.")
        assert store.list_posts(search="émile").total == 1
        assert store.list_posts(search="ÜBER").total == 1
        assert store.list_posts(search="ärger").total == 1
        assert store.list_posts(search="zürich").total == 0

    def test_tags_match_any(self, seeded: BlogStore) -> None:
        titles = {p.title for p in seeded.list_posts(tags=["python", "rust"]).posts}
        assert titles == {"First Python Post", "Third About Rust"}

    def test_pagination(self, seeded: BlogStore) -> None:
        page = seeded.list_posts(page=2, limit=3)
        assert page.total == 4
        assert page.pages == 2
        assert [p.title for p in page.posts] == ["First Python Post"]


class TestCommentsAndDelete:
    def test_comments_oldest_first(self, store: BlogStore) -> None:
        pid = _post(store, "Discussed")
        first = store.create_comment(Comment(content="first", author_id=2, post_id=pid))
        store.create_comment(Comment(content="reply", author_id=1, post_id=pid, parent_comment_id=first))
        comments = store.list_comments(pid)
        assert [c.content for c in comments] == ["first", "reply"]
        assert comments[1].parent_comment_id == first

    def test_delete_removes_comments_and_tags(self, store: BlogStore) -> None:
        pid = _post(store, "Doomed", status="published", tags=["gone"])
        cid = store.create_comment(Comment(content="bye", author_id=2, post_id=pid))
        assert store.delete_post(pid) is True
        assert store.get_post(pid) is None
        assert store.get_comment(cid) is None
        assert store.list_published_tags() == []

    def test_delete_and_update_missing(self, store: BlogStore) -> None:
        assert store.delete_post(999) is False
        assert store.update_post(999, title="Nope") is False

    def test_update_rejects_immutable_fields(self, store: BlogStore) -> None:
        pid = _post(store, "Fixed Author")
        with pytest.raises(ValueError):
            store.update_post(pid, author_id=5)
