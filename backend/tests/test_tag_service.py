"""
MakerBench Backend — Tag Service Tests
========================================

What we test:
    ✅ get_or_create_tags creates missing tags and reuses existing ones
    ✅ Names are normalized and de-duplicated, order preserved
    ✅ Popular tags count approved bookmarks only
    ✅ Listing and name search ordered by name
"""

import pytest
from sqlalchemy import func, select

from makerbench.exceptions import TagValidationError
from makerbench.models.bookmark import Tag
from makerbench.services.tag_service import TagService


class TestGetOrCreateTags:

    def setup_method(self):
        self.service = TagService()

    @pytest.mark.asyncio
    async def test_creates_missing_tags(self, db_session):
        tags = await self.service.get_or_create_tags(db_session, ["React", "Dev Tools"])
        assert [tag.name for tag in tags] == ["react", "dev-tools"]
        assert all(tag.id for tag in tags)

    @pytest.mark.asyncio
    async def test_reuses_existing_tags(self, db_session):
        first = await self.service.get_or_create_tags(db_session, ["css"])
        second = await self.service.get_or_create_tags(db_session, ["CSS", "html"])

        assert second[0].id == first[0].id
        count = await db_session.execute(select(func.count()).select_from(Tag))
        assert count.scalar_one() == 2

    @pytest.mark.asyncio
    async def test_duplicates_collapsed_in_first_seen_order(self, db_session):
        tags = await self.service.get_or_create_tags(db_session, ["b", "a", "B ", "a"])
        assert [tag.name for tag in tags] == ["b", "a"]

    @pytest.mark.asyncio
    async def test_empty_input(self, db_session):
        assert await self.service.get_or_create_tags(db_session, []) == []

    @pytest.mark.asyncio
    async def test_blank_name_rejected(self, db_session):
        with pytest.raises(TagValidationError):
            await self.service.get_or_create_tags(db_session, ["ok", "   "])


class TestPopularTags:

    def setup_method(self):
        self.service = TagService()

    @pytest.mark.asyncio
    async def test_ranked_by_approved_usage(self, db_session, seeded_bookmarks):
        tags = await self.service.get_popular_tags(db_session, limit=20)
        assert [(tag.name, tag.count) for tag in tags] == [
            ("design", 3),
            ("color", 1),
            ("dev-tools", 1),
            ("whiteboard", 1),
        ]

    @pytest.mark.asyncio
    async def test_limit(self, db_session, seeded_bookmarks):
        tags = await self.service.get_popular_tags(db_session, limit=2)
        assert [tag.name for tag in tags] == ["design", "color"]

    @pytest.mark.asyncio
    async def test_no_bookmarks(self, db_session):
        await self.service.get_or_create_tags(db_session, ["orphan"])
        assert await self.service.get_popular_tags(db_session) == []


class TestListTags:

    def setup_method(self):
        self.service = TagService()

    @pytest.mark.asyncio
    async def test_lists_by_name(self, db_session, seeded_bookmarks):
        data = await self.service.list_tags(db_session)
        assert [tag.name for tag in data.tags] == ["color", "design", "dev-tools", "whiteboard"]
        assert data.pagination.total == 4

    @pytest.mark.asyncio
    async def test_search_normalizes_term(self, db_session, seeded_bookmarks):
        data = await self.service.search_tags(db_session, "Dev Tools")
        assert [tag.name for tag in data.tags] == ["dev-tools"]

    @pytest.mark.asyncio
    async def test_search_collapses_whitespace_runs(self, db_session, seeded_bookmarks):
        for term in ("Dev  Tools", "dev\ttools", "  DEV TOOLS "):
            data = await self.service.search_tags(db_session, term)
            assert [tag.name for tag in data.tags] == ["dev-tools"], term

    @pytest.mark.asyncio
    async def test_blank_search_lists_everything(self, db_session, seeded_bookmarks):
        data = await self.service.search_tags(db_session, "   ")
        assert data.pagination.total == 4

    @pytest.mark.asyncio
    async def test_pagination(self, db_session, seeded_bookmarks):
        data = await self.service.list_tags(db_session, limit=3, offset=0)
        assert len(data.tags) == 3
        assert data.pagination.has_more is True
