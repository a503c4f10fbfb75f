"""Tests for pagination DTOs."""

import pytest

from kitchzero.services.dto import PaginatedResult, PaginationParams


class TestPaginationParams:
    def test_defaults(self):
        params = PaginationParams()
        assert params.page == 1
        assert params.per_page == 20
        assert params.offset() == 0

    def test_offset(self):
        assert PaginationParams(page=3, per_page=25).offset() == 50

    @pytest.mark.parametrize("kwargs", [{"page": 0}, {"per_page": 0}, {"per_page": 1001}])
    def test_invalid(self, kwargs):
        with pytest.raises(ValueError):
            PaginationParams(**kwargs)


class TestPaginatedResult:
    def test_pages_and_navigation(self):
        result = PaginatedResult(items=[1, 2], total=5, page=2, per_page=2)

        assert result.pages == 3
        assert result.has_next is True
        assert result.has_prev is True

    def test_empty_result_has_one_page(self):
        result = PaginatedResult(items=[], total=0, page=1, per_page=20)

        assert result.pages == 1
        assert result.has_next is False
        assert result.has_prev is False
