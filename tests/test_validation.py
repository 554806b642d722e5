"""
Unit tests for validation helpers.
Tests field rules, input sanitizing, identifiers and pagination.
"""

from datetime import date, timedelta

import pytest

from api.errors import MalformedIdentifier, ValidationFailure
from api.validation import (
    parse_pagination, sanitize_input, validate_author, validate_book, validate_object_id
)


def valid_book(**overrides):
    data = {
        "title": "A Wizard of Earthsea",
        "author_id": "64b7f0c2e4b0a1a2b3c4d5e6",
        "genre": "Fantasy",
        "price": 12.99,
    }
    data.update(overrides)
    return data


class TestValidateAuthor:
    """Test cases for author validation."""

    def test_valid_author(self):
        errors = validate_author({
            "name": "Ursula K. Le Guin",
            "bio": "x" * 1000,
            "birth_date": date(1929, 10, 21),
        })
        assert errors == []

    def test_name_required_on_create(self):
        assert validate_author({}) == ["Author name is required"]

    def test_name_not_required_on_update(self):
        assert validate_author({"bio": "New bio"}, partial=True) == []

    def test_explicit_null_name_rejected_on_update(self):
        assert validate_author({"name": None}, partial=True) == ["Author name is required"]

    def test_name_length_bounds_inclusive(self):
        assert validate_author({"name": "Al"}) == []
        assert validate_author({"name": "x" * 100}) == []
        assert validate_author({"name": "A"}) == ["Author name must be at least 2 characters"]
        assert validate_author({"name": "x" * 101}) == ["Author name must be at most 100 characters"]

    def test_birth_date_today_allowed(self):
        assert validate_author({"name": "Jo", "birth_date": date.today()}) == []

    def test_collects_every_violation(self):
        errors = validate_author({
            "name": "A",
            "bio": "x" * 1001,
            "birth_date": date.today() + timedelta(days=1),
        })
        assert errors == [
            "Author name must be at least 2 characters",
            "Biography must be at most 1000 characters",
            "Birth date cannot be in the future",
        ]

    def test_null_rejected_for_defaulted_fields(self):
        errors = validate_author({"bio": None, "nationality": None, "genres": None}, partial=True)
        assert errors == [
            "Biography cannot be null",
            "Nationality cannot be null",
            "Genres must be a list of strings",
        ]


class TestValidateBook:
    """Test cases for book validation."""

    def test_valid_book(self):
        assert validate_book(valid_book(
            published_year=1968, pages=183, tags=["magic"] * 10, isbn="0547773749"
        )) == []

    def test_required_fields_on_create(self):
        assert validate_book({}) == [
            "Book title is required",
            "Author ID is required",
            "Genre is required",
            "Price is required",
        ]

    def test_partial_update_checks_only_submitted_fields(self):
        assert validate_book({"pages": 250}, partial=True) == []
        assert validate_book({"pages": 0}, partial=True) == ["Pages must be between 1 and 10000"]

    def test_numeric_bounds_inclusive(self):
        current_year = date.today().year
        assert validate_book(valid_book(published_year=1000, pages=1, price=0)) == []
        assert validate_book(valid_book(published_year=current_year, pages=10000, price=1000)) == []

        errors = validate_book(valid_book(published_year=current_year + 1, pages=10001, price=1000.01))
        assert errors == [
            f"Published year must be between 1000 and {current_year}",
            "Pages must be between 1 and 10000",
            "Price must be between 0 and 1000",
        ]

    def test_malformed_author_id(self):
        assert validate_book(valid_book(author_id="123")) == [
            "Author ID must be a 24-character hexadecimal identifier"
        ]

    def test_title_too_long(self):
        assert validate_book(valid_book(title="x" * 201)) == ["Title must be at most 200 characters"]

    def test_too_many_tags(self):
        assert validate_book(valid_book(tags=["t"] * 11)) == ["Cannot have more than 10 tags"]

    def test_summary_too_long(self):
        assert validate_book(valid_book(summary="x" * 2001)) == ["Summary must be at most 2000 characters"]

    @pytest.mark.parametrize("isbn", ["123456789", "12345678901", "978054777374X", "abcdefghij"])
    def test_invalid_isbn(self, isbn):
        assert validate_book(valid_book(isbn=isbn)) == ["ISBN must be 10 or 13 digits"]

    def test_null_rejected_for_defaulted_fields(self):
        errors = validate_book(valid_book(in_stock=None, tags=None, summary=None, language=None))
        assert errors == [
            "inStock must be a boolean",
            "Tags must be a list of strings",
            "Summary cannot be null",
            "Language cannot be null",
        ]

    def test_false_in_stock_is_allowed(self):
        assert validate_book({"in_stock": False}, partial=True) == []


class TestSanitizeInput:
    """Test cases for input sanitizing."""

    def test_trims_strings(self):
        assert sanitize_input({"name": "  Jo  "}) == {"name": "Jo"}

    def test_drops_empty_strings(self):
        assert sanitize_input({"name": "   ", "genre": ""}) == {}

    def test_keeps_empty_bio_and_summary(self):
        assert sanitize_input({"bio": " ", "summary": ""}) == {"bio": "", "summary": ""}

    def test_leaves_other_values_alone(self):
        data = {"pages": 10, "tags": [" a "], "inStock": False}
        assert sanitize_input(data) == data

    def test_non_dict_passthrough(self):
        assert sanitize_input(["a"]) == ["a"]


class TestObjectId:
    """Test cases for path identifier checks."""

    def test_valid_identifier(self):
        assert validate_object_id("64B7F0C2E4B0A1A2B3C4D5E6") == "64B7F0C2E4B0A1A2B3C4D5E6"

    @pytest.mark.parametrize("value", ["", "123", "64b7f0c2e4b0a1a2b3c4d5eZ", "64b7f0c2e4b0a1a2b3c4d5e6aa"])
    def test_malformed_identifier(self, value):
        with pytest.raises(MalformedIdentifier):
            validate_object_id(value)


class TestPagination:
    """Test cases for pagination parameters."""

    def test_defaults(self):
        pagination = parse_pagination()
        assert pagination.page == 1
        assert pagination.limit == 10
        assert pagination.skip == 0

    def test_non_numeric_falls_back_to_defaults(self):
        pagination = parse_pagination("abc", "ten")
        assert (pagination.page, pagination.limit) == (1, 10)

    def test_skip_calculation(self):
        pagination = parse_pagination("3", "25")
        assert pagination.skip == 50

    def test_page_count(self):
        pagination = parse_pagination("2", "10")
        assert pagination.page_count(25) == 3
        assert pagination.page_count(0) == 0
        assert pagination.page_count(30) == 3

    @pytest.mark.parametrize("page,limit", [("0", "10"), ("-1", "10"), ("1", "0"), ("1", "101")])
    def test_out_of_range_rejected(self, page, limit):
        with pytest.raises(ValidationFailure) as exc_info:
            parse_pagination(page, limit)
        assert "Invalid pagination parameters" in exc_info.value.message

    def test_limit_bounds_inclusive(self):
        assert parse_pagination("1", "1").limit == 1
        assert parse_pagination("1", "100").limit == 100
