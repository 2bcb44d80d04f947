"""Tests for web search tool."""

from unittest.mock import MagicMock, patch

import pytest

from ravenmind.tools.web_search import web_search


class TestWebSearch:
    """Test the web_search tool."""

    @pytest.mark.asyncio
    async def test_web_search_success(self):
        """Test successful web search."""
        mock_results = [
            {
                "title": "Python Programming",
                "href": "https://python.org",
                "body": "Python is a programming language",
            },
            {
                "title": "Python Tutorial",
                "href": "https://docs.python.org/tutorial",
                "body": "Learn Python programming",
            },
        ]

        with patch("ravenmind.tools.web_search.DDGS") as mock_ddgs:
            mock_instance = MagicMock()
            mock_instance.text.return_value = mock_results
            mock_ddgs.return_value.__enter__.return_value = mock_instance

            result = await web_search("python programming", max_results=2)

            assert result.success
            assert "Search results for 'python programming'" in result.result
            assert "1. Python Programming" in result.result
            assert "URL: https://python.org" in result.result
            assert "2. Python Tutorial" in result.result
            mock_instance.text.assert_called_once_with("python programming", max_results=2)

    @pytest.mark.asyncio
    async def test_web_search_no_results(self):
        """Test web search with no results."""
        with patch("ravenmind.tools.web_search.DDGS") as mock_ddgs:
            mock_ddgs.return_value.__enter__.return_value.text.return_value = []

            result = await web_search("nonexistent query xyz123")

            assert result.result == "No results found for query: nonexistent query xyz123"

    @pytest.mark.asyncio
    async def test_web_search_clamps_max_results(self):
        """Test max_results is capped at 10."""
        with patch("ravenmind.tools.web_search.DDGS") as mock_ddgs:
            mock_instance = mock_ddgs.return_value.__enter__.return_value
            mock_instance.text.return_value = []

            await web_search("python", max_results=50)

            mock_instance.text.assert_called_once_with("python", max_results=10)

    @pytest.mark.asyncio
    async def test_web_search_empty_query(self):
        """Test empty queries are rejected without searching."""
        with patch("ravenmind.tools.web_search.DDGS") as mock_ddgs:
            result = await web_search("  ")

            assert not result.success
            mock_ddgs.assert_not_called()
