"""Tests for the calculator and clock tools."""

import pytest

from ravenmind.tools.calculator import calculate, safe_eval_expr
from ravenmind.tools.clock import get_time


class TestCalculate:
    """Test the calculate tool."""

    @pytest.mark.asyncio
    async def test_arithmetic(self):
        result = await calculate("25*17+42")

        assert result.success
        assert result.result == "25*17+42 = 467"

    @pytest.mark.asyncio
    async def test_functions_and_constants(self):
        result = await calculate("sqrt(16) + floor(pi)")
        assert result.result == "sqrt(16) + floor(pi) = 7"

    @pytest.mark.asyncio
    async def test_caret_is_power(self):
        result = await calculate("2^10")
        assert result.result == "2^10 = 1024"

    @pytest.mark.asyncio
    async def test_division_by_zero(self):
        result = await calculate("1/0")
        assert result.error == "Division by zero."

    @pytest.mark.asyncio
    async def test_rejects_attribute_access(self):
        result = await calculate("__import__('os').system('ls')")
        assert not result.success

    @pytest.mark.asyncio
    async def test_rejects_unknown_names(self):
        result = await calculate("open(1)")
        assert result.error == "Invalid expression."

    @pytest.mark.asyncio
    async def test_rejects_huge_exponent(self):
        result = await calculate("9**99999")
        assert not result.success

    @pytest.mark.asyncio
    async def test_nested_power_rejected_before_computing(self):
        """Test a power of a power is bounded by its result size."""
        result = await calculate("(9**9999)**9999")
        assert result.error == "Result is too large."

    @pytest.mark.asyncio
    async def test_large_base_power_rejected(self):
        result = await calculate("(2**5000)**3")
        assert result.error == "Result is too large."

    @pytest.mark.asyncio
    async def test_factorial_bounded(self):
        assert (await calculate("factorial(300000)")).error == "Result is too large."
        assert (await calculate("factorial(5)")).result == "factorial(5) = 120"

    @pytest.mark.asyncio
    async def test_large_integer_result(self):
        """Test big integers within bounds are returned exactly."""
        result = await calculate("2**2000")

        assert result.success
        assert result.result == f"2**2000 = {2**2000}"

    @pytest.mark.asyncio
    async def test_product_chain_bounded(self):
        result = await calculate("(2**9000)*(2**9000)")
        assert result.error == "Result is too large."

    @pytest.mark.asyncio
    async def test_float_overflow(self):
        assert (await calculate("exp(1000)")).error == "Result is too large."

    @pytest.mark.asyncio
    async def test_empty(self):
        result = await calculate("   ")
        assert result.error == "Expression cannot be empty."

    def test_safe_eval_float(self):
        assert safe_eval_expr("7 / 2") == 3.5


class TestGetTime:
    """Test the get_time tool."""

    @pytest.mark.asyncio
    async def test_default_utc(self):
        result = await get_time()
        assert result.result.startswith("Current time in UTC:")

    @pytest.mark.asyncio
    async def test_named_zone(self):
        result = await get_time("Europe/London")
        assert result.result.startswith("Current time in Europe/London:")

    @pytest.mark.asyncio
    async def test_unknown_zone(self):
        result = await get_time("Mars/Olympus")
        assert result.error == "Invalid timezone specified."

    @pytest.mark.asyncio
    async def test_malformed_zone(self):
        result = await get_time("../../etc/passwd")
        assert result.error == "Invalid timezone format."
