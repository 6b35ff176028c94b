import itertools
import re
from concurrent.futures import ThreadPoolExecutor

import pytest
from ordering.errors import TransactionFailure
from ordering.order.numbering import OrderNumberGenerator, validate_order_number
from protean.exceptions import ValidationError


def _never_taken(_):
    return False


class TestFormat:
    def test_generated_number_shape(self):
        number = OrderNumberGenerator(exists=_never_taken).generate()
        assert re.fullmatch(r"ORD-\d{10}-\d{6}", number)

    def test_generated_numbers_pass_validation(self):
        number = OrderNumberGenerator(exists=_never_taken).generate()
        assert validate_order_number(number) == number

    @pytest.mark.parametrize("number", ["ORD-TEST-0001", "ORD-12345678-1234", "ORD-1729000000-004211"])
    def test_explicit_numbers_accepted(self, number):
        assert validate_order_number(number) == number

    @pytest.mark.parametrize("number", ["", "ord-test-0001", "ORD--0001", "INV-TEST-0001", "ORD-TEST-12"])
    def test_malformed_numbers_rejected(self, number):
        with pytest.raises(ValidationError):
            validate_order_number(number)


class TestUniqueness:
    def test_concurrent_generation_is_distinct(self):
        generator = OrderNumberGenerator(exists=_never_taken)

        with ThreadPoolExecutor(max_workers=16) as pool:
            numbers = list(pool.map(lambda _: generator.generate(), range(10_000)))

        assert len(set(numbers)) == 10_000

    def test_store_collision_regenerates(self):
        taken = {"ORD-0000001000-000001"}
        suffixes = iter([1, 2])
        generator = OrderNumberGenerator(
            exists=lambda n: n in taken,
            clock=lambda: 1.0,
            randbelow=lambda _: next(suffixes),
        )

        assert generator.generate() == "ORD-0000001000-000002"

    def test_repeated_random_value_regenerates(self):
        suffixes = iter([7, 7, 8])
        generator = OrderNumberGenerator(exists=_never_taken, clock=lambda: 2.0, randbelow=lambda _: next(suffixes))

        first = generator.generate()
        second = generator.generate()

        assert first == "ORD-0000002000-000007"
        assert second == "ORD-0000002000-000008"

    def test_gives_up_after_bounded_attempts(self):
        generator = OrderNumberGenerator(
            exists=lambda _: True,
            randbelow=lambda _: next(counter),
            max_attempts=3,
        )
        counter = itertools.count()

        with pytest.raises(TransactionFailure):
            generator.generate()
