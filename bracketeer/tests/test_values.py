"""Tests for value trees and their text form."""

import pytest

from bracketeer import build
from bracketeer.values import (
    Add, Bracket, Kind, Mul, Negative, Number, ONE, ZERO,
    E, F, H, as_integer, number,
)


class TestConstruction:
    """Tests for value constructors."""

    def test_number_helper(self):
        assert number(0) == ZERO
        assert number(1) == ONE
        assert number(-3) == Negative(Number(3))

    def test_number_rejects_negative_magnitude(self):
        with pytest.raises(ValueError):
            Number(-1)

    def test_generators(self):
        assert E(1) == Kind("E", 1)
        assert F(2) == Kind("F", 2)
        assert H(3) == Kind("H", 3)

    def test_structural_equality(self):
        """Equal shapes compare equal and hash alike."""
        a = Bracket(E(1), Add(F(2), H(3)))
        b = Bracket(E(1), Add(F(2), H(3)))
        assert a == b
        assert hash(a) == hash(b)
        assert a != Bracket(Add(F(2), H(3)), E(1))

    def test_different_shapes_differ(self):
        assert Add(E(1), E(2)) != Mul(E(1), E(2))
        assert Kind("E", 1) != Kind("F", 1)

    def test_values_are_immutable(self):
        with pytest.raises(Exception):
            E(1).index = 2


class TestAsInteger:
    """Tests for reading integers out of values."""

    def test_plain(self):
        assert as_integer(Number(5)) == 5

    def test_negative_chain(self):
        assert as_integer(Negative(Number(2))) == -2
        assert as_integer(Negative(Negative(Number(2)))) == 2

    def test_not_numeric(self):
        assert as_integer(E(1)) is None
        assert as_integer(Negative(E(1))) is None
        assert as_integer(Mul(Number(2), Number(3))) is None


class TestFormatting:
    """Tests for format_value / str()."""

    def test_atoms(self):
        assert str(Number(12)) == "12"
        assert str(E(3)) == "E(3)"

    def test_bracket(self):
        assert str(Bracket(E(1), Bracket(E(2), F(3)))) == "[E(1), [E(2), F(3)]]"

    def test_sum_and_product(self):
        assert str(Add(Number(1), Mul(Number(2), E(1)))) == "1 + 2 * E(1)"

    def test_subtraction(self):
        assert str(Add(E(1), Negative(E(2)))) == "E(1) - E(2)"
        assert str(Add(Negative(E(1)), E(2))) == "-E(1) + E(2)"

    def test_parenthesized(self):
        assert str(Mul(Add(E(1), E(2)), E(3))) == "(E(1) + E(2)) * E(3)"
        assert str(Negative(Add(E(1), E(2)))) == "-(E(1) + E(2))"
        assert str(Add(Add(E(1), E(2)), E(3))) == "(E(1) + E(2)) + E(3)"
        assert str(Mul(Negative(Number(1)), E(2))) == "(-1) * E(2)"

    @pytest.mark.parametrize("value", [
        Add(E(1), Negative(E(2))),
        Negative(Mul(Number(2), E(1))),
        Mul(Negative(Number(1)), E(2)),
        Add(Add(E(1), E(2)), E(3)),
        Negative(Add(Bracket(E(2), E(1)), Mul(Number(3), F(1)))),
        Add(Number(1), Add(Negative(H(2)), Bracket(E(1), Negative(E(2))))),
    ])
    def test_text_parses_back(self, value):
        """Printed values parse to the same tree."""
        assert build(str(value)) == value

    def test_repr_is_dataclass(self):
        assert repr(E(1)) == "Kind(name='E', index=1)"
