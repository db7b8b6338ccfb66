"""版本约束测试"""

import pytest

from pkgshelf.core.constraint import ANY, Constraint, parse_version
from pkgshelf.core.exceptions import ValidationError


class TestConstraint:
    def test_lower_bound(self) -> None:
        c = Constraint(">= 1.0")
        assert c.satisfies("1.0")
        assert c.satisfies("1.2.0")
        assert not c.satisfies("0.9.9")

    def test_pessimistic_operator(self) -> None:
        c = Constraint("~> 1.2")
        assert c.satisfies("1.2.0")
        assert c.satisfies("1.9.3")
        assert not c.satisfies("2.0.0")
        assert c == Constraint("~=1.2")

    def test_single_equals_and_bare_version_are_exact(self) -> None:
        assert Constraint("= 1.2.0").satisfies("1.2.0")
        assert not Constraint("= 1.2.0").satisfies("1.2.1")
        assert Constraint("1.2.0") == Constraint.exact("1.2.0")

    def test_compound(self) -> None:
        c = Constraint(">= 1.0, < 2.0")
        assert c.satisfies("1.5")
        assert not c.satisfies("2.0")

    def test_any(self) -> None:
        assert Constraint("*") == ANY
        assert Constraint(">= 0.0.0") == ANY
        assert ANY.satisfies("0.0.1")
        assert str(ANY) == ">= 0.0.0"
        assert str(Constraint("~> 1.2")) == "~> 1.2"

    def test_prerelease_allowed(self) -> None:
        assert Constraint(">= 1.0").satisfies("2.0.0rc1")

    def test_invalid_constraint(self) -> None:
        with pytest.raises(ValidationError, match="无效的版本约束"):
            Constraint(">= banana")
        with pytest.raises(ValidationError):
            Constraint("not a version")

    def test_invalid_version(self) -> None:
        with pytest.raises(ValidationError, match="无效的版本号"):
            Constraint(">= 1.0").satisfies("latest")

    def test_hashable(self) -> None:
        assert len({Constraint(">=1.0"), Constraint(">= 1.0")}) == 1


def test_parse_version_ordering() -> None:
    assert parse_version("1.10.0") > parse_version("1.9.0")
