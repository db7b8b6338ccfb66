"""版本约束

以 packaging 的 SpecifierSet 为底层实现，兼容目录常见写法:
  - "~> 1.2"  -> "~=1.2"
  - "= 1.2.0" -> "==1.2.0"
  - "1.2.0"   -> "==1.2.0"
  - "" / "*" / ">= 0.0.0" -> 任意版本
"""

from __future__ import annotations

import re

from packaging.specifiers import InvalidSpecifier, SpecifierSet
from packaging.version import InvalidVersion, Version

from pkgshelf.core.exceptions import ValidationError

_OPERATOR_RE = re.compile(r"^(~>|~=|===|==|!=|>=|<=|>|<|=)?\s*(\S+)$")


def parse_version(value: str) -> Version:
    try:
        return Version(str(value))
    except InvalidVersion as e:
        raise ValidationError(f"无效的版本号: {value}") from e


def _normalize_clause(clause: str) -> str:
    m = _OPERATOR_RE.match(clause.strip())
    if m is None:
        raise ValidationError(f"无效的版本约束: {clause}")
    op, ver = m.group(1) or "==", m.group(2)
    if op == "~>":
        op = "~="
    elif op == "=":
        op = "=="
    return f"{op}{ver}"


class Constraint:
    """版本范围谓词，不可变"""

    __slots__ = ("raw", "_spec")

    def __init__(self, raw: str = "") -> None:
        raw = (raw or "").strip()
        self.raw = raw
        if raw in ("", "*") or raw.replace(" ", "") == ">=0.0.0":
            self._spec = SpecifierSet()
            return
        clauses = [_normalize_clause(c) for c in raw.split(",") if c.strip()]
        try:
            self._spec = SpecifierSet(",".join(clauses))
        except InvalidSpecifier as e:
            raise ValidationError(f"无效的版本约束: {raw}") from e

    @classmethod
    def exact(cls, version: str) -> Constraint:
        return cls(f"=={version}")

    def satisfies(self, version: str | Version) -> bool:
        v = version if isinstance(version, Version) else parse_version(version)
        return self._spec.contains(v, prereleases=True)

    def __str__(self) -> str:
        return self.raw or ">= 0.0.0"

    def __repr__(self) -> str:
        return f"Constraint({self.raw!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Constraint):
            return NotImplemented
        return self._spec == other._spec

    def __hash__(self) -> int:
        return hash(self._spec)


ANY = Constraint()
