import dataclasses
import re
from enum import Enum
from typing import Any, Dict, List, Tuple

from debian.debian_support import version_compare

# "(op version)" clause body, e.g. ">= 1.0-1".  The operator is every leading
# comparison character so an odd token like "=>" or "<" is seen as a whole.
_CLAUSE = re.compile(r"^\s*(?P<operator>[<>=]*)\s*(?P<version>.*?)\s*$", re.DOTALL)


class ConstraintOperator(Enum):
    LT = "<<"
    GT = ">>"
    LE = "<="
    GE = ">="
    EQ = "="
    ANY = "any"
    UNRECOGNIZED = "unrecognized"

    @property
    def relation_token(self) -> str:
        if not self.is_comparison:
            raise ValueError(f"{self.name} does not have a relation token")
        return self.value

    @property
    def is_comparison(self) -> bool:
        return self not in (ConstraintOperator.ANY, ConstraintOperator.UNRECOGNIZED)


# The deprecated bare "<" and ">" are not in the table and become UNRECOGNIZED
TOKEN2OPERATOR = {op.value: op for op in ConstraintOperator if op.is_comparison}

RELATIONSHIP_FIELDS = (
    "Depends",
    "Pre-Depends",
    "Recommends",
    "Suggests",
    "Enhances",
    "Breaks",
    "Conflicts",
)


@dataclasses.dataclass(slots=True, frozen=True)
class VersionConstraint:
    operator: ConstraintOperator
    version: str = ""
    operator_text: str = ""

    @classmethod
    def any_version(cls) -> "VersionConstraint":
        return cls(ConstraintOperator.ANY)

    def satisfied_by(self, version: str) -> bool:
        """Whether a concrete package version satisfies this constraint

        Comparison follows dpkg's version ordering.

        :param version: The version to check, such as "1.2-3"
        :return: True if the version satisfies the constraint
        :raises ValueError: If the operator was not recognized, as the intended
          comparison is unknown.
        """
        op = self.operator
        if op == ConstraintOperator.ANY:
            return True
        if op == ConstraintOperator.UNRECOGNIZED:
            raise ValueError(
                f'Cannot evaluate the unrecognized version operator "{self.operator_text}"'
            )
        c = version_compare(version, self.version)
        if op == ConstraintOperator.LT:
            return c < 0
        if op == ConstraintOperator.LE:
            return c <= 0
        if op == ConstraintOperator.EQ:
            return c == 0
        if op == ConstraintOperator.GE:
            return c >= 0
        assert op == ConstraintOperator.GT
        return c > 0

    def __str__(self) -> str:
        if self.operator == ConstraintOperator.ANY:
            return ""
        if self.operator == ConstraintOperator.UNRECOGNIZED:
            op_text = self.operator_text
        else:
            op_text = self.operator.relation_token
        return f"({op_text} {self.version})" if op_text else f"({self.version})"


@dataclasses.dataclass(slots=True, frozen=True)
class PackageReference:
    name: str
    version_constraint: VersionConstraint = dataclasses.field(
        default_factory=VersionConstraint.any_version
    )

    @property
    def operator(self) -> ConstraintOperator:
        return self.version_constraint.operator

    @property
    def version(self) -> str:
        return self.version_constraint.version

    def as_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "operator": self.operator.name,
            "version": self.version,
        }

    def __str__(self) -> str:
        constraint = str(self.version_constraint)
        return f"{self.name} {constraint}" if constraint else self.name


def _split_atom(atom: str) -> Tuple[str, str, str]:
    head, _, rest = atom.partition("(")
    clause, _, tail = rest.partition(")")
    return head.strip(), clause, tail.strip()


def parse_relationship_atom(atom: str) -> PackageReference:
    """Parse one comma-free relationship atom such as "foo (>= 1.0)"

    Architecture qualifiers ("foo:any") and restriction lists ("[amd64]",
    "<!nocheck>") are not interpreted. They stay in the name verbatim; text
    after the version clause is appended to the name with a single space.
    """
    atom = atom.strip()
    if "(" not in atom:
        return PackageReference(atom)
    head, clause, tail = _split_atom(atom)
    name = " ".join(p for p in (head, tail) if p)
    m = _CLAUSE.match(clause)
    assert m is not None
    operator_text = m.group("operator")
    version = m.group("version")
    operator = TOKEN2OPERATOR.get(operator_text, ConstraintOperator.UNRECOGNIZED)
    return PackageReference(
        name,
        VersionConstraint(operator, version, operator_text),
    )


def parse_relationship_field(value: str) -> Tuple[PackageReference, ...]:
    """Parse the value of a relationship field (Depends, Breaks, ...)

    The value is split on "," and each atom is parsed on its own. The result
    keeps the order of the atoms; duplicates are kept, empty atoms (such as
    the one after a trailing comma) are skipped. "|" alternatives are not
    resolved, so "a | b" becomes a single reference named "a | b".
    """
    references: List[PackageReference] = []
    for atom in value.split(","):
        atom = atom.strip()
        if not atom:
            continue
        references.append(parse_relationship_atom(atom))
    return tuple(references)
