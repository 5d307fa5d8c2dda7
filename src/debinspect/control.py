import dataclasses
from typing import Any, Dict, Mapping, Optional, Tuple

from debian.deb822 import Deb822

from debinspect.control_paragraph import parse_control_paragraph
from debinspect.exceptions import (
    InvalidFieldValueError,
    MissingMandatoryFieldError,
)
from debinspect.relationships import (
    PackageReference,
    parse_relationship_field,
    RELATIONSHIP_FIELDS,
)

_MANDATORY_BINARY_PACKAGE_FIELDS = [
    "Package",
    "Version",
    "Architecture",
    "Maintainer",
    "Description",
]

_OPTIONAL_STRING_FIELDS = {
    "source": "Source",
    "section": "Section",
    "priority": "Priority",
    "essential": "Essential",
    "homepage": "Homepage",
    "built_using": "Built-Using",
}


def _attribute_name(field_name: str) -> str:
    return field_name.lower().replace("-", "_")


def _fold_description(value: str) -> str:
    lines = (line.strip() for line in value.splitlines())
    # " ." is an empty line in deb822 form
    return " ".join(line for line in lines if line and line != ".")


def _parse_installed_size(raw_value: str) -> int:
    value = raw_value.strip()
    # int() alone would also accept "+5", "-0" and "1_000"
    if not value.isascii() or not value.isdigit():
        raise InvalidFieldValueError(
            f'The field Installed-Size must be a non-negative integer, got "{raw_value}"',
            "Installed-Size",
            raw_value,
        )
    return int(value)


@dataclasses.dataclass(slots=True, frozen=True)
class ControlRecord:
    """The metadata of a binary package as declared in its DEBIAN/control file"""

    package: str
    version: str
    architecture: str
    maintainer: str
    description: str
    source: Optional[str] = None
    section: Optional[str] = None
    priority: Optional[str] = None
    essential: Optional[str] = None
    installed_size: Optional[int] = None
    homepage: Optional[str] = None
    built_using: Optional[str] = None
    depends: Tuple[PackageReference, ...] = ()
    pre_depends: Tuple[PackageReference, ...] = ()
    recommends: Tuple[PackageReference, ...] = ()
    suggests: Tuple[PackageReference, ...] = ()
    enhances: Tuple[PackageReference, ...] = ()
    breaks: Tuple[PackageReference, ...] = ()
    conflicts: Tuple[PackageReference, ...] = ()
    fields: Mapping[str, str] = dataclasses.field(
        default_factory=Deb822, compare=False, repr=False
    )

    @classmethod
    def from_paragraph(cls, paragraph: Mapping[str, str]) -> "ControlRecord":
        """Map the fields of a control paragraph onto a ControlRecord

        :param paragraph: The fields of the paragraph. Lookups are expected to be
          case-insensitive as with `Deb822`.
        :raises MissingMandatoryFieldError: If one of Package, Version,
          Architecture, Maintainer or Description is absent.
        :raises InvalidFieldValueError: If a mandatory field is empty or
          Installed-Size is not a non-negative integer.
        """
        kwargs: Dict[str, Any] = {}
        for field_name in _MANDATORY_BINARY_PACKAGE_FIELDS:
            try:
                value = paragraph[field_name]
            except KeyError:
                raise MissingMandatoryFieldError(
                    f'Missing mandatory field "{field_name}" in the control file',
                    field_name,
                ) from None
            if field_name == "Description":
                value = _fold_description(value)
            else:
                value = value.strip()
            if not value:
                raise InvalidFieldValueError(
                    f'The mandatory field "{field_name}" must not be empty',
                    field_name,
                    value,
                )
            kwargs[_attribute_name(field_name)] = value

        for attribute_name, field_name in _OPTIONAL_STRING_FIELDS.items():
            value = paragraph.get(field_name)
            if value is not None:
                kwargs[attribute_name] = value

        installed_size = paragraph.get("Installed-Size")
        if installed_size is not None:
            kwargs["installed_size"] = _parse_installed_size(installed_size)

        for field_name in RELATIONSHIP_FIELDS:
            value = paragraph.get(field_name)
            if value is not None:
                kwargs[_attribute_name(field_name)] = parse_relationship_field(value)

        return cls(fields=paragraph, **kwargs)

    def relationships(self) -> Dict[str, Tuple[PackageReference, ...]]:
        return {
            field_name: getattr(self, _attribute_name(field_name))
            for field_name in RELATIONSHIP_FIELDS
        }

    @property
    def is_essential(self) -> bool:
        return self.essential == "yes"

    def as_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "package": self.package,
            "version": self.version,
            "architecture": self.architecture,
            "maintainer": self.maintainer,
            "description": self.description,
        }
        for attribute_name in _OPTIONAL_STRING_FIELDS:
            d[attribute_name] = getattr(self, attribute_name)
        d["installed_size"] = self.installed_size
        for field_name, references in self.relationships().items():
            d[_attribute_name(field_name)] = [r.as_dict() for r in references]
        return d


def parse_control_file(text: str) -> ControlRecord:
    return ControlRecord.from_paragraph(parse_control_paragraph(text))

