"""Loader options: declared per loader, validated before the loader runs."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Iterable, Iterator, Mapping

from ..errors import InvalidOption
from ..metadata.units import LengthUnit

Validator = Callable[[Any], bool]


@dataclass(frozen=True)
class OptionDescriptor:
    """Declaration of one option a loader accepts.

    Attributes:
        name: Option key
        description: One line help text
        default: Value used when the caller does not pass the option
        validator: Optional predicate; a falsy result rejects the value
        convert: Optional function applied to the value before validation
    """

    name: str
    description: str
    default: Any = None
    validator: Validator | None = None
    convert: Callable[[Any], Any] | None = None

    def check(self, value: Any) -> Any:
        """Convert and validate a value, returning the accepted value.

        Raises:
            InvalidOption: If conversion fails or the validator rejects the value
        """
        if self.convert is not None and value is not None:
            try:
                value = self.convert(value)
            except (TypeError, ValueError) as e:
                raise InvalidOption(f"Option {self.name!r}: {e}") from e
        if self.validator is not None and not self.validator(value):
            raise InvalidOption(f"Option {self.name!r}: invalid value {value!r}")
        return value


class OptionsDescriptor:
    """An ordered set of option declarations.

    When two declarations share a name the first one is kept.
    """

    def __init__(self, options: Iterable[OptionDescriptor] = ()) -> None:
        self._options: dict[str, OptionDescriptor] = {}
        for option in options:
            self.add(option)

    def add(self, option: OptionDescriptor) -> bool:
        """Add a declaration; returns False if the name was already declared."""
        if option.name in self._options:
            return False
        self._options[option.name] = option
        return True

    def extend(self, other: OptionsDescriptor) -> OptionsDescriptor:
        """Return a new descriptor with ``other``'s declarations appended."""
        return OptionsDescriptor([*self, *other])

    def __contains__(self, name: object) -> bool:
        return name in self._options

    def __getitem__(self, name: str) -> OptionDescriptor:
        return self._options[name]

    def __iter__(self) -> Iterator[OptionDescriptor]:
        return iter(self._options.values())

    def __len__(self) -> int:
        return len(self._options)

    def names(self) -> list[str]:
        return list(self._options)


def _parse_unit(value: Any) -> LengthUnit:
    if isinstance(value, LengthUnit):
        return value
    return LengthUnit.parse(str(value))


GENERAL_OPTIONS = OptionsDescriptor([
    OptionDescriptor(
        name="target_unit",
        description="Rescale the loaded arena to this length unit",
        default=None,
        convert=_parse_unit,
    ),
    OptionDescriptor(
        name="mime_type",
        description="MIME type of the main resource, if the caller knows it",
        default=None,
        convert=str,
    ),
])
"""Options every loader accepts; handled by the registry after loading."""


def resolve_options(
    descriptor: OptionsDescriptor,
    values: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    """Validate caller values against a descriptor and fill in defaults.

    Args:
        descriptor: Options the loader declares (general options are added)
        values: Caller supplied option values

    Returns:
        Mapping of every declared option name to its value

    Raises:
        InvalidOption: On unknown names or rejected values
    """
    descriptor = GENERAL_OPTIONS.extend(descriptor)
    values = dict(values or {})

    unknown = sorted(set(values) - set(descriptor.names()))
    if unknown:
        raise InvalidOption(
            f"Unknown option(s) {unknown}; accepted options: {descriptor.names()}"
        )

    resolved: dict[str, Any] = {}
    for option in descriptor:
        if option.name in values:
            resolved[option.name] = option.check(values[option.name])
        else:
            resolved[option.name] = option.default
    return resolved


def bool_option(name: str, description: str, default: bool = False) -> OptionDescriptor:
    """Declare a boolean option."""
    return OptionDescriptor(
        name=name,
        description=description,
        default=default,
        validator=lambda v: isinstance(v, bool),
    )
