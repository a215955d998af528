"""
Registry of the validating options that apply to each field kind.

The common options (Required and Distinct) are applied by every validator and
are not part of the registry. The registry holds the kind-specific ones:

    registry = OptionRegistry.default()
    registry.register(FieldKind.STRING, MyOption())
    validator = MessageValidator(types, options=registry)

A MessageValidator takes a snapshot() of the registry when it is created.
There is no module-level registry.
"""

import logging
from collections import OrderedDict
from types import MappingProxyType
from typing import Dict, List, Mapping, Tuple

from .options import Digits, Max, Min, Pattern, Range, ValidatingOption
from .schema import NUMERIC_KINDS, FieldKind

logger = logging.getLogger(__name__)

OptionSnapshot = Mapping[FieldKind, Tuple[ValidatingOption, ...]]


class OptionProvider:
    """
    Supplies options for one or more field kinds.

    Subclasses override options() and return the options they contribute,
    by field kind, in the order they should run.
    """

    def options(self) -> Dict[FieldKind, List[ValidatingOption]]:
        return {}


class CommonOptions(OptionProvider):
    """The built-in options: Pattern for strings, Max, Min, Range and Digits for numbers."""

    def options(self) -> Dict[FieldKind, List[ValidatingOption]]:
        provided: Dict[FieldKind, List[ValidatingOption]] = {FieldKind.STRING: [Pattern()]}
        for kind in sorted(NUMERIC_KINDS, key=lambda k: k.value):
            provided[kind] = [Max(), Min(), Range(), Digits()]
        return provided


class OptionRegistry:
    """Mutable mapping from field kind to the ordered options that validate it."""

    def __init__(self):
        self._options: Dict[FieldKind, List[ValidatingOption]] = OrderedDict(
            (kind, []) for kind in FieldKind
        )

    @classmethod
    def default(cls) -> 'OptionRegistry':
        """Create a registry holding the built-in options."""
        registry = cls()
        registry.add_provider(CommonOptions())
        return registry

    def register(self, kind: FieldKind, option: ValidatingOption) -> None:
        """
        Append an option to the ones run for `kind`.

        Raises:
            TypeError: If kind is not a FieldKind or option is not a ValidatingOption
        """
        if not isinstance(kind, FieldKind):
            raise TypeError(f'Expected a FieldKind, got {kind!r}.')
        if not isinstance(option, ValidatingOption):
            raise TypeError(f'Expected a ValidatingOption, got {option!r}.')
        logger.debug('Registering option `%s` for %s fields', option.name, kind)
        self._options[kind].append(option)

    def add_provider(self, provider: OptionProvider) -> None:
        for kind, options in provider.options().items():
            for option in options:
                self.register(kind, option)

    def options_for(self, kind: FieldKind) -> Tuple[ValidatingOption, ...]:
        return tuple(self._options.get(kind, ()))

    def snapshot(self) -> OptionSnapshot:
        """Return an immutable copy of the current registrations."""
        return MappingProxyType({kind: tuple(options) for kind, options in self._options.items()})
