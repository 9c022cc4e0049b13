"""Template variable registry and resolution.

The registry plays the role of the dashboard host's templating facility: it
holds the dashboard variables and substitutes ``$name``, ``${name}`` and
``[[name]]`` references. :class:`VariableResolver` wraps it with the
resolution rules used by the query builder and the template dispatcher.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from .models import TemplateVariable

logger = logging.getLogger(__name__)

ScopedVars = Mapping[str, Any]

_VARIABLE_PATTERN = re.compile(
    r"\$(?P<plain>\w+)"
    r"|\$\{(?P<braced>\w+)(?::[^}]*)?\}"
    r"|\[\[(?P<bracketed>\w+)(?::[^\]]*)?\]\]"
)

_CUSTOM_TYPES = ("custom", "constant")


def format_variable_value(value: Union[str, List[str], None]) -> str:
    """Render a variable value for substitution into query text.

    Several selected values are rendered in brace form (``{a,b}``), which is
    what multi-value dimension expansion splits on.
    """
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        values = [str(v) for v in value]
        if len(values) == 1:
            return values[0]
        return "{" + ",".join(values) + "}"
    return str(value)


def _scoped_value(entry: Any) -> Any:
    # scoped vars arrive either bare or as {"text": ..., "value": ...}
    if isinstance(entry, Mapping):
        return entry.get("value", entry.get("text"))
    return entry


class VariableRegistry:
    """In-memory set of dashboard template variables.

    Parameters
    ----------
    variables: Iterable[TemplateVariable]
        Initial variables, keyed by name. Later duplicates replace earlier ones.
    """

    def __init__(self, variables: Iterable[TemplateVariable] = ()) -> None:
        self._variables: Dict[str, TemplateVariable] = {}
        for variable in variables:
            self.set(variable)

    def set(self, variable: TemplateVariable) -> None:
        """Add or replace a variable."""
        self._variables[variable.name] = variable

    def get(self, name: str) -> Optional[TemplateVariable]:
        """Return the variable named ``name`` (without sigil), if any."""
        return self._variables.get(name)

    def all(self) -> List[TemplateVariable]:
        """Return all variables in registration order."""
        return list(self._variables.values())

    def replace(self, target: Optional[str], scoped_vars: Optional[ScopedVars] = None) -> str:
        """Substitute variable references in ``target``.

        ``scoped_vars`` take precedence over registered variables. Unknown
        references are left in place.
        """
        if not target:
            return ""
        scoped = scoped_vars or {}

        def _sub(match: "re.Match[str]") -> str:
            name = match.group("plain") or match.group("braced") or match.group("bracketed")
            if name in scoped:
                return format_variable_value(_scoped_value(scoped[name]))
            variable = self._variables.get(name)
            if variable is None:
                return match.group(0)
            return format_variable_value(variable.current)

        return _VARIABLE_PATTERN.sub(_sub, target)

    def get_variable_descriptors(
        self, regex: Optional[str] = None, include_custom: bool = True
    ) -> List[TemplateVariable]:
        """List variables, optionally only those whose query matches ``regex``.

        With a regex, custom and constant variables are appended when
        ``include_custom`` is set and the result is de-duplicated by name.
        """
        variables = self.all()
        if not regex:
            return variables
        pattern = re.compile(regex)
        selected = [v for v in variables if isinstance(v.query, str) and pattern.search(v.query)]
        if include_custom:
            selected.extend(v for v in variables if v.type in _CUSTOM_TYPES)
        unique: Dict[str, TemplateVariable] = {}
        for variable in selected:
            unique[variable.name] = variable
        return list(unique.values())

    def get_variables(self, regex: Optional[str] = None, include_custom: bool = False) -> List[str]:
        """Return variable names prefixed with ``$``, e.g. ``['$region']``."""
        return [f"${v.name}" for v in self.get_variable_descriptors(regex, include_custom)]


class VariableResolver:
    """Resolve raw editor values to literal strings.

    Parameters
    ----------
    registry: VariableRegistry
        Dashboard variables consulted after any scoped variables.
    """

    def __init__(self, registry: Optional[VariableRegistry] = None) -> None:
        self.registry = registry or VariableRegistry()

    def resolve(self, raw: Optional[str], scoped_vars: Optional[ScopedVars] = None) -> Optional[str]:
        """Substitute variables in ``raw``; never fails on unknown names.

        An empty substitution result falls back to the raw input.
        """
        if not raw:
            return raw
        return self.registry.replace(raw, scoped_vars) or raw

    def is_defined(self, name: str) -> bool:
        """True if a variable named exactly ``name`` (with ``$``) exists."""
        return any(f"${v.name}" == name for v in self.registry.all())

    @staticmethod
    def remove_quotes(value: Optional[str]) -> Optional[str]:
        """Strip one leading and one trailing quote character if present.

        Quote types are not required to match; empty input passes through.

        >>> VariableResolver.remove_quotes('"abc"')
        'abc'
        >>> VariableResolver.remove_quotes("'abc\\"")
        'abc'
        """
        if not value:
            return value
        result = value
        if value.startswith(("'", '"')):
            result = result[1:]
        if value.endswith(("'", '"')) and result:
            result = result[:-1]
        return result
