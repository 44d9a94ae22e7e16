"""Linking variable-group names declared by pipelines to the project's library groups."""

import logging
from collections.abc import Iterable, Sequence

from ..models import VariableGroup, VariableGroupReference
from ..utils.fuzzy_matching import FuzzyMatcher, create_suggestion_error_message
from .models import DevopsVariable, DevopsVariableGroup, VariableGroupRef

logger = logging.getLogger(__name__)

SECRET_MASK = "******"


def to_devops_variable_group(group: VariableGroup, resource_url: str | None) -> DevopsVariableGroup:
    """Project a REST variable group onto the dashboard model, masking secret values."""
    variables = [
        DevopsVariable(
            name=name,
            value=SECRET_MASK if variable.isSecret else variable.value,
            is_secret=variable.isSecret,
            is_read_only=variable.isReadOnly,
        )
        for name, variable in group.variables.items()
    ]
    return DevopsVariableGroup(
        id=group.id,
        name=group.name,
        description=group.description,
        variables=variables,
        resource_url=resource_url,
    )


class VariableGroupResolver:
    """
    Resolves declared variable-group names against the known groups of one project.

    Matching is tiered and first-hit-wins:

    1. exact, case-insensitive name equality;
    2. the first known group, in the order the groups were supplied, whose name
       contains the declared name or is contained by it (case-insensitive).

    When several groups satisfy tier 2 the supplied order decides. That order
    is whatever the service returned and carries no meaning of its own.
    """

    def __init__(
        self,
        known_groups: Sequence[DevopsVariableGroup],
        library_url: str,
        group_url_template: str | None = None,
        suggester: FuzzyMatcher | None = None,
    ):
        """
        Args:
            known_groups: The project's variable groups, in service order.
            library_url: Generic "browse variable groups" URL for unresolved references.
            group_url_template: URL of one group, formatted with ``group_id``; used for
                definition-attached groups that are not in ``known_groups``.
            suggester: Matcher used to log near-miss names for unresolved references.
        """
        self._known_groups = list(known_groups)
        self._by_name: dict[str, DevopsVariableGroup] = {}
        for group in self._known_groups:
            self._by_name.setdefault(group.name.lower(), group)
        self.library_url = library_url
        self.group_url_template = group_url_template
        self._suggester = suggester or FuzzyMatcher(max_suggestions=3)

    @property
    def known_groups(self) -> list[DevopsVariableGroup]:
        return list(self._known_groups)

    def resolve(self, declared_name: str | None) -> DevopsVariableGroup | None:
        """Return the best known group for ``declared_name``, or ``None``."""
        if not declared_name or not declared_name.strip():
            return None

        wanted = declared_name.strip().lower()

        exact = self._by_name.get(wanted)
        if exact is not None:
            return exact

        for group in self._known_groups:
            candidate = group.name.lower()
            if wanted in candidate or candidate in wanted:
                return group

        return None

    def reference_for(self, declared_name: str, environment: str | None = None) -> VariableGroupRef:
        """Build a reference for a name declared in pipeline YAML."""
        group = self.resolve(declared_name)
        if group is None:
            self._log_unresolved(declared_name)
            return VariableGroupRef(
                name=declared_name, environment=environment, resource_url=self.library_url
            )

        return VariableGroupRef(
            name=declared_name,
            environment=environment,
            id=group.id,
            variable_count=len(group.variables),
            resource_url=group.resource_url,
        )

    def references_from_definition(
        self, attached: Iterable[VariableGroupReference]
    ) -> list[VariableGroupRef]:
        """
        Build references for groups attached directly to a build definition.

        The attached id is kept as-is. A known group with the same name supplies
        the URL and variable count; otherwise a positive id links to that group's
        page and anything else links to the library.
        """
        refs = []
        for reference in attached:
            name = reference.name or ""
            known = self._by_name.get(name.lower()) if name else None

            if known is not None:
                resource_url = known.resource_url
                variable_count = len(known.variables)
            elif reference.id > 0 and self.group_url_template:
                resource_url = self.group_url_template.format(group_id=reference.id)
                variable_count = 0
            else:
                resource_url = self.library_url
                variable_count = 0

            refs.append(
                VariableGroupRef(
                    name=name,
                    id=reference.id,
                    variable_count=variable_count,
                    resource_url=resource_url,
                )
            )
        return refs

    def _log_unresolved(self, declared_name: str) -> None:
        if not self._known_groups:
            logger.debug(f"Variable group '{declared_name}' left unresolved: no known groups")
            return

        matches = self._suggester.find_matches(
            declared_name, self._known_groups, name_extractor=lambda group: group.name
        )
        logger.info(create_suggestion_error_message(declared_name, "Variable group", matches))
