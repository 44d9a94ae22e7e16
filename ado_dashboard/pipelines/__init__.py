"""Build, repository and library read operations for Azure DevOps."""

from .builds import BuildOperations
from .definitions import DefinitionOperations
from .repositories import RepositoryOperations
from .variable_groups import VariableGroupOperations

__all__ = [
    "BuildOperations",
    "DefinitionOperations",
    "RepositoryOperations",
    "VariableGroupOperations",
]
