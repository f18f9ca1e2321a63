"""fragQL composition layer: fragments, dependency closure, tree merging."""
from fragql.compose.dependencies import DependencyResolver
from fragql.compose.fragment import Fragment, Variable
from fragql.compose.helpers import equal_or_in_subquery_arg, if_expression, if_null_expression
from fragql.compose.merger import merge_query, without_wildcard
from fragql.compose.post_processors import escape_regexp
from fragql.compose.prerequisite import Dynamic, Names, NoPrerequisite, Patch
from fragql.compose.scanner import find_unknowns

__all__ = [
    "DependencyResolver",
    "Fragment",
    "Variable",
    "equal_or_in_subquery_arg",
    "if_expression",
    "if_null_expression",
    "merge_query",
    "without_wildcard",
    "escape_regexp",
    "Dynamic",
    "Names",
    "NoPrerequisite",
    "Patch",
    "find_unknowns",
]
