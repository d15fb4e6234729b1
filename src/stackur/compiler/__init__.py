"""Property compiler for resource declarations."""

from .translate import (
    CloudFormationCompiler,
    PropertyCompiler,
    ResourceDeclaration,
    Tag,
    Translator,
    default_translator,
    function_translator,
    to_pascal_case,
    translate_properties,
)

__all__ = [
    'CloudFormationCompiler',
    'PropertyCompiler',
    'ResourceDeclaration',
    'Tag',
    'Translator',
    'default_translator',
    'function_translator',
    'to_pascal_case',
    'translate_properties',
]
