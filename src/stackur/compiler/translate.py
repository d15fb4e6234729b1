"""Translation of high-level resource declarations into CloudFormation fragments."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from stackur.engine.models import ResourceDefinition
from stackur.utils.logging import get_logger

logger = get_logger(__name__)

LAMBDA_BASIC_EXECUTION_POLICY = {
    "Fn::Join": ["", [
        "arn:",
        {"Ref": "AWS::Partition"},
        ":iam::aws:policy/service-role/AWSLambdaBasicExecutionRole",
    ]]
}


@dataclass(frozen=True)
class Tag:
    """A CloudFormation resource tag."""
    key: str
    value: str

    def to_cfn(self) -> Dict[str, str]:
        return {"Key": self.key, "Value": self.value}


@dataclass
class ResourceDeclaration:
    """What a caller asked for, before translation."""
    name: str
    kind: str
    properties: Dict[str, Any] = field(default_factory=dict)
    tags: List[Tag] = field(default_factory=list)


Translator = Callable[[ResourceDeclaration, str], List[ResourceDefinition]]


def to_pascal_case(key: str) -> str:
    """Convert ``bucket_name`` or ``bucketName`` to ``BucketName``."""
    if "_" in key:
        return "".join(part[:1].upper() + part[1:] for part in key.split("_") if part)
    return key[:1].upper() + key[1:]


def translate_properties(properties: Dict[str, Any]) -> Dict[str, Any]:
    """Rename top-level property keys; nested values pass through untouched."""
    return {to_pascal_case(key): value for key, value in properties.items() if value is not None}


def default_translator(declaration: ResourceDeclaration, namespace: str) -> List[ResourceDefinition]:
    """One fragment of the declared kind with renamed properties and tags."""
    properties = translate_properties(declaration.properties)
    if declaration.tags:
        properties["Tags"] = list(properties.get("Tags", [])) + [tag.to_cfn() for tag in declaration.tags]

    return [ResourceDefinition(type=declaration.kind, properties=properties)]


def function_translator(declaration: ResourceDeclaration, namespace: str) -> List[ResourceDefinition]:
    """Lambda function, plus an execution role when none was given."""
    fragments = default_translator(declaration, namespace)
    function = fragments[0]

    if "Role" in function.properties:
        return fragments

    role_id = f"{declaration.name}ServiceRole"
    function.properties["Role"] = {"Fn::GetAtt": [role_id, "Arn"]}
    function.depends_on.append(role_id)

    role_properties: Dict[str, Any] = {
        "AssumeRolePolicyDocument": {
            "Version": "2012-10-17",
            "Statement": [{
                "Action": "sts:AssumeRole",
                "Effect": "Allow",
                "Principal": {"Service": "lambda.amazonaws.com"},
            }],
        },
        "Description": f"Execution role for {declaration.name} in {namespace}",
        "ManagedPolicyArns": [LAMBDA_BASIC_EXECUTION_POLICY],
    }
    if declaration.tags:
        role_properties["Tags"] = [tag.to_cfn() for tag in declaration.tags]

    fragments.append(ResourceDefinition(
        type="AWS::IAM::Role",
        properties=role_properties,
        logical_id=role_id,
    ))
    return fragments


DEFAULT_TRANSLATORS: Dict[str, Translator] = {
    "AWS::Lambda::Function": function_translator,
}


class PropertyCompiler(ABC):
    """Turns a resource declaration into CloudFormation fragments."""

    @abstractmethod
    def compile(self, declaration: ResourceDeclaration, namespace: str) -> List[ResourceDefinition]:
        """Compile a declaration.

        Args:
            declaration: The high-level declaration
            namespace: Stack the resource belongs to

        Returns:
            Fragments; the first one is the declared resource itself
        """


class CloudFormationCompiler(PropertyCompiler):
    """Property compiler with per-kind translators and a generic fallback."""

    def __init__(self, translators: Optional[Dict[str, Translator]] = None):
        self.translators: Dict[str, Translator] = dict(DEFAULT_TRANSLATORS)
        if translators:
            self.translators.update(translators)

    def register(self, kind: str, translator: Translator) -> None:
        """Use ``translator`` for every declaration of ``kind``."""
        self.translators[kind] = translator

    def compile(self, declaration: ResourceDeclaration, namespace: str) -> List[ResourceDefinition]:
        translator = self.translators.get(declaration.kind, default_translator)
        fragments = translator(declaration, namespace)
        logger.debug(f"Compiled {declaration.kind} {declaration.name} into {len(fragments)} fragment(s)")
        return fragments
