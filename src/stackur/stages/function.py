"""Lambda function resource."""

from typing import TYPE_CHECKING, Any, Dict, Iterable, Optional

from stackur.compiler.translate import Tag
from stackur.stages.resource import Resource

if TYPE_CHECKING:
    from stackur.stack import Stack


class Function(Resource):
    """A Lambda function.

    Without an explicit ``role`` the compiler adds an execution role named
    ``<name>ServiceRole`` to the stack next to the function.
    """

    kind = "AWS::Lambda::Function"

    def __init__(
        self,
        stack: "Stack",
        name: str,
        code: Dict[str, Any],
        handler: str,
        runtime: str = "python3.12",
        role: Optional[Any] = None,
        tags: Optional[Iterable[Tag]] = None,
        **properties: Any
    ):
        """Initialize function.

        Args:
            stack: Stack the function belongs to
            name: Logical id of the function
            code: CloudFormation Code block, e.g. {"ZipFile": "..."} or {"S3Bucket": ..., "S3Key": ...}
            handler: Handler entry point
            runtime: Lambda runtime identifier
            role: Role ARN or intrinsic; omitted to generate one
            tags: Function tags
            **properties: Further AWS::Lambda::Function properties
        """
        properties.update(code=code, handler=handler, runtime=runtime)
        if role is not None:
            properties["role"] = role
        super().__init__(stack, name, properties=properties, tags=tags)
