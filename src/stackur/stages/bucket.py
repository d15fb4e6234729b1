"""S3 bucket resource."""

from typing import TYPE_CHECKING, Any, Iterable, Optional

from stackur.compiler.translate import Tag
from stackur.stages.resource import Resource
from stackur.utils.errors import ErrorContext, StateError
from stackur.utils.logging import get_logger

if TYPE_CHECKING:
    from stackur.stack import Stack

logger = get_logger(__name__)


class Bucket(Resource):
    """An S3 bucket.

    CloudFormation refuses to delete a bucket that still holds objects, so
    uncommitting a bucket empties and deletes it through S3 first.
    """

    kind = "AWS::S3::Bucket"

    def __init__(
        self,
        stack: "Stack",
        name: str,
        bucket_name: Optional[str] = None,
        tags: Optional[Iterable[Tag]] = None,
        **properties: Any
    ):
        """Initialize bucket.

        Args:
            stack: Stack the bucket belongs to
            name: Logical id of the bucket
            bucket_name: Explicit bucket name; CloudFormation generates one if omitted
            tags: Bucket tags
            **properties: Further AWS::S3::Bucket properties (snake_case or PascalCase)
        """
        if bucket_name is not None:
            properties["bucket_name"] = bucket_name
        super().__init__(stack, name, properties=properties, tags=tags)

    @property
    def bucket_name(self) -> Optional[str]:
        """Name of the deployed bucket, once known."""
        return self.physical_id or self.stack.engine.lookup_physical_id(self.name)

    async def uncommit(self) -> None:
        """Delete every object, then the bucket itself."""
        bucket = self.bucket_name
        if bucket is None:
            logger.debug(f"Bucket {self.name} was never deployed")
            await super().uncommit()
            return

        store = self.stack.object_store
        if store is None:
            raise StateError(
                f"Stack {self.stack.name} has no object store to empty bucket {bucket}",
                context=ErrorContext(stack_name=self.stack.name, resource_id=self.name, operation='uncommit')
            )

        keys = await store.list_objects(bucket)
        logger.info(f"Emptying bucket {bucket} ({len(keys)} object(s))")
        for key in keys:
            await store.delete_object(bucket, key)

        await store.delete_bucket(bucket)
        logger.info(f"Deleted bucket {bucket}")

        await super().uncommit()
