"""Resources backed by the stack's CloudFormation template."""

from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional

from stackur.compiler.translate import ResourceDeclaration, Tag, Translator
from stackur.engine.models import CommitResult, ResourceDefinition
from stackur.stages.base import Committable
from stackur.utils.logging import get_logger

if TYPE_CHECKING:
    from stackur.stack import Stack

logger = get_logger(__name__)


class Resource(Committable):
    """A declared resource: a kind tag, its properties and how to translate them.

    Committing a resource stages it in the engine and immediately applies the
    stack, so its physical id is available to the units registered after it.
    """

    kind: Optional[str] = None

    def __init__(
        self,
        stack: "Stack",
        name: str,
        kind: Optional[str] = None,
        properties: Optional[Dict[str, Any]] = None,
        translate: Optional[Translator] = None,
        tags: Optional[Iterable[Tag]] = None
    ):
        """Initialize resource.

        Args:
            stack: Stack the resource belongs to
            name: Logical id of the resource in the stack template
            kind: CloudFormation type; subclasses set it as a class attribute
            properties: High-level properties handed to the compiler
            translate: Translation function overriding the stack's compiler
            tags: Tags applied to the resource
        """
        super().__init__(stack, name)
        self.kind = kind or type(self).kind
        if not self.kind:
            raise ValueError(f"Resource {name} has no kind")

        self.properties: Dict[str, Any] = dict(properties or {})
        self.tags: List[Tag] = list(tags or [])
        self.translate = translate
        self.physical_id: Optional[str] = None
        self.result: Optional[CommitResult] = None

    def declaration(self) -> ResourceDeclaration:
        """Describe this resource for the property compiler."""
        return ResourceDeclaration(
            name=self.name,
            kind=self.kind,
            properties=dict(self.properties),
            tags=list(self.tags),
        )

    def compile(self) -> List[ResourceDefinition]:
        """Translate the declaration into CloudFormation fragments."""
        declaration = self.declaration()
        if self.translate is not None:
            return self.translate(declaration, self.stack.name)
        return self.stack.compiler.compile(declaration, self.stack.name)

    async def commit(self, force: bool = False) -> None:
        """Stage the resource and apply the stack.

        A committed resource is skipped unless ``force`` is set.
        """
        if self.committed and not force:
            logger.debug(f"{self.kind} {self.name} is already committed")
            return

        logger.info(f"Creating {self.kind} {self.name}")

        fragments = self.compile()
        await self.stack.engine.add_resources(self.name, fragments)
        self.result = await self.stack.engine.commit(self.stack.interactive)

        self.physical_id = self.stack.engine.lookup_physical_id(self.name)

        if self.result == CommitResult.REJECTED:
            logger.info(f"{self.kind} {self.name} was not committed")
            return

        self.committed = True
        if self.result == CommitResult.ROLLED_BACK:
            logger.warning(f"{self.kind} {self.name} was committed but the stack rolled back")
        else:
            logger.info(f"Committed {self.kind} {self.name} ({self.physical_id})")

    async def uncommit(self) -> None:
        """Forget the physical id; the stack deletion removes the resource."""
        await super().uncommit()
        self.physical_id = None
