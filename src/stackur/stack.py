"""Stacks: named, ordered collections of resources and tasks."""

from typing import Awaitable, Callable, Dict, List, Optional, Union

from stackur.compiler.translate import CloudFormationCompiler, PropertyCompiler
from stackur.config.models import Settings
from stackur.engine.engine import ReconciliationEngine
from stackur.providers.cloudformation import CloudFormationProvider
from stackur.providers.object_store import ObjectStore
from stackur.stages.base import Committable, resolve
from stackur.stages.resource import Resource
from stackur.utils.aws_client import AWSClientManager
from stackur.utils.errors import ConfigurationError
from stackur.utils.logging import get_logger

logger = get_logger(__name__)

SetupCallback = Callable[["Stack"], Union[Awaitable[None], None]]


class Stack:
    """The basic building block: a named stack of resources and tasks.

    Units register themselves with the stack when constructed, usually from
    the ``setup`` callback (or an overriding ``setup`` method), which runs
    once before the first unit is committed. Units are committed and
    uncommitted strictly in registration order.
    """

    def __init__(
        self,
        name: str,
        engine: ReconciliationEngine,
        setup: Optional[SetupCallback] = None,
        object_store: Optional[ObjectStore] = None,
        compiler: Optional[PropertyCompiler] = None,
        interactive: bool = False,
        client_manager: Optional[AWSClientManager] = None
    ):
        """Initialize stack.

        Args:
            name: Stack name, used as the CloudFormation stack name
            engine: Reconciliation engine owned by this stack
            setup: Callback that declares the stack's units
            object_store: S3 access used to empty buckets on uncommit
            compiler: Property compiler for resources without their own translator
            interactive: Confirm each change set before executing it
            client_manager: AWS session the providers were built from, if any
        """
        self.name = name
        self.engine = engine
        self.object_store = object_store
        self.compiler = compiler or CloudFormationCompiler()
        self.interactive = interactive
        self.client_manager = client_manager
        self.stages: List[Committable] = []

        self._setup_callback = setup
        self._is_setup = False
        self._committed = False

    @classmethod
    def from_settings(
        cls,
        name: Optional[str] = None,
        settings: Optional[Settings] = None,
        setup: Optional[SetupCallback] = None,
        client_manager: Optional[AWSClientManager] = None,
        gate=None
    ) -> "Stack":
        """Build a stack and its AWS collaborators from settings.

        Args:
            name: Stack name; falls back to settings.stack_name
            settings: Loaded settings (defaults when omitted)
            setup: Callback that declares the stack's units
            client_manager: Pre-built AWS client manager
            gate: Confirmation gate for interactive commits

        Raises:
            ConfigurationError: If no stack name is given either way
        """
        settings = settings or Settings()
        name = name or settings.stack_name
        if not name:
            raise ConfigurationError(
                "No stack name was given",
                suggestions=["Set stack_name in stackur.yaml or pass a name to Stack.from_settings"]
            )

        client_manager = client_manager or AWSClientManager(
            profile=settings.aws.profile,
            region=settings.aws.region,
            max_attempts=settings.aws.max_attempts
        )
        engine = ReconciliationEngine(
            name,
            CloudFormationProvider(client_manager.get_client('cloudformation')),
            gate=gate,
            settings=settings.engine
        )
        return cls(
            name,
            engine,
            setup=setup,
            object_store=ObjectStore(client_manager.get_client('s3')),
            interactive=settings.interactive,
            client_manager=client_manager
        )

    async def setup(self) -> None:
        """Declare the stack's units. Runs once per stack instance."""
        if self._setup_callback is not None:
            await resolve(self._setup_callback(self))

    async def destroy(self) -> None:
        """Extra teardown run by uncommit before the CloudFormation stack is deleted."""

    async def _ensure_setup(self) -> None:
        if self._is_setup:
            return

        await self.engine.initialize()
        try:
            await self.setup()
        except Exception:
            # A retried setup starts from an empty stage list
            self.stages.clear()
            raise

        self._is_setup = True
        logger.debug(f"Stack {self.name} set up with {len(self.stages)} stage(s)")

    def add_stage(self, unit: Committable) -> None:
        """Register a unit; registration order is commit order."""
        self.stages.append(unit)
        logger.debug(f"Registered {unit!r} in stack {self.name}")

    async def commit(self) -> None:
        """Commit every unit in registration order."""
        await self._ensure_setup()
        self._committed = True

        logger.info(f"Committing stack {self.name} ({len(self.stages)} stage(s))")
        # Units registered while committing run after the current one
        for unit in self.stages:
            await unit.commit(force=True)

        logger.info(f"Committed stack {self.name}")

    async def synthesize(self, indent: Optional[int] = 2) -> str:
        """Stage every resource without committing and render the template."""
        await self._ensure_setup()

        for unit in self.stages:
            if isinstance(unit, Resource):
                await self.engine.add_resources(unit.name, unit.compile())

        return self.engine.render(indent=indent)

    async def uncommit(self) -> None:
        """Uncommit every unit, run ``destroy``, then delete the CloudFormation stack."""
        await self._ensure_setup()

        logger.info(f"Uncommitting stack {self.name}")
        for unit in self.stages:
            await unit.uncommit()

        await self.destroy()
        await self.engine.uncommit()
        self._committed = False

    def is_committed(self) -> bool:
        return self._committed

    def physical_ids(self) -> Dict[str, str]:
        """Logical id -> physical id for every deployed resource."""
        return dict(self.engine.physical_ids)
