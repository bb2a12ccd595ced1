"""Assembly scope and component base class.

An Assembly is one run that provisions the complete topology. It owns the
engine, the classification tags, the authorization graph, identity grants and
published outputs. Components are created inside an assembly and talk to the
engine only through it, so every call is tagged, traced and wrapped in
ProvisioningError on failure.
"""

from __future__ import annotations

import functools
from abc import ABC
from collections.abc import Callable, Iterable, Mapping
from typing import TYPE_CHECKING, Any, TypeVar

import structlog
from opentelemetry.trace import SpanKind

from vaultstack_core.authorization import AuthorizationGraph
from vaultstack_core.errors import (
    DuplicateComponentError,
    MissingDependencyError,
    ProvisioningError,
)
from vaultstack_core.models import (
    AccessGrant,
    AssemblyOutput,
    AuthorizationRule,
    Port,
    ResourceHandle,
    ResourceKind,
    ResourceRequest,
)
from vaultstack_core.observability import span

if TYPE_CHECKING:
    from vaultstack_core.engine import ProvisioningEngine

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class Assembly:
    """Scope of one topology assembly.

    Attributes:
        engine: Provisioning engine every call goes through.
        name: Root of every logical id (e.g., "vaultwarden").
        tags: Tags applied to every resource request.
        authorization: Rules opened so far.
        grants: Identity permissions attached so far.
        outputs: Published outputs by name.

    Example:
        >>> assembly = Assembly(InMemoryEngine(), tags={"x:stack": "vaultwarden"})
        >>> network = NetworkTopology(assembly, "network")
    """

    def __init__(
        self,
        engine: ProvisioningEngine,
        *,
        name: str = "vaultwarden",
        tags: Mapping[str, str] | None = None,
    ) -> None:
        self.engine = engine
        self.name = name
        self.tags: dict[str, str] = dict(tags or {})
        self.authorization = AuthorizationGraph()
        self.grants: list[AccessGrant] = []
        self.outputs: dict[str, AssemblyOutput] = {}
        self._components: dict[str, Component] = {}
        self._resources: list[tuple[ResourceRequest, ResourceHandle]] = []
        self._log = logger.bind(assembly=name)

    def path(self, *parts: str) -> str:
        """Logical id below this assembly."""
        return "/".join((self.name, *parts))

    @property
    def components(self) -> dict[str, Component]:
        """Registered components by id."""
        return dict(self._components)

    @property
    def resources(self) -> list[tuple[ResourceRequest, ResourceHandle]]:
        """Requests and handles in creation order."""
        return list(self._resources)

    def register(self, component: Component) -> None:
        """Register a component under its id.

        Raises:
            DuplicateComponentError: If the id is already taken.
        """
        if component.component_id in self._components:
            raise DuplicateComponentError(component.path)
        self._components[component.component_id] = component

    def unregister(self, component: Component) -> None:
        """Release the id of a component that failed to construct."""
        if self._components.get(component.component_id) is component:
            del self._components[component.component_id]
            self._log.debug("component_discarded", component=component.path)

    def engine_call(
        self,
        operation: str,
        resource_kind: str,
        resource_id: str,
        call: Callable[[], T],
    ) -> T:
        """Run one engine call inside a client span.

        Args:
            operation: Span name (e.g., "provision_cluster").
            resource_kind: Kind reported if the call fails.
            resource_id: Logical id (or rule) the call acts on.
            call: The engine call.

        Raises:
            ProvisioningError: If the engine raises.
        """
        with span(operation, kind=SpanKind.CLIENT, attributes={"logical_id": resource_id}):
            try:
                return call()
            except Exception as e:
                raise ProvisioningError(
                    resource_kind,
                    resource_id,
                    internal_details=f"{type(e).__name__}: {e}",
                ) from e

    def provision(
        self,
        kind: ResourceKind,
        logical_id: str,
        properties: Mapping[str, Any] | None = None,
        *,
        depends_on: Iterable[ResourceHandle] = (),
    ) -> ResourceHandle:
        """Ask the engine to create one resource.

        Args:
            kind: Resource kind.
            logical_id: Assembly-scoped path of the resource.
            properties: Declarative resource properties.
            depends_on: Handles that must exist first.

        Returns:
            Handle of the created resource.

        Raises:
            ProvisioningError: If the engine fails.
        """
        request = ResourceRequest(
            kind=kind,
            logical_id=logical_id,
            properties=dict(properties or {}),
            depends_on=tuple(h.logical_id for h in depends_on),
            tags=dict(self.tags),
        )
        handle = self.engine_call(
            f"provision_{kind.value}",
            kind.value,
            logical_id,
            lambda: self.engine.create(request),
        )
        self._resources.append((request, handle))
        return handle

    def authorize(self, source: str, destination: str, port: Port) -> AuthorizationRule:
        """Open one directed rule, once.

        The rule enters the authorization graph only after the engine applied it.

        Raises:
            ProvisioningError: If the engine fails to apply the rule.
        """
        rule = AuthorizationRule(source=source, destination=destination, port=port)
        if rule in self.authorization:
            return rule
        self.engine_call(
            "authorize_rule",
            "authorization_rule",
            str(rule),
            lambda: self.engine.authorize(rule),
        )
        self.authorization.add(rule)
        return rule

    def grant(self, grant: AccessGrant) -> None:
        """Attach one identity permission.

        Raises:
            ProvisioningError: If the engine fails to attach the permission.
        """
        if grant in self.grants:
            return
        self.engine_call(
            "grant_access",
            "access_grant",
            f"{grant.principal} -> {grant.resource}",
            lambda: self.engine.grant(grant),
        )
        self.grants.append(grant)

    def add_output(self, name: str, value: str, description: str = "") -> AssemblyOutput:
        """Publish an output value."""
        output = AssemblyOutput(name=name, value=value, description=description)
        self.outputs[name] = output
        self._log.info("output_published", output=name, value=value)
        return output


def _released_on_failure(init: Callable[..., None]) -> Callable[..., None]:
    @functools.wraps(init)
    def constructor(self: Component, *args: Any, **kwargs: Any) -> None:
        try:
            init(self, *args, **kwargs)
        except Exception:
            assembly = getattr(self, "assembly", None)
            if assembly is not None:
                assembly.unregister(self)
            raise

    return constructor


class Component(ABC):
    """Base class for topology components.

    A component registers itself, provisions its resources in its constructor
    and publishes its primary handle as the last step. Until then ``handle``
    raises MissingDependencyError. A constructor that raises releases the
    component id again, so the component can be rebuilt under the same id.

    Attributes:
        assembly: Owning assembly.
        component_id: Id unique within the assembly.
        path: Logical id of the component (``<assembly>/<component_id>``).
    """

    def __init__(self, assembly: Assembly, component_id: str) -> None:
        self.assembly = assembly
        self.component_id = component_id
        self.path = assembly.path(component_id)
        self._handle: ResourceHandle | None = None
        self._log = logger.bind(component=self.path)
        assembly.register(self)

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        init = cls.__dict__.get("__init__")
        if init is not None:
            cls.__init__ = _released_on_failure(init)  # type: ignore[method-assign]

    @property
    def is_provisioned(self) -> bool:
        """Whether the primary handle has been published."""
        return self._handle is not None

    @property
    def handle(self) -> ResourceHandle:
        """Primary resource handle.

        Raises:
            MissingDependencyError: If the component has not finished provisioning.
        """
        if self._handle is None:
            raise MissingDependencyError(self.path)
        return self._handle

    def _publish(self, handle: ResourceHandle) -> None:
        self._handle = handle
        self._log.info("component_provisioned", physical_id=handle.physical_id)

    def _child(self, *parts: str) -> str:
        return "/".join((self.path, *parts))

    def _require(self, name: str, dependency: Component | None) -> ResourceHandle:
        """Handle of a dependency, checked for presence and provisioning.

        Raises:
            MissingDependencyError: If the dependency is absent, unprovisioned,
                or belongs to another assembly.
        """
        if dependency is None or not dependency.is_provisioned:
            raise MissingDependencyError(name, component=self.path)
        if dependency.assembly is not self.assembly:
            raise MissingDependencyError(
                name,
                component=self.path,
                internal_details=f"{dependency.path} belongs to another assembly",
            )
        return dependency.handle
