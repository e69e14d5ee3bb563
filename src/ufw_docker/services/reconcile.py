"""Container rule reconciliation.

Keeps ufw route rules in line with the published ports of a container:
- resolves the container reference to its name
- adds one rule per (address, port, protocol)
- replaces rules left behind when the container's address changed
- lists and deletes rules by their comment tag

Invocations are not synchronized with each other. Two runs against the same
container and port at the same time can both decide a rule is missing and
both add it, or one can delete what the other just added. Callers that
script this tool must serialize such runs themselves.
"""

from typing import Callable, Iterable, Optional

from rich.markup import escape

from ufw_docker.core.audit import AuditEventType, AuditLogger, AuditResult
from ufw_docker.core.context import ExecutionContext
from ufw_docker.core.exceptions import ContainerLookupError, FirewallError, UfwDockerError
from ufw_docker.core.validation import Protocol, is_canonical_name, is_lookup_ref
from ufw_docker.services.docker import ContainerRuntime
from ufw_docker.services.ufw import (
    FirewallBackend,
    NumberedRule,
    RouteRule,
    match_rules,
    starts_with_marker,
)


class DockerRuleManager:
    """Reconciles ufw rules for Docker containers."""

    def __init__(
        self,
        ctx: ExecutionContext,
        firewall: FirewallBackend,
        runtime: ContainerRuntime,
        *,
        audit: Optional[AuditLogger] = None,
        is_duplicate: Optional[Callable[[str], bool]] = None,
    ) -> None:
        """Initialize the rule manager.

        Args:
            ctx: Execution context
            firewall: Firewall backend holding the rules
            runtime: Container runtime to inspect
            audit: Audit logger for rule changes
            is_duplicate: Predicate telling whether dry-run output means the
                rule already exists
        """
        self.ctx = ctx
        self.firewall = firewall
        self.runtime = runtime
        self.audit = audit
        self.is_duplicate = is_duplicate or starts_with_marker()

    # =========================================================================
    # Lookup
    # =========================================================================

    def resolve_name(self, ref: str) -> str:
        """Map a name or id prefix to the container's name.

        Falls back to ``ref`` itself when it cannot be resolved; a missing
        container is reported later by the operation that needs it.
        """
        if not is_lookup_ref(ref):
            return ref

        try:
            name = self.runtime.canonical_name(ref)
        except UfwDockerError as e:
            self.ctx.console.debug(f"Cannot resolve {ref}: {e.message}")
            return ref
        if name and is_canonical_name(name):
            if name != ref:
                self.ctx.console.debug(f"Resolved {ref} to {name}")
            return name
        return ref

    def list_rules(
        self,
        name: Optional[str] = None,
        port: Optional[int] = None,
        protocol: Optional[Protocol] = None,
    ) -> list[NumberedRule]:
        """Rules tagged for name/port/protocol, in ufw order.

        No name lists the rules of every container.
        """
        return match_rules(self.firewall.list_numbered(), name, port, protocol)

    # =========================================================================
    # Changes
    # =========================================================================

    def delete_rules(
        self,
        name: str,
        port: Optional[int] = None,
        protocol: Optional[Protocol] = None,
        *,
        keep_destinations: Iterable[str] = (),
    ) -> list[int]:
        """Delete matching rules, highest number first.

        Deleting a rule renumbers every rule after it, so going downwards
        keeps the remaining numbers valid. Rules pointing at an address in
        ``keep_destinations`` are left alone.

        Returns:
            Numbers of the rules that were deleted
        """
        keep = set(keep_destinations)
        numbers = sorted(
            (r.num for r in self.list_rules(name, port, protocol) if r.destination not in keep),
            reverse=True,
        )
        deleted = []
        for num in numbers:
            try:
                self.firewall.delete(num)
            except FirewallError as e:
                self.ctx.console.error(e.message)
                self._audit_rule(AuditEventType.RULE_REMOVE, AuditResult.FAILURE, name, num, error=e.message)
                continue
            deleted.append(num)
            self._audit_rule(AuditEventType.RULE_REMOVE, self._change_result(), name, num)
        return deleted

    def add_rule(self, rule: RouteRule, *, current_ips: Iterable[str] = ()) -> bool:
        """Add a rule unless an identical one exists.

        Rules with the same tag but a different address are outdated and
        are deleted before the new rule goes in. Rules for the container's
        other ``current_ips`` are not outdated and stay.

        Returns:
            True if the rule is in place (added or already present)
        """
        self.ctx.console.print(rule.comment, markup=False)

        try:
            if self.is_duplicate(self.firewall.dry_run_add(rule)):
                self.ctx.console.verbose(f"Rule already present: {rule}")
                return True

            keep = set(current_ips) - {rule.ip}
            outdated = [
                r for r in self.list_rules(rule.name, rule.port, rule.protocol)
                if r.destination not in keep
            ]
            if outdated:
                self.ctx.console.warn("Remove outdated rule.")
                self.delete_rules(rule.name, rule.port, rule.protocol, keep_destinations=keep)

            self.firewall.add(rule)
        except FirewallError as e:
            self.ctx.console.error(e.message)
            for detail in e.details:
                self.ctx.console.print_err(f"  [dim]{escape(detail)}[/dim]")
            self._audit_rule(AuditEventType.RULE_ADD, AuditResult.FAILURE, rule.name, rule, error=e.message)
            return False

        self._audit_rule(AuditEventType.RULE_ADD, self._change_result(), rule.name, rule)
        return True

    def allow(
        self,
        name: str,
        port: Optional[int] = None,
        protocol: Protocol = Protocol.TCP,
    ) -> bool:
        """Allow forwarded traffic to the published ports of a container.

        With a port, only that published port/protocol is handled. Every
        address and port is attempted even when some fail.

        Returns:
            True if at least one rule is in place
        """
        try:
            container = self.runtime.inspect_published(name)
        except ContainerLookupError as e:
            self.ctx.console.error(e.message)
            if e.hint:
                self.ctx.console.hint(e.hint)
            return False

        selected = [
            b for b in container.bindings
            if port is None or (b.port == port and b.protocol == protocol)
        ]

        succeeded = False
        for binding in selected:
            for ip in container.ip_addresses:
                rule = RouteRule(name=name, ip=ip, port=binding.port, protocol=binding.protocol)
                if self.add_rule(rule, current_ips=container.ip_addresses):
                    succeeded = True

        if not succeeded:
            wanted = f"{port}/{protocol.value}" if port is not None else "(any)"
            self.ctx.console.error(
                f"Fail to add rule(s), cannot find the published port {wanted} "
                f'of instance "{name}" or cannot update outdated rule(s).'
            )
        return succeeded

    # =========================================================================
    # Private Helpers
    # =========================================================================

    def _change_result(self) -> AuditResult:
        return AuditResult.DRY_RUN if self.ctx.dry_run else AuditResult.SUCCESS

    def _audit_rule(
        self,
        event_type: AuditEventType,
        result: AuditResult,
        name: str,
        rule: "RouteRule | int",
        error: Optional[str] = None,
    ) -> None:
        if self.audit is None:
            return
        if isinstance(rule, RouteRule):
            parameters = {"ip": rule.ip, "port": rule.port, "protocol": rule.protocol.value}
            operation = rule.comment
        else:
            parameters = {"number": rule}
            operation = f"delete {rule}"
        self.audit.log_operation(
            event_type,
            result,
            target_type="container",
            target_name=name,
            operation=operation,
            parameters=parameters,
            error=error,
        )
