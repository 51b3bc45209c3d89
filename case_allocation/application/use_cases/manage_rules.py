"""ManageRulesUseCase — create, read, edit and delete allocation rules."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from case_allocation.application.ports.audit_sink import AuditSink
from case_allocation.application.ports.rule_repo import AllocationRuleRepository
from case_allocation.application.use_cases.side_effects import record_audit
from case_allocation.domain.entities.allocation_rule import AllocationRule
from case_allocation.domain.errors import BusinessRuleError, NotFoundError
from case_allocation.domain.value_objects.enums import RuleStatus
from case_allocation.domain.value_objects.rule_criteria import RuleCriteria

logger = logging.getLogger(__name__)

AUDIT_ENTITY = "ALLOCATION_RULE"


@dataclass
class RuleChanges:
    """Partial update; None leaves a field as it is."""

    name: str | None = None
    description: str | None = None
    priority: int | None = None
    criteria: RuleCriteria | None = None


def _audit_view(rule: AllocationRule) -> dict:
    return {
        "name": rule.name,
        "description": rule.description,
        "status": rule.status.value,
        "priority": rule.priority,
        "criteria": rule.criteria.to_dict(),
    }


class ManageRulesUseCase:
    def __init__(self, rule_repo: AllocationRuleRepository, audit: AuditSink | None = None):
        self._rules = rule_repo
        self._audit = audit

    async def create(
        self,
        name: str,
        criteria: RuleCriteria,
        description: str | None = None,
        priority: int = 0,
    ) -> AllocationRule:
        """New rules always start in DRAFT."""
        rule = AllocationRule(
            id=None,
            name=name.strip() if name else name,
            criteria=criteria,
            description=description,
            status=RuleStatus.DRAFT,
            priority=priority,
        )
        rule.validate()
        saved = await self._rules.save(rule)
        logger.info("Created allocation rule %d '%s' (%s)", saved.id, saved.name, saved.rule_type.value)
        await record_audit(self._audit, AUDIT_ENTITY, saved.id, "CREATE", None, _audit_view(saved))
        return saved

    async def get(self, rule_id: int) -> AllocationRule:
        rule = await self._rules.get_by_id(rule_id)
        if rule is None:
            raise NotFoundError(f"Allocation rule not found: {rule_id}")
        return rule

    async def list_all(self) -> list[AllocationRule]:
        return await self._rules.get_all()

    async def update(self, rule_id: int, changes: RuleChanges) -> AllocationRule:
        rule = await self.get(rule_id)
        if not rule.is_editable():
            raise BusinessRuleError(f"Rule {rule_id} is ACTIVE and can no longer be edited")

        before = _audit_view(rule)
        if changes.name is not None:
            rule.name = changes.name.strip()
        if changes.description is not None:
            rule.description = changes.description
        if changes.priority is not None:
            rule.priority = changes.priority
        if changes.criteria is not None:
            rule.criteria = changes.criteria
        rule.validate()

        updated = await self._rules.update(rule)
        await record_audit(self._audit, AUDIT_ENTITY, rule_id, "UPDATE", before, _audit_view(updated))
        return updated

    async def delete(self, rule_id: int) -> None:
        rule = await self.get(rule_id)
        if not rule.is_editable():
            raise BusinessRuleError(f"Rule {rule_id} is ACTIVE and cannot be deleted")
        await self._rules.delete(rule_id)
        logger.info("Deleted allocation rule %d", rule_id)
        await record_audit(self._audit, AUDIT_ENTITY, rule_id, "DELETE", _audit_view(rule), None)
