"""FastAPI dependency injection — wires adapters into use cases."""

from __future__ import annotations

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from case_allocation.adapters.case_directory.http_cache_client import (
    CommitBoundCacheEviction,
    HttpCacheEvictionClient,
)
from case_allocation.adapters.persistence.database import get_session
from case_allocation.adapters.persistence.repositories import (
    SqlAgentDirectory,
    SqlAllocationHistoryRepository,
    SqlAllocationRuleRepository,
    SqlAuditSink,
    SqlCaseAllocationRepository,
    SqlCaseDirectory,
)
from case_allocation.application.use_cases.agent_workload import (
    GetAgentWorkloadUseCase,
    ReconcileWorkloadUseCase,
)
from case_allocation.application.use_cases.apply_rule import ApplyRuleUseCase
from case_allocation.application.use_cases.assignment_ledger import AssignmentLedger
from case_allocation.application.use_cases.case_matching import CaseMatcher
from case_allocation.application.use_cases.manage_rules import ManageRulesUseCase
from case_allocation.application.use_cases.reallocate import (
    ReallocateByAgentUseCase,
    ReallocateByFilterUseCase,
)
from case_allocation.application.use_cases.simulate_rule import SimulateRuleUseCase
from case_allocation.application.use_cases.workload_accounting import WorkloadAccounting

# Singleton adapter (stateless)
_cache_client = HttpCacheEvictionClient()


def _cache(session: AsyncSession) -> CommitBoundCacheEviction:
    return CommitBoundCacheEviction(session, _cache_client)


def _ledger(session: AsyncSession) -> AssignmentLedger:
    return AssignmentLedger(
        allocation_repo=SqlCaseAllocationRepository(session),
        history_repo=SqlAllocationHistoryRepository(session),
        case_directory=SqlCaseDirectory(session),
        workload=WorkloadAccounting(SqlAgentDirectory(session)),
        audit=SqlAuditSink(session),
        cache=_cache(session),
    )


def _matcher(session: AsyncSession) -> CaseMatcher:
    return CaseMatcher(
        case_directory=SqlCaseDirectory(session),
        agent_directory=SqlAgentDirectory(session),
        allocation_repo=SqlCaseAllocationRepository(session),
    )


def get_manage_rules_uc(session: AsyncSession = Depends(get_session)) -> ManageRulesUseCase:
    return ManageRulesUseCase(
        rule_repo=SqlAllocationRuleRepository(session),
        audit=SqlAuditSink(session),
    )


def get_simulate_rule_uc(session: AsyncSession = Depends(get_session)) -> SimulateRuleUseCase:
    return SimulateRuleUseCase(
        rule_repo=SqlAllocationRuleRepository(session),
        matcher=_matcher(session),
        audit=SqlAuditSink(session),
    )


def get_apply_rule_uc(session: AsyncSession = Depends(get_session)) -> ApplyRuleUseCase:
    return ApplyRuleUseCase(
        rule_repo=SqlAllocationRuleRepository(session),
        case_directory=SqlCaseDirectory(session),
        agent_directory=SqlAgentDirectory(session),
        matcher=_matcher(session),
        ledger=_ledger(session),
        workload=WorkloadAccounting(SqlAgentDirectory(session)),
        audit=SqlAuditSink(session),
        cache=_cache(session),
    )


def get_ledger(session: AsyncSession = Depends(get_session)) -> AssignmentLedger:
    return _ledger(session)


def get_reallocate_by_agent_uc(
    session: AsyncSession = Depends(get_session),
) -> ReallocateByAgentUseCase:
    return ReallocateByAgentUseCase(
        allocation_repo=SqlCaseAllocationRepository(session),
        ledger=_ledger(session),
        case_directory=SqlCaseDirectory(session),
        agent_directory=SqlAgentDirectory(session),
        workload=WorkloadAccounting(SqlAgentDirectory(session)),
        audit=SqlAuditSink(session),
        cache=_cache(session),
    )


def get_reallocate_by_filter_uc(
    session: AsyncSession = Depends(get_session),
) -> ReallocateByFilterUseCase:
    return ReallocateByFilterUseCase(
        allocation_repo=SqlCaseAllocationRepository(session),
        ledger=_ledger(session),
        case_directory=SqlCaseDirectory(session),
        agent_directory=SqlAgentDirectory(session),
        workload=WorkloadAccounting(SqlAgentDirectory(session)),
        audit=SqlAuditSink(session),
        cache=_cache(session),
    )


def get_agent_workload_uc(session: AsyncSession = Depends(get_session)) -> GetAgentWorkloadUseCase:
    return GetAgentWorkloadUseCase(
        agent_directory=SqlAgentDirectory(session),
        allocation_repo=SqlCaseAllocationRepository(session),
    )


def get_reconcile_workload_uc(
    session: AsyncSession = Depends(get_session),
) -> ReconcileWorkloadUseCase:
    return ReconcileWorkloadUseCase(
        agent_directory=SqlAgentDirectory(session),
        allocation_repo=SqlCaseAllocationRepository(session),
    )
