"""Removal of selected contexts and the clusters/users they leave behind."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from kubectl_config_cleanup.kubeconfig import Kubeconfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PruneOptions:
    remove_stale_clusters: bool = True
    remove_stale_users: bool = True
    keep_shared: bool = False


@dataclass(frozen=True)
class PrunePlan:
    """Names to delete, computed from a snapshot before anything is removed."""

    contexts: tuple[str, ...]
    orphaned_clusters: frozenset[str]
    orphaned_users: frozenset[str]
    stale_clusters: frozenset[str]
    stale_users: frozenset[str]
    # Directly orphaned names that a surviving context still references.
    shared_clusters: frozenset[str]
    shared_users: frozenset[str]

    @property
    def clusters(self) -> frozenset[str]:
        return self.orphaned_clusters | self.stale_clusters

    @property
    def users(self) -> frozenset[str]:
        return self.orphaned_users | self.stale_users


@dataclass
class PruneResult:
    plan: PrunePlan
    removed_contexts: list[str]
    removed_clusters: list[str]
    removed_users: list[str]
    missing_clusters: list[str]
    missing_users: list[str]
    current_context_removed: bool

    @property
    def changed(self) -> bool:
        return bool(self.removed_contexts or self.removed_clusters or self.removed_users)


def plan_prune(
    config: Kubeconfig,
    selected: Iterable[str],
    options: PruneOptions = PruneOptions(),
) -> PrunePlan:
    wanted = set(selected)
    contexts = config.contexts()

    removed = [ctx for ctx in contexts if ctx.name in wanted]
    remaining = [ctx for ctx in contexts if ctx.name not in wanted]

    orphaned_clusters = frozenset(ctx.cluster for ctx in removed if ctx.cluster)
    orphaned_users = frozenset(ctx.user for ctx in removed if ctx.user)
    referenced_clusters = {ctx.cluster for ctx in remaining if ctx.cluster}
    referenced_users = {ctx.user for ctx in remaining if ctx.user}

    shared_clusters = frozenset(orphaned_clusters & referenced_clusters)
    shared_users = frozenset(orphaned_users & referenced_users)
    if options.keep_shared:
        orphaned_clusters = orphaned_clusters - shared_clusters
        orphaned_users = orphaned_users - shared_users

    stale_clusters: frozenset[str] = frozenset()
    if options.remove_stale_clusters:
        stale_clusters = frozenset(
            name
            for name in config.cluster_names()
            if name not in referenced_clusters and name not in orphaned_clusters
        )

    stale_users: frozenset[str] = frozenset()
    if options.remove_stale_users:
        stale_users = frozenset(
            name
            for name in config.user_names()
            if name not in referenced_users and name not in orphaned_users
        )

    return PrunePlan(
        contexts=tuple(ctx.name for ctx in removed),
        orphaned_clusters=orphaned_clusters,
        orphaned_users=orphaned_users,
        stale_clusters=stale_clusters,
        stale_users=stale_users,
        shared_clusters=shared_clusters,
        shared_users=shared_users,
    )


def missing_references(config: Kubeconfig) -> tuple[list[str], list[str]]:
    """Return clusters/users referenced by contexts but not defined anywhere."""
    clusters = set(config.cluster_names())
    users = set(config.user_names())
    missing_clusters: set[str] = set()
    missing_users: set[str] = set()
    for ctx in config.contexts():
        if ctx.cluster and ctx.cluster not in clusters:
            missing_clusters.add(ctx.cluster)
        if ctx.user and ctx.user not in users:
            missing_users.add(ctx.user)
    return sorted(missing_clusters), sorted(missing_users)


def apply_plan(config: Kubeconfig, plan: PrunePlan) -> PruneResult:
    current_context = config.current_context

    removed_contexts = config.remove_contexts(plan.contexts)
    removed_clusters = config.remove_clusters(plan.clusters)
    removed_users = config.remove_users(plan.users)
    missing_clusters, missing_users = missing_references(config)

    return PruneResult(
        plan=plan,
        removed_contexts=removed_contexts,
        removed_clusters=removed_clusters,
        removed_users=removed_users,
        missing_clusters=missing_clusters,
        missing_users=missing_users,
        current_context_removed=current_context is not None
        and current_context in removed_contexts,
    )


def prune_contexts(
    config: Kubeconfig,
    selected: Iterable[str],
    options: PruneOptions = PruneOptions(),
) -> PruneResult:
    """
    Remove the selected contexts and prune clusters/users.

    Clusters and users referenced by a removed context are deleted even when
    another remaining context still uses them, unless ``keep_shared`` is set.
    Stale entries (referenced by no remaining context) are deleted only when
    the matching option is set.
    """
    plan = plan_prune(config, selected, options)

    if options.keep_shared:
        for name in sorted(plan.shared_clusters | plan.shared_users):
            logger.info(f"Keeping '{name}', still used by a remaining context")
    else:
        for name in sorted(plan.shared_clusters):
            logger.warning(
                f"Cluster '{name}' is still used by a remaining context but will be removed"
            )
        for name in sorted(plan.shared_users):
            logger.warning(
                f"User '{name}' is still used by a remaining context but will be removed"
            )

    return apply_plan(config, plan)
