"""Navigation from a dashboard row to the session's display surface.

Navigation is two steps. First an optional workspace switch is applied;
only then is surface placement resolved, because surface visibility can only
be determined inside the active workspace.
"""

from __future__ import annotations

import logging

from shellfleet.core.activity import ActivityHistory
from shellfleet.core.models import NavigationPlan, SessionSnapshot, Workspace
from shellfleet.core.protocols import DisplayHost, WorkspaceProvider

logger = logging.getLogger(__name__)


def resolve_workspace(session: SessionSnapshot, workspaces: WorkspaceProvider) -> Workspace | None:
    """First workspace (in enumeration order) holding a surface under the session's working directory."""
    directory = session.working_directory
    if not directory or not workspaces.available:
        return None
    for workspace in workspaces.list_workspaces():
        if workspaces.contains_directory(workspace, directory):
            return workspace
    return None


def plan_surface(
    session: SessionSnapshot,
    display: DisplayHost,
    target_workspace: Workspace | None = None,
) -> NavigationPlan:
    """Decide which surface shows the session: its own, another agent's, or a new one."""
    workspace_id = target_workspace.workspace_id if target_workspace else None
    visible = display.visible_surfaces()

    for surface_id, presented in visible.items():
        if presented == session.id:
            return NavigationPlan(target_workspace=workspace_id, reuse_surface_id=surface_id)

    for surface_id, presented in visible.items():
        if presented is not None:
            return NavigationPlan(target_workspace=workspace_id, reuse_surface_id=surface_id)

    return NavigationPlan(target_workspace=workspace_id, must_create_surface=True)


def navigate_to_session(
    session: SessionSnapshot,
    *,
    workspaces: WorkspaceProvider,
    display: DisplayHost,
    history: ActivityHistory,
    switch_workspace: bool = True,
) -> NavigationPlan:
    """Switch workspace (optionally), place the session, show it and record the visit."""
    target: Workspace | None = None
    if switch_workspace:
        target = resolve_workspace(session, workspaces)
        if target is not None:
            current = workspaces.current_workspace()
            if current is None or current.workspace_id != target.workspace_id:
                logger.debug("Switching to workspace %s for %s", target.workspace_id, session.id)
                workspaces.switch_to(target)

    plan = plan_surface(session, display, target)
    display.show_session(session, plan)
    history.record_visit(session.id)
    logger.info(
        "Opened %s (workspace=%s reuse=%s create=%s)",
        session.id,
        plan.target_workspace,
        plan.reuse_surface_id,
        plan.must_create_surface,
    )
    return plan
