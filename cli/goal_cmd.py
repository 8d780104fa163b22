"""
CLI: goals
Inspect and maintain goal compositions stored in a JSON registry.
"""
from pathlib import Path

import click

from goal_engine.exceptions import GoalEngineError
from goal_engine.logger import setup_logging
from goal_engine.registry import REGISTRY_PATH, CompositionRegistry
from goal_engine.service import GoalCompositionService

ITEM_TYPES = click.Choice(["goal", "habit"])


@click.group()
@click.option(
    "--registry",
    "registry_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=REGISTRY_PATH,
    show_default=True,
    help="JSON registry file",
)
@click.pass_context
def goals(ctx: click.Context, registry_path: Path):
    """Goal composition tools"""
    setup_logging()
    ctx.obj = GoalCompositionService(registry=CompositionRegistry(path=registry_path))


@goals.command()
@click.argument("weights", nargs=-1, type=float, required=True)
@click.pass_obj
def normalize(service: GoalCompositionService, weights):
    """Normalize WEIGHTS so they sum to 100"""
    result = service.normalize_weights(list(weights))
    click.echo(" ".join(str(w) for w in result))


@goals.command()
@click.argument("goal_id")
@click.pass_obj
def progress(service: GoalCompositionService, goal_id: str):
    """Show a goal's progress breakdown"""
    try:
        report = service.get_progress_report(goal_id)
    except GoalEngineError as e:
        click.echo(f"Error: {e.get_user_message()}", err=True)
        raise SystemExit(1)

    click.echo(f"{goal_id}: {report.percent}%")
    if report.normalized:
        click.echo(f"  (weights sum to {report.total_weight_before_normalize}, read as 100)")
    for item in report.items:
        line = f"  [{item.kind}] {item.ref} weight={item.weight} ratio={item.ratio:.2f}"
        if item.target_count is not None:
            line += f" ({item.done_count}/{item.target_count})"
        click.echo(line)


@goals.command()
@click.argument("item_type", type=ITEM_TYPES)
@click.argument("item_id")
@click.pass_obj
def dependents(service: GoalCompositionService, item_type: str, item_id: str):
    """List open goals that reference a goal or habit"""
    found = service.find_dependent_goals(item_type, item_id)
    if not found:
        click.echo("No goals depend on it")
        return
    for dep in found:
        click.echo(f"  - {dep.parent_goal_id}: {dep.parent_title} ({dep.reference_count} reference(s))")


@goals.command()
@click.argument("item_type", type=ITEM_TYPES)
@click.argument("item_id")
@click.option("--yes", is_flag=True, help="Skip the confirmation prompt")
@click.pass_obj
def remove(service: GoalCompositionService, item_type: str, item_id: str, yes: bool):
    """Delete a goal or habit and redistribute weights of goals that used it"""
    found = service.find_dependent_goals(item_type, item_id)
    if found:
        click.echo(f"{len(found)} open goal(s) use this {item_type}:")
        for dep in found:
            click.echo(f"  - {dep.parent_title}")
    if not yes and not click.confirm(f"Delete {item_type} {item_id}?"):
        click.echo("Cancelled")
        return

    patches = service.apply_removal(item_type, item_id)
    registry = service.registry
    registry.apply_patches(patches)
    if item_type == "habit":
        registry.delete_habit(item_id)
    else:
        registry.delete_goal(item_id)

    click.echo(f"Deleted {item_type} {item_id}; updated {len(patches)} goal(s)")
    for patch in patches:
        weights = [s.weight for s in patch.sub_goals] + [h.weight for h in patch.habit_links]
        click.echo(f"  {patch.goal_id}: weights {weights}")


@goals.command()
@click.argument("entity_id")
@click.pass_obj
def lock(service: GoalCompositionService, entity_id: str):
    """Show the completion lock of a goal or habit"""
    try:
        state = service.get_completion_lock_state(entity_id)
    except GoalEngineError as e:
        click.echo(f"Error: {e.get_user_message()}", err=True)
        raise SystemExit(1)
    click.echo(f"{entity_id}: {state.status.value}")
    click.echo(f"  eligible at: {state.eligible_at.isoformat()}")
    if state.locked:
        hours = state.time_until_can_complete.total_seconds() / 3600
        click.echo(f"  time left: {hours:.1f}h")


if __name__ == "__main__":
    goals()
