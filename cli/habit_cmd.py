"""
CLI 命令：habit
时间预算、每日行动与胜利记录的命令行入口
"""
import asyncio
from typing import Tuple

import click

from habit_engine.engine import HabitEngine
from habit_engine.exceptions import HabitEngineError
from habit_engine.logger import setup_logging
from habit_engine.models import Vision, VisionCategory
from habit_engine.utils import format_duration, minutes_to_hours_minutes, parse_time_input


def _engine(ctx: click.Context) -> HabitEngine:
    return HabitEngine(identity=ctx.obj["identity"])


def _fail(ctx: click.Context, error: HabitEngineError):
    click.echo(f"❌ {error.get_user_message()}", err=True)
    ctx.exit(1)


def _parse_vision(raw: str) -> Vision:
    # id:category:priority:description
    parts = raw.split(":", 3)
    if len(parts) != 4:
        raise click.BadParameter(f"expected id:category:priority:description, got '{raw}'")
    vision_id, category, priority, description = parts
    try:
        rank = int(priority)
    except ValueError:
        raise click.BadParameter(f"priority must be an integer in '{raw}'")
    return Vision(
        id=vision_id,
        category=VisionCategory.from_value(category),
        description=description,
        priority=rank,
    )


@click.group()
@click.option("--user", "identity", default="default", show_default=True, help="User identity")
@click.pass_context
def habit(ctx: click.Context, identity: str):
    """Habit Engine 管理命令"""
    setup_logging(to_files=False)
    ctx.ensure_object(dict)
    ctx.obj["identity"] = identity


@habit.command()
@click.option("--total", default=None, help="Daily budget, e.g. 90, 90m, 1.5h, 2h 30m")
@click.option("--equal", default=None, help="Comma separated vision ids to split equally")
@click.option("--set", "edits", multiple=True, help="vision_id=minutes, repeatable")
@click.pass_context
def budget(ctx: click.Context, total, equal, edits: Tuple[str, ...]):
    """显示或调整今天的时间预算"""
    total_minutes = None
    if total is not None:
        total_minutes = int(total) if total.strip().isdigit() else parse_time_input(total)

    vision_ids = [v.strip() for v in equal.split(",") if v.strip()] if equal else None

    parsed = {}
    for edit in edits:
        vision_id, _, minutes = edit.partition("=")
        if not minutes.strip().isdigit():
            raise click.BadParameter(f"expected vision_id=minutes, got '{edit}'")
        parsed[vision_id.strip()] = int(minutes)

    try:
        snapshot = _engine(ctx).allocate(total=total_minutes, vision_ids=vision_ids, edits=parsed)
    except HabitEngineError as e:
        _fail(ctx, e)
    allocated = sum(a.minutes for a in snapshot.allocations)

    click.echo(f"Date: {snapshot.date}")
    click.echo(f"Total: {minutes_to_hours_minutes(snapshot.total_available_minutes)}")
    for a in snapshot.allocations:
        click.echo(f"  - {a.vision_id}: {a.minutes}m")
    click.echo(f"Remaining: {snapshot.total_available_minutes - allocated}m")


@habit.command()
@click.option("--vision", "visions", multiple=True, required=True,
              help="id:category:priority:description, repeatable")
@click.option("--regenerate", is_flag=True, help="Discard today's actions first")
@click.pass_context
def generate(ctx: click.Context, visions: Tuple[str, ...], regenerate: bool):
    """生成今天的行动"""
    parsed = [_parse_vision(v) for v in visions]
    try:
        result = asyncio.run(_engine(ctx).generate_daily_actions(parsed, regenerate=regenerate))
    except HabitEngineError as e:
        _fail(ctx, e)

    if result.reason:
        click.echo(f"Using offline actions ({result.reason})")
    elif result.cached:
        click.echo("Using today's saved actions")
    for action in result.actions:
        click.echo(f"  [{action.estimated_time_minutes:>2}m] {action.description} ({action.vision_id})")


@habit.command()
@click.pass_context
def stats(ctx: click.Context):
    """胜利统计"""
    try:
        ledger = _engine(ctx).victory_ledger()
    except HabitEngineError as e:
        _fail(ctx, e)
    s = ledger.stats()
    click.echo(f"Current streak: {s.current_streak}")
    click.echo(f"Best streak:    {s.best_streak}")
    click.echo(f"Total days:     {s.total_days}")
    click.echo(f"Time invested:  {minutes_to_hours_minutes(s.total_time_spent_minutes)}")
    click.echo(f"Avg actions:    {s.average_actions_per_day}")
    click.echo(f"Completion:     {s.completion_rate:.0f}%")
    click.echo(f"\n{ledger.motivational_message()}")


@habit.command()
@click.option("-n", "limit", default=7, show_default=True, help="Number of records")
@click.pass_context
def history(ctx: click.Context, limit: int):
    """最近的胜利记录"""
    try:
        records = _engine(ctx).recent_victories(limit)
    except HabitEngineError as e:
        _fail(ctx, e)
    if not records:
        click.echo("No victories yet")
        return
    for r in records:
        click.echo(
            f"Day {r.day_number:>3}  {r.date}  "
            f"{r.actions_completed}/{r.total_actions} actions  {format_duration(r.time_spent_seconds)}"
        )


if __name__ == "__main__":
    habit()
