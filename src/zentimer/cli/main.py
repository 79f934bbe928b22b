"""CLI entry point for zentimer.

Uses Click to expose the ``zentimer`` command group. Every invocation is a
fresh app launch: the controller restores the persisted session before the
command runs, and a running session outlives the process that started it.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional

import click

import zentimer
from zentimer.app import ZenTimerApp
from zentimer.config import CONFIG_DIR_ENV, default_config_dir
from zentimer.core.controller import TimerStatus
from zentimer.core.notifications import NotificationAction
from zentimer.core.preferences import AlertEffect
from zentimer.core.timer import TimerState
from zentimer.utils.logging_handler import setup_logger

_EFFECT_LABELS = {
    AlertEffect.HAPTIC: "Vibration",
    AlertEffect.FLASH: "Flash",
    AlertEffect.SOUND: "Sound",
    AlertEffect.QUIET: "Do Not Disturb",
}


def _launch(ctx: click.Context) -> ZenTimerApp:
    app = ZenTimerApp(config_dir=ctx.obj["config_dir"])
    app.launch()
    return app


def _describe(status: TimerStatus) -> tuple[str, int]:
    """Return ``(message, exit_code)`` for *status*."""
    if status.state == TimerState.RUNNING:
        return f"{status.formatted_time} remaining", 0
    if status.state == TimerState.PAUSED:
        return f"{status.formatted_time} remaining (paused)", 0
    if status.state == TimerState.COMPLETED:
        return "Timer finished", 1
    return f"No active timer ({status.formatted_time} set)", 1


def _echo_advisory(status: TimerStatus) -> None:
    if status.advisory:
        click.echo(status.advisory, err=True)


@click.group()
@click.version_option(version=zentimer.__version__, prog_name="zentimer")
@click.option(
    "--config-dir",
    type=click.Path(file_okay=False, path_type=Path),
    envvar=CONFIG_DIR_ENV,
    default=None,
    help="Where the timer keeps its state (default ~/.config/zentimer).",
)
@click.option("-v", "--verbose", is_flag=True, help="Log to the console as well.")
@click.pass_context
def cli(ctx: click.Context, config_dir: Optional[Path], verbose: bool) -> None:
    """zentimer: a focus timer that survives sleep, suspension and restarts."""
    config_dir = config_dir if config_dir is not None else default_config_dir()
    setup_logger(config_dir, level=logging.DEBUG if verbose else logging.INFO, console=verbose)
    ctx.obj = {"config_dir": config_dir}


@cli.command()
@click.argument("minutes", type=int, required=False)
@click.pass_context
def start(ctx: click.Context, minutes: Optional[int]) -> None:
    """Start (or resume) the timer, optionally for MINUTES minutes (1-60)."""
    app = _launch(ctx)
    controller = app.controller
    state = controller.status.state
    if state not in (TimerState.IDLE, TimerState.PAUSED):
        click.echo(f"start is not available while the timer is {state.value}", err=True)
        app.shutdown()
        sys.exit(1)
    if minutes is not None:
        controller.set_duration(minutes)
    controller.start()
    status = controller.status
    _echo_advisory(status)
    click.echo(f"Timer started: {status.formatted_time} remaining")
    app.shutdown()


@cli.command()
@click.argument("minutes", type=int, required=False)
@click.pass_context
def run(ctx: click.Context, minutes: Optional[int]) -> None:
    """Run the timer in the foreground until it finishes.

    Press Ctrl+C to leave it running in the background.
    """
    app = _launch(ctx)
    controller = app.controller
    if minutes is not None:
        controller.set_duration(minutes)
    if controller.status.state in (TimerState.IDLE, TimerState.PAUSED):
        controller.start()

    status = controller.status
    if status.state != TimerState.RUNNING:
        message, exit_code = _describe(status)
        click.echo(message)
        app.shutdown()
        sys.exit(exit_code)
    _echo_advisory(status)

    def render(current: TimerStatus) -> None:
        click.echo(f"\r{current.formatted_time} {current.status_text:<8}", nl=False)

    render(status)
    unsubscribe = controller.subscribe(render)
    try:
        app.run_foreground()
    except KeyboardInterrupt:
        app.background()
        click.echo("\nTimer continues in the background.")
        return
    finally:
        unsubscribe()
    click.echo()
    app.shutdown()


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show the current timer status."""
    app = _launch(ctx)
    message, exit_code = _describe(app.controller.status)
    click.echo(message)
    app.shutdown()
    sys.exit(exit_code)


@cli.command()
@click.pass_context
def reset(ctx: click.Context) -> None:
    """Stop the timer and restore the full duration."""
    app = _launch(ctx)
    app.controller.reset()
    click.echo(f"Timer reset to {app.controller.status.formatted_time}")
    app.shutdown()


@cli.command(context_settings={"ignore_unknown_options": True})
@click.argument("delta", type=int)
@click.pass_context
def adjust(ctx: click.Context, delta: int) -> None:
    """Step the duration by DELTA minutes (1-99) and start the timer."""
    app = _launch(ctx)
    controller = app.controller
    state = controller.status.state
    if state != TimerState.IDLE:
        click.echo(f"adjust is not available while the timer is {state.value}", err=True)
        app.shutdown()
        sys.exit(1)
    controller.adjust_duration(delta)
    controller.start()
    status = controller.status
    _echo_advisory(status)
    click.echo(f"Timer started: {status.formatted_time} remaining")
    app.shutdown()


@cli.command()
@click.argument("effect", type=click.Choice([e.value for e in AlertEffect]))
@click.pass_context
def toggle(ctx: click.Context, effect: str) -> None:
    """Turn a completion alert effect on or off."""
    app = _launch(ctx)
    chosen = AlertEffect(effect)
    app.controller.toggle(chosen)
    enabled = app.controller.preferences.is_enabled(chosen)
    click.echo(f"{_EFFECT_LABELS[chosen]} {'on' if enabled else 'off'}")
    app.shutdown()


@cli.command()
@click.pass_context
def prefs(ctx: click.Context) -> None:
    """Show the completion alert preferences."""
    app = _launch(ctx)
    preferences = app.controller.preferences
    for effect, label in _EFFECT_LABELS.items():
        click.echo(f"{label}: {'on' if preferences.is_enabled(effect) else 'off'}")
    app.shutdown()


@cli.command()
@click.option(
    "--action",
    type=click.Choice([a.value for a in NotificationAction]),
    default=None,
    help="Act on the notification as the user would.",
)
@click.pass_context
def notify(ctx: click.Context, action: Optional[str]) -> None:
    """Deliver the completion notification once it is due.

    Suitable for running from cron or a systemd timer. The app is restored
    first, so the delivery reaches the controller; with --action it also
    handles the chosen notification action.
    """
    app = _launch(ctx)
    delivered = app.scheduler.deliver_due()
    if delivered is not None:
        click.echo(f"{delivered.payload.title}: {delivered.payload.body}")
    if action is None:
        app.shutdown()
        sys.exit(0 if delivered is not None else 1)

    app.scheduler.respond(NotificationAction(action))
    message, _ = _describe(app.controller.status)
    click.echo(message)
    app.shutdown()
