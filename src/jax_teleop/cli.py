"""
Command-line interface for jax_teleop.

Loads a robot description and drives its end effector from the terminal:
inspect the chain, apply pad commands, or run the scripted trajectory.
"""

import asyncio
from pathlib import Path
from typing import Optional, Tuple

import click
import numpy as np
from rich.console import Console
from rich.table import Table

from jax_teleop import __version__
from jax_teleop.core.config import TeleopConfig
from jax_teleop.core.exceptions import TeleopError
from jax_teleop.core.logging import configure_logging
from jax_teleop.core.robot_model import Pose
from jax_teleop.loader import LoadedRobot, load_robot
from jax_teleop.motion import MotionController, hand_frame_commands

console = Console()

PAD_COMMAND_KEYS = tuple(hand_frame_commands(1.0, 1.0))


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="YAML configuration file",
)
@click.option("--end-effector", default=None, help="Override the end-effector link")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    help="Log level",
)
@click.pass_context
def main(ctx: click.Context, config_path: Optional[Path], end_effector: Optional[str], log_level: str) -> None:
    """jax-teleop - end-effector teleoperation for URDF arms."""
    configure_logging(level=log_level)
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["end_effector"] = end_effector


def _config(ctx: click.Context, urdf: Path) -> TeleopConfig:
    config_path = ctx.obj["config_path"]
    config = TeleopConfig.from_yaml(config_path) if config_path else TeleopConfig()

    update = {"urdf_path": str(urdf)}
    if ctx.obj["end_effector"]:
        update["end_effector_link"] = ctx.obj["end_effector"]
    return config.model_copy(update=update)


def _load(config: TeleopConfig) -> LoadedRobot:
    robot = asyncio.run(load_robot(config))
    style = "yellow" if robot.missing_meshes else "green"
    console.print(f"[{style}]✓[/{style}] {robot.status_message}")
    return robot


def _format_vector(values) -> str:
    return "(" + ", ".join(f"{v:+.4f}" for v in np.asarray(values)) + ")"


def _pose_table(title: str, pose: Pose) -> Table:
    table = Table(title=title)
    table.add_column("Property", style="cyan")
    table.add_column("Value")
    table.add_row("Position [m]", _format_vector(pose.position))
    table.add_row("Quaternion (w, x, y, z)", _format_vector(pose.quaternion))
    return table


@main.command("info")
@click.argument("urdf", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def info(ctx: click.Context, urdf: Path) -> None:
    """Show the kinematic chain and end-effector pose."""
    try:
        config = _config(ctx, urdf)
        robot = _load(config)
    except TeleopError as e:
        console.print(f"[red]✗[/red] Failed to load robot: {e}")
        raise SystemExit(1)

    console.print(f"Root link: {robot.tree.root_link}")
    console.print(f"End effector: {robot.chain.end_effector.name}")

    table = Table(title="Kinematic Chain")
    table.add_column("Joint", style="cyan")
    table.add_column("Type")
    table.add_column("Lower")
    table.add_column("Upper")
    table.add_column("Angle")

    for joint in robot.chain:
        table.add_row(
            joint.name,
            joint.type,
            "-" if joint.lower is None else f"{joint.lower:+.4f}",
            "-" if joint.upper is None else f"{joint.upper:+.4f}",
            f"{joint.angle:+.4f}",
        )

    console.print(table)
    console.print(_pose_table("End-Effector Pose", robot.end_effector_pose()))

    if robot.tree.skipped_joints:
        console.print(f"[yellow]⚠[/yellow] Skipped joints: {', '.join(robot.tree.skipped_joints)}")
    robot.dispose()


@main.command("move")
@click.argument("urdf", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("commands", nargs=-1, required=True, type=click.Choice(PAD_COMMAND_KEYS))
@click.option("--scale", default=1.0, type=click.FloatRange(min=0.0, min_open=True), help="Step scale")
@click.pass_context
def move(ctx: click.Context, urdf: Path, commands: Tuple[str, ...], scale: float) -> None:
    """Apply pad commands in order (front, back, left, right, up, down, yaw_left, yaw_right)."""
    try:
        config = _config(ctx, urdf)
        robot = _load(config)
    except TeleopError as e:
        console.print(f"[red]✗[/red] Failed to load robot: {e}")
        raise SystemExit(1)

    controller = MotionController(robot, config)

    table = Table(title="Commands")
    table.add_column("#")
    table.add_column("Command", style="cyan")
    table.add_column("Result")
    table.add_column("Position [m]")

    for i, key in enumerate(commands, start=1):
        solved = controller.execute(key, scale)
        table.add_row(
            str(i),
            controller.commands[key].label,
            "[green]✓[/green]" if solved else "[red]✗[/red]",
            _format_vector(robot.end_effector_pose().position),
        )

    console.print(table)
    console.print(controller.status)
    console.print(_pose_table("Final Pose", robot.end_effector_pose()))
    robot.dispose()


@main.command("trajectory")
@click.argument("urdf", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--duration", default=5.0, type=click.FloatRange(min=0.0), help="Seconds to run")
@click.pass_context
def trajectory(ctx: click.Context, urdf: Path, duration: float) -> None:
    """Run the scripted trajectory for a fixed duration."""
    try:
        config = _config(ctx, urdf)
        robot = _load(config)
    except TeleopError as e:
        console.print(f"[red]✗[/red] Failed to load robot: {e}")
        raise SystemExit(1)

    controller = MotionController(robot, config)

    async def run() -> None:
        controller.start_trajectory()
        await asyncio.sleep(duration)
        if controller.trajectory_running:
            controller.stop_trajectory()

    asyncio.run(run())

    console.print(f"Ticks: {controller.trajectory_ticks}")
    if controller.trajectory_paused:
        console.print(f"[yellow]⚠[/yellow] {controller.status}")
    else:
        console.print(f"[green]✓[/green] {controller.status}")
    console.print(_pose_table("Final Pose", robot.end_effector_pose()))
    robot.dispose()


if __name__ == "__main__":
    main()
