"""
CLI for GameResX.

Every command opens a Workspace for the project root and prints the
OperationResult it gets back.
"""

import json
import logging
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from rich.tree import Tree

from gameresx import __version__, progress
from gameresx.config import (
    GLOBAL_CONFIG_FILE,
    Config,
    get_project_root,
    mask_secret,
)
from gameresx.generators.manager import list_available_models
from gameresx.models import ModelId, OperationResult, TreeNode
from gameresx.scanner import collect_assets, list_images
from gameresx.workspace import Workspace

console = Console()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True, show_path=False)],
        force=True,
    )
    # httpx logs full request URLs at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _resolve_root(root: Optional[str]) -> Path:
    if root:
        return Path(root).resolve()
    found = get_project_root()
    if not found:
        console.print("[red]Error: Not in a GameResX project. Run 'gameresx init' first or pass --root.[/red]")
        sys.exit(1)
    return found


def _report(result: OperationResult) -> None:
    """Print a result message; exit non-zero on failure."""
    if result.success:
        if result.message:
            console.print(f"[green]{result.message}[/green]")
    else:
        console.print(f"[red]Error: {result.message}[/red]")
        sys.exit(1)


def _load_config(workspace: Workspace):
    result = workspace.load_config()
    if not result.success:
        _report(result)
    return result.data


def _add_tree_nodes(branch: Tree, node: TreeNode) -> None:
    for child in node.children:
        label = child.name if child.has_images else f"[dim]{child.name}[/dim]"
        _add_tree_nodes(branch.add(label), child)


@click.group()
@click.version_option(version=__version__)
@click.option("--root", type=click.Path(file_okay=False), help="Project root (default: nearest project above cwd)")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
@click.pass_context
def main(ctx: click.Context, root: Optional[str], verbose: bool):
    """GameResX - reskin game image assets with generative models."""
    _configure_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["root"] = root


def _workspace(ctx: click.Context) -> Workspace:
    workspace = Workspace(_resolve_root(ctx.obj.get("root")))
    ctx.call_on_close(workspace.close)
    return workspace


@main.command()
@click.argument("path", type=click.Path(exists=True, file_okay=False), default=".")
@click.pass_context
def init(ctx: click.Context, path: str):
    """Create (or open) the project config in PATH."""
    root = Path(ctx.obj.get("root") or path).resolve()
    workspace = Workspace(root)
    ctx.call_on_close(workspace.close)

    already = workspace.project.is_initialized()
    result = workspace.load_config()
    if not result.success:
        _report(result)

    config = result.data
    if not already:
        # Let the statistics scan land in the document before reporting
        workspace.project.wait_for_scan()
        user_model = Config.load().defaults.model
        if user_model != config.ai_settings.model:
            result = workspace.update_settings(model=user_model)
        else:
            result = workspace.load_config()
        if not result.success:
            _report(result)
        config = result.data

    statistics = config.statistics
    console.print(Panel.fit(
        f"[green]{'Opened' if already else 'Initialized'} GameResX project[/green]\n\n"
        f"Root:   {config.root_path}\n"
        f"Config: {workspace.project.config_path}\n"
        f"Images: {statistics.total_images} ({statistics.completed_images} completed)",
        title=config.project_name,
    ))

    check = workspace.check_gitignore()
    if check.success and check.data["needs_config"]:
        console.print(
            f"[yellow]{check.data['gitignore_path']} does not ignore backups; "
            f"run 'gameresx gitignore --fix'[/yellow]"
        )


@main.command()
@click.option("--refresh", is_flag=True, help="Rescan the filesystem first")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def stats(ctx: click.Context, refresh: bool, as_json: bool):
    """Show project statistics."""
    workspace = _workspace(ctx)
    if refresh:
        result = workspace.refresh_statistics()
        if not result.success:
            _report(result)
        statistics = result.data
    else:
        statistics = _load_config(workspace).statistics

    if as_json:
        click.echo(json.dumps(statistics.to_dict(), indent=2, ensure_ascii=False))
        return

    table = Table(title="Project Statistics")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Total images", str(statistics.total_images))
    table.add_row("Completed", str(statistics.completed_images))
    table.add_row("Empty folders", str(len(statistics.empty_folders)))
    console.print(table)

    for folder in statistics.empty_folders:
        console.print(f"  [dim]empty:[/dim] {folder}")


@main.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def tree(ctx: click.Context, as_json: bool):
    """Show the folder tree (folders without images are dimmed)."""
    workspace = _workspace(ctx)
    result = workspace.scan_directory()
    if not result.success:
        _report(result)
    if as_json:
        click.echo(json.dumps([node.to_dict() for node in result.data], indent=2, ensure_ascii=False))
        return
    if not result.data:
        console.print("[yellow]Nothing to show[/yellow]")
        return

    root_node = result.data[0]
    branch = Tree(f"[bold]{root_node.name}[/bold]")
    _add_tree_nodes(branch, root_node)
    console.print(branch)


@main.command("ls")
@click.argument("folder", type=click.Path(exists=True, file_okay=False), required=False)
@click.pass_context
def list_folder(ctx: click.Context, folder: Optional[str]):
    """List images in FOLDER with their tag, prompt and state."""
    workspace = _workspace(ctx)
    result = workspace.list_images(folder)
    if not result.success:
        _report(result)

    config = _load_config(workspace)
    table = Table(title=str(Path(folder).resolve()) if folder else workspace.root_path)
    table.add_column("Image", style="cyan")
    table.add_column("Tag")
    table.add_column("Prompt")
    table.add_column("Done")
    table.add_column("Backup")

    for image in result.data:
        meta = config.image_metadata.get(image.path)
        text = meta.custom_prompt if meta else ""
        table.add_row(
            image.name,
            (meta.tag_type if meta else None) or "-",
            text[:40] + "..." if len(text) > 40 else text,
            "[green]✓[/green]" if meta and meta.is_completed else "",
            "[yellow].back[/yellow]" if workspace.backups.has_backup(image.path) else "",
        )

    console.print(table)


@main.command()
@click.argument("path", type=click.Path(exists=True))
@click.argument("tag_type")
@click.pass_context
def tag(ctx: click.Context, path: str, tag_type: str):
    """Set TAG_TYPE on an image, or on every image directly inside a folder."""
    workspace = _workspace(ctx)
    if Path(path).is_dir():
        _report(workspace.batch_update_folder(path, tag_type))
    else:
        _report(workspace.update_image_metadata(path, tag_type=tag_type))


@main.command()
@click.argument("image", type=click.Path(exists=True, dir_okay=False))
@click.argument("text", nargs=-1)
@click.pass_context
def prompt(ctx: click.Context, image: str, text: tuple):
    """Set the per-image prompt (empty TEXT clears it)."""
    workspace = _workspace(ctx)
    _report(workspace.update_image_metadata(image, custom_prompt=" ".join(text)))


@main.command()
@click.argument("images", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@click.option("--undo", is_flag=True, help="Mark as not completed")
@click.pass_context
def complete(ctx: click.Context, images: tuple, undo: bool):
    """Mark IMAGES as completed."""
    workspace = _workspace(ctx)
    for image in images:
        _report(workspace.update_image_metadata(image, is_completed=not undo))


@main.command()
@click.option("--global-prompt", help="Prompt prefixed onto every generation")
@click.option("--model", type=click.Choice([m.value for m in ModelId]), help="Generation model")
@click.option("--api-key", help="Project-level API key (overrides the user key)")
@click.option("--add-tag", "add_tags", multiple=True, help="Add a custom tag type")
@click.pass_context
def settings(ctx: click.Context, global_prompt: Optional[str], model: Optional[str], api_key: Optional[str], add_tags: tuple):
    """Show or edit project settings."""
    workspace = _workspace(ctx)

    if global_prompt is not None or model or api_key is not None:
        result = workspace.update_settings(global_prompt=global_prompt, model=model, api_key=api_key)
        if not result.success:
            _report(result)
    for label in add_tags:
        result = workspace.add_tag_type(label)
        if not result.success:
            _report(result)

    config = _load_config(workspace)

    table = Table(title=f"{config.project_name} settings")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    table.add_row("Global prompt", config.global_settings.global_prompt or "[dim](empty)[/dim]")
    table.add_row("Tag types", ", ".join(config.global_settings.custom_tag_types))
    table.add_row("Provider", config.ai_settings.provider)
    table.add_row("Model", config.ai_settings.model)
    table.add_row("API key", mask_secret(config.ai_settings.api_key))
    console.print(table)


@main.command()
@click.argument("paths", nargs=-1, type=click.Path(exists=True))
@click.option("--all", "backup_all", is_flag=True, help="Back up every image in the project")
@click.option("--json", "as_json", is_flag=True, help="Output the summary as JSON")
@click.pass_context
def backup(ctx: click.Context, paths: tuple, backup_all: bool, as_json: bool):
    """Create .back copies of images (folders are backed up recursively)."""
    workspace = _workspace(ctx)

    if backup_all:
        result = workspace.backup_folder()
    elif paths:
        files = []
        for path in paths:
            files.extend(collect_assets(path) if Path(path).is_dir() else [path])
        result = workspace.backup_many(files)
    else:
        console.print("[yellow]Nothing to back up. Pass paths or --all.[/yellow]")
        return

    if as_json and result.data is not None:
        click.echo(json.dumps(result.data.to_dict(), indent=2))
        if not result.success:
            sys.exit(1)
        return
    _report(result)


@main.command()
@click.argument("paths", nargs=-1, required=True, type=click.Path(exists=True))
@click.pass_context
def restore(ctx: click.Context, paths: tuple):
    """Restore originals from .back copies (folders: direct images only)."""
    workspace = _workspace(ctx)

    files = []
    for path in paths:
        if Path(path).is_dir():
            files.extend(image.path for image in list_images(path))
        else:
            files.append(path)

    if len(files) == 1:
        _report(workspace.restore(files[0]))
    else:
        _report(workspace.restore_many(files))


@main.command()
@click.argument("image", type=click.Path(exists=True, dir_okay=False))
@click.option("--prompt", "-p", "custom_prompt", help="Prompt for this run (overrides the stored one)")
@click.option("--model", "-m", type=click.Choice([m.value for m in ModelId]), help="Model for this run")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def generate(ctx: click.Context, image: str, custom_prompt: Optional[str], model: Optional[str], as_json: bool):
    """Generate a replacement for IMAGE and swap it in."""
    workspace = _workspace(ctx)
    if not as_json:
        config = _load_config(workspace)
        progress.print_header("GAMERESX GENERATE", model or config.ai_settings.model)
        progress.print_item(1, 1, image)

    result = workspace.generate(image, custom_prompt=custom_prompt, model_override=model)
    outcome = result.data

    if as_json:
        click.echo(json.dumps(outcome.to_dict(), indent=2, ensure_ascii=False))
        if not outcome.success:
            sys.exit(1)
        return

    if outcome.success:
        progress.print_dimensions(outcome.dimension_info)
        console.print(f"[green]{outcome.message}[/green]")
    else:
        progress.print_error(outcome.message)
        sys.exit(1)


@main.command("generate-folder")
@click.argument("folder", type=click.Path(exists=True, file_okay=False))
@click.option("--recursive", "-r", is_flag=True, help="Include images in subfolders")
@click.option("--skip-completed", is_flag=True, help="Skip images already marked completed")
@click.pass_context
def generate_folder(ctx: click.Context, folder: str, recursive: bool, skip_completed: bool):
    """Generate replacements for every image in FOLDER, one at a time."""
    workspace = _workspace(ctx)
    config = _load_config(workspace)

    if recursive:
        paths = sorted(collect_assets(str(Path(folder).resolve())))
    else:
        paths = [image.path for image in list_images(str(Path(folder).resolve()))]

    if skip_completed:
        paths = [
            p for p in paths
            if not (config.image_metadata.get(p) and config.image_metadata[p].is_completed)
        ]

    if not paths:
        console.print("[yellow]No images to generate[/yellow]")
        return

    progress.print_header("GAMERESX BATCH", config.ai_settings.model, count=len(paths))
    result = workspace.generate_folder(paths, on_progress=progress.print_item)
    summary = result.data
    progress.print_summary(summary.success, summary.failed, summary.messages)

    if not result.success:
        sys.exit(1)


@main.command()
@click.pass_context
def models(ctx: click.Context):
    """List supported models and, with a key configured, what the API offers."""
    table = Table(title="Supported models")
    table.add_column("Model", style="cyan")
    table.add_column("Uses source image")
    conditioned = {ModelId.GEMINI_FLASH_IMAGE, ModelId.GEMINI_PRO_IMAGE}
    for model in ModelId:
        table.add_row(model.value, "yes" if model in conditioned else "no")
    console.print(table)

    cfg = Config.load()
    if not cfg.api_keys.google:
        console.print("[dim]Configure a Google API key to list available models[/dim]")
        return

    available = list_available_models(cfg.api_keys.google)
    if not available:
        console.print("[yellow]Could not list models from the API[/yellow]")
        return
    console.print("\n[bold]Available from the API:[/bold]")
    for name in available:
        console.print(f"  {name}")


@main.command("setup-keys")
@click.option("--google", "google_key", help="Google API key")
@click.option("--model", type=click.Choice([m.value for m in ModelId]), help="Default model for new projects")
def setup_keys(google_key: Optional[str], model: Optional[str]):
    """Configure user-level API keys and defaults."""
    cfg = Config.load()

    if google_key:
        cfg.api_keys.google = google_key
    if model:
        cfg.defaults.model = model

    cfg.save()

    console.print(f"[green]Configuration saved to {GLOBAL_CONFIG_FILE}[/green]")
    console.print("\n[bold]API Key Status:[/bold]")
    console.print(f"  Google: {'[green]configured[/green]' if cfg.api_keys.google else '[red]missing[/red]'}")


@main.command("check-keys")
def check_keys():
    """Check API key configuration status."""
    cfg = Config.load()
    issues = cfg.validate()

    console.print("[bold]API Key Status:[/bold]")
    console.print(f"  Google: {mask_secret(cfg.api_keys.google)}")
    console.print(f"  Default model: {cfg.defaults.model}")

    if issues:
        console.print("\n[red]Configuration issues:[/red]")
        for issue in issues:
            console.print(f"  - {issue}")
        sys.exit(1)
    else:
        console.print("\n[green]All required keys configured![/green]")


@main.command("gitignore")
@click.option("--fix", is_flag=True, help="Append the missing rules")
@click.pass_context
def gitignore_cmd(ctx: click.Context, fix: bool):
    """Check that .gitignore excludes backups and the project config."""
    workspace = _workspace(ctx)

    if fix:
        _report(workspace.fix_gitignore())
        return

    result = workspace.check_gitignore()
    if not result.success:
        _report(result)
    if result.data["gitignore_path"] is None:
        console.print("[dim]No .gitignore found[/dim]")
    elif result.data["needs_config"]:
        console.print(f"[yellow]{result.data['gitignore_path']} is missing the GameResX rules[/yellow]")
    else:
        console.print(f"[green]{result.data['gitignore_path']} is configured[/green]")


if __name__ == "__main__":
    main()
