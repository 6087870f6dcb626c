"""CLI interface for postdesk.

Runs the HTTP API and gives a local operator direct access to posts and
images in the content repository.  The CLI trusts whoever runs it: it
talks to the repository with the GitHub App credentials from config and
never consults the session gate.
"""

from __future__ import annotations

import logging
import mimetypes
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from postdesk.config import PostdeskConfig, load_config, merge_cli_overrides
from postdesk.content.models import ImageUpload
from postdesk.content.posts import build_frontmatter, slug_from_filename
from postdesk.errors import PostdeskError, ValidationError
from postdesk.web.app import Services, build_services, create_app

app = typer.Typer(
    name="postdesk",
    help="Manage MDX blog posts and images stored in a GitHub repository.",
)
posts_app = typer.Typer(help="List, show, create, edit and delete blog posts.")
images_app = typer.Typer(help="List, upload and delete blog images.")
app.add_typer(posts_app, name="posts")
app.add_typer(images_app, name="images")

console = Console()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        from postdesk import __version__

        console.print(f"postdesk {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    config_path: Annotated[
        Optional[Path],
        typer.Option("--config", "-c", help="Path to a .postdesk.toml file."),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", help="Show debug logging."),
    ] = False,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = False,
) -> None:
    """postdesk - a Git-backed content dashboard for an MDX blog."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )
    ctx.obj = load_config(config_path)


def _config(ctx: typer.Context) -> PostdeskConfig:
    if not isinstance(ctx.obj, PostdeskConfig):
        ctx.obj = load_config()
    return ctx.obj


def _services(ctx: typer.Context) -> Services:
    return build_services(_config(ctx))


def _fail(exc: PostdeskError) -> typer.Exit:
    console.print(f"[red]Error:[/red] {exc.message}")
    return typer.Exit(1)


@app.command()
def serve(
    ctx: typer.Context,
    host: Annotated[Optional[str], typer.Option(help="Interface to bind.")] = None,
    port: Annotated[Optional[int], typer.Option(help="Port to listen on.")] = None,
    debug: Annotated[Optional[bool], typer.Option("--debug/--no-debug", help="Flask debug mode.")] = None,
) -> None:
    """Run the HTTP API."""
    config = merge_cli_overrides(_config(ctx), host=host, port=port, debug=debug)
    flask_app = create_app(config)
    console.print(
        f"[green]Serving {config.github.repo_slug or '(unconfigured repo)'}"
        f" on http://{config.server.host}:{config.server.port}[/green]"
    )
    flask_app.run(host=config.server.host, port=config.server.port, debug=config.server.debug)


# ── posts ────────────────────────────────────────────────────────────────


@posts_app.command("list")
def posts_list(ctx: typer.Context) -> None:
    """List posts, newest first."""
    try:
        posts = _services(ctx).posts.list_posts()
    except PostdeskError as exc:
        raise _fail(exc) from exc

    if not posts:
        console.print("[yellow]No posts found.[/yellow]")
        raise typer.Exit(0)

    table = Table(title=f"Posts ({len(posts)})")
    table.add_column("Slug")
    table.add_column("Path")
    table.add_column("SHA", style="dim")
    for post in posts:
        table.add_row(post.slug, post.path, post.sha[:7])
    console.print(table)


@posts_app.command("show")
def posts_show(
    ctx: typer.Context,
    path: Annotated[str, typer.Argument(help="Post filename or repository path.")],
    raw: Annotated[bool, typer.Option("--raw", help="Print the stored MDX unchanged.")] = False,
) -> None:
    """Show a post's metadata and body."""
    try:
        post = _services(ctx).posts.get_post(path)
    except PostdeskError as exc:
        raise _fail(exc) from exc

    if raw:
        console.print(post.raw_content, markup=False, highlight=False)
        return

    console.print(f"[bold]{post.frontmatter.get('title', post.filename)}[/bold]")
    console.print(f"  Path: {post.path}")
    console.print(f"  SHA:  {post.sha}")
    if post.frontmatter_error:
        console.print(f"[yellow]Warning:[/yellow] {post.frontmatter_error}")
    for key, value in post.frontmatter.items():
        if key != "title":
            console.print(f"  {key}: {value}", markup=False)
    console.print()
    console.print(post.content, markup=False, highlight=False)


@posts_app.command("new")
def posts_new(
    ctx: typer.Context,
    title: Annotated[str, typer.Option(help="Post title.")],
    slug: Annotated[str, typer.Option(help="URL slug; sanitized to [a-z0-9-].")],
    body_file: Annotated[Path, typer.Option("--body-file", exists=True, dir_okay=False, help="Markdown body.")],
    date: Annotated[Optional[str], typer.Option(help="Publish date (YYYY-MM-DD).")] = None,
    category: Annotated[Optional[str], typer.Option(help="Post category.")] = None,
    excerpt: Annotated[str, typer.Option(help="Short summary.")] = "",
    cover: Annotated[str, typer.Option(help="Cover image URL.")] = "",
) -> None:
    """Create a new post from a Markdown file."""
    config = _config(ctx)
    frontmatter = build_frontmatter(
        title,
        slug,
        date=date,
        category=category if category is not None else config.content.default_category,
        cover=cover,
        excerpt=excerpt,
        site_url=config.content.site_url,
    )
    try:
        result = _services(ctx).posts.create_post(
            frontmatter, body_file.read_text(encoding="utf-8"), slug, date
        )
    except PostdeskError as exc:
        raise _fail(exc) from exc
    console.print(f"[green]Created[/green] {result.path}")


def _custom(value: object, default: object) -> str:
    return value if isinstance(value, str) and value != default else ""


@posts_app.command("edit")
def posts_edit(
    ctx: typer.Context,
    path: Annotated[str, typer.Argument(help="Post filename or repository path.")],
    sha: Annotated[str, typer.Option(help="Blob sha of the version being edited.")],
    title: Annotated[Optional[str], typer.Option(help="New title.")] = None,
    excerpt: Annotated[Optional[str], typer.Option(help="New summary.")] = None,
    category: Annotated[Optional[str], typer.Option(help="New category.")] = None,
    cover: Annotated[Optional[str], typer.Option(help="New cover image URL.")] = None,
    body_file: Annotated[
        Optional[Path],
        typer.Option("--body-file", exists=True, dir_okay=False, help="Replacement Markdown body."),
    ] = None,
) -> None:
    """Edit an existing post's metadata and/or body.

    Fields that are not given keep their stored values.  The write is
    rejected if the post changed since ``--sha`` was read.
    """
    config = _config(ctx)
    posts = _services(ctx).posts
    try:
        post = posts.get_post(path)
    except PostdeskError as exc:
        raise _fail(exc) from exc
    if post.frontmatter_error:
        raise _fail(
            ValidationError(f"Stored metadata is unreadable, fix it by hand: {post.frontmatter_error}")
        )

    current = post.frontmatter
    seo = current.get("seo") if isinstance(current.get("seo"), dict) else {}
    new_title = title if title is not None else current.get("title", "")
    new_excerpt = excerpt if excerpt is not None else current.get("excerpt", "")
    new_cover = cover if cover is not None else current.get("cover", "")
    rebuilt = build_frontmatter(
        new_title,
        slug_from_filename(post.filename, config.content.post_extension),
        date=current.get("date"),
        category=category if category is not None else current.get("category", ""),
        cover=new_cover,
        excerpt=new_excerpt,
        # SEO text that only mirrored the old title or excerpt follows the new one.
        seo_title=_custom(seo.get("metaTitle"), current.get("title")),
        seo_description=_custom(seo.get("metaDescription"), current.get("excerpt")),
        keywords=seo.get("keywords", ""),
        site_url=config.content.site_url,
    )
    frontmatter = {**current, **rebuilt, "seo": {**seo, **rebuilt["seo"]}}
    content = body_file.read_text(encoding="utf-8") if body_file else post.content

    try:
        result = posts.update_post(
            post.path,
            content,
            sha,
            frontmatter=frontmatter,
            message=f'feat: update blog post "{new_title}"',
        )
    except PostdeskError as exc:
        raise _fail(exc) from exc
    console.print(f"[green]Updated[/green] {result.path}")


@posts_app.command("delete")
def posts_delete(
    ctx: typer.Context,
    path: Annotated[str, typer.Argument(help="Post filename or repository path.")],
    sha: Annotated[str, typer.Option(help="Current blob sha of the post.")],
) -> None:
    """Delete a post."""
    try:
        result = _services(ctx).posts.delete_post(path, sha)
    except PostdeskError as exc:
        raise _fail(exc) from exc
    console.print(f"[green]Deleted[/green] {result.path}")


# ── images ───────────────────────────────────────────────────────────────


@images_app.command("list")
def images_list(ctx: typer.Context) -> None:
    """List uploaded images."""
    try:
        images = _services(ctx).images.list_images()
    except PostdeskError as exc:
        raise _fail(exc) from exc

    if not images:
        console.print("[yellow]No images uploaded yet.[/yellow]")
        raise typer.Exit(0)

    table = Table(title=f"Images ({len(images)})")
    table.add_column("Name")
    table.add_column("URL")
    table.add_column("Size", justify="right")
    table.add_column("SHA", style="dim")
    for image in images:
        table.add_row(image.name, image.url, f"{image.size / 1024:.1f} KB", image.sha[:7])
    console.print(table)


@images_app.command("upload")
def images_upload(
    ctx: typer.Context,
    files: Annotated[list[Path], typer.Argument(exists=True, dir_okay=False, help="Image files.")],
    name: Annotated[
        Optional[str],
        typer.Option(help="Stored filename (single file only)."),
    ] = None,
) -> None:
    """Upload images concurrently and report each result."""
    if name and len(files) > 1:
        console.print("[red]Error:[/red] --name can only be used with a single file")
        raise typer.Exit(1)

    uploads = [
        ImageUpload(
            filename=f.name,
            content_type=mimetypes.guess_type(f.name)[0] or "application/octet-stream",
            data=f.read_bytes(),
            name=name,
        )
        for f in files
    ]
    outcomes = _services(ctx).images.upload_many(uploads)

    table = Table(title="Upload results")
    table.add_column("File")
    table.add_column("Result")
    for outcome in outcomes:
        if outcome.result is not None:
            table.add_row(outcome.filename, f"[green]{outcome.result.url}[/green]")
        else:
            table.add_row(outcome.filename, f"[red]{outcome.error}[/red]")
    console.print(table)

    failed = [o for o in outcomes if not o.ok]
    console.print(f"Uploaded {len(outcomes) - len(failed)} of {len(outcomes)} image(s)")
    if failed:
        raise typer.Exit(1)


@images_app.command("delete")
def images_delete(
    ctx: typer.Context,
    filename: Annotated[str, typer.Argument(help="Image filename.")],
    sha: Annotated[str, typer.Option(help="Current blob sha of the image.")],
) -> None:
    """Delete an image."""
    try:
        result = _services(ctx).images.delete_image(filename, sha)
    except PostdeskError as exc:
        raise _fail(exc) from exc
    console.print(f"[green]Deleted[/green] {result.path}")


if __name__ == "__main__":
    app()
