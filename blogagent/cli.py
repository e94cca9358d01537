"""CLI entry-point: run and steer blog generation jobs from the terminal."""

import asyncio
import mimetypes
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from blogagent.config import get_settings
from blogagent.errors import BlogAgentError, TransportFailure
from blogagent.jobs.models import Category, JobListFilter, JobStatus, Template
from blogagent.schedules.models import Schedule, TopicSource
from blogagent.services import Services, build_services
from blogagent.workflow.stream_client import ConnectionState, StreamClient

app = typer.Typer(help="AI blog post generator with human review gates")
console = Console()

_STATUS_STYLE = {
    JobStatus.COMPLETED: "green",
    JobStatus.FAILED: "red",
    JobStatus.HUMAN_REVIEW: "yellow",
    JobStatus.PENDING_DEPLOY: "yellow",
    JobStatus.ON_HOLD: "magenta",
}


def _services() -> Services:
    return build_services(get_settings())


def _fail(e: Exception) -> None:
    console.print(f"[red]Error: {e}[/red]")
    raise typer.Exit(1)


def _status_text(status: JobStatus) -> str:
    style = _STATUS_STYLE.get(status, "cyan")
    return f"[{style}]{status.value}[/{style}]"


def _print_job_summary(services: Services, job_id: str) -> None:
    job = services.jobs.get(job_id)
    console.print(f"Job [bold]{job.id}[/bold]: {_status_text(job.status)} ({job.progress}%)")
    if job.status == JobStatus.HUMAN_REVIEW and job.review_result:
        console.print(f"AI review score: {job.review_result.get('score')}")
        console.print(f"Next: blogagent review {job.id} approve|feedback|rewrite")
    elif job.status == JobStatus.PENDING_DEPLOY:
        console.print(f"File: {job.filepath}")
        console.print(f"Next: blogagent deploy {job.id} approve|reject")
    elif job.status == JobStatus.COMPLETED and job.pr_result:
        console.print(f"PR: {job.pr_result.get('pr_url') or job.pr_result.get('branch_name')}")
    elif job.status == JobStatus.FAILED:
        console.print(f"[red]{job.error}[/red]")


async def _decide_and_wait(services: Services, job_id: str, decide) -> None:
    decide()
    await services.runner.join(job_id)


@app.command()
def generate(
    topic: str = typer.Argument(..., help="Post topic"),
    category: Category = typer.Option(Category.TECH, help="tech | life"),
    template: Template | None = typer.Option(None, help="tutorial | comparison | deep-dive | tips | default"),
    tone: str | None = typer.Option(None, help="Tone hint for the writer"),
    target_reader: str | None = typer.Option(None, "--target-reader", help="Intended audience"),
    keyword: list[str] = typer.Option([], "--keyword", help="Keyword to cover (repeatable)"),
    auto_approve: bool = typer.Option(False, "--auto-approve", help="Skip the human review gate"),
):
    """Create a job and run it until it reaches a gate or finishes."""
    services = _services()

    async def run() -> str:
        job = services.create_job(
            topic, category, template,
            tone=tone, target_reader=target_reader, keywords=keyword, auto_approve=auto_approve,
        )
        console.print(f"Created job [bold]{job.id}[/bold]")
        await services.runner.join(job.id)
        return job.id

    try:
        job_id = asyncio.run(run())
    except BlogAgentError as e:
        _fail(e)
    _print_job_summary(services, job_id)


@app.command()
def jobs(
    status: JobStatus | None = typer.Option(None, help="Filter by status"),
    category: Category | None = typer.Option(None, help="Filter by category"),
    search: str | None = typer.Option(None, help="Substring of the topic"),
    page: int = typer.Option(1, min=1),
    limit: int = typer.Option(10, min=1, max=100),
):
    """List jobs, newest first."""
    result = _services().jobs.list(
        JobListFilter(page=page, limit=limit, status=status, category=category, search=search)
    )
    table = Table(title=f"Jobs (page {result.page}/{max(result.total_pages, 1)}, {result.total} total)")
    table.add_column("ID")
    table.add_column("Topic")
    table.add_column("Category")
    table.add_column("Status")
    table.add_column("Progress", justify="right")
    table.add_column("Created")
    for job in result.jobs:
        table.add_row(
            job.id,
            job.topic,
            job.category.value,
            _status_text(job.status),
            f"{job.progress}%",
            job.created_at.strftime("%Y-%m-%d %H:%M"),
        )
    console.print(table)


@app.command()
def show(job_id: str = typer.Argument(..., help="Job id")):
    """Show a job and its progress log."""
    services = _services()
    try:
        job = services.jobs.get(job_id)
    except BlogAgentError as e:
        _fail(e)
    console.print(f"[bold]{job.topic}[/bold] ({job.category.value})")
    _print_job_summary(services, job_id)
    table = Table(title="Progress log")
    table.add_column("#", justify="right")
    table.add_column("Time")
    table.add_column("Step")
    table.add_column("Status")
    table.add_column("Message")
    for entry in services.jobs.list_progress(job_id):
        table.add_row(
            str(entry.seq),
            entry.created_at.strftime("%H:%M:%S"),
            entry.step,
            entry.status.value,
            entry.message,
        )
    console.print(table)


@app.command()
def review(
    job_id: str = typer.Argument(..., help="Job id"),
    action: str = typer.Argument(..., help="approve | feedback | rewrite"),
    feedback: str | None = typer.Option(None, help="Feedback text (required for feedback/rewrite)"),
):
    """Submit the human review decision and run the pipeline to the next gate."""
    services = _services()
    try:
        asyncio.run(_decide_and_wait(services, job_id, lambda: services.gates.submit_review(job_id, action, feedback)))
    except BlogAgentError as e:
        _fail(e)
    _print_job_summary(services, job_id)


@app.command()
def edit(
    job_id: str = typer.Argument(..., help="Job id"),
    content_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Markdown file with the new body"),
):
    """Replace the post body while the job waits for review."""
    services = _services()
    try:
        services.gates.edit_content(job_id, content_file.read_text(encoding="utf-8"))
    except BlogAgentError as e:
        _fail(e)
    console.print(f"[green]Content of {job_id} updated[/green]")


@app.command()
def thumbnail(
    job_id: str = typer.Argument(..., help="Job id"),
    prompt: str | None = typer.Option(None, help="Custom image prompt"),
    file: Path | None = typer.Option(None, exists=True, dir_okay=False, help="Upload this PNG, JPEG or WebP instead"),
):
    """Regenerate the post thumbnail, or replace it with an image file."""
    services = _services()
    try:
        if file is not None:
            mime_type, _ = mimetypes.guess_type(file.name)
            result = services.gates.upload_thumbnail(job_id, file.read_bytes(), mime_type)
        else:
            result = asyncio.run(services.gates.regenerate_thumbnail(job_id, prompt))
    except BlogAgentError as e:
        _fail(e)
    console.print(f"[green]Thumbnail of {job_id} set:[/green] {result.path}")


@app.command()
def hold(job_id: str = typer.Argument(..., help="Job id")):
    """Put a job waiting for review on hold."""
    try:
        job = _services().gates.hold(job_id)
    except BlogAgentError as e:
        _fail(e)
    console.print(f"Job {job_id}: {_status_text(job.status)}")


@app.command()
def resume(job_id: str = typer.Argument(..., help="Job id")):
    """Return a held job to human review."""
    try:
        job = _services().gates.resume(job_id)
    except BlogAgentError as e:
        _fail(e)
    console.print(f"Job {job_id}: {_status_text(job.status)}")


@app.command()
def deploy(
    job_id: str = typer.Argument(..., help="Job id"),
    action: str = typer.Argument(..., help="approve | reject"),
):
    """Approve (open a PR) or reject the deploy of a validated post."""
    services = _services()
    try:
        asyncio.run(_decide_and_wait(services, job_id, lambda: services.gates.decide_deploy(job_id, action)))
    except BlogAgentError as e:
        _fail(e)
    _print_job_summary(services, job_id)


@app.command()
def delete(job_id: str = typer.Argument(..., help="Job id")):
    """Delete a job and its progress log."""
    try:
        _services().jobs.delete(job_id)
    except BlogAgentError as e:
        _fail(e)
    console.print(f"Deleted {job_id}")


@app.command()
def watch(
    job_id: str = typer.Argument(..., help="Job id"),
    api_url: str = typer.Option("http://localhost:8000", help="Running API base URL"),
    attempts: int = typer.Option(3, min=0, help="Reconnect attempts"),
):
    """Follow a job's progress stream from a running API server."""

    def on_state(state: ConnectionState) -> None:
        if state == ConnectionState.RECONNECTING:
            console.print("[yellow]reconnecting...[/yellow]")

    client = StreamClient(api_url, job_id, max_attempts=attempts, on_state=on_state)

    async def run() -> None:
        async for event in client.events():
            kind = event.get("type")
            if kind == "progress":
                console.print(f"[{event.get('progress', 0):>3}%] {event.get('step')}: {event.get('message')}")
            elif kind == "review-required":
                console.print("[yellow]Waiting for human review[/yellow]")
            elif kind == "complete":
                console.print(f"[green]Completed[/green] {event.get('filepath') or ''}")
            elif kind == "error":
                console.print(f"[red]Failed at {event.get('step')}: {event.get('message')}[/red]")

    try:
        asyncio.run(run())
    except TransportFailure as e:
        _fail(e)


@app.command()
def stats():
    """Job counters and success rate."""
    s = _services().jobs.stats()
    console.print(
        f"total {s.total} | completed {s.completed} | failed {s.failed} | "
        f"pending review {s.pending_reviews} | in progress {s.in_progress} | success {s.success_rate}%"
    )


@app.command()
def schedules():
    """List schedules."""
    table = Table(title="Schedules")
    table.add_column("ID")
    table.add_column("Name")
    table.add_column("Cron")
    table.add_column("Source")
    table.add_column("Enabled")
    table.add_column("Next run (UTC)")
    table.add_column("Runs / errors", justify="right")
    for s in _services().schedules.list():
        table.add_row(
            s.id,
            s.name,
            f"{s.cron_expression} ({s.timezone})",
            s.topic_source.value,
            "yes" if s.enabled else "no",
            s.next_run_at.strftime("%Y-%m-%d %H:%M") if s.next_run_at else "-",
            f"{s.run_count} / {s.error_count}",
        )
    console.print(table)


@app.command("schedule-add")
def schedule_add(
    name: str = typer.Argument(..., help="Schedule name"),
    cron: str = typer.Option("0 9 * * *", help="Five-field cron expression"),
    timezone: str = typer.Option("Asia/Seoul", help="IANA timezone for the cron expression"),
    source: TopicSource = typer.Option(TopicSource.MANUAL, help="manual | rss | ai_suggest"),
    topic: list[str] = typer.Option([], "--topic", help="Topic for the manual rotation (repeatable)"),
    rss_url: str | None = typer.Option(None, "--rss-url"),
    ai_prompt: str | None = typer.Option(None, "--ai-prompt"),
    category: Category = typer.Option(Category.TECH),
    template: Template | None = typer.Option(None),
    target_reader: str | None = typer.Option(None, "--target-reader"),
    keyword: list[str] = typer.Option([], "--keyword"),
    auto_approve: bool = typer.Option(False, "--auto-approve"),
):
    """Create a recurring schedule."""
    try:
        saved = _services().schedules.save(
            Schedule(
                name=name,
                cron_expression=cron,
                timezone=timezone,
                topic_source=source,
                topic_list=topic,
                rss_url=rss_url,
                ai_prompt=ai_prompt,
                category=category,
                template=template,
                target_reader=target_reader,
                keywords=keyword,
                auto_approve=auto_approve,
            )
        )
    except ValueError as e:
        _fail(e)
    console.print(f"Created schedule [bold]{saved.id}[/bold], next run {saved.next_run_at:%Y-%m-%d %H:%M} UTC")


@app.command("cron")
def run_cron():
    """Run all due schedules once and wait for their jobs to reach a gate."""
    services = _services()

    async def run():
        results = await services.trigger.run_due()
        await services.runner.join()
        return results

    results = asyncio.run(run())
    if not results:
        console.print("No schedules due")
    for r in results:
        if r.success:
            console.print(f"[green]{r.schedule_name}[/green]: job {r.job_id} ({r.topic})")
        else:
            console.print(f"[red]{r.schedule_name}[/red]: {r.error}")


if __name__ == "__main__":
    app()
