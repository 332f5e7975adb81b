"""sqlity CLI entrypoint."""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

import click

from sqlity.assist.llm_client import AssistClient
from sqlity.browser.engine import Database
from sqlity.shared.cli import CLIContext, common_cli_options, handle_cli_errors, pass_cli_context

from . import render

OUTPUT_FORMAT_CHOICES = ("table", "csv", "json")
TRANSFER_FORMAT_CHOICES = ("csv", "json")


def database_argument(func):
    """Attach the DATABASE file argument shared by every command."""
    return click.argument(
        "db_path", metavar="DATABASE", type=click.Path(exists=True, dir_okay=False, path_type=Path)
    )(func)


@click.group(help="Browse, query and edit SQLite database files.")
@common_cli_options
def cli(cli_ctx: CLIContext) -> None:
    """Primary Click group for sqlity commands."""
    cli_ctx.logger.debug("sqlity group initialised.")


def _open(cli_ctx: CLIContext, db_path: Path) -> Database:
    return Database(db_path, logger=cli_ctx.logger)


@cli.command("tables")
@database_argument
@pass_cli_context
@handle_cli_errors
def list_tables(cli_ctx: CLIContext, db_path: Path) -> None:
    """List tables and views with their row counts."""
    with _open(cli_ctx, db_path) as database:
        tables = database.list_tables()
    render.render_tables(tables, logger=cli_ctx.logger)


@cli.command("schema")
@database_argument
@click.option("--table", "table_filter", type=str, help="Inspect a specific table only.")
@click.option("--sql", "as_sql", is_flag=True, help="Print generated CREATE statements instead.")
@pass_cli_context
@handle_cli_errors
def show_schema(cli_ctx: CLIContext, db_path: Path, table_filter: str | None, as_sql: bool) -> None:
    """Display columns and indexes, or the schema as SQL."""
    with _open(cli_ctx, db_path) as database:
        if as_sql:
            click.echo(database.synthesize_schema_sql().rstrip("\n"))
            return
        names = [table_filter] if table_filter else [info.name for info in database.list_tables()]
        schemas = [database.describe_table(name) for name in names]
    for schema in schemas:
        render.render_table_schema(schema)


@cli.command("sql")
@database_argument
@click.argument("query", type=str)
@click.option(
    "--format",
    "output_format",
    default="table",
    show_default=True,
    type=click.Choice(OUTPUT_FORMAT_CHOICES),
)
@pass_cli_context
@handle_cli_errors
def run_sql(cli_ctx: CLIContext, db_path: Path, query: str, output_format: str) -> None:
    """Execute ad-hoc SQL; writes are saved to the file immediately."""
    if not query.strip():
        raise click.ClickException("Query text must not be empty.")
    with _open(cli_ctx, db_path) as database:
        result = database.execute_query(query)
    render.render_query_result(result, output_format=output_format, logger=cli_ctx.logger)


@cli.command("browse")
@database_argument
@click.argument("table", type=str)
@click.option("--page", type=click.IntRange(min=1), default=1, show_default=True, help="1-based page.")
@click.option("--page-size", type=click.IntRange(min=1), help="Rows per page (config default).")
@click.option("--order-by", type=str, help="Column to sort by.")
@click.option("--desc", is_flag=True, help="Sort descending.")
@pass_cli_context
@handle_cli_errors
def browse(
    cli_ctx: CLIContext,
    db_path: Path,
    table: str,
    page: int,
    page_size: int | None,
    order_by: str | None,
    desc: bool,
) -> None:
    """Show one page of a table, including each row's rowid."""
    browse_settings = cli_ctx.config.browse
    effective_size = page_size or browse_settings.page_size
    if effective_size > browse_settings.max_page_size:
        raise click.ClickException(
            f"--page-size cannot exceed {browse_settings.max_page_size} (browse.max_page_size)."
        )
    with _open(cli_ctx, db_path) as database:
        table_page = database.get_table_data(
            table,
            page - 1,
            effective_size,
            order_by,
            "DESC" if desc else "ASC",
        )
    render.render_table_page(table_page, logger=cli_ctx.logger)


@cli.command("insert")
@database_argument
@click.argument("table", type=str)
@click.option(
    "-s",
    "--set",
    "assignments",
    multiple=True,
    metavar="COLUMN=VALUE",
    help="Column value for the new row (repeatable). Omitted columns take defaults.",
)
@pass_cli_context
@handle_cli_errors
def insert(cli_ctx: CLIContext, db_path: Path, table: str, assignments: Iterable[str]) -> None:
    """Insert a row; values are converted to each column's declared type."""
    try:
        values = _parse_assignments(assignments)
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc
    with _open(cli_ctx, db_path) as database:
        rowid = database.insert_row(table, values)
    cli_ctx.logger.success(f"Row inserted (rowid {rowid}).")


@cli.command("update")
@database_argument
@click.argument("table", type=str)
@click.argument("rowid", type=int)
@click.argument("column", type=str)
@click.argument("value", type=str)
@pass_cli_context
@handle_cli_errors
def update(
    cli_ctx: CLIContext,
    db_path: Path,
    table: str,
    rowid: int,
    column: str,
    value: str,
) -> None:
    """Set one cell identified by rowid. Pass NULL to clear it."""
    with _open(cli_ctx, db_path) as database:
        changed = database.update_row(table, rowid, column, value)
    if changed:
        cli_ctx.logger.success("Row updated.")
    else:
        cli_ctx.logger.warning(f"No row with rowid {rowid} in {table}.")


@cli.command("delete")
@database_argument
@click.argument("table", type=str)
@click.argument("rowids", type=int, nargs=-1, required=True)
@click.option("--yes", is_flag=True, help="Skip the confirmation prompt.")
@pass_cli_context
@handle_cli_errors
def delete(cli_ctx: CLIContext, db_path: Path, table: str, rowids: tuple[int, ...], yes: bool) -> None:
    """Delete rows by rowid."""
    if not yes:
        click.confirm(f"Delete {len(rowids)} row(s)?", abort=True)
    with _open(cli_ctx, db_path) as database:
        deleted = database.delete_rows(table, list(rowids))
    cli_ctx.logger.success(f"{deleted} row(s) deleted.")


@cli.command("export")
@database_argument
@click.argument("table", type=str)
@click.option(
    "--format",
    "export_format",
    type=click.Choice(TRANSFER_FORMAT_CHOICES),
    help="Output format (defaults to the output file's suffix, else csv).",
)
@click.option("-o", "--output", type=click.Path(dir_okay=False, path_type=Path), help="Output file (default stdout).")
@pass_cli_context
@handle_cli_errors
def export(
    cli_ctx: CLIContext,
    db_path: Path,
    table: str,
    export_format: str | None,
    output: Path | None,
) -> None:
    """Dump a whole table as CSV or JSON."""
    fmt = infer_format(output, export_format)
    with _open(cli_ctx, db_path) as database:
        content = database.export_csv(table) if fmt == "csv" else database.export_json(table)
    if output is None:
        click.echo(content)
        return
    output.write_text(content, encoding="utf-8")
    cli_ctx.logger.success(f"Exported to {output}")


@cli.command("import")
@database_argument
@click.argument("table", type=str)
@click.argument("source", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--format",
    "import_format",
    type=click.Choice(TRANSFER_FORMAT_CHOICES),
    help="Input format (defaults to the file suffix, else csv).",
)
@pass_cli_context
@handle_cli_errors
def import_rows(
    cli_ctx: CLIContext,
    db_path: Path,
    table: str,
    source: Path,
    import_format: str | None,
) -> None:
    """Insert rows from a CSV or JSON file; all rows or none are written."""
    fmt = infer_format(source, import_format)
    content = source.read_text(encoding="utf-8")
    with _open(cli_ctx, db_path) as database:
        if fmt == "csv":
            count = database.import_csv(table, content)
        else:
            count = database.import_json(table, content)
    cli_ctx.logger.success(f"Imported {count} row(s).")


@cli.command("assist")
@database_argument
@click.argument("prompt", type=str)
@click.option("--run", "run_query", is_flag=True, help="Execute the generated SQL.")
@click.option(
    "--no-consent",
    "revoke_consent",
    is_flag=True,
    help="Refuse to send the schema to the LLM provider for this run.",
)
@click.option(
    "--format",
    "output_format",
    default="table",
    show_default=True,
    type=click.Choice(OUTPUT_FORMAT_CHOICES),
)
@pass_cli_context
@handle_cli_errors
def assist(
    cli_ctx: CLIContext,
    db_path: Path,
    prompt: str,
    run_query: bool,
    revoke_consent: bool,
    output_format: str,
) -> None:
    """Generate SQL from a natural-language request."""
    config = cli_ctx.config.with_assist_consent(False) if revoke_consent else cli_ctx.config
    client = AssistClient(config, cli_ctx.logger)
    with _open(cli_ctx, db_path) as database:
        sql = client.generate(prompt, database.synthesize_schema_sql())
        click.echo(sql)
        if not run_query:
            return
        result = database.execute_query(sql)
    render.render_query_result(result, output_format=output_format, logger=cli_ctx.logger)


def infer_format(path: Path | None, explicit_format: str | None) -> str:
    """Infer the transfer format from an explicit choice or the file suffix."""
    if explicit_format:
        return explicit_format
    if path is not None and path.suffix.lower() == ".json":
        return "json"
    return "csv"


def _parse_assignments(pairs: Iterable[str]) -> dict[str, str]:
    """Convert COLUMN=VALUE options into a dictionary."""
    parsed: dict[str, str] = {}
    for pair in pairs:
        if "=" not in pair:
            raise ValueError(f"Value '{pair}' must be in COLUMN=VALUE format.")
        key, value = pair.split("=", 1)
        key = key.strip()
        if not key:
            raise ValueError("Column names cannot be empty.")
        parsed[key] = value
    return parsed


def main() -> None:
    """Entry point for console_scripts."""
    cli()


if __name__ == "__main__":  # pragma: no cover
    main()
