"""Main entry point for Plantilla"""

import asyncio
import json
from pathlib import Path

import click

from core.exceptions import PlantillaError, ValidationFailed
from core.models import Employee
from orchestrator import Orchestrator
from ui.progress import ConsoleProgress
from utils.log import setup_logging
from config import settings


def get_orchestrator(db_url: str = None) -> Orchestrator:
    """Orchestrator over the Postgres stores"""
    from db import (
        DatabaseManager,
        PostgresEmployeeDirectory,
        PostgresTemplateStore,
        PostgresUploadedRowStore,
    )

    url = db_url or settings.DATABASE_URL
    if not url:
        raise click.ClickException("DATABASE_URL not configured. Set it in .env file")

    db_manager = DatabaseManager(url)
    return Orchestrator(
        templates=PostgresTemplateStore(db_manager),
        uploads=PostgresUploadedRowStore(db_manager),
        employees=PostgresEmployeeDirectory(db_manager),
        progress=ConsoleProgress(),
    )


def run(coro):
    """Run a coroutine, turning domain errors into CLI errors"""
    try:
        return asyncio.run(coro)
    except ValidationFailed as e:
        for error in e.errors:
            click.echo(f"  ✗ {error}", err=True)
        for warning in e.warnings:
            click.echo(f"  ⚠ {warning}", err=True)
        raise click.ClickException(str(e))
    except PlantillaError as e:
        raise click.ClickException(str(e))


def echo_json(data) -> None:
    click.echo(json.dumps(data, indent=2, default=str))


def write_download(payload, output: Path = None) -> Path:
    target = output or Path(payload.file_name)
    if target.is_dir():
        target = target / payload.file_name
    target.write_bytes(payload.content)
    return target


@click.group()
@click.option("--db", "db_url", default=None, help="PostgreSQL connection string")
@click.option("--log-level", default=None, help="Logging level")
@click.pass_context
def cli(ctx, db_url: str, log_level: str):
    """Plantilla - spreadsheet templates and employee data uploads"""
    setup_logging(log_level or settings.LOG_LEVEL)
    ctx.ensure_object(dict)
    ctx.obj["db_url"] = db_url


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--name", "base_name", default="inspect", help="Base template name")
def inspect(file: Path, base_name: str):
    """Extract a template from FILE and print it without storing anything"""
    from core.models import TemplateSource
    from stages import ExcelCodec, StructureExtractor

    codec = ExcelCodec()
    try:
        grid = codec.decode(file.read_bytes(), file.name)
        template = StructureExtractor().extract(TemplateSource(grid=grid, base_name=base_name))
    except PlantillaError as e:
        raise click.ClickException(str(e))

    click.echo(f"Sheet:            {template.sheet_name}")
    click.echo(f"Header row:       {template.header_row_index}")
    click.echo(f"Data start row:   {template.data_start_row}")
    click.echo(f"Employee ID col:  {template.employee_field_mapping.employee_id_column}")
    click.echo(f"Cells:            {len(template.sheet_structure)}")
    click.echo(f"Formulas:         {len(template.formula_definitions)}")
    for mapping in template.column_mappings:
        field = mapping.mapped_field.value if mapping.mapped_field else "-"
        click.echo(f"  {mapping.column_name:>3}  {mapping.header_name:<30} {field}")
    for formula in template.formula_definitions:
        click.echo(f"  {formula.cell_address:>6}  {formula.formula}")


@cli.command("init-db")
@click.option("--drop", is_flag=True, help="Drop existing tables first")
@click.pass_context
def init_db(ctx, drop: bool):
    """Create the database tables"""
    from db import DatabaseManager, SchemaManager

    url = ctx.obj["db_url"] or settings.DATABASE_URL
    if not url:
        raise click.ClickException("DATABASE_URL not configured. Set it in .env file")
    schema = SchemaManager(DatabaseManager(url))

    async def _init():
        if drop:
            await schema.drop_all()
        await schema.create_all()

    run(_init())
    click.echo("✓ Database schema ready")


@cli.command()
@click.option("--host", default="0.0.0.0")
@click.option("--port", default=8000, type=int)
@click.option("--reload", is_flag=True)
def serve(host: str, port: int, reload: bool):
    """Run the web API"""
    import uvicorn

    uvicorn.run("web.api:app", host=host, port=port, reload=reload,
                log_level=settings.LOG_LEVEL.lower())


# ─────────────────────────────────────────────────────────────
# Templates
# ─────────────────────────────────────────────────────────────

@cli.group()
def templates():
    """Template commands"""
    pass


@templates.command("create")
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--name", "template_name", default=None, help="Base template name")
@click.option("--description", default=None)
@click.pass_context
def templates_create(ctx, file: Path, template_name: str, description: str):
    """Extract and store a template from FILE"""
    from utils.uploads import save_upload

    path = save_upload(file.read_bytes(), settings.get_upload_path(), file.name)
    orchestrator = get_orchestrator(ctx.obj["db_url"])
    created = run(orchestrator.create_template(
        path, template_name=template_name, description=description, file_name=file.name
    ))
    click.echo(f"✓ Template created: {created.template_name}")
    click.echo(f"  ID: {created.template_id}")
    click.echo(f"  Cells: {created.total_cells}, formulas: {created.formula_cells}")


@templates.command("list")
@click.pass_context
def templates_list(ctx):
    """List active templates"""
    orchestrator = get_orchestrator(ctx.obj["db_url"])
    for summary in run(orchestrator.list_templates()):
        click.echo(f"{summary.id:>5}  {summary.template_name:<40} {summary.created_at:%Y-%m-%d %H:%M}")


@templates.command("show")
@click.argument("template_id", type=int)
@click.pass_context
def templates_show(ctx, template_id: int):
    """Print a stored template as JSON"""
    orchestrator = get_orchestrator(ctx.obj["db_url"])
    echo_json(run(orchestrator.get_template_by_id(template_id)).to_dict())


@templates.command("download")
@click.argument("template_id", type=int)
@click.option("-o", "--output", type=click.Path(path_type=Path), default=None)
@click.pass_context
def templates_download(ctx, template_id: int, output: Path):
    """Write the template workbook to disk"""
    orchestrator = get_orchestrator(ctx.obj["db_url"])
    target = write_download(run(orchestrator.download_template(template_id)), output)
    click.echo(f"✓ Written {target}")


@templates.command("delete")
@click.argument("template_id", type=int)
@click.confirmation_option(prompt="Deactivate this template?")
@click.pass_context
def templates_delete(ctx, template_id: int):
    """Deactivate a template"""
    orchestrator = get_orchestrator(ctx.obj["db_url"])
    run(orchestrator.delete_template(template_id))
    click.echo(f"✓ Template {template_id} deactivated")


# ─────────────────────────────────────────────────────────────
# Data
# ─────────────────────────────────────────────────────────────

@cli.group()
def data():
    """Upload and query commands"""
    pass


@data.command("validate")
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--template-id", required=True, type=int)
@click.pass_context
def data_validate(ctx, file: Path, template_id: int):
    """Check FILE against a template without storing anything"""
    from utils.uploads import save_upload

    path = save_upload(file.read_bytes(), settings.get_upload_path(), file.name)
    orchestrator = get_orchestrator(ctx.obj["db_url"])
    report = run(orchestrator.validate_upload(path, template_id, file_name=file.name))

    for error in report.errors:
        click.echo(f"  ✗ {error}")
    for warning in report.warnings:
        click.echo(f"  ⚠ {warning}")
    click.echo(f"Rows: {report.row_count}, columns: {report.column_count}")
    if not report.is_valid:
        raise click.ClickException("File validation failed")
    click.echo("✓ File is valid")


@data.command("upload")
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--template-id", required=True, type=int)
@click.option("--uploaded-by", required=True, help="Uploader identity")
@click.pass_context
def data_upload(ctx, file: Path, template_id: int, uploaded_by: str):
    """Process and store the rows of FILE"""
    from utils.uploads import save_upload

    path = save_upload(file.read_bytes(), settings.get_upload_path(), file.name)
    orchestrator = get_orchestrator(ctx.obj["db_url"])
    result = run(orchestrator.upload_filled_data(path, template_id, uploaded_by, file_name=file.name))

    click.echo(f"✓ Batch {result.upload_batch_id}")
    click.echo(f"  Stored: {result.success_count}, rejected: {result.error_count}")
    for warning in result.validation_warnings:
        click.echo(f"  ⚠ {warning}")
    for error in result.errors:
        click.echo(f"  ✗ Row {error.row_number}: {error.error}")


@data.command("history")
@click.option("--limit", type=int, default=None)
@click.pass_context
def data_history(ctx, limit: int):
    """Recent upload batches"""
    orchestrator = get_orchestrator(ctx.obj["db_url"])
    for batch in run(orchestrator.get_upload_history(limit)):
        click.echo(
            f"{batch.upload_batch_id}  {batch.template_name or '-':<30} "
            f"{batch.total_records:>5} rows  {batch.uploaded_by or '-'}"
        )


@data.command("batch")
@click.argument("batch_id")
@click.pass_context
def data_batch(ctx, batch_id: str):
    """Print a batch with employees and calculated values as JSON"""
    orchestrator = get_orchestrator(ctx.obj["db_url"])
    echo_json(run(orchestrator.get_uploaded_data_with_calculations(batch_id)).model_dump(mode="json"))


@data.command("summary")
@click.pass_context
def data_summary(ctx):
    """Totals over all uploaded rows"""
    orchestrator = get_orchestrator(ctx.obj["db_url"])
    echo_json(run(orchestrator.get_data_summary()).model_dump())


@data.command("export")
@click.argument("batch_id")
@click.option("-o", "--output", type=click.Path(path_type=Path), default=None)
@click.pass_context
def data_export(ctx, batch_id: str, output: Path):
    """Write a batch to an .xlsx file"""
    orchestrator = get_orchestrator(ctx.obj["db_url"])
    target = write_download(run(orchestrator.export_batch(batch_id)), output)
    click.echo(f"✓ Written {target}")


# ─────────────────────────────────────────────────────────────
# Employees
# ─────────────────────────────────────────────────────────────

@cli.group()
def employees():
    """Employee directory commands"""
    pass


@employees.command("add")
@click.option("--employee-id", required=True)
@click.option("--name", required=True)
@click.option("--email", required=True)
@click.option("--designation", default="")
@click.option("--department", default="")
@click.option("--division", default="")
@click.option("--geography", default="")
@click.pass_context
def employees_add(ctx, employee_id, name, email, designation, department, division, geography):
    """Add an employee to the directory"""
    orchestrator = get_orchestrator(ctx.obj["db_url"])
    employee = run(orchestrator.add_employee(Employee(
        employee_id=employee_id,
        name=name,
        email=email,
        designation=designation,
        department=department,
        division=division,
        geography=geography,
    )))
    click.echo(f"✓ Employee added: {employee.employee_id} ({employee.email})")


if __name__ == "__main__":
    cli()
