"""
Command-line interface for HealthPod.

Provides commands for importing, exporting, listing and deleting health
records in a personal data store.
"""

from pathlib import Path

import typer

from healthpod.domain.schemas import RecordType, get_schema
from healthpod.infrastructure.pod_client.base import PodClient
from healthpod.infrastructure.pod_client.encryption import RecordCipher
from healthpod.infrastructure.pod_client.factory import create_pod_client
from healthpod.services.exporter import RecordExporter
from healthpod.services.importer import CSVImporter
from healthpod.services.observations import ObservationService
from healthpod.utils.exceptions import HealthPodError
from healthpod.utils.logging_config import get_logger, setup_logging
from healthpod.utils.parameters import ParameterLoader
from healthpod.utils.timestamps import parse_timestamp, to_display

app = typer.Typer(help="HealthPod - Personal health record import/export")

logger = get_logger(__name__)

RECORD_TYPE_HELP = "Record type: blood_pressure (bp), medication, vaccination, appointment (diary)"


def init_config(config_path: str = "config/config.yaml") -> ParameterLoader:
    """
    Initialize configuration and logging.

    Args:
        config_path: Path to configuration file.

    Returns:
        Parameter loader instance.
    """
    param_loader = ParameterLoader(config_path)
    setup_logging(param_loader.get_logging_config(), "healthpod")
    return param_loader


def init_client(param_loader: ParameterLoader, security_key: str | None) -> PodClient:
    """Build the configured pod client, unlocked with the security key."""
    cipher = RecordCipher.from_config(param_loader.get_encryption_config(), security_key)
    return create_pod_client(param_loader.get_store_config(), cipher)


def parse_record_type(name: str) -> RecordType:
    try:
        return RecordType.from_name(name)
    except ValueError as e:
        raise typer.BadParameter(f"Unknown record type: {name}") from e


def fail(action: str, error: Exception) -> typer.Exit:
    logger.error(f"{action} failed: {error}")
    typer.echo(f"Error: {error}", err=True)
    return typer.Exit(code=1)


@app.command("import")
def import_csv(
    record_type: str = typer.Argument(..., help=RECORD_TYPE_HELP),
    csv_path: Path = typer.Argument(..., help="CSV file to import"),
    dir_path: str = typer.Option("", "--dir", help="Pod directory (defaults to the type folder)"),
    overwrite: bool = typer.Option(
        False, help="Ask before replacing records stored under the same timestamps"
    ),
    config_path: str = typer.Option("config/config.yaml", help="Path to configuration file"),
    security_key: str | None = typer.Option(
        None, envvar="HEALTHPOD_SECURITY_KEY", help="Security key for the pod"
    ),
) -> None:
    """
    Import a CSV file into the pod.

    Every valid row becomes one encrypted record file named after its
    timestamp.
    """
    rtype = parse_record_type(record_type)

    try:
        param_loader = init_config(config_path)
        client = init_client(param_loader, security_key)

        importer = CSVImporter(
            get_schema(rtype),
            client,
            param_loader.get_processing_config(),
            param_loader.get_csv_config(),
        )

        def confirm(files: list[str]) -> bool:
            typer.echo(f"{len(files)} existing files would be replaced:")
            for name in files:
                typer.echo(f"  - {name}")
            return typer.confirm("Replace them?", default=False)

        outcome = importer.import_file(
            csv_path, dir_path, confirm_overwrite=confirm if overwrite else None
        )

    except HealthPodError as e:
        raise fail("Import", e) from e

    if outcome.aborted:
        typer.echo("Import cancelled")
        raise typer.Exit(code=1)

    if outcome.warning:
        typer.echo(outcome.warning, err=True)

    typer.echo(f"Saved {outcome.saved_count} {rtype.value} records")
    if outcome.overwritten_files:
        typer.echo(f"Replaced {len(outcome.overwritten_files)} existing files")
    if outcome.skipped_rows:
        typer.echo(f"Skipped rows: {', '.join(str(r) for r in outcome.skipped_rows)}")
    if outcome.error_rows:
        typer.echo(f"Rows with errors: {', '.join(str(r) for r in outcome.error_rows)}")

    if not outcome.success:
        typer.echo("Import completed with errors", err=True)
        raise typer.Exit(code=1)


@app.command("export")
def export_csv(
    record_type: str = typer.Argument(..., help=RECORD_TYPE_HELP),
    output_path: Path = typer.Argument(..., help="CSV file to write"),
    dir_path: str = typer.Option("", "--dir", help="Pod directory (defaults to the type folder)"),
    config_path: str = typer.Option("config/config.yaml", help="Path to configuration file"),
    security_key: str | None = typer.Option(
        None, envvar="HEALTHPOD_SECURITY_KEY", help="Security key for the pod"
    ),
) -> None:
    """Export all records of a type to a CSV file."""
    rtype = parse_record_type(record_type)

    try:
        param_loader = init_config(config_path)
        client = init_client(param_loader, security_key)

        exporter = RecordExporter(get_schema(rtype), client, param_loader.get_processing_config())
        outcome = exporter.export_to_csv(output_path, dir_path)

    except HealthPodError as e:
        raise fail("Export", e) from e

    if not outcome.success:
        typer.echo(f"Error: {outcome.error}", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"Exported {outcome.record_count} {rtype.value} records to {outcome.path}")
    if outcome.skipped_files:
        typer.echo(f"Skipped {len(outcome.skipped_files)} unreadable files")


@app.command("list")
def list_records(
    record_type: str = typer.Argument(..., help=RECORD_TYPE_HELP),
    config_path: str = typer.Option("config/config.yaml", help="Path to configuration file"),
    security_key: str | None = typer.Option(
        None, envvar="HEALTHPOD_SECURITY_KEY", help="Security key for the pod"
    ),
) -> None:
    """List the records of a type, newest first."""
    rtype = parse_record_type(record_type)

    try:
        param_loader = init_config(config_path)
        client = init_client(param_loader, security_key)
        timezone = param_loader.get_processing_config().timezone

        service = ObservationService(rtype, client, param_loader.get_processing_config())
        records = service.sorted_for_display(service.load_all())

    except HealthPodError as e:
        raise fail("List", e) from e

    if not records:
        typer.echo(f"No {rtype.value} records found")
        return

    for record in records:
        values = ", ".join(f"{k}={v}" for k, v in record.responses().items() if v != "")
        typer.echo(f"{to_display(record.timestamp, timezone)}  {values}")

    typer.echo(f"\n{len(records)} {rtype.value} records")


@app.command("delete")
def delete_record(
    record_type: str = typer.Argument(..., help=RECORD_TYPE_HELP),
    timestamp: str = typer.Argument(..., help="Timestamp of the record to delete"),
    config_path: str = typer.Option("config/config.yaml", help="Path to configuration file"),
    security_key: str | None = typer.Option(
        None, envvar="HEALTHPOD_SECURITY_KEY", help="Security key for the pod"
    ),
) -> None:
    """Delete the record stored under a timestamp."""
    rtype = parse_record_type(record_type)

    try:
        param_loader = init_config(config_path)
        client = init_client(param_loader, security_key)
        processing_config = param_loader.get_processing_config()

        service = ObservationService(rtype, client, processing_config)
        target = service.model.model_construct(
            timestamp=parse_timestamp(timestamp, processing_config.timezone).replace(microsecond=0)
        )
        deleted = service.delete(target)

    except HealthPodError as e:
        raise fail("Delete", e) from e

    if not deleted:
        typer.echo(f"Error: No {rtype.value} record found for {timestamp}", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"Deleted {rtype.value} record {timestamp}")


if __name__ == "__main__":
    app()
