#!/usr/bin/env python3
"""
Supplier Quote Ingest CLI
Extracts component candidates from supplier quotes (spreadsheets, PDFs, images).
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from .config import ExchangeRateTable, Settings
from .format_classifier import (
    EXTENSION_ROUTES,
    estimated_processing_seconds,
    route_display_name,
    classify,
)
from .models import ExtractionResult, RawDocument
from .orchestrator import ExtractionOrchestrator
from .vision_adapter import create_openai_adapter

logger = logging.getLogger(__name__)

# Summary goes to stderr so stdout stays pure JSON
console = Console(stderr=True)


def setup_logging(verbose: bool, level: str = "INFO"):
    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        stream=sys.stderr,
    )


def print_summary(result: ExtractionResult):
    """Render the candidates as a rich table."""
    if not result.success:
        console.print(f"[bold red]Extraction failed:[/bold red] {result.error}")
        return

    table = Table(title=f"Extracted components ({result.metadata.extraction_method})")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Manufacturer")
    table.add_column("Part Number", style="magenta")
    table.add_column("Category")
    table.add_column("Price", justify="right", style="green")
    table.add_column("Qty", justify="right")
    table.add_column("Confidence", justify="right")

    for index, candidate in enumerate(result.candidates, 1):
        price = ""
        if candidate.unit_price:
            price = f"{candidate.unit_price.amount:,.2f} {candidate.unit_price.currency}"
        table.add_row(
            str(index),
            candidate.name,
            candidate.manufacturer or "",
            candidate.manufacturer_part_number or "",
            candidate.category,
            price,
            str(candidate.quantity or ""),
            f"{candidate.confidence:.0%}",
        )

    console.print(table)
    console.print(f"Overall confidence: [bold]{result.confidence:.0%}[/bold]")
    if result.error:
        console.print(f"[yellow]{result.error}[/yellow]")
    for warning in result.warnings:
        console.print(f"[yellow]⚠ {warning.message}[/yellow]")


@click.group()
def cli():
    """Supplier quote ingestion: turn quotes into reviewable component records."""


@cli.command()
@click.argument('file_path', type=click.Path(exists=True, dir_okay=False))
@click.option('--output', '-o', type=click.Path(), help='Output JSON file path')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
@click.option('--usd-to-ils', type=float, help='Shekels per US dollar')
@click.option('--eur-to-ils', type=float, help='Shekels per euro')
@click.option('--ai/--no-ai', default=False, help='Use the AI vision service for images (needs OPENAI_API_KEY)')
def parse(file_path: str, output: Optional[str], verbose: bool, usd_to_ils: Optional[float],
          eur_to_ils: Optional[float], ai: bool):
    """Parse a supplier quote and print the extraction result as JSON."""
    settings = Settings.from_env()
    setup_logging(verbose, settings.log_level)

    try:
        rates = ExchangeRateTable.from_env()
        if usd_to_ils is not None or eur_to_ils is not None:
            rates = ExchangeRateTable.from_rates(
                usd_to_ils if usd_to_ils is not None else rates.usd_to_ils,
                eur_to_ils if eur_to_ils is not None else rates.eur_to_ils,
            )
    except ValueError as e:
        raise click.BadParameter(str(e))

    document = RawDocument.from_path(file_path)
    route = classify(document.mime_type, document.filename)
    logger.info(
        f"Parsing {document.filename} with {route_display_name(route)} "
        f"(~{estimated_processing_seconds(route, document.size_bytes):.1f}s)"
    )

    vision_adapter = create_openai_adapter(settings) if ai else None
    orchestrator = ExtractionOrchestrator(rates, vision_adapter=vision_adapter, settings=settings)
    result = orchestrator.extract(document)

    payload = result.to_json()
    if output:
        Path(output).write_text(payload, encoding='utf-8')
        logger.info(f"Results saved to: {output}")
    else:
        click.echo(payload)

    print_summary(result)
    if not result.success:
        sys.exit(1)


@cli.command()
def formats():
    """List the supported file formats."""
    table = Table(title="Supported formats")
    table.add_column("Extension", style="cyan")
    table.add_column("Handled by")
    for extension, route in EXTENSION_ROUTES.items():
        table.add_row(extension, route_display_name(route))
    Console().print(table)


if __name__ == '__main__':
    cli()
