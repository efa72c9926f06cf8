from holders_ingest.cli import cli

cli()
