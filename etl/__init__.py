"""ETL package.

Streaming export of the business registry dump to GCS.

Modules:
- extractor: Extractor-Uploader (`RegistryExporter`, `run_export`)
- decode: Streaming gunzip and incremental JSON parsing
- transform: Entity -> TSV line
- errors: Export error taxonomy
- main: Cloud Function entry points (scheduled + manual)

Usage:
    import asyncio
    from etl.extractor import run_export
    from utils.config import Settings

    result = asyncio.run(run_export(Settings.load()))

    # CLI usage:
    # python -m etl --log-level DEBUG
"""
