"""
Synthetic Medical Record Generator CLI

Command-line interface for generating complete synthetic medical records
with an Azure OpenAI deployment, plus cache maintenance commands.

Usage:
    python generate_medical_record.py --preset standard
    python generate_medical_record.py --preset complex --count 3 --output-dir ./records
    python generate_medical_record.py --cache-stats
"""

import argparse
import asyncio
import sys
from typing import Optional

from loguru import logger

from medical_record_generation import (
    GenerationSettings,
    MedicalRecordPipeline,
    ModelConfigStore,
    clear_cache,
    clear_expired_cache,
    get_cache_stats,
)
from medical_record_generation.core.config import CacheConfig, ModelEndpointConfig
from medical_record_generation.core.constants import GENERATION_PRESETS
from medical_record_generation.core.exceptions import (
    ConfigurationError,
    MedicalRecordGenerationError,
)
from medical_record_generation.core.logging_setup import configure_logging


def create_argument_parser() -> argparse.ArgumentParser:
    """
    Create the command-line argument parser.

    Example:
        >>> parser = create_argument_parser()
        >>> args = parser.parse_args(["--preset", "simple"])
    """
    presets = "\n".join(
        f"  - {key:<10} {preset['description']}" for key, preset in GENERATION_PRESETS.items()
    )
    parser = argparse.ArgumentParser(
        description="Generate synthetic medical records with Azure OpenAI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Examples:
  Generate one standard record:
    python generate_medical_record.py

  Generate three complex records into ./records:
    python generate_medical_record.py --preset complex --count 3 --output-dir ./records

  Show or clear the generation cache:
    python generate_medical_record.py --cache-stats
    python generate_medical_record.py --clear-expired

Available Presets:
{presets}

Requirements:
  - AZURE_OPENAI_ENDPOINT, AZURE_OPENAI_API_KEY and AZURE_OPENAI_DEPLOYMENT
    in the environment or a .env file, or a configuration saved with --save-config
        """,
    )

    parser.add_argument(
        "--preset",
        choices=sorted(GENERATION_PRESETS),
        default="standard",
        help="Record preset (default: standard)",
    )
    parser.add_argument(
        "--count", type=int, default=1, help="Number of records to generate (default: 1)"
    )
    parser.add_argument(
        "--output-dir",
        type=str,
        default="output/medical_records",
        help="Output directory (default: output/medical_records)",
    )
    parser.add_argument("--env-file", type=str, default=None, help="Path to a .env file")
    parser.add_argument(
        "--no-cache", action="store_true", help="Bypass the generation cache for this run"
    )
    parser.add_argument(
        "--save-config",
        action="store_true",
        help="Remember the environment endpoint configuration for later runs",
    )
    parser.add_argument("--cache-stats", action="store_true", help="Print cache statistics")
    parser.add_argument("--clear-cache", action="store_true", help="Remove all cache entries")
    parser.add_argument(
        "--clear-expired", action="store_true", help="Remove expired cache entries"
    )
    parser.add_argument(
        "--log-level", type=str, default=None, help="Log level (default: LOG_LEVEL or INFO)"
    )
    return parser


def resolve_endpoint_config(
    settings: GenerationSettings, store: ModelConfigStore
) -> ModelEndpointConfig:
    """
    Endpoint configuration from the environment, else from the saved store.

    Raises:
        ConfigurationError: If neither source yields a valid configuration
    """
    config = settings.to_endpoint_config()
    if config.endpoint or config.api_key or config.deployment_name:
        config.validate()
        return config

    saved: Optional[ModelEndpointConfig] = store.load()
    if saved is None:
        raise ConfigurationError(
            "Endpoint is required", context={"setting": "AZURE_OPENAI_ENDPOINT"}
        )
    saved.validate()
    return saved


def run_cache_commands(args: argparse.Namespace, cache_config: CacheConfig) -> bool:
    """Run the cache maintenance flags. Returns True if any ran."""
    ran = False
    if args.clear_cache:
        print(f"Removed {clear_cache(cache_config)} cache entries")
        ran = True
    if args.clear_expired:
        print(f"Removed {clear_expired_cache(cache_config)} expired cache entries")
        ran = True
    if args.cache_stats:
        stats = get_cache_stats(cache_config)
        print("Cache Statistics:")
        print(f"  - Total entries:   {stats.total_entries}")
        print(f"  - Valid entries:   {stats.valid_entries}")
        print(f"  - Expired entries: {stats.expired_entries}")
        print(f"  - Size:            {stats.total_size_bytes / 1024:.1f} KiB")
        ran = True
    return ran


async def generate_records(pipeline: MedicalRecordPipeline, preset: str, count: int, output_dir: str):
    """
    Generate ``count`` records sequentially, saving each one.

    In a batch each record gets its own index, so the cache never hands
    two records the same patient.
    """
    saved = []
    for index in range(1, count + 1):
        print(f"[{index}/{count}] Generating {preset} record...")

        def on_lab_progress(test_type, report, current, total):
            status = "OK" if report is not None else "FAIL"
            print(f"    [{status}] Lab {current}/{total}: {getattr(test_type, 'value', test_type)}")

        try:
            record = await pipeline.generate_complete_record(
                preset, on_lab_progress, record_index=index if count > 1 else None
            )
        except ConfigurationError:
            raise
        except MedicalRecordGenerationError as e:
            print(f"[FAIL] Record {index}: {e}")
            continue

        prefix = f"medical_record_{index:03d}" if count > 1 else "medical_record"
        path = pipeline.save_record(record, output_dir=output_dir, filename_prefix=prefix)
        print(f"[OK] {record.patient.name} → {path}")
        saved.append(path)
    return saved


def main() -> None:
    """
    Run the CLI.

    Step 1: Parse arguments and configure logging
    Step 2: Load settings; run cache commands if requested
    Step 3: Resolve the endpoint configuration
    Step 4: Generate and save records
    """
    parser = create_argument_parser()
    args = parser.parse_args()

    settings = GenerationSettings.load(args.env_file)
    configure_logging(args.log_level or settings.log_level)

    cache_config = settings.to_cache_config()
    if args.no_cache:
        cache_config = cache_config.disabled()

    if run_cache_commands(args, cache_config):
        return

    if args.count <= 0:
        logger.error(f"count must be positive, got: {args.count}")
        sys.exit(1)

    print("=" * 80)
    print("SYNTHETIC MEDICAL RECORD GENERATOR")
    print("=" * 80)
    print()

    store = ModelConfigStore()
    try:
        endpoint_config = resolve_endpoint_config(settings, store)
        if args.save_config:
            store.save(endpoint_config)

        pipeline = MedicalRecordPipeline(
            endpoint_config,
            cache_config=cache_config,
            max_attempts=settings.generation_max_attempts,
        )
        print(f"  - Deployment: {endpoint_config.deployment_name}")
        print(f"  - Preset: {args.preset}")
        print(f"  - Records: {args.count}")
        print()

        async def run():
            try:
                return await generate_records(pipeline, args.preset, args.count, args.output_dir)
            finally:
                await pipeline.aclose()

        saved = asyncio.run(run())

    except ConfigurationError as error:
        logger.error(f"Invalid configuration: {error}")
        sys.exit(1)

    except MedicalRecordGenerationError as error:
        logger.error(f"Generation failed: {error}")
        sys.exit(1)

    print()
    print("=" * 80)
    print("GENERATION COMPLETE")
    print("=" * 80)
    print(f"✓ Generated {len(saved)}/{args.count} records")
    if not saved:
        sys.exit(1)


if __name__ == "__main__":
    main()
