# src/main.py — v2
"""CLI entry point — resolve, generate, stats commands.

Usage:
    nutriresolve resolve --text "two bananas"
    nutriresolve resolve --barcode 3017620422003
    nutriresolve resolve --image plate.jpg
    nutriresolve generate --cuisine italian --diet vegetarian --calories 600
    nutriresolve stats

Results are printed as JSON on stdout; logs go to stderr.
Exit codes: 0 success, 1 error, 2 not found, 130 interrupted.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from nutriresolve.version import __version__

if TYPE_CHECKING:
    from nutriresolve.config.settings import Settings

logger = logging.getLogger(__name__)

EXIT_NOT_FOUND = 2


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    from pydantic import ValidationError

    from nutriresolve.config.settings import ConfigurationError, load_settings
    from nutriresolve.logging.logger import setup_logging

    try:
        settings = load_settings(**_overrides(args))
    except (ConfigurationError, ValidationError) as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 1

    setup_logging(
        level="DEBUG" if args.verbose else settings.log_level,
        log_format=settings.log_format,
        log_file=str(settings.log_file) if settings.log_file else None,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )

    try:
        return asyncio.run(args.func(args, settings))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return 1


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="nutriresolve",
        description=f"nutriresolve v{__version__}: food resolution and recipe generation",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--offline", action="store_true",
        help="Use the built-in food table only (no HTTP, no LLM)",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- resolve ---
    p_resolve = subparsers.add_parser("resolve", help="Resolve a food to nutrition facts")
    source = p_resolve.add_mutually_exclusive_group(required=True)
    source.add_argument("--text", help="Free-text food description")
    source.add_argument("--barcode", help="Product barcode (EAN/UPC)")
    source.add_argument("--image", type=Path, help="Photo of a meal or label")
    source.add_argument("--voice-transcript", help="Transcribed voice log")
    source.add_argument("--voice-audio", type=Path, help="Recorded voice log")
    p_resolve.add_argument(
        "--diet", action="append", default=[],
        help="Diet to check compatibility against (repeatable)",
    )
    p_resolve.add_argument(
        "--allergen", action="append", default=[],
        help="Allergen to avoid (repeatable)",
    )
    p_resolve.set_defaults(func=_cmd_resolve)

    # --- generate ---
    p_generate = subparsers.add_parser("generate", help="Generate a unique recipe")
    p_generate.add_argument("--cuisine", default=None)
    p_generate.add_argument("--diet", default=None)
    p_generate.add_argument("--calories", type=int, default=500, help="Calorie target per serving")
    p_generate.add_argument("--protein", type=int, default=20, help="Protein target per serving (g)")
    p_generate.add_argument("--servings", type=int, default=2)
    p_generate.add_argument(
        "--pantry", default="", help="Comma-separated ingredients that must be used",
    )
    p_generate.add_argument(
        "--exclude", default="", help="Comma-separated ingredients to avoid",
    )
    p_generate.add_argument("--seed", default=None, help="Seed for reproducible requests")
    p_generate.set_defaults(func=_cmd_generate)

    # --- stats ---
    p_stats = subparsers.add_parser("stats", help="Show cache configuration and counters")
    p_stats.set_defaults(func=_cmd_stats)

    return parser


def _overrides(args: argparse.Namespace) -> dict[str, object]:
    if not args.offline:
        return {}
    return {
        "local_table_enabled": True,
        "usda_enabled": False,
        "off_enabled": False,
        "generative_enabled": False,
    }


async def _cmd_resolve(args: argparse.Namespace, settings: Settings) -> int:
    """Resolve one request and print the result."""
    from nutriresolve.api.facade import NutritionEngine
    from nutriresolve.core.errors import NotFound
    from nutriresolve.core.models import (
        DietaryPreferences,
        RequesterContext,
        RequestKind,
        ResolutionRequest,
    )

    context = RequesterContext(
        dietary=DietaryPreferences(diets=tuple(args.diet), allergens=tuple(args.allergen)),
    )
    if args.image is not None:
        if not args.image.is_file():
            logger.error("File not found: %s", args.image)
            return 1
        request = ResolutionRequest(
            kind=RequestKind.IMAGE,
            payload=args.image.read_bytes(),
            context=context,
        )
    elif args.voice_audio is not None:
        if not args.voice_audio.is_file():
            logger.error("File not found: %s", args.voice_audio)
            return 1
        request = ResolutionRequest(
            kind=RequestKind.VOICE, payload=args.voice_audio.read_bytes(), context=context
        )
    elif args.barcode is not None:
        request = ResolutionRequest(kind=RequestKind.BARCODE, payload=args.barcode, context=context)
    elif args.voice_transcript is not None:
        request = ResolutionRequest(
            kind=RequestKind.VOICE, payload=args.voice_transcript, context=context
        )
    else:
        request = ResolutionRequest(kind=RequestKind.TEXT, payload=args.text, context=context)

    async with NutritionEngine.from_settings(settings) as engine:
        try:
            result = await engine.resolve(request)
        except NotFound as exc:
            logger.warning("%s", exc)
            _print_json({"error": "not_found", "detail": str(exc)})
            return EXIT_NOT_FOUND
    _print_json(result.model_dump(mode="json"))
    return 0


async def _cmd_generate(args: argparse.Namespace, settings: Settings) -> int:
    """Generate one recipe and print the artifact."""
    from nutriresolve.api.facade import NutritionEngine
    from nutriresolve.core.models import GenerationSpec

    spec = GenerationSpec(
        cuisine=args.cuisine,
        diet=args.diet,
        calorie_target=args.calories,
        protein_target=args.protein,
        servings=args.servings,
        pantry_items=_split(args.pantry),
        exclusions=_split(args.exclude),
        seed=args.seed,
    )
    async with NutritionEngine.from_settings(settings) as engine:
        artifact = await engine.generate(spec)
    payload = artifact.model_dump(mode="json")
    payload["fingerprint"] = artifact.fingerprint.hex()
    _print_json(payload)
    return 0


async def _cmd_stats(args: argparse.Namespace, settings: Settings) -> int:
    """Print cache counters (a fresh process starts empty)."""
    from nutriresolve.api.facade import NutritionEngine

    async with NutritionEngine.from_settings(settings) as engine:
        stats = await engine.cache_stats()
    _print_json(stats.model_dump(mode="json"))
    return 0


def _split(value: str) -> tuple[str, ...]:
    return tuple(v.strip() for v in value.split(",") if v.strip())


def _print_json(data: object) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False))


if __name__ == "__main__":
    sys.exit(main())
