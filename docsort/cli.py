"""
Command-line interface for the document organizer.

Usage:
    python -m docsort extract FILE [OPTIONS]
    python -m docsort classify DIRECTORY [OPTIONS]
    python -m docsort organize DIRECTORY [OPTIONS]
    python -m docsort watermark FILE [FILE ...] [OPTIONS]
"""

import argparse
import asyncio
import glob
import logging
import os
import sys
from typing import Dict, List, Optional

from pydantic import ValidationError

from docsort.config import CLASSIFICATION_MODES, OCR_METHODS, Settings, get_settings
from docsort.models.category import CATEGORIES, is_valid_category
from docsort.models.extraction import BatchDocument
from docsort.models.watermark import WatermarkOptions
from docsort.services.batch_processor import classify_pdfs, process_directory
from docsort.services.classifier import DocumentClassifier, get_classification_stats
from docsort.services.gemini_client import GeminiTextModel, get_gemini_client
from docsort.services.text_acquisition import TextAcquisitionChain, clean_text
from docsort.services.watermark import get_preset_names, resolve_style, watermark_file
from docsort.utils.rate_limiter import RateLimiter

PREVIEW_CHARS = 500


def parse_numbering(values: Optional[List[str]]) -> Dict[str, int]:
    """Parse ``CODE=N`` pairs into numbering overrides."""
    overrides: Dict[str, int] = {}
    for value in values or []:
        code, sep, number = value.partition("=")
        code = code.strip().upper()
        if not sep or not is_valid_category(code):
            raise argparse.ArgumentTypeError(
                f"Invalid --start value {value!r}; expected CODE=N with CODE one of "
                + ", ".join(c.code for c in CATEGORIES)
            )
        try:
            start = int(number)
        except ValueError:
            raise argparse.ArgumentTypeError(f"Invalid start number in {value!r}") from None
        if start < 1:
            raise argparse.ArgumentTypeError(f"Start number must be >= 1 in {value!r}")
        overrides[code] = start
    return overrides


def create_parser() -> argparse.ArgumentParser:
    """Create CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="docsort",
        description="Classify scanned business PDFs and organize them into category folders"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    extract_parser = subparsers.add_parser(
        "extract",
        help="Extract text from a single PDF (direct, falling back to OCR)"
    )
    extract_parser.add_argument("file", help="PDF file to extract")
    extract_parser.add_argument(
        "--method", "-m",
        choices=OCR_METHODS,
        default=None,
        help="OCR fallback method (default: from env or tesseract)"
    )
    extract_parser.add_argument(
        "--full", "-f",
        action="store_true",
        help="Print the full extracted text instead of a preview"
    )

    for name, help_text in (
        ("classify", "Classify every PDF in a directory"),
        ("organize", "Classify and organize every PDF in a directory"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("directory", help="Directory containing PDFs")
        sub.add_argument(
            "--pattern", "-p",
            default="*.pdf",
            help="Glob pattern for PDF files (default: *.pdf)"
        )
        sub.add_argument(
            "--mode",
            choices=CLASSIFICATION_MODES,
            default=None,
            help="Send PDFs to the model (document) or extracted text (text)"
        )
        sub.add_argument(
            "--method", "-m",
            choices=OCR_METHODS,
            default=None,
            help="OCR fallback method in text mode (default: from env or tesseract)"
        )

        if name == "organize":
            sub.add_argument(
                "--output", "-o",
                default=None,
                help="Output directory (default: from env or ./organized_documents)"
            )
            sub.add_argument(
                "--start", "-s",
                action="append",
                metavar="CODE=N",
                help="First document number for a category, e.g. COF=10 (repeatable)"
            )
            sub.add_argument(
                "--preview",
                action="store_true",
                help="Show where files would go without copying anything"
            )

    watermark_parser = subparsers.add_parser(
        "watermark",
        help="Stamp a text watermark on PDFs, writing <name>_watermarked.pdf copies"
    )
    watermark_parser.add_argument("files", nargs="+", help="PDF files to watermark")
    watermark_parser.add_argument(
        "--preset",
        choices=get_preset_names(),
        default=None,
        help="Built-in style; other options override its values"
    )
    watermark_parser.add_argument("--text", "-t", default=None, help="Watermark text")
    watermark_parser.add_argument("--opacity", type=float, default=None, help="0 to 1")
    watermark_parser.add_argument("--font-size", type=float, default=None, help="8 to 200")
    watermark_parser.add_argument("--color", default=None, help="Color name, e.g. red or gray")
    watermark_parser.add_argument(
        "--rotation", type=float, default=None, help="Degrees, 0 to 360"
    )
    watermark_parser.add_argument(
        "--output", "-o",
        default=None,
        help="Output directory (default: next to each source file)"
    )

    return parser


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


def _load_settings() -> Optional[Settings]:
    try:
        return get_settings()
    except (ValidationError, ValueError) as e:
        print(f"Configuration error: {e}")
        print("\nMake sure you have a .env file with:")
        print("  GEMINI_API_KEY=your_api_key")
        return None


def extract_command(args: argparse.Namespace, settings: Settings) -> int:
    """Extract text from a single PDF and print statistics."""
    method = args.method or settings.ocr_method
    model = None
    if method != "tesseract":
        model = GeminiTextModel.from_settings(settings)
    chain = TextAcquisitionChain.from_settings(settings, model=model)

    print(f"\nParsing PDF: {args.file}")
    result = chain.acquire_file(args.file, method=method)

    if not result.success:
        print(f"Error parsing PDF:\n   {result.error}")
        return 1

    stats = result.stats
    print(f"Method: {result.extraction_method}")
    print(f"Pages: {result.page_count}")
    print(f"Characters: {stats.characters:,}  Words: {stats.words:,}  "
          f"Sentences: {stats.sentences:,}  Paragraphs: {stats.paragraphs:,}\n")

    if args.full:
        print(result.text)
    else:
        preview = clean_text(result.text)
        print(preview[:PREVIEW_CHARS] + ("..." if len(preview) > PREVIEW_CHARS else ""))
    return 0


async def classify_command(args: argparse.Namespace, settings: Settings) -> int:
    """Classify a directory of PDFs and print per-file results and stats."""
    if not os.path.isdir(args.directory):
        print(f"Error: Not a directory: {args.directory}")
        return 1

    paths = sorted(glob.glob(os.path.join(args.directory, args.pattern)))
    if not paths:
        print(f"No PDFs found matching pattern: {args.pattern}")
        return 1

    documents = []
    for path in paths:
        with open(path, "rb") as fh:
            documents.append(BatchDocument(
                filename=os.path.relpath(path, args.directory), content=fh.read()
            ))

    model = GeminiTextModel.from_settings(settings, client=get_gemini_client(settings))
    mode = args.mode or settings.classification_mode
    results = await classify_pdfs(
        documents,
        DocumentClassifier(model),
        mode=mode,
        chain=TextAcquisitionChain.from_settings(settings, model=model),
        method=args.method or settings.ocr_method,
        rate_limiter=RateLimiter.from_milliseconds(settings.batch_delay_ms),
    )

    for result in results:
        tag = "OK" if result.success else "FAILED"
        print(f"{tag:6} {result.filename}: {result.category} ({result.category_label}) "
              f"requester={result.requester} confidence={result.confidence:.2f}")
        if result.error:
            print(f"       error: {result.error}")

    stats = get_classification_stats(results)
    print(f"\n{stats.successful}/{stats.total} classified, "
          f"average confidence {stats.average_confidence:.2f}")
    print(f"Confidence: high={stats.confidence_distribution.high} "
          f"medium={stats.confidence_distribution.medium} "
          f"low={stats.confidence_distribution.low}")

    return 0 if stats.successful > 0 else 1


async def organize_command(args: argparse.Namespace, settings: Settings) -> int:
    """Run the full classify-and-organize pipeline on a directory."""
    if not os.path.exists(args.directory):
        print(f"Error: Directory not found: {args.directory}")
        return 1

    if not os.path.isdir(args.directory):
        print(f"Error: Not a directory: {args.directory}")
        return 1

    try:
        overrides = parse_numbering(args.start)
    except argparse.ArgumentTypeError as e:
        print(f"Error: {e}")
        return 1

    model = GeminiTextModel.from_settings(settings, client=get_gemini_client(settings))

    try:
        outcome = await process_directory(
            directory=args.directory,
            classifier=DocumentClassifier(model),
            output_dir=args.output or settings.output_dir,
            mode=args.mode or settings.classification_mode,
            chain=TextAcquisitionChain.from_settings(settings, model=model),
            method=args.method or settings.ocr_method,
            rate_limiter=RateLimiter.from_milliseconds(settings.batch_delay_ms),
            numbering_overrides=overrides,
            pattern=args.pattern,
            preview=args.preview,
        )
    except KeyboardInterrupt:
        print("\n\nInterrupted by user")
        return 1

    if outcome is None:
        return 1
    if args.preview:
        return 0 if outcome.summary.successful > 0 else 1
    return 0 if outcome.success and outcome.summary.successful > 0 else 1


def watermark_command(args: argparse.Namespace) -> int:
    """Watermark each given PDF; fails only if none could be processed."""
    options = WatermarkOptions(
        preset=args.preset,
        text=args.text,
        opacity=args.opacity,
        font_size=args.font_size,
        color=args.color,
        rotation=args.rotation,
    )
    try:
        style = resolve_style(options)
    except ValueError as e:
        print(f"Error: {e}")
        return 1

    processed = 0
    for path in args.files:
        result = watermark_file(path, style, output_dir=args.output)
        if result.success:
            processed += 1
            print(f"OK     {path} -> {result.output_path} ({result.pages} page(s))")
        else:
            print(f"FAILED {path}: {result.error}")

    print(f"\n{processed}/{len(args.files)} watermarked with {style.text!r}")
    return 0 if processed > 0 else 1


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    # Watermarking needs no API key
    if args.command == "watermark":
        configure_logging(os.getenv("LOG_LEVEL", "INFO"))
        return watermark_command(args)

    settings = _load_settings()
    if settings is None:
        return 1
    configure_logging(settings.log_level)

    # Route to command handler
    if args.command == "extract":
        return extract_command(args, settings)
    if args.command == "classify":
        return asyncio.run(classify_command(args, settings))
    if args.command == "organize":
        return asyncio.run(organize_command(args, settings))

    print(f"Unknown command: {args.command}")
    return 1


if __name__ == "__main__":
    sys.exit(main())
