#!/usr/bin/env python3
"""
Publish an OTA bundle and activate it on a channel.

Registers the app if needed, computes the artifact checksum, optionally
encrypts the artifact first, stores the bundle row and points the channel
at it in one transaction.

Usage:
    python -m backend.src.scripts.publish_bundle --app-id com.example.app \\
        --platform ios --version 1.2.0 --url https://cdn.example.com/1.2.0.zip \\
        --file dist/1.2.0.zip

Options:
    --app-id              External app identifier (required)
    --platform            ios or android (required)
    --version             Bundle version (required)
    --channel             Channel to activate on (default: OTA_DEFAULT_CHANNEL)
    --url                 External download URL
    --storage-path        Path inside the blob store (alternative to --url)
    --file                Artifact to checksum (and encrypt with --public-key)
    --checksum            SHA-256 hex digest when --file is not given
    --public-key          RSA public key PEM; encrypts --file into --output
    --output              Where to write the encrypted artifact
    --manifest            JSON file with the multi-file manifest
    --min-native-version  Lowest native build allowed to install
    --required            Force install on devices
    --dry-run             Show what would be published

Examples:
    # Plain bundle hosted on a CDN
    python -m backend.src.scripts.publish_bundle -a com.example.app -p android \\
        -v 2.0.0 --url https://cdn.example.com/2.0.0.zip --file dist/2.0.0.zip

    # Encrypted bundle stored in our blob store, beta channel, needs build 50
    python -m backend.src.scripts.publish_bundle -a com.example.app -p ios \\
        -v 2.1.0 -c beta --storage-path bundles/2.1.0.enc --file dist/2.1.0.zip \\
        --public-key keys/public.pem --output dist/2.1.0.enc --min-native-version 50
"""

import argparse
import json
import signal
import sys
from pathlib import Path
from typing import List, Optional


def signal_handler(signum, frame):
    """Handle CTRL+C gracefully."""
    print("\n\nOperation interrupted by user.")
    sys.exit(130)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Publish an OTA bundle and activate it on a channel.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Notes:
  - The checksum covers the bytes devices download (ciphertext when encrypted)
  - Publishing the same app/platform/version twice is refused
  - The channel is created if it does not exist
        """
    )

    parser.add_argument("-a", "--app-id", required=True, help="External app identifier")
    parser.add_argument("--app-name", help="Display name when registering the app")
    parser.add_argument("-p", "--platform", required=True, choices=["ios", "android"])
    parser.add_argument("-v", "--version", required=True, help="Bundle version, e.g. 1.2.0")
    parser.add_argument("-c", "--channel", help="Channel to activate on")

    location = parser.add_mutually_exclusive_group(required=True)
    location.add_argument("--url", help="External download URL")
    location.add_argument("--storage-path", help="Path inside the blob store")

    parser.add_argument("-f", "--file", type=Path, help="Artifact file")
    parser.add_argument("--checksum", help="SHA-256 hex digest of the artifact")
    parser.add_argument("--public-key", type=Path, help="RSA public key PEM for encryption")
    parser.add_argument("-o", "--output", type=Path, help="Encrypted artifact output path")
    parser.add_argument("--manifest", type=Path, help="JSON manifest file")
    parser.add_argument("--min-native-version", type=int, default=0)
    parser.add_argument("--required", action="store_true", help="Force install")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be published without making changes"
    )

    return parser.parse_args(argv)


def validate_args(args: argparse.Namespace) -> Optional[str]:
    """Return an error message for inconsistent arguments, or None."""
    if not args.file and not args.checksum:
        return "Either --file or --checksum is required"
    if args.public_key and not args.file:
        return "--public-key requires --file"
    if args.public_key and not args.output:
        return "--public-key requires --output"
    if args.file and not args.file.is_file():
        return f"Artifact not found: {args.file}"
    if args.min_native_version < 0:
        return "--min-native-version must be >= 0"
    return None


def publish(args: argparse.Namespace, db) -> Optional[str]:
    """
    Publish the bundle described by args.

    Args:
        args: Parsed arguments
        db: SQLAlchemy session

    Returns:
        Bundle GUID, or None on error
    """
    from backend.src.config.settings import get_settings
    from backend.src.services.publish_service import PublishService
    from backend.src.services.exceptions import ServiceError
    from backend.src.utils.crypto import encrypt_bundle

    channel = args.channel or get_settings().default_channel
    session_key = None
    artifact = args.file.read_bytes() if args.file else None

    if args.public_key:
        artifact, session_key = encrypt_bundle(artifact, args.public_key.read_bytes())
        args.output.write_bytes(artifact)
        print(f"\n[ENCRYPTED] {args.file} -> {args.output}")

    manifest = None
    if args.manifest:
        try:
            manifest = json.loads(args.manifest.read_text())
        except json.JSONDecodeError as e:
            print(f"\n[ERROR] Manifest {args.manifest} is not valid JSON: {e}")
            return None

    service = PublishService(db)
    try:
        service.register_app(args.app_id, name=args.app_name)
        bundle = service.publish_bundle(
            args.app_id,
            args.platform,
            args.version,
            channel=channel,
            external_url=args.url,
            storage_path=args.storage_path,
            artifact=artifact,
            checksum=args.checksum,
            session_key=session_key,
            manifest=manifest,
            min_native_version=args.min_native_version,
            required=args.required,
        )
    except ServiceError as e:
        print(f"\n[ERROR] Failed to publish: {e}")
        return None

    print(f"\n[PUBLISHED] {args.app_id} {bundle.platform} {bundle.version}")
    print(f"  GUID:     {bundle.guid}")
    print(f"  Channel:  {channel}")
    print(f"  Checksum: {bundle.checksum}")
    print(f"  Encrypted: {'yes' if bundle.is_encrypted else 'no'}")
    return bundle.guid


def main(argv: Optional[List[str]] = None):
    """Main entry point."""
    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    args = parse_args(argv)

    error = validate_args(args)
    if error:
        print(f"Error: {error}")
        sys.exit(1)

    print("=" * 50)
    print("OTA: Publish Bundle")
    print("=" * 50)

    if args.dry_run:
        print("\n[DRY RUN] Would publish:")
        print(f"  App:      {args.app_id}")
        print(f"  Platform: {args.platform}")
        print(f"  Version:  {args.version}")
        print(f"  Channel:  {args.channel or '(default)'}")
        print(f"  Location: {args.url or args.storage_path}")
        print("\nNo changes made.")
        sys.exit(0)

    # Import here to avoid loading database during argument parsing
    from backend.src.db.database import SessionLocal

    db = SessionLocal()
    try:
        guid = publish(args, db)
    finally:
        db.close()

    sys.exit(0 if guid else 1)


if __name__ == "__main__":
    main()
