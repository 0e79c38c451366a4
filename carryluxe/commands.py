import json
import os
from typing import Dict, List

import click
from flask import current_app

from .errors import StorefrontError
from .store import ORDERS, PRODUCTS, DocumentRecordStore


def read_records(path: str) -> List[Dict]:
    try:
        with open(path, "r", encoding="utf-8") as handle:
            data = json.loads(handle.read() or "[]")
    except (OSError, json.JSONDecodeError) as exc:
        click.echo(f"Could not read {path}: {exc}", err=True)
        return []
    return [record for record in data if isinstance(record, dict)] if isinstance(data, list) else []


def upload_local_images(media, product: Dict) -> List[str]:
    migrated: List[str] = []
    for image in product.get("images") or []:
        local_path = media.local_path(str(image))
        if not local_path or not os.path.exists(local_path):
            migrated.append(image)
            continue
        try:
            migrated.append(media.upload_to_cloudinary(local_path, label=os.path.basename(local_path)))
        except StorefrontError as exc:
            click.echo(f"Image upload failed for {local_path}: {exc}", err=True)
            migrated.append(image)
    return migrated


def register_commands(app) -> None:
    @app.cli.command("import-json")
    @click.option(
        "--data-dir",
        default=None,
        help="Directory holding products.json and orders.json (defaults to DATA_DIR).",
    )
    @click.option(
        "--upload-images",
        is_flag=True,
        help="Push locally stored /uploads/ images to Cloudinary before importing.",
    )
    def import_json(data_dir, upload_images):
        """Upsert JSON-file products and orders into the MongoDB store."""
        components = current_app.extensions["carryluxe"]
        store = components["store"]
        media = components["media"]
        if not isinstance(store, DocumentRecordStore):
            raise click.ClickException("MONGODB_URI is not set or MongoDB is unreachable. Aborting migration.")
        if upload_images and not media.remote:
            raise click.ClickException("Cloudinary is not configured; cannot upload images.")

        data_dir = data_dir or current_app.config["CARRYLUXE_SETTINGS"].data_dir
        counts = {PRODUCTS: 0, ORDERS: 0}

        for kind in (PRODUCTS, ORDERS):
            for record in read_records(os.path.join(data_dir, f"{kind}.json")):
                if record.get("id") is None:
                    click.echo(f"Skipping {kind} record without id", err=True)
                    continue
                if kind == PRODUCTS and upload_images:
                    record["images"] = upload_local_images(media, record)
                try:
                    store.put(kind, record)
                except StorefrontError as exc:
                    click.echo(f"Failed to upsert {kind} {record.get('id')}: {exc.message}", err=True)
                    continue
                counts[kind] += 1

        click.echo(
            f"Migration complete: products: {counts[PRODUCTS]}, orders: {counts[ORDERS]}"
        )
