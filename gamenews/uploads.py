import os
from datetime import datetime, timezone

from flask import Flask
from werkzeug.utils import secure_filename

from .errors import ValidationError

UPLOAD_URL_PREFIX = "/uploads"


def allowed_ext(app: Flask, filename: str) -> bool:
    ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
    return ext in app.config["ALLOWED_IMAGE_EXT"]


def save_upload(app: Flask, file_storage) -> str:
    """Store an uploaded image and return its ``/uploads/<name>`` reference."""
    filename = secure_filename(file_storage.filename or "")
    if not filename:
        raise ValidationError("Invalid filename")

    if not allowed_ext(app, filename):
        raise ValidationError(f"File type not allowed for image: {filename}")

    stamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S_%f")
    final_name = f"{stamp}_{filename}"

    save_dir = app.config["UPLOAD_FOLDER"]
    os.makedirs(save_dir, exist_ok=True)
    file_storage.save(os.path.join(save_dir, final_name))

    return f"{UPLOAD_URL_PREFIX}/{final_name}"


def discard_upload(app: Flask, reference: str) -> None:
    name = reference.rsplit("/", 1)[-1]
    path = os.path.join(app.config["UPLOAD_FOLDER"], name)
    if os.path.isfile(path):
        os.remove(path)
