"""
Image upload helper: resize an uploaded image and store it as JPEG.
"""
import os
import time
import logging

from flask import current_app
from PIL import Image, UnidentifiedImageError

from tourbook.errors import AppError

logger = logging.getLogger(__name__)


def save_resized_image(upload, subdir, basename, size, quality=90):
    """Resize an uploaded image to ``size`` and save it under UPLOAD_FOLDER.

    Args:
        upload: werkzeug FileStorage from request.files
        subdir: Folder under UPLOAD_FOLDER ('users', 'tours')
        basename: Filename prefix, e.g. 'user-12'
        size: (width, height) tuple

    Returns:
        str: The stored filename
    """
    if not (upload.mimetype or '').startswith('image'):
        raise AppError('Not an image! Please upload only images.', 400)

    try:
        image = Image.open(upload.stream)
        image = image.convert('RGB').resize(size)
    except (UnidentifiedImageError, OSError):
        raise AppError('Not an image! Please upload only images.', 400)

    filename = f'{basename}-{int(time.time() * 1000)}.jpeg'
    out_dir = os.path.join(current_app.config['UPLOAD_FOLDER'], subdir)
    os.makedirs(out_dir, exist_ok=True)
    image.save(os.path.join(out_dir, filename), 'JPEG', quality=quality)

    logger.info('Stored image %s/%s', subdir, filename)
    return filename
