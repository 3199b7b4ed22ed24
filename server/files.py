"""
# Files.py
- This module handles chatbot context file uploads and their storage on disk.
- Each chatbot collection gets its own folder: `uploads/<collection>/`.
"""

import os
import re
from typing import Tuple

from logger import get_logger
log = get_logger(name="FILES", log_to_console=False)

UPLOADS_PATH = os.path.abspath(os.getenv("UPLOADS_PATH", "./uploads/"))

# A collection name is a single folder name under UPLOADS_PATH
COLLECTION_NAME_PATTERN = re.compile(r"[A-Za-z0-9_-]+")


def check_create_uploads_folder() -> str:
    """Check and create the uploads directory if it doesn't exist."""

    if not os.path.exists(UPLOADS_PATH):
        os.makedirs(UPLOADS_PATH)
        log.info(f"Uploads folder created at: {UPLOADS_PATH}")
    else:
        log.info(f"Uploads folder already exists at: {UPLOADS_PATH}")
    return UPLOADS_PATH


def is_valid_collection_name(collection_name: str) -> bool:
    return isinstance(collection_name, str) and COLLECTION_NAME_PATTERN.fullmatch(collection_name) is not None


def create_collection_uploads_folder(collection_name: str) -> bool:
    """Create a collection-specific uploads directory if it doesn't exist."""

    if not is_valid_collection_name(collection_name):
        log.warning(f"Refusing uploads folder for invalid collection name: {collection_name!r}")
        return False

    try:
        collection_path = os.path.join(UPLOADS_PATH, collection_name)
        if not os.path.exists(collection_path):
            os.makedirs(collection_path)
            log.info(f"Uploads folder created for collection {collection_name} at: {collection_path}")
        return True

    except Exception as e:
        log.error(f"Error creating uploads folder for collection {collection_name}: {repr(e)}")
        return False


def get_file_path(collection_name: str, file_name: str) -> str:
    return os.path.join(UPLOADS_PATH, collection_name, file_name)


def save_file(collection_name: str, file_value_binary: bytes, file_name: str) -> Tuple[bool, str]:
    """Save an uploaded context file to the collection's uploads directory.
    Args:
        collection_name (str): The chatbot collection the file belongs to.
        file_value_binary (bytes): The binary content of the uploaded file.
        file_name (str): The original name of the uploaded file.
    Returns:
        Tuple[bool, str]: A tuple containing a success flag and the saved file name or failure message.
    """

    if not is_valid_collection_name(collection_name):
        log.warning(f"Refusing upload for invalid collection name: {collection_name!r}")
        return False, "Invalid collection name!"

    try:
        # Never trust client supplied directories:
        file_name = os.path.basename(file_name)
        if "." in file_name:
            base_name = file_name[:file_name.rfind(".")]
            ext = file_name[file_name.rfind("."):].lower()
        else:
            base_name, ext = file_name, ""
        new_file_name = base_name.replace(" ", "_").replace(".", "_") + ext

        if not create_collection_uploads_folder(collection_name):
            return False, "Error creating uploads folder!"

        # check if same name already exists:
        while os.path.exists(get_file_path(collection_name, new_file_name)):
            new_file_name = "n_" + new_file_name

        with open(get_file_path(collection_name, new_file_name), "wb") as f:
            f.write(file_value_binary)
            log.info(f"Collection {collection_name} - File saved: {new_file_name}")

        return True, new_file_name

    except Exception as e:
        log.error(f"Collection {collection_name} - Error saving file {file_name}: {repr(e)}")
        return False, "Error saving file!"


def delete_file(collection_name: str, file_name: str) -> bool:
    """Delete a context file from the uploads directory.
    Args:
        collection_name (str): The chatbot collection the file belongs to.
        file_name (str): The name of the file to be deleted.
    Returns:
        bool: True if the file was successfully deleted, False otherwise.
    """

    if not is_valid_collection_name(collection_name):
        log.warning(f"Refusing deletion for invalid collection name: {collection_name!r}")
        return False

    file_path = get_file_path(collection_name, os.path.basename(file_name))
    if os.path.isfile(file_path):
        try:
            os.remove(file_path)
            log.info(f"Collection {collection_name} - File deleted: {file_name}")
            return True
        except Exception as e:
            log.error(f"Collection {collection_name} - Error deleting file {file_name}: {repr(e)}")
            return False
    else:
        log.warning(f"Collection {collection_name} - File not found for deletion: {file_name}")
        return False
