"""Module dealing specifically with loading context files into Document objects.
Contains the `load_file` function to load text, markdown, CSV and PDF files.
"""

import os
from typing import List
from langchain_core.documents import Document
from langchain_community.document_loaders import TextLoader, CSVLoader, PyMuPDFLoader

from logger import get_logger
log = get_logger(name="doc_loader")

SUPPORTED_TYPES = ("txt", "md", "csv", "pdf")


def load_file(file_path: str, collection_name: str) -> tuple[bool, List[Document], str]:
    """Load a file and return its content as a list of Document objects.
    Usually one document per page (pdf), per row (csv) or per file (txt, md).

    Args:
        file_path (str): The absolute path to the file to be loaded.
        collection_name (str): The chatbot collection the file belongs to.

    Returns:
        tuple[bool, List[Document], str]: A tuple containing:
            - bool: True if the file was loaded successfully, False otherwise.
            - List[Document]: A list of Document objects containing the file's content.
            - str: Message indicating the result of the loading operation.
    """

    file_extension = file_path.split('.')[-1].lower()

    if file_extension not in SUPPORTED_TYPES:
        log.error(f"Unsupported file type: {file_extension}.")
        return False, [], f"Unsupported file type: {file_extension}. Supported types are: {', '.join(SUPPORTED_TYPES)}."

    if file_extension in ("txt", "md"):
        loader = TextLoader(file_path, encoding='utf-8')

    elif file_extension == "csv":
        loader = CSVLoader(file_path, encoding='utf-8')

    else:
        loader = PyMuPDFLoader(file_path, extract_images=False)

    try:
        file_content = loader.load()
    except Exception as e:
        log.error(f"Failed to load {file_path}: {e}")
        return False, [], f"Failed to load file: {e}"

    for doc in file_content:
        doc.metadata['collection'] = collection_name
        # Retrieved docs may reach the UI, never expose full server paths:
        for key in ('source', 'file_path'):
            if key in doc.metadata:
                doc.metadata[key] = os.path.basename(str(doc.metadata[key]))

    if not file_content:
        log.error(f"No content found in the file: {file_path}")
        return True, [], f"No content found in the file: {file_path}"

    log.info(f"Loaded {len(file_content)} documents from {file_path} for collection '{collection_name}'.")
    return True, file_content, f"Loaded {len(file_content)} documents."
