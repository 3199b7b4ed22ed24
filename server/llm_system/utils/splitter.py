"""Splitting of loaded context documents into chunks for one chatbot collection.
Each chunk carries its collection and its position within the source file.
"""

from collections import defaultdict
from typing import List, Optional
from langchain_core.documents import Document
from langchain_text_splitters import RecursiveCharacterTextSplitter

from llm_system.config import DOC_CHAR_LIMIT, DOC_OVERLAP_NO

from logger import get_logger
log = get_logger(name="utils_splitter")


def split_text(
        documents: List[Document],
        collection_name: Optional[str] = None,
        chunk_size: int = DOC_CHAR_LIMIT,
        chunk_overlap: int = DOC_OVERLAP_NO
) -> tuple[bool, List[Document], str]:
    """Split loaded documents into chunks for the given collection.
    Blank chunks are dropped. Every chunk gets `collection` and `chunk_index` metadata,
    the index counting from 0 within each source file.

    Args:
        documents (List[Document]): Documents produced by `load_file`.
        collection_name (Optional[str]): Collection to tag the chunks with. Defaults to the
            `collection` already in each document's metadata.
        chunk_size (int): The maximum size of each chunk.
        chunk_overlap (int): The number of characters that overlap between chunks.

    Returns:
        tuple[bool, List[Document], str]: Success flag, the chunks, and a message.
    """

    text_splitter = RecursiveCharacterTextSplitter(
        chunk_size=chunk_size, chunk_overlap=chunk_overlap
    )

    try:
        chunks = [chunk for chunk in text_splitter.split_documents(documents) if chunk.page_content.strip()]
    except Exception as e:
        log.error(f"Error splitting documents for collection '{collection_name}': {e}")
        return False, [], f"Error splitting documents: {e}"

    if not chunks:
        log.warning(f"No text to split in {len(documents)} documents for collection '{collection_name}'.")
        return True, [], "No text found in the documents."

    per_source = defaultdict(int)
    for chunk in chunks:
        if collection_name:
            chunk.metadata['collection'] = collection_name
        source = chunk.metadata.get('source', '')
        chunk.metadata['chunk_index'] = per_source[source]
        per_source[source] += 1

    log.info(f"Split {len(documents)} documents from {len(per_source)} sources into "
             f"{len(chunks)} chunks for collection '{collection_name}'.")
    return True, chunks, f"Split into {len(chunks)} chunks."
