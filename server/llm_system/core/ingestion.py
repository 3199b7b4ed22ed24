""" Ingestion of chatbot context files into the vector database.
- Supports txt, md, csv and pdf files.
- The file is loaded, split into chunks, embedded and stored in the chatbot's Qdrant collection.
"""

from typing import List

from llm_system.utils.loader import load_file
from llm_system.utils.splitter import split_text

# For type hinting
from llm_system.core.database import VectorDB

from logger import get_logger
log = get_logger(name="core_ingestion")


def ingest_file(file_path: str, vector_db: VectorDB) -> tuple[bool, List[str], str]:
    """Ingest a file into the vector database. Returns the ids of vector embeddings stored in database.

    Args:
        file_path (str): The absolute path to the file to be ingested.
        vector_db (VectorDB): The vector database of the target collection.

    Returns:
        tuple[bool, List[str], str]: A tuple containing:
            - bool: True if ingestion was successful, False otherwise.
            - List[str]: List of document IDs that were ingested.
            - str: Message indicating the result of the ingestion.
    """

    # Load the file and get its content as Document objects:
    status, documents, message = load_file(file_path, collection_name=vector_db.collection_name)
    if not status:
        return False, [], message

    # Split the documents into smaller chunks:
    status, split_docs, message = split_text(documents, collection_name=vector_db.collection_name)
    if not status:
        return False, [], message

    if not split_docs:
        log.warning(f"No content found in the file: {file_path}")
        return True, [], f"No content found in the file: {file_path}"

    # Add the split documents to the vector database:
    try:
        log.info(f"Ingesting {len(split_docs)} chunks into '{vector_db.collection_name}'...")
        doc_ids = vector_db.add_documents(split_docs)

    except Exception as e:
        log.exception(f"Failed to ingest documents into Qdrant: {e}")
        return False, [], f"Failed to ingest documents: {e}"

    log.info(f"Successfully added {len(doc_ids)} chunks to '{vector_db.collection_name}'.")
    return True, doc_ids, f"Ingested {len(doc_ids)} chunks successfully."
