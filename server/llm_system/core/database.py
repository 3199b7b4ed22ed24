""" Database Module for LLM System
- Contains `get_embeddings()` to build the embeddings model for the configured provider.
- Contains the `VectorDB` class to manage the Qdrant vector store used by the chatbot.
- Provides methods to add, search and delete documents, and to get the retriever.
"""

from typing import List, Optional

from qdrant_client import QdrantClient
from qdrant_client.models import Distance, VectorParams
from langchain_qdrant import QdrantVectorStore
from langchain_ollama import OllamaEmbeddings
from langchain_google_genai import GoogleGenerativeAIEmbeddings

# For type hinting
from langchain_core.documents import Document
from langchain_core.embeddings import Embeddings
from langchain_core.vectorstores import VectorStore
from langchain_core.vectorstores import VectorStoreRetriever

from logger import get_logger
log = get_logger(name="core_database")


def get_embeddings(model_name: str, provider: str = "google", api_key: Optional[str] = None,
                   base_url: Optional[str] = None, verify_connection: bool = False) -> Embeddings:
    """Get the embeddings model for the given provider.

    Args:
        model_name (str): The embeddings model name.
        provider (str): Either "google" or "ollama".
        api_key (Optional[str]): Credential for the Google provider.
        base_url (Optional[str]): Server URL for the Ollama provider.
        verify_connection (bool): Whether to embed a sample text right away.

    Returns:
        Embeddings: The embeddings model.

    Raises:
        ValueError: If the provider is not supported.
        RuntimeError: If the connection verification fails.
    """

    log.info(f"Initializing Embeddings(provider={provider}, model={model_name})")

    if provider == "google":
        embeddings = GoogleGenerativeAIEmbeddings(model=model_name, google_api_key=api_key)
    elif provider == "ollama":
        embeddings = OllamaEmbeddings(model=model_name, base_url=base_url)
    else:
        raise ValueError(f"Unsupported embeddings provider '{provider}'. Use 'google' or 'ollama'.")

    if verify_connection:
        try:
            embeddings.embed_documents(['a'])
            log.info(f"Embeddings model '{model_name}' initialized and verified.")

        except Exception as e:
            log.error(f"Failed to initialize Embeddings: {e}")
            raise RuntimeError(f"Couldn't initialize Embeddings model '{model_name}'") from e
    else:
        log.warning(f"Embeddings '{model_name}' initialized without connection verification.")

    return embeddings


class VectorDB:
    """A class to manage the Qdrant vector store of one chatbot collection.

    Args:
        embeddings (Embeddings): The embeddings model used for documents and queries.
        qdrant_url (str): Qdrant server URL.
        collection_name (str): Name of the Qdrant collection.
        retriever_num_docs (int): Number of documents to retrieve for similarity search.

    ## Functions:
        + `get_embeddings()`: Returns the embeddings model.
        + `get_vector_store()`: Returns the Qdrant vector store.
        + `get_retriever()`: Returns the retriever configured for similarity search.
        + `add_documents()`, `search()`, `delete_documents()`: Direct collection access.
    """

    def __init__(
        self, embeddings: Embeddings,
        qdrant_url: str = "http://localhost:6333",
        collection_name: str = "my_collection",
        retriever_num_docs: int = 50,
    ):
        self.embeddings = embeddings
        self.qdrant_url = qdrant_url
        self.collection_name = collection_name
        self.retriever_num_docs = retriever_num_docs

        log.info(
            f"Initializing VectorDB with Qdrant at '{qdrant_url}', "
            f"collection='{collection_name}', k={retriever_num_docs} docs."
        )

        self.client = QdrantClient(url=qdrant_url)

        # Qdrant refuses to open a missing collection, create an empty one first:
        if not self.client.collection_exists(collection_name):
            dimension = len(self.embeddings.embed_query("dimension check"))
            self.client.create_collection(
                collection_name=collection_name,
                vectors_config=VectorParams(size=dimension, distance=Distance.COSINE),
            )
            log.info(f"Created empty Qdrant collection '{collection_name}' (dim={dimension}, cosine).")

        self.db = QdrantVectorStore(
            client=self.client,
            collection_name=collection_name,
            embedding=self.embeddings,
        )
        log.info(f"Connected to Qdrant collection '{collection_name}'.")

        self.retriever = self.db.as_retriever(search_kwargs={"k": retriever_num_docs})
        log.info(f"Created retriever with k={retriever_num_docs}.")

    def get_embeddings(self) -> Embeddings:
        log.info("Returning the Embeddings model instance.")
        return self.embeddings

    def get_vector_store(self) -> VectorStore:
        log.info("Returning the Qdrant vector store instance.")
        return self.db

    def get_retriever(self) -> VectorStoreRetriever:
        log.info("Returning the retriever for similarity search.")
        return self.retriever

    def add_documents(self, documents: List[Document], ids: Optional[List[str]] = None) -> List[str]:
        """Embed and add documents to the collection. Returns the stored ids."""
        stored_ids = self.db.add_documents(documents, ids=ids)
        log.info(f"Added {len(stored_ids)} documents to '{self.collection_name}'.")
        return stored_ids

    def search(self, query: str, k: int) -> List[Document]:
        """Similarity search for the top `k` documents."""
        results = self.db.similarity_search(query, k=k)
        log.info(f"Search returned {len(results)} documents from '{self.collection_name}'.")
        return results

    def delete_documents(self, ids: List[str]) -> bool:
        """Delete documents by id. Returns True if Qdrant acknowledged the deletion."""
        status = bool(self.db.delete(ids=ids))
        log.info(f"Deleted {len(ids)} documents from '{self.collection_name}': {status}")
        return status
